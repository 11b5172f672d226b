from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from accounts.permissions import IsDispatchAdmin
from services import order_management
from .serializers import (
    OrderSerializer,
    OrderCreateSerializer,
    OrderUpdateSerializer,
    OrderAssignSerializer,
    OrderStatusSerializer,
    OrderCancelSerializer,
)


def _result_response(result, status_code=status.HTTP_200_OK):
    body = {
        "success": True,
        "message": result.message,
        "data": OrderSerializer(result.order).data if result.order is not None else result.extra,
    }
    return Response(body, status=status_code)


def _page_response(orders, pagination):
    return Response({
        "success": True,
        "data": OrderSerializer(orders, many=True).data,
        "pagination": pagination,
    })


# ==================== Order Collection ====================

@api_view(['GET', 'POST'])
@permission_classes([IsDispatchAdmin])
def order_list(request):
    """List orders (filters: status, driver_id, customer_id, page, limit) or create one"""
    if request.method == 'POST':
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = order_management.create_order(**serializer.validated_data)
        return _result_response(result, status.HTTP_201_CREATED)

    params = request.query_params
    orders, pagination = order_management.list_orders(
        status=params.get('status'),
        driver_id=params.get('driver_id'),
        customer_id=params.get('customer_id'),
        page=params.get('page'),
        limit=params.get('limit'),
    )
    return _page_response(orders, pagination)


@api_view(['GET'])
@permission_classes([IsDispatchAdmin])
def order_stats(request):
    """Dashboard counters"""
    return Response({
        "success": True,
        "data": order_management.compute_dashboard_stats(),
    })


@api_view(['GET'])
@permission_classes([IsDispatchAdmin])
def driver_orders(request, driver_id):
    params = request.query_params
    orders, pagination = order_management.list_driver_orders(
        driver_id,
        status=params.get('status'),
        page=params.get('page'),
        limit=params.get('limit'),
    )
    return _page_response(orders, pagination)


@api_view(['GET'])
@permission_classes([IsDispatchAdmin])
def customer_orders(request, customer_id):
    params = request.query_params
    orders, pagination = order_management.list_customer_orders(
        customer_id,
        page=params.get('page'),
        limit=params.get('limit'),
    )
    return _page_response(orders, pagination)


# ==================== Single Order ====================

@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsDispatchAdmin])
def order_detail(request, order_id):
    if request.method == 'GET':
        order = order_management.get_order(order_id)
        return Response({"success": True, "data": OrderSerializer(order).data})

    if request.method == 'DELETE':
        result = order_management.delete_order(order_id)
        return _result_response(result)

    serializer = OrderUpdateSerializer(data=request.data, partial=True)
    serializer.is_valid(raise_exception=True)
    result = order_management.update_order(order_id, **serializer.validated_data)
    return _result_response(result)


@api_view(['PATCH'])
@permission_classes([IsDispatchAdmin])
def assign_driver(request, order_id):
    """Admin assigns a driver to a pending order"""
    serializer = OrderAssignSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    result = order_management.assign_driver(
        order_id,
        serializer.validated_data['driver_id'],
        assigned_by_id=request.user.pk,
    )
    return _result_response(result)


@api_view(['PATCH'])
@permission_classes([IsDispatchAdmin])
def update_order_status(request, order_id):
    serializer = OrderStatusSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    result = order_management.update_status(order_id, serializer.validated_data['status'])
    return _result_response(result)


@api_view(['PATCH'])
@permission_classes([IsDispatchAdmin])
def cancel_order(request, order_id):
    serializer = OrderCancelSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    result = order_management.cancel_order(order_id, serializer.validated_data.get('reason'))
    return _result_response(result)
