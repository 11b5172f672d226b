from django.conf import settings
from rest_framework.views import APIView
from rest_framework.response import Response

from accounts.permissions import IsDispatchAdmin
from drivers.serializers import (
    DriverSerializer,
    AssignableDriverSerializer,
    AssignableDriversQuerySerializer,
    DriverAvailabilitySerializer,
    DriverBlockSerializer,
    LocationUpdateSerializer,
)
from drivers import services
from services import driver_availability


class DriverListView(APIView):
    """
    Active drivers for the dashboard.

    Query params: status (available|busy), vehicle_type, verification_status
    """
    permission_classes = [IsDispatchAdmin]

    def get(self, request):
        params = request.query_params
        drivers = services.list_drivers(
            status=params.get("status"),
            vehicle_type=params.get("vehicle_type"),
            verification_status=params.get("verification_status"),
        )
        return Response({"success": True, "data": DriverSerializer(drivers, many=True).data})


class AssignableDriverListView(APIView):
    """
    Drivers that can be assigned right now, nearest first when a pickup
    point (latitude/longitude) is given.
    """
    permission_classes = [IsDispatchAdmin]

    def get(self, request):
        serializer = AssignableDriversQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        query = serializer.validated_data

        candidates = services.find_assignable_drivers(
            vehicle_type=query.get("vehicle_type"),
            latitude=query.get("latitude"),
            longitude=query.get("longitude"),
            radius_meters=query.get("radius", settings.DISPATCH_ASSIGNABLE_RADIUS_METERS),
        )
        drivers = []
        for driver, distance in candidates:
            driver.distance = distance
            drivers.append(driver)

        return Response({
            "success": True,
            "data": AssignableDriverSerializer(drivers, many=True).data,
            "count": len(drivers),
        })


class DriverAvailabilityView(APIView):
    permission_classes = [IsDispatchAdmin]

    def patch(self, request, driver_id):
        serializer = DriverAvailabilitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        driver = driver_availability.set_availability(driver_id, serializer.validated_data["is_available"])
        return Response({
            "success": True,
            "message": "Availability updated",
            "data": DriverSerializer(driver).data,
        })


class DriverBlockView(APIView):
    permission_classes = [IsDispatchAdmin]

    def patch(self, request, driver_id):
        serializer = DriverBlockSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        blocked = serializer.validated_data["is_blocked"]
        driver = driver_availability.set_blocked(driver_id, blocked)
        return Response({
            "success": True,
            "message": "Driver blocked" if blocked else "Driver unblocked",
            "data": DriverSerializer(driver).data,
        })


#    HTTP fallback for the driver_location_update socket message.
class DriverLocationUpdateView(APIView):
    permission_classes = [IsDispatchAdmin]

    def patch(self, request, driver_id):
        serializer = LocationUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        driver = driver_availability.update_location(
            driver_id,
            serializer.validated_data["latitude"],
            serializer.validated_data["longitude"],
        )
        return Response({
            "success": True,
            "message": "Location updated",
            "data": DriverSerializer(driver).data,
        })
