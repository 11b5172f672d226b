from django.urls import path
from . import views

app_name = 'orders'

urlpatterns = [
    path('', views.order_list, name='order-list'),
    path('stats/', views.order_stats, name='order-stats'),
    path('driver/<int:driver_id>/', views.driver_orders, name='driver-orders'),
    path('customer/<int:customer_id>/', views.customer_orders, name='customer-orders'),

    # Single order
    path('<int:order_id>/', views.order_detail, name='order-detail'),
    path('<int:order_id>/assign/', views.assign_driver, name='assign-driver'),
    path('<int:order_id>/status/', views.update_order_status, name='update-status'),
    path('<int:order_id>/cancel/', views.cancel_order, name='cancel-order'),
]
