from rest_framework import serializers

from accounts.serializers import AdminBasicSerializer
from customers.serializers import CustomerBasicSerializer
from drivers.serializers import DriverBasicSerializer
from .models import Order


class LocationSerializer(serializers.Serializer):
    """A pickup or dropoff point. Coordinates are [longitude, latitude]."""
    address = serializers.CharField()
    coordinates = serializers.ListField(
        child=serializers.FloatField(),
        min_length=2,
        max_length=2,
    )
    type = serializers.ChoiceField(choices=["pickup", "dropoff"], required=False)

    def validate_coordinates(self, value):
        longitude, latitude = value
        if not -180 <= longitude <= 180:
            raise serializers.ValidationError("Longitude must be between -180 and 180")
        if not -90 <= latitude <= 90:
            raise serializers.ValidationError("Latitude must be between -90 and 90")
        return value


class LocationsSerializer(serializers.Serializer):
    pickup = LocationSerializer()
    dropoff = LocationSerializer()


class FareSerializer(serializers.Serializer):
    """Fare breakdown. Only the total is mandatory on create."""
    base_fare = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False)
    distance_charge = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False)
    time_charge = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False)
    total = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)
    commission = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False)


class OrderSerializer(serializers.ModelSerializer):
    """Serializer for orders, with customer/driver/admin resolved for display"""
    customer = CustomerBasicSerializer(read_only=True)
    driver = DriverBasicSerializer(read_only=True)
    assigned_by = AdminBasicSerializer(read_only=True)
    locations = serializers.ReadOnlyField()
    fare = FareSerializer(read_only=True)

    class Meta:
        model = Order
        fields = ['id', 'booking_id', 'customer', 'driver', 'vehicle_type', 'locations',
                  'distance', 'fare', 'status', 'notes', 'assigned_by', 'assigned_at',
                  'started_at', 'completed_at', 'cancelled_at', 'cancellation_reason',
                  'created_at', 'updated_at']
        read_only_fields = fields


class OrderCreateSerializer(serializers.Serializer):
    customer_id = serializers.IntegerField(min_value=1)
    vehicle_type = serializers.CharField(max_length=50)
    locations = LocationsSerializer()
    fare = FareSerializer()
    distance = serializers.DecimalField(max_digits=8, decimal_places=2, min_value=0, required=False)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class OrderUpdateSerializer(serializers.Serializer):
    """
    Partial order edit. Use with partial=True so nested fare fields
    (including total) are optional and overlay the stored values.
    """
    vehicle_type = serializers.CharField(max_length=50, required=False)
    locations = LocationsSerializer(required=False)
    fare = FareSerializer(required=False)
    distance = serializers.DecimalField(max_digits=8, decimal_places=2, min_value=0, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)


class OrderAssignSerializer(serializers.Serializer):
    driver_id = serializers.IntegerField(min_value=1)


class OrderStatusSerializer(serializers.Serializer):
    # Not a ChoiceField: unknown statuses are rejected by the lifecycle with
    # the same "Invalid status" failure the service layer raises
    status = serializers.CharField()


class OrderCancelSerializer(serializers.Serializer):
    """Serializer for order cancellation"""
    reason = serializers.CharField(required=False, allow_blank=True)
