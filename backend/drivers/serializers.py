from rest_framework import serializers
from drivers.models import Driver


class DriverSerializer(serializers.ModelSerializer):
    """
    Full driver record for the admin dashboard
    """
    is_connected = serializers.BooleanField(read_only=True)

    class Meta:
        model = Driver
        fields = [
            "id",
            "name",
            "phone",
            "email",
            "vehicle_type",
            "vehicle_number",
            "is_available",
            "availability_version",
            "is_active",
            "is_blocked",
            "verification_status",
            "verified_at",
            "current_latitude",
            "current_longitude",
            "last_location_update",
            "is_connected",
            "connected_at",
        ]
        read_only_fields = fields


class DriverBasicSerializer(serializers.ModelSerializer):
    """
    Lite version of driver info for order details and driver events.
    """

    class Meta:
        model = Driver
        fields = [
            "id",
            "name",
            "phone",
            "vehicle_type",
            "vehicle_number",
            "is_available",
            "current_latitude",
            "current_longitude",
        ]


class AssignableDriverSerializer(DriverBasicSerializer):
    """Driver info plus the distance (meters) to the requested pickup point."""
    distance = serializers.SerializerMethodField()

    class Meta(DriverBasicSerializer.Meta):
        fields = DriverBasicSerializer.Meta.fields + ["distance"]

    def get_distance(self, obj):
        distance = getattr(obj, "distance", None)
        return round(distance, 1) if distance is not None else None


class DriverAvailabilitySerializer(serializers.Serializer):
    """
    Serializer for the manual availability toggle.
    """
    is_available = serializers.BooleanField()


class DriverBlockSerializer(serializers.Serializer):
    is_blocked = serializers.BooleanField()


class LocationUpdateSerializer(serializers.Serializer):
    """
    Serializer for updating driver GPS location.
    """
    latitude = serializers.DecimalField(max_digits=9, decimal_places=6, min_value=-90, max_value=90)
    longitude = serializers.DecimalField(max_digits=9, decimal_places=6, min_value=-180, max_value=180)


class AssignableDriversQuerySerializer(serializers.Serializer):
    vehicle_type = serializers.CharField(required=False)
    latitude = serializers.FloatField(required=False, min_value=-90, max_value=90)
    longitude = serializers.FloatField(required=False, min_value=-180, max_value=180)
    radius = serializers.FloatField(required=False, min_value=1)

    def validate(self, data):
        if ("latitude" in data) != ("longitude" in data):
            raise serializers.ValidationError("latitude and longitude must be given together")
        return data
