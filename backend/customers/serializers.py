from rest_framework import serializers

from .models import Customer


class CustomerBasicSerializer(serializers.ModelSerializer):
    """Lite customer info embedded in order payloads."""

    class Meta:
        model = Customer
        fields = ["id", "name", "phone", "email"]
