from rest_framework import serializers
from django.contrib.auth import authenticate

from .models import User


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "role",
            "display_name",
        ]
        read_only_fields = fields


class AdminBasicSerializer(serializers.ModelSerializer):
    """Lite admin info shown on orders as the assigning admin."""
    name = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ["id", "username", "name"]

    def get_name(self, obj):
        return obj.display_name or obj.username


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField(write_only=True)

    def validate(self, data):
        user = authenticate(username=data["username"], password=data["password"])
        if not user:
            raise serializers.ValidationError("Invalid username or password")
        if user.role not in ("admin", "super_admin"):
            raise serializers.ValidationError("Only dispatch admins can sign in here")
        return user
