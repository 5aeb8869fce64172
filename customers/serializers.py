# customers/serializers.py
from rest_framework import serializers

from .models import Customer


class CustomerSerializer(serializers.ModelSerializer):
    orders_count = serializers.IntegerField(read_only=True, required=False)

    class Meta:
        model = Customer
        fields = ["id", "email", "name", "phone", "orders_count", "created_at", "updated_at"]
        read_only_fields = ["id", "created_at", "updated_at"]
