from django.contrib.auth import get_user_model
from django.db import transaction
from rest_framework import serializers

from brands.models import Brand
from common.roles import UserRole, primary_role

from .services import sync_role

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    """
    Back-office user. `role` is written through auth groups; on a full update
    a missing or empty role clears it, a partial update leaves it alone.
    """
    role = serializers.ChoiceField(
        choices=UserRole.choices, required=False, allow_blank=True, allow_null=True, write_only=True
    )
    brands = serializers.SerializerMethodField()
    created_at = serializers.DateTimeField(source="date_joined", read_only=True)

    class Meta:
        model = User
        fields = ["id", "username", "first_name", "last_name", "email", "role", "brands", "created_at"]
        read_only_fields = ["id", "username", "brands", "created_at"]
        extra_kwargs = {
            "first_name": {"required": True, "allow_blank": False, "max_length": 150},
            "last_name": {"required": True, "allow_blank": False, "max_length": 150},
            "email": {"required": True, "allow_blank": False},
        }

    def get_brands(self, obj):
        return [
            {"id": m.brand_id, "name": m.brand.name}
            for m in obj.brand_memberships.all() if m.is_active
        ]

    def to_representation(self, instance):
        data = super().to_representation(instance)
        data["role"] = primary_role(instance)
        return data

    def validate_email(self, value):
        taken = User.objects.filter(email__iexact=value)
        if self.instance is not None:
            taken = taken.exclude(pk=self.instance.pk)
        if taken.exists():
            raise serializers.ValidationError("A user with this email already exists.")
        return value

    @transaction.atomic
    def update(self, instance, validated_data):
        role_given = "role" in validated_data
        role = validated_data.pop("role", None)
        instance = super().update(instance, validated_data)
        if role_given or not self.partial:
            sync_role(instance, role)
        return instance


class UserIdsSerializer(serializers.Serializer):
    user_ids = serializers.PrimaryKeyRelatedField(queryset=User.objects.all(), many=True, allow_empty=False)


class BulkRoleSerializer(UserIdsSerializer):
    role = serializers.ChoiceField(choices=UserRole.choices)


class UserBrandsSerializer(serializers.Serializer):
    brand_ids = serializers.PrimaryKeyRelatedField(queryset=Brand.objects.all(), many=True, allow_empty=True)
