"""Account DRF serializers (output rendering only).

Input is validated by the pydantic DTOs in ``dtos.py``.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.accounts.models import Address, Customer


class CustomerSerializer(serializers.ModelSerializer):
    is_admin = serializers.BooleanField(source="user.is_staff", read_only=True)

    class Meta:
        model = Customer
        fields = [
            "id",
            "email",
            "first_name",
            "last_name",
            "phone",
            "email_verified",
            "is_admin",
            "created_at",
        ]
        read_only_fields = fields


class AdminCustomerSerializer(CustomerSerializer):
    """Customer row for the back-office user grid."""

    order_count = serializers.IntegerField(read_only=True)
    total_spent = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    last_login = serializers.DateTimeField(source="user.last_login", read_only=True)

    class Meta(CustomerSerializer.Meta):
        fields = CustomerSerializer.Meta.fields + [
            "is_active",
            "order_count",
            "total_spent",
            "last_login",
        ]
        read_only_fields = fields


class AddressSerializer(serializers.ModelSerializer):
    class Meta:
        model = Address
        fields = [
            "id",
            "label",
            "name",
            "line1",
            "line2",
            "city",
            "state",
            "zip_code",
            "country",
            "phone",
            "is_default",
            "created_at",
        ]
        read_only_fields = fields


class CustomerStatsSerializer(serializers.Serializer):
    customer_id = serializers.UUIDField()
    email = serializers.EmailField()
    member_since = serializers.DateTimeField()
    email_verified = serializers.BooleanField()
    address_count = serializers.IntegerField()
    order_count = serializers.IntegerField()
    total_spent = serializers.DecimalField(max_digits=12, decimal_places=2)
    last_order_at = serializers.DateTimeField(allow_null=True)
