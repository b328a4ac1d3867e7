"""Catalog DRF serializers (output rendering).

Input validation lives in the pydantic DTOs of ``dtos.py``.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.products.models import Product, Review


class ProductSerializer(serializers.ModelSerializer):
    class Meta:
        model = Product
        fields = [
            "id",
            "sku",
            "name",
            "description",
            "price",
            "stock_quantity",
            "collection",
            "image_url",
            "weight",
            "dimensions",
            "status",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ReviewSerializer(serializers.ModelSerializer):
    user_name = serializers.SerializerMethodField()

    class Meta:
        model = Review
        fields = [
            "id",
            "product",
            "user_name",
            "rating",
            "title",
            "comment",
            "verified_purchase",
            "helpful_count",
            "created_at",
        ]
        read_only_fields = fields

    def get_user_name(self, obj: Review) -> str:
        return obj.customer.first_name or "Anonymous"


class StockReservationSerializer(serializers.Serializer):
    session_id = serializers.CharField()
    expires_at = serializers.DateTimeField()
    items = serializers.ListField(child=serializers.DictField())
