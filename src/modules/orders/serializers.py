"""Order DRF serializers for API output.

Input validation happens in the pydantic DTOs (``dtos.py``); these
serializers only render orders, items and history.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.orders.models import Order, OrderItem, OrderStatusHistory
from modules.orders.services import OrderService

# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class OrderItemSerializer(serializers.ModelSerializer):
    """Read serializer for order items with product snapshot."""

    product_name = serializers.CharField(source="product.name", read_only=True)
    product_sku = serializers.CharField(source="product.sku", read_only=True)
    collection = serializers.CharField(source="product.collection", read_only=True)
    image_url = serializers.CharField(source="product.image_url", read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "product_id",
            "product_name",
            "product_sku",
            "collection",
            "image_url",
            "quantity",
            "unit_price",
            "subtotal",
        ]
        read_only_fields = fields


class StatusHistorySerializer(serializers.ModelSerializer):
    """Read serializer for order status history records."""

    updated_by = serializers.CharField(source="updated_by_label", read_only=True)

    class Meta:
        model = OrderStatusHistory
        fields = [
            "id",
            "old_status",
            "new_status",
            "reason",
            "updated_by",
            "process_type",
            "created_at",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Full order with items and history split by process."""

    customer_email = serializers.EmailField(source="customer.email", read_only=True)
    items = OrderItemSerializer(many=True, read_only=True)
    status_history = serializers.SerializerMethodField()
    return_history = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "customer_id",
            "customer_email",
            "status",
            "total_amount",
            "discount_code",
            "discount_amount",
            "shipping_info",
            "notes",
            "payment_method",
            "payment_status",
            "payment_intent_id",
            "tracking_number",
            "estimated_delivery",
            "actual_delivery",
            "cancellation_reason",
            "modification_history",
            "notification_sent",
            "created_at",
            "updated_at",
            "items",
            "status_history",
            "return_history",
        ]
        read_only_fields = fields

    def _history(self, obj: Order) -> dict:
        if not hasattr(obj, "_split_history"):
            obj._split_history = OrderService.split_history(obj)
        return obj._split_history

    def get_status_history(self, obj: Order) -> list:
        return StatusHistorySerializer(self._history(obj)["status_history"], many=True).data

    def get_return_history(self, obj: Order) -> list:
        return StatusHistorySerializer(self._history(obj)["return_history"], many=True).data


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for order lists (no history)."""

    customer_email = serializers.EmailField(source="customer.email", read_only=True)
    customer_name = serializers.CharField(source="customer.full_name", read_only=True)
    items = OrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "customer_id",
            "customer_email",
            "customer_name",
            "status",
            "total_amount",
            "payment_status",
            "shipping_info",
            "tracking_number",
            "estimated_delivery",
            "actual_delivery",
            "created_at",
            "updated_at",
            "items",
        ]
        read_only_fields = fields


class StatusCountSerializer(serializers.Serializer):
    status = serializers.CharField()
    count = serializers.IntegerField()
    total_value = serializers.DecimalField(max_digits=12, decimal_places=2)


class OrderStatsSerializer(serializers.Serializer):
    status_stats = StatusCountSerializer(many=True)
    recent_orders = serializers.IntegerField()
    total_revenue = serializers.DecimalField(max_digits=12, decimal_places=2)
