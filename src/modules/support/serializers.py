from __future__ import annotations

from rest_framework import serializers

from modules.support.models import SupportTicket, TicketMessage


class TicketMessageSerializer(serializers.ModelSerializer):
    class Meta:
        model = TicketMessage
        fields = ["id", "sender", "message", "created_at"]
        read_only_fields = fields


class SupportTicketSerializer(serializers.ModelSerializer):
    class Meta:
        model = SupportTicket
        fields = [
            "id",
            "reference",
            "customer_id",
            "name",
            "email",
            "subject",
            "message",
            "status",
            "priority",
            "type",
            "order_id",
            "item_ids",
            "reason",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields
