from __future__ import annotations

from rest_framework import serializers

from modules.privacy.models import DataRightsRequest, PrivacySettings


class DataRightsRequestSerializer(serializers.ModelSerializer):
    processed_by = serializers.CharField(source="processed_by.email", default=None, read_only=True)

    class Meta:
        model = DataRightsRequest
        fields = [
            "id",
            "reference",
            "customer_id",
            "email",
            "request_type",
            "status",
            "description",
            "admin_response",
            "response_data",
            "processed_at",
            "processed_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class DataRightsRequestListSerializer(serializers.ModelSerializer):
    """Without ``response_data``, which can hold a full export."""

    class Meta:
        model = DataRightsRequest
        fields = [
            "id",
            "reference",
            "email",
            "request_type",
            "status",
            "description",
            "admin_response",
            "processed_at",
            "created_at",
        ]
        read_only_fields = fields


class PrivacySettingsSerializer(serializers.ModelSerializer):
    class Meta:
        model = PrivacySettings
        fields = [
            "marketing_emails",
            "analytics_tracking",
            "third_party_sharing",
            "data_retention",
            "updated_at",
        ]
        read_only_fields = fields
