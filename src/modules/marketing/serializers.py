"""Marketing output serializers."""

from __future__ import annotations

from rest_framework import serializers

from modules.marketing.models import (
    AutomationRule,
    Campaign,
    DiscountCode,
    EmailSignup,
    EmailTemplate,
)


class CampaignSerializer(serializers.ModelSerializer):
    open_rate = serializers.FloatField(read_only=True)
    click_rate = serializers.FloatField(read_only=True)

    class Meta:
        model = Campaign
        fields = [
            "id",
            "name",
            "subject",
            "content",
            "target_audience",
            "status",
            "scheduled_for",
            "sent_at",
            "sent_count",
            "open_count",
            "click_count",
            "open_rate",
            "click_rate",
            "created_at",
        ]
        read_only_fields = fields


class DiscountCodeSerializer(serializers.ModelSerializer):
    class Meta:
        model = DiscountCode
        fields = [
            "id",
            "code",
            "discount_type",
            "value",
            "min_order_amount",
            "max_uses",
            "used_count",
            "valid_from",
            "valid_until",
            "status",
            "created_at",
        ]
        read_only_fields = fields


class EmailTemplateSerializer(serializers.ModelSerializer):
    class Meta:
        model = EmailTemplate
        fields = ["id", "name", "subject", "content", "category", "created_at", "updated_at"]
        read_only_fields = fields


class AutomationRuleSerializer(serializers.ModelSerializer):
    email_template_id = serializers.UUIDField(read_only=True, allow_null=True)
    stats = serializers.SerializerMethodField()

    class Meta:
        model = AutomationRule
        fields = [
            "id",
            "name",
            "rule_type",
            "trigger_config",
            "email_template_id",
            "is_active",
            "stats",
            "created_at",
        ]
        read_only_fields = fields

    def get_stats(self, obj: AutomationRule) -> dict:
        return {
            "triggered": obj.triggered_count,
            "converted": obj.converted_count,
            "conversion_rate": obj.conversion_rate,
        }


class EmailSignupSerializer(serializers.ModelSerializer):
    class Meta:
        model = EmailSignup
        fields = ["id", "email", "source", "created_at"]
        read_only_fields = fields


class DiscountValidationSerializer(serializers.Serializer):
    code = serializers.CharField()
    discount_type = serializers.CharField()
    value = serializers.DecimalField(max_digits=10, decimal_places=2)
    discount_amount = serializers.DecimalField(max_digits=10, decimal_places=2)
    final_amount = serializers.DecimalField(max_digits=10, decimal_places=2)
