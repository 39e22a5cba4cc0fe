"""
Serializers for assessment case endpoints.
"""
from rest_framework import serializers

from apps.assessments.models import AssessmentCase, AssessmentCaseStatus


class AssessmentCaseSerializer(serializers.ModelSerializer):

    caseId = serializers.CharField(source='case_id', read_only=True)
    moduleType = serializers.CharField(source='module_type', read_only=True)
    displayName = serializers.CharField(source='display_name', read_only=True)
    customerId = serializers.CharField(source='customer_id', read_only=True)
    organizationId = serializers.CharField(source='organization_id', read_only=True)
    createdBy = serializers.IntegerField(source='created_by_id', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = AssessmentCase
        fields = [
            'caseId', 'moduleType', 'displayName', 'status', 'customerId',
            'organizationId', 'createdBy', 'data', 'createdAt', 'updatedAt',
        ]
        read_only_fields = fields


class AssessmentCaseCreateSerializer(serializers.Serializer):
    """
    ``moduleType`` is validated by the module gate so that an unknown
    module yields INVALID_MODULE. ``customerId`` is only honoured on demo
    deployments, where the firewall has already pinned it.
    """

    moduleType = serializers.CharField()
    displayName = serializers.CharField(required=False, allow_blank=True, max_length=255)
    customerId = serializers.CharField(required=False)
    data = serializers.JSONField(required=False)

    def validate_data(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError("Expected an object.")
        return value


class AssessmentCaseUpdateSerializer(serializers.Serializer):

    displayName = serializers.CharField(required=False, allow_blank=True, max_length=255)
    status = serializers.ChoiceField(choices=AssessmentCaseStatus.choices, required=False)
    data = serializers.JSONField(required=False)

    def validate_data(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError("Expected an object.")
        return value
