"""
Serializers for organization API endpoints.
"""
from rest_framework import serializers

from apps.rbac.serializers import validate_module_list
from apps.tenants.models import Organization


class OrganizationSerializer(serializers.ModelSerializer):
    """Serializer for Organization."""

    customerId = serializers.CharField(source='customer_id', read_only=True)
    assignedModules = serializers.SerializerMethodField()
    maxUsers = serializers.IntegerField(source='max_users', read_only=True)
    isActive = serializers.BooleanField(source='is_active', read_only=True)
    activeUsers = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = Organization
        fields = [
            'id', 'name', 'customerId', 'assignedModules', 'maxUsers',
            'isActive', 'activeUsers', 'createdAt',
        ]
        read_only_fields = fields

    def get_assignedModules(self, obj):
        return obj.module_values()

    def get_activeUsers(self, obj):
        return obj.active_members().count()


class OrganizationCreateSerializer(serializers.Serializer):

    name = serializers.CharField(max_length=255)
    assignedModules = serializers.ListField(
        child=serializers.CharField(),
        required=False,
        allow_empty=False,
    )
    maxUsers = serializers.IntegerField(required=False, min_value=1, default=10)

    def validate_assignedModules(self, value):
        return validate_module_list(value)


class OrganizationUpdateSerializer(serializers.Serializer):

    name = serializers.CharField(max_length=255, required=False)
    assignedModules = serializers.ListField(
        child=serializers.CharField(),
        required=False,
        allow_empty=False,
    )
    maxUsers = serializers.IntegerField(required=False, min_value=1)
    isActive = serializers.BooleanField(required=False)

    def validate_assignedModules(self, value):
        return validate_module_list(value)
