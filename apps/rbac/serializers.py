"""
RBAC serializers for REST API endpoints.

Provides serialization for:
- Authentication (registration, login)
- Users (read representation and admin updates)
- Module switching
"""
from rest_framework import serializers

from apps.rbac.models import User
from apps.rbac.roles import ModuleType


# ===== AUTHENTICATION SERIALIZERS =====

class RegistrationSerializer(serializers.Serializer):
    """Serializer for user registration."""

    username = serializers.CharField(required=True, max_length=150)
    email = serializers.EmailField(required=True)
    password = serializers.CharField(
        required=True,
        write_only=True,
        min_length=8,
        style={'input_type': 'password'}
    )
    organizationName = serializers.CharField(required=False, max_length=255, allow_blank=True)

    def validate_username(self, value):
        value = value.strip()
        if User.objects.filter(username=value).exists():
            raise serializers.ValidationError("A user with this username already exists.")
        return value

    def validate_email(self, value):
        """Validate email uniqueness."""
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("A user with this email already exists.")
        return value.lower()


class LoginSerializer(serializers.Serializer):
    """
    Serializer for login. ``username`` accepts a username or an email
    address; ``email`` is accepted as an alias.
    """

    username = serializers.CharField(required=False, allow_blank=True)
    email = serializers.CharField(required=False, allow_blank=True)
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )

    def validate(self, attrs):
        identifier = attrs.get('username') or attrs.get('email')
        if not identifier:
            raise serializers.ValidationError("Username or email is required.")
        attrs['identifier'] = identifier
        return attrs


# ===== USER SERIALIZERS =====

class UserSerializer(serializers.ModelSerializer):
    """Read representation of a platform user."""

    organizationId = serializers.CharField(source='organization_id', read_only=True)
    organizationName = serializers.SerializerMethodField()
    customerId = serializers.CharField(source='customer_id', read_only=True)
    assignedModules = serializers.JSONField(source='assigned_modules', read_only=True)
    reportCount = serializers.IntegerField(source='report_count', read_only=True)
    maxReports = serializers.IntegerField(source='max_reports', read_only=True)
    isActive = serializers.BooleanField(source='is_active', read_only=True)
    lastLogin = serializers.DateTimeField(source='last_login', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = User
        fields = [
            'id', 'username', 'email', 'role',
            'organizationId', 'organizationName', 'customerId',
            'assignedModules', 'reportCount', 'maxReports',
            'isActive', 'lastLogin', 'createdAt',
        ]
        read_only_fields = fields

    def get_organizationName(self, obj):
        return obj.organization.name if obj.organization_id else None


def validate_module_list(value):
    invalid = [module for module in value if ModuleType.parse(module) is None]
    if invalid:
        raise serializers.ValidationError(
            f"Invalid module(s): {', '.join(map(str, invalid))}. "
            f"Valid modules: {', '.join(ModuleType.values)}"
        )
    return [module.value for module in ModuleType.ordered(value)]


class UserUpdateSerializer(serializers.Serializer):
    """
    Admin update of a user. Role values are checked by the user management
    gate rather than here so that an unknown role yields INVALID_ROLE.
    """

    role = serializers.CharField(required=False)
    isActive = serializers.BooleanField(required=False)
    assignedModules = serializers.ListField(
        child=serializers.CharField(),
        required=False,
        allow_empty=False,
    )
    organizationId = serializers.CharField(required=False, allow_null=True)
    maxReports = serializers.IntegerField(required=False, min_value=-1)

    def validate_assignedModules(self, value):
        return validate_module_list(value)


class OrganizationUserCreateSerializer(serializers.Serializer):
    """New member created inside an organization by its admin."""

    username = serializers.CharField(max_length=150)
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=8)
    role = serializers.CharField(required=False, default='customer')
    assignedModules = serializers.ListField(
        child=serializers.CharField(),
        required=False,
        allow_empty=False,
    )

    def validate_username(self, value):
        if User.objects.filter(username=value).exists():
            raise serializers.ValidationError("A user with this username already exists.")
        return value

    def validate_email(self, value):
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("A user with this email already exists.")
        return value.lower()

    def validate_assignedModules(self, value):
        return validate_module_list(value)


class ModuleSwitchSerializer(serializers.Serializer):
    module = serializers.CharField()
