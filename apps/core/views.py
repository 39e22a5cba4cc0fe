"""
Core API views.
"""
import logging

from django.core.cache import cache
from django.db import connection
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema
from rest_framework import serializers, status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.environment import environment_summary
from apps.core.exceptions import ResourceNotFound
from apps.core.logging import SecurityLogger
from apps.core.models import SystemSetting
from apps.rbac.permissions import CanEditSystemConfig, CanViewSystemConfig, DeveloperOnly

logger = logging.getLogger(__name__)

_MISSING = object()


class HealthCheckView(APIView):
    """
    Health check endpoint to verify system dependencies.

    GET /api/health

    Returns 200 if all dependencies are healthy, 503 otherwise.
    """
    authentication_classes = []
    permission_classes = []

    @extend_schema(
        summary="Health check",
        description="Check the health of the database and the cache",
        responses={
            200: {
                'type': 'object',
                'properties': {
                    'status': {'type': 'string'},
                    'database': {'type': 'string'},
                    'cache': {'type': 'string'},
                }
            },
            503: OpenApiTypes.OBJECT,
        }
    )
    def get(self, request):
        """Check health of all dependencies."""
        health_status = {
            'status': 'healthy',
            'database': 'unknown',
            'cache': 'unknown',
        }
        errors = []

        # Check database connectivity
        try:
            with connection.cursor() as cursor:
                cursor.execute("SELECT 1")
            health_status['database'] = 'healthy'
        except Exception as e:
            health_status['database'] = 'unhealthy'
            errors.append(f"Database: {str(e)}")
            logger.error("Database health check failed", exc_info=True)

        # Check cache connectivity
        try:
            cache.set('health_check', 'ok', timeout=10)
            if cache.get('health_check') == 'ok':
                health_status['cache'] = 'healthy'
            else:
                health_status['cache'] = 'unhealthy'
                errors.append("Cache: Unable to read test key")
        except Exception as e:
            health_status['cache'] = 'unhealthy'
            errors.append(f"Cache: {str(e)}")
            logger.error("Cache health check failed", exc_info=True)

        if errors:
            health_status['status'] = 'unhealthy'
            health_status['errors'] = errors
            return Response(health_status, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        return Response(health_status, status=status.HTTP_200_OK)


class EnvironmentConfigView(APIView):
    """
    GET /api/config/environment

    Public: the client needs the environment label and demo flags before
    anyone logs in.
    """
    authentication_classes = []
    permission_classes = []

    @extend_schema(
        summary="Deployment environment",
        responses={200: OpenApiTypes.OBJECT},
    )
    def get(self, request):
        return Response(environment_summary())


class SystemSettingSerializer(serializers.ModelSerializer):

    updatedBy = serializers.IntegerField(source='updated_by_id', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = SystemSetting
        fields = ['key', 'value', 'description', 'updatedBy', 'updatedAt']
        read_only_fields = fields


class SystemSettingUpdateSerializer(serializers.Serializer):
    value = serializers.JSONField()
    description = serializers.CharField(required=False, allow_blank=True)


class SystemConfigListView(APIView):
    """
    GET /api/system-config
    """
    permission_classes = [CanViewSystemConfig]

    @extend_schema(
        tags=['System Config'],
        summary="List system settings",
        description="Requires `system_config:view` or `database:view`.",
        responses={200: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT},
    )
    def get(self, request):
        settings_rows = SystemSetting.objects.all()
        return Response({
            'settings': SystemSettingSerializer(settings_rows, many=True).data,
            'environment': environment_summary(),
        })


class SystemConfigDetailView(APIView):
    """
    GET   /api/system-config/{key} - cached value
    PATCH /api/system-config/{key}
    """

    def get_permissions(self):
        if self.request.method == 'PATCH':
            return [CanEditSystemConfig()]
        return [CanViewSystemConfig()]

    @extend_schema(
        tags=['System Config'],
        summary="Read a system setting",
        description="Requires `system_config:view`. Served from the settings cache when warm.",
        responses={200: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
    )
    def get(self, request, key):
        value = SystemSetting.objects.get_setting(key, default=_MISSING)
        if value is _MISSING:
            raise ResourceNotFound('Setting not found', code='SETTING_NOT_FOUND')
        return Response({'key': key, 'value': value})

    @extend_schema(
        tags=['System Config'],
        summary="Update a system setting",
        description="Requires `system_config:edit`. Unknown keys return 404.",
        request=SystemSettingUpdateSerializer,
        responses={200: SystemSettingSerializer, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
    )
    def patch(self, request, key):
        setting = SystemSetting.objects.filter(key=key).first()
        if setting is None:
            raise ResourceNotFound('Setting not found', code='SETTING_NOT_FOUND')

        serializer = SystemSettingUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        setting = SystemSetting.objects.set_setting(
            key,
            serializer.validated_data['value'],
            description=serializer.validated_data.get('description', setting.description),
            updated_by=request.user.id,
        )
        SecurityLogger.log_event(
            'system_config_updated',
            level='info',
            user_id=request.user.id,
            setting_key=key,
        )
        return Response(SystemSettingSerializer(setting).data)


class SystemConfigCacheClearView(APIView):
    """
    POST /api/system-config/cache/clear

    Developer only: wiping caches affects every tenant at once.
    """
    permission_classes = [DeveloperOnly]

    @extend_schema(
        tags=['System Config'],
        summary="Clear the settings cache",
        request=OpenApiTypes.OBJECT,
        responses={200: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT},
    )
    def post(self, request):
        key = request.data.get('key') if isinstance(request.data, dict) else None
        SystemSetting.objects.clear_cache(key)
        SecurityLogger.log_event(
            'system_cache_cleared',
            level='info',
            user_id=request.user.id,
            setting_key=key,
        )
        return Response({'cleared': key or 'all'})
