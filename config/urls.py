"""
URL configuration for the Assessment Platform API.
"""
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

urlpatterns = [
    # API Documentation
    path('api/schema', SpectacularAPIView.as_view(), name='schema'),
    path('api/schema/swagger', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),

    # Health, environment and system configuration
    path('api/', include('apps.core.urls')),

    # Authentication endpoints
    path('api/auth/', include('apps.rbac.urls_auth')),  # Register, login, logout, me

    # Modules, user administration, demo quota
    path('api/', include('apps.rbac.urls')),

    # Organizations and admin dashboard
    path('api/', include('apps.tenants.urls')),

    # Assessment cases
    path('api/', include('apps.assessments.urls')),
]
