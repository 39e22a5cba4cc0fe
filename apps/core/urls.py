"""
Core API URLs.
"""
from django.urls import path

from . import views

urlpatterns = [
    path('health', views.HealthCheckView.as_view(), name='health-check'),
    path('config/environment', views.EnvironmentConfigView.as_view(), name='environment-config'),
    path('system-config', views.SystemConfigListView.as_view(), name='system-config'),
    path('system-config/cache/clear', views.SystemConfigCacheClearView.as_view(), name='system-config-cache-clear'),
    path('system-config/<str:key>', views.SystemConfigDetailView.as_view(), name='system-config-detail'),
]
