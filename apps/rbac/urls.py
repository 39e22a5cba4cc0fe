"""
RBAC API URLs.

Provides endpoints for:
- Module summary, access checks and switching
- User administration
- Demo quota status
"""
from django.urls import path

from apps.rbac.views import (
    AdminUserDetailView,
    AdminUserListView,
    DemoReportStatusView,
    DemoUpgradePromptView,
    ModuleDetailView,
    ModuleListView,
    ModuleSwitchView,
)

app_name = 'rbac'

urlpatterns = [
    # Module endpoints
    path('modules', ModuleListView.as_view(), name='module-list'),
    path('modules/switch', ModuleSwitchView.as_view(), name='module-switch'),
    path('modules/<str:module>', ModuleDetailView.as_view(), name='module-detail'),

    # User administration
    path('admin/users', AdminUserListView.as_view(), name='admin-user-list'),
    path('admin/users/<int:user_id>', AdminUserDetailView.as_view(), name='admin-user-detail'),

    # Demo sandbox
    path('demo/report-status', DemoReportStatusView.as_view(), name='demo-report-status'),
    path('demo/upgrade-prompt', DemoUpgradePromptView.as_view(), name='demo-upgrade-prompt'),
]
