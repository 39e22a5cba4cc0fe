"""
Organization and admin dashboard URLs.
"""
from django.urls import path

from apps.tenants.views import (
    OrganizationDetailView,
    OrganizationListView,
    OrganizationUsersView,
)
from apps.tenants.views_admin import AdminAnalyticsView, AdminDashboardView

app_name = 'tenants'

urlpatterns = [
    # Organizations
    path('organizations', OrganizationListView.as_view(), name='organization-list'),
    path('organizations/<str:organization_id>', OrganizationDetailView.as_view(), name='organization-detail'),
    path('organizations/<str:organization_id>/users', OrganizationUsersView.as_view(), name='organization-users'),

    # Admin dashboard
    path('admin/dashboard', AdminDashboardView.as_view(), name='admin-dashboard'),
    path('admin/analytics', AdminAnalyticsView.as_view(), name='admin-analytics'),
]
