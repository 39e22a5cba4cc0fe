"""
URL routing for authentication endpoints.
"""
from django.urls import path

from apps.rbac.views_auth import LoginView, LogoutView, MeView, RegisterView

app_name = 'auth'

urlpatterns = [
    # Registration and login
    path('register', RegisterView.as_view(), name='register'),
    path('login', LoginView.as_view(), name='login'),
    path('logout', LogoutView.as_view(), name='logout'),

    # Current identity
    path('me', MeView.as_view(), name='me'),
]
