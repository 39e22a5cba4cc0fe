"""
Assessment case URLs.
"""
from django.urls import path

from apps.assessments.views import AssessmentCaseDetailView, AssessmentCaseListView

app_name = 'assessments'

urlpatterns = [
    path('assessment-cases', AssessmentCaseListView.as_view(), name='case-list'),
    path('assessment-cases/<str:case_id>', AssessmentCaseDetailView.as_view(), name='case-detail'),
]
