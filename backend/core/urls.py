from django.urls import path
from .views import (
    CustomTokenObtainPairView, CustomTokenRefreshView, user_me,
    company_list, company_detail, company_users,
    audit_log_list, audit_log_detail,
    health, health_detailed,
    mobile_detect, mobile_preference,
)

urlpatterns = [
    # Auth endpoints
    path('auth/login/', CustomTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/refresh/', CustomTokenRefreshView.as_view(), name='token_refresh'),
    path('auth/me/', user_me, name='user-me'),

    # Company endpoints
    path('companies/', company_list, name='company-list'),
    path('companies/<int:pk>/', company_detail, name='company-detail'),
    path('companies/<int:pk>/users/', company_users, name='company-users'),

    # AuditLog endpoints
    path('audit-logs/', audit_log_list, name='audit-log-list'),
    path('audit-logs/<int:pk>/', audit_log_detail, name='audit-log-detail'),

    # Health endpoints
    path('health/', health, name='health'),
    path('health/detailed/', health_detailed, name='health-detailed'),

    # Mobile detection endpoints
    path('mobile/detect/', mobile_detect, name='mobile-detect'),
    path('mobile/preference/', mobile_preference, name='mobile-preference'),
]
