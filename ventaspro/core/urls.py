from django.urls import path
from .views import (
    CustomTokenObtainPairView, CustomTokenRefreshView, signup, user_me,
    user_list_create, user_detail,
    employee_list_create, employee_detail, employee_stats,
    app_settings, app_settings_reset,
    setting_list_create, setting_detail,
    audit_log_list, audit_log_detail,
    global_search
)

urlpatterns = [
    # Auth endpoints
    path('auth/signup/', signup, name='signup'),
    path('auth/login/', CustomTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/refresh/', CustomTokenRefreshView.as_view(), name='token_refresh'),
    path('auth/me/', user_me, name='user-me'),

    # User endpoints
    path('users/', user_list_create, name='user-list-create'),
    path('users/<int:pk>/', user_detail, name='user-detail'),

    # Employee endpoints
    path('employees/', employee_list_create, name='employee-list-create'),
    path('employees/stats/', employee_stats, name='employee-stats'),
    path('employees/<int:pk>/', employee_detail, name='employee-detail'),

    # Application settings
    path('app-settings/', app_settings, name='app-settings'),
    path('app-settings/reset/', app_settings_reset, name='app-settings-reset'),

    # Raw setting endpoints
    path('settings/', setting_list_create, name='setting-list-create'),
    path('settings/<int:pk>/', setting_detail, name='setting-detail'),

    # AuditLog endpoints
    path('audit-logs/', audit_log_list, name='audit-log-list'),
    path('audit-logs/<int:pk>/', audit_log_detail, name='audit-log-detail'),

    # Global search endpoint
    path('search/', global_search, name='global-search'),
]
