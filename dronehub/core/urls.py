from django.urls import path
from .views import (
    EmailTokenObtainPairView, ProfileTokenRefreshView, register, logout, user_me, access_check,
    user_list_create, user_stats, user_detail, user_role, user_status,
    setting_list_create, setting_effective, setting_bulk_update, setting_detail,
    activity_log_list_create, activity_log_detail,
)

urlpatterns = [
    # Auth endpoints
    path('auth/register/', register, name='register'),
    path('auth/login/', EmailTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/refresh/', ProfileTokenRefreshView.as_view(), name='token_refresh'),
    path('auth/logout/', logout, name='logout'),
    path('auth/me/', user_me, name='user-me'),
    path('auth/access/', access_check, name='access-check'),

    # User endpoints
    path('users/', user_list_create, name='user-list-create'),
    path('users/stats/', user_stats, name='user-stats'),
    path('users/<int:pk>/', user_detail, name='user-detail'),
    path('users/<int:pk>/role/', user_role, name='user-role'),
    path('users/<int:pk>/status/', user_status, name='user-status'),

    # Setting endpoints
    path('settings/', setting_list_create, name='setting-list-create'),
    path('settings/effective/', setting_effective, name='setting-effective'),
    path('settings/bulk/', setting_bulk_update, name='setting-bulk-update'),
    path('settings/<int:pk>/', setting_detail, name='setting-detail'),

    # ActivityLog endpoints
    path('activity-logs/', activity_log_list_create, name='activity-log-list-create'),
    path('activity-logs/<int:pk>/', activity_log_detail, name='activity-log-detail'),
]
