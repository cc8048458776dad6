from django.urls import path
from .views import (
    drone_list_create, drone_available, drone_detail, drone_status,
    drone_model_list_create, drone_model_detail,
    maintenance_log_list_create, maintenance_log_detail,
)

urlpatterns = [
    # Drone endpoints
    path('drones/', drone_list_create, name='drone-list-create'),
    path('drones/available/', drone_available, name='drone-available'),
    path('drones/<int:pk>/', drone_detail, name='drone-detail'),
    path('drones/<int:pk>/status/', drone_status, name='drone-status'),

    # DroneModel endpoints
    path('drone-models/', drone_model_list_create, name='drone-model-list-create'),
    path('drone-models/<int:pk>/', drone_model_detail, name='drone-model-detail'),

    # MaintenanceLog endpoints
    path('maintenance-logs/', maintenance_log_list_create, name='maintenance-log-list-create'),
    path('maintenance-logs/<int:pk>/', maintenance_log_detail, name='maintenance-log-detail'),
]
