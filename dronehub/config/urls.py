"""
URL configuration for the DroneHub project.

Every app mounts its routes under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "DroneHub Admin Panel"
admin.site.site_title = "DroneHub Admin Portal"
admin.site.index_title = "Drone fleet administration"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('dronehub.core.urls')),
    path('api/v1/', include('dronehub.fleet.urls')),
    path('api/v1/', include('dronehub.borrowing.urls')),
    path('api/v1/', include('dronehub.reports.urls')),
]
