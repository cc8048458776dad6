from django.urls import path
from . import views

urlpatterns = [
    path('reports/analytics/', views.analytics, name='reports-analytics'),
    path('reports/system/', views.system_stats, name='reports-system'),
    path('reports/health/', views.system_health, name='reports-health'),
    path('reports/dashboard/', views.dashboard, name='reports-dashboard'),
]
