from django.contrib import admin
from .models import DroneModel, Drone, MaintenanceLog


@admin.register(DroneModel)
class DroneModelAdmin(admin.ModelAdmin):
    list_display = ['name', 'manufacturer', 'created_at']
    search_fields = ['name', 'manufacturer']
    ordering = ['name']


class MaintenanceLogInline(admin.TabularInline):
    model = MaintenanceLog
    extra = 0
    readonly_fields = ['created_at']


@admin.register(Drone)
class DroneAdmin(admin.ModelAdmin):
    list_display = ['name', 'model', 'status', 'created_at', 'updated_at']
    list_filter = ['status', 'model']
    search_fields = ['name', 'model__name']
    ordering = ['-created_at']
    inlines = [MaintenanceLogInline]
    readonly_fields = ['created_at', 'updated_at']


@admin.register(MaintenanceLog)
class MaintenanceLogAdmin(admin.ModelAdmin):
    list_display = ['drone', 'condition', 'performed_by', 'created_at']
    list_filter = ['created_at']
    search_fields = ['drone__name', 'condition', 'notes']
    ordering = ['-created_at']
    readonly_fields = ['created_at']
