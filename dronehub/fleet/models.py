from django.conf import settings
from django.db import models


class DroneModel(models.Model):
    """Drone make/model with its technical specs"""
    name = models.CharField(max_length=200)
    manufacturer = models.CharField(max_length=200, blank=True, null=True)
    specs = models.JSONField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        if self.manufacturer:
            return f"{self.manufacturer} {self.name}"
        return self.name

    class Meta:
        db_table = 'drone_models'
        ordering = ['name']


class Drone(models.Model):
    """A borrowable drone in the fleet"""
    STATUS_AVAILABLE = 'available'
    STATUS_BORROWED = 'borrowed'
    STATUS_DAMAGED = 'damaged'
    STATUS_MAINTENANCE = 'maintenance'

    STATUS_CHOICES = [
        (STATUS_AVAILABLE, 'Available'),
        (STATUS_BORROWED, 'Borrowed'),
        (STATUS_DAMAGED, 'Damaged'),
        (STATUS_MAINTENANCE, 'Maintenance'),
    ]

    name = models.CharField(max_length=200)
    model = models.ForeignKey(DroneModel, on_delete=models.SET_NULL, null=True, blank=True, related_name='drones')
    image_url = models.URLField(max_length=500, blank=True, null=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_AVAILABLE)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    @property
    def is_available(self):
        return self.status == self.STATUS_AVAILABLE

    class Meta:
        db_table = 'drones'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='idx_drones_status'),
        ]


class MaintenanceLog(models.Model):
    """Condition check or repair performed on a drone"""
    drone = models.ForeignKey(Drone, on_delete=models.CASCADE, related_name='maintenance_logs')
    condition = models.CharField(max_length=200)
    notes = models.TextField(blank=True, null=True)
    performed_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                     related_name='maintenance_logs')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.drone} - {self.condition}"

    class Meta:
        db_table = 'maintenance_logs'
        ordering = ['-created_at']
