import django_filters
from django.db.models import Q
from .models import Drone, MaintenanceLog


class DroneFilter(django_filters.FilterSet):
    """Filter for the inventory screens: search by drone or model name, status, model"""
    search = django_filters.CharFilter(method='filter_search', label='Search')
    status = django_filters.ChoiceFilter(field_name='status', choices=Drone.STATUS_CHOICES)
    model = django_filters.NumberFilter(field_name='model_id')

    class Meta:
        model = Drone
        fields = ['search', 'status', 'model']

    def filter_search(self, queryset, name, value):
        value = (value or '').strip()
        if not value:
            return queryset
        return queryset.filter(Q(name__icontains=value) | Q(model__name__icontains=value))


class MaintenanceLogFilter(django_filters.FilterSet):
    drone = django_filters.NumberFilter(field_name='drone_id')

    class Meta:
        model = MaintenanceLog
        fields = ['drone']
