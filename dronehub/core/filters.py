import django_filters
from django.db.models import Q
from .models import User, ActivityLog


class UserFilter(django_filters.FilterSet):
    """Filter for the user management screens"""
    search = django_filters.CharFilter(method='filter_search', label='Search')
    role = django_filters.ChoiceFilter(field_name='role', choices=User.ROLE_CHOICES)
    status = django_filters.CharFilter(method='filter_status', label='Status')

    class Meta:
        model = User
        fields = ['search', 'role', 'status']

    def filter_search(self, queryset, name, value):
        value = (value or '').strip()
        if not value:
            return queryset
        return queryset.filter(Q(name__icontains=value) | Q(email__icontains=value))

    def filter_status(self, queryset, name, value):
        value = (value or '').strip().lower()
        if value == 'active':
            return queryset.filter(is_active=True)
        if value == 'suspended':
            return queryset.filter(is_active=False)
        return queryset


class ActivityLogFilter(django_filters.FilterSet):
    action = django_filters.CharFilter(field_name='action', lookup_expr='iexact')
    model = django_filters.CharFilter(field_name='model_name', lookup_expr='iexact')
    user = django_filters.NumberFilter(field_name='user_id')
    date_from = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    date_to = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')

    class Meta:
        model = ActivityLog
        fields = ['action', 'model', 'user', 'date_from', 'date_to']
