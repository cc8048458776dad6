import django_filters
from django.db.models import Q
from .models import BorrowRequest


class BorrowRequestFilter(django_filters.FilterSet):
    """Filter for the request lists: status tab and free-text search"""
    search = django_filters.CharFilter(method='filter_search', label='Search')
    status = django_filters.ChoiceFilter(field_name='status', choices=BorrowRequest.STATUS_CHOICES)
    drone = django_filters.NumberFilter(field_name='drone_id')

    class Meta:
        model = BorrowRequest
        fields = ['search', 'status', 'drone']

    def filter_search(self, queryset, name, value):
        value = (value or '').strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(purpose__icontains=value) | Q(drone__name__icontains=value) | Q(user__name__icontains=value)
        )
