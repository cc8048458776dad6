from django.urls import path
from .views import (
    borrow_request_list_create, borrow_request_all, borrow_request_stats, borrow_request_detail,
    borrow_request_approve, borrow_request_reject, borrow_request_return, borrow_request_cancel,
    borrow_request_history,
)

urlpatterns = [
    path('borrow-requests/', borrow_request_list_create, name='borrow-request-list-create'),
    path('borrow-requests/all/', borrow_request_all, name='borrow-request-all'),
    path('borrow-requests/stats/', borrow_request_stats, name='borrow-request-stats'),
    path('borrow-requests/<int:pk>/', borrow_request_detail, name='borrow-request-detail'),

    # Lifecycle transitions
    path('borrow-requests/<int:pk>/approve/', borrow_request_approve, name='borrow-request-approve'),
    path('borrow-requests/<int:pk>/reject/', borrow_request_reject, name='borrow-request-reject'),
    path('borrow-requests/<int:pk>/return/', borrow_request_return, name='borrow-request-return'),
    path('borrow-requests/<int:pk>/cancel/', borrow_request_cancel, name='borrow-request-cancel'),
    path('borrow-requests/<int:pk>/history/', borrow_request_history, name='borrow-request-history'),
]
