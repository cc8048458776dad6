import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Count, Q
from django.shortcuts import get_object_or_404
from dronehub.core.access import IsAdminRole, has_role, ADMIN_ROLES
from dronehub.core.utils import get_setting
from .filters import BorrowRequestFilter
from .models import BorrowRequest
from .serializers import (
    BorrowRequestSerializer, BorrowRequestCreateSerializer, BorrowRequestUpdateSerializer,
    BorrowActionSerializer, BorrowReturnSerializer, BorrowHistorySerializer,
)
from . import services
from .services import BorrowTransitionError

logger = logging.getLogger('dronehub.borrowing')


def _base_queryset():
    return BorrowRequest.objects.select_related('user', 'drone', 'drone__model')


def _filtered_response(request, queryset):
    filterset = BorrowRequestFilter(request.query_params, queryset=queryset)
    if not filterset.is_valid():
        return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
    serializer = BorrowRequestSerializer(filterset.qs.order_by('-created_at', '-id'), many=True)
    return Response(serializer.data)


def _can_view(user, borrow_request):
    return borrow_request.user_id == user.id or has_role(user, ADMIN_ROLES)


def _run_transition(request, pk, verb, func, **kwargs):
    """Run a lifecycle transition and translate its failures into responses"""
    try:
        borrow_request = func(pk, request.user, request=request, **kwargs)
    except BorrowTransitionError as e:
        logger.warning(f"Borrow request {pk} could not be {verb} by {request.user.email}: {e}")
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    except Exception as e:
        logger.error(f"Unexpected error while {verb} borrow request {pk}: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
    return Response(BorrowRequestSerializer(_base_queryset().get(pk=borrow_request.pk)).data)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def borrow_request_list_create(request):
    """List the caller's own requests or submit a new one"""
    if request.method == 'GET':
        return _filtered_response(request, _base_queryset().filter(user=request.user))

    if get_setting('maintenance_mode'):
        logger.info(f"Borrow request from {request.user.email} refused: maintenance mode")
        return Response({'error': 'The system is in maintenance mode. New borrow requests are not accepted.'},
                        status=status.HTTP_503_SERVICE_UNAVAILABLE)

    serializer = BorrowRequestCreateSerializer(data=request.data)
    if not serializer.is_valid():
        logger.warning(f"Borrow request validation failed for {request.user.email}: {serializer.errors}")
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    try:
        borrow_request = services.create_request(
            request.user, data['drone'], data['purpose'], data['start_date'], data['end_date'], request=request,
        )
    except BorrowTransitionError as e:
        return Response({'drone': [str(e)]}, status=status.HTTP_400_BAD_REQUEST)
    except Exception as e:
        logger.error(f"Unexpected error creating borrow request: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    return Response(BorrowRequestSerializer(_base_queryset().get(pk=borrow_request.pk)).data,
                    status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def borrow_request_all(request):
    """Every borrow request, for the admin review screen"""
    return _filtered_response(request, _base_queryset())


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def borrow_request_stats(request):
    """Counts of the caller's requests by status"""
    counts = BorrowRequest.objects.filter(user=request.user).aggregate(
        total=Count('id'),
        pending=Count('id', filter=Q(status=BorrowRequest.STATUS_PENDING)),
        approved=Count('id', filter=Q(status=BorrowRequest.STATUS_APPROVED)),
        rejected=Count('id', filter=Q(status=BorrowRequest.STATUS_REJECTED)),
        returned=Count('id', filter=Q(status=BorrowRequest.STATUS_RETURNED)),
    )
    return Response(counts)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def borrow_request_detail(request, pk):
    """Retrieve a request (owner or admin) or edit it (admin)"""
    borrow_request = get_object_or_404(_base_queryset(), pk=pk)

    if request.method == 'GET':
        if not _can_view(request.user, borrow_request):
            return Response({'error': 'You do not have permission to view this request'},
                            status=status.HTTP_403_FORBIDDEN)
        return Response(BorrowRequestSerializer(borrow_request).data)

    if not has_role(request.user, ADMIN_ROLES):
        logger.warning(f"User {request.user.email} attempted to edit borrow request {pk} without admin privileges")
        return Response({'error': 'Only administrators can modify borrow requests'},
                        status=status.HTTP_403_FORBIDDEN)

    serializer = BorrowRequestUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    return _run_transition(request, pk, 'updated', services.update_request, changes=dict(serializer.validated_data))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def borrow_request_approve(request, pk):
    get_object_or_404(BorrowRequest, pk=pk)
    serializer = BorrowActionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    return _run_transition(request, pk, 'approved', services.approve_request,
                           remarks=serializer.validated_data.get('remarks'))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def borrow_request_reject(request, pk):
    get_object_or_404(BorrowRequest, pk=pk)
    serializer = BorrowActionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    return _run_transition(request, pk, 'rejected', services.reject_request,
                           remarks=serializer.validated_data.get('remarks'))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def borrow_request_return(request, pk):
    """Close an approved request and record the drone's condition"""
    get_object_or_404(BorrowRequest, pk=pk)
    serializer = BorrowReturnSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    return _run_transition(
        request, pk, 'returned', services.return_request,
        drone_status=data['drone_status'],
        condition_report=data.get('condition_report'),
        remarks=data.get('remarks'),
    )


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def borrow_request_cancel(request, pk):
    borrow_request = get_object_or_404(BorrowRequest, pk=pk)
    if borrow_request.user_id != request.user.id:
        return Response({'error': 'Only the requester can cancel this request'},
                        status=status.HTTP_403_FORBIDDEN)
    return _run_transition(request, pk, 'cancelled', services.cancel_request)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def borrow_request_history(request, pk):
    """Lifecycle events of a request, oldest first"""
    borrow_request = get_object_or_404(BorrowRequest, pk=pk)
    if not _can_view(request.user, borrow_request):
        return Response({'error': 'You do not have permission to view this request'},
                        status=status.HTTP_403_FORBIDDEN)
    history = borrow_request.history.select_related('performed_by')
    return Response(BorrowHistorySerializer(history, many=True).data)
