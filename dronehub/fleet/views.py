import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from django.shortcuts import get_object_or_404
from dronehub.core.access import IsAdminRole, has_role, ADMIN_ROLES
from dronehub.core.models import ActivityLog
from dronehub.core.utils import create_activity_log
from .filters import DroneFilter, MaintenanceLogFilter
from .models import DroneModel, Drone, MaintenanceLog
from .serializers import (
    DroneModelSerializer, DroneSerializer, DroneStatusSerializer, MaintenanceLogSerializer,
)

logger = logging.getLogger('dronehub.fleet')


def _admin_required(request, what):
    """Return a 403 response when the caller is not an admin, else None"""
    if has_role(request.user, ADMIN_ROLES):
        return None
    logger.warning(f"User {request.user.email} attempted to modify {what} without admin privileges")
    return Response({'error': f'Only administrators can modify {what}'}, status=status.HTTP_403_FORBIDDEN)


def _drone_changes(drone):
    return {
        'name': drone.name,
        'status': drone.status,
        'model': drone.model.name if drone.model_id else None,
    }


# Drone views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def drone_list_create(request):
    """List drones with their models, or create a drone (admin)"""
    if request.method == 'GET':
        queryset = Drone.objects.select_related('model')
        filterset = DroneFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer = DroneSerializer(filterset.qs, many=True)
        return Response(serializer.data)

    denied = _admin_required(request, 'drones')
    if denied:
        return denied

    serializer = DroneSerializer(data=request.data)
    if serializer.is_valid():
        drone = serializer.save()
        logger.info(f"Drone '{drone.name}' created by {request.user.email}")
        create_activity_log(
            request=request,
            action=ActivityLog.ACTION_CREATE,
            model_name='Drone',
            object_id=drone.id,
            details=_drone_changes(drone),
        )
        return Response(DroneSerializer(drone).data, status=status.HTTP_201_CREATED)
    logger.warning(f"Drone creation validation failed: {serializer.errors}")
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def drone_available(request):
    """Drones that can be requested right now"""
    drones = Drone.objects.select_related('model').filter(status=Drone.STATUS_AVAILABLE)
    serializer = DroneSerializer(drones, many=True)
    return Response(serializer.data)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def drone_detail(request, pk):
    """Retrieve, update or delete a drone (update/delete requires admin)"""
    drone = get_object_or_404(Drone.objects.select_related('model'), pk=pk)

    if request.method == 'GET':
        return Response(DroneSerializer(drone).data)

    denied = _admin_required(request, 'drones')
    if denied:
        return denied

    if request.method in ('PUT', 'PATCH'):
        serializer = DroneSerializer(drone, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            drone = serializer.save()
            logger.info(f"Drone {pk} updated by {request.user.email}")
            create_activity_log(
                request=request,
                action=ActivityLog.ACTION_UPDATE,
                model_name='Drone',
                object_id=drone.id,
                details=_drone_changes(drone),
            )
            return Response(DroneSerializer(drone).data)
        logger.warning(f"Drone update validation failed: {serializer.errors}")
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    # DELETE
    if drone.borrow_requests.filter(status='approved').exists():
        return Response({'error': 'Drone is currently borrowed and cannot be deleted'},
                        status=status.HTTP_400_BAD_REQUEST)

    name = drone.name
    drone.delete()
    logger.info(f"Drone {pk} ({name}) deleted by {request.user.email}")
    create_activity_log(
        request=request,
        action=ActivityLog.ACTION_DELETE,
        model_name='Drone',
        object_id=pk,
        details={'name': name},
    )
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsAdminRole])
def drone_status(request, pk):
    """Change a drone's status"""
    drone = get_object_or_404(Drone, pk=pk)
    serializer = DroneStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    old_status = drone.status
    drone.status = serializer.validated_data['status']
    drone.save(update_fields=['status', 'updated_at'])
    logger.info(f"Drone {pk} status changed from {old_status} to {drone.status} by {request.user.email}")
    create_activity_log(
        request=request,
        action=ActivityLog.ACTION_UPDATE,
        model_name='Drone',
        object_id=drone.id,
        details={'name': drone.name, 'from': old_status, 'to': drone.status},
    )
    return Response(DroneSerializer(drone).data)


# DroneModel views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def drone_model_list_create(request):
    """List drone models by name, or create one (admin)"""
    if request.method == 'GET':
        models = DroneModel.objects.all().order_by('name')
        serializer = DroneModelSerializer(models, many=True)
        return Response(serializer.data)

    denied = _admin_required(request, 'drone models')
    if denied:
        return denied

    serializer = DroneModelSerializer(data=request.data)
    if serializer.is_valid():
        drone_model = serializer.save()
        create_activity_log(
            request=request,
            action=ActivityLog.ACTION_CREATE,
            model_name='DroneModel',
            object_id=drone_model.id,
            details={'name': drone_model.name, 'manufacturer': drone_model.manufacturer},
        )
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def drone_model_detail(request, pk):
    """Retrieve, update or delete a drone model"""
    drone_model = get_object_or_404(DroneModel, pk=pk)

    if request.method == 'GET':
        return Response(DroneModelSerializer(drone_model).data)

    denied = _admin_required(request, 'drone models')
    if denied:
        return denied

    if request.method in ('PUT', 'PATCH'):
        serializer = DroneModelSerializer(drone_model, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_activity_log(
                request=request,
                action=ActivityLog.ACTION_UPDATE,
                model_name='DroneModel',
                object_id=drone_model.id,
                details={'name': drone_model.name, 'manufacturer': drone_model.manufacturer},
            )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    # DELETE - drones keep existing without a model
    name = drone_model.name
    drone_model.delete()
    create_activity_log(
        request=request,
        action=ActivityLog.ACTION_DELETE,
        model_name='DroneModel',
        object_id=pk,
        details={'name': name},
    )
    return Response(status=status.HTTP_204_NO_CONTENT)


# MaintenanceLog views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def maintenance_log_list_create(request):
    """List maintenance logs (optionally for one drone) or record a new one"""
    if request.method == 'GET':
        queryset = MaintenanceLog.objects.select_related('drone', 'performed_by')
        filterset = MaintenanceLogFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer = MaintenanceLogSerializer(filterset.qs.order_by('-created_at', '-id'), many=True)
        return Response(serializer.data)

    serializer = MaintenanceLogSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    new_status = serializer.validated_data.pop('drone_status', None)
    with transaction.atomic():
        log = serializer.save(performed_by=request.user)
        if new_status and new_status != log.drone.status:
            drone = Drone.objects.select_for_update().get(pk=log.drone_id)
            drone.status = new_status
            drone.save(update_fields=['status', 'updated_at'])
            log.drone = drone

    logger.info(f"Maintenance logged on drone {log.drone_id} by {request.user.email}: {log.condition}")
    create_activity_log(
        request=request,
        action=ActivityLog.ACTION_MAINTENANCE,
        model_name='Drone',
        object_id=log.drone_id,
        details={'condition': log.condition, 'notes': log.notes, 'drone_status': log.drone.status},
    )
    return Response(MaintenanceLogSerializer(log).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def maintenance_log_detail(request, pk):
    """Retrieve a maintenance log"""
    log = get_object_or_404(MaintenanceLog.objects.select_related('drone', 'performed_by'), pk=pk)
    return Response(MaintenanceLogSerializer(log).data)
