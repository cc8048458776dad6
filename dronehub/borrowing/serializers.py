from django.utils import timezone
from rest_framework import serializers
from dronehub.core.serializers import UserBriefSerializer
from dronehub.core.utils import get_setting
from dronehub.fleet.models import Drone
from dronehub.fleet.serializers import DroneBriefSerializer
from .models import BorrowRequest, BorrowHistory
from .services import RETURN_DRONE_STATUSES

REQUIRED_MESSAGES = {
    'required': 'Please fill in all required fields',
    'null': 'Please fill in all required fields',
    'blank': 'Please fill in all required fields',
}


class BorrowRequestSerializer(serializers.ModelSerializer):
    user = UserBriefSerializer(read_only=True)
    drone = DroneBriefSerializer(read_only=True)

    class Meta:
        model = BorrowRequest
        fields = ['id', 'user', 'drone', 'purpose', 'start_date', 'end_date', 'status', 'created_at', 'updated_at']
        read_only_fields = fields


class BorrowRequestCreateSerializer(serializers.Serializer):
    """Validates a new borrow request the way the request form does"""
    drone = serializers.PrimaryKeyRelatedField(queryset=Drone.objects.all(), error_messages=REQUIRED_MESSAGES)
    purpose = serializers.CharField(error_messages=REQUIRED_MESSAGES)
    start_date = serializers.DateField(error_messages=REQUIRED_MESSAGES)
    end_date = serializers.DateField(error_messages=REQUIRED_MESSAGES)

    def validate(self, attrs):
        start_date = attrs['start_date']
        end_date = attrs['end_date']

        if start_date >= end_date:
            raise serializers.ValidationError({'end_date': 'End date must be after start date'})
        if start_date < timezone.localdate():
            raise serializers.ValidationError({'start_date': 'Start date cannot be in the past'})
        if attrs['drone'].status != Drone.STATUS_AVAILABLE:
            raise serializers.ValidationError({'drone': 'Drone is not available for borrowing'})

        max_days = get_setting('max_borrow_days')
        if max_days and (end_date - start_date).days > max_days:
            raise serializers.ValidationError(
                {'end_date': f'Borrow period cannot exceed {max_days} days'}
            )
        return attrs


class BorrowRequestUpdateSerializer(serializers.Serializer):
    purpose = serializers.CharField(required=False)
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)
    status = serializers.ChoiceField(choices=BorrowRequest.STATUS_CHOICES, required=False)
    remarks = serializers.CharField(required=False, allow_blank=True)


class BorrowActionSerializer(serializers.Serializer):
    remarks = serializers.CharField(required=False, allow_blank=True)


class BorrowReturnSerializer(serializers.Serializer):
    drone_status = serializers.ChoiceField(choices=RETURN_DRONE_STATUSES, default=Drone.STATUS_AVAILABLE)
    condition_report = serializers.CharField(required=False, allow_blank=True)
    remarks = serializers.CharField(required=False, allow_blank=True)


class BorrowHistorySerializer(serializers.ModelSerializer):
    performed_by = serializers.SerializerMethodField()

    class Meta:
        model = BorrowHistory
        fields = ['id', 'action', 'performed_by', 'condition_report', 'remarks', 'created_at']

    def get_performed_by(self, obj):
        if obj.performed_by_id is None:
            return None
        return {'id': obj.performed_by_id, 'name': obj.performed_by.name}
