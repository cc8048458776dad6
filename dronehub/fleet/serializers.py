from rest_framework import serializers
from .models import DroneModel, Drone, MaintenanceLog


class DroneModelSerializer(serializers.ModelSerializer):
    drone_count = serializers.IntegerField(source='drones.count', read_only=True)

    class Meta:
        model = DroneModel
        fields = ['id', 'name', 'manufacturer', 'specs', 'drone_count', 'created_at']
        read_only_fields = ['created_at']

    def validate_specs(self, value):
        if value is not None and not isinstance(value, dict):
            raise serializers.ValidationError('Specs must be an object')
        return value


class DroneModelBriefSerializer(serializers.ModelSerializer):
    class Meta:
        model = DroneModel
        fields = ['id', 'name', 'manufacturer', 'specs']


class DroneSerializer(serializers.ModelSerializer):
    model = DroneModelBriefSerializer(read_only=True)
    model_id = serializers.PrimaryKeyRelatedField(
        queryset=DroneModel.objects.all(), source='model', write_only=True, required=False, allow_null=True
    )

    class Meta:
        model = Drone
        fields = ['id', 'name', 'model', 'model_id', 'image_url', 'status', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']


class DroneBriefSerializer(serializers.ModelSerializer):
    """Drone with its model name, as embedded in borrow requests"""
    model = serializers.SerializerMethodField()

    class Meta:
        model = Drone
        fields = ['id', 'name', 'model']

    def get_model(self, obj):
        if obj.model_id is None:
            return None
        return {'name': obj.model.name, 'manufacturer': obj.model.manufacturer}


class DroneStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Drone.STATUS_CHOICES)


class MaintenanceLogSerializer(serializers.ModelSerializer):
    """Accepts the drone as a primary key, returns it as {id, name}"""
    performed_by = serializers.SerializerMethodField()
    drone_status = serializers.ChoiceField(choices=Drone.STATUS_CHOICES, write_only=True, required=False)

    class Meta:
        model = MaintenanceLog
        fields = ['id', 'drone', 'condition', 'notes', 'performed_by', 'drone_status', 'created_at']
        read_only_fields = ['created_at']

    def to_representation(self, instance):
        data = super().to_representation(instance)
        data['drone'] = {'id': instance.drone_id, 'name': instance.drone.name} if instance.drone_id else None
        return data

    def get_performed_by(self, obj):
        if obj.performed_by_id is None:
            return None
        return {'id': obj.performed_by_id, 'name': obj.performed_by.name}
