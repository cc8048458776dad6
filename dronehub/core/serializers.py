from rest_framework import serializers
from django.contrib.auth.password_validation import validate_password
from .models import User, Setting, ActivityLog
from .utils import SETTING_DEFAULTS, parse_setting_value


class UserSerializer(serializers.ModelSerializer):
    email = serializers.EmailField(required=False)

    class Meta:
        model = User
        fields = ['id', 'email', 'name', 'phone', 'role', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['role', 'is_active', 'created_at', 'updated_at']

    def validate_email(self, value):
        queryset = User.objects.filter(email__iexact=value)
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError('Email already exists')
        return value.lower()


class UserBriefSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'name', 'email']


class UserCreateSerializer(serializers.ModelSerializer):
    """Self-registration: the role is always 'user'"""
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, validators=[validate_password])
    password_confirm = serializers.CharField(write_only=True)

    class Meta:
        model = User
        fields = ['name', 'email', 'password', 'password_confirm', 'phone']

    def validate_email(self, value):
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError('Email already exists')
        return value.lower()

    def validate(self, attrs):
        if attrs['password'] != attrs['password_confirm']:
            raise serializers.ValidationError({"password": "Passwords don't match"})
        return attrs

    def create(self, validated_data):
        validated_data.pop('password_confirm')
        password = validated_data.pop('password')
        validated_data.setdefault('role', User.ROLE_USER)
        return User.objects.create_user(password=password, is_active=True, **validated_data)


class AdminUserCreateSerializer(UserCreateSerializer):
    """User creation by a superadmin, with any role"""
    role = serializers.ChoiceField(choices=User.ROLE_CHOICES, default=User.ROLE_USER)

    class Meta(UserCreateSerializer.Meta):
        fields = UserCreateSerializer.Meta.fields + ['role']


class RoleUpdateSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=User.ROLE_CHOICES)


class StatusUpdateSerializer(serializers.Serializer):
    is_active = serializers.BooleanField()


class SettingSerializer(serializers.ModelSerializer):
    class Meta:
        model = Setting
        fields = ['id', 'key', 'value', 'description', 'updated_at']

    def validate(self, attrs):
        key = attrs.get('key', getattr(self.instance, 'key', None))
        value = attrs.get('value', getattr(self.instance, 'value', None))
        if key in SETTING_DEFAULTS:
            try:
                parse_setting_value(value, SETTING_DEFAULTS[key][0])
            except ValueError:
                raise serializers.ValidationError({'value': f"Invalid value for setting '{key}'"})
        return attrs


class ActivityLogSerializer(serializers.ModelSerializer):
    user = serializers.SerializerMethodField()

    class Meta:
        model = ActivityLog
        fields = ['id', 'user', 'action', 'model_name', 'object_id', 'details', 'ip_address', 'created_at']

    def get_user(self, obj):
        if obj.user_id is None:
            return None
        return {'id': obj.user_id, 'name': obj.user.name}


class ActivityLogCreateSerializer(serializers.ModelSerializer):
    class Meta:
        model = ActivityLog
        fields = ['action', 'model_name', 'object_id', 'details']
        extra_kwargs = {
            'model_name': {'required': False},
            'object_id': {'required': False},
            'details': {'required': False},
        }
