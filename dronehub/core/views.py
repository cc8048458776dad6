import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError
from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist
from django.db import transaction
from django.shortcuts import get_object_or_404
from .access import (
    IsAdminRole, IsSuperAdminRole, home_for_role, has_role, parse_roles, resolve_access,
    ADMIN_ROLES, SUPERADMIN_ROLES, LOGIN_PATH,
)
from .filters import UserFilter, ActivityLogFilter
from .models import Setting, ActivityLog
from .serializers import (
    UserSerializer, UserCreateSerializer, AdminUserCreateSerializer,
    RoleUpdateSerializer, StatusUpdateSerializer,
    SettingSerializer, ActivityLogSerializer, ActivityLogCreateSerializer,
)
from .utils import (
    create_activity_log, get_effective_settings, serialize_setting_value,
    parse_setting_value, SETTING_DEFAULTS,
)

User = get_user_model()

logger = logging.getLogger('dronehub.core')

ACTIVITY_LOG_DEFAULT_LIMIT = 100
ACTIVITY_LOG_MAX_LIMIT = 500


def profile_payload(user):
    """Serialized profile with the role's home path and access flags"""
    data = UserSerializer(user).data
    data['home'] = home_for_role(user.role)
    data['can_access_admin'] = has_role(user, ADMIN_ROLES)
    data['can_access_superadmin'] = has_role(user, SUPERADMIN_ROLES)
    return data


class EmailTokenObtainPairSerializer(TokenObtainPairSerializer):
    default_error_messages = {
        'no_active_account': 'Invalid email or password',
    }

    def validate(self, attrs):
        attrs[self.username_field] = (attrs.get(self.username_field) or '').strip().lower()
        data = super().validate(attrs)
        data['user'] = profile_payload(self.user)
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['email'] = user.email
        token['name'] = user.name
        token['role'] = user.role
        return token


class EmailTokenObtainPairView(TokenObtainPairView):
    """Login with email and password"""
    serializer_class = EmailTokenObtainPairSerializer

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        try:
            serializer.is_valid(raise_exception=True)
        except TokenError as e:
            raise InvalidToken(e.args[0])

        user = serializer.user
        logger.info(f"User {user.email} logged in")
        create_activity_log(
            request=request,
            action=ActivityLog.ACTION_LOGIN,
            model_name='User',
            object_id=user.id,
            user=user,
        )
        return Response(serializer.validated_data, status=status.HTTP_200_OK)


class ProfileTokenRefreshSerializer(TokenRefreshSerializer):
    """Token refresh serializer that handles deleted users gracefully"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except (ObjectDoesNotExist, User.DoesNotExist):
            raise InvalidToken('Token is invalid. User no longer exists.')


class ProfileTokenRefreshView(TokenRefreshView):
    serializer_class = ProfileTokenRefreshSerializer


@api_view(['POST'])
@permission_classes([AllowAny])
def register(request):
    """User registration endpoint"""
    serializer = UserCreateSerializer(data=request.data)
    if serializer.is_valid():
        user = serializer.save()
        logger.info(f"New user registered: {user.email}")
        create_activity_log(
            request=request,
            action=ActivityLog.ACTION_REGISTER,
            model_name='User',
            object_id=user.id,
            user=user,
        )
        token = EmailTokenObtainPairSerializer.get_token(user)
        return Response({
            'user': profile_payload(user),
            'access': str(token.access_token),
            'refresh': str(token),
        }, status=status.HTTP_201_CREATED)
    logger.warning(f"Registration failed: {serializer.errors}")
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def logout(request):
    """Record a logout; the client discards its tokens"""
    create_activity_log(
        request=request,
        action=ActivityLog.ACTION_LOGOUT,
        model_name='User',
        object_id=request.user.id,
    )
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Get or update the current user's profile"""
    if request.method == 'GET':
        return Response(profile_payload(request.user))

    serializer = UserSerializer(request.user, data=request.data, partial=True)
    if serializer.is_valid():
        user = serializer.save()
        create_activity_log(
            request=request,
            action=ActivityLog.ACTION_UPDATE,
            model_name='User',
            object_id=user.id,
            details={'fields': sorted(serializer.validated_data.keys())},
        )
        return Response(profile_payload(user))
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([AllowAny])
def access_check(request):
    """
    Answer the route guard question for the current user.

    Query params:
        roles: comma separated roles allowed on the route (empty = any signed-in user)
        redirect_to: where anonymous users are sent (default /auth)
    """
    required_roles = parse_roles(request.query_params.get('roles'))
    redirect_to = request.query_params.get('redirect_to') or LOGIN_PATH
    allowed, redirect = resolve_access(request.user, required_roles, redirect_to=redirect_to)
    return Response({'allowed': allowed, 'redirect': redirect})


# User views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_list_create(request):
    """List users (admin) or create a user with any role (superadmin)"""
    if request.method == 'GET':
        filterset = UserFilter(request.query_params, queryset=User.objects.all())
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer = UserSerializer(filterset.qs, many=True)
        return Response(serializer.data)

    if not has_role(request.user, SUPERADMIN_ROLES):
        logger.warning(f"User {request.user.email} attempted to create a user without superadmin privileges")
        return Response({'error': 'Only super administrators can create users'}, status=status.HTTP_403_FORBIDDEN)

    serializer = AdminUserCreateSerializer(data=request.data)
    if serializer.is_valid():
        user = serializer.save()
        logger.info(f"User {user.email} ({user.role}) created by {request.user.email}")
        create_activity_log(
            request=request,
            action=ActivityLog.ACTION_CREATE,
            model_name='User',
            object_id=user.id,
            details={'email': user.email, 'role': user.role},
        )
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_stats(request):
    """Counts shown on the user management screens"""
    users = User.objects.all()
    return Response({
        'total': users.count(),
        'active': users.filter(is_active=True).count(),
        'suspended': users.filter(is_active=False).count(),
        'users': users.filter(role=User.ROLE_USER).count(),
        'admins': users.filter(role=User.ROLE_ADMIN).count(),
        'superadmins': users.filter(role=User.ROLE_SUPERADMIN).count(),
    })


def _can_manage(actor, target):
    """Admins manage users and admins; only superadmins manage superadmins"""
    if target.is_superadmin_role:
        return actor.is_superadmin_role
    return True


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_detail(request, pk):
    """Retrieve, update or delete a user"""
    user = get_object_or_404(User, pk=pk)

    if request.method == 'GET':
        return Response(UserSerializer(user).data)

    if not _can_manage(request.user, user):
        logger.warning(f"User {request.user.email} attempted to modify superadmin {user.email}")
        return Response({'error': 'Only super administrators can modify super administrators'},
                        status=status.HTTP_403_FORBIDDEN)

    if request.method in ('PUT', 'PATCH'):
        serializer = UserSerializer(user, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_activity_log(
                request=request,
                action=ActivityLog.ACTION_UPDATE,
                model_name='User',
                object_id=user.id,
                details={'fields': sorted(serializer.validated_data.keys())},
            )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    # DELETE
    if user.pk == request.user.pk:
        return Response({'error': 'You cannot delete your own account'}, status=status.HTTP_400_BAD_REQUEST)

    email = user.email
    user.delete()
    logger.info(f"User {email} deleted by {request.user.email}")
    create_activity_log(
        request=request,
        action=ActivityLog.ACTION_DELETE,
        model_name='User',
        object_id=pk,
        details={'email': email},
    )
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsSuperAdminRole])
def user_role(request, pk):
    """Change a user's role"""
    user = get_object_or_404(User, pk=pk)
    if user.pk == request.user.pk:
        return Response({'error': 'You cannot change your own role'}, status=status.HTTP_400_BAD_REQUEST)

    serializer = RoleUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    old_role = user.role
    user.role = serializer.validated_data['role']
    user.save()
    logger.info(f"Role of {user.email} changed from {old_role} to {user.role} by {request.user.email}")
    create_activity_log(
        request=request,
        action=ActivityLog.ACTION_ROLE_CHANGE,
        model_name='User',
        object_id=user.id,
        details={'from': old_role, 'to': user.role},
    )
    return Response(UserSerializer(user).data)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsSuperAdminRole])
def user_status(request, pk):
    """Activate or suspend a user"""
    user = get_object_or_404(User, pk=pk)
    if user.pk == request.user.pk:
        return Response({'error': 'You cannot change your own status'}, status=status.HTTP_400_BAD_REQUEST)

    serializer = StatusUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    user.is_active = serializer.validated_data['is_active']
    user.save()
    logger.info(f"User {user.email} {'activated' if user.is_active else 'suspended'} by {request.user.email}")
    create_activity_log(
        request=request,
        action=ActivityLog.ACTION_UPDATE,
        model_name='User',
        object_id=user.id,
        details={'is_active': user.is_active},
    )
    return Response(UserSerializer(user).data)


# Setting views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def setting_list_create(request):
    """List all settings or create a new setting"""
    if request.method == 'GET':
        serializer = SettingSerializer(Setting.objects.all(), many=True)
        return Response(serializer.data)

    serializer = SettingSerializer(data=request.data)
    if serializer.is_valid():
        setting = serializer.save()
        create_activity_log(
            request=request,
            action=ActivityLog.ACTION_CREATE,
            model_name='Setting',
            object_id=setting.id,
            details={'key': setting.key, 'value': setting.value},
        )
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def setting_effective(request):
    """Every known setting with its effective value"""
    return Response(get_effective_settings())


@api_view(['PUT'])
@permission_classes([IsAuthenticated, IsAdminRole])
def setting_bulk_update(request):
    """Upsert several known settings at once"""
    data = request.data
    if not isinstance(data, dict) or not data:
        return Response({'error': 'Expected an object of setting values'}, status=status.HTTP_400_BAD_REQUEST)

    unknown = sorted(k for k in data if k not in SETTING_DEFAULTS)
    if unknown:
        return Response({'error': f"Unknown settings: {', '.join(unknown)}"}, status=status.HTTP_400_BAD_REQUEST)

    errors = {}
    parsed = {}
    for key, value in data.items():
        default = SETTING_DEFAULTS[key][0]
        try:
            parsed[key] = parse_setting_value(value if isinstance(value, str) else serialize_setting_value(value), default)
        except ValueError:
            errors[key] = [f"Invalid value for setting '{key}'"]
    if errors:
        return Response(errors, status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        for key, value in parsed.items():
            Setting.objects.update_or_create(
                key=key,
                defaults={
                    'value': serialize_setting_value(value),
                    'description': SETTING_DEFAULTS[key][1],
                },
            )

    logger.info(f"Settings {sorted(parsed)} updated by {request.user.email}")
    create_activity_log(
        request=request,
        action=ActivityLog.ACTION_UPDATE,
        model_name='Setting',
        details={key: serialize_setting_value(value) for key, value in parsed.items()},
    )
    return Response(get_effective_settings())


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def setting_detail(request, pk):
    """Retrieve, update or delete a setting"""
    setting = get_object_or_404(Setting, pk=pk)

    if request.method == 'GET':
        return Response(SettingSerializer(setting).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = SettingSerializer(setting, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_activity_log(
                request=request,
                action=ActivityLog.ACTION_UPDATE,
                model_name='Setting',
                object_id=setting.id,
                details={'key': setting.key, 'value': setting.value},
            )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        key = setting.key
        setting.delete()
        create_activity_log(
            request=request,
            action=ActivityLog.ACTION_DELETE,
            model_name='Setting',
            object_id=pk,
            details={'key': key},
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


# ActivityLog views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def activity_log_list_create(request):
    """List activity logs with filtering, or record an action for the caller"""
    if request.method == 'POST':
        serializer = ActivityLogCreateSerializer(data=request.data)
        if serializer.is_valid():
            log = create_activity_log(request=request, **serializer.validated_data)
            if log is None:
                return Response({'error': 'Could not record activity'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
            return Response(ActivityLogSerializer(log).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    queryset = ActivityLog.objects.select_related('user')

    # Non-admins only see their own activity
    if not has_role(request.user, ADMIN_ROLES):
        queryset = queryset.filter(user=request.user)

    filterset = ActivityLogFilter(request.query_params, queryset=queryset)
    if not filterset.is_valid():
        return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        limit = int(request.query_params.get('limit', ACTIVITY_LOG_DEFAULT_LIMIT))
    except (TypeError, ValueError):
        return Response({'limit': ['A valid integer is required.']}, status=status.HTTP_400_BAD_REQUEST)
    limit = max(1, min(limit, ACTIVITY_LOG_MAX_LIMIT))

    logs = filterset.qs.order_by('-created_at', '-id')[:limit]
    serializer = ActivityLogSerializer(logs, many=True)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def activity_log_detail(request, pk):
    """Retrieve an activity log"""
    log = get_object_or_404(ActivityLog, pk=pk)

    if not has_role(request.user, ADMIN_ROLES) and log.user_id != request.user.id:
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    return Response(ActivityLogSerializer(log).data)
