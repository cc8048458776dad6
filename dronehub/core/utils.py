"""Utility functions for activity logging and system settings"""
import logging

from django.contrib.auth import get_user_model
from django.db import transaction

from .models import ActivityLog, Setting

User = get_user_model()

logger = logging.getLogger(__name__)


# Known system settings: key -> (default, description)
SETTING_DEFAULTS = {
    'auto_approval': (False, 'Approve new borrow requests automatically'),
    'maintenance_mode': (False, 'Refuse new borrow requests while the fleet is under maintenance'),
    'session_timeout': (30, 'Session timeout in minutes'),
    'max_borrow_days': (14, 'Longest allowed borrow period in days'),
    'backup_frequency': ('daily', 'How often backups are taken'),
}

TRUE_VALUES = ('1', 'true', 'yes', 'on')
FALSE_VALUES = ('0', 'false', 'no', 'off', '')


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def create_activity_log(request=None, action=None, model_name='', object_id='',
                        details=None, user=None):
    """
    Create an activity log entry

    Args:
        request: Django request object (for user and IP) - optional if user is provided
        action: Action name (login, create, approve, ...)
        model_name: Name of the model being acted upon
        object_id: ID of the object
        details: Dictionary with extra information about the action
        user: Optional user override (defaults to request.user if request provided)

    Returns the created ActivityLog, or None when logging was skipped or failed.
    """
    if not action:
        logger.warning(f"Activity log skipped: missing action (model_name={model_name}, object_id={object_id})")
        return None

    audit_user = user
    if audit_user is None and request is not None and hasattr(request, 'user'):
        audit_user = request.user
    if audit_user is not None and not getattr(audit_user, 'is_authenticated', False):
        audit_user = None

    try:
        # Savepoint so a failed insert does not break an enclosing transaction
        with transaction.atomic():
            return ActivityLog.objects.create(
                user=audit_user,
                action=action,
                model_name=model_name or '',
                object_id=str(object_id) if object_id not in (None, '') else '',
                details=details or {},
                ip_address=get_client_ip(request) if request else None,
            )
    except Exception as e:
        # Don't fail the main operation if activity logging fails
        logger.error(f"Failed to create activity log: {str(e)}")
        return None


def parse_setting_value(raw, default):
    """Parse a stored setting string to the type of its default"""
    if raw is None:
        return default
    if isinstance(default, bool):
        value = str(raw).strip().lower()
        if value in TRUE_VALUES:
            return True
        if value in FALSE_VALUES:
            return False
        raise ValueError(f"'{raw}' is not a boolean")
    if isinstance(default, int):
        return int(str(raw).strip())
    return str(raw)


def serialize_setting_value(value):
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


def get_setting(key):
    """Return the effective value of a known setting"""
    default = SETTING_DEFAULTS[key][0]
    stored = Setting.objects.filter(key=key).values_list('value', flat=True).first()
    if stored is None:
        return default
    try:
        return parse_setting_value(stored, default)
    except ValueError:
        logger.warning(f"Setting '{key}' has invalid value '{stored}', using default {default!r}")
        return default


def get_effective_settings():
    stored = dict(Setting.objects.filter(key__in=SETTING_DEFAULTS.keys()).values_list('key', 'value'))
    effective = {}
    for key, (default, _description) in SETTING_DEFAULTS.items():
        try:
            effective[key] = parse_setting_value(stored.get(key), default)
        except ValueError:
            effective[key] = default
    return effective
