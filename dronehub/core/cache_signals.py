"""
Cache invalidation signals
Automatically invalidate report caches when fleet, request, user or log data changes
"""
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
from django.contrib.auth import get_user_model
import logging
import threading
from contextlib import contextmanager

from .cache_utils import invalidate_report_cache
from .models import ActivityLog

logger = logging.getLogger(__name__)

User = get_user_model()

# Thread-local storage to track signal suspension
_thread_locals = threading.local()


@contextmanager
def suspend_cache_signals():
    """
    Context manager to temporarily suspend cache invalidation signals.
    Useful for bulk operations to prevent excessive cache clearing.
    Remember to manually invalidate cache after the block!
    Nested blocks restore the state of the enclosing one on exit.
    """
    previous = is_suspended()
    try:
        _thread_locals.suspended = True
        yield
    finally:
        _thread_locals.suspended = previous


def is_suspended():
    return getattr(_thread_locals, 'suspended', False)


def _invalidate(sender_name):
    if is_suspended():
        return
    try:
        invalidate_report_cache()
    except Exception as e:
        logger.warning(f"Cache invalidation after {sender_name} change failed: {str(e)}")


@receiver([post_save, post_delete], sender=User)
def invalidate_on_user_change(sender, **kwargs):
    update_fields = kwargs.get('update_fields')
    # Logins only touch last_login
    if update_fields and set(update_fields) == {'last_login'}:
        return
    _invalidate('User')


@receiver([post_save, post_delete], sender=ActivityLog)
def invalidate_on_activity_log_change(sender, **kwargs):
    _invalidate('ActivityLog')


@receiver([post_save, post_delete], sender='fleet.Drone')
def invalidate_on_drone_change(sender, **kwargs):
    _invalidate('Drone')


@receiver([post_save, post_delete], sender='borrowing.BorrowRequest')
def invalidate_on_borrow_request_change(sender, **kwargs):
    _invalidate('BorrowRequest')
