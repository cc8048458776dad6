"""
Borrow request lifecycle

pending -> approved | rejected, approved -> returned. Every transition locks
the request and its drone, records a BorrowHistory row and an activity log,
and commits as one transaction.
"""
import logging

from django.db import transaction

from dronehub.core.models import ActivityLog
from dronehub.core.utils import create_activity_log, get_setting
from dronehub.fleet.models import Drone
from .models import BorrowRequest, BorrowHistory

logger = logging.getLogger('dronehub.borrowing')

CANCEL_REMARK = 'cancelled by requester'
RETURN_DRONE_STATUSES = (Drone.STATUS_AVAILABLE, Drone.STATUS_DAMAGED, Drone.STATUS_MAINTENANCE)


class BorrowTransitionError(Exception):
    """Raised when a borrow request cannot make the requested move"""


def _lock_request(pk):
    try:
        return BorrowRequest.objects.select_for_update().get(pk=pk)
    except BorrowRequest.DoesNotExist:
        raise BorrowTransitionError('Borrow request not found')


def _lock_drone(drone_id):
    if drone_id is None:
        return None
    return Drone.objects.select_for_update().filter(pk=drone_id).first()


def _require_status(borrow_request, expected, verb):
    if borrow_request.status != expected:
        raise BorrowTransitionError(
            f"Only {expected} requests can be {verb} (request is {borrow_request.status})"
        )


def _record(borrow_request, history_action, activity_action, actor, request=None,
            condition_report=None, remarks=None, details=None):
    BorrowHistory.objects.create(
        request=borrow_request,
        action=history_action,
        performed_by=actor,
        condition_report=condition_report or None,
        remarks=remarks or None,
    )
    log_details = {
        'status': borrow_request.status,
        'drone': borrow_request.drone_id,
    }
    if remarks:
        log_details['remarks'] = remarks
    if details:
        log_details.update(details)
    create_activity_log(
        request=request,
        action=activity_action,
        model_name='BorrowRequest',
        object_id=borrow_request.id,
        details=log_details,
        user=actor,
    )


def _set_drone_status(drone, new_status):
    if drone is not None and drone.status != new_status:
        drone.status = new_status
        drone.save(update_fields=['status', 'updated_at'])


def create_request(user, drone, purpose, start_date, end_date, request=None):
    """
    Create a borrow request for ``drone``.

    The request starts pending, or approved when the auto_approval setting is
    on, in which case the drone is marked borrowed straight away.
    """
    auto_approve = get_setting('auto_approval')

    with transaction.atomic():
        locked = _lock_drone(drone.pk)
        if locked is None or locked.status != Drone.STATUS_AVAILABLE:
            raise BorrowTransitionError('Drone is not available for borrowing')

        borrow_request = BorrowRequest.objects.create(
            user=user,
            drone=locked,
            purpose=purpose,
            start_date=start_date,
            end_date=end_date,
            status=BorrowRequest.STATUS_APPROVED if auto_approve else BorrowRequest.STATUS_PENDING,
        )
        _record(borrow_request, BorrowHistory.ACTION_REQUESTED, ActivityLog.ACTION_CREATE, user, request,
                details={'start_date': str(start_date), 'end_date': str(end_date)})

        if auto_approve:
            _set_drone_status(locked, Drone.STATUS_BORROWED)
            _record(borrow_request, BorrowHistory.ACTION_APPROVED, ActivityLog.ACTION_APPROVE, user, request,
                    remarks='auto-approved')

    logger.info(f"Borrow request {borrow_request.id} for drone {locked.id} created by {user.email} "
                f"({borrow_request.status})")
    return borrow_request


def approve_request(pk, actor, remarks=None, request=None):
    """Approve a pending request; the drone must still be available"""
    with transaction.atomic():
        borrow_request = _lock_request(pk)
        _require_status(borrow_request, BorrowRequest.STATUS_PENDING, 'approved')

        drone = _lock_drone(borrow_request.drone_id)
        if drone is None or drone.status != Drone.STATUS_AVAILABLE:
            raise BorrowTransitionError('Drone is not available for borrowing')

        borrow_request.status = BorrowRequest.STATUS_APPROVED
        borrow_request.save(update_fields=['status', 'updated_at'])
        _set_drone_status(drone, Drone.STATUS_BORROWED)
        _record(borrow_request, BorrowHistory.ACTION_APPROVED, ActivityLog.ACTION_APPROVE, actor, request,
                remarks=remarks)

    logger.info(f"Borrow request {pk} approved by {actor.email}")
    return borrow_request


def reject_request(pk, actor, remarks=None, request=None):
    """Reject a pending request"""
    with transaction.atomic():
        borrow_request = _lock_request(pk)
        _require_status(borrow_request, BorrowRequest.STATUS_PENDING, 'rejected')

        borrow_request.status = BorrowRequest.STATUS_REJECTED
        borrow_request.save(update_fields=['status', 'updated_at'])
        _record(borrow_request, BorrowHistory.ACTION_REJECTED, ActivityLog.ACTION_REJECT, actor, request,
                remarks=remarks)

    logger.info(f"Borrow request {pk} rejected by {actor.email}")
    return borrow_request


def return_request(pk, actor, drone_status=Drone.STATUS_AVAILABLE, condition_report=None, remarks=None,
                   request=None):
    """Mark an approved request as returned and set the drone's condition"""
    if drone_status not in RETURN_DRONE_STATUSES:
        raise BorrowTransitionError(f"Invalid drone status '{drone_status}' for a return")

    with transaction.atomic():
        borrow_request = _lock_request(pk)
        _require_status(borrow_request, BorrowRequest.STATUS_APPROVED, 'returned')

        drone = _lock_drone(borrow_request.drone_id)
        borrow_request.status = BorrowRequest.STATUS_RETURNED
        borrow_request.save(update_fields=['status', 'updated_at'])
        _set_drone_status(drone, drone_status)
        _record(borrow_request, BorrowHistory.ACTION_RETURNED, ActivityLog.ACTION_RETURN, actor, request,
                condition_report=condition_report, remarks=remarks,
                details={'drone_status': drone_status})

    logger.info(f"Borrow request {pk} returned by {actor.email}, drone set to {drone_status}")
    return borrow_request


def cancel_request(pk, actor, request=None):
    """Let the requester withdraw a pending request"""
    with transaction.atomic():
        borrow_request = _lock_request(pk)
        if borrow_request.user_id != actor.id:
            raise BorrowTransitionError('Only the requester can cancel this request')
        _require_status(borrow_request, BorrowRequest.STATUS_PENDING, 'cancelled')

        borrow_request.status = BorrowRequest.STATUS_REJECTED
        borrow_request.save(update_fields=['status', 'updated_at'])
        _record(borrow_request, BorrowHistory.ACTION_REJECTED, ActivityLog.ACTION_CANCEL, actor, request,
                remarks=CANCEL_REMARK)

    logger.info(f"Borrow request {pk} cancelled by {actor.email}")
    return borrow_request


def update_request(pk, actor, changes, request=None):
    """
    Apply an admin edit.

    Plain field changes (purpose and dates) are saved and recorded as an
    'updated' history row. A status change is routed through the matching
    transition so the drone stays in step with the request.
    """
    new_status = changes.pop('status', None)
    remarks = changes.pop('remarks', None)

    with transaction.atomic():
        borrow_request = _lock_request(pk)
        changed = [field for field, value in changes.items() if getattr(borrow_request, field) != value]
        if changed:
            for field in changed:
                setattr(borrow_request, field, changes[field])
            if borrow_request.start_date >= borrow_request.end_date:
                raise BorrowTransitionError('End date must be after start date')
            borrow_request.save(update_fields=changed + ['updated_at'])
            _record(borrow_request, BorrowHistory.ACTION_UPDATED, ActivityLog.ACTION_UPDATE, actor, request,
                    remarks=remarks, details={'fields': sorted(changed)})

        if new_status and new_status != borrow_request.status:
            if new_status == BorrowRequest.STATUS_APPROVED:
                borrow_request = approve_request(pk, actor, remarks=remarks, request=request)
            elif new_status == BorrowRequest.STATUS_REJECTED:
                borrow_request = reject_request(pk, actor, remarks=remarks, request=request)
            elif new_status == BorrowRequest.STATUS_RETURNED:
                borrow_request = return_request(pk, actor, remarks=remarks, request=request)
            else:
                raise BorrowTransitionError(
                    f"Cannot move a {borrow_request.status} request to {new_status}"
                )

    return borrow_request
