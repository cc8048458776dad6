from django.conf import settings
from django.db import models
from dronehub.fleet.models import Drone


class BorrowRequest(models.Model):
    """A user's request to borrow a drone for a date range"""
    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'
    STATUS_RETURNED = 'returned'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_REJECTED, 'Rejected'),
        (STATUS_RETURNED, 'Returned'),
    ]

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='borrow_requests')
    drone = models.ForeignKey(Drone, on_delete=models.SET_NULL, null=True, blank=True, related_name='borrow_requests')
    purpose = models.TextField()
    start_date = models.DateField()
    end_date = models.DateField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Request #{self.pk} - {self.drone or 'no drone'} ({self.status})"

    @property
    def duration_days(self):
        return (self.end_date - self.start_date).days

    class Meta:
        db_table = 'borrow_requests'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='idx_borrow_status'),
            models.Index(fields=['user', 'status'], name='idx_borrow_user_status'),
        ]


class BorrowHistory(models.Model):
    """One lifecycle event of a borrow request"""
    ACTION_REQUESTED = 'requested'
    ACTION_APPROVED = 'approved'
    ACTION_REJECTED = 'rejected'
    ACTION_RETURNED = 'returned'
    ACTION_UPDATED = 'updated'

    ACTION_CHOICES = [
        (ACTION_REQUESTED, 'Requested'),
        (ACTION_APPROVED, 'Approved'),
        (ACTION_REJECTED, 'Rejected'),
        (ACTION_RETURNED, 'Returned'),
        (ACTION_UPDATED, 'Updated'),
    ]

    request = models.ForeignKey(BorrowRequest, on_delete=models.CASCADE, related_name='history')
    action = models.CharField(max_length=20, choices=ACTION_CHOICES)
    performed_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                     related_name='borrow_actions')
    condition_report = models.TextField(blank=True, null=True)
    remarks = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"Request #{self.request_id} {self.action}"

    class Meta:
        db_table = 'borrow_history'
        ordering = ['created_at', 'id']
        verbose_name_plural = 'borrow history'
