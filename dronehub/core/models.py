from django.contrib.auth.models import AbstractUser, UserManager
from django.db import models


class ProfileManager(UserManager):
    """User manager that logs in by email and fills username from it"""

    def create_user(self, email=None, password=None, username=None, **extra_fields):
        email = self.normalize_email(email).lower()
        return super().create_user(username or email, email, password, **extra_fields)

    def create_superuser(self, email=None, password=None, username=None, **extra_fields):
        extra_fields.setdefault('role', User.ROLE_SUPERADMIN)
        email = self.normalize_email(email).lower()
        return super().create_superuser(username or email, email, password, **extra_fields)


class User(AbstractUser):
    """Profile: a user record with an assigned role"""
    ROLE_USER = 'user'
    ROLE_ADMIN = 'admin'
    ROLE_SUPERADMIN = 'superadmin'

    ROLE_CHOICES = [
        (ROLE_USER, 'User'),
        (ROLE_ADMIN, 'Admin'),
        (ROLE_SUPERADMIN, 'Super Admin'),
    ]

    email = models.EmailField(unique=True)
    name = models.CharField(max_length=200)
    phone = models.CharField(max_length=20, blank=True, null=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_USER)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['username', 'name']

    objects = ProfileManager()

    def __str__(self):
        return self.name or self.email

    @property
    def is_admin_role(self):
        return self.role in (self.ROLE_ADMIN, self.ROLE_SUPERADMIN)

    @property
    def is_superadmin_role(self):
        return self.role == self.ROLE_SUPERADMIN

    def save(self, *args, **kwargs):
        if self.email:
            self.email = self.email.lower()
        # Django admin access follows the role
        if not self.username:
            self.username = self.email
        self.is_staff = self.is_admin_role
        self.is_superuser = self.is_superadmin_role
        super().save(*args, **kwargs)

    class Meta:
        db_table = 'profiles'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['role'], name='idx_profiles_role'),
        ]


class Setting(models.Model):
    """System settings"""
    key = models.CharField(max_length=100, unique=True)
    value = models.TextField()
    description = models.TextField(blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.key

    class Meta:
        db_table = 'settings'
        ordering = ['key']


class ActivityLog(models.Model):
    """Audit trail of user actions"""
    ACTION_LOGIN = 'login'
    ACTION_LOGOUT = 'logout'
    ACTION_REGISTER = 'register'
    ACTION_CREATE = 'create'
    ACTION_UPDATE = 'update'
    ACTION_DELETE = 'delete'
    ACTION_APPROVE = 'approve'
    ACTION_REJECT = 'reject'
    ACTION_RETURN = 'return'
    ACTION_CANCEL = 'cancel'
    ACTION_ROLE_CHANGE = 'role_change'
    ACTION_MAINTENANCE = 'maintenance'

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='activity_logs')
    action = models.CharField(max_length=50)
    model_name = models.CharField(max_length=100, blank=True)
    object_id = models.CharField(max_length=100, blank=True)
    details = models.JSONField(default=dict, blank=True, null=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.action} by {self.user or 'system'}"

    class Meta:
        db_table = 'activity_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='idx_activity_created'),
            models.Index(fields=['action'], name='idx_activity_action'),
            models.Index(fields=['model_name'], name='idx_activity_model'),
        ]
