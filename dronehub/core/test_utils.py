"""
Test utilities and factories for creating test data
"""
import random
import string
from datetime import timedelta

from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from dronehub.borrowing.models import BorrowRequest, BorrowHistory
from dronehub.core.models import Setting
from dronehub.core.utils import serialize_setting_value
from dronehub.fleet.models import DroneModel, Drone, MaintenanceLog

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_lowercase + string.digits, k=length))

    @staticmethod
    def create_user(email=None, name=None, password='testpass123', role=User.ROLE_USER, is_active=True):
        """Create a test user"""
        if not email:
            email = f'user_{TestDataFactory.random_string(6)}@test.com'
        return User.objects.create_user(
            email=email,
            password=password,
            name=name or email.split('@')[0],
            role=role,
            is_active=is_active,
        )

    @staticmethod
    def create_admin(**kwargs):
        kwargs.setdefault('role', User.ROLE_ADMIN)
        return TestDataFactory.create_user(**kwargs)

    @staticmethod
    def create_superadmin(**kwargs):
        kwargs.setdefault('role', User.ROLE_SUPERADMIN)
        return TestDataFactory.create_user(**kwargs)

    @staticmethod
    def create_drone_model(name=None, manufacturer='DJI', specs=None):
        """Create a test drone model"""
        return DroneModel.objects.create(
            name=name or f'Model_{TestDataFactory.random_string(6)}',
            manufacturer=manufacturer,
            specs=specs if specs is not None else {'flight_time_min': 30},
        )

    @staticmethod
    def create_drone(name=None, model=None, status=Drone.STATUS_AVAILABLE):
        """Create a test drone"""
        if model is None:
            model = TestDataFactory.create_drone_model()
        return Drone.objects.create(
            name=name or f'Drone_{TestDataFactory.random_string(6)}',
            model=model,
            status=status,
        )

    @staticmethod
    def create_borrow_request(user=None, drone=None, status=BorrowRequest.STATUS_PENDING,
                              start_in_days=1, days=3, purpose='Site survey'):
        """Create a borrow request directly, bypassing the lifecycle rules"""
        if user is None:
            user = TestDataFactory.create_user()
        if drone is None:
            drone = TestDataFactory.create_drone()
        start_date = timezone.localdate() + timedelta(days=start_in_days)
        borrow_request = BorrowRequest.objects.create(
            user=user,
            drone=drone,
            purpose=purpose,
            start_date=start_date,
            end_date=start_date + timedelta(days=days),
            status=status,
        )
        BorrowHistory.objects.create(request=borrow_request, action=BorrowHistory.ACTION_REQUESTED,
                                     performed_by=user)
        return borrow_request

    @staticmethod
    def create_maintenance_log(drone=None, condition='Propeller replaced', performed_by=None):
        if drone is None:
            drone = TestDataFactory.create_drone()
        return MaintenanceLog.objects.create(drone=drone, condition=condition, performed_by=performed_by)

    @staticmethod
    def create_setting(key, value, description=''):
        """Store a system setting, converting Python values to their text form"""
        setting, _ = Setting.objects.update_or_create(
            key=key,
            defaults={'value': serialize_setting_value(value), 'description': description},
        )
        return setting


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
