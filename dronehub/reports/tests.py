"""
Test suite for the reports module
Tests: analytics windows and counts, system statistics, health checks and caching
"""
from datetime import datetime, timedelta

from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from dronehub.borrowing.models import BorrowRequest
from dronehub.core.models import ActivityLog
from dronehub.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from dronehub.core.utils import create_activity_log
from dronehub.fleet.models import Drone
from dronehub.reports.views import analytics_window


class AnalyticsWindowTests(TestCase):
    def setUp(self):
        self.now = timezone.make_aware(datetime(2025, 3, 15, 14, 30))

    def test_today(self):
        start, end = analytics_window('1d', now=self.now)
        self.assertEqual((start.date(), start.hour, start.minute), (self.now.date(), 0, 0))
        self.assertEqual((end.date(), end.hour, end.minute), (self.now.date(), 23, 59))

    def test_thirty_days(self):
        start, _ = analytics_window('30d', now=self.now)
        self.assertEqual(start.date(), (self.now - timedelta(days=30)).date())

    def test_unknown_range_uses_seven_days(self):
        start, _ = analytics_window('5y', now=self.now)
        self.assertEqual(start.date(), (self.now - timedelta(days=7)).date())


class AnalyticsAPITests(TestCase):
    def setUp(self):
        cache.clear()
        self.admin = TestDataFactory.create_admin()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_requires_admin(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/reports/analytics/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_counts(self):
        TestDataFactory.create_drone(status=Drone.STATUS_MAINTENANCE)
        TestDataFactory.create_borrow_request(user=self.user)
        approved = TestDataFactory.create_borrow_request(user=self.user, status=BorrowRequest.STATUS_APPROVED)
        approved.drone.status = Drone.STATUS_BORROWED
        approved.drone.save()

        old = TestDataFactory.create_borrow_request(user=self.user, status=BorrowRequest.STATUS_RETURNED)
        BorrowRequest.objects.filter(pk=old.pk).update(created_at=timezone.now() - timedelta(days=40))

        create_activity_log(action='create', user=self.user)

        response = self.client.get('/api/v1/reports/analytics/', {'range': '30d'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.data
        self.assertEqual(data['range'], '30d')
        self.assertEqual(data['users']['total'], 2)
        self.assertEqual(data['users']['admins'], 1)
        self.assertEqual(data['requests']['total'], 2)
        self.assertEqual(data['requests']['pending'], 1)
        self.assertEqual(data['requests']['approved'], 1)
        self.assertEqual(data['requests']['returned'], 0)
        self.assertEqual(data['drones']['total'], 4)
        self.assertEqual(data['drones']['maintenance'], 1)
        self.assertEqual(data['drones']['borrowed'], 1)
        self.assertEqual(data['activity']['total_logs'], 1)
        self.assertEqual(len(data['activity']['recent_activity']), 1)

        response = self.client.get('/api/v1/reports/analytics/', {'range': '90d'})
        self.assertEqual(response.data['requests']['total'], 3)

    def test_unknown_range_falls_back(self):
        response = self.client.get('/api/v1/reports/analytics/', {'range': 'forever'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['range'], '7d')

    def test_recent_activity_is_capped(self):
        for _ in range(12):
            ActivityLog.objects.create(action='update', user=self.user)
        response = self.client.get('/api/v1/reports/analytics/')
        self.assertEqual(response.data['activity']['total_logs'], 12)
        self.assertEqual(len(response.data['activity']['recent_activity']), 10)

    def test_cache_is_invalidated_on_change(self):
        response = self.client.get('/api/v1/reports/analytics/')
        self.assertEqual(response.data['drones']['total'], 0)
        TestDataFactory.create_drone()
        response = self.client.get('/api/v1/reports/analytics/')
        self.assertEqual(response.data['drones']['total'], 1)


class SystemReportAPITests(TestCase):
    def setUp(self):
        cache.clear()
        self.superadmin = TestDataFactory.create_superadmin()
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.superadmin)

    def test_requires_superadmin(self):
        self.client.authenticate_user(self.admin)
        self.assertEqual(self.client.get('/api/v1/reports/system/').status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(self.client.get('/api/v1/reports/health/').status_code, status.HTTP_403_FORBIDDEN)

    def test_system_stats(self):
        TestDataFactory.create_drone()
        TestDataFactory.create_borrow_request()
        response = self.client.get('/api/v1/reports/system/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_drones'], 2)
        self.assertEqual(response.data['active_drones'], 2)
        self.assertEqual(response.data['total_requests'], 1)
        self.assertEqual(response.data['pending_requests'], 1)
        self.assertEqual(response.data['total_users'], 3)
        self.assertEqual(response.data['admin_users'], 1)
        self.assertIn('recent_logs', response.data)

    def test_health(self):
        response = self.client.get('/api/v1/reports/health/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'healthy')
        self.assertEqual(response.data['database']['status'], 'healthy')
        self.assertGreaterEqual(response.data['database']['response_time_ms'], 0)
        self.assertEqual(response.data['cache']['status'], 'healthy')


class DashboardAPITests(TestCase):
    def test_own_counts(self):
        user = TestDataFactory.create_user()
        TestDataFactory.create_borrow_request(user=user)
        TestDataFactory.create_borrow_request(status=BorrowRequest.STATUS_APPROVED)
        client = AuthenticatedAPIClient()
        client.authenticate_user(user)

        response = client.get('/api/v1/reports/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['requests']['total'], 1)
        self.assertEqual(response.data['requests']['pending'], 1)
        self.assertEqual(response.data['available_drones'], 2)
