"""
Test suite for the borrowing module
Tests: request submission rules, lifecycle transitions, drone status side effects and history
"""
from datetime import timedelta
from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from dronehub.borrowing import services
from dronehub.borrowing.models import BorrowRequest, BorrowHistory
from dronehub.borrowing.services import BorrowTransitionError
from dronehub.core.models import ActivityLog
from dronehub.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from dronehub.fleet.models import Drone, MaintenanceLog


def _dates(start_in_days=1, days=3):
    start = timezone.localdate() + timedelta(days=start_in_days)
    return start.isoformat(), (start + timedelta(days=days)).isoformat()


class BorrowRequestCreateAPITests(TestCase):
    """Test submitting borrow requests"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.drone = TestDataFactory.create_drone(name='Mavic-01')

    def _payload(self, **overrides):
        start_date, end_date = _dates()
        data = {
            'drone': self.drone.id,
            'purpose': 'Roof inspection',
            'start_date': start_date,
            'end_date': end_date,
        }
        data.update(overrides)
        return data

    def test_create_pending(self):
        response = self.client.post('/api/v1/borrow-requests/', self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'pending')
        self.assertEqual(response.data['drone']['name'], 'Mavic-01')
        self.assertEqual(response.data['user']['id'], self.user.id)

        borrow_request = BorrowRequest.objects.get()
        self.assertEqual(borrow_request.user, self.user)
        self.drone.refresh_from_db()
        self.assertEqual(self.drone.status, Drone.STATUS_AVAILABLE)
        self.assertEqual(list(borrow_request.history.values_list('action', flat=True)), ['requested'])
        self.assertTrue(ActivityLog.objects.filter(model_name='BorrowRequest', user=self.user).exists())

    def test_missing_fields(self):
        response = self.client.post('/api/v1/borrow-requests/', {'drone': self.drone.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Please fill in all required fields', str(response.data['purpose']))
        self.assertIn('start_date', response.data)
        self.assertIn('end_date', response.data)

    def test_end_before_start(self):
        start_date, _ = _dates()
        response = self.client.post('/api/v1/borrow-requests/',
                                    self._payload(start_date=start_date, end_date=start_date), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('End date must be after start date', str(response.data['end_date']))

    def test_start_in_past(self):
        start_date, end_date = _dates(start_in_days=-2)
        response = self.client.post('/api/v1/borrow-requests/',
                                    self._payload(start_date=start_date, end_date=end_date), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Start date cannot be in the past', str(response.data['start_date']))

    def test_start_today_is_allowed(self):
        start_date, end_date = _dates(start_in_days=0)
        response = self.client.post('/api/v1/borrow-requests/',
                                    self._payload(start_date=start_date, end_date=end_date), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_drone_not_available(self):
        self.drone.status = Drone.STATUS_MAINTENANCE
        self.drone.save()
        response = self.client.post('/api/v1/borrow-requests/', self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Drone is not available for borrowing', str(response.data['drone']))

    def test_period_longer_than_max_borrow_days(self):
        TestDataFactory.create_setting('max_borrow_days', 5)
        start_date, end_date = _dates(days=6)
        response = self.client.post('/api/v1/borrow-requests/',
                                    self._payload(start_date=start_date, end_date=end_date), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('end_date', response.data)

        start_date, end_date = _dates(days=5)
        response = self.client.post('/api/v1/borrow-requests/',
                                    self._payload(start_date=start_date, end_date=end_date), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_maintenance_mode(self):
        TestDataFactory.create_setting('maintenance_mode', True)
        response = self.client.post('/api/v1/borrow-requests/', self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertFalse(BorrowRequest.objects.exists())

    def test_auto_approval(self):
        TestDataFactory.create_setting('auto_approval', True)
        response = self.client.post('/api/v1/borrow-requests/', self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'approved')
        self.drone.refresh_from_db()
        self.assertEqual(self.drone.status, Drone.STATUS_BORROWED)
        actions = list(BorrowHistory.objects.values_list('action', flat=True))
        self.assertEqual(actions, ['requested', 'approved'])

    def test_requires_authentication(self):
        self.client.logout()
        response = self.client.post('/api/v1/borrow-requests/', self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class BorrowRequestListAPITests(TestCase):
    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.other = TestDataFactory.create_user()
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.mine = TestDataFactory.create_borrow_request(user=self.user, purpose='Wedding shoot')
        self.theirs = TestDataFactory.create_borrow_request(user=self.other, purpose='Survey')
        TestDataFactory.create_borrow_request(user=self.user, status=BorrowRequest.STATUS_RETURNED,
                                              purpose='Mapping')

    def test_own_requests_only(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/borrow-requests/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)
        self.assertTrue(all(r['user']['id'] == self.user.id for r in response.data))

    def test_filters(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/borrow-requests/', {'status': 'returned'})
        self.assertEqual([r['purpose'] for r in response.data], ['Mapping'])

        response = self.client.get('/api/v1/borrow-requests/', {'search': 'wedding'})
        self.assertEqual([r['id'] for r in response.data], [self.mine.id])

    def test_all_requires_admin(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/borrow-requests/all/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/borrow-requests/all/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 3)

    def test_stats(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/borrow-requests/stats/')
        self.assertEqual(response.data, {'total': 2, 'pending': 1, 'approved': 0, 'rejected': 0, 'returned': 1})

    def test_detail_permissions(self):
        self.client.authenticate_user(self.user)
        response = self.client.get(f'/api/v1/borrow-requests/{self.theirs.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        response = self.client.get(f'/api/v1/borrow-requests/{self.mine.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.client.authenticate_user(self.admin)
        response = self.client.get(f'/api/v1/borrow-requests/{self.theirs.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_history_permissions(self):
        self.client.authenticate_user(self.user)
        response = self.client.get(f'/api/v1/borrow-requests/{self.theirs.id}/history/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        response = self.client.get(f'/api/v1/borrow-requests/{self.mine.id}/history/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['action'], 'requested')


class BorrowTransitionAPITests(TestCase):
    """Test approve, reject, return and cancel"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        self.drone = TestDataFactory.create_drone()
        self.borrow_request = TestDataFactory.create_borrow_request(user=self.user, drone=self.drone)

    def _url(self, action):
        return f'/api/v1/borrow-requests/{self.borrow_request.id}/{action}/'

    def test_approve(self):
        response = self.client.post(self._url('approve'), {'remarks': 'Fly safe'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'approved')
        self.drone.refresh_from_db()
        self.assertEqual(self.drone.status, Drone.STATUS_BORROWED)
        history = self.borrow_request.history.last()
        self.assertEqual(history.action, BorrowHistory.ACTION_APPROVED)
        self.assertEqual(history.performed_by, self.admin)
        self.assertEqual(history.remarks, 'Fly safe')
        self.assertTrue(ActivityLog.objects.filter(action=ActivityLog.ACTION_APPROVE, user=self.admin).exists())

    def test_approve_requires_admin(self):
        self.client.authenticate_user(self.user)
        response = self.client.post(self._url('approve'), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_approve_twice(self):
        self.client.post(self._url('approve'), format='json')
        response = self.client.post(self._url('approve'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)

    def test_approve_when_drone_unavailable(self):
        self.drone.status = Drone.STATUS_DAMAGED
        self.drone.save()
        response = self.client.post(self._url('approve'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.borrow_request.refresh_from_db()
        self.assertEqual(self.borrow_request.status, BorrowRequest.STATUS_PENDING)

    def test_second_request_for_same_drone_cannot_be_approved(self):
        competing = TestDataFactory.create_borrow_request(drone=self.drone)
        self.client.post(self._url('approve'), format='json')
        response = self.client.post(f'/api/v1/borrow-requests/{competing.id}/approve/', format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_reject(self):
        response = self.client.post(self._url('reject'), {'remarks': 'No pilot licence'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'rejected')
        self.drone.refresh_from_db()
        self.assertEqual(self.drone.status, Drone.STATUS_AVAILABLE)

        response = self.client.post(self._url('approve'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_return_with_drone_status(self):
        self.client.post(self._url('approve'), format='json')
        data = {'drone_status': 'damaged', 'condition_report': 'Cracked arm', 'remarks': 'Hard landing'}
        response = self.client.post(self._url('return'), data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'returned')
        self.drone.refresh_from_db()
        self.assertEqual(self.drone.status, Drone.STATUS_DAMAGED)
        history = self.borrow_request.history.last()
        self.assertEqual(history.action, BorrowHistory.ACTION_RETURNED)
        self.assertEqual(history.condition_report, 'Cracked arm')

    def test_return_defaults_to_available(self):
        self.client.post(self._url('approve'), format='json')
        response = self.client.post(self._url('return'), format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.drone.refresh_from_db()
        self.assertEqual(self.drone.status, Drone.STATUS_AVAILABLE)

    def test_return_invalid_drone_status(self):
        self.client.post(self._url('approve'), format='json')
        response = self.client.post(self._url('return'), {'drone_status': 'borrowed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_return_pending_request(self):
        response = self.client.post(self._url('return'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cancel_by_owner(self):
        self.client.authenticate_user(self.user)
        response = self.client.post(self._url('cancel'), format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'rejected')
        self.assertEqual(self.borrow_request.history.last().remarks, 'cancelled by requester')
        self.assertTrue(ActivityLog.objects.filter(action=ActivityLog.ACTION_CANCEL).exists())

    def test_cancel_by_someone_else(self):
        response = self.client.post(self._url('cancel'), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_cancel_approved_request(self):
        self.client.post(self._url('approve'), format='json')
        self.client.authenticate_user(self.user)
        response = self.client.post(self._url('cancel'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_history_lists_every_step(self):
        self.client.post(self._url('approve'), format='json')
        self.client.post(self._url('return'), format='json')
        response = self.client.get(self._url('history'))
        self.assertEqual([h['action'] for h in response.data], ['requested', 'approved', 'returned'])

    def test_missing_request(self):
        response = self.client.post('/api/v1/borrow-requests/9999/approve/', format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class BorrowRequestUpdateAPITests(TestCase):
    """Test the admin edit endpoint"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        self.drone = TestDataFactory.create_drone()
        self.borrow_request = TestDataFactory.create_borrow_request(drone=self.drone)
        self.url = f'/api/v1/borrow-requests/{self.borrow_request.id}/'

    def test_update_fields(self):
        response = self.client.patch(self.url, {'purpose': 'Updated purpose'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['purpose'], 'Updated purpose')
        self.assertEqual(self.borrow_request.history.last().action, BorrowHistory.ACTION_UPDATED)

    def test_update_status_goes_through_transition(self):
        response = self.client.patch(self.url, {'status': 'approved'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.drone.refresh_from_db()
        self.assertEqual(self.drone.status, Drone.STATUS_BORROWED)

    def test_update_invalid_transition(self):
        response = self.client.patch(self.url, {'status': 'returned'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_bad_dates_rolls_back(self):
        end_date = self.borrow_request.start_date.isoformat()
        response = self.client.patch(self.url, {'end_date': end_date, 'purpose': 'Changed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.borrow_request.refresh_from_db()
        self.assertNotEqual(self.borrow_request.purpose, 'Changed')

    def test_update_requires_admin(self):
        self.client.authenticate_user(self.borrow_request.user)
        response = self.client.patch(self.url, {'purpose': 'Mine now'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class BorrowServiceTests(TestCase):
    """Test lifecycle functions directly"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.admin = TestDataFactory.create_admin()
        self.drone = TestDataFactory.create_drone()

    def test_create_refuses_unavailable_drone(self):
        self.drone.status = Drone.STATUS_BORROWED
        self.drone.save()
        start = timezone.localdate()
        with self.assertRaises(BorrowTransitionError):
            services.create_request(self.user, self.drone, 'Survey', start, start + timedelta(days=1))
        self.assertFalse(BorrowRequest.objects.exists())

    def test_reject_after_return_is_refused(self):
        borrow_request = TestDataFactory.create_borrow_request(drone=self.drone)
        services.approve_request(borrow_request.id, self.admin)
        services.return_request(borrow_request.id, self.admin)
        with self.assertRaises(BorrowTransitionError):
            services.reject_request(borrow_request.id, self.admin)

    def test_request_survives_drone_deletion(self):
        borrow_request = TestDataFactory.create_borrow_request(drone=self.drone)
        self.drone.delete()
        borrow_request.refresh_from_db()
        self.assertIsNone(borrow_request.drone)
        with self.assertRaises(BorrowTransitionError):
            services.approve_request(borrow_request.id, self.admin)


class ClearBorrowDataCommandTests(TestCase):
    def test_clear(self):
        drone = TestDataFactory.create_drone(status=Drone.STATUS_BORROWED)
        TestDataFactory.create_borrow_request(drone=drone, status=BorrowRequest.STATUS_APPROVED)
        TestDataFactory.create_maintenance_log(drone=drone)
        ActivityLog.objects.create(action='create')

        call_command('clear_borrow_data', '--confirm', stdout=StringIO())

        self.assertFalse(BorrowRequest.objects.exists())
        self.assertFalse(BorrowHistory.objects.exists())
        self.assertFalse(MaintenanceLog.objects.exists())
        self.assertFalse(ActivityLog.objects.exists())
        drone.refresh_from_db()
        self.assertEqual(drone.status, Drone.STATUS_AVAILABLE)
