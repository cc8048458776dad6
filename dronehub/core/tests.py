"""
Test suite for the core module
Tests: role guard, registration and login, user management, system settings and activity logs
"""
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase
from rest_framework import status
from dronehub.core.cache_signals import suspend_cache_signals, is_suspended
from dronehub.core.access import resolve_access, home_for_role, parse_roles, ADMIN_ROLES, SUPERADMIN_ROLES
from dronehub.core.models import ActivityLog, Setting
from dronehub.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from dronehub.core.utils import (
    create_activity_log, get_setting, get_effective_settings, parse_setting_value,
)

User = get_user_model()


class RoleGuardTests(TestCase):
    """Test resolve_access and the role home paths"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.admin = TestDataFactory.create_admin()
        self.superadmin = TestDataFactory.create_superadmin()

    def test_home_paths(self):
        self.assertEqual(home_for_role('user'), '/user-dashboard')
        self.assertEqual(home_for_role('admin'), '/admin-dashboard')
        self.assertEqual(home_for_role('superadmin'), '/superadmin-dashboard')
        self.assertEqual(home_for_role('pilot'), '/dashboard')

    def test_anonymous_is_sent_to_redirect(self):
        self.assertEqual(resolve_access(None, ADMIN_ROLES), (False, '/auth'))
        self.assertEqual(resolve_access(None, ADMIN_ROLES, redirect_to='/login'), (False, '/login'))

    def test_no_required_roles_allows_any_signed_in_user(self):
        self.assertEqual(resolve_access(self.user, None), (True, None))
        self.assertEqual(resolve_access(self.user, []), (True, None))

    def test_role_outside_set_goes_home(self):
        self.assertEqual(resolve_access(self.user, ADMIN_ROLES), (False, '/user-dashboard'))
        self.assertEqual(resolve_access(self.admin, SUPERADMIN_ROLES), (False, '/admin-dashboard'))

    def test_role_inside_set_is_allowed(self):
        self.assertEqual(resolve_access(self.admin, ADMIN_ROLES), (True, None))
        self.assertEqual(resolve_access(self.superadmin, SUPERADMIN_ROLES), (True, None))

    def test_suspended_user_is_denied(self):
        self.user.is_active = False
        self.user.save()
        self.assertEqual(resolve_access(self.user, None), (False, '/auth'))

    def test_parse_roles(self):
        self.assertEqual(parse_roles('admin, superadmin,,'), ['admin', 'superadmin'])
        self.assertEqual(parse_roles(''), [])

    def test_staff_flags_follow_role(self):
        self.assertFalse(self.user.is_staff)
        self.assertTrue(self.admin.is_staff)
        self.assertFalse(self.admin.is_superuser)
        self.assertTrue(self.superadmin.is_superuser)


class AccessCheckAPITests(TestCase):
    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_anonymous(self):
        response = self.client.get('/api/v1/auth/access/', {'roles': 'admin', 'redirect_to': '/auth'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'allowed': False, 'redirect': '/auth'})

    def test_user_on_admin_route(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get('/api/v1/auth/access/', {'roles': 'admin,superadmin'})
        self.assertEqual(response.data, {'allowed': False, 'redirect': '/user-dashboard'})

    def test_admin_on_admin_route(self):
        self.client.authenticate_user(TestDataFactory.create_admin())
        response = self.client.get('/api/v1/auth/access/', {'roles': 'admin,superadmin'})
        self.assertEqual(response.data, {'allowed': True, 'redirect': None})


class AuthAPITests(TestCase):
    """Test registration, login, refresh and profile endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_register(self):
        data = {
            'name': 'Jordan Pilot',
            'email': 'jordan@test.com',
            'password': 'Hangar-Bay-42',
            'password_confirm': 'Hangar-Bay-42',
        }
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['user']['role'], 'user')
        self.assertEqual(response.data['user']['home'], '/user-dashboard')
        user = User.objects.get(email='jordan@test.com')
        self.assertTrue(user.check_password('Hangar-Bay-42'))
        self.assertTrue(ActivityLog.objects.filter(user=user, action=ActivityLog.ACTION_REGISTER).exists())

    def test_register_ignores_role(self):
        data = {
            'name': 'Sneaky',
            'email': 'sneaky@test.com',
            'password': 'Hangar-Bay-42',
            'password_confirm': 'Hangar-Bay-42',
            'role': 'superadmin',
        }
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(User.objects.get(email='sneaky@test.com').role, 'user')

    def test_register_duplicate_email(self):
        TestDataFactory.create_user(email='taken@test.com')
        data = {
            'name': 'Other',
            'email': 'taken@test.com',
            'password': 'Hangar-Bay-42',
            'password_confirm': 'Hangar-Bay-42',
        }
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Email already exists', str(response.data['email']))

    def test_register_password_mismatch(self):
        data = {
            'name': 'Other',
            'email': 'other@test.com',
            'password': 'Hangar-Bay-42',
            'password_confirm': 'Hangar-Bay-43',
        }
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_login(self):
        user = TestDataFactory.create_admin(email='pilot@test.com', password='Hangar-Bay-42')
        response = self.client.post('/api/v1/auth/login/',
                                    {'email': 'pilot@test.com', 'password': 'Hangar-Bay-42'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertEqual(response.data['user']['role'], 'admin')
        self.assertTrue(response.data['user']['can_access_admin'])
        self.assertFalse(response.data['user']['can_access_superadmin'])
        self.assertTrue(ActivityLog.objects.filter(user=user, action=ActivityLog.ACTION_LOGIN).exists())

    def test_login_wrong_password(self):
        TestDataFactory.create_user(email='pilot@test.com', password='Hangar-Bay-42')
        response = self.client.post('/api/v1/auth/login/',
                                    {'email': 'pilot@test.com', 'password': 'wrong'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_login_suspended_account(self):
        TestDataFactory.create_user(email='pilot@test.com', password='Hangar-Bay-42', is_active=False)
        response = self.client.post('/api/v1/auth/login/',
                                    {'email': 'pilot@test.com', 'password': 'Hangar-Bay-42'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_login_mixed_case_email_from_manager(self):
        user = User.objects.create_user(email='Bob@Example.com', password='Hangar-Bay-42', name='Bob')
        self.assertEqual(user.email, 'bob@example.com')
        response = self.client.post('/api/v1/auth/login/',
                                    {'email': 'Bob@Example.com', 'password': 'Hangar-Bay-42'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['id'], user.id)

    def test_refresh(self):
        TestDataFactory.create_user(email='pilot@test.com', password='Hangar-Bay-42')
        login = self.client.post('/api/v1/auth/login/',
                                 {'email': 'pilot@test.com', 'password': 'Hangar-Bay-42'}, format='json')
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': login.data['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_refresh_for_deleted_user(self):
        user = TestDataFactory.create_user(email='pilot@test.com', password='Hangar-Bay-42')
        login = self.client.post('/api/v1/auth/login/',
                                 {'email': 'pilot@test.com', 'password': 'Hangar-Bay-42'}, format='json')
        user.delete()
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': login.data['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me(self):
        user = TestDataFactory.create_superadmin()
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['email'], user.email)
        self.assertEqual(response.data['home'], '/superadmin-dashboard')
        self.assertTrue(response.data['can_access_superadmin'])

    def test_me_update_cannot_change_role(self):
        user = TestDataFactory.create_user()
        self.client.authenticate_user(user)
        response = self.client.patch('/api/v1/auth/me/', {'name': 'New Name', 'role': 'admin'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertEqual(user.name, 'New Name')
        self.assertEqual(user.role, 'user')

    def test_me_requires_authentication(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_logout_logs_activity(self):
        user = TestDataFactory.create_user()
        self.client.authenticate_user(user)
        response = self.client.post('/api/v1/auth/logout/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertTrue(ActivityLog.objects.filter(user=user, action=ActivityLog.ACTION_LOGOUT).exists())


class UserManagementAPITests(TestCase):
    """Test user listing, editing, role and status changes"""

    def setUp(self):
        self.user = TestDataFactory.create_user(email='plain@test.com', name='Plain User')
        self.admin = TestDataFactory.create_admin(email='admin@test.com', name='Admin')
        self.superadmin = TestDataFactory.create_superadmin(email='root@test.com', name='Root')
        self.client = AuthenticatedAPIClient()

    def test_list_requires_admin(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_filters(self):
        TestDataFactory.create_user(email='gone@test.com', is_active=False)
        self.client.authenticate_user(self.admin)

        response = self.client.get('/api/v1/users/', {'role': 'admin'})
        self.assertEqual([u['email'] for u in response.data], ['admin@test.com'])

        response = self.client.get('/api/v1/users/', {'status': 'suspended'})
        self.assertEqual([u['email'] for u in response.data], ['gone@test.com'])

        response = self.client.get('/api/v1/users/', {'search': 'PLAIN'})
        self.assertEqual([u['email'] for u in response.data], ['plain@test.com'])

    def test_stats(self):
        TestDataFactory.create_user(is_active=False)
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/users/stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 4)
        self.assertEqual(response.data['suspended'], 1)
        self.assertEqual(response.data['users'], 2)
        self.assertEqual(response.data['admins'], 1)
        self.assertEqual(response.data['superadmins'], 1)

    def test_create_user_requires_superadmin(self):
        data = {'name': 'New', 'email': 'new@test.com', 'password': 'Hangar-Bay-42',
                'password_confirm': 'Hangar-Bay-42', 'role': 'admin'}
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/users/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.superadmin)
        response = self.client.post('/api/v1/users/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(User.objects.get(email='new@test.com').role, 'admin')

    def test_admin_cannot_modify_superadmin(self):
        self.client.authenticate_user(self.admin)
        response = self.client.patch(f'/api/v1/users/{self.superadmin.id}/', {'name': 'Hacked'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.delete(f'/api/v1/users/{self.superadmin.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_updates_user(self):
        self.client.authenticate_user(self.admin)
        response = self.client.patch(f'/api/v1/users/{self.user.id}/', {'phone': '555-0100'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertEqual(self.user.phone, '555-0100')

    def test_update_duplicate_email(self):
        self.client.authenticate_user(self.admin)
        response = self.client.patch(f'/api/v1/users/{self.user.id}/', {'email': 'admin@test.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Email already exists', str(response.data['email']))

    def test_cannot_delete_self(self):
        self.client.authenticate_user(self.admin)
        response = self.client.delete(f'/api/v1/users/{self.admin.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_user(self):
        self.client.authenticate_user(self.admin)
        response = self.client.delete(f'/api/v1/users/{self.user.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(User.objects.filter(pk=self.user.id).exists())

    def test_role_change(self):
        self.client.authenticate_user(self.superadmin)
        response = self.client.patch(f'/api/v1/users/{self.user.id}/role/', {'role': 'admin'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertEqual(self.user.role, 'admin')
        self.assertTrue(self.user.is_staff)
        log = ActivityLog.objects.get(action=ActivityLog.ACTION_ROLE_CHANGE)
        self.assertEqual(log.details, {'from': 'user', 'to': 'admin'})

    def test_role_change_invalid_role(self):
        self.client.authenticate_user(self.superadmin)
        response = self.client.patch(f'/api/v1/users/{self.user.id}/role/', {'role': 'pilot'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_role_change_own_role(self):
        self.client.authenticate_user(self.superadmin)
        response = self.client.patch(f'/api/v1/users/{self.superadmin.id}/role/', {'role': 'user'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_role_change_requires_superadmin(self):
        self.client.authenticate_user(self.admin)
        response = self.client.patch(f'/api/v1/users/{self.user.id}/role/', {'role': 'admin'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_suspend_user(self):
        self.client.authenticate_user(self.superadmin)
        response = self.client.patch(f'/api/v1/users/{self.user.id}/status/', {'is_active': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertFalse(self.user.is_active)

    def test_cannot_suspend_self(self):
        self.client.authenticate_user(self.superadmin)
        response = self.client.patch(f'/api/v1/users/{self.superadmin.id}/status/', {'is_active': False},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class SettingUtilsTests(TestCase):
    def test_defaults_when_missing(self):
        self.assertFalse(get_setting('auto_approval'))
        self.assertEqual(get_setting('max_borrow_days'), 14)
        self.assertEqual(get_setting('backup_frequency'), 'daily')

    def test_stored_values_are_parsed(self):
        TestDataFactory.create_setting('auto_approval', True)
        TestDataFactory.create_setting('max_borrow_days', 7)
        self.assertIs(get_setting('auto_approval'), True)
        self.assertEqual(get_setting('max_borrow_days'), 7)

    def test_invalid_stored_value_falls_back_to_default(self):
        Setting.objects.create(key='session_timeout', value='soon')
        self.assertEqual(get_setting('session_timeout'), 30)
        self.assertEqual(get_effective_settings()['session_timeout'], 30)

    def test_parse_setting_value(self):
        self.assertIs(parse_setting_value('Yes', False), True)
        self.assertIs(parse_setting_value('off', True), False)
        self.assertEqual(parse_setting_value(' 21 ', 14), 21)
        with self.assertRaises(ValueError):
            parse_setting_value('maybe', False)


class SettingAPITests(TestCase):
    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_requires_admin(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get('/api/v1/settings/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_effective_settings(self):
        TestDataFactory.create_setting('maintenance_mode', True)
        response = self.client.get('/api/v1/settings/effective/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIs(response.data['maintenance_mode'], True)
        self.assertEqual(response.data['max_borrow_days'], 14)

    def test_bulk_update(self):
        response = self.client.put('/api/v1/settings/bulk/',
                                   {'auto_approval': True, 'max_borrow_days': 5}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIs(response.data['auto_approval'], True)
        self.assertEqual(Setting.objects.get(key='max_borrow_days').value, '5')

    def test_bulk_update_unknown_key(self):
        response = self.client.put('/api/v1/settings/bulk/', {'dark_mode': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Setting.objects.exists())

    def test_bulk_update_invalid_value(self):
        response = self.client.put('/api/v1/settings/bulk/', {'max_borrow_days': 'forever'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_and_update_setting(self):
        response = self.client.post('/api/v1/settings/',
                                    {'key': 'session_timeout', 'value': '45', 'description': 'Timeout'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        setting_id = response.data['id']

        response = self.client.patch(f'/api/v1/settings/{setting_id}/', {'value': 'never'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.delete(f'/api/v1/settings/{setting_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)


class ActivityLogTests(TestCase):
    """Test create_activity_log and the activity log endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.other = TestDataFactory.create_user()
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()

    def test_missing_action_is_skipped(self):
        self.assertIsNone(create_activity_log(user=self.user, model_name='Drone'))
        self.assertFalse(ActivityLog.objects.exists())

    def test_anonymous_user_is_stored_as_null(self):
        log = create_activity_log(action='create', model_name='Drone', object_id=3)
        self.assertIsNone(log.user)
        self.assertEqual(log.object_id, '3')

    def test_user_sees_only_own_logs(self):
        create_activity_log(action='create', user=self.user)
        create_activity_log(action='create', user=self.other)
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/activity-logs/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['user']['id'], self.user.id)

    def test_admin_sees_all_and_filters(self):
        create_activity_log(action='create', model_name='Drone', user=self.user)
        create_activity_log(action='approve', model_name='BorrowRequest', user=self.other)
        self.client.authenticate_user(self.admin)

        response = self.client.get('/api/v1/activity-logs/')
        self.assertEqual(len(response.data), 2)

        response = self.client.get('/api/v1/activity-logs/', {'action': 'approve'})
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['model_name'], 'BorrowRequest')

        response = self.client.get('/api/v1/activity-logs/', {'user': self.user.id})
        self.assertEqual(len(response.data), 1)

    def test_limit(self):
        for _ in range(5):
            create_activity_log(action='update', user=self.user)
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/activity-logs/', {'limit': 2})
        self.assertEqual(len(response.data), 2)

        response = self.client.get('/api/v1/activity-logs/', {'limit': 'lots'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_record_own_action(self):
        self.client.authenticate_user(self.user)
        response = self.client.post('/api/v1/activity-logs/', {'action': 'export', 'details': {'rows': 3}},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        log = ActivityLog.objects.get(action='export')
        self.assertEqual(log.user, self.user)
        self.assertEqual(log.details, {'rows': 3})

    def test_detail_permissions(self):
        log = create_activity_log(action='create', user=self.other)

        self.client.authenticate_user(self.user)
        response = self.client.get(f'/api/v1/activity-logs/{log.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.other)
        response = self.client.get(f'/api/v1/activity-logs/{log.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.client.authenticate_user(self.admin)
        response = self.client.get(f'/api/v1/activity-logs/{log.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)


class CacheSignalSuspensionTests(TestCase):
    def test_nested_blocks_keep_outer_suspension(self):
        self.assertFalse(is_suspended())
        with suspend_cache_signals():
            with suspend_cache_signals():
                self.assertTrue(is_suspended())
            self.assertTrue(is_suspended())
        self.assertFalse(is_suspended())


class CreateSuperadminCommandTests(TestCase):
    def test_creates_and_promotes(self):
        from django.core.management import call_command
        from io import StringIO

        call_command('create_superadmin', email='Root@Test.com', name='Root', password='Hangar-Bay-42',
                     stdout=StringIO())
        user = User.objects.get(email='root@test.com')
        self.assertEqual(user.role, 'superadmin')
        self.assertTrue(user.check_password('Hangar-Bay-42'))

        plain = TestDataFactory.create_user(email='plain@test.com')
        call_command('create_superadmin', email='plain@test.com', name='Plain', password='newpass1',
                     stdout=StringIO())
        plain.refresh_from_db()
        self.assertEqual(plain.role, 'superadmin')
        self.assertTrue(plain.is_superuser)
