"""
Test suite for the fleet module
Tests: drones, drone models, status changes, maintenance logs and fleet seeding
"""
from io import StringIO

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase, override_settings
from django.utils.dateparse import parse_datetime
from rest_framework import status
from dronehub.borrowing.models import BorrowRequest
from dronehub.core.models import ActivityLog
from dronehub.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from dronehub.fleet.models import DroneModel, Drone, MaintenanceLog


class DroneModelTests(TestCase):
    def test_str(self):
        drone_model = TestDataFactory.create_drone_model(name='Mavic 3 Pro', manufacturer='DJI')
        self.assertEqual(str(drone_model), 'DJI Mavic 3 Pro')
        drone_model.manufacturer = None
        self.assertEqual(str(drone_model), 'Mavic 3 Pro')

    def test_deleting_model_keeps_drones(self):
        drone = TestDataFactory.create_drone()
        drone.model.delete()
        drone.refresh_from_db()
        self.assertIsNone(drone.model)


class DroneAPITests(TestCase):
    """Test drone listing and admin writes"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.mavic = TestDataFactory.create_drone_model(name='Mavic 3 Pro', manufacturer='DJI')
        self.anafi = TestDataFactory.create_drone_model(name='Anafi USA', manufacturer='Parrot')

    def test_list_embeds_model(self):
        TestDataFactory.create_drone(name='Mavic-01', model=self.mavic)
        response = self.client.get('/api/v1/drones/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['model']['name'], 'Mavic 3 Pro')
        self.assertEqual(response.data[0]['model']['manufacturer'], 'DJI')

    def test_list_filters(self):
        TestDataFactory.create_drone(name='Mavic-01', model=self.mavic)
        TestDataFactory.create_drone(name='Recon', model=self.anafi, status=Drone.STATUS_MAINTENANCE)

        response = self.client.get('/api/v1/drones/', {'status': 'maintenance'})
        self.assertEqual([d['name'] for d in response.data], ['Recon'])

        response = self.client.get('/api/v1/drones/', {'search': 'anafi'})
        self.assertEqual([d['name'] for d in response.data], ['Recon'])

        response = self.client.get('/api/v1/drones/', {'model': self.mavic.id})
        self.assertEqual([d['name'] for d in response.data], ['Mavic-01'])

    def test_list_invalid_status_filter(self):
        response = self.client.get('/api/v1/drones/', {'status': 'flying'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_available(self):
        TestDataFactory.create_drone(name='Free', model=self.mavic)
        TestDataFactory.create_drone(name='Out', model=self.mavic, status=Drone.STATUS_BORROWED)
        response = self.client.get('/api/v1/drones/available/')
        self.assertEqual([d['name'] for d in response.data], ['Free'])

    def test_create_requires_admin(self):
        response = self.client.post('/api/v1/drones/', {'name': 'Nope'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(Drone.objects.exists())

    def test_create_drone(self):
        self.client.authenticate_user(self.admin)
        data = {'name': 'Mavic-09', 'model_id': self.mavic.id, 'status': 'available'}
        response = self.client.post('/api/v1/drones/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['model']['id'], self.mavic.id)
        drone = Drone.objects.get(name='Mavic-09')
        self.assertEqual(drone.model, self.mavic)
        self.assertTrue(ActivityLog.objects.filter(action=ActivityLog.ACTION_CREATE, model_name='Drone',
                                                   object_id=str(drone.id)).exists())

    def test_update_drone(self):
        drone = TestDataFactory.create_drone(model=self.mavic)
        self.client.authenticate_user(self.admin)
        response = self.client.patch(f'/api/v1/drones/{drone.id}/', {'model_id': self.anafi.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['model']['name'], 'Anafi USA')

    def test_delete_drone(self):
        drone = TestDataFactory.create_drone(model=self.mavic)
        self.client.authenticate_user(self.admin)
        response = self.client.delete(f'/api/v1/drones/{drone.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Drone.objects.filter(pk=drone.id).exists())

    def test_cannot_delete_borrowed_drone(self):
        drone = TestDataFactory.create_drone(model=self.mavic, status=Drone.STATUS_BORROWED)
        TestDataFactory.create_borrow_request(drone=drone, status=BorrowRequest.STATUS_APPROVED)
        self.client.authenticate_user(self.admin)
        response = self.client.delete(f'/api/v1/drones/{drone.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Drone.objects.filter(pk=drone.id).exists())

    def test_status_change(self):
        drone = TestDataFactory.create_drone(model=self.mavic)
        self.client.authenticate_user(self.admin)
        response = self.client.patch(f'/api/v1/drones/{drone.id}/status/', {'status': 'damaged'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        drone.refresh_from_db()
        self.assertEqual(drone.status, Drone.STATUS_DAMAGED)

        response = self.client.patch(f'/api/v1/drones/{drone.id}/status/', {'status': 'lost'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_status_change_requires_admin(self):
        drone = TestDataFactory.create_drone(model=self.mavic)
        response = self.client.patch(f'/api/v1/drones/{drone.id}/status/', {'status': 'damaged'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    @override_settings(TIME_ZONE='Asia/Kolkata')
    def test_timestamps_carry_local_offset(self):
        drone = TestDataFactory.create_drone(model=self.mavic)
        response = self.client.get(f'/api/v1/drones/{drone.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['created_at'].endswith('+05:30'))
        self.assertEqual(parse_datetime(response.data['created_at']), drone.created_at)

    def test_missing_drone(self):
        response = self.client.get('/api/v1/drones/9999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class DroneModelAPITests(TestCase):
    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_list_ordered_by_name(self):
        TestDataFactory.create_drone_model(name='Zephyr')
        TestDataFactory.create_drone_model(name='Anafi')
        response = self.client.get('/api/v1/drone-models/')
        self.assertEqual([m['name'] for m in response.data], ['Anafi', 'Zephyr'])

    def test_create_with_specs(self):
        data = {'name': 'Mini 4 Pro', 'manufacturer': 'DJI', 'specs': {'weight_g': 249}}
        response = self.client.post('/api/v1/drone-models/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(DroneModel.objects.get(name='Mini 4 Pro').specs, {'weight_g': 249})

    def test_specs_must_be_object(self):
        data = {'name': 'Mini 4 Pro', 'specs': [1, 2]}
        response = self.client.post('/api/v1/drone-models/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_user_cannot_write(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        drone_model = TestDataFactory.create_drone_model()
        response = self.client.patch(f'/api/v1/drone-models/{drone_model.id}/', {'name': 'X'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.get(f'/api/v1/drone-models/{drone_model.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)


class MaintenanceLogAPITests(TestCase):
    """Test maintenance records and their drone status updates"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        self.drone = TestDataFactory.create_drone(name='Mavic-01')

    def test_create_sets_performer_and_drone_status(self):
        data = {'drone': self.drone.id, 'condition': 'Gimbal recalibrated', 'drone_status': 'maintenance'}
        response = self.client.post('/api/v1/maintenance-logs/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['performed_by']['id'], self.admin.id)
        self.assertEqual(response.data['drone'], {'id': self.drone.id, 'name': 'Mavic-01'})
        self.drone.refresh_from_db()
        self.assertEqual(self.drone.status, Drone.STATUS_MAINTENANCE)
        self.assertTrue(ActivityLog.objects.filter(action=ActivityLog.ACTION_MAINTENANCE).exists())

    def test_create_without_status_keeps_drone(self):
        data = {'drone': self.drone.id, 'condition': 'Visual check'}
        response = self.client.post('/api/v1/maintenance-logs/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.drone.refresh_from_db()
        self.assertEqual(self.drone.status, Drone.STATUS_AVAILABLE)

    def test_filter_by_drone(self):
        other = TestDataFactory.create_drone()
        TestDataFactory.create_maintenance_log(drone=self.drone)
        TestDataFactory.create_maintenance_log(drone=other)
        response = self.client.get('/api/v1/maintenance-logs/', {'drone': self.drone.id})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['drone'], {'id': self.drone.id, 'name': 'Mavic-01'})

    def test_requires_admin(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get('/api/v1/maintenance-logs/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_logs_removed_with_drone(self):
        TestDataFactory.create_maintenance_log(drone=self.drone)
        self.drone.delete()
        self.assertFalse(MaintenanceLog.objects.exists())


class SeedFleetCommandTests(TestCase):
    def test_seed_is_idempotent(self):
        call_command('seed_fleet', stdout=StringIO())
        drone_count = Drone.objects.count()
        model_count = DroneModel.objects.count()
        self.assertGreater(drone_count, 0)

        call_command('seed_fleet', stdout=StringIO())
        self.assertEqual(Drone.objects.count(), drone_count)
        self.assertEqual(DroneModel.objects.count(), model_count)

    def test_clear(self):
        TestDataFactory.create_drone(name='Custom-01')
        call_command('seed_fleet', '--clear', stdout=StringIO())
        self.assertFalse(Drone.objects.filter(name='Custom-01').exists())
        self.assertTrue(Drone.objects.filter(status=Drone.STATUS_AVAILABLE).exists())

    def test_clear_refused_while_drone_on_loan(self):
        drone = TestDataFactory.create_drone(name='Custom-01', status=Drone.STATUS_BORROWED)
        request = TestDataFactory.create_borrow_request(drone=drone, status=BorrowRequest.STATUS_APPROVED)
        with self.assertRaises(CommandError):
            call_command('seed_fleet', '--clear', stdout=StringIO())
        request.refresh_from_db()
        self.assertEqual(request.drone, drone)
