"""
Management command to clear borrow requests, history, maintenance and activity logs
Usage: python manage.py clear_borrow_data [--confirm]
"""
from django.core.management.base import BaseCommand
from django.db import transaction
from dronehub.borrowing.models import BorrowRequest, BorrowHistory
from dronehub.core.cache_signals import suspend_cache_signals
from dronehub.core.cache_utils import invalidate_report_cache
from dronehub.core.models import ActivityLog
from dronehub.fleet.models import Drone, MaintenanceLog


class Command(BaseCommand):
    help = 'Clear borrow requests, borrow history, maintenance logs and activity logs; free borrowed drones'

    def add_arguments(self, parser):
        parser.add_argument(
            '--confirm',
            action='store_true',
            help='Skip confirmation prompt',
        )

    def handle(self, *args, **options):
        if not options['confirm']:
            self.stdout.write(self.style.WARNING('⚠️  WARNING: This will delete ALL:'))
            self.stdout.write('  - Borrow requests (and their history)')
            self.stdout.write('  - Maintenance logs')
            self.stdout.write('  - Activity logs')
            self.stdout.write('Borrowed drones will be set back to available.')
            self.stdout.write('')

            confirm = input('Type "YES" to confirm: ')
            if confirm != 'YES':
                self.stdout.write(self.style.ERROR('Operation cancelled.'))
                return

        self.stdout.write('Starting data cleanup...')

        with suspend_cache_signals(), transaction.atomic():
            request_count = BorrowRequest.objects.count()
            history_count = BorrowHistory.objects.count()
            maintenance_count = MaintenanceLog.objects.count()
            activity_count = ActivityLog.objects.count()

            self.stdout.write('\nFound:')
            self.stdout.write(f'  - Borrow Requests: {request_count}')
            self.stdout.write(f'  - Borrow History: {history_count}')
            self.stdout.write(f'  - Maintenance Logs: {maintenance_count}')
            self.stdout.write(f'  - Activity Logs: {activity_count}')
            self.stdout.write('')

            # History rows go with their requests
            self.stdout.write('Deleting Borrow Requests...')
            BorrowRequest.objects.all().delete()
            self.stdout.write(self.style.SUCCESS('  ✓ Borrow Requests deleted'))

            self.stdout.write('Deleting Maintenance Logs...')
            MaintenanceLog.objects.all().delete()
            self.stdout.write(self.style.SUCCESS('  ✓ Maintenance Logs deleted'))

            self.stdout.write('Deleting Activity Logs...')
            ActivityLog.objects.all().delete()
            self.stdout.write(self.style.SUCCESS('  ✓ Activity Logs deleted'))

            self.stdout.write('Releasing borrowed drones...')
            released = Drone.objects.filter(status=Drone.STATUS_BORROWED).update(status=Drone.STATUS_AVAILABLE)
            self.stdout.write(self.style.SUCCESS(f'  ✓ {released} drones set to available'))

        invalidate_report_cache()

        self.stdout.write('')
        self.stdout.write(self.style.SUCCESS('✅ Data cleanup completed successfully!'))
        self.stdout.write('')
        self.stdout.write('Deleted:')
        self.stdout.write(f'  - {request_count} Borrow Requests')
        self.stdout.write(f'  - {history_count} Borrow History entries')
        self.stdout.write(f'  - {maintenance_count} Maintenance Logs')
        self.stdout.write(f'  - {activity_count} Activity Logs')
