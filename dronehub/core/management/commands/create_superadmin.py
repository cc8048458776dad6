"""
Management command to bootstrap a superadmin account
Usage: python manage.py create_superadmin --email admin@example.com --name "Admin" --password secret
"""
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from dronehub.core.models import ActivityLog
from dronehub.core.utils import create_activity_log

User = get_user_model()


class Command(BaseCommand):
    help = 'Create a superadmin account, or promote an existing account to superadmin'

    def add_arguments(self, parser):
        parser.add_argument('--email', required=True, help='Login email of the account')
        parser.add_argument('--name', required=True, help='Display name')
        parser.add_argument('--password', required=True, help='Initial password')

    def handle(self, *args, **options):
        email = options['email'].strip().lower()
        name = options['name'].strip()
        password = options['password']

        if not email or not name:
            raise CommandError('Email and name are required')
        if len(password) < 6:
            raise CommandError('Password must be at least 6 characters')

        user = User.objects.filter(email=email).first()
        if user is None:
            user = User.objects.create_superuser(email=email, password=password, name=name)
            self.stdout.write(self.style.SUCCESS(f'✓ Created superadmin: {email}'))
            action = ActivityLog.ACTION_CREATE
        else:
            user.name = name
            user.role = User.ROLE_SUPERADMIN
            user.is_active = True
            user.set_password(password)
            user.save()
            self.stdout.write(self.style.WARNING(f'⊘ Account exists, promoted to superadmin: {email}'))
            action = ActivityLog.ACTION_ROLE_CHANGE

        create_activity_log(
            action=action,
            model_name='User',
            object_id=user.id,
            details={'role': user.role, 'source': 'create_superadmin'},
        )
