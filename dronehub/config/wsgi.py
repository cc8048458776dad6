"""
WSGI config for the DroneHub project.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'dronehub.config.settings')

application = get_wsgi_application()
