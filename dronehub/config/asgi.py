"""
ASGI config for the DroneHub project.
"""
import os

from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'dronehub.config.settings')

application = get_asgi_application()
