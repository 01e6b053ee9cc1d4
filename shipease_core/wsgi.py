"""
WSGI entrypoint for SHIPEASE (HTTP only).
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'shipease_core.settings')

application = get_wsgi_application()
