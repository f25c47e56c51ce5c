"""
WSGI config for the librarydesk project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'librarydesk.settings')

application = get_wsgi_application()
