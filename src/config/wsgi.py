"""WSGI entrypoint.

SSE streams hold a worker for their whole lifetime, so run this under a
threaded server (e.g. ``gunicorn --worker-class gthread``).
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
