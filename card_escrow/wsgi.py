"""WSGI entrypoint for the card-offer escrow service."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "card_escrow.settings")

application = get_wsgi_application()
