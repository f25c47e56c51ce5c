# management/commands/send_expiry_reminders.py

"""
Email students whose subscription is about to end.

USAGE EXAMPLES:
===============

# 1. Remind subscriptions ending in LIBRARYDESK_EXPIRY_REMINDER_DAYS days
python manage.py send_expiry_reminders

# 2. Remind subscriptions ending in 7 days
python manage.py send_expiry_reminders --days 7
"""

from django.core.management.base import BaseCommand
import logging

from subscriptions.services import SubscriptionExpiryService
from utils.context import RequestContext

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Send expiry reminder emails'

    def add_arguments(self, parser):
        parser.add_argument(
            '--days', type=int, default=None,
            help='Days before expiry (default: LIBRARYDESK_EXPIRY_REMINDER_DAYS)'
        )

    def handle(self, *args, **options):
        with RequestContext(request_path='manage.py send_expiry_reminders'):
            counts = SubscriptionExpiryService.send_expiry_reminders(days=options['days'])

        style = self.style.SUCCESS if not counts['errors'] else self.style.WARNING
        self.stdout.write(style(
            f"Reminders: {counts['sent']} sent, {counts['errors']} failed, "
            f"{counts['skipped']} without email ({counts['total']} expiring)"
        ))
