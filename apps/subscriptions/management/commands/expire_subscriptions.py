# management/commands/expire_subscriptions.py

"""
Mark subscriptions whose period has ended as EXPIRED.

USAGE EXAMPLES:
===============

# 1. Expire everything that ended before today
python manage.py expire_subscriptions

# 2. Expire as of a given date
python manage.py expire_subscriptions --date 2025-03-01

# 3. Only one library
python manage.py expire_subscriptions --library sunrise-study-centre
"""

from datetime import datetime
from django.core.management.base import BaseCommand, CommandError
import logging

from accounts.models import Library
from librarydesk.managers import LibraryContext
from subscriptions.services import SubscriptionExpiryService
from utils.context import RequestContext

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Expire ACTIVE/PENDING subscriptions whose end date has passed'

    def add_arguments(self, parser):
        parser.add_argument(
            '--date', type=str, default=None,
            help='Reference date (YYYY-MM-DD), defaults to today'
        )
        parser.add_argument(
            '--library', type=str, default=None,
            help='Slug of a single library to process'
        )

    def handle(self, *args, **options):
        today = None
        if options['date']:
            try:
                today = datetime.strptime(options['date'], '%Y-%m-%d').date()
            except ValueError:
                raise CommandError(f"Invalid date: {options['date']}")

        library = None
        if options['library']:
            try:
                library = Library.objects.get(slug=options['library'])
            except Library.DoesNotExist:
                raise CommandError(f"Library not found: {options['library']}")

        with RequestContext(request_path='manage.py expire_subscriptions'), LibraryContext(library):
            count = SubscriptionExpiryService.expire_lapsed_subscriptions(today=today, library=library)

        self.stdout.write(self.style.SUCCESS(f'Expired {count} subscription(s)'))
