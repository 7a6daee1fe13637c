"""
Django management command to delete push subscriptions that have been inactive for 30 days
"""
from django.core.management.base import BaseCommand
from backend.notifications import services


class Command(BaseCommand):
    help = 'Delete inactive push subscriptions not used in the last 30 days'

    def handle(self, *args, **options):
        removed = services.cleanup_expired_subscriptions()
        self.stdout.write(self.style.SUCCESS(f"Removed {removed} expired push subscription(s)"))
