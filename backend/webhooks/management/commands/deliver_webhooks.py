"""
Django management command to post due webhook deliveries; run from cron every minute
"""
from django.core.management.base import BaseCommand
from backend.webhooks.delivery import process_pending_deliveries


class Command(BaseCommand):
    help = 'Deliver pending and retrying webhook events'

    def handle(self, *args, **options):
        counts = process_pending_deliveries()
        self.stdout.write(self.style.SUCCESS(
            f"Processed {counts['processed']} webhook delivery(ies): {counts['succeeded']} succeeded, "
            f"{counts['retrying']} retrying, {counts['failed']} failed"
        ))
