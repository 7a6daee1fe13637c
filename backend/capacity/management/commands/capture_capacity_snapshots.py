"""
Django management command to record daily equipment utilization
Without --company, captures every company with active equipment
"""
from django.core.management.base import BaseCommand, CommandError
from django.utils.dateparse import parse_date
from backend.capacity import analysis


class Command(BaseCommand):
    help = 'Capture daily capacity snapshots per equipment'

    def add_arguments(self, parser):
        parser.add_argument('--company', type=int, help='Capture a single company')
        parser.add_argument('--date', help='Snapshot date (YYYY-MM-DD), defaults to today')

    def handle(self, *args, **options):
        raw_date = options.get('date')
        snapshot_date = parse_date(raw_date) if raw_date else None
        if raw_date and snapshot_date is None:
            raise CommandError(f"Invalid --date: {raw_date}")

        company_id = options.get('company')
        if company_id is not None:
            captured = {company_id: len(analysis.capture_snapshot(company_id, snapshot_date))}
        else:
            captured = analysis.capture_for_all_companies(snapshot_date)

        for cid, count in captured.items():
            self.stdout.write(f"  Company {cid}: {count} snapshot(s)")
        self.stdout.write(self.style.SUCCESS(f"Captured capacity snapshots for {len(captured)} company(ies)"))
