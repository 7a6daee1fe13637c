"""
Django management command to capture daily TTB inventory snapshots
Without arguments, captures today's snapshot for every TTB-enabled company
"""
from django.core.management.base import BaseCommand, CommandError
from django.utils.dateparse import parse_date
from backend.core.exceptions import ValidationFailed
from backend.ttb import snapshots


class Command(BaseCommand):
    help = 'Capture TTB inventory snapshots for all TTB-enabled companies, or backfill one company'

    def add_arguments(self, parser):
        parser.add_argument('--company', type=int, help='Backfill a single company')
        parser.add_argument('--start', help='First snapshot date (YYYY-MM-DD)')
        parser.add_argument('--end', help='Last snapshot date (YYYY-MM-DD), defaults to --start')

    def _parse(self, value, option):
        parsed = parse_date(value) if value else None
        if value and parsed is None:
            raise CommandError(f"Invalid {option} date: {value}")
        return parsed

    def handle(self, *args, **options):
        company_id = options.get('company')
        start = self._parse(options.get('start'), '--start')
        end = self._parse(options.get('end'), '--end') or start

        if company_id is None:
            captured = snapshots.capture_for_all_companies(start)
            for cid, count in captured.items():
                self.stdout.write(f"  Company {cid}: {count} row(s)")
            self.stdout.write(self.style.SUCCESS(f"Captured snapshots for {len(captured)} company(ies)"))
            return

        if start is None:
            raise CommandError('--start is required with --company')
        try:
            captured = snapshots.backfill(company_id, start, end)
        except ValidationFailed as e:
            raise CommandError(str(e))
        self.stdout.write(self.style.SUCCESS(
            f"Backfilled {len(captured)} day(s), {sum(captured.values())} row(s) for company {company_id}"
        ))
