"""
Django management command to generate scheduled TTB reports
Run from cron (hourly is enough); a company is picked up on the first run after its slot
and skipped once the month's report exists
"""
from datetime import timezone as dt_timezone

from django.core.management.base import BaseCommand, CommandError
from django.utils.dateparse import parse_datetime
from backend.ttb import auto_reports


class Command(BaseCommand):
    help = "Generate last month's draft TTB 5110.28 reports for companies whose schedule is due"

    def add_arguments(self, parser):
        parser.add_argument(
            '--run-at',
            help='ISO 8601 timestamp to treat as the current run time (defaults to now)',
        )
        parser.add_argument(
            '--next-run',
            action='store_true',
            help='Only print when the next scheduled run is due',
        )

    def handle(self, *args, **options):
        run_at = None
        if options.get('run_at'):
            run_at = parse_datetime(options['run_at'])
            if run_at is None:
                raise CommandError(f"Invalid --run-at value: {options['run_at']}")
            if run_at.tzinfo is None:
                run_at = run_at.replace(tzinfo=dt_timezone.utc)

        if options.get('next_run'):
            next_run = auto_reports.calculate_next_run(run_at)
            self.stdout.write(f"Next TTB auto-report run: {next_run.isoformat()}")
            return

        self.stdout.write("=" * 80)
        self.stdout.write(self.style.SUCCESS("TTB AUTO-REPORT GENERATION"))
        self.stdout.write("=" * 80)

        reports = auto_reports.generate_due_reports(run_at)
        for report in reports:
            self.stdout.write(
                f"  Company {report.company_id}: draft report {report.id} for {report.report_month}/{report.report_year}"
            )
        self.stdout.write(self.style.SUCCESS(f"Generated {len(reports)} report(s)"))
