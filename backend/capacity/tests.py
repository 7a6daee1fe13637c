"""
Test suite for capacity planning
Tests: utilization math, bottlenecks, plans, constraints, forecasts, scenarios, snapshots, exports and the API
"""
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from backend.core.exceptions import ConflictError, ValidationFailed
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.core.utils import round2
from backend.capacity import analysis, exports, forecasting, planning
from backend.capacity.models import CapacityConstraint, CapacityPlan, CapacitySnapshot

DAY = date(2026, 7, 1)


def at(day, hour=0):
    return timezone.make_aware(datetime.combine(day, time(hour)))


class UtilizationTests(TestCase):

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.still = TestDataFactory.create_equipment(self.company, name='Pot Still')

    def test_overview_utilization_from_active_plan_allocations(self):
        TestDataFactory.create_allocation(self.still, DAY, hours=15)

        result = analysis.capacity_overview(self.company.id, DAY, DAY)

        self.assertEqual(result['equipment_count'], 1)
        self.assertEqual(result['total_available_hours'], Decimal('16.00'))
        self.assertEqual(result['total_allocated_hours'], Decimal('15.00'))
        self.assertEqual(result['total_remaining_hours'], Decimal('1.00'))
        self.assertEqual(result['utilization_percent'], Decimal('93.75'))
        self.assertEqual(result['equipment'][0]['alert_level'], 'warning')
        self.assertEqual(result['alerts'][0]['message'], 'Pot Still is at 93.8% utilization')

    def test_overview_over_two_days(self):
        TestDataFactory.create_allocation(self.still, DAY, hours=8)

        result = analysis.capacity_overview(self.company.id, DAY, DAY + timedelta(days=1))

        self.assertEqual(result['total_available_hours'], Decimal('32.00'))
        self.assertEqual(result['utilization_percent'], Decimal('25.00'))
        self.assertEqual(result['alerts'], [])

    def test_bookings_draft_plans_and_inactive_equipment_ignored(self):
        TestDataFactory.create_booking(self.still, start=at(DAY, 8), hours=8)
        TestDataFactory.create_allocation(self.still, DAY, hours=8, plan_status='draft')
        idle = TestDataFactory.create_equipment(self.company, is_active=False)
        TestDataFactory.create_allocation(idle, DAY, hours=8)

        result = analysis.capacity_overview(self.company.id, DAY, DAY)

        self.assertEqual(result['equipment_count'], 1)
        self.assertEqual(result['total_allocated_hours'], Decimal('0.00'))
        self.assertEqual(result['utilization_percent'], Decimal('0.00'))

    def test_other_company_allocations_ignored(self):
        other = TestDataFactory.create_equipment(TestDataFactory.create_company())
        TestDataFactory.create_allocation(other, DAY, hours=8)

        result = analysis.capacity_overview(self.company.id, DAY, DAY)

        self.assertEqual(result['total_allocated_hours'], Decimal('0.00'))

    def test_allocation_prorated_by_days_in_range(self):
        TestDataFactory.create_allocation(self.still, DAY, DAY + timedelta(days=3), hours=40)

        result = analysis.capacity_overview(self.company.id, DAY + timedelta(days=2), DAY + timedelta(days=5))

        self.assertEqual(result['total_allocated_hours'], Decimal('20.00'))
        self.assertEqual(result['total_available_hours'], Decimal('64.00'))
        self.assertEqual(result['utilization_percent'], Decimal('31.25'))

    def test_detail_splits_hours_by_allocation_type(self):
        TestDataFactory.create_allocation(self.still, DAY, hours=8)
        TestDataFactory.create_allocation(self.still, DAY, hours=4, allocation_type='maintenance')
        TestDataFactory.create_allocation(self.still, DAY, hours=2, allocation_type='buffer')
        TestDataFactory.create_allocation(self.still, DAY, hours=1, allocation_type='reserved')

        detail = analysis.equipment_detail(self.company.id, self.still.id, DAY, DAY)

        self.assertEqual(detail['production_hours'], Decimal('8.00'))
        self.assertEqual(detail['maintenance_hours'], Decimal('4.00'))
        self.assertEqual(detail['buffer_hours'], Decimal('2.00'))
        self.assertEqual(detail['reserved_hours'], Decimal('1.00'))
        self.assertEqual(detail['allocated_hours'], Decimal('15.00'))
        self.assertEqual(detail['utilization_percent'], Decimal('93.75'))
        self.assertEqual(len(detail['allocations']), 4)

    def test_facility_hours_constraint_limits_available_hours(self):
        CapacityConstraint.objects.create(
            company=self.company, constraint_type='max_hours_per_day',
            constraint_value=Decimal('8'), effective_from=DAY - timedelta(days=10)
        )
        TestDataFactory.create_allocation(self.still, DAY, hours=8)

        result = analysis.capacity_overview(self.company.id, DAY, DAY + timedelta(days=1))

        self.assertEqual(result['total_available_hours'], Decimal('16.00'))
        self.assertEqual(result['utilization_percent'], Decimal('50.00'))

    def test_equipment_constraint_applies_to_overview_ranking_and_bottlenecks(self):
        fermenter = TestDataFactory.create_equipment(self.company, name='Fermenter 1', equipment_type='fermenter')
        CapacityConstraint.objects.create(
            company=self.company, equipment=self.still, constraint_type='max_hours_per_day',
            constraint_value=Decimal('8'), effective_from=DAY - timedelta(days=10)
        )
        TestDataFactory.create_allocation(self.still, DAY, hours='7.6')

        overview = analysis.capacity_overview(self.company.id, DAY, DAY)
        detail = analysis.equipment_detail(self.company.id, self.still.id, DAY, DAY)
        ranking = analysis.equipment_utilization_ranking(self.company.id, DAY, DAY)
        bottlenecks = analysis.identify_bottlenecks(self.company.id, DAY, DAY)

        row = next(r for r in overview['equipment'] if r['equipment_id'] == self.still.id)
        self.assertEqual(row['utilization_percent'], Decimal('95.00'))
        self.assertEqual(row['utilization_percent'], detail['utilization_percent'])
        self.assertEqual(overview['total_available_hours'], Decimal('24.00'))
        self.assertEqual(overview['utilization_percent'], Decimal('31.67'))
        self.assertEqual([r['equipment_id'] for r in ranking], [self.still.id, fermenter.id])
        self.assertEqual(ranking[0]['utilization_percent'], Decimal('95.00'))
        self.assertEqual(len(bottlenecks), 1)
        self.assertEqual(bottlenecks[0]['severity'], 'critical')

    def test_alert_levels(self):
        self.assertIsNone(analysis.alert_level(Decimal('84.99')))
        self.assertEqual(analysis.alert_level(Decimal('85')), 'warning')
        self.assertEqual(analysis.alert_level(Decimal('95')), 'critical')

    def test_invalid_range_rejected(self):
        with self.assertRaises(ValidationFailed):
            analysis.capacity_overview(self.company.id, DAY, DAY - timedelta(days=1))

    def test_utilization_rounded_to_two_places(self):
        self.assertEqual(analysis.utilization_percent(Decimal('1'), Decimal('3')), Decimal('33.33'))
        self.assertEqual(analysis.utilization_percent(Decimal('5'), Decimal('0')), Decimal('0.00'))


class CapacityByTypeTests(TestCase):

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.still = TestDataFactory.create_equipment(self.company)

    def test_groups_production_hours_by_product_type(self):
        TestDataFactory.create_allocation(self.still, DAY, hours=20, product_type='bourbon')
        TestDataFactory.create_allocation(self.still, DAY, hours=10, product_type='bourbon')
        TestDataFactory.create_allocation(self.still, DAY, hours=10)
        TestDataFactory.create_allocation(self.still, DAY, hours=5, allocation_type='maintenance')
        TestDataFactory.create_allocation(self.still, DAY, hours=50, product_type='gin', plan_status='draft')

        result = analysis.capacity_by_type(self.company.id, DAY, DAY)

        self.assertEqual(result, [
            {'product_type': 'bourbon', 'allocated_hours': Decimal('30.00'),
             'share_percent': Decimal('75.00'), 'allocation_count': 2},
            {'product_type': 'other', 'allocated_hours': Decimal('10.00'),
             'share_percent': Decimal('25.00'), 'allocation_count': 1},
        ])

    def test_hours_prorated_to_range(self):
        TestDataFactory.create_allocation(self.still, DAY, DAY + timedelta(days=9), hours=100, product_type='rye')

        result = analysis.capacity_by_type(self.company.id, DAY, DAY + timedelta(days=1))

        self.assertEqual(result[0]['allocated_hours'], Decimal('20.00'))
        self.assertEqual(result[0]['share_percent'], Decimal('100.00'))

    def test_empty_without_production_allocations(self):
        self.assertEqual(analysis.capacity_by_type(self.company.id, DAY, DAY), [])


class UtilizationReportTests(TestCase):

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.still = TestDataFactory.create_equipment(self.company)

    def test_weekly_series(self):
        TestDataFactory.create_allocation(self.still, DAY, hours=16)
        TestDataFactory.create_allocation(self.still, DAY + timedelta(days=7), hours=8)

        report = analysis.utilization_report(self.company.id, DAY, DAY + timedelta(days=9))

        self.assertEqual(report['series'], [
            {'period_start': date(2026, 7, 1), 'period_end': date(2026, 7, 7),
             'available_hours': Decimal('112.00'), 'allocated_hours': Decimal('16.00'),
             'utilization_percent': Decimal('14.29')},
            {'period_start': date(2026, 7, 8), 'period_end': date(2026, 7, 10),
             'available_hours': Decimal('48.00'), 'allocated_hours': Decimal('8.00'),
             'utilization_percent': Decimal('16.67')},
        ])
        self.assertEqual(report['available_hours'], Decimal('160.00'))
        self.assertEqual(report['utilization_percent'], Decimal('15.00'))

    def test_monthly_periods_run_a_calendar_month(self):
        report = analysis.utilization_report(self.company.id, date(2026, 7, 15), date(2026, 8, 20), 'month')

        self.assertEqual(
            [(p['period_start'], p['period_end']) for p in report['series']],
            [(date(2026, 7, 15), date(2026, 8, 14)), (date(2026, 8, 15), date(2026, 8, 20))]
        )

    def test_unknown_period_rejected(self):
        with self.assertRaises(ValidationFailed):
            analysis.utilization_report(self.company.id, DAY, DAY, 'quarter')

    def test_trend_direction_thresholds(self):
        self.assertEqual(analysis.trend_direction(Decimal('5.01')), 'increasing')
        self.assertEqual(analysis.trend_direction(Decimal('5')), 'stable')
        self.assertEqual(analysis.trend_direction(Decimal('-5')), 'stable')
        self.assertEqual(analysis.trend_direction(Decimal('-5.01')), 'decreasing')

    def test_trend_increasing(self):
        TestDataFactory.create_allocation(self.still, DAY, hours='49.6')

        result = analysis.utilization_trend(self.company.id, months=2, today=date(2026, 7, 31))

        self.assertEqual([(p['year'], p['month']) for p in result['points']], [(2026, 6), (2026, 7)])
        self.assertEqual(result['points'][1]['utilization_percent'], Decimal('10.00'))
        self.assertEqual(result['trend_value'], Decimal('10.00'))
        self.assertEqual(result['trend'], 'increasing')

    def test_trend_decreasing(self):
        TestDataFactory.create_allocation(self.still, date(2026, 6, 10), hours=48)

        result = analysis.utilization_trend(self.company.id, months=2, today=date(2026, 7, 31))

        self.assertEqual(result['trend_value'], Decimal('-10.00'))
        self.assertEqual(result['trend'], 'decreasing')

    def test_trend_stable_at_threshold(self):
        TestDataFactory.create_allocation(self.still, DAY, hours='24.8')

        result = analysis.utilization_trend(self.company.id, months=2, today=date(2026, 7, 31))

        self.assertEqual(result['trend_value'], Decimal('5.00'))
        self.assertEqual(result['trend'], 'stable')


class BottleneckTests(TestCase):

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.still = TestDataFactory.create_equipment(self.company, name='Column Still')
        self.fermenter = TestDataFactory.create_equipment(self.company, name='Fermenter 1', equipment_type='fermenter')

    def test_severity_thresholds(self):
        self.assertEqual(analysis.bottleneck_severity(Decimal('80')), 'low')
        self.assertEqual(analysis.bottleneck_severity(Decimal('85')), 'medium')
        self.assertEqual(analysis.bottleneck_severity(Decimal('90')), 'high')
        self.assertEqual(analysis.bottleneck_severity(Decimal('95')), 'critical')

    def test_only_busy_equipment_reported_most_severe_first(self):
        TestDataFactory.create_allocation(self.still, DAY, hours=20)
        TestDataFactory.create_booking(self.still, start=at(DAY, 8), hours=8)
        TestDataFactory.create_allocation(self.fermenter, DAY, hours=15)

        bottlenecks = analysis.identify_bottlenecks(self.company.id, DAY, DAY)

        self.assertEqual([b['equipment_name'] for b in bottlenecks], ['Column Still', 'Fermenter 1'])
        self.assertEqual(bottlenecks[0]['severity'], 'critical')
        self.assertEqual(bottlenecks[0]['lost_capacity_hours'], Decimal('4.00'))
        self.assertEqual(bottlenecks[1]['severity'], 'high')
        self.assertEqual(bottlenecks[1]['lost_capacity_hours'], Decimal('0.00'))
        self.assertEqual(
            bottlenecks[0]['description'],
            'Column Still is operating at 125.0% capacity, potentially causing delays for 1 production runs'
        )

    def test_min_severity_filter(self):
        TestDataFactory.create_allocation(self.still, DAY, hours=16)
        TestDataFactory.create_allocation(self.fermenter, DAY, hours=15)

        bottlenecks = analysis.identify_bottlenecks(self.company.id, DAY, DAY, min_severity='critical')

        self.assertEqual(len(bottlenecks), 1)

    def test_analysis_lists_factors_and_run_delays(self):
        TestDataFactory.create_allocation(self.still, DAY, hours=12)
        TestDataFactory.create_allocation(self.still, DAY, hours=3, allocation_type='maintenance')
        for hour in range(6):
            TestDataFactory.create_booking(self.still, start=at(DAY, hour), hours=1)
        done = TestDataFactory.create_production_run(self.company, start=at(DAY, 8), status='completed')
        TestDataFactory.create_booking(self.still, run=done, start=at(DAY, 8), hours=1)

        result = analysis.analyze_bottleneck(self.company.id, self.still.id, DAY, DAY)

        self.assertEqual(result['severity'], 'high')
        self.assertEqual(result['utilization_percent'], Decimal('93.75'))
        self.assertEqual(result['contributing_factors'], [
            'Very high demand on this equipment',
            'Significant maintenance overhead',
            'Multiple production runs competing for time slots',
        ])
        self.assertEqual(len(result['affected_runs']), 6)
        self.assertEqual(result['affected_runs'][0]['estimated_delay_hours'], 2)
        self.assertEqual(result['affected_runs'][0]['reason'], 'Waiting for Column Still')
        self.assertEqual(result['total_estimated_delay_hours'], 12)
        self.assertEqual(result['average_wait_hours'], 2)
        self.assertEqual(result['lost_capacity_hours'], Decimal('0.00'))

    def test_maintenance_overhead_measured_against_capacity(self):
        TestDataFactory.create_allocation(self.still, DAY, hours=1, allocation_type='maintenance')

        result = analysis.analyze_bottleneck(self.company.id, self.still.id, DAY, DAY)

        self.assertEqual(result['contributing_factors'], [])
        self.assertEqual(result['total_estimated_delay_hours'], 0)
        self.assertEqual(result['max_wait_hours'], 0)

    def test_resolutions_sorted_by_effectiveness(self):
        options = analysis.suggest_resolutions({
            'severity': 'critical', 'lost_capacity_hours': Decimal('10'), 'equipment_type': 'still',
        })
        self.assertEqual(
            [o['resolution_type'] for o in options],
            ['add_equipment', 'extend_hours', 'optimize_schedule', 'reduce_maintenance_time']
        )
        self.assertEqual(options[0]['capacity_gain_hours'], Decimal('5.00'))

    def test_low_severity_gets_scheduling_options_only(self):
        options = analysis.suggest_resolutions({
            'severity': 'low', 'lost_capacity_hours': Decimal('0'), 'equipment_type': 'still',
        })
        self.assertEqual([o['resolution_type'] for o in options], ['extend_hours', 'optimize_schedule'])


class CapacityPlanTests(TestCase):

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.user = TestDataFactory.create_user(company=self.company)
        self.still = TestDataFactory.create_equipment(self.company)

    def _plan(self, allocations):
        return planning.create_plan(self.company.id, {
            'name': 'July plan',
            'plan_type': 'monthly',
            'period_start': date(2026, 7, 1),
            'period_end': date(2026, 7, 31),
            'allocations': allocations,
        }, created_by=self.user)

    def _allocation(self, start, end, hours='40'):
        return {
            'equipment_id': self.still.id, 'start_date': start, 'end_date': end,
            'hours_allocated': Decimal(hours),
        }

    def test_create_plan_with_allocations(self):
        plan = self._plan([self._allocation(date(2026, 7, 1), date(2026, 7, 5))])

        self.assertEqual(plan.status, 'draft')
        self.assertEqual(plan.allocations.count(), 1)
        self.assertEqual(plan.created_by, self.user)

    def test_period_end_must_follow_start(self):
        with self.assertRaises(ValidationFailed):
            planning.create_plan(self.company.id, {
                'name': 'Bad', 'period_start': date(2026, 7, 1), 'period_end': date(2026, 7, 1),
            })

    def test_other_company_equipment_rejected(self):
        other = TestDataFactory.create_equipment(TestDataFactory.create_company())
        with self.assertRaises(ValidationFailed):
            self._plan([dict(self._allocation(date(2026, 7, 1), date(2026, 7, 5)), equipment_id=other.id)])

    def test_validate_reports_overlap_and_out_of_period(self):
        plan = self._plan([
            self._allocation(date(2026, 7, 1), date(2026, 7, 10)),
            self._allocation(date(2026, 7, 5), date(2026, 7, 15)),
            self._allocation(date(2026, 7, 25), date(2026, 8, 5)),
        ])

        result = planning.validate_plan(plan)

        self.assertFalse(result['is_valid'])
        codes = sorted(e['code'] for e in result['errors'])
        self.assertEqual(codes, ['DATE_INVALID', 'OVERLAP'])

    def test_validate_warns_on_daily_hours(self):
        plan = self._plan([self._allocation(date(2026, 7, 1), date(2026, 7, 1), hours='20')])

        result = planning.validate_plan(plan)

        self.assertTrue(result['is_valid'])
        self.assertIn('EXCEEDS_DAILY_HOURS', [w['code'] for w in result['warnings']])

    def test_activate_requires_valid_draft(self):
        invalid = self._plan([
            self._allocation(date(2026, 7, 1), date(2026, 7, 10)),
            self._allocation(date(2026, 7, 5), date(2026, 7, 15)),
        ])
        with self.assertRaises(ConflictError):
            planning.activate_plan(invalid)

        plan = self._plan([self._allocation(date(2026, 7, 1), date(2026, 7, 5))])
        planning.activate_plan(plan)
        self.assertEqual(plan.status, 'active')

        with self.assertRaises(ConflictError):
            planning.activate_plan(plan)

    def test_only_draft_plans_can_be_modified(self):
        plan = self._plan([self._allocation(date(2026, 7, 1), date(2026, 7, 5))])
        planning.activate_plan(plan)

        with self.assertRaises(ConflictError):
            planning.update_plan(plan, {'name': 'Renamed'})

    def test_update_replaces_allocations(self):
        plan = self._plan([self._allocation(date(2026, 7, 1), date(2026, 7, 5))])

        planning.update_plan(plan, {
            'name': 'Renamed',
            'allocations': [
                self._allocation(date(2026, 7, 6), date(2026, 7, 8)),
                self._allocation(date(2026, 7, 9), date(2026, 7, 12)),
            ],
        })

        plan.refresh_from_db()
        self.assertEqual(plan.name, 'Renamed')
        self.assertEqual(plan.allocations.count(), 2)

    def test_delete_archives_active_plan(self):
        active = self._plan([self._allocation(date(2026, 7, 1), date(2026, 7, 5))])
        planning.activate_plan(active)
        draft = self._plan([])

        self.assertFalse(planning.delete_plan(active))
        self.assertTrue(planning.delete_plan(draft))

        active.refresh_from_db()
        self.assertEqual(active.status, 'archived')
        self.assertFalse(CapacityPlan.objects.filter(pk=draft.pk).exists())


class ConstraintTests(TestCase):

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.still = TestDataFactory.create_equipment(self.company)

    def test_hours_per_day_cannot_exceed_24(self):
        with self.assertRaises(ValidationFailed):
            planning.create_constraint(self.company.id, {
                'constraint_type': 'max_hours_per_day',
                'constraint_value': Decimal('25'),
                'effective_from': DAY,
            })

    def test_effective_until_before_from_rejected(self):
        with self.assertRaises(ValidationFailed):
            planning.create_constraint(self.company.id, {
                'constraint_type': 'max_hours_per_day',
                'constraint_value': Decimal('10'),
                'effective_from': DAY,
                'effective_until': DAY - timedelta(days=1),
            })

    def test_equipment_constraint_wins_when_smaller(self):
        planning.create_constraint(self.company.id, {
            'constraint_type': 'max_hours_per_day', 'constraint_value': Decimal('12'), 'effective_from': DAY,
        })
        planning.create_constraint(self.company.id, {
            'equipment': self.still, 'constraint_type': 'max_hours_per_day',
            'constraint_value': Decimal('10'), 'effective_from': DAY,
        })

        constraints = list(analysis.active_constraints(self.company.id, DAY, DAY))

        self.assertEqual(analysis.daily_hours(constraints, self.still.id), Decimal('10'))
        self.assertEqual(analysis.daily_hours(constraints, facility_only=True), Decimal('12'))

    def test_deactivated_constraint_no_longer_applies(self):
        constraint = planning.create_constraint(self.company.id, {
            'constraint_type': 'max_hours_per_day', 'constraint_value': Decimal('12'), 'effective_from': DAY,
        })
        planning.deactivate_constraint(constraint)

        constraints = list(analysis.active_constraints(self.company.id, DAY, DAY))

        self.assertEqual(analysis.daily_hours(constraints), analysis.DEFAULT_DAILY_OPERATING_HOURS)


class ForecastTests(TestCase):

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.still = TestDataFactory.create_equipment(self.company)

    def test_synthetic_history_when_snapshots_missing(self):
        history, synthetic = forecasting.historical_utilization(self.company.id, today=DAY)

        self.assertTrue(synthetic)
        self.assertEqual(len(history), 12)

    def test_moving_average_forecast(self):
        result = forecasting.forecast_capacity(self.company.id, weeks_ahead=2, today=DAY)

        first = result['weekly_forecasts'][0]
        self.assertEqual(first['week_start'], date(2026, 6, 29))
        self.assertEqual(first['predicted_utilization'], Decimal('72.50'))
        self.assertEqual(first['lower_bound'], Decimal('62.50'))
        self.assertEqual(first['upper_bound'], Decimal('82.50'))
        self.assertEqual(first['capacity_hours'], Decimal('112.00'))
        self.assertEqual(first['projected_hours'], Decimal('81.20'))
        self.assertTrue(result['synthetic_history'])

    def test_moving_average_not_seasonally_adjusted(self):
        result = forecasting.forecast_capacity(self.company.id, weeks_ahead=1, today=date(2026, 10, 7))

        self.assertEqual(result['weekly_forecasts'][0]['predicted_utilization'], Decimal('72.50'))

    def test_seasonal_adjusted_forecast(self):
        october = forecasting.forecast_capacity(
            self.company.id, weeks_ahead=1, method=forecasting.METHOD_SEASONAL_ADJUSTED, today=date(2026, 10, 7)
        )
        january = forecasting.forecast_capacity(
            self.company.id, weeks_ahead=1, method=forecasting.METHOD_SEASONAL_ADJUSTED, today=date(2027, 1, 6)
        )

        week = october['weekly_forecasts'][0]
        self.assertEqual(week['predicted_utilization'], Decimal('83.38'))
        self.assertEqual(week['lower_bound'], Decimal('73.38'))
        self.assertEqual(week['upper_bound'], Decimal('93.38'))
        self.assertEqual(january['weekly_forecasts'][0]['predicted_utilization'], Decimal('65.25'))

    def test_exponential_smoothing_forecast(self):
        result = forecasting.forecast_capacity(
            self.company.id, weeks_ahead=2, method=forecasting.METHOD_EXPONENTIAL_SMOOTHING, today=DAY
        )

        first, second = result['weekly_forecasts']
        self.assertEqual(first['predicted_utilization'], Decimal('74.52'))
        self.assertEqual(first['lower_bound'], Decimal('64.52'))
        self.assertEqual(first['upper_bound'], Decimal('84.52'))
        self.assertEqual(second['predicted_utilization'], Decimal('74.52'))
        self.assertEqual(second['lower_bound'], Decimal('62.52'))

    def test_linear_regression_forecast(self):
        result = forecasting.forecast_capacity(
            self.company.id, weeks_ahead=2, method=forecasting.METHOD_LINEAR_REGRESSION, today=DAY
        )

        first, second = result['weekly_forecasts']
        self.assertEqual(first['predicted_utilization'], Decimal('75.91'))
        self.assertEqual(second['predicted_utilization'], Decimal('76.43'))
        self.assertEqual(second['lower_bound'], Decimal('64.43'))
        self.assertEqual(second['upper_bound'], Decimal('88.43'))

    def test_prediction_not_clamped_but_bounds_are(self):
        today = date(2026, 10, 7)
        for weeks_back in range(1, 5):
            CapacitySnapshot.objects.create(
                company=self.company, equipment=self.still,
                snapshot_date=today - timedelta(weeks=weeks_back), utilization_percent=Decimal('100')
            )

        result = forecasting.forecast_capacity(
            self.company.id, weeks_ahead=1, method=forecasting.METHOD_SEASONAL_ADJUSTED, today=today
        )

        week = result['weekly_forecasts'][0]
        self.assertFalse(result['synthetic_history'])
        self.assertEqual(week['predicted_utilization'], Decimal('115.00'))
        self.assertEqual(week['lower_bound'], Decimal('105.00'))
        self.assertEqual(week['upper_bound'], Decimal('100'))

    def test_prediction_helpers(self):
        history = [Decimal('60'), Decimal('70'), Decimal('80'), Decimal('90'), Decimal('100')]

        self.assertEqual(forecasting.moving_average(history), Decimal('85'))
        self.assertEqual(round2(forecasting.exponential_smoothing(history)), Decimal('82.27'))
        self.assertEqual(forecasting.linear_regression(history, 0), Decimal('110'))
        self.assertEqual(forecasting.linear_regression(history, 2), Decimal('130'))

    def test_weeks_ahead_bounds(self):
        with self.assertRaises(ValidationFailed):
            forecasting.forecast_capacity(self.company.id, weeks_ahead=0)
        with self.assertRaises(ValidationFailed):
            forecasting.forecast_capacity(self.company.id, weeks_ahead=53)

    def test_unknown_method_rejected(self):
        with self.assertRaises(ValidationFailed):
            forecasting.forecast_capacity(self.company.id, method='crystal_ball')

    def test_demand_defaults_without_orders(self):
        result = forecasting.forecast_demand(self.company.id, weeks_ahead=2, today=DAY)

        self.assertEqual(result['history_weeks'], 0)
        self.assertEqual(result['weekly_forecasts'][0]['predicted_quantity'], Decimal('100.00'))
        self.assertEqual(result['weekly_forecasts'][1]['predicted_quantity'], Decimal('102.00'))
        self.assertEqual(result['weekly_forecasts'][0]['predicted_batches'], 5)

    def test_gap_analysis_surplus(self):
        result = forecasting.gap_analysis(self.company.id, DAY, DAY + timedelta(days=13), today=DAY)

        self.assertEqual(len(result['weekly_gaps']), 2)
        self.assertEqual(result['total_capacity_hours'], Decimal('224.00'))
        self.assertEqual(result['total_demand_hours'], Decimal('80.00'))
        self.assertEqual(result['status'], 'surplus')
        self.assertFalse(result['has_shortfall'])

    def test_gap_analysis_deficit_without_equipment(self):
        empty = TestDataFactory.create_company()

        result = forecasting.gap_analysis(empty.id, DAY, DAY + timedelta(days=6), today=DAY)

        self.assertEqual(result['status'], 'deficit')
        self.assertTrue(result['has_shortfall'])
        self.assertEqual(len(result['recommendations']), 2)


class ScenarioTests(TestCase):

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.still = TestDataFactory.create_equipment(self.company)

    def _scenario(self, name, changes):
        return {'name': name, 'start_date': DAY, 'end_date': DAY + timedelta(days=1), 'changes': changes}

    def test_add_equipment(self):
        result = forecasting.run_scenario(self.company.id, self._scenario('Second still', [
            {'type': 'add_equipment', 'parameters': {'quantity': 1}},
        ]))

        self.assertEqual(result['baseline']['capacity_hours'], Decimal('32.00'))
        self.assertEqual(result['projected']['capacity_hours'], Decimal('64.00'))
        self.assertEqual(result['projected']['equipment_count'], 2)
        self.assertEqual(result['cost_impact'], Decimal('50000.00'))
        self.assertEqual(result['capacity_change_percent'], Decimal('100.00'))

    def test_remove_equipment_requires_id(self):
        with self.assertRaises(ValidationFailed):
            forecasting.run_scenario(self.company.id, self._scenario('Remove', [{'type': 'remove_equipment'}]))

    def test_remove_equipment(self):
        result = forecasting.run_scenario(self.company.id, self._scenario('Remove', [
            {'type': 'remove_equipment', 'equipment_id': self.still.id},
        ]))

        self.assertEqual(result['projected']['capacity_hours'], Decimal('0.00'))
        self.assertEqual(result['projected']['utilization_percent'], Decimal('0.00'))

    def test_projected_utilization_from_allocated_hours(self):
        TestDataFactory.create_allocation(self.still, DAY, hours=16)

        result = forecasting.run_scenario(self.company.id, self._scenario('Second still', [
            {'type': 'add_equipment'},
        ]))

        self.assertEqual(result['baseline']['allocated_hours'], Decimal('16.00'))
        self.assertEqual(result['baseline']['utilization_percent'], Decimal('50.00'))
        self.assertEqual(result['projected']['utilization_percent'], Decimal('25.00'))

    def test_compare_needs_two_scenarios(self):
        with self.assertRaises(ValidationFailed):
            forecasting.compare_scenarios(self.company.id, [self._scenario('Only', [])])

    def test_compare_picks_best_options(self):
        result = forecasting.compare_scenarios(self.company.id, [
            self._scenario('Second still', [{'type': 'add_equipment'}]),
            self._scenario('Longer days', [{'type': 'change_operating_hours', 'parameters': {'hours_delta': 4}}]),
        ])

        self.assertEqual(result['best_capacity_gain'], 'Second still')
        self.assertEqual(result['best_cost_per_hour'], 'Longer days')


class SnapshotTests(TestCase):

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.still = TestDataFactory.create_equipment(self.company)

    def test_capture_records_daily_utilization(self):
        TestDataFactory.create_booking(self.still, start=at(DAY, 8), hours=8)

        snapshots = analysis.capture_snapshot(self.company.id, DAY)

        self.assertEqual(len(snapshots), 1)
        self.assertEqual(snapshots[0].actual_hours, Decimal('8.00'))
        self.assertEqual(snapshots[0].available_hours, Decimal('16.00'))
        self.assertEqual(snapshots[0].utilization_percent, Decimal('50.00'))

    def test_planned_hours_come_from_active_allocations(self):
        TestDataFactory.create_allocation(self.still, DAY, DAY + timedelta(days=3), hours=40)

        snapshot = analysis.capture_snapshot(self.company.id, DAY)[0]

        self.assertEqual(snapshot.planned_hours, Decimal('10.00'))
        self.assertEqual(snapshot.actual_hours, Decimal('0.00'))

    def test_capture_replaces_same_day(self):
        analysis.capture_snapshot(self.company.id, DAY)
        TestDataFactory.create_booking(self.still, start=at(DAY, 8), hours=4)
        analysis.capture_snapshot(self.company.id, DAY)

        self.assertEqual(CapacitySnapshot.objects.filter(equipment=self.still).count(), 1)
        self.assertEqual(CapacitySnapshot.objects.get(equipment=self.still).actual_hours, Decimal('4.00'))

    def test_capture_for_all_companies(self):
        other = TestDataFactory.create_company()
        TestDataFactory.create_equipment(other)
        TestDataFactory.create_equipment(other)

        counts = analysis.capture_for_all_companies(DAY)

        self.assertEqual(counts[self.company.id], 1)
        self.assertEqual(counts[other.id], 2)


class ExportTests(TestCase):

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.still = TestDataFactory.create_equipment(self.company)

    def test_utilization_csv(self):
        TestDataFactory.create_allocation(self.still, DAY, hours=16)
        TestDataFactory.create_allocation(self.still, DAY + timedelta(days=7), hours=8)
        report = analysis.utilization_report(self.company.id, DAY, DAY + timedelta(days=9))

        self.assertEqual(exports.utilization_csv(report), (
            'Period Start,Period End,Available Hours,Allocated Hours,Utilization %\n'
            '2026-07-01,2026-07-07,112.00,16.00,14.29\n'
            '2026-07-08,2026-07-10,48.00,8.00,16.67\n'
        ))

    def test_forecast_csv(self):
        forecast = forecasting.forecast_capacity(self.company.id, weeks_ahead=1, today=DAY)

        self.assertEqual(exports.forecast_csv(forecast), (
            'Week Start,Week End,Predicted Utilization %,Lower Bound,Upper Bound,Projected Hours,Capacity Hours\n'
            '2026-06-29,2026-07-05,72.50,62.50,82.50,81.20,112.00\n'
        ))


class CapacityAPITests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.company = TestDataFactory.create_company()
        self.user = TestDataFactory.create_user(company=self.company)
        self.still = TestDataFactory.create_equipment(self.company, name='Pot Still')
        self.client.authenticate_user(self.user)

    def test_overview(self):
        TestDataFactory.create_allocation(self.still, DAY, hours=8)

        response = self.client.get('/api/v1/capacity/overview/', {'start_date': '2026-07-01', 'end_date': '2026-07-02'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['utilization_percent'], Decimal('25.00'))

    def test_overview_bad_range(self):
        response = self.client.get('/api/v1/capacity/overview/', {'start_date': '2026-07-02', 'end_date': '2026-07-01'})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)

    def test_requires_authentication(self):
        self.client.logout()
        response = self.client.get('/api/v1/capacity/overview/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_other_company_equipment_not_found(self):
        other = TestDataFactory.create_equipment(TestDataFactory.create_company())
        response = self.client.get(f'/api/v1/capacity/equipment/{other.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_other_company_access_denied(self):
        other = TestDataFactory.create_company()
        response = self.client.get('/api/v1/capacity/overview/', {'company_id': other.id})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_plan_lifecycle(self):
        response = self.client.post('/api/v1/capacity/plans/', {
            'name': 'July plan',
            'period_start': '2026-07-01',
            'period_end': '2026-07-31',
            'allocations': [{
                'equipment_id': self.still.id, 'start_date': '2026-07-01', 'end_date': '2026-07-05',
                'hours_allocated': '40.00',
            }],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        plan_id = response.data['id']
        self.assertEqual(len(response.data['allocations']), 1)

        response = self.client.post(f'/api/v1/capacity/plans/{plan_id}/validate/')
        self.assertTrue(response.data['is_valid'])

        response = self.client.post(f'/api/v1/capacity/plans/{plan_id}/activate/')
        self.assertEqual(response.data['status'], 'active')

        response = self.client.put(f'/api/v1/capacity/plans/{plan_id}/', {'name': 'Late edit'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

        response = self.client.get(f'/api/v1/capacity/plans/{plan_id}/export/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'text/csv')

        response = self.client.delete(f'/api/v1/capacity/plans/{plan_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(CapacityPlan.objects.get(pk=plan_id).status, 'archived')

    def test_non_positive_allocation_hours_rejected(self):
        response = self.client.post('/api/v1/capacity/plans/', {
            'name': 'Bad', 'period_start': '2026-07-01', 'period_end': '2026-07-31',
            'allocations': [{
                'equipment_id': self.still.id, 'start_date': '2026-07-01', 'end_date': '2026-07-05',
                'hours_allocated': '0',
            }],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_forecast_query_validation(self):
        response = self.client.get('/api/v1/capacity/forecast/', {'weeks_ahead': 60})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get('/api/v1/capacity/forecast/', {'weeks_ahead': 4, 'method': 'linear_regression'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['weekly_forecasts']), 4)

        response = self.client.get('/api/v1/capacity/forecast/', {'weeks_ahead': 1, 'method': 'seasonal_adjusted'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['method'], 'seasonal_adjusted')

    def test_capacity_by_type(self):
        TestDataFactory.create_allocation(self.still, DAY, hours=8, product_type='bourbon')

        response = self.client.get('/api/v1/capacity/by-type/', {'start_date': '2026-07-01', 'end_date': '2026-07-01'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['product_type'], 'bourbon')
        self.assertEqual(response.data[0]['share_percent'], Decimal('100.00'))

    def test_scenario_compare_needs_two(self):
        response = self.client.post('/api/v1/capacity/scenarios/compare/', {'scenarios': [{
            'name': 'Only', 'start_date': '2026-07-01', 'end_date': '2026-07-02', 'changes': [],
        }]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_constraint_crud(self):
        response = self.client.post('/api/v1/capacity/constraints/', {
            'constraint_type': 'max_hours_per_day', 'constraint_value': '30', 'effective_from': '2026-07-01',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post('/api/v1/capacity/constraints/', {
            'constraint_type': 'max_hours_per_day', 'constraint_value': '12', 'effective_from': '2026-07-01',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        constraint_id = response.data['id']

        response = self.client.delete(f'/api/v1/capacity/constraints/{constraint_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(self.client.get('/api/v1/capacity/constraints/').data, [])

    def test_snapshot_capture_and_list(self):
        response = self.client.post('/api/v1/capacity/snapshots/capture/', {'snapshot_date': '2026-07-01'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(response.data), 1)

        response = self.client.get('/api/v1/capacity/snapshots/', {'start_date': '2026-06-01', 'end_date': '2026-07-31'})
        self.assertEqual(len(response.data), 1)
