"""
Test suite for the core app
Tests: authentication, companies, audit logs, health checks, device detection and shared helpers
"""
from datetime import date
from decimal import Decimal
from unittest.mock import patch

from django.core.cache import cache
from django.test import TestCase, RequestFactory
from rest_framework import status

from backend.core import mobile
from backend.core.cache_utils import invalidate_cache_pattern
from backend.core.exceptions import ValidationFailed
from backend.core.models import AuditLog, UserSitePreference
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.core.utils import (
    build_csv, create_audit_log, get_client_ip, parse_date_param, parse_int_param, round2, sanitize_for_log
)

IPHONE_UA = (
    'Mozilla/5.0 (iPhone; CPU iPhone OS 17_1 like Mac OS X) AppleWebKit/605.1.15 '
    '(KHTML, like Gecko) Version/17.1 Mobile/15E148 Safari/604.1'
)
IPAD_UA = (
    'Mozilla/5.0 (iPad; CPU OS 16_0 like Mac OS X) AppleWebKit/605.1.15 '
    '(KHTML, like Gecko) Version/16.0 Safari/604.1'
)
ANDROID_PHONE_UA = (
    'Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120.0.0.0 Mobile Safari/537.36'
)
WINDOWS_CHROME_UA = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
)
GOOGLEBOT_UA = 'Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)'


class AuthenticationTests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.company = TestDataFactory.create_company(name='Old Forge Distilling')
        self.user = TestDataFactory.create_user(username='distiller1', password='secret123', company=self.company,
                                                first_name='Sam', last_name='Reed')

    def test_login_returns_token_pair(self):
        response = self.client.post('/api/v1/auth/login/', {'username': 'distiller1', 'password': 'secret123'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.user.refresh_from_db()
        self.assertIsNotNone(self.user.last_login)

    def test_login_wrong_password(self):
        response = self.client.post('/api/v1/auth/login/', {'username': 'distiller1', 'password': 'nope'})
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh_for_deleted_user_rejected(self):
        refresh = self.client.post(
            '/api/v1/auth/login/', {'username': 'distiller1', 'password': 'secret123'}
        ).data['refresh']
        self.user.delete()

        response = self.client.post('/api/v1/auth/refresh/', {'refresh': refresh})

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me(self):
        self.client.authenticate_user(self.user)

        response = self.client.get('/api/v1/auth/me/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['name'], 'Sam Reed')
        self.assertEqual(response.data['company_name'], 'Old Forge Distilling')
        self.assertFalse(response.data['is_admin'])
        self.assertFalse(response.data['can_review_ttb_reports'])

    def test_me_requires_authentication(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class CompanyAPITests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.company = TestDataFactory.create_company()
        self.other = TestDataFactory.create_company()
        self.admin = TestDataFactory.create_admin(company=self.company)
        self.distiller = TestDataFactory.create_user(company=self.company)

    def test_list_shows_own_company_only(self):
        self.client.authenticate_user(self.distiller)

        response = self.client.get('/api/v1/companies/')

        self.assertEqual([c['id'] for c in response.data], [self.company.id])

    def test_super_admin_sees_all_companies(self):
        super_admin = TestDataFactory.create_user(company=self.company, user_type='super_admin')
        self.client.authenticate_user(super_admin)

        response = self.client.get('/api/v1/companies/')

        self.assertEqual(len(response.data), 2)

    def test_other_company_forbidden(self):
        self.client.authenticate_user(self.distiller)
        response = self.client.get(f'/api/v1/companies/{self.other.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_only_admin_updates_settings(self):
        self.client.authenticate_user(self.distiller)
        response = self.client.patch(f'/api/v1/companies/{self.company.id}/', {'city': 'Bardstown'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.admin)
        response = self.client.patch(f'/api/v1/companies/{self.company.id}/', {'city': 'Bardstown'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['city'], 'Bardstown')

    def test_report_schedule_validation(self):
        self.client.authenticate_user(self.admin)
        response = self.client.patch(
            f'/api/v1/companies/{self.company.id}/', {'ttb_auto_report_day_of_month': 31}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_company_users_active_only(self):
        TestDataFactory.create_user(company=self.company, is_active=False)
        self.client.authenticate_user(self.admin)

        response = self.client.get(f'/api/v1/companies/{self.company.id}/users/')

        self.assertEqual(len(response.data), 2)


class AuditLogTests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.company = TestDataFactory.create_company()
        self.user = TestDataFactory.create_user(company=self.company)
        self.factory = RequestFactory()

    def test_create_audit_log_uses_request_user_and_ip(self):
        request = self.factory.post('/', HTTP_X_FORWARDED_FOR='10.0.0.1, 10.0.0.2')
        request.user = self.user

        entry = create_audit_log(request=request, action='create', model_name='Barrel', object_id=12,
                                 object_name='BRL-1', company=self.company)

        self.assertEqual(entry.user, self.user)
        self.assertEqual(entry.ip_address, '10.0.0.1')
        self.assertEqual(entry.object_id, '12')

    def test_missing_fields_skip_audit(self):
        self.assertIsNone(create_audit_log(action='create', model_name='Barrel'))
        self.assertEqual(AuditLog.objects.count(), 0)

    def test_list_scoped_to_company_and_filtered(self):
        other = TestDataFactory.create_company()
        create_audit_log(user=self.user, action='create', model_name='Barrel', object_id=1, company=self.company)
        create_audit_log(user=self.user, action='delete', model_name='Barrel', object_id=2, company=self.company)
        create_audit_log(user=self.user, action='create', model_name='Barrel', object_id=3, company=other)
        self.client.authenticate_user(self.user)

        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.data['count'], 2)

        response = self.client.get('/api/v1/audit-logs/', {'action': 'delete'})
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['object_id'], '2')

    def test_detail_other_company_forbidden(self):
        entry = create_audit_log(user=self.user, action='create', model_name='Barrel', object_id=1,
                                 company=TestDataFactory.create_company())
        self.client.authenticate_user(self.user)

        response = self.client.get(f'/api/v1/audit-logs/{entry.id}/')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class HealthTests(TestCase):

    def test_health_is_public(self):
        response = AuthenticatedAPIClient().get('/api/v1/health/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'healthy')

    def test_detailed_health_checks_database_and_cache(self):
        response = AuthenticatedAPIClient().get('/api/v1/health/detailed/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['checks']['database']['status'], 'healthy')
        self.assertEqual(response.data['checks']['cache']['status'], 'healthy')

    def test_correlation_id_echoed(self):
        response = AuthenticatedAPIClient().get('/api/v1/health/', HTTP_X_CORRELATION_ID='abc-123')
        self.assertEqual(response['X-Correlation-ID'], 'abc-123')


class DeviceDetectionTests(TestCase):

    def setUp(self):
        cache.clear()

    def test_iphone(self):
        result = mobile.detect_device(IPHONE_UA)
        self.assertEqual(result['device_type'], 'mobile')
        self.assertEqual(result['device_name'], 'iPhone')
        self.assertEqual(result['operating_system'], 'iOS 17.1')
        self.assertEqual(result['recommended_site'], 'mobile')
        self.assertTrue(result['has_touch_capability'])

    def test_ipad_is_tablet_served_mobile(self):
        result = mobile.detect_device(IPAD_UA)
        self.assertEqual(result['device_type'], 'tablet')
        self.assertEqual(result['device_name'], 'iPad')
        self.assertEqual(result['recommended_site'], 'mobile')

    def test_android_phone(self):
        result = mobile.detect_device(ANDROID_PHONE_UA)
        self.assertEqual(result['device_name'], 'Android Phone')
        self.assertEqual(result['browser'], 'Chrome')
        self.assertEqual(result['operating_system'], 'Android 14')

    def test_windows_desktop(self):
        result = mobile.detect_device(WINDOWS_CHROME_UA)
        self.assertEqual(result['device_type'], 'desktop')
        self.assertEqual(result['operating_system'], 'Windows 10/11')
        self.assertEqual(result['recommended_site'], 'desktop')

    def test_bots_never_redirected(self):
        result = mobile.detect_device(GOOGLEBOT_UA)
        self.assertTrue(result['is_bot'])
        self.assertFalse(mobile.should_redirect_to_mobile(GOOGLEBOT_UA))
        self.assertFalse(mobile.should_redirect_to_desktop(GOOGLEBOT_UA))

    def test_empty_user_agent(self):
        result = mobile.detect_device('')
        self.assertEqual(result['device_type'], 'unknown')
        self.assertEqual(result['recommended_site'], 'desktop')

    def test_narrow_screen_recommends_mobile(self):
        detection = mobile.detect_device(WINDOWS_CHROME_UA)
        self.assertEqual(mobile.get_recommended_site(detection, screen_width=500), 'mobile')
        self.assertEqual(mobile.get_recommended_site(detection, screen_width=1280), 'desktop')

    def test_explicit_preference_wins(self):
        self.assertFalse(mobile.should_redirect_to_mobile(IPHONE_UA, preference='desktop'))
        self.assertTrue(mobile.should_redirect_to_mobile(WINDOWS_CHROME_UA, preference='mobile'))
        self.assertTrue(mobile.should_redirect_to_desktop(IPHONE_UA, preference='desktop'))

    def test_invalid_preference_rejected(self):
        with self.assertRaises(ValidationFailed):
            mobile.save_preference('tablet', IPHONE_UA, session_id='abc')

    def test_anonymous_preference_needs_session(self):
        with self.assertRaises(ValidationFailed):
            mobile.save_preference('mobile', IPHONE_UA)


class MobileAPITests(TestCase):

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()

    def test_detect_from_header(self):
        response = self.client.get('/api/v1/mobile/detect/', HTTP_USER_AGENT=IPHONE_UA)
        self.assertEqual(response.data['device_type'], 'mobile')
        self.assertIsNone(response.data['user_preference'])

    def test_detect_rejects_bad_screen_width(self):
        response = self.client.get('/api/v1/mobile/detect/', {'screen_width': 'wide'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_anonymous_preference_sets_session_cookie(self):
        response = self.client.post('/api/v1/mobile/preference/', {'preferred_site': 'Mobile'},
                                    HTTP_USER_AGENT=IPHONE_UA)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['preferred_site'], 'mobile')
        self.assertIn('caskr_session_id', response.cookies)

        response = self.client.get('/api/v1/mobile/preference/')
        self.assertEqual(response.data['preferred_site'], 'mobile')

    def test_user_preference_updated_in_place(self):
        user = TestDataFactory.create_user()
        self.client.authenticate_user(user)

        self.client.post('/api/v1/mobile/preference/', {'preferred_site': 'mobile'})
        self.client.post('/api/v1/mobile/preference/', {'preferred_site': 'desktop'})

        self.assertEqual(UserSitePreference.objects.filter(user=user).count(), 1)
        self.assertEqual(UserSitePreference.objects.get(user=user).preferred_site, 'desktop')

    def test_default_preference_is_auto(self):
        response = self.client.get('/api/v1/mobile/preference/')
        self.assertEqual(response.data['preferred_site'], 'auto')


class HelperTests(TestCase):

    def test_round2_half_up(self):
        self.assertEqual(round2(Decimal('2.345')), Decimal('2.35'))
        self.assertEqual(round2(1.005), Decimal('1.01'))

    def test_parse_date_param(self):
        self.assertEqual(parse_date_param('2026-07-01', 'start_date'), date(2026, 7, 1))
        self.assertEqual(parse_date_param('2026-07-01T10:00:00Z', 'start_date'), date(2026, 7, 1))
        self.assertIsNone(parse_date_param('', 'start_date'))
        with self.assertRaises(ValidationFailed):
            parse_date_param('07/01/2026', 'start_date')

    def test_parse_int_param(self):
        self.assertEqual(parse_int_param('5', 'limit'), 5)
        self.assertEqual(parse_int_param(None, 'limit', 10), 10)
        with self.assertRaises(ValidationFailed):
            parse_int_param('five', 'limit')

    def test_sanitize_for_log(self):
        self.assertEqual(sanitize_for_log('line1\r\nline2'), 'line1line2')
        self.assertEqual(sanitize_for_log(None), '')

    def test_build_csv_quotes_fields(self):
        content = build_csv(['Name', 'Notes'], [['Rye, 2yr', 'said "hi"'], ['Bourbon', None]])
        self.assertEqual(content, 'Name,Notes\n"Rye, 2yr","said ""hi"""\nBourbon,\n')

    def test_client_ip_falls_back_to_remote_addr(self):
        request = RequestFactory().get('/', REMOTE_ADDR='192.168.1.5')
        self.assertEqual(get_client_ip(request), '192.168.1.5')
        self.assertIsNone(get_client_ip(None))

    def test_invalidate_without_redis_deletes_known_keys(self):
        cache.set('Pricing:Tiers', 'cached')
        with patch('django_redis.get_redis_connection', side_effect=NotImplementedError):
            invalidate_cache_pattern('Pricing:', known_keys=['Pricing:Tiers'])
        self.assertIsNone(cache.get('Pricing:Tiers'))
