"""
Test suite for the pricing module
Tests: public page data, caching, promo code validation and application, admin CRUD and audit trail
"""
from datetime import timedelta

from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from backend.core.exceptions import NotFound, ValidationFailed
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.pricing import services
from backend.pricing.models import PricingAuditLog, PricingFeature, PricingFaq, PricingTier, PricingTierFeature


class PricingFormattingTests(TestCase):

    def test_whole_dollar_format(self):
        self.assertEqual(services.format_whole_dollars(123400), '$1,234')
        self.assertEqual(services.format_whole_dollars(29900), '$299')
        self.assertIsNone(services.format_whole_dollars(None))

    def test_dollar_format_with_cents(self):
        self.assertEqual(services.format_dollars(123450), '$1,234.50')
        self.assertEqual(services.format_dollars(0), '$0.00')

    def test_discount_descriptions(self):
        self.assertEqual(services.discount_description('percentage', 25), '25% off')
        self.assertEqual(services.discount_description('fixed_amount', 5000), '$50.00 off')
        self.assertEqual(services.discount_description('free_months', 2), '2 free month(s)')


class PublicPricingTests(TestCase):
    """Anonymous pricing page endpoints"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.starter = TestDataFactory.create_pricing_tier(name='Starter', slug='starter', sort_order=1,
                                                           monthly_price_cents=123400)
        self.pro = TestDataFactory.create_pricing_tier(name='Pro', slug='pro', sort_order=2, is_popular=True,
                                                       annual_discount_percent=0)
        TestDataFactory.create_pricing_tier(name='Legacy', slug='legacy', sort_order=0, is_active=False)

        self.barrels = PricingFeature.objects.create(name='Barrel tracking', category='Inventory', sort_order=1)
        self.reports = PricingFeature.objects.create(name='TTB reports', category='Compliance', sort_order=1)
        self.hidden = PricingFeature.objects.create(name='Beta', category='Compliance', sort_order=2, is_active=False)
        self.misc = PricingFeature.objects.create(name='Support', sort_order=1)
        PricingTierFeature.objects.create(tier=self.starter, feature=self.barrels, limit_value='100')
        PricingTierFeature.objects.create(tier=self.starter, feature=self.reports, is_included=False)
        PricingTierFeature.objects.create(tier=self.starter, feature=self.hidden)

        PricingFaq.objects.create(question='Second?', answer='B', sort_order=2)
        PricingFaq.objects.create(question='First?', answer='A', sort_order=1)
        PricingFaq.objects.create(question='Hidden?', answer='C', sort_order=0, is_active=False)

    def test_tiers_active_only_in_sort_order(self):
        response = self.client.get('/api/v1/pricing/tiers/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([t['slug'] for t in response.data], ['starter', 'pro'])

    def test_tier_formatting_and_features(self):
        response = self.client.get('/api/v1/pricing/tiers/')
        starter = response.data[0]
        self.assertEqual(starter['monthly_price_formatted'], '$1,234')
        self.assertEqual(starter['annual_savings_message'], 'Save 20%')
        # Inactive features are hidden; features sort by category then sort order
        self.assertEqual([f['name'] for f in starter['features']], ['TTB reports', 'Barrel tracking'])
        self.assertFalse(starter['features'][0]['is_included'])
        self.assertIsNone(response.data[1]['annual_savings_message'])

    def test_tier_by_slug_is_case_insensitive(self):
        response = self.client.get('/api/v1/pricing/tiers/PRO/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['name'], 'Pro')

    def test_unknown_or_inactive_slug_returns_404(self):
        self.assertEqual(self.client.get('/api/v1/pricing/tiers/legacy/').status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(self.client.get('/api/v1/pricing/tiers/nope/').status_code, status.HTTP_404_NOT_FOUND)

    def test_features_grouped_by_category(self):
        response = self.client.get('/api/v1/pricing/features/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        groups = {g['category']: [f['name'] for f in g['features']] for g in response.data}
        self.assertEqual(groups['Compliance'], ['TTB reports'])
        self.assertEqual(groups['Inventory'], ['Barrel tracking'])
        self.assertEqual(groups['Other'], ['Support'])

    def test_faqs_active_in_order(self):
        response = self.client.get('/api/v1/pricing/faqs/')
        self.assertEqual([f['question'] for f in response.data], ['First?', 'Second?'])

    def test_page_data(self):
        response = self.client.get('/api/v1/pricing/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['tiers']), 2)
        self.assertEqual(len(response.data['faqs']), 2)
        self.assertIn('features_by_category', response.data)
        self.assertIn('generated_at', response.data)

    def test_page_data_is_cached(self):
        self.client.get('/api/v1/pricing/tiers/')
        self.assertIsNotNone(cache.get(services.CACHE_KEY_TIERS))
        PricingTier.objects.filter(pk=self.pro.pk).update(name='Renamed')
        response = self.client.get('/api/v1/pricing/tiers/')
        self.assertEqual(response.data[1]['name'], 'Pro')

    def test_invalidate_cache_clears_keys(self):
        services.get_page_data()
        services.invalidate_cache()
        for key in services.CACHE_KEYS:
            self.assertIsNone(cache.get(key))


class PromoCodeTests(TestCase):

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.tier = TestDataFactory.create_pricing_tier(monthly_price_cents=29900, annual_price_cents=287000)
        self.other_tier = TestDataFactory.create_pricing_tier()

    def test_blank_code(self):
        result = services.validate_promo('  ')
        self.assertFalse(result['is_valid'])
        self.assertEqual(result['error_message'], 'Promo code is required')

    def test_unknown_code(self):
        self.assertEqual(services.validate_promo('NOPE')['error_message'], 'Invalid promo code')

    def test_inactive_code_is_invalid(self):
        TestDataFactory.create_promotion(code='OLD', is_active=False)
        self.assertEqual(services.validate_promo('OLD')['error_message'], 'Invalid promo code')

    def test_code_lookup_is_case_insensitive(self):
        TestDataFactory.create_promotion(code='SAVE20')
        result = services.validate_promo('save20')
        self.assertTrue(result['is_valid'])
        self.assertEqual(result['promotion']['code'], 'SAVE20')
        self.assertEqual(result['promotion']['discount_description'], '20% off')

    def test_not_yet_active(self):
        TestDataFactory.create_promotion(code='SOON', valid_from=timezone.now() + timedelta(days=1))
        self.assertEqual(services.validate_promo('SOON')['error_message'], 'This promo code is not yet active')

    def test_expired(self):
        TestDataFactory.create_promotion(code='GONE', valid_until=timezone.now() - timedelta(days=1))
        self.assertEqual(services.validate_promo('GONE')['error_message'], 'This promo code has expired')

    def test_max_redemptions(self):
        TestDataFactory.create_promotion(code='FULL', max_redemptions=5, current_redemptions=5)
        self.assertEqual(
            services.validate_promo('FULL')['error_message'],
            'This promo code has reached its maximum redemptions'
        )

    def test_tier_restriction(self):
        TestDataFactory.create_promotion(code='PROONLY', applies_to_tiers=[self.tier.id])
        self.assertTrue(services.validate_promo('PROONLY', self.tier.id)['is_valid'])
        self.assertTrue(services.validate_promo('PROONLY')['is_valid'])
        self.assertEqual(
            services.validate_promo('PROONLY', self.other_tier.id)['error_message'],
            'This promo code is not applicable to the selected tier'
        )

    def test_apply_percentage(self):
        TestDataFactory.create_promotion(code='SAVE15', discount_value=15)
        result = services.apply_promo('SAVE15', self.tier.id)
        self.assertTrue(result['success'])
        # 29900 * 15 / 100 = 4485
        self.assertEqual(result['discounted_monthly_price_cents'], 25415)
        self.assertEqual(result['discounted_annual_price_cents'], 287000 - 43050)
        self.assertEqual(result['discounted_monthly_price_formatted'], '$254.15')
        self.assertIsNone(result['free_months'])

    def test_apply_fixed_amount_never_negative(self):
        TestDataFactory.create_promotion(code='BIG', discount_type='fixed_amount', discount_value=50000)
        result = services.apply_promo('BIG', self.tier.id)
        self.assertEqual(result['discounted_monthly_price_cents'], 0)
        self.assertEqual(result['discounted_annual_price_cents'], 237000)

    def test_apply_free_months(self):
        TestDataFactory.create_promotion(code='FREE2', discount_type='free_months', discount_value=2)
        result = services.apply_promo('FREE2', self.tier.id)
        self.assertEqual(result['free_months'], 2)
        self.assertEqual(result['discounted_monthly_price_cents'], 29900)

    def test_apply_to_custom_pricing_tier_rejected(self):
        custom = TestDataFactory.create_pricing_tier(is_custom_pricing=True, monthly_price_cents=None)
        TestDataFactory.create_promotion(code='ANY')
        with self.assertRaises(ValidationFailed) as ctx:
            services.apply_promo('ANY', custom.id)
        self.assertEqual(ctx.exception.message, 'Promo codes cannot be applied to custom pricing tiers')

    def test_apply_unknown_tier(self):
        TestDataFactory.create_promotion(code='ANY')
        with self.assertRaises(ValidationFailed) as ctx:
            services.apply_promo('ANY', 999999)
        self.assertEqual(ctx.exception.message, 'Tier not found')

    def test_validate_endpoint_is_anonymous(self):
        TestDataFactory.create_promotion(code='WELCOME')
        response = self.client.post('/api/v1/pricing/validate-promo/', {'code': 'WELCOME'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_valid'])

    def test_apply_endpoint_invalid_code_returns_400(self):
        response = self.client.post(
            '/api/v1/pricing/apply-promo/', {'code': 'NOPE', 'tier_id': self.tier.id}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Invalid promo code')

    def test_apply_endpoint_requires_tier(self):
        response = self.client.post('/api/v1/pricing/apply-promo/', {'code': 'X'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class PricingAdminTests(TestCase):
    """Admin CRUD, audit trail and preview"""

    def setUp(self):
        cache.clear()
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_non_admin_forbidden(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_user(user_type='distiller'))
        response = client.get('/api/v1/admin/pricing/tiers/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_anonymous_unauthorized(self):
        response = AuthenticatedAPIClient().get('/api/v1/admin/pricing/tiers/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_create_tier_writes_audit_and_invalidates_cache(self):
        services.get_active_tiers()
        response = self.client.post('/api/v1/admin/pricing/tiers/', {
            'name': 'Enterprise', 'slug': 'enterprise', 'is_custom_pricing': True,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIsNone(cache.get(services.CACHE_KEY_TIERS))

        entry = PricingAuditLog.objects.get(entity_type='PricingTier', entity_id=response.data['id'])
        self.assertEqual(entry.action, 'create')
        self.assertEqual(entry.changed_by, self.admin)
        self.assertEqual(entry.change_description, "Pricing tier 'Enterprise' (enterprise) was created")
        self.assertIsNone(entry.old_values)
        self.assertEqual(entry.new_values['slug'], 'enterprise')

    def test_create_tier_requires_name_and_slug(self):
        response = self.client.post('/api/v1/admin/pricing/tiers/', {'name': 'X'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Name and slug are required')

    def test_duplicate_slug_rejected(self):
        TestDataFactory.create_pricing_tier(slug='pro')
        response = self.client.post('/api/v1/admin/pricing/tiers/', {'name': 'Pro 2', 'slug': 'pro'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'A tier with this slug already exists')

    def test_update_tier_id_mismatch(self):
        tier = TestDataFactory.create_pricing_tier()
        response = self.client.put(
            f'/api/v1/admin/pricing/tiers/{tier.id}/', {'id': tier.id + 1, 'name': 'X'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'ID mismatch')

    def test_update_tier_records_old_values(self):
        tier = TestDataFactory.create_pricing_tier(name='Starter', slug='starter')
        response = self.client.put(
            f'/api/v1/admin/pricing/tiers/{tier.id}/', {'id': tier.id, 'monthly_price_cents': 39900}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        entry = PricingAuditLog.objects.get(entity_type='PricingTier', action='update')
        self.assertEqual(entry.old_values['monthly_price_cents'], 29900)
        self.assertEqual(entry.new_values['monthly_price_cents'], 39900)

    def test_deactivating_tier_logged_as_deactivate(self):
        tier = TestDataFactory.create_pricing_tier(name='Starter', slug='starter')
        self.client.patch(f'/api/v1/admin/pricing/tiers/{tier.id}/', {'is_active': False}, format='json')
        entry = PricingAuditLog.objects.get(entity_type='PricingTier')
        self.assertEqual(entry.action, 'deactivate')
        self.assertEqual(entry.change_description, "Pricing tier 'Starter' (starter) was deactivated")

    def test_delete_tier(self):
        tier = TestDataFactory.create_pricing_tier()
        response = self.client.delete(f'/api/v1/admin/pricing/tiers/{tier.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(PricingTier.objects.filter(pk=tier.id).exists())
        entry = PricingAuditLog.objects.get(action='delete')
        self.assertEqual(entry.entity_id, tier.id)
        self.assertIsNone(entry.new_values)

    def test_feature_requires_name(self):
        response = self.client.post('/api/v1/admin/pricing/features/', {'category': 'X'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Name is required')

    def test_tier_feature_mapping(self):
        tier = TestDataFactory.create_pricing_tier()
        feature = PricingFeature.objects.create(name='API access')
        url = f'/api/v1/admin/pricing/tiers/{tier.id}/features/'

        response = self.client.post(url, {'feature_id': feature.id, 'limit_value': '10'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.client.post(url, {'feature_id': feature.id}, format='json')
        self.assertEqual(response.data['error'], 'This feature is already associated with this tier')

        response = self.client.post(url, {'feature_id': 999999}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'Feature not found')

        response = self.client.put(f'{url}{feature.id}/', {'is_included': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(PricingTierFeature.objects.get(tier=tier, feature=feature).is_included)

        response = self.client.delete(f'{url}{feature.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        descriptions = list(PricingAuditLog.objects.values_list('change_description', flat=True))
        self.assertIn(f"Tier-feature mapping (Tier {tier.id}, Feature {feature.id}) was deleted", descriptions)

    def test_tier_feature_unknown_tier(self):
        feature = PricingFeature.objects.create(name='API access')
        response = self.client.post('/api/v1/admin/pricing/tiers/999999/features/', {'feature_id': feature.id},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'Tier not found')

    def test_faq_requires_question_and_answer(self):
        response = self.client.post('/api/v1/admin/pricing/faqs/', {'question': 'Why?'}, format='json')
        self.assertEqual(response.data['error'], 'Question and answer are required')

    def test_faq_description_truncates_question(self):
        question = 'Q' * 80
        self.client.post('/api/v1/admin/pricing/faqs/', {'question': question, 'answer': 'A'}, format='json')
        entry = PricingAuditLog.objects.get(entity_type='PricingFaq')
        self.assertEqual(entry.change_description, f"FAQ '{'Q' * 50}' was created")

    def test_promotion_code_rules(self):
        response = self.client.post('/api/v1/admin/pricing/promotions/', {'discount_value': 10}, format='json')
        self.assertEqual(response.data['error'], 'Code is required')

        TestDataFactory.create_promotion(code='SAVE10')
        response = self.client.post('/api/v1/admin/pricing/promotions/', {
            'code': 'save10', 'discount_value': 10,
        }, format='json')
        self.assertEqual(response.data['error'], 'A promotion with this code already exists')

    def test_create_promotion(self):
        response = self.client.post('/api/v1/admin/pricing/promotions/', {
            'code': 'LAUNCH', 'discount_type': 'fixed_amount', 'discount_value': 5000, 'applies_to_tiers': [1, 2],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['applies_to_tiers'], [1, 2])
        entry = PricingAuditLog.objects.get(entity_type='PricingPromotion')
        self.assertEqual(entry.change_description, "Promo code 'LAUNCH' was created")

    def test_audit_log_query_filters_and_limit(self):
        for i in range(3):
            self.client.post('/api/v1/admin/pricing/features/', {'name': f'F{i}'}, format='json')
        TestDataFactory.create_pricing_tier()
        self.client.post('/api/v1/admin/pricing/faqs/', {'question': 'Q', 'answer': 'A'}, format='json')

        response = self.client.get('/api/v1/admin/pricing/audit-logs/', {'entity_type': 'PricingFeature', 'limit': 2})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)
        self.assertEqual(response.data[0]['new_values']['name'], 'F2')

    def test_preview_includes_inactive_items(self):
        TestDataFactory.create_pricing_tier(slug='hidden', is_active=False)
        PricingFaq.objects.create(question='Hidden?', answer='A', is_active=False)
        response = self.client.get('/api/v1/admin/pricing/preview/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('hidden', [t['slug'] for t in response.data['tiers']])
        self.assertEqual(len(response.data['faqs']), 1)
        self.assertIsNone(cache.get(services.CACHE_KEY_PAGE_DATA))

    def test_get_tier_by_slug_raises_not_found(self):
        with self.assertRaises(NotFound):
            services.get_tier_by_slug('missing')
