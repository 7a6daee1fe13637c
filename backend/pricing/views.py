from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import AllowAny, IsAuthenticated
from django.shortcuts import get_object_or_404
from backend.core.permissions import IsCompanyAdmin
from backend.core.utils import parse_date_param, parse_int_param
from . import admin_services, services
from .models import PricingTier, PricingFeature, PricingFaq, PricingPromotion
from .serializers import (
    PricingTierSerializer, PricingFeatureSerializer, PricingTierFeatureSerializer, TierFeatureInputSerializer,
    PricingFaqSerializer, PricingPromotionSerializer, PricingAuditLogSerializer,
    ValidatePromoSerializer, ApplyPromoSerializer
)

PUBLIC_CACHE_CONTROL = 'public, max-age=300'


def _public(data):
    response = Response(data)
    response['Cache-Control'] = PUBLIC_CACHE_CONTROL
    return response


# Public pricing page

@api_view(['GET'])
@permission_classes([AllowAny])
def pricing_page(request):
    """Tiers, features grouped by category and FAQs in one payload"""
    return _public(services.get_page_data())


@api_view(['GET'])
@permission_classes([AllowAny])
def pricing_tiers(request):
    return _public(services.get_active_tiers())


@api_view(['GET'])
@permission_classes([AllowAny])
def pricing_tier_by_slug(request, slug):
    return _public(services.get_tier_by_slug(slug))


@api_view(['GET'])
@permission_classes([AllowAny])
def pricing_features(request):
    return _public(services.get_features())


@api_view(['GET'])
@permission_classes([AllowAny])
def pricing_faqs(request):
    return _public(services.get_faqs())


@api_view(['POST'])
@permission_classes([AllowAny])
def validate_promo(request):
    serializer = ValidatePromoSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    return Response(services.validate_promo(data['code'], data.get('tier_id')))


@api_view(['POST'])
@permission_classes([AllowAny])
def apply_promo(request):
    """Discounted prices for a tier; invalid codes return 400"""
    serializer = ApplyPromoSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    return Response(services.apply_promo(data['code'], data['tier_id']))


# Administration

def _tier_detail(tier):
    tier = PricingTier.objects.prefetch_related('tier_features__feature').get(pk=tier.pk)
    return PricingTierSerializer(tier).data


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsCompanyAdmin])
def admin_tier_list_create(request):
    """All tiers, including inactive ones, or create a tier"""
    if request.method == 'GET':
        tiers = PricingTier.objects.prefetch_related('tier_features__feature').order_by('sort_order', 'id')
        return Response(PricingTierSerializer(tiers, many=True).data)

    else:  # POST
        serializer = PricingTierSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        tier = admin_services.create_tier(request, serializer.validated_data)
        return Response(_tier_detail(tier), status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsCompanyAdmin])
def admin_tier_detail(request, pk):
    tier = get_object_or_404(PricingTier, pk=pk)

    if request.method == 'GET':
        return Response(_tier_detail(tier))

    elif request.method in ('PUT', 'PATCH'):
        serializer = PricingTierSerializer(tier, data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        tier = admin_services.update_tier(request, tier, serializer.validated_data)
        return Response(_tier_detail(tier))

    else:  # DELETE
        admin_services.delete_tier(request, tier)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsCompanyAdmin])
def admin_feature_list_create(request):
    if request.method == 'GET':
        features = PricingFeature.objects.order_by('category', 'sort_order', 'id')
        return Response(PricingFeatureSerializer(features, many=True).data)

    else:  # POST
        serializer = PricingFeatureSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        feature = admin_services.create_feature(request, serializer.validated_data)
        return Response(PricingFeatureSerializer(feature).data, status=status.HTTP_201_CREATED)


@api_view(['PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsCompanyAdmin])
def admin_feature_detail(request, pk):
    feature = get_object_or_404(PricingFeature, pk=pk)

    if request.method == 'DELETE':
        admin_services.delete_feature(request, feature)
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = PricingFeatureSerializer(feature, data=request.data, partial=True)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    feature = admin_services.update_feature(request, feature, serializer.validated_data)
    return Response(PricingFeatureSerializer(feature).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsCompanyAdmin])
def admin_tier_feature_add(request, tier_id):
    """Associate a feature with a tier"""
    serializer = TierFeatureInputSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    tier_feature = admin_services.add_tier_feature(request, tier_id, serializer.validated_data)
    return Response(PricingTierFeatureSerializer(tier_feature).data, status=status.HTTP_201_CREATED)


@api_view(['PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsCompanyAdmin])
def admin_tier_feature_detail(request, tier_id, feature_id):
    if request.method == 'DELETE':
        admin_services.remove_tier_feature(request, tier_id, feature_id)
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = TierFeatureInputSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    tier_feature = admin_services.update_tier_feature(request, tier_id, feature_id, serializer.validated_data)
    return Response(PricingTierFeatureSerializer(tier_feature).data)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsCompanyAdmin])
def admin_faq_list_create(request):
    if request.method == 'GET':
        return Response(PricingFaqSerializer(PricingFaq.objects.order_by('sort_order', 'id'), many=True).data)

    else:  # POST
        serializer = PricingFaqSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        faq = admin_services.create_faq(request, serializer.validated_data)
        return Response(PricingFaqSerializer(faq).data, status=status.HTTP_201_CREATED)


@api_view(['PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsCompanyAdmin])
def admin_faq_detail(request, pk):
    faq = get_object_or_404(PricingFaq, pk=pk)

    if request.method == 'DELETE':
        admin_services.delete_faq(request, faq)
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = PricingFaqSerializer(faq, data=request.data, partial=True)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    faq = admin_services.update_faq(request, faq, serializer.validated_data)
    return Response(PricingFaqSerializer(faq).data)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsCompanyAdmin])
def admin_promotion_list_create(request):
    if request.method == 'GET':
        promotions = PricingPromotion.objects.order_by('-created_at')
        return Response(PricingPromotionSerializer(promotions, many=True).data)

    else:  # POST
        serializer = PricingPromotionSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        promotion = admin_services.create_promotion(request, serializer.validated_data)
        return Response(PricingPromotionSerializer(promotion).data, status=status.HTTP_201_CREATED)


@api_view(['PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsCompanyAdmin])
def admin_promotion_detail(request, pk):
    promotion = get_object_or_404(PricingPromotion, pk=pk)

    if request.method == 'DELETE':
        admin_services.delete_promotion(request, promotion)
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = PricingPromotionSerializer(promotion, data=request.data, partial=True)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    promotion = admin_services.update_promotion(request, promotion, serializer.validated_data)
    return Response(PricingPromotionSerializer(promotion).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsCompanyAdmin])
def admin_audit_logs(request):
    """Pricing change history, newest first"""
    params = request.query_params
    entity_id = params.get('entity_id')
    logs = admin_services.query_audit_logs(
        entity_type=params.get('entity_type'),
        entity_id=parse_int_param(entity_id, 'entity_id') if entity_id else None,
        start=parse_date_param(params.get('start_date'), 'start_date'),
        end=parse_date_param(params.get('end_date'), 'end_date'),
        limit=parse_int_param(params.get('limit'), 'limit', admin_services.DEFAULT_AUDIT_LIMIT),
    )
    return Response(PricingAuditLogSerializer(logs, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsCompanyAdmin])
def admin_preview(request):
    """Uncached page data including inactive items"""
    return Response(services.preview_page_data())
