import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from backend.core.permissions import IsCompanyAdmin, resolve_company_id
from backend.core.utils import create_audit_log, parse_int_param
from . import services
from .serializers import (
    WebhookSubscriptionSerializer, WebhookSubscriptionCreatedSerializer, WebhookSubscriptionInputSerializer,
    WebhookDeliverySerializer
)

logger = logging.getLogger('backend.webhooks')


def _audit(request, subscription, action, changes=None):
    create_audit_log(
        request=request,
        action=action,
        model_name='WebhookSubscription',
        object_id=subscription.id,
        object_name=subscription.name,
        company=subscription.company,
        changes=changes,
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def event_types(request):
    return Response({'event_types': services.EVENT_TYPES})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsCompanyAdmin])
def subscription_list_create(request):
    """List a company's webhooks or register a new endpoint"""
    company_id = resolve_company_id(request)

    if request.method == 'GET':
        return Response(WebhookSubscriptionSerializer(services.list_subscriptions(company_id), many=True).data)

    else:  # POST
        serializer = WebhookSubscriptionInputSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data
        subscription = services.create_subscription(
            company_id, data['name'], data['target_url'], data['event_types'], created_by=request.user
        )
        _audit(request, subscription, 'create', {
            'target_url': subscription.target_url,
            'event_types': subscription.event_types,
        })
        return Response(WebhookSubscriptionCreatedSerializer(subscription).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated, IsCompanyAdmin])
def subscription_detail(request, pk):
    subscription = services.get_subscription(resolve_company_id(request), pk)

    if request.method == 'GET':
        return Response(WebhookSubscriptionSerializer(subscription).data)

    else:  # DELETE
        _audit(request, subscription, 'delete')
        services.delete_subscription(subscription)
        return Response({'message': 'Webhook subscription deleted'})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsCompanyAdmin])
def subscription_deactivate(request, pk):
    subscription = services.set_active(services.get_subscription(resolve_company_id(request), pk), False)
    _audit(request, subscription, 'deactivate')
    return Response(WebhookSubscriptionSerializer(subscription).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsCompanyAdmin])
def subscription_reactivate(request, pk):
    subscription = services.set_active(services.get_subscription(resolve_company_id(request), pk), True)
    _audit(request, subscription, 'activate')
    return Response(WebhookSubscriptionSerializer(subscription).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsCompanyAdmin])
def subscription_deliveries(request, pk):
    """Most recent delivery attempts for a webhook, newest first"""
    subscription = services.get_subscription(resolve_company_id(request), pk)
    limit = parse_int_param(request.query_params.get('limit'), 'limit', services.DEFAULT_DELIVERY_LIMIT)
    limit = max(1, min(limit, 200))
    deliveries = services.recent_deliveries(subscription, limit)
    return Response(WebhookDeliverySerializer(deliveries, many=True).data)
