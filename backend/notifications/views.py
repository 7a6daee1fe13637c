import logging
from django.conf import settings
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import AllowAny, IsAuthenticated
from backend.core.utils import get_user_agent
from . import services
from .serializers import PushSubscriptionSerializer, SubscribeSerializer, NotificationPreferenceSerializer

logger = logging.getLogger('backend.notifications')


@api_view(['GET'])
@permission_classes([AllowAny])
def vapid_public_key(request):
    """Public VAPID key the browser needs to subscribe"""
    if not settings.VAPID_PUBLIC_KEY:
        return Response({'error': 'Push notifications not configured'}, status=status.HTTP_404_NOT_FOUND)
    return Response({'public_key': settings.VAPID_PUBLIC_KEY})


@api_view(['POST', 'DELETE'])
@permission_classes([IsAuthenticated])
def subscribe(request):
    """Register this browser for push notifications, or unregister it by endpoint"""
    if request.method == 'POST':
        serializer = SubscribeSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({'error': 'Invalid subscription data', 'details': serializer.errors},
                            status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data
        subscription = services.save_subscription(
            request.user,
            data['endpoint'],
            data['p256dh_key'],
            data['auth_key'],
            user_agent=get_user_agent(request),
            device_name=data.get('device_name'),
        )
        logger.info(f"User {request.user.username} subscribed to push notifications")
        return Response(PushSubscriptionSerializer(subscription).data)
    else:  # DELETE
        endpoint = request.data.get('endpoint') if isinstance(request.data, dict) else None
        if not endpoint:
            return Response({'error': 'Endpoint is required'}, status=status.HTTP_400_BAD_REQUEST)
        if not services.remove_subscription(request.user, endpoint=endpoint):
            return Response({'error': 'Subscription not found'}, status=status.HTTP_404_NOT_FOUND)
        logger.info(f"User {request.user.username} unsubscribed from push notifications")
        return Response({'message': 'Unsubscribed successfully'})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def subscription_list(request):
    return Response(PushSubscriptionSerializer(services.active_subscriptions(request.user), many=True).data)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def subscription_delete(request, pk):
    if not services.remove_subscription(request.user, subscription_id=pk):
        return Response({'error': 'Subscription not found'}, status=status.HTTP_404_NOT_FOUND)
    return Response({'message': 'Subscription removed'})


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated])
def preferences(request):
    """Get or update the current user's notification preferences"""
    current = services.get_preferences(request.user)

    if request.method == 'GET':
        return Response(NotificationPreferenceSerializer(current).data)
    else:  # PUT
        serializer = NotificationPreferenceSerializer(current, data=request.data, partial=True)
        if serializer.is_valid():
            updated = services.update_preferences(request.user, serializer.validated_data)
            return Response(NotificationPreferenceSerializer(updated).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def send_test(request):
    """Send a test notification to the current user's devices"""
    if services.send_test_notification(request.user):
        return Response({'message': 'Test notification sent'})
    return Response({'error': 'No notification was delivered. Check that this device is subscribed.'},
                    status=status.HTTP_400_BAD_REQUEST)
