import logging
import uuid

from django.core.cache import cache
from django.core.exceptions import ObjectDoesNotExist
from django.db import connection
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from . import mobile
from .filters import AuditLogFilter
from .models import Company, User, AuditLog
from .permissions import ensure_company_access, is_admin
from .serializers import CompanySerializer, UserSerializer, AuditLogSerializer, SitePreferenceSerializer
from .utils import paginate

logger = logging.getLogger('backend.core')

SESSION_ID_COOKIE = 'caskr_session_id'


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        if not self.user.is_active:
            from rest_framework_simplejwt.exceptions import AuthenticationFailed
            raise AuthenticationFailed('User account is disabled.')
        self.user.last_login = timezone.now()
        self.user.save(update_fields=['last_login'])
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        token['user_type'] = user.user_type
        token['company_id'] = user.company_id
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Token refresh that reports deleted users as invalid tokens"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except (ObjectDoesNotExist, User.DoesNotExist):
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    serializer_class = CustomTokenRefreshSerializer


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Current user with role flags used by the client"""
    user = request.user
    data = UserSerializer(user).data
    data['is_admin'] = is_admin(user)
    data['can_review_ttb_reports'] = user.user_type in ('compliance_manager', 'admin', 'super_admin')
    data['company_name'] = user.company.company_name if user.company_id else None
    return Response(data)


# Company views
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def company_list(request):
    """Super admins see every company, everyone else their own"""
    if request.user.is_super_admin or request.user.is_superuser:
        companies = Company.objects.all()
    else:
        companies = Company.objects.filter(pk=request.user.company_id)
    return Response(CompanySerializer(companies, many=True).data)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def company_detail(request, pk):
    company = get_object_or_404(Company, pk=pk)
    ensure_company_access(request.user, company.id)

    if request.method == 'GET':
        return Response(CompanySerializer(company).data)
    else:  # PATCH
        if not is_admin(request.user):
            return Response({'error': 'Only administrators can update company settings'}, status=status.HTTP_403_FORBIDDEN)
        serializer = CompanySerializer(company, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            logger.info(f"Company {company.id} settings updated by {request.user.username}")
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def company_users(request, pk):
    ensure_company_access(request.user, pk)
    users = User.objects.filter(company_id=pk, is_active=True).order_by('username')
    return Response(UserSerializer(users, many=True).data)


# AuditLog views
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_list(request):
    """List audit logs for the caller's company (filters: action, model_name, date range)"""
    queryset = AuditLog.objects.select_related('user')
    if not (request.user.is_super_admin or request.user.is_superuser):
        queryset = queryset.filter(company_id=request.user.company_id)
    filterset = AuditLogFilter(request.query_params, queryset=queryset)
    if not filterset.is_valid():
        return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
    return Response(paginate(request, filterset.qs.order_by('-created_at'), AuditLogSerializer, default_limit=50))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_detail(request, pk):
    audit_log = get_object_or_404(AuditLog.objects.select_related('user'), pk=pk)
    if audit_log.company_id:
        ensure_company_access(request.user, audit_log.company_id)
    return Response(AuditLogSerializer(audit_log).data)


# Health views
@api_view(['GET'])
@permission_classes([AllowAny])
def health(request):
    return Response({'status': 'healthy', 'timestamp': timezone.now().isoformat()})


@api_view(['GET'])
@permission_classes([AllowAny])
def health_detailed(request):
    """Database and cache checks; 503 when any check fails"""
    checks = {}

    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
            cursor.fetchone()
        checks['database'] = {'status': 'healthy'}
    except Exception as e:
        logger.error(f"Health check: database unavailable: {str(e)}")
        checks['database'] = {'status': 'unhealthy', 'error': str(e)}

    try:
        probe_key = f"health:{uuid.uuid4().hex}"
        cache.set(probe_key, 'ok', 10)
        ok = cache.get(probe_key) == 'ok'
        cache.delete(probe_key)
        checks['cache'] = {'status': 'healthy' if ok else 'unhealthy'}
    except Exception as e:
        logger.error(f"Health check: cache unavailable: {str(e)}")
        checks['cache'] = {'status': 'unhealthy', 'error': str(e)}

    healthy = all(check['status'] == 'healthy' for check in checks.values())
    return Response({
        'status': 'healthy' if healthy else 'unhealthy',
        'timestamp': timezone.now().isoformat(),
        'checks': checks,
    }, status=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE)


# Mobile detection views
def _session_id(request):
    return request.COOKIES.get(SESSION_ID_COOKIE) or request.query_params.get('session_id') or (
        request.data.get('session_id') if isinstance(request.data, dict) else None
    )


@api_view(['GET', 'POST'])
@permission_classes([AllowAny])
def mobile_detect(request):
    """Detect the device behind a User-Agent and recommend a site"""
    source = request.data if request.method == 'POST' else request.query_params
    user_agent = source.get('user_agent') or request.META.get('HTTP_USER_AGENT', '')
    screen_width = source.get('screen_width')
    try:
        screen_width = int(screen_width) if screen_width not in (None, '') else None
    except (TypeError, ValueError):
        return Response({'error': 'screen_width must be an integer'}, status=status.HTTP_400_BAD_REQUEST)

    detection = mobile.detect_device(user_agent)
    detection['recommended_site'] = mobile.get_recommended_site(detection, screen_width)

    preference = mobile.get_preference(user=request.user, session_id=_session_id(request))
    detection['user_preference'] = preference.preferred_site if preference else None
    return Response(detection)


@api_view(['GET', 'POST'])
@permission_classes([AllowAny])
def mobile_preference(request):
    """Get or save the desktop/mobile site preference"""
    if request.method == 'GET':
        preference = mobile.get_preference(user=request.user, session_id=_session_id(request))
        if preference is None:
            return Response({'preferred_site': 'auto', 'last_detected_device': None, 'updated_at': None})
        return Response(SitePreferenceSerializer(preference).data)
    else:  # POST
        session_id = None
        new_session = False
        if not request.user.is_authenticated:
            session_id = _session_id(request)
            if not session_id:
                session_id = uuid.uuid4().hex
                new_session = True

        preferred_site = str(request.data.get('preferred_site', 'auto')).lower()
        saved = mobile.save_preference(
            preferred_site,
            request.META.get('HTTP_USER_AGENT', ''),
            user=request.user,
            session_id=session_id,
        )
        response = Response(SitePreferenceSerializer(saved).data)
        if new_session:
            response.set_cookie(SESSION_ID_COOKIE, session_id, httponly=True, samesite='Lax', max_age=365 * 24 * 3600)
        return response
