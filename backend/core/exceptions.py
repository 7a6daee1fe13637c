"""
Domain exceptions raised by service modules, and the DRF handler that turns them into responses.
"""
import logging
import traceback

from django.http import Http404
from django.utils import timezone
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from .middleware import get_correlation_id

logger = logging.getLogger('backend.core')


class DomainError(Exception):
    """Base class for errors raised by business services"""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ValidationFailed(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST


class Unauthorized(DomainError):
    status_code = status.HTTP_401_UNAUTHORIZED


class AccessDenied(DomainError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(DomainError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(DomainError):
    """Operation not allowed in the object's current state"""
    status_code = status.HTTP_409_CONFLICT


def api_exception_handler(exc, context):
    """Map domain exceptions to JSON errors and log anything unexpected"""
    if isinstance(exc, DomainError):
        if exc.status_code >= 500:
            logger.error(f"{type(exc).__name__}: {exc.message}")
        return Response({'error': exc.message}, status=exc.status_code)

    response = exception_handler(exc, context)
    if response is not None:
        return response

    if isinstance(exc, Http404):
        return Response({'error': 'Not found'}, status=status.HTTP_404_NOT_FOUND)

    view = context.get('view')
    view_name = getattr(view, '__name__', None) or type(view).__name__
    logger.error(
        f"Unhandled exception in {view_name}: {exc}\n"
        f"{''.join(traceback.format_exception(type(exc), exc, exc.__traceback__))}"
    )
    return Response({
        'error': 'Internal Server Error',
        'message': 'An unexpected error occurred. Please try again later.',
        'trace_id': get_correlation_id(),
        'timestamp': timezone.now().isoformat(),
    }, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
