"""Request correlation ids, exposed to log records and echoed on responses"""
import logging
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone

CORRELATION_ID_HEADER = 'X-Correlation-ID'

_correlation_id = ContextVar('correlation_id', default=None)


def generate_correlation_id():
    return f"{datetime.now(timezone.utc):%Y%m%d%H%M%S}-{uuid.uuid4().hex}"[:32]


def get_correlation_id():
    return _correlation_id.get()


class CorrelationIdMiddleware:
    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        correlation_id = request.headers.get(CORRELATION_ID_HEADER) or generate_correlation_id()
        request.correlation_id = correlation_id
        token = _correlation_id.set(correlation_id)
        try:
            response = self.get_response(request)
        finally:
            _correlation_id.reset(token)
        response[CORRELATION_ID_HEADER] = correlation_id
        return response


class CorrelationIdFilter(logging.Filter):
    def filter(self, record):
        record.correlation_id = _correlation_id.get() or '-'
        return True
