# ==============================================
# File: main/tenancy/middlewares.py
# Purpose: Unified tenant resolution middleware
# ==============================================
from __future__ import annotations
from typing import Optional
import time
import logging

from django.conf import settings
from django.http import HttpRequest, HttpResponse
from django.utils.deprecation import MiddlewareMixin

from main.tenancy.audit_utils import get_client_ip, log_action
from main.tenancy.threadlocals import (
    clear_context,
    get_current_school_id,
    set_current_request,
    set_current_school,
)
from main.tenancy.utils import extract_subdomain, lookup_school

# Configure audit logger (handlers come from settings.LOGGING)
audit_logger = logging.getLogger('audit')


class TenantResolver:
    """Utility class to handle tenant resolution logic."""

    @staticmethod
    def from_host(request: HttpRequest):
        base_domain = getattr(settings, 'BASE_DOMAIN', None)
        subdomain = extract_subdomain(request.get_host(), base_domain)
        return lookup_school(subdomain) if subdomain else None

    @staticmethod
    def from_header(request: HttpRequest):
        return lookup_school(request.headers.get('X-School'))

    @classmethod
    def resolve(cls, request: HttpRequest):
        """Subdomain first, then the X-School header."""
        return cls.from_host(request) or cls.from_header(request)


class UnifiedTenantMiddleware(MiddlewareMixin):
    """
    Unified middleware for tenant resolution and context management.

    Resolution order:
    1. Subdomain (subdomain.domain.com or using BASE_DOMAIN)
    2. X-School header (school code or id)

    The resolved school is only a candidate: API views bind the authenticated
    user's own school after authentication, and only super admins may keep a
    school picked from the host or header.
    """

    SKIP_PATHS = ('/static/', '/media/', '/favicon.ico')

    def process_request(self, request: HttpRequest) -> Optional[HttpResponse]:
        request._request_start_time = time.time()
        request.requested_school_id = None
        set_current_request(request)
        set_current_school(None, request)

        if self._should_skip_processing(request):
            return None

        school = TenantResolver.resolve(request)
        if school is not None:
            request.requested_school_id = school.pk
        return None

    def process_response(self, request: HttpRequest, response: HttpResponse) -> HttpResponse:
        """Log the request and clean up context."""
        try:
            self._log_request(request, response)
        finally:
            clear_context()
        return response

    def _should_skip_processing(self, request: HttpRequest) -> bool:
        return request.path.startswith(self.SKIP_PATHS)

    def _log_request(self, request: HttpRequest, response: HttpResponse) -> None:
        """Log request details for audit purposes."""
        if not hasattr(request, '_request_start_time') or self._should_skip_processing(request):
            return

        duration = time.time() - request._request_start_time
        user = getattr(request, 'user', None)
        authenticated = bool(user is not None and user.is_authenticated)
        school_id = get_current_school_id()

        audit_logger.info(
            "%s %s - %s - %.3fs", request.method, request.path, response.status_code, duration,
            extra={
                'user_id': str(user.pk) if authenticated else 'anonymous',
                'school_id': str(school_id) if school_id else 'none',
            }
        )
        if response.status_code >= 500:
            audit_logger.error("Server error %s on %s %s", response.status_code, request.method, request.path)
        elif response.status_code >= 400:
            audit_logger.warning("Client error %s on %s %s", response.status_code, request.method, request.path)

        if not getattr(settings, 'AUDIT_REQUESTS', True) or not authenticated:
            return
        log_action(
            action='request',
            user=user,
            request=request,
            status_code=response.status_code,
            response_time=round(duration, 3),
            request_id=getattr(request, 'request_id', None),
            ip=get_client_ip(request),
        )
