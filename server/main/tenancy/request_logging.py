from __future__ import annotations
import logging
import uuid
from django.utils.deprecation import MiddlewareMixin
from django.http import HttpRequest
from main.tenancy.threadlocals import get_current_request, get_current_school_id, set_current_request


class RequestIDMiddleware(MiddlewareMixin):
    """Attach a stable request id; helpful for audit trails/log correlation."""
    header = "HTTP_X_REQUEST_ID"

    def process_request(self, request: HttpRequest):
        rid = request.META.get(self.header) or uuid.uuid4().hex
        request.request_id = rid
        set_current_request(request)

    def process_response(self, request, response):
        rid = getattr(request, "request_id", None)
        if rid:
            response["X-Request-ID"] = rid
        return response


class AuditLogFilter(logging.Filter):
    """Add school/user/request ids to audit log records (used by the `audit` handler)."""

    def filter(self, record):
        request = get_current_request()
        user = getattr(record, "user", None) or (getattr(request, "user", None) if request else None)
        authenticated = bool(user is not None and getattr(user, "is_authenticated", False))

        if not hasattr(record, "school_id"):
            school_id = get_current_school_id()
            record.school_id = str(school_id) if school_id else "none"
        if not hasattr(record, "user_id"):
            record.user_id = str(user.pk) if authenticated else "anonymous"
        record.user_email = getattr(user, "email", "anonymous") if authenticated else "anonymous"
        record.request_id = getattr(request, "request_id", "-") if request else "-"
        return True
