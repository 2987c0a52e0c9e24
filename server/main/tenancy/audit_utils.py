"""
Utility functions for audit logging.
"""
from __future__ import annotations

import logging
from typing import Optional

from django.db import models

from main.tenancy.threadlocals import get_current_request, get_current_school_id

# Configure logger
audit_logger = logging.getLogger('audit')


def get_client_ip(request) -> Optional[str]:
    """ Get the client's IP address from the request."""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


def _school_id_for(instance, request) -> Optional[int]:
    from main.models import School

    if isinstance(instance, School):
        return instance.pk
    if instance is not None and getattr(instance, 'school_id', None):
        return instance.school_id
    if request is not None and getattr(request, 'school_id', None):
        return request.school_id
    return get_current_school_id()


def log_action(
    action: str,
    instance: Optional[models.Model] = None,
    changes: Optional[dict] = None,
    user=None,
    request=None,
    status_code: int = 0,
    detach: bool = False,
    **extra
):
    """
    Create an audit log entry.

    Args:
        action: Action performed (create, update, delete, request, approve)
        instance: The model instance being acted upon
        changes: Dictionary of changes (for updates)
        user: The user performing the action
        request: The current request object (for IP, user agent, etc.)
        status_code: HTTP status, for request entries
        detach: Do not link the entry to rows being deleted; ids go to `extra`
        **extra: Additional data to store in the extra field
    """
    from main.models import AuditLog  # lazy import to avoid circulars

    if request is None:
        request = get_current_request()

    if user is None and request is not None:
        req_user = getattr(request, 'user', None)
        user = req_user if req_user is not None and req_user.is_authenticated else None

    school_id = _school_id_for(instance, request)
    if detach:
        extra.setdefault('school_id', school_id)
        school_id = None
        if user is not None and instance is not None and isinstance(instance, type(user)) and instance.pk == user.pk:
            user = None

    entry = AuditLog(
        user=user,
        school_id=school_id,
        action=action,
        model=f"{instance._meta.app_label}.{instance._meta.model_name}" if instance is not None else "",
        object_id=str(instance.pk) if instance is not None and instance.pk is not None else "",
        changes=changes or {},
        status_code=status_code,
        extra=extra,
    )
    if instance is not None and not detach:
        entry.content_object = instance

    if request is not None:
        entry.ip_address = get_client_ip(request)
        entry.user_agent = request.META.get('HTTP_USER_AGENT', '')
        entry.request_path = getattr(request, 'path', '')[:512]
        entry.request_method = getattr(request, 'method', '')

    entry.save()
    return entry
