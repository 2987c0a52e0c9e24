# ==============================================
# File: main/tenancy/threadlocals.py
# Purpose: Single source of truth for per-request context
# ==============================================
from __future__ import annotations
import threading

_thread_locals = threading.local()


def set_current_request(request) -> None:
    """Store the current HttpRequest in thread‑local storage.
    Managers and signal receivers read it to find the acting user and school.
    """
    _thread_locals.request = request


def get_current_request():
    """Return the current HttpRequest or None."""
    return getattr(_thread_locals, "request", None)


def set_current_school(school_id: int | str | None, request=None) -> None:
    """Store the resolved school id for the request (and for non-HTTP contexts)."""
    _thread_locals.school_id = school_id
    req = request or get_current_request()
    if req is not None:
        setattr(req, "school_id", school_id)


def get_current_school_id():
    req = get_current_request()
    if req is not None and getattr(req, "school_id", None):
        return req.school_id
    return getattr(_thread_locals, "school_id", None)


def clear_context() -> None:
    _thread_locals.school_id = None
    _thread_locals.request = None
