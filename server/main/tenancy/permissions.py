from __future__ import annotations
from typing import Iterable
from rest_framework.permissions import BasePermission, SAFE_METHODS

from main.tenancy.threadlocals import get_current_school_id


def _is_superadmin(user) -> bool:
    return bool(user and user.is_authenticated and getattr(user, "is_superadmin", False))


class HasRole(BasePermission):
    """
    Allow when the user holds one of the view's `allowed_roles`.
    Unsafe methods check `write_roles` instead when the view sets it.
    Super admins bypass.
    """
    allowed_roles: Iterable[str] = ()
    message = "Vous n'avez pas le rôle requis pour cette action."

    def has_permission(self, request, view) -> bool:
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if _is_superadmin(user):
            return True
        allowed = tuple(getattr(view, "allowed_roles", None) or self.allowed_roles)
        if request.method not in SAFE_METHODS:
            allowed = tuple(getattr(view, "write_roles", None) or allowed)
        return user.has_role(*allowed)


class IsSuperAdmin(BasePermission):
    message = "Accès réservé aux super administrateurs."

    def has_permission(self, request, view) -> bool:
        return _is_superadmin(request.user)


class IsSchoolMember(BasePermission):
    """
    The request is bound to a school the user belongs to, and that school is active.
    Super admins pass whenever they have picked a school (or none, for global reads).
    """
    message = "Aucune école active n'est associée à votre compte."

    def has_permission(self, request, view) -> bool:
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if _is_superadmin(user):
            return True
        school = getattr(user, "school", None)
        return bool(school and school.is_active and get_current_school_id() == school.pk)


class IsSameSchoolObject(BasePermission):
    """Object-level check: obj.school must equal the request's school."""
    def has_object_permission(self, request, view, obj) -> bool:
        school_id = get_current_school_id()
        obj_school_id = getattr(obj, "school_id", None)
        if school_id is None:
            return _is_superadmin(request.user)
        return obj_school_id is not None and obj_school_id == school_id
