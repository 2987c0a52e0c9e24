# main/tenancy/managers.py
from __future__ import annotations

from typing import Optional, Any

from django.core.exceptions import FieldDoesNotExist
from django.db import models
from django.db.models import Q

from main.tenancy.threadlocals import get_current_request, get_current_school_id


class TenantManager(models.Manager):
    """
    Auto-scopes by current school (thread-local). Works when the model has either:
      - FK named `school`, or
      - class attr/manager arg `related_school_field` with dotted path, e.g. "student__school".

    Scoping rules for `get_queryset()`:
      - a current school is set        -> rows of that school only
      - no school, caller is superadmin -> unscoped
      - otherwise                       -> none()

    Methods:
      - for_school(school): explicit scoping by a provided school instance
    """

    def __init__(
        self,
        related_school_field: Optional[str] = None,
        *args: Any,
        **kwargs: Any,
    ):
        super().__init__()
        self.related_school_field = related_school_field

    # -------- request/scope helpers --------
    def _is_superuser(self, user: Optional[object] = None) -> bool:
        if user is None:
            req = get_current_request()
            user = getattr(req, "user", None) if req else None
        return bool(
            user
            and getattr(user, "is_authenticated", False)
            and (
                getattr(user, "is_superuser", False)
                or getattr(user, "is_superadmin", False)
            )
        )

    def _school_field_name(self) -> str:
        # Manager arg wins, then model attr, then default "school"
        return (
            self.related_school_field
            or getattr(self.model, "related_school_field", None)
            or "school"
        )

    def _validate_school_field(self, field: str) -> None:
        """Validate the 1st hop of the dotted path exists; raise AttributeError on invalid config."""
        first_hop = field.split("__", 1)[0]
        try:
            self.model._meta.get_field(first_hop)
        except FieldDoesNotExist as e:
            raise AttributeError(
                f"TenantManager._validate_school_field(): Invalid school field '{field}' "
                f"for model {self.model.__name__}. Set related_school_field correctly "
                f"(e.g. 'school' or 'student__school')."
            ) from e

    def _scope(self, qs, school_id):
        field = self._school_field_name()
        self._validate_school_field(field)
        return qs.filter(Q(**{f"{field}__pk": school_id}))

    # -------- reads (default scoping) --------
    def get_queryset(self):
        qs = super().get_queryset()

        school_id = get_current_school_id()
        if school_id:
            return self._scope(qs, school_id)

        # Superusers bypass scoping when no school is selected
        if self._is_superuser():
            return qs
        return qs.none()

    # -------- explicit scoping APIs --------
    def for_school(self, school):
        """Explicit scoping by a provided school instance."""
        school_id = getattr(school, "pk", school)
        return self._scope(super().get_queryset(), school_id)
