# ==============================================
# File: main/common/managers.py
# Purpose: Shared queryset base for school-owned models
# ==============================================
from __future__ import annotations

from django.db import models


class SchoolAwareQuerySet(models.QuerySet):
    """QuerySet helpers for tenant scoping.

    Pair with ``TenantManager.from_queryset(...)`` so the helpers are
    reachable from ``Model.objects``.
    """

    def for_school(self, school) -> "SchoolAwareQuerySet":
        return self.filter(school_id=getattr(school, "pk", school))
