from __future__ import annotations

from django.conf import settings
from django.db import models

from main.tenancy.managers import TenantManager
from main.tenancy.threadlocals import get_current_request, get_current_school_id


class SchoolOwnedModel(models.Model):
    """
    Mixin to attach the tenant-aware manager to tenant-owned models.
    Set `related_school_field` on subclasses when `school` FK isn't present.
    `default_objects` stays first so related managers and admin tools are unscoped.
    """
    default_objects = models.Manager()
    objects = TenantManager()

    class Meta:
        abstract = True


class SchoolAwareModel(SchoolOwnedModel):
    """
    Abstract base class for models that belong to a school.
    Provides the school FK and timestamps.
    """
    related_school_field = 'school'

    school = models.ForeignKey(
        'main.School',
        on_delete=models.CASCADE,
        related_name='%(class)s_set',
        db_index=True,
        help_text="The school this item belongs to"
    )

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        # Default school from the request context when the caller omitted it
        if not self.school_id:
            school_id = get_current_school_id()
            if school_id:
                self.school_id = school_id
        super().save(*args, **kwargs)


class AuditableModel(models.Model):
    """
    Abstract base class for models that need to track who created them.
    """
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_%(class)ss',
        help_text="User who created this record"
    )

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if not self.created_by_id:
            req = get_current_request()
            user = getattr(req, "user", None) if req else None
            if user is not None and getattr(user, "is_authenticated", False):
                self.created_by = user
        super().save(*args, **kwargs)
