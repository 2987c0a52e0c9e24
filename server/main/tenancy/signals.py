# -------- Signals (pre/post save, post delete) --------
import logging
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

from django.db import models
from django.db.models.signals import pre_save, post_save, post_delete
from django.dispatch import receiver

from .audit_utils import log_action

audit_logger = logging.getLogger('audit')

# Fields to exclude from audit logging
EXCLUDED_FIELDS = {"updated_at", "created_at", "password", "last_login"}

# Bookkeeping rows that would only add noise
SKIPPED_MODELS = {"AuditLog", "ReceiptCounter"}


def _in_project(sender) -> bool:
    """Check if the sender is a model from our project."""
    if not hasattr(sender, '_meta'):
        return False
    if sender.__name__ in SKIPPED_MODELS:
        return False
    return getattr(sender._meta, "app_label", "") == "main"


def _tracked_fields(instance: models.Model) -> list:
    return [
        f.attname for f in instance._meta.concrete_fields
        if f.name not in EXCLUDED_FIELDS
    ]


def _serialize_instance(instance) -> dict:
    """Convert model instance to a serializable dictionary."""
    if not instance:
        return {}
    return {
        name: _make_json_serializable(getattr(instance, name, None))
        for name in _tracked_fields(instance)
    }


def _make_json_serializable(value: Any) -> Any:
    """Convert non-JSON-serializable values to serializable formats."""
    if value is None or value == '':
        return None
    if isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (list, tuple, set)):
        return [_make_json_serializable(item) for item in value]
    if isinstance(value, dict):
        return {k: _make_json_serializable(v) for k, v in value.items()}
    if isinstance(value, models.Model):
        return f"{value.__class__.__name__}(pk={value.pk})"
    return str(value)


@receiver(pre_save)
def _audit_pre_save(sender, instance, raw=False, **kwargs):
    """Capture the original state of a model before saving."""
    if raw or not _in_project(sender):
        return

    instance._audit_original_state = None
    if instance.pk is None:
        return

    old = sender._default_manager.filter(pk=instance.pk).first()
    if old is not None:
        instance._audit_original_state = _serialize_instance(old)


@receiver(post_save)
def _audit_post_save(sender, instance, created, raw=False, **kwargs):
    """Log model creation and updates."""
    if raw or not _in_project(sender):
        return

    changes = {}
    original = getattr(instance, '_audit_original_state', None)
    if not created and original is not None:
        current = _serialize_instance(instance)
        for field, new_value in current.items():
            old_value = original.get(field)
            if old_value != new_value:
                changes[field] = {'from': old_value, 'to': new_value}

    # Only log if it's a creation or there are changes
    if created or changes:
        log_action(action='create' if created else 'update', instance=instance, changes=changes)
        audit_logger.info(
            "%s %s.%s pk=%s", 'create' if created else 'update',
            sender._meta.app_label, sender._meta.model_name, instance.pk)


@receiver(post_delete)
def _audit_post_delete(sender, instance, **kwargs):
    """Log model deletions."""
    if not _in_project(sender):
        return

    log_action(action='delete', instance=instance, changes=_serialize_instance(instance), detach=True)
    audit_logger.info("delete %s.%s pk=%s", sender._meta.app_label, sender._meta.model_name, instance.pk)
