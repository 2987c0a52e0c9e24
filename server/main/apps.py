# ==============================================
# File: main/apps.py
# Purpose: Register domain and audit signal receivers
# ==============================================
from __future__ import annotations
from django.apps import AppConfig


class MainConfig(AppConfig):
    name = "main"
    default_auto_field = "django.db.models.BigAutoField"

    def ready(self):
        # Import signal handlers
        from main import signals  # noqa: F401
        from main.tenancy import signals as audit_signals  # noqa: F401
