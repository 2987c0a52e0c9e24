# ===============================================
# file: main/finance/receipts.py
# ===============================================
from __future__ import annotations

import logging

from django.db import transaction
from django.db.models import F
from django.utils import timezone

logger = logging.getLogger(__name__)

RECEIPT_PREFIX = "REC"


def format_receipt_number(number: int, year: int) -> str:
    return f"{RECEIPT_PREFIX}-{year}-{number:06d}"


@transaction.atomic
def generate_receipt_number(school, on=None) -> str:
    """
    Next receipt code for a school, e.g. ``REC-2024-000042``.

    The per-school counter row is locked for the duration of the caller's
    transaction, so numbers are unique and strictly increasing per school.
    The sequence does not restart with the year; the year is only a label.
    """
    from main.models import ReceiptCounter  # lazy import to avoid circulars

    school_id = getattr(school, "pk", school)
    counter, _created = ReceiptCounter.objects.select_for_update().get_or_create(school_id=school_id)
    ReceiptCounter.objects.filter(pk=counter.pk).update(last_number=F("last_number") + 1)
    counter.refresh_from_db(fields=["last_number"])

    year = (on or timezone.localdate()).year
    number = format_receipt_number(counter.last_number, year)
    logger.debug("Issued receipt %s for school %s", number, school_id)
    return number
