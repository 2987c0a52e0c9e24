# ===============================================
# file: main/finance/utils.py
# ===============================================
from __future__ import annotations

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from django.core.exceptions import ValidationError
from django.db import transaction, IntegrityError
from django.db.models import Count, Q, Sum
from django.utils import timezone

from main.common.errors import ConflictError, translate_integrity_error
from main.finance.receipts import generate_receipt_number

logger = logging.getLogger(__name__)

# occupancy thresholds (percent)
FULL_OCCUPANCY = 95
HIGH_OCCUPANCY = 85

PERIOD_ALREADY_PAID = "Ce mois a déjà été réglé pour cet élève"


def _money(value) -> Decimal:
    return Decimal(value or 0)


# -------------------------------------------------
# class statistics
# -------------------------------------------------
def class_statistics(student_count: int, capacity: int, registration_fee, annual_tuition) -> dict:
    """
    Occupancy and expected revenue of one class. Pure: same inputs, same output.

    occupancy_rate   = student_count / capacity * 100 (one decimal)
    expected_revenue = student_count * (registration_fee + annual_tuition)
    """
    if capacity:
        rate = (Decimal(student_count) * 100 / Decimal(capacity)).quantize(
            Decimal("0.1"), rounding=ROUND_HALF_UP)
    else:
        rate = Decimal("0.0")

    if rate >= FULL_OCCUPANCY:
        level = "full"
    elif rate >= HIGH_OCCUPANCY:
        level = "high"
    else:
        level = "normal"

    return {
        "student_count": student_count,
        "capacity": capacity,
        "available_seats": max(capacity - student_count, 0),
        "occupancy_rate": float(rate),
        "occupancy_level": level,
        "expected_revenue": student_count * (_money(registration_fee) + _money(annual_tuition)),
    }


def classes_with_statistics(school, academic_year: Optional[str] = None) -> list[tuple]:
    """[(school_class, stats)] computed from one grouped count of active students."""
    from main.models import SchoolClass, Student

    classes = SchoolClass.objects.for_school(school)
    if academic_year:
        classes = classes.filter(academic_year=academic_year)

    counts = dict(
        Student.objects.for_school(school)
        .filter(status=Student.Status.ACTIVE)
        .values_list("class_name")
        .annotate(n=Count("id"))
    )
    return [(c, c.stats(student_count=counts.get(c.name, 0))) for c in classes]


# -------------------------------------------------
# payments
# -------------------------------------------------
def recompute_payment_status(student) -> str:
    """
    partial when the student has paid anything, pending otherwise.
    `paid` is never derived here; it is set by staff.
    """
    return student.refresh_payment_status()


def ensure_period_available(student, payment_type: str, period: Optional[str],
                            academic_year: Optional[str], exclude_pk=None) -> None:
    """Refuse a second tuition payment for the same month of the same year."""
    from main.models import Payment

    if not period or payment_type not in Payment.TUITION_TYPES:
        return
    qs = Payment.default_objects.filter(
        student=student,
        payment_type__in=Payment.TUITION_TYPES,
        payment_period=period,
    )
    if academic_year:
        qs = qs.filter(academic_year=academic_year)
    if exclude_pk:
        qs = qs.exclude(pk=exclude_pk)
    if qs.exists():
        raise ConflictError(PERIOD_ALREADY_PAID, code="uniq_monthly_tuition_period")


@transaction.atomic
def record_payment(
    *,
    school,
    student,
    amount,
    payment_method: str,
    payment_type: str,
    payment_date=None,
    payment_period: Optional[str] = None,
    academic_year: Optional[str] = None,
    transaction_reference: Optional[str] = None,
    notes: Optional[str] = None,
    created_by=None,
):
    """
    Insert a payment with a fresh receipt number and refresh the student's
    payment status. Everything happens in one transaction.
    """
    from main.models import Payment

    amount = _money(amount)
    if amount <= 0:
        raise ValidationError({"amount": "Le montant doit être supérieur à 0"})
    if student.school_id != getattr(school, "pk", school):
        raise ValidationError({"student": "Cet élève n'appartient pas à cette école"})

    payment_date = payment_date or timezone.localdate()
    academic_year = academic_year or student.school.academic_year(payment_date)
    ensure_period_available(student, payment_type, payment_period, academic_year)

    try:
        with transaction.atomic():
            payment = Payment.default_objects.create(
                school_id=student.school_id,
                student=student,
                amount=amount,
                payment_method=payment_method,
                payment_type=payment_type,
                payment_date=payment_date,
                payment_period=payment_period or None,
                academic_year=academic_year,
                receipt_number=generate_receipt_number(student.school_id, on=payment_date),
                transaction_reference=transaction_reference or None,
                notes=notes or None,
                created_by=created_by if created_by is not None and created_by.is_authenticated else None,
            )
    except IntegrityError as e:
        logger.warning("Payment insert rejected for student %s: %s", student.pk, e)
        raise translate_integrity_error(e) from e

    recompute_payment_status(student)
    logger.info("Recorded payment %s (%s) for student %s", payment.receipt_number, amount, student.pk)
    return payment


def payment_stats(school, today=None) -> dict:
    """Dashboard figures for the payments page."""
    from main.models import Payment, Student

    today = today or timezone.localdate()
    payments = Payment.objects.for_school(school)
    month = payments.in_month(today.year, today.month)

    by_method = {
        row["payment_method"]: row["total"]
        for row in payments.values("payment_method").annotate(total=Sum("amount"))
    }
    return {
        "monthly_total": month.total(),
        "monthly_count": month.count(),
        "total_collected": payments.total(),
        "payment_count": payments.count(),
        "pending_count": Student.objects.for_school(school).pending_payment().count(),
        "by_method": by_method,
    }


def late_payments(school, class_name: str, month: str, academic_year: Optional[str] = None):
    """
    Active students of `class_name` without a tuition payment for `month`.
    A pure filter: nothing is stored about what was due.
    """
    from main.models import Payment, Student

    paid = Q(payments__payment_period=month, payments__payment_type__in=Payment.TUITION_TYPES)
    if academic_year:
        paid &= Q(payments__academic_year=academic_year)

    paid_ids = (
        Student.objects.for_school(school)
        .filter(paid)
        .values("pk")
    )
    return (
        Student.objects.for_school(school)
        .active()
        .in_class(class_name)
        .exclude(pk__in=paid_ids)
        .order_by("full_name")
    )


# -------------------------------------------------
# dashboard
# -------------------------------------------------
def dashboard_summary(school, today=None) -> dict:
    from main.models import Enrollment, Payment, SchoolClass, Student

    today = today or timezone.localdate()
    students = Student.objects.for_school(school)
    payments = Payment.objects.for_school(school)

    status_counts = dict(students.values_list("status").annotate(n=Count("id")))
    return {
        "total_students": students.count(),
        "active_students": status_counts.get(Student.Status.ACTIVE, 0),
        "pending_students": status_counts.get(Student.Status.PENDING, 0),
        "total_classes": SchoolClass.objects.for_school(school).count(),
        "pending_enrollments": Enrollment.objects.for_school(school).filter(
            status__in=[Enrollment.Status.PENDING, Enrollment.Status.DOCUMENTS_MISSING]).count(),
        "monthly_revenue": payments.in_month(today.year, today.month).total(),
        "total_collected": payments.total(),
        "pending_payments": students.pending_payment().count(),
        "recent_payments": list(
            payments.select_related("student")
            .order_by("-payment_date", "-created_at")[:5]
        ),
        "student_limit": school.student_limit(),
    }
