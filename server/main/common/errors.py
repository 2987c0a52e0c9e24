# ==============================================
# File: main/common/errors.py
# Purpose: Domain errors + database constraint translation
# ==============================================
from __future__ import annotations

from django.core.exceptions import ValidationError
from django.db import IntegrityError

# constraint name (substring of the database error) -> user facing message
CONSTRAINT_MESSAGES: dict[str, str] = {
    "students_email_unique": "Cet email est déjà utilisé par un autre élève",
    "students_phone_unique": "Ce numéro de téléphone est déjà utilisé par un autre élève",
    "unique_parent_phone": "Ce numéro de parent est déjà utilisé. Veuillez sélectionner le parent existant.",
    "unique_parent_email": "Cet email de parent est déjà utilisé. Veuillez sélectionner le parent existant.",
    "students_matricule_unique": "Ce matricule est déjà attribué à un autre élève",
    "unique_class_per_year": "Une classe avec ce nom existe déjà pour cette année académique",
    "uniq_monthly_tuition_period": "Ce mois a déjà été réglé pour cet élève",
    "payments_receipt_number_unique": "Ce numéro de reçu existe déjà, veuillez réessayer",
    "unique_user_role": "Cet utilisateur possède déjà ce rôle",
}

# SQLite reports the columns instead of the constraint name
SQLITE_COLUMN_HINTS: dict[str, str] = {
    "students.school_id, students.email": "students_email_unique",
    "students.school_id, students.phone": "students_phone_unique",
    "students.school_id, students.parent_phone": "unique_parent_phone",
    "students.school_id, students.parent_email": "unique_parent_email",
    "students.school_id, students.matricule": "students_matricule_unique",
    "classes.school_id, classes.name, classes.academic_year": "unique_class_per_year",
    "payments.student_id, payments.payment_period, payments.academic_year": "uniq_monthly_tuition_period",
    "payments.school_id, payments.receipt_number": "payments_receipt_number_unique",
}


class ConflictError(ValidationError):
    """A write collides with an existing row (duplicate contact, class, period...)."""


class InvalidTransition(ValidationError):
    """A state machine was asked for a move it does not allow."""


def constraint_name(error: Exception) -> str | None:
    text = str(error)
    for name in CONSTRAINT_MESSAGES:
        if name in text:
            return name
    for columns, name in SQLITE_COLUMN_HINTS.items():
        if columns in text:
            return name
    return None


def translate_integrity_error(error: IntegrityError) -> ConflictError:
    """Map a duplicate-key error onto the friendly message of the violated constraint."""
    name = constraint_name(error)
    if name:
        return ConflictError(CONSTRAINT_MESSAGES[name], code=name)
    if 'duplicate key' in str(error).lower() or 'unique constraint' in str(error).lower():
        return ConflictError("Cet enregistrement existe déjà.", code="duplicate")
    return ConflictError("Erreur de base de données. Veuillez réessayer.", code="integrity")


def error_message(error: Exception) -> str:
    """Flatten a django ValidationError (or anything else) into one display string."""
    if isinstance(error, ValidationError):
        return " ".join(str(m) for m in error.messages)
    return str(error)
