from __future__ import annotations

import calendar
import time
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models, transaction, IntegrityError
from django.db.models import Q, Sum, UniqueConstraint
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from main.common.errors import ConflictError, InvalidTransition, translate_integrity_error
from main.common.managers import SchoolAwareQuerySet
from main.tenancy.managers import TenantManager
from main.tenancy.tenancy_models import SchoolOwnedModel, SchoolAwareModel, AuditableModel

SUPER_ADMIN = "super_admin"
SCHOOL_ADMIN = "school_admin"
TEACHER = "teacher"
ACCOUNTANT = "accountant"

STAFF_ROLES = (SCHOOL_ADMIN, TEACHER, ACCOUNTANT)


def current_academic_year(on=None, start_month: Optional[int] = None) -> str:
    """
    School year containing the given date, e.g. "2024-2025" for both
    2024-10-05 and 2025-02-10. The year opens on `start_month`
    (ACADEMIC_YEAR_START_MONTH, September by default).
    """
    on = on or timezone.localdate()
    start_month = start_month or settings.ACADEMIC_YEAR_START_MONTH
    year = on.year if on.month >= start_month else on.year - 1
    return f"{year}-{year + 1}"


# ----------------------------- Users & roles ----------------
class UserManager(BaseUserManager):
    """Email is the login; usernames are not used."""
    use_in_migrations = True

    def _create_user(self, email, password, **extra_fields):
        if not email:
            raise ValueError("The email must be set.")
        email = self.normalize_email(email).lower()
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)

        if extra_fields.get("is_staff") is not True:
            raise ValueError("Superuser must have is_staff=True.")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_superuser=True.")

        user = self._create_user(email, password, **extra_fields)
        UserRole.objects.get_or_create(user=user, role=SUPER_ADMIN, school=None)
        return user


class User(AbstractUser):
    """
    Authentication identity. Login is the (globally unique) email.
    Display data lives on `Profile`, roles on `UserRole`.
    """
    username = None
    email = models.EmailField(_('email address'), unique=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        db_table = "users"

    def __str__(self):
        return self.email

    @property
    def role_names(self) -> set[str]:
        if not self.pk:
            return set()
        return set(self.roles.values_list("role", flat=True))

    def has_role(self, *roles: str) -> bool:
        return bool(self.role_names.intersection(roles))

    @property
    def is_superadmin(self) -> bool:
        return bool(self.is_superuser or self.has_role(SUPER_ADMIN))

    @property
    def is_school_admin(self) -> bool:
        return self.has_role(SCHOOL_ADMIN)

    @property
    def school(self) -> Optional["School"]:
        profile = getattr(self, "profile", None)
        return profile.school if profile else None

    @property
    def full_name(self) -> str:
        profile = getattr(self, "profile", None)
        if profile and profile.full_name:
            return profile.full_name
        if self.first_name or self.last_name:
            return f"{self.first_name} {self.last_name}".strip()
        return self.email


# ----------------------------- Core: School ----------------
class School(models.Model):
    """
    Tenant root. Every school-owned row points here.
    `max_students` caps the roster; -1 means unlimited.
    """
    class Plan(models.TextChoices):
        FREE = "free", _("Free")
        MONTHLY = "monthly", _("Monthly")
        ANNUAL = "annual", _("Annual")

    UNLIMITED = -1

    name = models.CharField(max_length=150, db_index=True)
    address = models.TextField(default="", blank=True)
    phone = models.CharField(max_length=30, default="", blank=True)
    email = models.EmailField(default="", blank=True)
    logo_url = models.URLField(max_length=500, default="", blank=True)
    code = models.CharField(
        max_length=10,
        null=True,
        blank=True,
        db_index=True,
        help_text="Unique code identifier for the school (auto-generated if not provided)",
    )
    is_active = models.BooleanField(default=True, db_index=True)
    max_students = models.IntegerField(default=50)
    subscription_plan = models.CharField(
        max_length=10, choices=Plan.choices, default=Plan.FREE)
    subscription_end_date = models.DateField(null=True, blank=True)
    settings = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "schools"
        ordering = ['name']

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if not self.code:
            max_retries = 10
            for _attempt in range(max_retries):
                last_school = School.objects.filter(
                    code__startswith="SC").order_by('-code').first()
                try:
                    last_num = int(last_school.code[2:]) if last_school else 0
                except ValueError:
                    last_num = School.objects.count()
                new_code = f"SC{str(last_num + 1).zfill(4)}"
                if not School.objects.filter(code=new_code).exists():
                    self.code = new_code
                    break
            else:
                self.code = f"SC{int(time.time()) % 1000000}"
        super().save(*args, **kwargs)

    @property
    def is_unlimited(self) -> bool:
        return self.max_students == self.UNLIMITED

    def student_limit(self) -> dict:
        """Roster usage for the subscription plan."""
        current = Student.default_objects.filter(school=self).count()
        if self.is_unlimited:
            remaining = -1
            can_add = True
        else:
            remaining = max(self.max_students - current, 0)
            can_add = current < self.max_students
        return {
            "current_count": current,
            "max_limit": self.max_students,
            "plan": self.subscription_plan,
            "can_add": can_add,
            "remaining": remaining,
            "is_unlimited": self.is_unlimited,
        }

    def toggle_active(self) -> bool:
        self.is_active = not self.is_active
        self.save(update_fields=["is_active", "updated_at"])
        return self.is_active

    @property
    def academic_year_start_month(self) -> int:
        """`settings["academic_year_start_month"]` when valid, else the platform default."""
        try:
            month = int((self.settings or {}).get("academic_year_start_month") or 0)
        except (TypeError, ValueError):
            month = 0
        return month if 1 <= month <= 12 else settings.ACADEMIC_YEAR_START_MONTH

    def academic_year(self, on=None) -> str:
        return current_academic_year(on, start_month=self.academic_year_start_month)


class Profile(models.Model):
    """One per user, created on sign-up; optionally attached to a school."""
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="profile")
    school = models.ForeignKey(
        School, on_delete=models.SET_NULL, null=True, blank=True, related_name="profiles")
    full_name = models.CharField(max_length=150, default="", blank=True)
    phone = models.CharField(max_length=30, default="", blank=True)
    avatar_url = models.URLField(max_length=500, default="", blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "profiles"

    def __str__(self):
        return self.full_name or self.user.email


class UserRole(models.Model):
    class Role(models.TextChoices):
        SUPER_ADMIN = SUPER_ADMIN, _("Super Admin")
        SCHOOL_ADMIN = SCHOOL_ADMIN, _("School Admin")
        TEACHER = TEACHER, _("Teacher")
        ACCOUNTANT = ACCOUNTANT, _("Accountant")

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="roles")
    role = models.CharField(max_length=20, choices=Role.choices)
    school = models.ForeignKey(
        School, on_delete=models.CASCADE, null=True, blank=True, related_name="user_roles")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "user_roles"
        constraints = [
            UniqueConstraint(fields=["user", "role", "school"], name="unique_user_role"),
            UniqueConstraint(
                fields=["user", "role"],
                condition=Q(school__isnull=True),
                name="unique_user_role_global",
            ),
        ]

    def __str__(self):
        return f"{self.user} → {self.role}"

    def clean(self):
        if self.role == SUPER_ADMIN and self.school_id:
            raise ValidationError({"school": _("Super admins are not tied to a school.")})
        if self.role != SUPER_ADMIN and not self.school_id:
            raise ValidationError({"school": _("This role requires a school.")})


class UserPreferences(models.Model):
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="preferences")
    email_notifications = models.BooleanField(default=True)
    payment_alerts = models.BooleanField(default=True)
    enrollment_alerts = models.BooleanField(default=True)
    dark_mode = models.BooleanField(default=False)
    compact_view = models.BooleanField(default=False)
    two_factor_enabled = models.BooleanField(default=False)
    session_timeout = models.PositiveIntegerField(default=30, help_text="Minutes")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "user_preferences"

    @classmethod
    def for_user(cls, user) -> "UserPreferences":
        prefs, _created = cls.objects.get_or_create(user=user)
        return prefs


class PlatformSettings(models.Model):
    """Single row of platform-wide settings edited from the admin console."""
    DEFAULTS = {
        "platform_name": "EduKash",
        "maintenance_mode": False,
        "allow_new_schools": True,
        "max_students_per_school": 10000,
        "require_email_verification": False,
        "enable_two_factor": False,
        "session_timeout": 30,
        "password_min_length": 8,
        "enable_rate_limiting": True,
        "max_login_attempts": 5,
        "lockout_duration": 15,
        "email_notifications": True,
        "sms_notifications": False,
        "system_alerts": True,
    }

    data = models.JSONField(default=dict, blank=True)
    updated_at = models.DateTimeField(auto_now=True)
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name="+")

    class Meta:
        db_table = "platform_settings"

    @classmethod
    def load(cls) -> "PlatformSettings":
        obj, _created = cls.objects.get_or_create(pk=1)
        return obj

    @property
    def values(self) -> dict:
        return {**self.DEFAULTS, **(self.data or {})}

    def update(self, changes: dict, user=None) -> dict:
        unknown = set(changes) - set(self.DEFAULTS)
        if unknown:
            raise ValidationError(
                {key: _("Unknown setting.") for key in sorted(unknown)})
        for key, value in changes.items():
            expected = type(self.DEFAULTS[key])
            if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
                raise ValidationError({key: _("Expected a value of type %s.") % expected.__name__})
        self.data = {**(self.data or {}), **changes}
        self.updated_by = user if user is not None and user.is_authenticated else None
        self.save()
        return self.values


# ----------------------------- Students ----------------
class StudentQuerySet(SchoolAwareQuerySet):
    def active(self):
        return self.filter(status=Student.Status.ACTIVE)

    def in_class(self, class_name: str):
        return self.filter(class_name=class_name)

    def pending_payment(self):
        return self.filter(payment_status=Student.PaymentStatus.PENDING)


class StudentManager(TenantManager.from_queryset(StudentQuerySet)):
    pass


class Student(SchoolAwareModel):
    """
    A pupil of one school. `class_name` holds the Class *name*; class renames
    are cascaded by `SchoolClass.save`.
    """
    class Status(models.TextChoices):
        PENDING = "pending", _("Pending")
        ACTIVE = "active", _("Active")
        INACTIVE = "inactive", _("Inactive")

    class PaymentStatus(models.TextChoices):
        PENDING = "pending", _("Pending")
        PARTIAL = "partial", _("Partial")
        PAID = "paid", _("Paid")

    # (field, message template) checked before inserting a student
    CONTACT_FIELDS = (
        ("email", "Un élève avec cet email existe déjà : {full_name} ({matricule})"),
        ("phone", "Un élève avec ce numéro existe déjà : {full_name} ({matricule})"),
        ("parent_phone", "Le téléphone du parent {value} est déjà utilisé par {full_name}"),
        ("parent_email", "L'email du parent {value} est déjà utilisé par {full_name}"),
    )

    full_name = models.CharField(max_length=150)
    matricule = models.CharField(max_length=30, blank=True)
    date_of_birth = models.DateField(null=True, blank=True)
    class_name = models.CharField(max_length=100, blank=True, default="", db_index=True)
    email = models.EmailField(null=True, blank=True)
    phone = models.CharField(max_length=30, null=True, blank=True)
    address = models.TextField(default="", blank=True)
    avatar_url = models.URLField(max_length=500, default="", blank=True)
    parent_name = models.CharField(max_length=150, default="", blank=True)
    parent_phone = models.CharField(max_length=30, null=True, blank=True)
    parent_email = models.EmailField(null=True, blank=True)
    status = models.CharField(
        max_length=10, choices=Status.choices, default=Status.ACTIVE, db_index=True)
    payment_status = models.CharField(
        max_length=10, choices=PaymentStatus.choices, default=PaymentStatus.PENDING, db_index=True)

    objects: StudentManager = StudentManager()

    class Meta:
        db_table = "students"
        ordering = ["full_name"]
        constraints = [
            UniqueConstraint(fields=["school", "matricule"], name="students_matricule_unique"),
            UniqueConstraint(
                fields=["school", "email"],
                condition=Q(email__isnull=False) & ~Q(email=""),
                name="students_email_unique",
            ),
            UniqueConstraint(
                fields=["school", "phone"],
                condition=Q(phone__isnull=False) & ~Q(phone=""),
                name="students_phone_unique",
            ),
            UniqueConstraint(
                fields=["school", "parent_phone"],
                condition=Q(parent_phone__isnull=False) & ~Q(parent_phone=""),
                name="unique_parent_phone",
            ),
            UniqueConstraint(
                fields=["school", "parent_email"],
                condition=Q(parent_email__isnull=False) & ~Q(parent_email=""),
                name="unique_parent_email",
            ),
        ]
        indexes = [
            models.Index(fields=["school", "class_name", "status"], name="students_school__9a1c2e_idx"),
        ]

    def __str__(self):
        return f"{self.full_name} ({self.matricule})"

    @staticmethod
    def generate_matricule() -> str:
        return f"STD{int(time.time() * 1000)}"

    def save(self, *args, **kwargs):
        for field in ("email", "phone", "parent_phone", "parent_email"):
            value = getattr(self, field)
            if isinstance(value, str):
                value = value.strip()
            setattr(self, field, value or None)
        if not self.matricule:
            self.matricule = self.generate_matricule()
            while Student.default_objects.filter(school_id=self.school_id, matricule=self.matricule).exists():
                self.matricule = f"STD{int(self.matricule[3:]) + 1}"
        super().save(*args, **kwargs)

    @classmethod
    def check_contact_conflicts(cls, school, data: dict, exclude_pk=None) -> None:
        """Raise ConflictError naming the student that already holds one of the contacts."""
        qs = cls.default_objects.filter(school=school)
        if exclude_pk:
            qs = qs.exclude(pk=exclude_pk)
        for field, template in cls.CONTACT_FIELDS:
            value = data.get(field)
            if isinstance(value, str):
                value = value.strip()
            if not value:
                continue
            lookup = {f"{field}__iexact": value} if "email" in field else {field: value}
            existing = qs.filter(**lookup).first()
            if existing:
                raise ConflictError(
                    template.format(value=value, full_name=existing.full_name, matricule=existing.matricule),
                    code=f"{field}_conflict",
                )

    @classmethod
    def create_for_school(cls, school, data: dict, **overrides) -> "Student":
        """Contact checks first, then insert; duplicate keys come back as ConflictError."""
        limit = school.student_limit()
        if not limit["can_add"]:
            raise ValidationError(
                _("Limite d'élèves atteinte (%(max)s) pour le plan %(plan)s.")
                % {"max": limit["max_limit"], "plan": limit["plan"]},
                code="student_limit",
            )
        cls.check_contact_conflicts(school, data)
        fields = {**data, **overrides}
        try:
            with transaction.atomic():
                return cls.default_objects.create(school=school, **fields)
        except IntegrityError as e:
            raise translate_integrity_error(e) from e

    @property
    def school_class(self) -> Optional["SchoolClass"]:
        return (
            SchoolClass.default_objects
            .filter(school_id=self.school_id, name=self.class_name)
            .order_by("-academic_year")
            .first()
        )

    def total_paid(self) -> Decimal:
        total = self.payments.aggregate(total=Sum("amount"))["total"]
        return total or Decimal("0")

    def derive_payment_status(self) -> str:
        return self.PaymentStatus.PARTIAL if self.total_paid() > 0 else self.PaymentStatus.PENDING

    def refresh_payment_status(self) -> str:
        status = self.derive_payment_status()
        if status != self.payment_status:
            self.payment_status = status
            self.save(update_fields=["payment_status", "updated_at"])
        return status

    def financial_summary(self) -> dict:
        paid = self.total_paid()
        school_class = self.school_class
        expected = Decimal("0")
        if school_class:
            expected = school_class.registration_fee + school_class.annual_tuition
        return {
            "total_paid": paid,
            "expected_total": expected,
            "balance": max(expected - paid, Decimal("0")),
        }


# ----------------------------- Classes ----------------
class SchoolClass(SchoolAwareModel):
    """A class of a school for one academic year, with its fee schedule."""
    DEFAULT_STUDY_MONTHS = 9

    name = models.CharField(max_length=100)
    level = models.CharField(max_length=50, default="", blank=True)
    academic_year = models.CharField(max_length=20)
    capacity = models.PositiveIntegerField(default=30)
    teacher_name = models.CharField(max_length=150, default="", blank=True)
    room_number = models.CharField(max_length=30, default="", blank=True)
    schedule = models.CharField(max_length=255, default="", blank=True)
    registration_fee = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0"), validators=[MinValueValidator(0)])
    monthly_tuition = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0"), validators=[MinValueValidator(0)])
    annual_tuition = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0"), validators=[MinValueValidator(0)])

    class Meta:
        db_table = "classes"
        ordering = ["-level", "name"]
        constraints = [
            UniqueConstraint(fields=["school", "name", "academic_year"], name="unique_class_per_year"),
        ]

    def __str__(self):
        return f"{self.name} ({self.academic_year})"

    @classmethod
    def annual_from_monthly(cls, monthly_tuition, registration_fee, study_months=None) -> Decimal:
        months = study_months or cls.DEFAULT_STUDY_MONTHS
        return Decimal(monthly_tuition or 0) * months + Decimal(registration_fee or 0)

    def save(self, *args, **kwargs):
        previous_name = None
        if self.pk:
            previous_name = (
                SchoolClass.default_objects.filter(pk=self.pk)
                .values_list("name", flat=True).first()
            )
        with transaction.atomic():
            super().save(*args, **kwargs)
            if previous_name and previous_name != self.name:
                # students follow the class by name unless another year's class keeps it
                name_still_used = SchoolClass.default_objects.filter(
                    school_id=self.school_id, name=previous_name
                ).exclude(pk=self.pk).exists()
                if not name_still_used:
                    Student.default_objects.filter(
                        school_id=self.school_id, class_name=previous_name
                    ).update(class_name=self.name)
                Enrollment.default_objects.filter(
                    school_id=self.school_id, requested_class=previous_name,
                    academic_year=self.academic_year,
                ).update(requested_class=self.name)

    def active_students(self):
        return Student.default_objects.filter(
            school_id=self.school_id, class_name=self.name, status=Student.Status.ACTIVE)

    def stats(self, student_count: Optional[int] = None) -> dict:
        from main.finance.utils import class_statistics
        if student_count is None:
            student_count = self.active_students().count()
        return class_statistics(
            student_count, self.capacity, self.registration_fee, self.annual_tuition)


# ----------------------------- Enrollments ----------------
class Enrollment(SchoolAwareModel, AuditableModel):
    """
    Request to place a (possibly new) student in a class for an academic year.
    `payment_status` tracks the enrollment fee, not the student's tuition.
    """
    class Status(models.TextChoices):
        PENDING = "pending", _("Pending")
        APPROVED = "approved", _("Approved")
        REJECTED = "rejected", _("Rejected")
        DOCUMENTS_MISSING = "documents_missing", _("Documents missing")

    class Type(models.TextChoices):
        NEW = "new", _("New")
        RE_ENROLLMENT = "re-enrollment", _("Re-enrollment")

    class FeeStatus(models.TextChoices):
        PENDING = "pending", _("Pending")
        PARTIAL = "partial", _("Partial")
        PAID = "paid", _("Paid")

    TRANSITIONS = {
        Status.PENDING: {Status.APPROVED, Status.REJECTED, Status.DOCUMENTS_MISSING},
        Status.DOCUMENTS_MISSING: {Status.PENDING, Status.APPROVED, Status.REJECTED},
        Status.APPROVED: set(),
        Status.REJECTED: set(),
    }

    student = models.ForeignKey(
        Student, on_delete=models.CASCADE, null=True, blank=True, related_name="enrollments")
    requested_class = models.CharField(max_length=100)
    previous_class = models.CharField(max_length=100, null=True, blank=True)
    academic_year = models.CharField(max_length=20)
    enrollment_type = models.CharField(max_length=15, choices=Type.choices, default=Type.NEW)
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True)
    enrollment_date = models.DateField(default=timezone.localdate)
    enrollment_fee = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0"), validators=[MinValueValidator(0)])
    payment_status = models.CharField(
        max_length=10, choices=FeeStatus.choices, default=FeeStatus.PENDING)
    documents_submitted = models.JSONField(default=list, blank=True)
    notes = models.TextField(null=True, blank=True)
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name="approved_enrollments")
    approved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "enrollments"
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.requested_class} / {self.academic_year} ({self.status})"

    # ---- state machine ----
    def can_transition(self, status: str) -> bool:
        return status in self.TRANSITIONS.get(self.status, set())

    def _assert_transition(self, status: str) -> None:
        if not self.can_transition(status):
            raise InvalidTransition(
                _("Impossible de passer une inscription de '%(from)s' à '%(to)s'.")
                % {"from": self.status, "to": status},
                code="invalid_transition",
            )

    @transaction.atomic
    def _set_status(self, status: str, notes: Optional[str] = None) -> "Enrollment":
        self._assert_transition(status)
        self.status = status
        fields = ["status", "updated_at"]
        if notes:
            self.notes = notes
            fields.append("notes")
        self.save(update_fields=fields)
        return self

    def reject(self, notes: Optional[str] = None) -> "Enrollment":
        return self._set_status(self.Status.REJECTED, notes)

    def mark_documents_missing(self, notes: Optional[str] = None) -> "Enrollment":
        return self._set_status(self.Status.DOCUMENTS_MISSING, notes)

    # ---- creation / approval ----
    @classmethod
    @transaction.atomic
    def create_with_student(cls, school, student_data: Optional[dict] = None, **fields) -> "Enrollment":
        """New enrollments may carry the student payload; the student starts pending."""
        if student_data and not fields.get("student"):
            student_fields = dict(student_data)
            student_fields.setdefault("class_name", fields.get("requested_class", ""))
            fields["student"] = Student.create_for_school(
                school, student_fields,
                status=Student.Status.PENDING,
                payment_status=Student.PaymentStatus.PENDING,
            )
        return cls.default_objects.create(school=school, **fields)

    @property
    def registration_note(self) -> str:
        kind = "Nouvelle inscription" if self.enrollment_type == self.Type.NEW else "Réinscription"
        return f"Paiement d'inscription - {kind}"

    def requested_school_class(self) -> Optional[SchoolClass]:
        qs = SchoolClass.default_objects.filter(school_id=self.school_id, name=self.requested_class)
        return qs.filter(academic_year=self.academic_year).first() or qs.order_by("-academic_year").first()

    @transaction.atomic
    def approve(self, approved_by=None, student_data: Optional[dict] = None) -> dict:
        """
        Approve in one transaction: create the student when the payload is
        given, activate the student in the requested class, and record the
        registration payment when the fee was already collected.

        Returns {"amount_paid", "total_amount", "remaining", "payment"}.
        """
        from main.finance.utils import record_payment

        self._assert_transition(self.Status.APPROVED)
        school_class = self.requested_school_class()

        if self.student_id is None:
            if not student_data:
                raise ValidationError(_("Aucun élève n'est associé à cette inscription."))
            self.student = Student.create_for_school(
                self.school, dict(student_data),
                status=Student.Status.PENDING,
                payment_status=Student.PaymentStatus.PENDING,
            )

        self.status = self.Status.APPROVED
        self.approved_by = approved_by if approved_by is not None and approved_by.is_authenticated else None
        self.approved_at = timezone.now()
        self.save()

        student = self.student
        student.status = Student.Status.ACTIVE
        student.class_name = self.requested_class
        student.save(update_fields=["status", "class_name", "updated_at"])

        payment = None
        fee = self.enrollment_fee or Decimal("0")
        if fee > 0 and self.payment_status != self.FeeStatus.PENDING:
            payment = record_payment(
                school=self.school,
                student=student,
                amount=fee,
                payment_method=Payment.Method.CASH,
                payment_type=Payment.Type.REGISTRATION,
                payment_date=timezone.localdate(),
                academic_year=self.academic_year or self.school.academic_year(),
                notes=self.registration_note,
                created_by=self.approved_by,
            )

        total = school_class.registration_fee if school_class else Decimal("0")
        amount_paid = fee if payment else Decimal("0")
        return {
            "amount_paid": amount_paid,
            "total_amount": total,
            "remaining": max(total - amount_paid, Decimal("0")),
            "payment": payment,
        }


# ----------------------------- Payments ----------------
class PaymentQuerySet(SchoolAwareQuerySet):
    def tuition(self):
        return self.filter(payment_type__in=Payment.TUITION_TYPES)

    def for_period(self, period: str):
        return self.filter(payment_period=period)

    def in_month(self, year: int, month: int):
        return self.filter(payment_date__year=year, payment_date__month=month)

    def total(self) -> Decimal:
        return self.aggregate(total=Sum("amount"))["total"] or Decimal("0")


class PaymentManager(TenantManager.from_queryset(PaymentQuerySet)):
    """Tenant-aware manager exposing the payment queryset helpers."""


class Payment(SchoolAwareModel, AuditableModel):
    """A collected amount from a student. `receipt_number` is server-generated."""
    class Method(models.TextChoices):
        CASH = "cash", _("Espèces")
        MOBILE_MONEY = "mobile_money", _("Mobile Money")
        BANK_TRANSFER = "bank_transfer", _("Virement bancaire")
        CHECK = "check", _("Chèque")
        OTHER = "other", _("Autre")

    class Type(models.TextChoices):
        TUITION = "tuition", _("Frais de scolarité")
        MONTHLY_TUITION = "monthly_tuition", _("Mensualité")
        REGISTRATION = "registration", _("Inscription")
        EXAM = "exam", _("Examen")
        TRANSPORT = "transport", _("Transport")
        CANTEEN = "canteen", _("Cantine")
        UNIFORM = "uniform", _("Uniforme")
        BOOKS = "books", _("Livres")
        OTHER = "other", _("Autre")

    TUITION_TYPES = (Type.MONTHLY_TUITION, Type.TUITION)

    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name="payments")
    amount = models.DecimalField(
        max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal("0.01"))])
    payment_method = models.CharField(max_length=20, choices=Method.choices)
    payment_type = models.CharField(max_length=20, choices=Type.choices)
    payment_date = models.DateField(default=timezone.localdate, db_index=True)
    payment_period = models.CharField(max_length=30, null=True, blank=True, db_index=True)
    academic_year = models.CharField(max_length=20, default=current_academic_year)
    receipt_number = models.CharField(max_length=40, editable=False)
    transaction_reference = models.CharField(max_length=100, null=True, blank=True)
    notes = models.TextField(null=True, blank=True)

    objects: PaymentManager = PaymentManager()

    class Meta:
        db_table = "payments"
        ordering = ["-payment_date", "-created_at"]
        constraints = [
            UniqueConstraint(fields=["school", "receipt_number"], name="payments_receipt_number_unique"),
            UniqueConstraint(
                fields=["student", "payment_period", "academic_year"],
                condition=Q(payment_type="monthly_tuition") & Q(payment_period__isnull=False),
                name="uniq_monthly_tuition_period",
            ),
            models.CheckConstraint(condition=Q(amount__gt=0), name="payments_amount_positive"),
        ]
        indexes = [
            models.Index(fields=["school", "payment_date"], name="payments_school__4f0b7d_idx"),
            models.Index(fields=["school", "payment_type", "payment_period"], name="payments_school__c2e81a_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.receipt_number} • {self.student.full_name} • {self.amount}"

    def clean(self):
        if self.student_id and self.school_id and self.student.school_id != self.school_id:
            raise ValidationError({"student": _("Student must belong to the same school.")})


class ReceiptCounter(models.Model):
    """Per-school receipt sequence; incremented under a row lock."""
    school = models.OneToOneField(School, on_delete=models.CASCADE, related_name="receipt_counter")
    last_number = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "receipt_counters"

    def __str__(self):
        return f"{self.school} #{self.last_number}"


# ----------------------------- Certificates ----------------
class CertificateQuerySet(SchoolAwareQuerySet):
    def generated(self):
        return self.filter(status=Certificate.Status.GENERATED)

    def pending(self):
        return self.filter(status=Certificate.Status.PENDING)

    def stats(self, today=None) -> dict:
        today = today or timezone.localdate()
        return {
            "total_generated": self.generated().count(),
            "pending": self.pending().count(),
            "this_month": self.filter(
                created_at__year=today.year, created_at__month=today.month).count(),
        }


class CertificateManager(TenantManager.from_queryset(CertificateQuerySet)):
    pass


class Certificate(SchoolAwareModel, AuditableModel):
    """Record of an issued official document; the PDF is rendered on demand."""
    class DocumentType(models.TextChoices):
        SCOLARITE = "scolarite", _("Certificat de scolarité")
        INSCRIPTION = "inscription", _("Attestation d'inscription")
        PAIEMENT = "paiement", _("Reçu de paiement")
        NOTES = "notes", _("Relevé de notes")
        PRESENCE = "presence", _("Attestation de présence")
        BONNE_CONDUITE = "bonne_conduite", _("Certificat de bonne conduite")

    class Signatory(models.TextChoices):
        DIRECTOR = "director", _("Directeur")
        PRINCIPAL = "principal", _("Proviseur")
        SECRETARY = "secretary", _("Secrétaire Général")

    class Status(models.TextChoices):
        GENERATED = "generated", _("Generated")
        PENDING = "pending", _("Pending")

    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name="certificates")
    document_type = models.CharField(max_length=20, choices=DocumentType.choices)
    academic_year = models.CharField(max_length=20, default=current_academic_year)
    issue_date = models.DateField(default=timezone.localdate)
    signatory = models.CharField(max_length=20, choices=Signatory.choices, default=Signatory.DIRECTOR)
    metadata = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.GENERATED)

    objects: CertificateManager = CertificateManager()

    class Meta:
        db_table = "certificates"
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.get_document_type_display()} • {self.student.full_name}"

    @property
    def document_name(self) -> str:
        return str(self.get_document_type_display())

    def pdf_filename(self, timestamp: Optional[int] = None) -> str:
        timestamp = timestamp or int(time.time() * 1000)
        return f"{self.document_name}_{self.student.matricule}_{timestamp}.pdf"


# ----------------------------- Reminders ----------------
class Channel(models.TextChoices):
    SMS = "sms", _("SMS")
    WHATSAPP = "whatsapp", _("WhatsApp")
    EMAIL = "email", _("Email")


def validate_channels(channels) -> None:
    if not isinstance(channels, list) or not channels:
        raise ValidationError(_("Sélectionnez au moins un canal"))
    unknown = set(channels) - set(Channel.values)
    if unknown:
        raise ValidationError(
            _("Canaux inconnus : %(channels)s") % {"channels": ", ".join(sorted(unknown))})


class ReminderConfiguration(SchoolAwareModel):
    """Declarative overdue-payment rule; evaluated by an external sender."""
    class ReminderType(models.TextChoices):
        AUTOMATIC = "automatic", _("Automatic")
        MANUAL = "manual", _("Manual")

    reminder_type = models.CharField(
        max_length=10, choices=ReminderType.choices, default=ReminderType.AUTOMATIC)
    trigger_days = models.PositiveIntegerField(help_text="Days overdue before sending")
    message_template = models.TextField()
    channels = models.JSONField(default=list, validators=[validate_channels])
    is_active = models.BooleanField(default=True)
    send_to_parent = models.BooleanField(default=True)

    class Meta:
        db_table = "reminder_configurations"
        ordering = ["trigger_days"]

    def __str__(self):
        return f"J+{self.trigger_days} ({', '.join(self.channels)})"

    def render(self, student: Student, **context) -> str:
        """Fill `{student_name}`-style placeholders; unknown ones are left as is."""
        values = {
            "student_name": student.full_name,
            "parent_name": student.parent_name,
            "class": student.class_name,
            "matricule": student.matricule,
            "days": self.trigger_days,
            **context,
        }
        message = self.message_template
        for key, value in values.items():
            message = message.replace("{" + key + "}", str(value))
        return message


class ScheduledReminderQuerySet(SchoolAwareQuerySet):
    def pending(self):
        return self.filter(status=ScheduledReminder.Status.PENDING)

    def due(self, now=None):
        now = timezone.localtime(now or timezone.now())
        return self.pending().filter(
            Q(scheduled_date__lt=now.date())
            | Q(scheduled_date=now.date(), scheduled_time__isnull=True)
            | Q(scheduled_date=now.date(), scheduled_time__lte=now.time())
        )


class ScheduledReminderManager(TenantManager.from_queryset(ScheduledReminderQuerySet)):
    pass


class ScheduledReminder(SchoolAwareModel, AuditableModel):
    """One-off reminder for a student: pending -> sent | failed | cancelled."""
    class Status(models.TextChoices):
        PENDING = "pending", _("Pending")
        SENT = "sent", _("Sent")
        FAILED = "failed", _("Failed")
        CANCELLED = "cancelled", _("Cancelled")

    TERMINAL = (Status.SENT, Status.FAILED, Status.CANCELLED)

    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name="scheduled_reminders")
    scheduled_date = models.DateField()
    scheduled_time = models.TimeField(null=True, blank=True)
    message = models.TextField()
    channels = models.JSONField(default=list, validators=[validate_channels])
    send_to_parent = models.BooleanField(default=True)
    status = models.CharField(
        max_length=10, choices=Status.choices, default=Status.PENDING, db_index=True)
    sent_at = models.DateTimeField(null=True, blank=True)
    error_message = models.TextField(null=True, blank=True)

    objects: ScheduledReminderManager = ScheduledReminderManager()

    class Meta:
        db_table = "scheduled_reminders"
        ordering = ["scheduled_date", "scheduled_time"]

    def __str__(self):
        return f"{self.student.full_name} @ {self.scheduled_date} ({self.status})"

    # ---- lifecycle helpers ----
    def _mark(self, status: str, **fields) -> "ScheduledReminder":
        if self.status != self.Status.PENDING:
            raise InvalidTransition(
                _("Ce rappel est déjà '%(status)s'.") % {"status": self.status},
                code="invalid_transition",
            )
        self.status = status
        for name, value in fields.items():
            setattr(self, name, value)
        self.save(update_fields=["status", *fields.keys(), "updated_at"])
        return self

    @transaction.atomic
    def cancel(self) -> "ScheduledReminder":
        return self._mark(self.Status.CANCELLED)

    @transaction.atomic
    def mark_sent(self, when=None) -> "ScheduledReminder":
        return self._mark(self.Status.SENT, sent_at=when or timezone.now())

    @transaction.atomic
    def mark_failed(self, error_message: str = "") -> "ScheduledReminder":
        return self._mark(self.Status.FAILED, error_message=error_message or None)


# ----------------------------- Subscriptions ----------------
def add_months(day, months: int):
    """Same day `months` later, clamped to the end of shorter months."""
    month_index = day.month - 1 + months
    year, month = day.year + month_index // 12, month_index % 12 + 1
    return day.replace(year=year, month=month, day=min(day.day, calendar.monthrange(year, month)[1]))


class SubscriptionQuerySet(models.QuerySet):
    def lapsed(self, today=None):
        today = today or timezone.localdate()
        return self.filter(status=Subscription.Status.ACTIVE, end_date__lt=today)

    def expire_lapsed(self, today=None) -> int:
        return self.lapsed(today).update(status=Subscription.Status.EXPIRED, updated_at=timezone.now())


class Subscription(models.Model):
    """
    A paid period of the platform for one school, managed by super admins.
    Creating one activates it and moves the school onto its plan until `end_date`.
    """
    class Type(models.TextChoices):
        MONTHLY = "monthly", _("Mensuel")
        ANNUAL = "annual", _("Annuel")

    class Status(models.TextChoices):
        ACTIVE = "active", _("Active")
        EXPIRED = "expired", _("Expired")
        CANCELLED = "cancelled", _("Cancelled")
        PENDING = "pending", _("Pending")

    PRICES = {Type.MONTHLY: Decimal("25000"), Type.ANNUAL: Decimal("300000")}
    DURATION_MONTHS = {Type.MONTHLY: 1, Type.ANNUAL: 12}

    school = models.ForeignKey(School, on_delete=models.CASCADE, related_name="subscriptions")
    subscription_type = models.CharField(max_length=10, choices=Type.choices)
    status = models.CharField(
        max_length=10, choices=Status.choices, default=Status.PENDING, db_index=True)
    amount = models.DecimalField(
        max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal("0"))])
    start_date = models.DateField(default=timezone.localdate)
    end_date = models.DateField()
    auto_renew = models.BooleanField(default=True)
    payment_method = models.CharField(max_length=20, null=True, blank=True)
    transaction_reference = models.CharField(max_length=100, null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name="+")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = SubscriptionQuerySet.as_manager()

    class Meta:
        db_table = "subscriptions"
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.school} • {self.subscription_type} → {self.end_date} ({self.status})"

    @classmethod
    def end_date_for(cls, subscription_type: str, start_date):
        return add_months(start_date, cls.DURATION_MONTHS[subscription_type])

    @classmethod
    @transaction.atomic
    def activate(cls, school, subscription_type: str, start_date=None, end_date=None,
                 amount=None, created_by=None, **fields) -> "Subscription":
        """Create an active subscription and put the school on its plan until the end date."""
        start_date = start_date or timezone.localdate()
        end_date = end_date or cls.end_date_for(subscription_type, start_date)
        if end_date <= start_date:
            raise ValidationError({"end_date": _("La date de fin doit suivre la date de début.")})

        subscription = cls.objects.create(
            school=school,
            subscription_type=subscription_type,
            status=cls.Status.ACTIVE,
            amount=cls.PRICES[subscription_type] if amount is None else amount,
            start_date=start_date,
            end_date=end_date,
            created_by=created_by if created_by is not None and created_by.is_authenticated else None,
            **fields,
        )
        school.subscription_plan = subscription_type
        school.subscription_end_date = end_date
        school.save(update_fields=["subscription_plan", "subscription_end_date", "updated_at"])
        return subscription

    @transaction.atomic
    def cancel(self) -> "Subscription":
        if self.status not in (self.Status.ACTIVE, self.Status.PENDING):
            raise InvalidTransition(
                _("Cet abonnement est déjà '%(status)s'.") % {"status": self.status},
                code="invalid_transition",
            )
        self.status = self.Status.CANCELLED
        self.auto_renew = False
        self.save(update_fields=["status", "auto_renew", "updated_at"])
        return self


# ----------------------------- Audit ----------------
class AuditLog(SchoolOwnedModel):
    """
    Audit trail for both requests and model changes.
    Tracks who did what, when, and from where.
    """
    class Action(models.TextChoices):
        REQUEST = "request", _("Request")
        CREATE = "create", _("Create")
        UPDATE = "update", _("Update")
        DELETE = "delete", _("Delete")
        APPROVE = "approve", _("Approve")

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="audit_logs")
    school = models.ForeignKey(
        School, null=True, blank=True, on_delete=models.SET_NULL, related_name="audit_logs")

    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True, default="")
    request_path = models.CharField(max_length=512, blank=True, default="")
    request_method = models.CharField(max_length=8, blank=True, default="")
    status_code = models.PositiveIntegerField(default=0)

    timestamp = models.DateTimeField(default=timezone.now, db_index=True)
    action = models.CharField(max_length=10, choices=Action.choices, db_index=True)
    model = models.CharField(max_length=128, blank=True, default="", db_index=True)
    object_id = models.CharField(max_length=64, blank=True, default="", db_index=True)
    changes = models.JSONField(default=dict, blank=True)
    extra = models.JSONField(default=dict, blank=True)

    content_type = models.ForeignKey(ContentType, on_delete=models.SET_NULL, null=True, blank=True)
    content_object = GenericForeignKey('content_type', 'object_id')

    class Meta:
        db_table = "audit_logs"
        ordering = ["-timestamp"]
        indexes = [
            models.Index(fields=["model", "object_id"], name="audit_logs_model_3b7f10_idx"),
            models.Index(fields=["school", "timestamp"], name="audit_logs_school__e5d2a4_idx"),
        ]

    def __str__(self):
        return f"{self.get_action_display()} on {self.model or 'system'} by {self.user} at {self.timestamp}"
