import logging

import django.db
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from rest_framework import serializers

from main.common.errors import translate_integrity_error
from main.models import School, SchoolClass, Student

logger = logging.getLogger(__name__)


def as_drf_error(error: DjangoValidationError, field: str = None) -> serializers.ValidationError:
    """Re-raise a domain ValidationError (ConflictError, InvalidTransition...) the DRF way."""
    if hasattr(error, "error_dict"):
        return serializers.ValidationError(error.message_dict)
    messages = error.messages
    if field:
        return serializers.ValidationError({field: messages})
    return serializers.ValidationError({"non_field_errors": messages})


CONFLICT_FIELDS = {
    "email_conflict": "email",
    "phone_conflict": "phone",
    "parent_phone_conflict": "parent_phone",
    "parent_email_conflict": "parent_email",
    "students_email_unique": "email",
    "students_phone_unique": "phone",
    "unique_parent_phone": "parent_phone",
    "unique_parent_email": "parent_email",
    "students_matricule_unique": "matricule",
    "unique_class_per_year": "name",
    "uniq_monthly_tuition_period": "payment_period",
}


def conflict_field(error: DjangoValidationError):
    return CONFLICT_FIELDS.get(getattr(error, "code", None))


class SchoolSerializer(serializers.ModelSerializer):
    """Current school as seen (and edited) by its own staff."""

    class Meta:
        model = School
        fields = ['id', 'name', 'address', 'phone', 'email', 'logo_url', 'code',
                  'is_active', 'max_students', 'subscription_plan', 'subscription_end_date',
                  'settings', 'created_at', 'updated_at']
        read_only_fields = ['code', 'is_active', 'max_students', 'subscription_plan',
                            'subscription_end_date', 'created_at', 'updated_at']

    def validate_name(self, value):
        if not value or not value.strip():
            raise serializers.ValidationError("Please provide a school name.")
        if len(value.strip()) < 2:
            raise serializers.ValidationError(
                "School name is too short. It should be at least 2 characters long.")
        return value.strip()


class StudentSerializer(serializers.ModelSerializer):
    matricule = serializers.CharField(max_length=30, required=False, allow_blank=True)

    class Meta:
        model = Student
        fields = [
            'id', 'full_name', 'matricule', 'date_of_birth', 'class_name',
            'email', 'phone', 'address', 'avatar_url',
            'parent_name', 'parent_phone', 'parent_email',
            'status', 'payment_status', 'created_at', 'updated_at',
        ]
        read_only_fields = ['created_at', 'updated_at']

    def validate_full_name(self, value):
        if not value or not value.strip():
            raise serializers.ValidationError("Le nom complet est requis.")
        if len(value.strip()) < 2:
            raise serializers.ValidationError("Le nom doit contenir au moins 2 caractères.")
        return value.strip()

    def validate_email(self, value):
        return value.lower().strip() if value else None

    def validate_parent_email(self, value):
        return value.lower().strip() if value else None

    def _school(self, validated_data):
        return validated_data.pop('school', None) or getattr(self.instance, 'school', None)

    def create(self, validated_data):
        school = self._school(validated_data)
        try:
            with transaction.atomic():
                return Student.create_for_school(school, validated_data)
        except DjangoValidationError as e:
            logger.info("Student creation refused for school %s: %s", school.pk, e.messages)
            raise as_drf_error(e, conflict_field(e))

    def update(self, instance, validated_data):
        validated_data.pop('school', None)
        try:
            Student.check_contact_conflicts(instance.school, validated_data, exclude_pk=instance.pk)
            with transaction.atomic():
                return super().update(instance, validated_data)
        except DjangoValidationError as e:
            raise as_drf_error(e, conflict_field(e))
        except django.db.IntegrityError as e:
            logger.warning("Student %s update rejected: %s", instance.pk, e)
            error = translate_integrity_error(e)
            raise as_drf_error(error, conflict_field(error))


class StudentDetailSerializer(StudentSerializer):
    financial_summary = serializers.SerializerMethodField()

    class Meta(StudentSerializer.Meta):
        fields = StudentSerializer.Meta.fields + ['financial_summary']

    def get_financial_summary(self, obj):
        summary = obj.financial_summary()
        return {key: str(value) for key, value in summary.items()}


class StudentInputSerializer(serializers.Serializer):
    """Payload of a student created together with an enrollment."""
    full_name = serializers.CharField(max_length=150)
    date_of_birth = serializers.DateField(required=False, allow_null=True)
    email = serializers.EmailField(required=False, allow_blank=True, allow_null=True)
    phone = serializers.CharField(max_length=30, required=False, allow_blank=True, allow_null=True)
    address = serializers.CharField(required=False, allow_blank=True)
    parent_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    parent_phone = serializers.CharField(max_length=30, required=False, allow_blank=True, allow_null=True)
    parent_email = serializers.EmailField(required=False, allow_blank=True, allow_null=True)

    def validate_full_name(self, value):
        if len(value.strip()) < 2:
            raise serializers.ValidationError("Le nom doit contenir au moins 2 caractères.")
        return value.strip()


class SchoolClassSerializer(serializers.ModelSerializer):
    study_months = serializers.IntegerField(
        write_only=True, required=False, min_value=1, max_value=12,
        help_text="Used to derive annual_tuition when it is not given")
    student_count = serializers.SerializerMethodField()
    occupancy_rate = serializers.SerializerMethodField()
    occupancy_level = serializers.SerializerMethodField()
    available_seats = serializers.SerializerMethodField()
    expected_revenue = serializers.SerializerMethodField()

    class Meta:
        model = SchoolClass
        fields = [
            'id', 'name', 'level', 'academic_year', 'capacity', 'teacher_name',
            'room_number', 'schedule', 'registration_fee', 'monthly_tuition',
            'annual_tuition', 'study_months',
            'student_count', 'occupancy_rate', 'occupancy_level', 'available_seats',
            'expected_revenue', 'created_at', 'updated_at',
        ]
        read_only_fields = ['created_at', 'updated_at']

    def _stats(self, obj) -> dict:
        cache = self.context.setdefault('_class_stats', {})
        if obj.pk not in cache:
            counts = self.context.get('class_counts')
            count = counts.get(obj.name, 0) if counts is not None else None
            cache[obj.pk] = obj.stats(student_count=count)
        return cache[obj.pk]

    def get_student_count(self, obj):
        return self._stats(obj)['student_count']

    def get_occupancy_rate(self, obj):
        return self._stats(obj)['occupancy_rate']

    def get_occupancy_level(self, obj):
        return self._stats(obj)['occupancy_level']

    def get_available_seats(self, obj):
        return self._stats(obj)['available_seats']

    def get_expected_revenue(self, obj):
        return str(self._stats(obj)['expected_revenue'])

    def validate_name(self, value):
        if not value or not value.strip():
            raise serializers.ValidationError("Le nom de la classe est requis.")
        return value.strip()

    def validate_capacity(self, value):
        if value < 1:
            raise serializers.ValidationError("La capacité doit être d'au moins 1 élève.")
        return value

    def validate(self, attrs):
        study_months = attrs.pop('study_months', None)
        if 'annual_tuition' not in self.initial_data and study_months:
            monthly = attrs.get('monthly_tuition', getattr(self.instance, 'monthly_tuition', 0))
            registration = attrs.get('registration_fee', getattr(self.instance, 'registration_fee', 0))
            attrs['annual_tuition'] = SchoolClass.annual_from_monthly(monthly, registration, study_months)
        return attrs

    def _save(self, save, *args):
        try:
            with transaction.atomic():
                return save(*args)
        except django.db.IntegrityError as e:
            error = translate_integrity_error(e)
            logger.info("Class write rejected: %s", e)
            raise as_drf_error(error, conflict_field(error))

    def create(self, validated_data):
        return self._save(super().create, validated_data)

    def update(self, instance, validated_data):
        validated_data.pop('school', None)
        return self._save(super().update, instance, validated_data)
