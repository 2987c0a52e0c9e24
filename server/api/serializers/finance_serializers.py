import logging
from decimal import Decimal

import django.db
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from rest_framework import serializers

from main.common.errors import translate_integrity_error
from main.finance.utils import ensure_period_available, record_payment
from main.models import Payment, Student

from .core_serializers import as_drf_error, conflict_field

logger = logging.getLogger(__name__)


class PaymentSerializer(serializers.ModelSerializer):
    student = serializers.PrimaryKeyRelatedField(queryset=Student.objects)
    student_name = serializers.CharField(source='student.full_name', read_only=True)
    student_matricule = serializers.CharField(source='student.matricule', read_only=True)
    class_name = serializers.CharField(source='student.class_name', read_only=True)
    payment_type_display = serializers.CharField(source='get_payment_type_display', read_only=True)
    payment_method_display = serializers.CharField(source='get_payment_method_display', read_only=True)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0.01"))
    payment_date = serializers.DateField(required=False)
    academic_year = serializers.CharField(max_length=20, required=False)

    class Meta:
        model = Payment
        fields = [
            'id', 'student', 'student_name', 'student_matricule', 'class_name',
            'amount', 'payment_method', 'payment_method_display',
            'payment_type', 'payment_type_display', 'payment_date', 'payment_period',
            'academic_year', 'receipt_number', 'transaction_reference', 'notes',
            'created_by', 'created_at', 'updated_at',
        ]
        read_only_fields = ['receipt_number', 'created_by', 'created_at', 'updated_at']
        # period uniqueness is checked by record_payment with its own message
        validators = []

    def validate_payment_period(self, value):
        return value.strip() if value else None

    def validate(self, attrs):
        payment_type = attrs.get('payment_type', getattr(self.instance, 'payment_type', None))
        if payment_type == Payment.Type.MONTHLY_TUITION and not attrs.get(
                'payment_period', getattr(self.instance, 'payment_period', None)):
            raise serializers.ValidationError(
                {'payment_period': "Indiquez le mois réglé pour une mensualité."})
        if self.instance is not None and 'student' in attrs and attrs['student'] != self.instance.student:
            raise serializers.ValidationError({'student': "L'élève d'un paiement ne peut pas être modifié."})
        return attrs

    def create(self, validated_data):
        school = validated_data.pop('school')
        request = self.context.get('request')
        try:
            return record_payment(
                school=school,
                created_by=getattr(request, 'user', None),
                **validated_data,
            )
        except DjangoValidationError as e:
            raise as_drf_error(e, conflict_field(e))

    def update(self, instance, validated_data):
        validated_data.pop('school', None)
        payment_type = validated_data.get('payment_type', instance.payment_type)
        period = validated_data.get('payment_period', instance.payment_period)
        year = validated_data.get('academic_year', instance.academic_year)
        try:
            ensure_period_available(instance.student, payment_type, period, year, exclude_pk=instance.pk)
            with transaction.atomic():
                return super().update(instance, validated_data)
        except DjangoValidationError as e:
            raise as_drf_error(e, conflict_field(e))
        except django.db.IntegrityError as e:
            logger.warning("Payment %s update rejected: %s", instance.pk, e)
            error = translate_integrity_error(e)
            raise as_drf_error(error, conflict_field(error))


class LatePaymentQuerySerializer(serializers.Serializer):
    class_name = serializers.CharField(max_length=100)
    month = serializers.CharField(max_length=30)
    academic_year = serializers.CharField(max_length=20, required=False, allow_blank=True)


class LateStudentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Student
        fields = ['id', 'full_name', 'matricule', 'class_name', 'parent_name',
                  'parent_phone', 'parent_email', 'payment_status']


class PaymentStatsSerializer(serializers.Serializer):
    monthly_total = serializers.DecimalField(max_digits=14, decimal_places=2)
    monthly_count = serializers.IntegerField()
    total_collected = serializers.DecimalField(max_digits=14, decimal_places=2)
    payment_count = serializers.IntegerField()
    pending_count = serializers.IntegerField()
    by_method = serializers.DictField(child=serializers.DecimalField(max_digits=14, decimal_places=2))
