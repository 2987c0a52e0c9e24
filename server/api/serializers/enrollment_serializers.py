import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers

from main.models import Enrollment, SchoolClass, Student

from .core_serializers import StudentInputSerializer, as_drf_error, conflict_field

logger = logging.getLogger(__name__)


class EnrollmentSerializer(serializers.ModelSerializer):
    student = serializers.PrimaryKeyRelatedField(
        queryset=Student.objects, required=False, allow_null=True)
    student_name = serializers.CharField(source='student.full_name', read_only=True, default=None)
    student_matricule = serializers.CharField(source='student.matricule', read_only=True, default=None)
    student_data = StudentInputSerializer(write_only=True, required=False)
    approved_by_email = serializers.EmailField(source='approved_by.email', read_only=True, default=None)

    class Meta:
        model = Enrollment
        fields = [
            'id', 'student', 'student_name', 'student_matricule', 'student_data',
            'requested_class', 'previous_class', 'academic_year', 'enrollment_type',
            'status', 'enrollment_date', 'enrollment_fee', 'payment_status',
            'documents_submitted', 'notes', 'approved_by', 'approved_by_email',
            'approved_at', 'created_at', 'updated_at',
        ]
        read_only_fields = ['status', 'approved_by', 'approved_at', 'created_at', 'updated_at']

    def validate_requested_class(self, value):
        value = value.strip()
        if not SchoolClass.objects.filter(name=value).exists():
            raise serializers.ValidationError(f"La classe '{value}' n'existe pas dans cette école.")
        return value

    def validate_documents_submitted(self, value):
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise serializers.ValidationError("Liste de documents invalide.")
        return value

    def validate(self, attrs):
        if self.instance is not None and self.instance.status in (
                Enrollment.Status.APPROVED, Enrollment.Status.REJECTED):
            raise serializers.ValidationError("Une inscription traitée ne peut plus être modifiée.")

        enrollment_type = attrs.get('enrollment_type', getattr(self.instance, 'enrollment_type', Enrollment.Type.NEW))
        student = attrs.get('student', getattr(self.instance, 'student', None))
        if enrollment_type == Enrollment.Type.RE_ENROLLMENT and student is None:
            raise serializers.ValidationError({'student': "Sélectionnez l'élève à réinscrire."})
        if self.instance is None and student is None and not attrs.get('student_data'):
            raise serializers.ValidationError(
                {'student_data': "Renseignez l'élève ou ses informations pour une nouvelle inscription."})
        if student is not None and enrollment_type == Enrollment.Type.RE_ENROLLMENT:
            attrs.setdefault('previous_class', student.class_name or None)
        return attrs

    def create(self, validated_data):
        school = validated_data.pop('school')
        student_data = validated_data.pop('student_data', None)
        try:
            return Enrollment.create_with_student(school, student_data, **validated_data)
        except DjangoValidationError as e:
            logger.info("Enrollment refused for school %s: %s", school.pk, e.messages)
            field = 'student_data' if conflict_field(e) else None
            raise as_drf_error(e, field)

    def update(self, instance, validated_data):
        validated_data.pop('school', None)
        validated_data.pop('student_data', None)
        return super().update(instance, validated_data)


class EnrollmentApproveSerializer(serializers.Serializer):
    student_data = StudentInputSerializer(required=False)


class EnrollmentDecisionSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True)
