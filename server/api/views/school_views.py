import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import Count
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.response import Response
from rest_framework.viewsets import ModelViewSet, ReadOnlyModelViewSet

from main.filter import EnrollmentFilter, StudentFilter
from main.finance.utils import classes_with_statistics
from main.models import SCHOOL_ADMIN, Enrollment, Payment, SchoolClass, Student
from main.tenancy.audit_utils import log_action

from ..serializers import (
    EnrollmentApproveSerializer,
    EnrollmentDecisionSerializer,
    EnrollmentSerializer,
    PaymentSerializer,
    SchoolClassSerializer,
    StudentDetailSerializer,
    StudentSerializer,
)
from .mixins import StandardResultSetPagination, TenantScopedMixin, error_response, success_response

logger = logging.getLogger(__name__)


class StudentViewSet(TenantScopedMixin, ModelViewSet):
    serializer_class = StudentSerializer
    pagination_class = StandardResultSetPagination
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_class = StudentFilter
    search_fields = ['full_name', 'matricule', 'email', 'parent_name', 'parent_phone']
    ordering_fields = ['full_name', 'matricule', 'class_name', 'created_at']

    def get_queryset(self):
        return Student.objects.all()

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return StudentDetailSerializer
        return StudentSerializer

    @action(detail=False, methods=['GET'])
    def limit(self, request):
        """Roster usage against the school's subscription plan."""
        return Response(self.get_school().student_limit())


class StudentPaymentViewSet(TenantScopedMixin, ReadOnlyModelViewSet):
    """Payments of one student: /students/{student_pk}/payments/"""
    serializer_class = PaymentSerializer
    pagination_class = StandardResultSetPagination

    def get_queryset(self):
        return (
            Payment.objects.filter(student_id=self.kwargs['student_pk'])
            .select_related('student')
        )


class SchoolClassViewSet(TenantScopedMixin, ModelViewSet):
    serializer_class = SchoolClassSerializer
    write_roles = (SCHOOL_ADMIN,)
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_fields = ['academic_year', 'level']
    search_fields = ['name', 'teacher_name', 'room_number']
    ordering_fields = ['name', 'level', 'capacity', 'academic_year']

    def get_queryset(self):
        return SchoolClass.objects.all()

    def get_serializer_context(self):
        context = super().get_serializer_context()
        if self.action == 'list':
            # one grouped count instead of one query per class
            context['class_counts'] = dict(
                Student.objects.filter(status=Student.Status.ACTIVE)
                .values_list('class_name')
                .annotate(n=Count('id'))
            )
        return context

    @action(detail=False, methods=['GET'])
    def stats(self, request):
        academic_year = request.query_params.get('academic_year')
        rows = classes_with_statistics(self.get_school(), academic_year)

        total_students = sum(stats['student_count'] for _, stats in rows)
        total_capacity = sum(stats['capacity'] for _, stats in rows)
        occupancy = round(total_students * 100 / total_capacity, 1) if total_capacity else 0.0
        return Response({
            'total_classes': len(rows),
            'total_students': total_students,
            'total_capacity': total_capacity,
            'occupancy_rate': occupancy,
            'expected_revenue': str(sum((stats['expected_revenue'] for _, stats in rows), 0)),
            'classes': [
                {'id': school_class.id, 'name': school_class.name,
                 **stats, 'expected_revenue': str(stats['expected_revenue'])}
                for school_class, stats in rows
            ],
        })


class EnrollmentViewSet(TenantScopedMixin, ModelViewSet):
    serializer_class = EnrollmentSerializer
    write_roles = (SCHOOL_ADMIN,)
    pagination_class = StandardResultSetPagination
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_class = EnrollmentFilter
    search_fields = ['student__full_name', 'student__matricule', 'requested_class']
    ordering_fields = ['enrollment_date', 'created_at', 'status']

    def get_queryset(self):
        return Enrollment.objects.select_related('student', 'approved_by')

    def _decide(self, request, move, message):
        serializer = EnrollmentDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        enrollment = self.get_object()
        try:
            move(enrollment, serializer.validated_data.get('notes') or None)
        except DjangoValidationError as e:
            return error_response(e, "Transition refusée.")
        return success_response(EnrollmentSerializer(enrollment, context=self.get_serializer_context()).data,
                                message)

    @action(detail=True, methods=['POST'])
    def approve(self, request, pk=None):
        """
        Approve the enrollment: create the student when `student_data` is
        posted, activate the student in the requested class and record the
        registration payment when the fee was already collected.
        """
        serializer = EnrollmentApproveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        enrollment = self.get_object()
        try:
            result = enrollment.approve(
                approved_by=request.user,
                student_data=serializer.validated_data.get('student_data'),
            )
        except DjangoValidationError as e:
            logger.info("Approval of enrollment %s refused: %s", enrollment.pk, e.messages)
            return error_response(e, "L'inscription n'a pas pu être approuvée.")

        log_action('approve', instance=enrollment, request=request._request,
                   amount_paid=str(result['amount_paid']))
        payment = result['payment']
        context = self.get_serializer_context()
        return success_response(
            {
                'enrollment': EnrollmentSerializer(enrollment, context=context).data,
                'amount_paid': str(result['amount_paid']),
                'total_amount': str(result['total_amount']),
                'remaining': str(result['remaining']),
                'payment': PaymentSerializer(payment, context=context).data if payment else None,
            },
            "Inscription approuvée avec succès.",
        )

    @action(detail=True, methods=['POST'])
    def reject(self, request, pk=None):
        return self._decide(request, Enrollment.reject, "Inscription rejetée.")

    @action(detail=True, methods=['POST'], url_path='documents-missing')
    def documents_missing(self, request, pk=None):
        return self._decide(request, Enrollment.mark_documents_missing,
                            "Documents manquants signalés.")

    def destroy(self, request, *args, **kwargs):
        instance = self.get_object()
        if instance.status == Enrollment.Status.APPROVED:
            return error_response("approved", "Une inscription approuvée ne peut pas être supprimée.",
                                  status.HTTP_400_BAD_REQUEST)
        self.perform_destroy(instance)
        return Response(status=status.HTTP_204_NO_CONTENT)
