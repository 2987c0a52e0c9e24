import logging
from io import BytesIO

from django.http import FileResponse, HttpResponse
from django.utils import timezone
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework.viewsets import ModelViewSet

from main.documents.exports import export_filename, payments_csv
from main.documents.pdf import receipt_filename, receipt_pdf
from main.filter import PaymentFilter
from main.finance.utils import dashboard_summary, late_payments, payment_stats
from main.models import ACCOUNTANT, SCHOOL_ADMIN, Payment

from ..serializers import (
    DashboardStatsSerializer,
    LatePaymentQuerySerializer,
    LateStudentSerializer,
    PaymentSerializer,
    PaymentStatsSerializer,
)
from .mixins import StandardResultSetPagination, TenantScopedMixin

logger = logging.getLogger(__name__)


class PaymentViewSet(TenantScopedMixin, ModelViewSet):
    serializer_class = PaymentSerializer
    write_roles = (SCHOOL_ADMIN, ACCOUNTANT)
    pagination_class = StandardResultSetPagination
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_class = PaymentFilter
    search_fields = ['receipt_number', 'student__full_name', 'student__matricule', 'transaction_reference']
    ordering_fields = ['payment_date', 'amount', 'created_at']

    def get_queryset(self):
        return Payment.objects.select_related('student', 'school')

    @action(detail=False, methods=['GET'])
    def stats(self, request):
        stats = payment_stats(self.get_school())
        return Response(PaymentStatsSerializer(stats).data)

    @action(detail=True, methods=['GET'])
    def receipt(self, request, pk=None):
        payment = self.get_object()
        pdf = receipt_pdf(payment)
        logger.info("Receipt %s downloaded by %s", payment.receipt_number, request.user.pk)
        return FileResponse(BytesIO(pdf), as_attachment=True,
                            filename=receipt_filename(payment), content_type='application/pdf')

    @action(detail=False, methods=['GET'])
    def export(self, request):
        """CSV of the (filtered) payments."""
        payments = self.filter_queryset(self.get_queryset())
        response = HttpResponse(payments_csv(payments), content_type='text/csv; charset=utf-8')
        filename = export_filename('paiements', timezone.localdate())
        response['Content-Disposition'] = f'attachment; filename="{filename}"'
        return response


class LatePaymentsView(TenantScopedMixin, APIView):
    """Active students of a class without a tuition payment for the month."""

    def get(self, request):
        params = request.query_params
        query = LatePaymentQuerySerializer(data={
            'class_name': params.get('class') or params.get('class_name'),
            'month': params.get('month'),
            'academic_year': params.get('academic_year', ''),
        })
        query.is_valid(raise_exception=True)
        data = query.validated_data

        students = late_payments(
            self.get_school(), data['class_name'], data['month'], data.get('academic_year') or None)
        results = LateStudentSerializer(students, many=True).data
        return Response({
            'class': data['class_name'],
            'month': data['month'],
            'count': len(results),
            'results': results,
        })


class DashboardView(TenantScopedMixin, APIView):

    def get(self, request):
        summary = dashboard_summary(self.get_school())
        return Response(DashboardStatsSerializer(summary).data)
