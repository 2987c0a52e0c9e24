import logging
from io import BytesIO

from django.http import FileResponse
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework.viewsets import ModelViewSet

from main.documents.pdf import certificate_pdf, report_filename, report_pdf
from main.filter import CertificateFilter
from main.models import Certificate

from ..serializers import CertificateSerializer, CertificateStatsSerializer, ReportFilterSerializer
from .mixins import StandardResultSetPagination, TenantScopedMixin

logger = logging.getLogger(__name__)


class CertificateViewSet(TenantScopedMixin, ModelViewSet):
    """Issued documents. They are not edited: issue a new one instead."""
    serializer_class = CertificateSerializer
    http_method_names = ['get', 'post', 'delete', 'head', 'options']
    pagination_class = StandardResultSetPagination
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_class = CertificateFilter
    search_fields = ['student__full_name', 'student__matricule']
    ordering_fields = ['created_at', 'issue_date']

    def get_queryset(self):
        return Certificate.objects.select_related('student', 'school')

    @action(detail=False, methods=['GET'])
    def stats(self, request):
        stats = Certificate.objects.for_school(self.get_school()).stats()
        return Response(CertificateStatsSerializer(stats).data)

    @action(detail=True, methods=['GET'])
    def pdf(self, request, pk=None):
        certificate = self.get_object()
        content = certificate_pdf(certificate)
        return FileResponse(BytesIO(content), as_attachment=True,
                            filename=certificate.pdf_filename(), content_type='application/pdf')


class ReportView(TenantScopedMixin, APIView):
    """GET /reports/<financial|classes|payments|enrollments>/ as a PDF download."""

    def get(self, request, report_type):
        filters = ReportFilterSerializer(data=request.query_params)
        filters.is_valid(raise_exception=True)
        school = self.get_school()
        content = report_pdf(report_type, school, **filters.validated_data)
        logger.info("Report %s generated for school %s", report_type, school.pk)
        return FileResponse(BytesIO(content), as_attachment=True,
                            filename=report_filename(report_type), content_type='application/pdf')
