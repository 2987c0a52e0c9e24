import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter
from rest_framework.viewsets import ModelViewSet

from main.filter import ScheduledReminderFilter
from main.models import SCHOOL_ADMIN, ReminderConfiguration, ScheduledReminder

from ..serializers import (
    DeliverySerializer,
    ReminderConfigurationSerializer,
    ReminderPreviewSerializer,
    ScheduledReminderSerializer,
)
from .mixins import StandardResultSetPagination, TenantScopedMixin, error_response, success_response

logger = logging.getLogger(__name__)


class ReminderConfigurationViewSet(TenantScopedMixin, ModelViewSet):
    """Overdue-payment rules. Stored only; sending is done outside this service."""
    serializer_class = ReminderConfigurationSerializer
    write_roles = (SCHOOL_ADMIN,)

    def get_queryset(self):
        return ReminderConfiguration.objects.all()

    @action(detail=True, methods=['GET'])
    def preview(self, request, pk=None):
        """Message the sender would deliver for `?student=<id>`."""
        configuration = self.get_object()
        query = ReminderPreviewSerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        student = query.validated_data['student']
        return success_response({
            'student': student.pk,
            'channels': configuration.channels,
            'send_to_parent': configuration.send_to_parent,
            'message': configuration.render(student),
        })


class ScheduledReminderViewSet(TenantScopedMixin, ModelViewSet):
    serializer_class = ScheduledReminderSerializer
    pagination_class = StandardResultSetPagination
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_class = ScheduledReminderFilter
    ordering_fields = ['scheduled_date', 'created_at']

    def get_queryset(self):
        return ScheduledReminder.objects.select_related('student')

    def _respond(self, reminder, message):
        return success_response(self.get_serializer(reminder).data, message)

    @action(detail=True, methods=['POST'])
    def cancel(self, request, pk=None):
        reminder = self.get_object()
        try:
            reminder.cancel()
        except DjangoValidationError as e:
            return error_response(e, "Ce rappel ne peut plus être annulé.")
        return self._respond(reminder, "Rappel annulé.")

    @action(detail=True, methods=['POST'])
    def delivery(self, request, pk=None):
        """Delivery report from the sender: `sent` or `failed` with an error message."""
        report = DeliverySerializer(data=request.data)
        report.is_valid(raise_exception=True)
        reminder = self.get_object()
        data = report.validated_data
        try:
            if data['status'] == ScheduledReminder.Status.SENT:
                reminder.mark_sent(data.get('sent_at'))
            else:
                reminder.mark_failed(data.get('error_message', ''))
        except DjangoValidationError as e:
            return error_response(e, "Statut de rappel déjà définitif.")
        logger.info("Reminder %s reported %s", reminder.pk, reminder.status)
        return self._respond(reminder, "Statut de livraison enregistré.")

    @action(detail=False, methods=['GET'])
    def due(self, request):
        """Pending reminders whose date and time have passed."""
        reminders = self.filter_queryset(self.get_queryset().due())
        page = self.paginate_queryset(reminders)
        if page is not None:
            return self.get_paginated_response(self.get_serializer(page, many=True).data)
        return success_response(self.get_serializer(reminders, many=True).data)
