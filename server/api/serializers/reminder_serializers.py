from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers

from main.models import ReminderConfiguration, ScheduledReminder, Student, validate_channels


def _channels(value):
    try:
        validate_channels(value)
    except DjangoValidationError as e:
        raise serializers.ValidationError(e.messages)
    return sorted(set(value))


class ReminderConfigurationSerializer(serializers.ModelSerializer):
    trigger_days = serializers.IntegerField(min_value=1)

    class Meta:
        model = ReminderConfiguration
        fields = ['id', 'reminder_type', 'trigger_days', 'message_template', 'channels',
                  'is_active', 'send_to_parent', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_channels(self, value):
        return _channels(value)

    def validate_message_template(self, value):
        if not value or not value.strip():
            raise serializers.ValidationError("Le message est requis.")
        return value


class ScheduledReminderSerializer(serializers.ModelSerializer):
    student = serializers.PrimaryKeyRelatedField(queryset=Student.objects)
    student_name = serializers.CharField(source='student.full_name', read_only=True)
    parent_name = serializers.CharField(source='student.parent_name', read_only=True)

    class Meta:
        model = ScheduledReminder
        fields = ['id', 'student', 'student_name', 'parent_name', 'scheduled_date',
                  'scheduled_time', 'message', 'channels', 'send_to_parent', 'status',
                  'sent_at', 'error_message', 'created_by', 'created_at', 'updated_at']
        read_only_fields = ['status', 'sent_at', 'error_message', 'created_by',
                            'created_at', 'updated_at']

    def validate_channels(self, value):
        return _channels(value)

    def validate_message(self, value):
        if not value or not value.strip():
            raise serializers.ValidationError("Le message est requis.")
        return value

    def validate(self, attrs):
        if self.instance is not None and self.instance.status != ScheduledReminder.Status.PENDING:
            raise serializers.ValidationError("Seuls les rappels en attente peuvent être modifiés.")
        return attrs


class DeliverySerializer(serializers.Serializer):
    """Delivery report posted by the external sender."""
    status = serializers.ChoiceField(
        choices=[ScheduledReminder.Status.SENT, ScheduledReminder.Status.FAILED])
    sent_at = serializers.DateTimeField(required=False)
    error_message = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        if attrs['status'] == ScheduledReminder.Status.FAILED and not attrs.get('error_message'):
            raise serializers.ValidationError({'error_message': "Describe why the delivery failed."})
        return attrs


class ReminderPreviewSerializer(serializers.Serializer):
    student = serializers.PrimaryKeyRelatedField(queryset=Student.objects)
