# filters.py
import django_filters
from django.db.models import Q

from .models import Certificate, Enrollment, Payment, ScheduledReminder, Student


class StudentFilter(django_filters.FilterSet):
    q = django_filters.CharFilter(method='filter_by_all', label='Search')
    # the UI sends ?class=<name>
    class_name = django_filters.CharFilter(field_name='class_name')

    class Meta:
        model = Student
        fields = ['q', 'class_name', 'status', 'payment_status']

    def __init__(self, data=None, *args, **kwargs):
        if data is not None and 'class' in data and 'class_name' not in data:
            data = data.copy()
            data['class_name'] = data.get('class')
        super().__init__(data, *args, **kwargs)

    def filter_by_all(self, queryset, name, value):
        return queryset.filter(
            Q(full_name__icontains=value) |
            Q(matricule__icontains=value) |
            Q(email__icontains=value) |
            Q(parent_name__icontains=value) |
            Q(parent_phone__icontains=value)
        )


class EnrollmentFilter(django_filters.FilterSet):
    class Meta:
        model = Enrollment
        fields = ['status', 'enrollment_type', 'academic_year', 'requested_class', 'student']


class PaymentFilter(django_filters.FilterSet):
    start_date = django_filters.DateFilter(field_name='payment_date', lookup_expr='gte')
    end_date = django_filters.DateFilter(field_name='payment_date', lookup_expr='lte')
    class_name = django_filters.CharFilter(field_name='student__class_name')

    class Meta:
        model = Payment
        fields = ['student', 'payment_type', 'payment_method', 'payment_period',
                  'academic_year', 'start_date', 'end_date', 'class_name']


class CertificateFilter(django_filters.FilterSet):
    class Meta:
        model = Certificate
        fields = ['student', 'document_type', 'status', 'academic_year']


class ScheduledReminderFilter(django_filters.FilterSet):
    date_from = django_filters.DateFilter(field_name='scheduled_date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='scheduled_date', lookup_expr='lte')

    class Meta:
        model = ScheduledReminder
        fields = ['student', 'status', 'date_from', 'date_to']
