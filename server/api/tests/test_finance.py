from datetime import date
from decimal import Decimal
from unittest import mock

from django.core.exceptions import ValidationError
from django.test import SimpleTestCase, TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from main.common.errors import ConflictError
from main.finance.receipts import generate_receipt_number
from main.finance.utils import class_statistics, late_payments, record_payment
from main.models import Payment, Student, current_academic_year

from .helpers import create_class, create_school, create_student, create_test_user


class ClassStatisticsTests(TestCase):

    def test_occupancy_and_expected_revenue(self):
        stats = class_statistics(32, 40, Decimal("20000"), Decimal("150000"))
        self.assertEqual(stats['occupancy_rate'], 80.0)
        self.assertEqual(stats['expected_revenue'], Decimal("5440000"))
        self.assertEqual(stats['available_seats'], 8)
        self.assertEqual(stats['occupancy_level'], 'normal')

    def test_is_pure(self):
        first = class_statistics(38, 40, 20000, 150000)
        self.assertEqual(first, class_statistics(38, 40, 20000, 150000))
        self.assertEqual(first['occupancy_level'], 'full')
        self.assertEqual(class_statistics(35, 40, 0, 0)['occupancy_level'], 'high')

    def test_zero_capacity(self):
        stats = class_statistics(0, 0, 0, 0)
        self.assertEqual(stats['occupancy_rate'], 0.0)
        self.assertEqual(stats['available_seats'], 0)


class RecordPaymentTests(TestCase):
    def setUp(self):
        self.school = create_school()
        self.student = create_student(self.school)

    def _pay(self, amount, **kwargs):
        data = {
            'school': self.school,
            'student': self.student,
            'amount': amount,
            'payment_method': Payment.Method.CASH,
            'payment_type': Payment.Type.MONTHLY_TUITION,
            'payment_period': 'Janvier',
            'academic_year': '2024-2025',
        }
        data.update(kwargs)
        return record_payment(**data)

    def test_first_payment_makes_student_partial(self):
        self._pay(Decimal("50000"))
        self.student.refresh_from_db()
        self.assertEqual(self.student.payment_status, Student.PaymentStatus.PARTIAL)

    def test_deleting_last_payment_returns_to_pending(self):
        payment = self._pay(Decimal("50000"))
        payment.delete()
        self.student.refresh_from_db()
        self.assertEqual(self.student.payment_status, Student.PaymentStatus.PENDING)

    def test_amount_must_be_positive(self):
        with self.assertRaises(ValidationError):
            self._pay(Decimal("0"))
        self.assertFalse(Payment.default_objects.exists())

    def test_same_month_cannot_be_paid_twice(self):
        self._pay(Decimal("15000"))
        with self.assertRaises(ConflictError):
            self._pay(Decimal("15000"))
        # tuition counts as a payment of the period too
        with self.assertRaises(ConflictError):
            self._pay(Decimal("15000"), payment_type=Payment.Type.TUITION)
        self.assertEqual(Payment.default_objects.count(), 1)

    def test_same_month_of_another_year_is_allowed(self):
        self._pay(Decimal("15000"))
        self._pay(Decimal("15000"), academic_year='2025-2026')
        self.assertEqual(Payment.default_objects.count(), 2)

    def test_receipt_is_assigned(self):
        payment = self._pay(Decimal("15000"), payment_date=date(2024, 10, 3))
        self.assertTrue(payment.receipt_number.startswith("REC-2024-"))

    def test_school_year_spans_the_new_calendar_year(self):
        self._pay(Decimal("15000"), payment_period='Octobre', academic_year=None,
                  payment_date=date(2024, 10, 5))
        with self.assertRaises(ConflictError):
            self._pay(Decimal("15000"), payment_period='Octobre', academic_year=None,
                      payment_date=date(2025, 2, 10))
        self.assertEqual(Payment.default_objects.get().academic_year, "2024-2025")

        february = self._pay(Decimal("15000"), payment_period='Février', academic_year=None,
                             payment_date=date(2025, 2, 10))
        self.assertEqual(february.academic_year, "2024-2025")

    def test_school_can_move_the_start_of_its_year(self):
        self.school.settings = {'academic_year_start_month': 1}
        self.school.save()
        payment = self._pay(Decimal("15000"), academic_year=None, payment_date=date(2025, 2, 10))
        self.assertEqual(payment.academic_year, "2025-2026")


class AcademicYearTests(SimpleTestCase):

    def test_year_opens_in_september(self):
        self.assertEqual(current_academic_year(date(2024, 9, 1)), "2024-2025")
        self.assertEqual(current_academic_year(date(2024, 12, 31)), "2024-2025")
        self.assertEqual(current_academic_year(date(2025, 1, 1)), "2024-2025")
        self.assertEqual(current_academic_year(date(2025, 8, 31)), "2024-2025")

    def test_custom_start_month(self):
        self.assertEqual(current_academic_year(date(2025, 2, 10), start_month=1), "2025-2026")
        self.assertEqual(current_academic_year(date(2025, 2, 10), start_month=10), "2024-2025")


class ReceiptNumberTests(TestCase):

    def test_numbers_are_strictly_increasing_per_school(self):
        school = create_school()
        other = create_school(name="Collège Autre")
        numbers = [generate_receipt_number(school) for _ in range(5)]
        sequence = [int(n.rsplit('-', 1)[1]) for n in numbers]
        self.assertEqual(sequence, [1, 2, 3, 4, 5])
        self.assertEqual(len(set(numbers)), 5)
        self.assertTrue(generate_receipt_number(other).endswith("-000001"))

    def test_format(self):
        school = create_school()
        self.assertEqual(generate_receipt_number(school, on=date(2024, 9, 1)), "REC-2024-000001")


class LatePaymentsTests(TestCase):
    """Students of a class who have not paid the month."""

    def setUp(self):
        self.school = create_school()
        create_class(self.school)
        self.paid = create_student(self.school, "Awa Diop")
        self.late = create_student(self.school, "Moussa Ba")
        self.inactive = create_student(self.school, "Fatou Sow", status=Student.Status.INACTIVE)
        self.other_class = create_student(self.school, "Ibrahima Fall", class_name="5ème B")
        self.registration_only = create_student(self.school, "Khady Ndiaye")

        record_payment(school=self.school, student=self.paid, amount=15000,
                       payment_method='cash', payment_type='monthly_tuition', payment_period='Janvier')
        record_payment(school=self.school, student=self.registration_only, amount=20000,
                       payment_method='cash', payment_type='registration', payment_period='Janvier')

    def test_returns_active_students_of_class_without_tuition_for_month(self):
        result = set(late_payments(self.school, "6ème A", "Janvier"))
        self.assertEqual(result, {self.late, self.registration_only})

    def test_other_month(self):
        result = set(late_payments(self.school, "6ème A", "Février"))
        self.assertEqual(result, {self.paid, self.late, self.registration_only})

    def test_month_paid_in_the_new_calendar_year(self):
        record_payment(school=self.school, student=self.late, amount=15000, payment_method='cash',
                       payment_type='monthly_tuition', payment_period='Février',
                       payment_date=date(2025, 2, 10))
        result = set(late_payments(self.school, "6ème A", "Février", "2024-2025"))
        self.assertEqual(result, {self.paid, self.registration_only})

    def test_api(self):
        admin = create_test_user('school_admin', self.school)
        client = APIClient()
        client.force_authenticate(user=admin)
        response = client.get(reverse('late-payments'), {'class': "6ème A", 'month': "Janvier"})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        names = {row['full_name'] for row in response.data['results']}
        self.assertEqual(names, {"Moussa Ba", "Khady Ndiaye"})

    def test_api_requires_class_and_month(self):
        admin = create_test_user('school_admin', self.school)
        client = APIClient()
        client.force_authenticate(user=admin)
        response = client.get(reverse('late-payments'), {'month': "Janvier"})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class PaymentAPITests(APITestCase):
    """Test payment endpoints."""

    def setUp(self):
        self.school = create_school()
        self.student = create_student(self.school)
        self.admin = create_test_user('school_admin', self.school)
        self.client.force_authenticate(user=self.admin)

    def _post(self, **kwargs):
        data = {
            'student': self.student.pk,
            'amount': '50000',
            'payment_method': 'mobile_money',
            'payment_type': 'monthly_tuition',
            'payment_period': 'Octobre',
            'academic_year': '2024-2025',
        }
        data.update(kwargs)
        return self.client.post(reverse('payments-list'), data, format='json')

    def test_create_payment(self):
        response = self._post()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['receipt_number'].startswith("REC-"))
        self.assertEqual(response.data['created_by'], self.admin.pk)
        self.student.refresh_from_db()
        self.assertEqual(self.student.payment_status, Student.PaymentStatus.PARTIAL)

    def test_duplicate_period_is_rejected(self):
        self._post()
        response = self._post()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('payment_period', response.data)
        self.assertEqual(Payment.default_objects.count(), 1)

    def test_monthly_tuition_needs_period(self):
        response = self._post(payment_period='')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_negative_amount(self):
        response = self._post(amount='-10')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_teacher_cannot_record_payment(self):
        teacher = create_test_user('teacher', self.school)
        self.client.force_authenticate(user=teacher)
        response = self._post()
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        # reads stay open to teachers
        self.assertEqual(self.client.get(reverse('payments-list')).status_code, status.HTTP_200_OK)

    def test_accountant_can_record_payment(self):
        accountant = create_test_user('accountant', self.school)
        self.client.force_authenticate(user=accountant)
        self.assertEqual(self._post().status_code, status.HTTP_201_CREATED)

    def test_stats(self):
        self._post(payment_date=timezone.localdate().isoformat())
        create_student(self.school, "Moussa Ba")
        response = self.client.get(reverse('payments-stats'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data['monthly_total']), Decimal("50000"))
        self.assertEqual(Decimal(response.data['total_collected']), Decimal("50000"))
        self.assertEqual(response.data['pending_count'], 1)

    def test_receipt_pdf(self):
        payment_id = self._post().data['id']
        response = self.client.get(reverse('payments-receipt', args=[payment_id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'application/pdf')
        self.assertIn('Recu_REC-', response['Content-Disposition'])
        self.assertTrue(b''.join(response.streaming_content).startswith(b'%PDF'))

    def test_export_csv(self):
        receipt = self._post().data['receipt_number']
        response = self.client.get(reverse('payments-export'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        content = response.content.decode('utf-8')
        self.assertIn('Reçu', content.splitlines()[0])
        self.assertIn(receipt, content)

    def test_nested_student_payments(self):
        self._post()
        other = create_student(self.school, "Moussa Ba")
        self._post(student=other.pk)
        response = self.client.get(reverse('student-payments-list', kwargs={'student_pk': self.student.pk}))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)

    def test_dashboard(self):
        self._post(payment_date=timezone.localdate().isoformat())
        response = self.client.get(reverse('dashboard'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_students'], 1)
        self.assertEqual(len(response.data['recent_payments']), 1)
        self.assertTrue(response.data['student_limit']['can_add'])

    def test_update_onto_a_paid_month_is_rejected(self):
        self._post()
        second = self._post(payment_period='Novembre').data['id']
        response = self.client.patch(reverse('payments-detail', args=[second]),
                                     {'payment_period': 'Octobre'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('payment_period', response.data)
        self.assertEqual(Payment.default_objects.get(pk=second).payment_period, 'Novembre')

    def test_update_amount_refreshes_student(self):
        payment_id = self._post().data['id']
        Student.default_objects.filter(pk=self.student.pk).update(
            payment_status=Student.PaymentStatus.PENDING)
        response = self.client.patch(reverse('payments-detail', args=[payment_id]),
                                     {'payment_period': 'Octobre', 'amount': '60000'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.student.refresh_from_db()
        self.assertEqual(self.student.payment_status, Student.PaymentStatus.PARTIAL)
        self.assertEqual(self.student.total_paid(), Decimal("60000"))

    def test_update_database_conflict_is_translated(self):
        self._post()
        second = self._post(payment_period='Novembre').data['id']
        with mock.patch('api.serializers.finance_serializers.ensure_period_available'):
            response = self.client.patch(reverse('payments-detail', args=[second]),
                                         {'payment_period': 'Octobre'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('payment_period', response.data)
