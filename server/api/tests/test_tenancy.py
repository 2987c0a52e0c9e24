from django.test import SimpleTestCase, TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from main.models import Payment, Student
from main.tenancy.threadlocals import clear_context, set_current_school
from main.tenancy.utils import extract_subdomain, lookup_school

from .helpers import create_school, create_student, create_test_user, get_tokens_for_user


class ExtractSubdomainTests(SimpleTestCase):

    def test_with_base_domain(self):
        self.assertEqual(extract_subdomain("sc0001.edukash.app", "edukash.app"), "sc0001")
        self.assertEqual(extract_subdomain("SC0001.edukash.app:8000", "edukash.app"), "sc0001")
        self.assertIsNone(extract_subdomain("edukash.app", "edukash.app"))
        self.assertIsNone(extract_subdomain("www.edukash.app", "edukash.app"))
        self.assertIsNone(extract_subdomain("sc0001.other.app", "edukash.app"))

    def test_without_base_domain(self):
        self.assertEqual(extract_subdomain("lycee.edukash.app"), "lycee")
        self.assertIsNone(extract_subdomain("localhost:8000"))
        self.assertIsNone(extract_subdomain("127.0.0.1"))
        self.assertIsNone(extract_subdomain("testserver"))


class TenantManagerTests(TestCase):
    def setUp(self):
        self.school_a = create_school("École A")
        self.school_b = create_school("École B")
        create_student(self.school_a, "Awa Diop")
        create_student(self.school_b, "Moussa Ba")

    def tearDown(self):
        clear_context()

    def test_scoped_to_current_school(self):
        set_current_school(self.school_a.pk)
        self.assertEqual(list(Student.objects.values_list('full_name', flat=True)), ["Awa Diop"])

    def test_no_school_sees_nothing(self):
        clear_context()
        self.assertFalse(Student.objects.exists())
        self.assertEqual(Student.default_objects.count(), 2)

    def test_explicit_school(self):
        self.assertEqual(Student.objects.for_school(self.school_b).get().full_name, "Moussa Ba")

    def test_lookup_school_by_code_or_id(self):
        self.assertEqual(lookup_school(self.school_a.code.lower()), self.school_a)
        self.assertEqual(lookup_school(str(self.school_b.pk)), self.school_b)
        self.assertIsNone(lookup_school(""))


class SchoolIsolationTests(APITestCase):
    """A school never sees or writes rows of another school."""

    def setUp(self):
        self.school_a = create_school("École A")
        self.school_b = create_school("École B")
        self.student_a = create_student(self.school_a, "Awa Diop")
        self.student_b = create_student(self.school_b, "Moussa Ba")
        self.admin_a = create_test_user('school_admin', self.school_a)

    def test_requires_authentication(self):
        response = self.client.get(reverse('students-list'))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_jwt_authentication(self):
        tokens = get_tokens_for_user(self.admin_a)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access']}")
        response = self.client.get(reverse('students-list'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)

    def test_lists_only_own_school(self):
        self.client.force_authenticate(user=self.admin_a)
        response = self.client.get(reverse('students-list'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([s['full_name'] for s in response.data['results']], ["Awa Diop"])

    def test_other_school_rows_are_not_found(self):
        self.client.force_authenticate(user=self.admin_a)
        response = self.client.get(reverse('students-detail', args=[self.student_b.pk]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        response = self.client.delete(reverse('students-detail', args=[self.student_b.pk]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertTrue(Student.default_objects.filter(pk=self.student_b.pk).exists())

    def test_cannot_pay_for_student_of_other_school(self):
        self.client.force_authenticate(user=self.admin_a)
        response = self.client.post(reverse('payments-list'), {
            'student': self.student_b.pk,
            'amount': '15000',
            'payment_method': 'cash',
            'payment_type': 'exam',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('student', response.data)
        self.assertFalse(Payment.default_objects.exists())

    def test_header_cannot_switch_school_for_staff(self):
        self.client.force_authenticate(user=self.admin_a)
        response = self.client.get(reverse('students-list'), HTTP_X_SCHOOL=self.school_b.code)
        self.assertEqual([s['full_name'] for s in response.data['results']], ["Awa Diop"])

    def test_new_rows_belong_to_own_school(self):
        self.client.force_authenticate(user=self.admin_a)
        response = self.client.post(reverse('students-list'), {'full_name': "Fatou Sow"}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Student.default_objects.get(pk=response.data['id']).school, self.school_a)

    def test_inactive_school_is_refused(self):
        self.school_a.toggle_active()
        self.client.force_authenticate(user=self.admin_a)
        response = self.client.get(reverse('students-list'))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_user_without_school_is_refused(self):
        self.client.force_authenticate(user=create_test_user('teacher', None, email="lost@example.com"))
        response = self.client.get(reverse('students-list'))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class SuperAdminTests(APITestCase):
    def setUp(self):
        self.school_a = create_school("École A")
        self.school_b = create_school("École B")
        create_student(self.school_a, "Awa Diop")
        create_student(self.school_b, "Moussa Ba")
        self.superadmin = create_test_user('super_admin', email="root@example.com")
        self.client.force_authenticate(user=self.superadmin)

    def test_unscoped_without_school(self):
        response = self.client.get(reverse('students-list'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)

    def test_picks_school_with_header(self):
        response = self.client.get(reverse('students-list'), HTTP_X_SCHOOL=self.school_b.code)
        self.assertEqual([s['full_name'] for s in response.data['results']], ["Moussa Ba"])

    def test_writes_need_a_school(self):
        response = self.client.post(reverse('students-list'), {'full_name': "Fatou Sow"}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('school', response.data)

        response = self.client.post(reverse('students-list'), {'full_name': "Fatou Sow"}, format='json',
                                    HTTP_X_SCHOOL=str(self.school_b.pk))
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Student.default_objects.get(pk=response.data['id']).school, self.school_b)
