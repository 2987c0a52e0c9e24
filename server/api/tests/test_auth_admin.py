from datetime import date
from decimal import Decimal

from django.test import SimpleTestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase
from rest_framework_simplejwt.tokens import AccessToken

from main.models import (
    PlatformSettings, Profile, School, Subscription, User, UserPreferences, UserRole, add_months,
)

from .helpers import create_school, create_test_user


class LoginTests(APITestCase):
    """Test authentication endpoints."""

    def setUp(self):
        self.school = create_school()
        self.user = create_test_user('school_admin', self.school, email="directeur@example.com")

    def _login(self, email="directeur@example.com", password="testpass123"):
        return self.client.post(reverse('token_obtain_pair'), {'email': email, 'password': password}, format='json')

    def test_token_carries_school_and_roles(self):
        response = self._login()
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('refresh', response.data)
        token = AccessToken(response.data['access'])
        self.assertEqual(token['email'], "directeur@example.com")
        self.assertEqual(token['roles'], ['school_admin'])
        self.assertEqual(token['school_id'], self.school.pk)
        self.assertEqual(token['school_name'], self.school.name)
        self.assertFalse(token['is_super_admin'])

    def test_email_is_case_insensitive(self):
        self.assertEqual(self._login(email="Directeur@Example.com").status_code, status.HTTP_200_OK)

    def test_wrong_password(self):
        self.assertEqual(self._login(password="nope").status_code, status.HTTP_401_UNAUTHORIZED)

    def test_inactive_school_cannot_sign_in(self):
        self.school.toggle_active()
        self.assertEqual(self._login().status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh(self):
        refresh = self._login().data['refresh']
        response = self.client.post(reverse('token_refresh'), {'refresh': refresh}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)


class SignUpAndOnboardingTests(APITestCase):
    password = "Sénégal-2024!ok"

    def _signup(self, **kwargs):
        data = {'email': "nouveau@example.com", 'password': self.password, 'full_name': "Aminata Fall"}
        data.update(kwargs)
        return self.client.post('/api/v1/auth/users/', data, format='json')

    def test_signup_stores_full_name(self):
        response = self._signup()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertNotIn('password', response.data)
        user = User.objects.get(email="nouveau@example.com")
        self.assertEqual(Profile.objects.get(user=user).full_name, "Aminata Fall")
        self.assertIsNone(user.school)

    def test_signup_requires_full_name(self):
        response = self._signup(full_name="")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('full_name', response.data)

    def test_weak_password(self):
        response = self._signup(password="123")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', response.data)

    def test_onboarding_creates_school_and_admin_role(self):
        self._signup()
        user = User.objects.get(email="nouveau@example.com")
        self.client.force_authenticate(user=user)

        response = self.client.post(reverse('onboarding-school'), {'name': "Groupe Scolaire Les Baobabs"}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        school = School.objects.get(pk=response.data['school_id'])
        self.assertTrue(school.code.startswith("SC"))
        self.assertEqual(Profile.objects.get(user=user).school, school)
        self.assertTrue(UserRole.objects.filter(user=user, role='school_admin', school=school).exists())

        user.refresh_from_db()
        self.client.force_authenticate(user=user)
        response = self.client.post(reverse('onboarding-school'), {'name': "Deuxième école"}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(School.objects.count(), 1)

    def test_onboarding_closed_by_platform_settings(self):
        PlatformSettings.load().update({'allow_new_schools': False})
        self._signup()
        self.client.force_authenticate(user=User.objects.get(email="nouveau@example.com"))
        response = self.client.post(reverse('onboarding-school'), {'name': "École fermée"}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(School.objects.exists())


class AccountTests(APITestCase):
    def setUp(self):
        self.school = create_school()
        self.user = create_test_user('accountant', self.school)
        self.client.force_authenticate(user=self.user)

    def test_roles(self):
        response = self.client.get(reverse('auth-roles'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([r['role'] for r in response.data['roles']], ['accountant'])
        self.assertEqual(response.data['school_id'], self.school.pk)
        self.assertFalse(response.data['is_super_admin'])

    def test_current_user(self):
        response = self.client.get('/api/v1/auth/users/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['roles'], ['accountant'])
        self.assertEqual(response.data['school_id'], self.school.pk)

    def test_preferences_have_defaults(self):
        response = self.client.get(reverse('preferences'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['session_timeout'], 30)
        self.assertFalse(response.data['dark_mode'])
        self.assertEqual(UserPreferences.objects.filter(user=self.user).count(), 1)

        response = self.client.patch(reverse('preferences'), {'dark_mode': True}, format='json')
        self.assertTrue(response.data['dark_mode'])
        response = self.client.patch(reverse('preferences'), {'session_timeout': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_profile(self):
        response = self.client.patch(reverse('profile'), {'full_name': "Cheikh Ndiaye", 'school': 999}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['full_name'], "Cheikh Ndiaye")
        self.assertEqual(response.data['school'], self.school.pk)

    def test_school_settings(self):
        response = self.client.get(reverse('school-settings'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['code'], self.school.code)
        # only the school admin edits the school
        response = self.client.patch(reverse('school-settings'), {'phone': "+221338000000"}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=create_test_user('school_admin', self.school))
        response = self.client.patch(reverse('school-settings'),
                                     {'phone': "+221338000000", 'max_students': -1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.school.refresh_from_db()
        self.assertEqual(self.school.phone, "+221338000000")
        self.assertEqual(self.school.max_students, 50)


class SuperAdminConsoleTests(APITestCase):
    def setUp(self):
        self.school = create_school(max_students=50, subscription_plan=School.Plan.MONTHLY)
        self.superadmin = create_test_user('super_admin', email="root@example.com")
        self.client.force_authenticate(user=self.superadmin)

    def test_console_is_super_admin_only(self):
        self.client.force_authenticate(user=create_test_user('school_admin', self.school))
        for url in (reverse('schools-list'), reverse('admin-users-list'),
                    reverse('admin-stats'), reverse('admin-settings')):
            with self.subTest(url=url):
                self.assertEqual(self.client.get(url).status_code, status.HTTP_403_FORBIDDEN)

    def test_create_school_admin_makes_school_unlimited(self):
        response = self.client.post(reverse('admin-users-list'), {
            'email': "Directrice@Example.com",
            'password': "Sénégal-2024!ok",
            'full_name': "Khady Diallo",
            'role': 'school_admin',
            'school_id': self.school.pk,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['data']['email'], "directrice@example.com")
        self.assertEqual(response.data['data']['roles'], ['school_admin'])
        self.assertEqual(response.data['data']['school_id'], self.school.pk)

        self.school.refresh_from_db()
        self.assertEqual(self.school.max_students, School.UNLIMITED)
        self.assertEqual(self.school.subscription_plan, School.Plan.FREE)

    def test_create_user_validation(self):
        url = reverse('admin-users-list')
        base = {'password': "Sénégal-2024!ok", 'full_name': "Test"}
        response = self.client.post(url, dict(base, email="a@example.com", role='teacher'), format='json')
        self.assertIn('school_id', response.data)
        response = self.client.post(url, dict(base, email="root@example.com"), format='json')
        self.assertIn('email', response.data)
        self.assertEqual(User.objects.count(), 1)

    def test_toggle_status(self):
        url = reverse('schools-toggle-status', args=[self.school.pk])
        response = self.client.post(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['data']['is_active'])
        response = self.client.post(url)
        self.assertTrue(response.data['data']['is_active'])

    def test_update_school_limit(self):
        url = reverse('schools-detail', args=[self.school.pk])
        self.assertEqual(self.client.patch(url, {'max_students': 0}, format='json').status_code,
                         status.HTTP_400_BAD_REQUEST)
        response = self.client.patch(url, {'max_students': 200}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['max_students'], 200)

    def test_stats(self):
        response = self.client.get(reverse('admin-stats'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_schools'], 1)
        self.assertEqual(response.data['active_schools'], 1)

    def test_platform_settings(self):
        url = reverse('admin-settings')
        response = self.client.get(url)
        self.assertEqual(response.data['platform_name'], "EduKash")

        response = self.client.patch(url, {'maintenance_mode': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['maintenance_mode'])
        self.assertTrue(PlatformSettings.load().values['maintenance_mode'])

        self.assertEqual(self.client.patch(url, {'unknown_key': 1}, format='json').status_code,
                         status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.client.patch(url, {'session_timeout': "long"}, format='json').status_code,
                         status.HTTP_400_BAD_REQUEST)


class SubscriptionTests(APITestCase):
    def setUp(self):
        self.school = create_school()
        self.superadmin = create_test_user('super_admin', email="root@example.com")
        self.client.force_authenticate(user=self.superadmin)
        self.url = reverse('subscriptions-list')

    def test_create_puts_school_on_plan(self):
        response = self.client.post(self.url, {
            'school': self.school.pk,
            'subscription_type': 'monthly',
            'start_date': '2024-01-31',
            'payment_method': 'cash',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['success'])
        data = response.data['data']
        self.assertEqual(data['status'], 'active')
        self.assertEqual(Decimal(data['amount']), Decimal('25000'))
        self.assertEqual(data['end_date'], '2024-02-29')
        self.assertEqual(data['created_by'], self.superadmin.pk)

        self.school.refresh_from_db()
        self.assertEqual(self.school.subscription_plan, School.Plan.MONTHLY)
        self.assertEqual(self.school.subscription_end_date, date(2024, 2, 29))

    def test_annual_runs_one_year(self):
        response = self.client.post(self.url, {
            'school': self.school.pk, 'subscription_type': 'annual', 'start_date': '2024-03-01',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Decimal(response.data['data']['amount']), Decimal('300000'))
        self.assertEqual(response.data['data']['end_date'], '2025-03-01')
        self.school.refresh_from_db()
        self.assertEqual(self.school.subscription_plan, School.Plan.ANNUAL)

    def test_end_date_must_follow_start(self):
        response = self.client.post(self.url, {
            'school': self.school.pk, 'subscription_type': 'monthly',
            'start_date': '2024-05-01', 'end_date': '2024-04-01',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('end_date', response.data)
        self.assertFalse(Subscription.objects.exists())
        self.school.refresh_from_db()
        self.assertEqual(self.school.subscription_plan, School.Plan.FREE)

    def test_update_end_date_follows_on_school(self):
        subscription = Subscription.activate(self.school, 'monthly', start_date=date(2024, 1, 1))
        url = reverse('subscriptions-detail', args=[subscription.pk])
        response = self.client.patch(url, {'end_date': '2024-03-15'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.school.refresh_from_db()
        self.assertEqual(self.school.subscription_end_date, date(2024, 3, 15))

        response = self.client.patch(url, {'subscription_type': 'annual'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cancel_once(self):
        subscription = Subscription.activate(self.school, 'monthly')
        url = reverse('subscriptions-cancel', args=[subscription.pk])
        response = self.client.post(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], 'cancelled')
        self.assertFalse(response.data['data']['auto_renew'])

        response = self.client.post(url)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])

    def test_listing_expires_lapsed_subscriptions(self):
        lapsed = Subscription.objects.create(
            school=self.school, subscription_type='monthly', status=Subscription.Status.ACTIVE,
            amount=25000, start_date=date(2020, 1, 1), end_date=date(2020, 2, 1))
        current = Subscription.activate(self.school, 'annual')

        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        statuses = {row['id']: row['status'] for row in response.data['results']}
        self.assertEqual(statuses[lapsed.pk], 'expired')
        self.assertEqual(statuses[current.pk], 'active')

        response = self.client.get(self.url, {'status': 'active'})
        self.assertEqual([row['id'] for row in response.data['results']], [current.pk])

    def test_stats_count_active_subscriptions(self):
        Subscription.activate(self.school, 'monthly')
        Subscription.activate(create_school(name="Autre école"), 'annual').cancel()
        response = self.client.get(reverse('admin-stats'))
        self.assertEqual(response.data['active_subscriptions'], 1)
        self.assertEqual(Decimal(response.data['subscription_revenue']), Decimal('325000'))

    def test_school_staff_cannot_manage_subscriptions(self):
        self.client.force_authenticate(user=create_test_user('school_admin', self.school))
        self.assertEqual(self.client.get(self.url).status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.post(self.url, {'school': self.school.pk, 'subscription_type': 'monthly'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class AddMonthsTests(SimpleTestCase):
    def test_clamps_to_end_of_month(self):
        self.assertEqual(add_months(date(2024, 1, 31), 1), date(2024, 2, 29))
        self.assertEqual(add_months(date(2023, 1, 31), 1), date(2023, 2, 28))
        self.assertEqual(add_months(date(2024, 11, 15), 2), date(2025, 1, 15))
        self.assertEqual(add_months(date(2024, 2, 29), 12), date(2025, 2, 28))
