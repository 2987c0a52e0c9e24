from datetime import timedelta

from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from main.common.errors import InvalidTransition
from main.models import ReminderConfiguration, ScheduledReminder

from .helpers import create_school, create_student, create_test_user


def create_reminder(school, student, days_from_today=0, **kwargs):
    data = {
        'scheduled_date': timezone.localdate() + timedelta(days=days_from_today),
        'message': "Rappel : la mensualité est en retard.",
        'channels': ['sms'],
    }
    data.update(kwargs)
    return ScheduledReminder.default_objects.create(school=school, student=student, **data)


class ScheduledReminderModelTests(TestCase):
    def setUp(self):
        self.school = create_school()
        self.student = create_student(self.school, parent_name="Ousmane Diop")

    def test_terminal_states_are_final(self):
        reminder = create_reminder(self.school, self.student)
        reminder.mark_sent()
        self.assertIsNotNone(reminder.sent_at)
        with self.assertRaises(InvalidTransition):
            reminder.cancel()
        with self.assertRaises(InvalidTransition):
            reminder.mark_failed("timeout")
        reminder.refresh_from_db()
        self.assertEqual(reminder.status, ScheduledReminder.Status.SENT)

    def test_due(self):
        past = create_reminder(self.school, self.student, days_from_today=-1)
        create_reminder(self.school, self.student, days_from_today=3)
        create_reminder(self.school, self.student, days_from_today=-2).cancel()
        due = ScheduledReminder.default_objects.due()
        self.assertEqual(list(due), [past])

    def test_render_template(self):
        config = ReminderConfiguration.default_objects.create(
            school=self.school, trigger_days=7, channels=['sms'],
            message_template="Bonjour {parent_name}, {student_name} a {days} jours de retard.")
        self.assertEqual(
            config.render(self.student),
            "Bonjour Ousmane Diop, Awa Diop a 7 jours de retard.",
        )


class ScheduledReminderAPITests(APITestCase):
    def setUp(self):
        self.school = create_school()
        self.student = create_student(self.school)
        self.teacher = create_test_user('teacher', self.school)
        self.client.force_authenticate(user=self.teacher)

    def test_create(self):
        response = self.client.post(reverse('scheduled-reminders-list'), {
            'student': self.student.pk,
            'scheduled_date': timezone.localdate().isoformat(),
            'message': "Merci de régulariser la mensualité.",
            'channels': ['whatsapp', 'sms', 'sms'],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], ScheduledReminder.Status.PENDING)
        self.assertEqual(response.data['channels'], ['sms', 'whatsapp'])

    def test_unknown_channel_is_rejected(self):
        response = self.client.post(reverse('scheduled-reminders-list'), {
            'student': self.student.pk,
            'scheduled_date': timezone.localdate().isoformat(),
            'message': "Rappel",
            'channels': ['pigeon'],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('channels', response.data)

    def test_cancel_once(self):
        reminder = create_reminder(self.school, self.student)
        url = reverse('scheduled-reminders-cancel', args=[reminder.pk])
        response = self.client.post(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], ScheduledReminder.Status.CANCELLED)

        response = self.client.post(url)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])

    def test_cancelled_reminder_cannot_be_edited(self):
        reminder = create_reminder(self.school, self.student)
        reminder.cancel()
        response = self.client.patch(reverse('scheduled-reminders-detail', args=[reminder.pk]),
                                     {'message': "Nouveau message"}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delivery_sent(self):
        reminder = create_reminder(self.school, self.student)
        response = self.client.post(reverse('scheduled-reminders-delivery', args=[reminder.pk]),
                                    {'status': 'sent'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        reminder.refresh_from_db()
        self.assertEqual(reminder.status, ScheduledReminder.Status.SENT)
        self.assertIsNotNone(reminder.sent_at)

    def test_delivery_failed_needs_error_message(self):
        reminder = create_reminder(self.school, self.student)
        url = reverse('scheduled-reminders-delivery', args=[reminder.pk])
        response = self.client.post(url, {'status': 'failed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(url, {'status': 'failed', 'error_message': "Numéro invalide"}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        reminder.refresh_from_db()
        self.assertEqual(reminder.error_message, "Numéro invalide")

    def test_delivery_on_cancelled_reminder(self):
        reminder = create_reminder(self.school, self.student)
        reminder.cancel()
        response = self.client.post(reverse('scheduled-reminders-delivery', args=[reminder.pk]),
                                    {'status': 'sent'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        reminder.refresh_from_db()
        self.assertEqual(reminder.status, ScheduledReminder.Status.CANCELLED)

    def test_due_endpoint(self):
        past = create_reminder(self.school, self.student, days_from_today=-1)
        create_reminder(self.school, self.student, days_from_today=5)
        response = self.client.get(reverse('scheduled-reminders-due'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([r['id'] for r in response.data['results']], [past.pk])


class ReminderConfigurationAPITests(APITestCase):
    def setUp(self):
        self.school = create_school()
        self.admin = create_test_user('school_admin', self.school)
        self.client.force_authenticate(user=self.admin)

    def _create(self, **kwargs):
        data = {
            'trigger_days': 7,
            'message_template': "{student_name} : mensualité en retard de {days} jours.",
            'channels': ['sms', 'email'],
        }
        data.update(kwargs)
        return self.client.post(reverse('reminder-configurations-list'), data, format='json')

    def test_create_and_order_by_trigger_days(self):
        self.assertEqual(self._create(trigger_days=15).status_code, status.HTTP_201_CREATED)
        self.assertEqual(self._create(trigger_days=3).status_code, status.HTTP_201_CREATED)
        response = self.client.get(reverse('reminder-configurations-list'))
        self.assertEqual([c['trigger_days'] for c in response.data], [3, 15])

    def test_validation(self):
        self.assertEqual(self._create(trigger_days=0).status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self._create(channels=[]).status_code, status.HTTP_400_BAD_REQUEST)

    def test_only_school_admin_writes(self):
        self.client.force_authenticate(user=create_test_user('accountant', self.school))
        self.assertEqual(self._create().status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.get(reverse('reminder-configurations-list'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_preview_renders_for_a_student(self):
        config_id = self._create().data['id']
        student = create_student(self.school, "Moussa Ba")
        self.client.force_authenticate(user=create_test_user('teacher', self.school))
        url = reverse('reminder-configurations-preview', args=[config_id])

        response = self.client.get(url, {'student': student.pk})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['message'], "Moussa Ba : mensualité en retard de 7 jours.")
        self.assertEqual(response.data['data']['channels'], ['email', 'sms'])

        other = create_student(create_school("École B"), "Fatou Sow")
        response = self.client.get(url, {'student': other.pk})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('student', response.data)
