import django.contrib.auth.models
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from decimal import Decimal

from django.conf import settings
from django.db import migrations, models

import main.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
        ('contenttypes', '0002_remove_content_type_name'),
    ]

    operations = [
        migrations.CreateModel(
            name='School',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(db_index=True, max_length=150)),
                ('address', models.TextField(blank=True, default='')),
                ('phone', models.CharField(blank=True, default='', max_length=30)),
                ('email', models.EmailField(blank=True, default='', max_length=254)),
                ('logo_url', models.URLField(blank=True, default='', max_length=500)),
                ('code', models.CharField(blank=True, db_index=True, help_text='Unique code identifier for the school (auto-generated if not provided)', max_length=10, null=True)),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('max_students', models.IntegerField(default=50)),
                ('subscription_plan', models.CharField(choices=[('free', 'Free'), ('monthly', 'Monthly'), ('annual', 'Annual')], default='free', max_length=10)),
                ('settings', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'schools',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('first_name', models.CharField(blank=True, max_length=150, verbose_name='first name')),
                ('last_name', models.CharField(blank=True, max_length=150, verbose_name='last name')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('email', models.EmailField(max_length=254, unique=True, verbose_name='email address')),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'db_table': 'users',
            },
            managers=[
                ('objects', main.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name='Profile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('full_name', models.CharField(blank=True, default='', max_length=150)),
                ('phone', models.CharField(blank=True, default='', max_length=30)),
                ('avatar_url', models.URLField(blank=True, default='', max_length=500)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('school', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='profiles', to='main.school')),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='profile', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'profiles',
            },
        ),
        migrations.CreateModel(
            name='UserRole',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('role', models.CharField(choices=[('super_admin', 'Super Admin'), ('school_admin', 'School Admin'), ('teacher', 'Teacher'), ('accountant', 'Accountant')], max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('school', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='user_roles', to='main.school')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='roles', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'user_roles',
                'constraints': [
                    models.UniqueConstraint(fields=('user', 'role', 'school'), name='unique_user_role'),
                    models.UniqueConstraint(condition=models.Q(('school__isnull', True)), fields=('user', 'role'), name='unique_user_role_global'),
                ],
            },
        ),
        migrations.CreateModel(
            name='UserPreferences',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('email_notifications', models.BooleanField(default=True)),
                ('payment_alerts', models.BooleanField(default=True)),
                ('enrollment_alerts', models.BooleanField(default=True)),
                ('dark_mode', models.BooleanField(default=False)),
                ('compact_view', models.BooleanField(default=False)),
                ('two_factor_enabled', models.BooleanField(default=False)),
                ('session_timeout', models.PositiveIntegerField(default=30, help_text='Minutes')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='preferences', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'user_preferences',
            },
        ),
        migrations.CreateModel(
            name='PlatformSettings',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('data', models.JSONField(blank=True, default=dict)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('updated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'platform_settings',
            },
        ),
        migrations.CreateModel(
            name='Student',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('full_name', models.CharField(max_length=150)),
                ('matricule', models.CharField(blank=True, max_length=30)),
                ('date_of_birth', models.DateField(blank=True, null=True)),
                ('class_name', models.CharField(blank=True, db_index=True, default='', max_length=100)),
                ('email', models.EmailField(blank=True, max_length=254, null=True)),
                ('phone', models.CharField(blank=True, max_length=30, null=True)),
                ('address', models.TextField(blank=True, default='')),
                ('avatar_url', models.URLField(blank=True, default='', max_length=500)),
                ('parent_name', models.CharField(blank=True, default='', max_length=150)),
                ('parent_phone', models.CharField(blank=True, max_length=30, null=True)),
                ('parent_email', models.EmailField(blank=True, max_length=254, null=True)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('active', 'Active'), ('inactive', 'Inactive')], db_index=True, default='active', max_length=10)),
                ('payment_status', models.CharField(choices=[('pending', 'Pending'), ('partial', 'Partial'), ('paid', 'Paid')], db_index=True, default='pending', max_length=10)),
                ('school', models.ForeignKey(help_text='The school this item belongs to', on_delete=django.db.models.deletion.CASCADE, related_name='student_set', to='main.school')),
            ],
            options={
                'db_table': 'students',
                'ordering': ['full_name'],
                'indexes': [models.Index(fields=['school', 'class_name', 'status'], name='students_school__9a1c2e_idx')],
                'constraints': [
                    models.UniqueConstraint(fields=('school', 'matricule'), name='students_matricule_unique'),
                    models.UniqueConstraint(condition=models.Q(('email__isnull', False), models.Q(('email', ''), _negated=True)), fields=('school', 'email'), name='students_email_unique'),
                    models.UniqueConstraint(condition=models.Q(('phone__isnull', False), models.Q(('phone', ''), _negated=True)), fields=('school', 'phone'), name='students_phone_unique'),
                    models.UniqueConstraint(condition=models.Q(('parent_phone__isnull', False), models.Q(('parent_phone', ''), _negated=True)), fields=('school', 'parent_phone'), name='unique_parent_phone'),
                    models.UniqueConstraint(condition=models.Q(('parent_email__isnull', False), models.Q(('parent_email', ''), _negated=True)), fields=('school', 'parent_email'), name='unique_parent_email'),
                ],
            },
        ),
        migrations.CreateModel(
            name='SchoolClass',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('name', models.CharField(max_length=100)),
                ('level', models.CharField(blank=True, default='', max_length=50)),
                ('academic_year', models.CharField(max_length=20)),
                ('capacity', models.PositiveIntegerField(default=30)),
                ('teacher_name', models.CharField(blank=True, default='', max_length=150)),
                ('room_number', models.CharField(blank=True, default='', max_length=30)),
                ('schedule', models.CharField(blank=True, default='', max_length=255)),
                ('registration_fee', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12, validators=[django.core.validators.MinValueValidator(0)])),
                ('monthly_tuition', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12, validators=[django.core.validators.MinValueValidator(0)])),
                ('annual_tuition', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12, validators=[django.core.validators.MinValueValidator(0)])),
                ('school', models.ForeignKey(help_text='The school this item belongs to', on_delete=django.db.models.deletion.CASCADE, related_name='schoolclass_set', to='main.school')),
            ],
            options={
                'db_table': 'classes',
                'ordering': ['-level', 'name'],
                'constraints': [
                    models.UniqueConstraint(fields=('school', 'name', 'academic_year'), name='unique_class_per_year'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Enrollment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('requested_class', models.CharField(max_length=100)),
                ('previous_class', models.CharField(blank=True, max_length=100, null=True)),
                ('academic_year', models.CharField(max_length=20)),
                ('enrollment_type', models.CharField(choices=[('new', 'New'), ('re-enrollment', 'Re-enrollment')], default='new', max_length=15)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('approved', 'Approved'), ('rejected', 'Rejected'), ('documents_missing', 'Documents missing')], db_index=True, default='pending', max_length=20)),
                ('enrollment_date', models.DateField(default=django.utils.timezone.localdate)),
                ('enrollment_fee', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12, validators=[django.core.validators.MinValueValidator(0)])),
                ('payment_status', models.CharField(choices=[('pending', 'Pending'), ('partial', 'Partial'), ('paid', 'Paid')], default='pending', max_length=10)),
                ('documents_submitted', models.JSONField(blank=True, default=list)),
                ('notes', models.TextField(blank=True, null=True)),
                ('approved_at', models.DateTimeField(blank=True, null=True)),
                ('approved_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='approved_enrollments', to=settings.AUTH_USER_MODEL)),
                ('created_by', models.ForeignKey(blank=True, help_text='User who created this record', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_enrollments', to=settings.AUTH_USER_MODEL)),
                ('school', models.ForeignKey(help_text='The school this item belongs to', on_delete=django.db.models.deletion.CASCADE, related_name='enrollment_set', to='main.school')),
                ('student', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='enrollments', to='main.student')),
            ],
            options={
                'db_table': 'enrollments',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='Payment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0.01'))])),
                ('payment_method', models.CharField(choices=[('cash', 'Espèces'), ('mobile_money', 'Mobile Money'), ('bank_transfer', 'Virement bancaire'), ('check', 'Chèque'), ('other', 'Autre')], max_length=20)),
                ('payment_type', models.CharField(choices=[('tuition', 'Frais de scolarité'), ('monthly_tuition', 'Mensualité'), ('registration', 'Inscription'), ('exam', 'Examen'), ('transport', 'Transport'), ('canteen', 'Cantine'), ('uniform', 'Uniforme'), ('books', 'Livres'), ('other', 'Autre')], max_length=20)),
                ('payment_date', models.DateField(db_index=True, default=django.utils.timezone.localdate)),
                ('payment_period', models.CharField(blank=True, db_index=True, max_length=30, null=True)),
                ('academic_year', models.CharField(default=main.models.current_academic_year, max_length=20)),
                ('receipt_number', models.CharField(editable=False, max_length=40)),
                ('transaction_reference', models.CharField(blank=True, max_length=100, null=True)),
                ('notes', models.TextField(blank=True, null=True)),
                ('created_by', models.ForeignKey(blank=True, help_text='User who created this record', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_payments', to=settings.AUTH_USER_MODEL)),
                ('school', models.ForeignKey(help_text='The school this item belongs to', on_delete=django.db.models.deletion.CASCADE, related_name='payment_set', to='main.school')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='payments', to='main.student')),
            ],
            options={
                'db_table': 'payments',
                'ordering': ['-payment_date', '-created_at'],
                'indexes': [
                    models.Index(fields=['school', 'payment_date'], name='payments_school__4f0b7d_idx'),
                    models.Index(fields=['school', 'payment_type', 'payment_period'], name='payments_school__c2e81a_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('school', 'receipt_number'), name='payments_receipt_number_unique'),
                    models.UniqueConstraint(condition=models.Q(('payment_type', 'monthly_tuition'), ('payment_period__isnull', False)), fields=('student', 'payment_period', 'academic_year'), name='uniq_monthly_tuition_period'),
                    models.CheckConstraint(condition=models.Q(('amount__gt', 0)), name='payments_amount_positive'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ReceiptCounter',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('last_number', models.PositiveIntegerField(default=0)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('school', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='receipt_counter', to='main.school')),
            ],
            options={
                'db_table': 'receipt_counters',
            },
        ),
        migrations.CreateModel(
            name='Certificate',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('document_type', models.CharField(choices=[('scolarite', 'Certificat de scolarité'), ('inscription', "Attestation d'inscription"), ('paiement', 'Reçu de paiement'), ('notes', 'Relevé de notes'), ('presence', 'Attestation de présence'), ('bonne_conduite', 'Certificat de bonne conduite')], max_length=20)),
                ('academic_year', models.CharField(default=main.models.current_academic_year, max_length=20)),
                ('issue_date', models.DateField(default=django.utils.timezone.localdate)),
                ('signatory', models.CharField(choices=[('director', 'Directeur'), ('principal', 'Proviseur'), ('secretary', 'Secrétaire Général')], default='director', max_length=20)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('status', models.CharField(choices=[('generated', 'Generated'), ('pending', 'Pending')], default='generated', max_length=10)),
                ('created_by', models.ForeignKey(blank=True, help_text='User who created this record', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_certificates', to=settings.AUTH_USER_MODEL)),
                ('school', models.ForeignKey(help_text='The school this item belongs to', on_delete=django.db.models.deletion.CASCADE, related_name='certificate_set', to='main.school')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='certificates', to='main.student')),
            ],
            options={
                'db_table': 'certificates',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='ReminderConfiguration',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('reminder_type', models.CharField(choices=[('automatic', 'Automatic'), ('manual', 'Manual')], default='automatic', max_length=10)),
                ('trigger_days', models.PositiveIntegerField(help_text='Days overdue before sending')),
                ('message_template', models.TextField()),
                ('channels', models.JSONField(default=list, validators=[main.models.validate_channels])),
                ('is_active', models.BooleanField(default=True)),
                ('send_to_parent', models.BooleanField(default=True)),
                ('school', models.ForeignKey(help_text='The school this item belongs to', on_delete=django.db.models.deletion.CASCADE, related_name='reminderconfiguration_set', to='main.school')),
            ],
            options={
                'db_table': 'reminder_configurations',
                'ordering': ['trigger_days'],
            },
        ),
        migrations.CreateModel(
            name='ScheduledReminder',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('scheduled_date', models.DateField()),
                ('scheduled_time', models.TimeField(blank=True, null=True)),
                ('message', models.TextField()),
                ('channels', models.JSONField(default=list, validators=[main.models.validate_channels])),
                ('send_to_parent', models.BooleanField(default=True)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('sent', 'Sent'), ('failed', 'Failed'), ('cancelled', 'Cancelled')], db_index=True, default='pending', max_length=10)),
                ('sent_at', models.DateTimeField(blank=True, null=True)),
                ('error_message', models.TextField(blank=True, null=True)),
                ('created_by', models.ForeignKey(blank=True, help_text='User who created this record', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_scheduledreminders', to=settings.AUTH_USER_MODEL)),
                ('school', models.ForeignKey(help_text='The school this item belongs to', on_delete=django.db.models.deletion.CASCADE, related_name='scheduledreminder_set', to='main.school')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='scheduled_reminders', to='main.student')),
            ],
            options={
                'db_table': 'scheduled_reminders',
                'ordering': ['scheduled_date', 'scheduled_time'],
            },
        ),
        migrations.CreateModel(
            name='AuditLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('ip_address', models.GenericIPAddressField(blank=True, null=True)),
                ('user_agent', models.TextField(blank=True, default='')),
                ('request_path', models.CharField(blank=True, default='', max_length=512)),
                ('request_method', models.CharField(blank=True, default='', max_length=8)),
                ('status_code', models.PositiveIntegerField(default=0)),
                ('timestamp', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('action', models.CharField(choices=[('request', 'Request'), ('create', 'Create'), ('update', 'Update'), ('delete', 'Delete'), ('approve', 'Approve')], db_index=True, max_length=10)),
                ('model', models.CharField(blank=True, db_index=True, default='', max_length=128)),
                ('object_id', models.CharField(blank=True, db_index=True, default='', max_length=64)),
                ('changes', models.JSONField(blank=True, default=dict)),
                ('extra', models.JSONField(blank=True, default=dict)),
                ('content_type', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to='contenttypes.contenttype')),
                ('school', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='audit_logs', to='main.school')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='audit_logs', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'audit_logs',
                'ordering': ['-timestamp'],
                'indexes': [
                    models.Index(fields=['model', 'object_id'], name='audit_logs_model_3b7f10_idx'),
                    models.Index(fields=['school', 'timestamp'], name='audit_logs_school__e5d2a4_idx'),
                ],
            },
        ),
    ]
