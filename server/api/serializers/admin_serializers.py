import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from rest_framework import serializers

from main.models import Payment, Profile, School, Student, Subscription, User, UserRole

from .auth_serializers import validate_new_password

logger = logging.getLogger(__name__)


class AdminSchoolSerializer(serializers.ModelSerializer):
    """Any school, as managed from the super-admin console."""
    student_count = serializers.SerializerMethodField()

    class Meta:
        model = School
        fields = ['id', 'name', 'address', 'phone', 'email', 'logo_url', 'code',
                  'is_active', 'max_students', 'subscription_plan', 'subscription_end_date',
                  'settings', 'student_count', 'created_at', 'updated_at']
        read_only_fields = ['code', 'created_at', 'updated_at']

    def get_student_count(self, obj):
        counts = self.context.get('student_counts')
        if counts is not None:
            return counts.get(obj.pk, 0)
        return Student.default_objects.filter(school=obj).count()

    def validate_max_students(self, value):
        if value < School.UNLIMITED or value == 0:
            raise serializers.ValidationError("Use a positive limit, or -1 for unlimited.")
        return value

    def validate_name(self, value):
        if not value or not value.strip():
            raise serializers.ValidationError("Please provide a school name.")
        return value.strip()


class AdminUserListSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)
    roles = serializers.SerializerMethodField()
    school_id = serializers.SerializerMethodField()
    school_name = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'email', 'full_name', 'is_active', 'roles', 'school_id',
                  'school_name', 'date_joined', 'last_login']

    def get_roles(self, obj):
        return sorted(role.role for role in obj.roles.all())

    def get_school_id(self, obj):
        school = obj.school
        return school.pk if school else None

    def get_school_name(self, obj):
        school = obj.school
        return school.name if school else None


class AdminCreateUserSerializer(serializers.Serializer):
    """
    Account created by a super admin. The email is confirmed up front.
    A school_admin attached to a school puts that school on the free,
    unlimited plan.
    """
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, style={'input_type': 'password'})
    full_name = serializers.CharField(max_length=150)
    role = serializers.ChoiceField(choices=UserRole.Role.choices, required=False, allow_null=True)
    school_id = serializers.PrimaryKeyRelatedField(
        queryset=School.objects.all(), source='school', required=False, allow_null=True)

    def validate_email(self, value):
        value = value.lower().strip()
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("Un utilisateur avec cet email existe déjà.")
        return value

    def validate_password(self, value):
        return validate_new_password(value)

    def validate(self, attrs):
        role = attrs.get('role')
        if role and role != UserRole.Role.SUPER_ADMIN and not attrs.get('school'):
            raise serializers.ValidationError({'school_id': "Ce rôle nécessite une école."})
        return attrs

    def create(self, validated_data):
        role = validated_data.get('role')
        school = validated_data.get('school')
        with transaction.atomic():
            user = User.objects.create_user(
                email=validated_data['email'], password=validated_data['password'])
            profile_school = school if role and role != UserRole.Role.SUPER_ADMIN else None
            Profile.objects.update_or_create(
                user=user,
                defaults={'full_name': validated_data['full_name'].strip(), 'school': profile_school},
            )
            if role:
                UserRole.objects.create(user=user, role=role, school=profile_school)
            if role == UserRole.Role.SCHOOL_ADMIN and school is not None:
                school.subscription_plan = School.Plan.FREE
                school.max_students = School.UNLIMITED
                school.save(update_fields=['subscription_plan', 'max_students', 'updated_at'])
        # the signal-created profile is cached on the instance
        user.refresh_from_db()
        logger.info("Super admin created user %s (role=%s, school=%s)",
                    user.email, role, getattr(school, 'pk', None))
        return user

    def to_representation(self, instance):
        return AdminUserListSerializer(instance, context=self.context).data


class PlatformSettingsSerializer(serializers.Serializer):
    """Validates keys and value types against PlatformSettings.DEFAULTS."""

    def to_representation(self, instance):
        return dict(instance.values, updated_at=instance.updated_at)

    def to_internal_value(self, data):
        if not isinstance(data, dict):
            raise serializers.ValidationError({'non_field_errors': ["Expected an object."]})
        return dict(data)

    def update(self, instance, validated_data):
        request = self.context.get('request')
        try:
            instance.update(validated_data, user=getattr(request, 'user', None))
        except DjangoValidationError as e:
            raise serializers.ValidationError(e.message_dict)
        return instance


class SubscriptionSerializer(serializers.ModelSerializer):
    """
    Platform subscription of a school. On creation the amount defaults to the
    plan price and the end date to one month (or one year) after the start.
    """
    school = serializers.PrimaryKeyRelatedField(queryset=School.objects.all())
    school_name = serializers.CharField(source='school.name', read_only=True)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False)
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)
    payment_method = serializers.ChoiceField(
        choices=Payment.Method.choices, required=False, allow_null=True)

    class Meta:
        model = Subscription
        fields = ['id', 'school', 'school_name', 'subscription_type', 'status', 'amount',
                  'start_date', 'end_date', 'auto_renew', 'payment_method',
                  'transaction_reference', 'created_by', 'created_at', 'updated_at']
        read_only_fields = ['status', 'created_by', 'created_at', 'updated_at']

    def validate(self, attrs):
        if self.instance is not None:
            for field in ('school', 'subscription_type'):
                if field in attrs and attrs[field] != getattr(self.instance, field):
                    raise serializers.ValidationError({field: "Ce champ ne peut pas être modifié."})
        start = attrs.get('start_date', getattr(self.instance, 'start_date', None))
        end = attrs.get('end_date', getattr(self.instance, 'end_date', None))
        if start and end and end <= start:
            raise serializers.ValidationError({'end_date': "La date de fin doit suivre la date de début."})
        return attrs

    def create(self, validated_data):
        request = self.context.get('request')
        try:
            subscription = Subscription.activate(
                created_by=getattr(request, 'user', None), **validated_data)
        except DjangoValidationError as e:
            raise serializers.ValidationError(e.message_dict)
        logger.info("Subscription %s (%s) activated for school %s until %s",
                    subscription.pk, subscription.subscription_type,
                    subscription.school_id, subscription.end_date)
        return subscription

    def update(self, instance, validated_data):
        with transaction.atomic():
            instance = super().update(instance, validated_data)
            if 'end_date' in validated_data and instance.status == Subscription.Status.ACTIVE:
                school = instance.school
                school.subscription_end_date = instance.end_date
                school.save(update_fields=['subscription_end_date', 'updated_at'])
        return instance
