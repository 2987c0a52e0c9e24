import logging

from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError
from django.db import transaction
from djoser.serializers import UserCreateSerializer, UserSerializer
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from main.models import Profile, School, User, UserPreferences, UserRole, PlatformSettings

logger = logging.getLogger(__name__)


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    """Customizes JWT default Serializer to add more information about user"""
    username_field = "email"

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        user_school: School | None = user.school

        token['email'] = user.email
        token['full_name'] = user.full_name
        token['roles'] = sorted(user.role_names)
        token['is_super_admin'] = user.is_superadmin
        if user_school:
            token['school_id'] = user_school.pk
            token['school_name'] = str(user_school.name)
        else:
            token['school_id'] = None
            token['school_name'] = ""
        return token


class SignUpSerializer(UserCreateSerializer):
    """djoser `auth/users/` payload: email, password and the full name shown in the app."""
    full_name = serializers.CharField(
        max_length=150,
        write_only=True,
        error_messages={
            'required': 'Full name is required.',
            'blank': 'Full name cannot be empty.'
        }
    )

    class Meta(UserCreateSerializer.Meta):
        model = User
        fields = ('id', 'email', 'password', 'full_name')

    def validate_full_name(self, value):
        if len(value.strip()) < 2:
            raise serializers.ValidationError(
                "Full name is too short. It should be at least 2 characters long.")
        return value.strip()

    def validate(self, attrs):
        # djoser builds User(**attrs) to validate the password
        full_name = attrs.pop('full_name')
        attrs = super().validate(attrs)
        attrs['full_name'] = full_name
        return attrs

    def perform_create(self, validated_data):
        full_name = validated_data.pop('full_name')
        user = super().perform_create(validated_data)
        Profile.objects.filter(user=user).update(full_name=full_name)
        return user


class CurrentUserSerializer(UserSerializer):
    full_name = serializers.CharField(read_only=True)
    roles = serializers.SerializerMethodField()
    school_id = serializers.SerializerMethodField()
    is_super_admin = serializers.BooleanField(source='is_superadmin', read_only=True)

    class Meta(UserSerializer.Meta):
        model = User
        fields = ('id', 'email', 'full_name', 'roles', 'school_id', 'is_super_admin')
        read_only_fields = ('email',)

    def get_roles(self, obj):
        return sorted(obj.role_names)

    def get_school_id(self, obj):
        school = obj.school
        return school.pk if school else None


class RoleSerializer(serializers.ModelSerializer):
    school_name = serializers.CharField(source='school.name', read_only=True, default=None)

    class Meta:
        model = UserRole
        fields = ['id', 'role', 'school', 'school_name', 'created_at']


class ProfileSerializer(serializers.ModelSerializer):
    email = serializers.EmailField(source='user.email', read_only=True)

    class Meta:
        model = Profile
        fields = ['id', 'email', 'full_name', 'phone', 'avatar_url', 'school',
                  'created_at', 'updated_at']
        read_only_fields = ['school', 'created_at', 'updated_at']

    def validate_full_name(self, value):
        if value and len(value.strip()) < 2:
            raise serializers.ValidationError(
                "Full name is too short. It should be at least 2 characters long.")
        return value.strip()


class UserPreferencesSerializer(serializers.ModelSerializer):
    session_timeout = serializers.IntegerField(min_value=5, max_value=480)

    class Meta:
        model = UserPreferences
        fields = ['email_notifications', 'payment_alerts', 'enrollment_alerts',
                  'dark_mode', 'compact_view', 'two_factor_enabled', 'session_timeout',
                  'updated_at']
        read_only_fields = ['updated_at']


class OnboardingSchoolSerializer(serializers.ModelSerializer):
    """Creates the caller's school and makes them its school admin."""

    class Meta:
        model = School
        fields = ['id', 'name', 'address', 'phone', 'email', 'logo_url', 'code',
                  'max_students', 'subscription_plan', 'created_at']
        read_only_fields = ['code', 'max_students', 'subscription_plan', 'created_at']
        extra_kwargs = {
            'name': {'error_messages': {'required': 'School name is required.'}},
        }

    def validate_name(self, value):
        if not value or not value.strip():
            raise serializers.ValidationError("Please provide a school name.")
        if len(value.strip()) < 2:
            raise serializers.ValidationError(
                "School name is too short. It should be at least 2 characters long.")
        return value.strip()

    def validate(self, attrs):
        user = self.context['request'].user
        if not PlatformSettings.load().values['allow_new_schools']:
            raise serializers.ValidationError(
                "La création de nouvelles écoles est désactivée.")
        if user.school is not None:
            raise serializers.ValidationError("Your account is already attached to a school.")
        return attrs

    def create(self, validated_data):
        user = self.context['request'].user
        with transaction.atomic():
            school = School.objects.create(**validated_data)
            Profile.objects.update_or_create(user=user, defaults={'school': school})
            UserRole.objects.create(user=user, role=UserRole.Role.SCHOOL_ADMIN, school=school)
        logger.info("School %s (%s) created by %s", school.code, school.pk, user.email)
        return school


def validate_new_password(value):
    try:
        validate_password(value)
    except ValidationError as e:
        raise serializers.ValidationError(list(e.messages))
    return value
