from decimal import Decimal

from django.contrib.auth import get_user_model
from rest_framework_simplejwt.tokens import RefreshToken

from main.models import Profile, School, SchoolClass, Student, UserRole


def create_school(name="Lycée Test", **kwargs):
    return School.objects.create(name=name, **kwargs)


def create_test_user(role="school_admin", school=None, email=None, password="testpass123", **kwargs):
    """Helper function to create a test user with the given role."""
    email = email or f"test_{role}_{getattr(school, 'pk', 'x')}@example.com"
    user = get_user_model().objects.create_user(email=email, password=password, **kwargs)
    Profile.objects.filter(user=user).update(
        school=None if role == "super_admin" else school,
        full_name=f"Test {role.replace('_', ' ').title()}",
    )
    if role:
        UserRole.objects.create(
            user=user, role=role, school=None if role == "super_admin" else school)
    user.refresh_from_db()
    return user


def get_tokens_for_user(user):
    """Generate JWT tokens for the given user."""
    refresh = RefreshToken.for_user(user)
    return {
        'refresh': str(refresh),
        'access': str(refresh.access_token),
    }


def create_class(school, name="6ème A", academic_year="2024-2025", **kwargs):
    data = {
        'capacity': 40,
        'registration_fee': Decimal("20000"),
        'monthly_tuition': Decimal("15000"),
        'annual_tuition': Decimal("150000"),
    }
    data.update(kwargs)
    return SchoolClass.default_objects.create(
        school=school, name=name, academic_year=academic_year, **data)


def create_student(school, full_name="Awa Diop", **kwargs):
    data = {'class_name': "6ème A", 'status': Student.Status.ACTIVE}
    data.update(kwargs)
    return Student.default_objects.create(school=school, full_name=full_name, **data)
