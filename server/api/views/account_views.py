import logging

from rest_framework import status
from rest_framework.generics import CreateAPIView, RetrieveUpdateAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.views import TokenObtainPairView

from main.models import SCHOOL_ADMIN, Profile, UserPreferences
from main.tenancy.permissions import HasRole, IsSchoolMember

from ..serializers import (
    CustomTokenObtainPairSerializer,
    OnboardingSchoolSerializer,
    ProfileSerializer,
    RoleSerializer,
    SchoolSerializer,
    UserPreferencesSerializer,
)
from .mixins import TenantScopedMixin

logger = logging.getLogger(__name__)


class LoginView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class RolesView(APIView):
    """Roles of the signed-in user, with the school they work in."""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        user = request.user
        school = user.school
        return Response({
            'roles': RoleSerializer(user.roles.select_related('school'), many=True).data,
            'school_id': school.pk if school else None,
            'school_name': school.name if school else None,
            'is_super_admin': user.is_superadmin,
        })


class ProfileView(RetrieveUpdateAPIView):
    serializer_class = ProfileSerializer
    permission_classes = [IsAuthenticated]
    http_method_names = ['get', 'patch', 'head', 'options']

    def get_object(self):
        profile, _created = Profile.objects.select_related('user').get_or_create(user=self.request.user)
        return profile


class PreferencesView(RetrieveUpdateAPIView):
    """Created with defaults on first read."""
    serializer_class = UserPreferencesSerializer
    permission_classes = [IsAuthenticated]
    http_method_names = ['get', 'patch', 'head', 'options']

    def get_object(self):
        return UserPreferences.for_user(self.request.user)


class SchoolSettingsView(TenantScopedMixin, RetrieveUpdateAPIView):
    serializer_class = SchoolSerializer
    permission_classes = [IsAuthenticated, IsSchoolMember, HasRole]
    write_roles = (SCHOOL_ADMIN,)
    http_method_names = ['get', 'patch', 'head', 'options']

    def get_object(self):
        return self.get_school()


class OnboardingSchoolView(CreateAPIView):
    """A freshly signed-up user creates their school and becomes its admin."""
    serializer_class = OnboardingSchoolSerializer
    permission_classes = [IsAuthenticated]

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        school = serializer.save()
        return Response({'school': serializer.data, 'school_id': school.pk}, status=status.HTTP_201_CREATED)
