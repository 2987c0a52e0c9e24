import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import Count, Sum
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import mixins, status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework.viewsets import GenericViewSet, ModelViewSet

from main.models import Payment, PlatformSettings, School, Student, Subscription, User
from main.tenancy.permissions import IsSuperAdmin

from ..serializers import (
    AdminCreateUserSerializer,
    AdminSchoolSerializer,
    AdminStatsSerializer,
    AdminUserListSerializer,
    PlatformSettingsSerializer,
    SubscriptionSerializer,
)
from .mixins import StandardResultSetPagination, error_response, success_response

logger = logging.getLogger(__name__)


class SchoolViewSet(ModelViewSet):
    """All schools, for the super-admin console."""
    queryset = School.objects.all()
    serializer_class = AdminSchoolSerializer
    permission_classes = [IsAuthenticated, IsSuperAdmin]
    pagination_class = StandardResultSetPagination
    filter_backends = [SearchFilter, OrderingFilter]
    search_fields = ['name', 'code', 'email', 'phone']
    ordering_fields = ['name', 'created_at', 'max_students']

    def get_serializer_context(self):
        context = super().get_serializer_context()
        if self.action == 'list':
            context['student_counts'] = dict(
                Student.default_objects.values_list('school_id').annotate(n=Count('id')))
        return context

    @action(detail=True, methods=['POST'], url_path='toggle-status')
    def toggle_status(self, request, pk=None):
        school = self.get_object()
        is_active = school.toggle_active()
        logger.info("School %s is now %s", school.code, "active" if is_active else "inactive")
        return success_response(
            {'id': school.pk, 'is_active': is_active},
            "École activée." if is_active else "École désactivée.",
        )


class SubscriptionViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, mixins.CreateModelMixin,
                          mixins.UpdateModelMixin, GenericViewSet):
    """Platform subscriptions of every school. Lapsed active ones are expired on listing."""
    queryset = Subscription.objects.select_related('school')
    serializer_class = SubscriptionSerializer
    permission_classes = [IsAuthenticated, IsSuperAdmin]
    pagination_class = StandardResultSetPagination
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_fields = ['school', 'status', 'subscription_type']
    search_fields = ['school__name', 'school__code', 'transaction_reference']
    ordering_fields = ['created_at', 'end_date', 'amount']

    def list(self, request, *args, **kwargs):
        expired = Subscription.objects.expire_lapsed()
        if expired:
            logger.info("Expired %s lapsed subscription(s)", expired)
        return super().list(request, *args, **kwargs)

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return success_response(serializer.data, "Abonnement créé avec succès",
                                status.HTTP_201_CREATED)

    @action(detail=True, methods=['POST'])
    def cancel(self, request, pk=None):
        subscription = self.get_object()
        try:
            subscription.cancel()
        except DjangoValidationError as e:
            return error_response(e, "Cet abonnement ne peut plus être annulé.")
        return success_response(self.get_serializer(subscription).data, "Abonnement annulé")


class AdminUserViewSet(mixins.ListModelMixin, mixins.CreateModelMixin, GenericViewSet):
    queryset = (
        User.objects.select_related('profile__school')
        .prefetch_related('roles')
        .order_by('-date_joined')
    )
    permission_classes = [IsAuthenticated, IsSuperAdmin]
    pagination_class = StandardResultSetPagination
    filter_backends = [SearchFilter]
    search_fields = ['email', 'profile__full_name']

    def get_serializer_class(self):
        if self.action == 'create':
            return AdminCreateUserSerializer
        return AdminUserListSerializer

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return success_response(serializer.data, "Utilisateur créé avec succès",
                                status.HTTP_201_CREATED)


class AdminStatsView(APIView):
    permission_classes = [IsAuthenticated, IsSuperAdmin]

    def get(self, request):
        schools = School.objects.all()
        stats = {
            'total_schools': schools.count(),
            'active_schools': schools.filter(is_active=True).count(),
            'total_students': Student.default_objects.count(),
            'total_users': User.objects.count(),
            'total_revenue': Payment.default_objects.aggregate(total=Sum('amount'))['total'] or 0,
            'schools_by_plan': dict(schools.values_list('subscription_plan').annotate(n=Count('id'))),
            'active_subscriptions': Subscription.objects.filter(status=Subscription.Status.ACTIVE).count(),
            'subscription_revenue': Subscription.objects.exclude(
                status=Subscription.Status.PENDING).aggregate(total=Sum('amount'))['total'] or 0,
        }
        return Response(AdminStatsSerializer(stats).data)


class PlatformSettingsView(APIView):
    permission_classes = [IsAuthenticated, IsSuperAdmin]

    def get(self, request):
        return Response(PlatformSettingsSerializer(PlatformSettings.load()).data)

    def patch(self, request):
        serializer = PlatformSettingsSerializer(
            PlatformSettings.load(), data=request.data, context={'request': request})
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)
