from django.urls import path, include, re_path

from rest_framework_nested import routers
from rest_framework_simplejwt.views import token_refresh

from api import views


router = routers.DefaultRouter()
router.register('students', views.StudentViewSet, basename='students')
router.register('classes', views.SchoolClassViewSet, basename='classes')
router.register('enrollments', views.EnrollmentViewSet, basename='enrollments')
router.register('payments', views.PaymentViewSet, basename='payments')
router.register('certificates', views.CertificateViewSet, basename='certificates')
router.register('reminder-configurations', views.ReminderConfigurationViewSet,
                basename='reminder-configurations')
router.register('scheduled-reminders', views.ScheduledReminderViewSet,
                basename='scheduled-reminders')

# Super admin console
router.register('schools', views.SchoolViewSet, basename='schools')
router.register('admin/users', views.AdminUserViewSet, basename='admin-users')
router.register('subscriptions', views.SubscriptionViewSet, basename='subscriptions')

# Nested Router for Students
students_router = routers.NestedSimpleRouter(router, 'students', lookup='student')
students_router.register('payments', views.StudentPaymentViewSet, basename='student-payments')

urlpatterns = [
    # Main API routes
    path('', include(router.urls)),

    # Nested routes
    path('', include(students_router.urls)),

    # Dashboard & finance pages
    path('dashboard/', views.DashboardView.as_view(), name='dashboard'),
    path('late-payments/', views.LatePaymentsView.as_view(), name='late-payments'),
    re_path(r'^reports/(?P<report_type>financial|classes|payments|enrollments)/$',
            views.ReportView.as_view(), name='reports'),

    # Settings
    path('school/', views.SchoolSettingsView.as_view(), name='school-settings'),
    path('profile/', views.ProfileView.as_view(), name='profile'),
    path('preferences/', views.PreferencesView.as_view(), name='preferences'),
    path('onboarding/school/', views.OnboardingSchoolView.as_view(), name='onboarding-school'),

    # Super admin
    path('admin/stats/', views.AdminStatsView.as_view(), name='admin-stats'),
    path('admin/settings/', views.PlatformSettingsView.as_view(), name='admin-settings'),

    # Authentication
    path("auth/login/", views.LoginView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", token_refresh, name="token_refresh"),
    path("auth/roles/", views.RolesView.as_view(), name="auth-roles"),
    path("auth/", include("djoser.urls")),

    # Include default auth views for the browsable API
    path('api-auth/', include('rest_framework.urls', namespace='rest_framework')),
]
