from .account_views import (
    LoginView,
    OnboardingSchoolView,
    PreferencesView,
    ProfileView,
    RolesView,
    SchoolSettingsView,
)
from .admin_views import (
    AdminStatsView,
    AdminUserViewSet,
    PlatformSettingsView,
    SchoolViewSet,
    SubscriptionViewSet,
)
from .document_views import CertificateViewSet, ReportView
from .finance_views import DashboardView, LatePaymentsView, PaymentViewSet
from .reminder_views import ReminderConfigurationViewSet, ScheduledReminderViewSet
from .school_views import EnrollmentViewSet, SchoolClassViewSet, StudentPaymentViewSet, StudentViewSet
