from .core_serializers import (
    SchoolSerializer,
    SchoolClassSerializer,
    StudentDetailSerializer,
    StudentInputSerializer,
    StudentSerializer,
)
from .enrollment_serializers import (
    EnrollmentApproveSerializer,
    EnrollmentDecisionSerializer,
    EnrollmentSerializer,
)
from .finance_serializers import (
    LatePaymentQuerySerializer,
    LateStudentSerializer,
    PaymentSerializer,
    PaymentStatsSerializer,
)
from .document_serializers import (
    CertificateSerializer,
    CertificateStatsSerializer,
    ReportFilterSerializer,
)
from .reminder_serializers import (
    DeliverySerializer,
    ReminderConfigurationSerializer,
    ReminderPreviewSerializer,
    ScheduledReminderSerializer,
)
from .auth_serializers import (
    CurrentUserSerializer,
    CustomTokenObtainPairSerializer,
    OnboardingSchoolSerializer,
    ProfileSerializer,
    RoleSerializer,
    SignUpSerializer,
    UserPreferencesSerializer,
)
from .admin_serializers import (
    AdminCreateUserSerializer,
    AdminSchoolSerializer,
    AdminUserListSerializer,
    PlatformSettingsSerializer,
    SubscriptionSerializer,
)
from .dashboard_serializers import AdminStatsSerializer, DashboardStatsSerializer
