import logging

from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from main.common.errors import error_message
from main.models import STAFF_ROLES, School
from main.tenancy.permissions import HasRole, IsSameSchoolObject, IsSchoolMember
from main.tenancy.threadlocals import get_current_school_id, set_current_request, set_current_school

logger = logging.getLogger(__name__)


class StandardResultSetPagination(PageNumberPagination):
    page_size = 10
    page_size_query_param = 'page_size'
    max_page_size = 100


def success_response(data=None, message='', status_code=status.HTTP_200_OK, **extra):
    body = {'success': True, 'data': data, 'message': message}
    body.update(extra)
    return Response(body, status=status_code)


def error_response(error, message, status_code=status.HTTP_400_BAD_REQUEST):
    return Response(
        {
            'success': False,
            'error': error if isinstance(error, str) else error_message(error),
            'message': message,
        },
        status=status_code
    )


class TenantScopedMixin:
    """
    Binds the request to a school once DRF has authenticated the user.

    School staff always work in their profile's school. Super admins work in
    the school picked by subdomain or `X-School`, or unscoped when none was picked.
    """
    permission_classes = [IsAuthenticated, IsSchoolMember, HasRole, IsSameSchoolObject]
    allowed_roles = STAFF_ROLES
    write_roles = None

    def initial(self, request, *args, **kwargs):
        self.perform_authentication(request)
        django_request = request._request
        set_current_request(django_request)

        user = request.user
        school_id = None
        if user and user.is_authenticated:
            if user.is_superadmin:
                school_id = getattr(django_request, 'requested_school_id', None)
            else:
                school = user.school
                school_id = school.pk if school else None
        set_current_school(school_id, django_request)
        super().initial(request, *args, **kwargs)

    def get_school(self) -> School:
        school_id = get_current_school_id()
        if not school_id:
            raise ValidationError(
                {'school': "Sélectionnez une école (en-tête X-School) pour cette opération."})
        return School.objects.get(pk=school_id)

    def perform_create(self, serializer):
        serializer.save(school=self.get_school())
