import logging

from django.contrib.auth import get_user_model
from django.contrib.auth.backends import ModelBackend

UserModel = get_user_model()

logger = logging.getLogger(__name__)


class EmailBackend(ModelBackend):
    def authenticate(self, request, username=None, password=None, **kwargs):
        """
        Authenticate with the (case-insensitive) email and password.

        Staff of a deactivated school cannot sign in; super admins always can,
        since they are the ones who reactivate schools.
        """
        email = username or kwargs.get(UserModel.USERNAME_FIELD) or kwargs.get("email")
        if email is None or password is None:
            return None

        user = UserModel.objects.filter(email__iexact=email.strip()).first()
        if user is None:
            # Run the default password hasher once to reduce the timing
            # difference between an existing and a nonexistent user.
            UserModel().set_password(password)
            return None

        if not (user.check_password(password) and self.user_can_authenticate(user)):
            return None

        school = user.school
        if school is not None and not school.is_active and not user.is_superadmin:
            logger.info("Login refused for %s: school %s is inactive", user.email, school.pk)
            return None
        return user
