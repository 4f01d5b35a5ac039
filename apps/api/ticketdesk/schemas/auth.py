from pydantic import Field

from .base import CamelModel
from .user import UserOut


# Fields are optional here so that missing values reach the service and
# come back as a descriptive 400 instead of a schema error.
class RegisterIn(CamelModel):
    name: str | None = Field(default=None, max_length=100)
    email: str | None = Field(default=None, max_length=255)
    password: str | None = None


class LoginIn(CamelModel):
    email: str | None = None
    password: str | None = None


class AuthOut(CamelModel):
    message: str
    token: str
    user: UserOut


class ForgotPasswordIn(CamelModel):
    email: str | None = None


class ResetPasswordIn(CamelModel):
    token: str | None = None
    password: str | None = None


class ChangePasswordIn(CamelModel):
    current_password: str | None = None
    new_password: str | None = None
