from fastapi import APIRouter, Depends

from ..core.current_user import get_credentials, get_current_user
from ..core.policy import Principal
from ..schemas.auth import AuthOut, ChangePasswordIn, ForgotPasswordIn, LoginIn, RegisterIn, ResetPasswordIn
from ..schemas.base import MessageOut
from ..schemas.user import UserEnvelope, UserOut
from ..services.credentials import CredentialService

router = APIRouter(prefix="/auth", tags=["auth"])

FORGOT_PASSWORD_MESSAGE = "If the email is registered, a reset link has been sent."


@router.post("/register", response_model=AuthOut, status_code=201)
def register(payload: RegisterIn, credentials: CredentialService = Depends(get_credentials)):
    user = credentials.register(payload.name, payload.email, payload.password)
    return AuthOut(
        message="User registered successfully",
        token=credentials.issue_token(user),
        user=UserOut.model_validate(user),
    )


@router.post("/login", response_model=AuthOut)
def login(payload: LoginIn, credentials: CredentialService = Depends(get_credentials)):
    token, user = credentials.authenticate(payload.email, payload.password)
    return AuthOut(message="Login successful", token=token, user=UserOut.model_validate(user))


@router.get("/user", response_model=UserEnvelope)
def current_user(principal: Principal = Depends(get_current_user)):
    return UserEnvelope(user=UserOut.model_validate(principal))


@router.post("/forgot-password", response_model=MessageOut)
def forgot_password(payload: ForgotPasswordIn, credentials: CredentialService = Depends(get_credentials)):
    credentials.request_password_reset(payload.email)
    # same answer whether or not the account exists
    return MessageOut(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/reset-password", response_model=MessageOut)
def reset_password(payload: ResetPasswordIn, credentials: CredentialService = Depends(get_credentials)):
    credentials.reset_password(payload.token, payload.password)
    return MessageOut(message="Password has been reset")


@router.post("/change-password", response_model=MessageOut)
def change_password(
    payload: ChangePasswordIn,
    principal: Principal = Depends(get_current_user),
    credentials: CredentialService = Depends(get_credentials),
):
    credentials.change_password(principal, payload.current_password, payload.new_password)
    return MessageOut(message="Password changed")
