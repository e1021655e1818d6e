from fastapi import APIRouter, BackgroundTasks, Depends, Request
from pydantic import BaseModel, ConfigDict, Field

from legalai.dependencies import Services, client_ip, get_services
from legalai.utils.rate_limit import Identity
from legalai.utils.security import normalize_email

router = APIRouter(prefix="/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    name: str
    email: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class GoogleLoginRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    access_token: str = Field(alias="accessToken")


class EmailRequest(BaseModel):
    email: str


class VerifyOTPRequest(BaseModel):
    email: str
    otp: str


class ResetPasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    email: str
    password: str
    reset_token: str = Field(alias="resetToken")


@router.post("/register", status_code=201)
async def register(body: RegisterRequest, background_tasks: BackgroundTasks, services: Services = Depends(get_services)):
    account = services.auth.register(body.name, body.email, body.password)
    background_tasks.add_task(services.notifier.send, account.email, "registration", {"name": account.name})
    return {"message": "User registered successfully", "user": account.public()}


@router.post("/login")
async def login(body: LoginRequest, background_tasks: BackgroundTasks, services: Services = Depends(get_services)):
    token, account = services.auth.login(body.email, body.password)
    background_tasks.add_task(services.notifier.send, account.email, "login", {"name": account.name})
    return {"message": "Login successful", "token": token, "user": account.public()}


@router.post("/google-login")
async def google_login(body: GoogleLoginRequest, background_tasks: BackgroundTasks, services: Services = Depends(get_services)):
    token, account, created = await services.auth.google_login(body.access_token)
    kind = "registration" if created else "login"
    background_tasks.add_task(services.notifier.send, account.email, kind, {"name": account.name})
    return {"message": "Login successful", "token": token, "user": account.public()}


@router.post("/forgot-password")
async def forgot_password(body: EmailRequest, request: Request, services: Services = Depends(get_services)):
    """Emails a one-time code. Reset requests are rate limited per client IP."""
    services.reset_request_quota.consume(Identity(key=client_ip(request)))
    await services.recovery.request_reset(body.email)
    return {"message": "OTP sent to your email."}


@router.post("/resend-otp")
async def resend_otp(body: EmailRequest, request: Request, services: Services = Depends(get_services)):
    services.reset_request_quota.consume(Identity(key=client_ip(request)))
    await services.recovery.resend_otp(body.email)
    return {"message": "A new OTP has been sent to your email."}


@router.post("/verify-otp")
async def verify_otp(body: VerifyOTPRequest, services: Services = Depends(get_services)):
    """Exchanges the OTP for a reset token. Attempts are limited per email address."""
    services.otp_attempt_quota.consume(Identity(key=normalize_email(body.email)))
    reset_token = services.recovery.verify_otp(body.email, body.otp)
    return {"message": "OTP verified successfully", "resetToken": reset_token}


@router.post("/reset-password")
async def reset_password(body: ResetPasswordRequest, services: Services = Depends(get_services)):
    await services.recovery.complete_reset(body.email, body.reset_token, body.password)
    return {"message": "Password reset successfully"}
