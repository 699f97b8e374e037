from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from storefront.core.rate_limit import auth_limit, otp_limit
from storefront.core.responses import ok
from storefront.db.session import get_session
from storefront.models.user import User, UserRole
from storefront.services.auth import AuthService

router = APIRouter()

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/users/auth/login")


class OTPRequest(BaseModel):
    email: str

class RegisterVerify(BaseModel):
    email: str
    otp: str = Field(min_length=6, max_length=6)
    password: str = Field(min_length=8)
    name: str = Field(min_length=2)
    phone: Optional[str] = None

class LoginRequest(BaseModel):
    email: str
    password: str

class RefreshRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    refresh_token: str = Field(alias="refreshToken")

class PasswordReset(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str
    otp: str = Field(min_length=6, max_length=6)
    new_password: str = Field(min_length=8, alias="newPassword")

def get_auth_service(session: Session = Depends(get_session)) -> AuthService:
    return AuthService(session)

def get_current_user(token: str = Depends(oauth2_scheme), service: AuthService = Depends(get_auth_service)) -> User:
    return service.user_from_access_token(token)

def get_admin_user(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != UserRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return current_user

@router.post("/register")
@otp_limit
def register(request: Request, data: OTPRequest, service: AuthService = Depends(get_auth_service)):
    """Start registration by mailing an OTP"""
    service.request_otp(data.email)
    return ok(message="OTP sent to your email")

@router.post("/request-otp")
@otp_limit
def request_otp(request: Request, data: OTPRequest, service: AuthService = Depends(get_auth_service)):
    service.request_otp(data.email)
    return ok(message="OTP sent to your email")

@router.post("/verify-otp")
@auth_limit
def verify_otp(request: Request, data: RegisterVerify, service: AuthService = Depends(get_auth_service)):
    """Complete registration and sign the user in"""
    tokens = service.verify_otp_and_register(data.email, data.otp, data.password, data.name, data.phone)
    return ok(tokens, "Registration successful")

@router.post("/login")
@auth_limit
def login(request: Request, data: LoginRequest, service: AuthService = Depends(get_auth_service)):
    return ok(service.login(data.email, data.password), "Login successful")

@router.post("/refresh-token")
def refresh_token(data: RefreshRequest, service: AuthService = Depends(get_auth_service)):
    return ok(service.refresh(data.refresh_token))

@router.post("/logout")
def logout(current_user: User = Depends(get_current_user), service: AuthService = Depends(get_auth_service)):
    service.logout(current_user)
    return ok(message="Logged out")

@router.post("/forgot-password")
@otp_limit
def forgot_password(request: Request, data: OTPRequest, service: AuthService = Depends(get_auth_service)):
    service.forgot_password(data.email)
    # Same answer whether or not the account exists
    return ok(message="If the email is registered, a reset code has been sent.")

@router.post("/reset-password")
@auth_limit
def reset_password(request: Request, data: PasswordReset, service: AuthService = Depends(get_auth_service)):
    service.reset_password(data.email, data.otp, data.new_password)
    return ok(message="Password updated successfully")

@router.get("/me")
def read_me(current_user: User = Depends(get_current_user)):
    return ok(current_user.to_public())
