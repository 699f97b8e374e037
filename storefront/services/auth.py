import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException, status
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlmodel import Session, select

from storefront.core.config import settings
from storefront.models.user import User
from storefront.services.email import send_otp_email

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

def generate_otp() -> str:
    return "".join(secrets.choice("0123456789") for _ in range(6))

class AuthService:
    def __init__(self, session: Session):
        self.session = session

    def get_password_hash(self, password: str) -> str:
        return pwd_context.hash(password)

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        if not hashed_password:
            return False
        return pwd_context.verify(plain_password, hashed_password)

    # Tokens

    def create_access_token(self, user: User) -> str:
        now = datetime.utcnow()
        payload = {
            "userId": user.id,
            "role": user.role.value,
            "tokenVersion": user.token_version,
            "iat": now,
            "exp": now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        }
        return jwt.encode(payload, settings.JWT_ACCESS_SECRET, algorithm=settings.ALGORITHM)

    def create_refresh_token(self, user: User) -> str:
        now = datetime.utcnow()
        payload = {
            "userId": user.id,
            "tokenVersion": user.token_version,
            "iat": now,
            "exp": now + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        }
        return jwt.encode(payload, settings.JWT_REFRESH_SECRET, algorithm=settings.ALGORITHM)

    def issue_tokens(self, user: User) -> dict:
        return {
            "user": user.to_public(),
            "accessToken": self.create_access_token(user),
            "refreshToken": self.create_refresh_token(user),
        }

    def _decode(self, token: str, secret: str) -> dict:
        try:
            return jwt.decode(token, secret, algorithms=[settings.ALGORITHM])
        except JWTError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or expired token",
                headers={"WWW-Authenticate": "Bearer"},
            )

    def _user_for_payload(self, payload: dict) -> User:
        user = self.session.get(User, payload.get("userId"))
        if not user or not user.is_active or payload.get("tokenVersion") != user.token_version:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has been revoked",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return user

    def user_from_access_token(self, token: str) -> User:
        return self._user_for_payload(self._decode(token, settings.JWT_ACCESS_SECRET))

    def refresh(self, refresh_token: str) -> dict:
        user = self._user_for_payload(self._decode(refresh_token, settings.JWT_REFRESH_SECRET))
        return {"accessToken": self.create_access_token(user)}

    def logout(self, user: User) -> None:
        # Every token carries the version it was issued with
        user.token_version += 1
        user.updated_at = datetime.utcnow()
        self.session.add(user)
        self.session.commit()

    # Users

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.session.exec(select(User).where(User.email == email.strip().lower())).first()

    def _set_otp(self, user: User) -> str:
        otp = generate_otp()
        user.otp_code = otp
        user.otp_expires_at = datetime.utcnow() + timedelta(minutes=settings.OTP_EXPIRE_MINUTES)
        self.session.add(user)
        self.session.commit()
        return otp

    def _check_otp(self, user: Optional[User], otp: str) -> None:
        if not user or not user.otp_code or user.otp_code != otp:
            raise HTTPException(status_code=400, detail="Invalid OTP")
        if not user.otp_expires_at or datetime.utcnow() > user.otp_expires_at:
            raise HTTPException(status_code=400, detail="OTP has expired")

    def request_otp(self, email: str) -> None:
        """Create or refresh an unverified user row holding a registration OTP"""
        user = self.get_user_by_email(email)
        if user and user.is_verified:
            raise HTTPException(status_code=400, detail="Email already registered. Please sign in instead.")

        if not user:
            user = User(email=email.strip().lower(), is_verified=False)

        otp = self._set_otp(user)
        send_otp_email(user.email, user.name or "there", otp)
        logger.info("Registration OTP issued for user %s", user.id)

    def verify_otp_and_register(self, email: str, otp: str, password: str, name: str, phone: Optional[str] = None) -> dict:
        user = self.get_user_by_email(email)
        if user and user.is_verified:
            raise HTTPException(status_code=400, detail="Email already registered")
        self._check_otp(user, otp)

        user.name = name
        user.phone = phone
        user.password_hash = self.get_password_hash(password)
        user.is_verified = True
        user.otp_code = None
        user.otp_expires_at = None
        user.updated_at = datetime.utcnow()
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        logger.info("User %s registered", user.id)
        return self.issue_tokens(user)

    def login(self, email: str, password: str) -> dict:
        user = self.get_user_by_email(email)
        if not user or not user.is_verified or not self.verify_password(password, user.password_hash):
            raise HTTPException(status_code=401, detail="Invalid email or password")
        if not user.is_active:
            raise HTTPException(status_code=403, detail="Your account has been blocked")
        return self.issue_tokens(user)

    def forgot_password(self, email: str) -> None:
        user = self.get_user_by_email(email)
        # Same response whether or not the account exists
        if not user or not user.is_verified:
            logger.info("Password reset requested for unknown email")
            return
        otp = self._set_otp(user)
        send_otp_email(user.email, user.name or "there", otp, purpose="reset your password")

    def reset_password(self, email: str, otp: str, new_password: str) -> None:
        user = self.get_user_by_email(email)
        self._check_otp(user, otp)
        user.password_hash = self.get_password_hash(new_password)
        user.otp_code = None
        user.otp_expires_at = None
        user.token_version += 1
        user.updated_at = datetime.utcnow()
        self.session.add(user)
        self.session.commit()
        logger.info("Password reset for user %s", user.id)
