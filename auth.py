"""Admin authentication: signed session tokens, credential checks and the session guard."""
import hmac
import logging
from typing import Optional, Protocol

from fastapi import Cookie, Depends, HTTPException
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from config import Settings, get_settings
from schemas import AdminIdentity

logger = logging.getLogger(__name__)

COOKIE_NAME = "admin_token"
TOKEN_MAX_AGE = 24 * 60 * 60


class TokenService:
    """Issues and verifies signed admin tokens that expire after `max_age` seconds."""

    def __init__(self, secret: str, max_age: int = TOKEN_MAX_AGE):
        if not secret:
            raise ValueError("A signing secret is required")
        self.max_age = max_age
        self._serializer = URLSafeTimedSerializer(secret, salt="admin-session")

    def issue(self, identity: AdminIdentity) -> str:
        return self._serializer.dumps(identity.model_dump())

    def verify(self, token: Optional[str]) -> Optional[AdminIdentity]:
        if not token:
            return None
        try:
            payload = self._serializer.loads(token, max_age=self.max_age)
        except SignatureExpired:
            return None
        except BadSignature:
            return None
        try:
            return AdminIdentity(**payload)
        except (TypeError, ValueError):
            return None


class CredentialsProvider(Protocol):
    def validate(self, email: str, password: str) -> Optional[AdminIdentity]:
        ...


class EnvCredentialsProvider:
    """Single admin account taken from configuration."""

    def __init__(self, email: Optional[str], password: Optional[str], admin_id: str = "admin-001"):
        self.email = email
        self.password = password
        self.admin_id = admin_id

    def validate(self, email: str, password: str) -> Optional[AdminIdentity]:
        if not self.email or not self.password:
            logger.warning("Login attempted but no admin credentials are configured")
            return None
        email_ok = hmac.compare_digest(email.strip().lower().encode(), self.email.strip().lower().encode())
        password_ok = hmac.compare_digest(password.encode(), self.password.encode())
        if email_ok and password_ok:
            return AdminIdentity(email=self.email, id=self.admin_id)
        return None


def get_token_service(settings: Settings = Depends(get_settings)) -> TokenService:
    return TokenService(settings.jwt_secret)


def get_credentials_provider(settings: Settings = Depends(get_settings)) -> CredentialsProvider:
    return EnvCredentialsProvider(settings.admin_email, settings.admin_password, settings.admin_id)


def current_admin(
    admin_token: Optional[str] = Cookie(None),
    tokens: TokenService = Depends(get_token_service),
) -> Optional[AdminIdentity]:
    return tokens.verify(admin_token)


def require_admin(admin: Optional[AdminIdentity] = Depends(current_admin)) -> AdminIdentity:
    if admin is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return admin
