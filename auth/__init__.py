"""Authentication module for chatdesk."""

from .models import Admin, CodePurpose, Plan, PrincipalKind, Role, StoreResult, User, VerificationCode
from .database import UserDatabase
from .email_service import EmailService
from .tokens import ConfigurationError, TokenCodec
from .cookies import SessionCookieAdapter
from .middleware import extract_bearer_token, require_user

__all__ = [
    "Admin",
    "CodePurpose",
    "Plan",
    "PrincipalKind",
    "Role",
    "StoreResult",
    "User",
    "VerificationCode",
    "UserDatabase",
    "EmailService",
    "ConfigurationError",
    "TokenCodec",
    "SessionCookieAdapter",
    "extract_bearer_token",
    "require_user",
]
