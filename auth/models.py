"""Pydantic models for authentication."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class Role(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


class PrincipalKind(str, Enum):
    """Which collection a principal lives in."""

    USER = "user"
    ADMIN = "admin"


class CodePurpose(str, Enum):
    SIGNUP_VERIFICATION = "signup_verification"
    PASSWORD_RESET = "password_reset"


class Plan(BaseModel):
    """Subscription plan. tries == -1 means unlimited."""

    id: str
    name: str
    tries: int
    price: float

    @property
    def is_unlimited(self) -> bool:
        return self.tries == -1


class User(BaseModel):
    """User model stored in MongoDB."""

    id: str
    email: str
    username: Optional[str] = None
    password_hash: str
    role: Role = Role.USER
    is_verified: bool = False
    is_banned: bool = False
    plan_id: Optional[str] = None
    remaining_tries: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None
    last_login: Optional[datetime] = None

    def to_public(self, plan: Optional[Plan] = None) -> dict[str, Any]:
        """Client-facing fields. Never includes the password hash."""
        return {
            "id": self.id,
            "email": self.email,
            "username": self.username,
            "role": self.role.value,
            "isVerified": self.is_verified,
            "isBan": self.is_banned,
            "planId": self.plan_id,
            "plan": plan.model_dump() if plan else None,
            "remainingTries": self.remaining_tries,
            "createdAt": self.created_at.isoformat(),
            "lastLogin": self.last_login.isoformat() if self.last_login else None,
        }


class Admin(BaseModel):
    """Admin model stored in MongoDB."""

    id: str
    email: str
    username: str
    password_hash: str
    role: Role = Role.ADMIN
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)
    last_login: Optional[datetime] = None

    def to_public(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role.value,
            "isActive": self.is_active,
        }


class VerificationCode(BaseModel):
    """Verification code model. One live code per principal and purpose."""

    principal_kind: PrincipalKind
    principal_id: str
    purpose: CodePurpose
    code: str
    expires_at: datetime
    attempts: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or datetime.utcnow()) > self.expires_at


class StoreResult(BaseModel):
    """Outcome of a store operation, mapped 1:1 onto an HTTP status."""

    status: int
    message: str
    code: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == 200
