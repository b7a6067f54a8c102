"""MongoDB database operations for authentication."""

import hmac
import logging
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Any, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from .models import (
    Admin,
    CodePurpose,
    Plan,
    PrincipalKind,
    Role,
    StoreResult,
    User,
    VerificationCode,
)
from .passwords import DEFAULT_ROUNDS, hash_password, verify_password

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_BYTES = 72  # bcrypt ignores anything past this
UNLIMITED_TRIES = 999999
DEFAULT_PLAN_NAME = "free"

DEFAULT_PLANS = [
    {"name": "free", "tries": 50, "price": 0.0},
    {"name": "pro", "tries": 500, "price": 9.99},
    {"name": "premium", "tries": -1, "price": 19.99},
]

INVALID_CODE_MESSAGE = "Invalid or expired verification code"


def _result(status: int, message: str, code: Optional[str] = None) -> StoreResult:
    return StoreResult(status=status, message=message, code=code)


def check_password_policy(password: str) -> Optional[str]:
    """Return an error message if the password is unacceptable."""
    if len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        return f"Password must be at most {MAX_PASSWORD_BYTES} bytes long"
    return None


class UserDatabase:
    """Async MongoDB operations for users, admins, plans and verification codes."""

    def __init__(
        self,
        mongodb_uri: str,
        database_name: str = "chatdesk",
        client: Optional[AsyncIOMotorClient] = None,
        *,
        user_code_expiry_minutes: int = 15,
        admin_code_expiry_minutes: int = 10,
        max_code_attempts: int = 5,
        code_resend_cooldown_seconds: int = 30,
        bcrypt_rounds: int = DEFAULT_ROUNDS,
    ):
        """Initialize database connection. Pass client to reuse an existing one."""
        self._client: Optional[AsyncIOMotorClient] = client
        self._owns_client = client is None
        self._db: Optional[AsyncIOMotorDatabase] = None
        self._mongodb_uri = mongodb_uri
        self._database_name = database_name
        self.user_code_expiry = timedelta(minutes=user_code_expiry_minutes)
        self.admin_code_expiry = timedelta(minutes=admin_code_expiry_minutes)
        self.max_code_attempts = max_code_attempts
        self.code_resend_cooldown = timedelta(seconds=code_resend_cooldown_seconds)
        self.bcrypt_rounds = bcrypt_rounds

    @classmethod
    def from_settings(cls, settings, client=None) -> "UserDatabase":
        return cls(
            settings.mongodb_uri,
            settings.database_name,
            client=client,
            user_code_expiry_minutes=settings.user_code_expiry_minutes,
            admin_code_expiry_minutes=settings.admin_code_expiry_minutes,
            max_code_attempts=settings.max_code_attempts,
            code_resend_cooldown_seconds=settings.code_resend_cooldown_seconds,
            bcrypt_rounds=settings.bcrypt_rounds,
        )

    async def connect(self) -> None:
        """Connect to MongoDB and make sure indexes exist."""
        if self._client is None:
            self._client = AsyncIOMotorClient(self._mongodb_uri)
        self._db = self._client[self._database_name]

        await self.users.create_index("id", unique=True)
        await self.users.create_index("email", unique=True)
        await self.users.create_index("username", unique=True, sparse=True)
        await self.admins.create_index("id", unique=True)
        await self.admins.create_index("email", unique=True)
        await self.admins.create_index("username", unique=True)
        await self.plans.create_index("id", unique=True)
        await self.plans.create_index("name", unique=True)
        # At most one live code per principal and purpose
        await self.verification_codes.create_index(
            [("principal_kind", 1), ("principal_id", 1), ("purpose", 1)],
            unique=True,
        )

    async def close(self) -> None:
        """Close MongoDB connection."""
        if self._client and self._owns_client:
            self._client.close()
            self._client = None
        self._db = None

    def _collection(self, name: str):
        if self._db is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._db[name]

    @property
    def users(self):
        return self._collection("users")

    @property
    def admins(self):
        return self._collection("admins")

    @property
    def plans(self):
        return self._collection("plans")

    @property
    def verification_codes(self):
        return self._collection("verification_codes")

    def _principals(self, kind: PrincipalKind):
        return self.admins if kind == PrincipalKind.ADMIN else self.users

    @staticmethod
    def _new_id() -> str:
        return uuid.uuid4().hex

    @staticmethod
    def _generate_verification_code() -> str:
        """Generate a 6-digit verification code (no leading zero)."""
        return str(100000 + secrets.randbelow(900000))

    def _hash(self, password: str) -> str:
        return hash_password(password, rounds=self.bcrypt_rounds)

    # ==================== Lookups ====================

    @staticmethod
    def _clean(doc: Optional[dict]) -> Optional[dict]:
        if doc:
            doc.pop("_id", None)
        return doc

    @staticmethod
    def _to_doc(principal) -> dict:
        doc = principal.model_dump()
        doc["role"] = principal.role.value
        return doc

    async def get_user_by_email(self, email: str) -> Optional[User]:
        doc = self._clean(await self.users.find_one({"email": email.strip().lower()}))
        return User(**doc) if doc else None

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        doc = self._clean(await self.users.find_one({"id": user_id}))
        return User(**doc) if doc else None

    async def get_admin_by_email(self, email: str) -> Optional[Admin]:
        doc = self._clean(await self.admins.find_one({"email": email.strip().lower()}))
        return Admin(**doc) if doc else None

    async def _get_principal(self, kind: PrincipalKind, email: str):
        if kind == PrincipalKind.ADMIN:
            return await self.get_admin_by_email(email)
        return await self.get_user_by_email(email)

    # ==================== Verification Codes ====================

    @staticmethod
    def _code_key(kind: PrincipalKind, principal_id: str, purpose: CodePurpose) -> dict:
        return {
            "principal_kind": kind.value,
            "principal_id": principal_id,
            "purpose": purpose.value,
        }

    async def issue_code(
        self, kind: PrincipalKind, principal_id: str, purpose: CodePurpose
    ) -> StoreResult:
        """
        Store a fresh code for the principal, replacing any previous one.
        Returns 429 if the previous code was issued inside the cool-down window.
        """
        key = self._code_key(kind, principal_id, purpose)
        now = datetime.utcnow()

        existing = await self.verification_codes.find_one(key)
        if existing and now - existing["created_at"] < self.code_resend_cooldown:
            return _result(429, "Please wait before requesting a new code")

        code = self._generate_verification_code()
        expiry = self.admin_code_expiry if kind == PrincipalKind.ADMIN else self.user_code_expiry
        await self.verification_codes.update_one(
            key,
            {
                "$set": {
                    "code": code,
                    "expires_at": now + expiry,
                    "attempts": 0,
                    "created_at": now,
                }
            },
            upsert=True,
        )
        return _result(200, "Verification code generated successfully", code)

    async def check_code(
        self,
        kind: PrincipalKind,
        principal_id: str,
        purpose: CodePurpose,
        code: str,
    ) -> StoreResult:
        """
        Compare code against the live code without consuming it.
        Wrong guesses count against the code; it is burned after max_code_attempts.
        """
        key = self._code_key(kind, principal_id, purpose)
        doc = await self.verification_codes.find_one(key)

        if not doc:
            return _result(400, INVALID_CODE_MESSAGE)

        record = VerificationCode(**self._clean(doc))
        if record.is_expired():
            return _result(400, INVALID_CODE_MESSAGE)

        if not hmac.compare_digest(record.code, str(code).strip()):
            attempts = record.attempts + 1
            if attempts >= self.max_code_attempts:
                logger.warning(
                    f"Too many wrong codes for {kind.value} {principal_id}, code burned"
                )
                await self.verification_codes.delete_one(key)
            else:
                await self.verification_codes.update_one(key, {"$inc": {"attempts": 1}})
            return _result(400, INVALID_CODE_MESSAGE)

        return _result(200, "Code verified successfully")

    async def consume_code(
        self, kind: PrincipalKind, principal_id: str, purpose: CodePurpose
    ) -> None:
        await self.verification_codes.delete_one(self._code_key(kind, principal_id, purpose))

    async def generate_user_verification_code(self, email: str) -> StoreResult:
        """Issue a signup-verification code for an unverified user."""
        user = await self.get_user_by_email(email)
        if not user:
            return _result(404, "User not found")
        if user.is_verified:
            return _result(400, "User is already verified")

        result = await self.issue_code(
            PrincipalKind.USER, user.id, CodePurpose.SIGNUP_VERIFICATION
        )
        if result.ok:
            result.message = "Verification code resent successfully"
        return result

    async def generate_password_reset_code(self, kind: PrincipalKind, email: str) -> StoreResult:
        """Issue a password-reset code for a user or admin."""
        principal = await self._get_principal(kind, email)
        if kind == PrincipalKind.ADMIN:
            if not principal:
                return _result(404, "No admin account found with this email address")
            if not principal.is_active:
                return _result(403, "Admin account is not active")
        else:
            if not principal:
                return _result(404, "User not found")
            if principal.is_banned:
                return _result(403, "User is banned")

        result = await self.issue_code(kind, principal.id, CodePurpose.PASSWORD_RESET)
        if result.ok:
            result.message = "Password reset code generated successfully"
        return result

    async def verify_user(self, email: str, code: str) -> tuple[Optional[User], StoreResult]:
        """Mark the user verified if code matches their live signup code."""
        user = await self.get_user_by_email(email)
        if not user:
            # Same answer as a wrong code, so unknown emails are not revealed
            return None, _result(400, INVALID_CODE_MESSAGE)

        result = await self.check_code(
            PrincipalKind.USER, user.id, CodePurpose.SIGNUP_VERIFICATION, code
        )
        if not result.ok:
            return None, result

        await self.users.update_one(
            {"id": user.id},
            {"$set": {"is_verified": True, "updated_at": datetime.utcnow()}},
        )
        await self.consume_code(PrincipalKind.USER, user.id, CodePurpose.SIGNUP_VERIFICATION)
        user.is_verified = True
        return user, _result(200, "User verified successfully")

    async def verify_reset_code(self, kind: PrincipalKind, email: str, code: str) -> StoreResult:
        """Check a password-reset code without consuming it."""
        principal = await self._get_principal(kind, email)
        if not principal:
            return _result(400, INVALID_CODE_MESSAGE)
        return await self.check_code(kind, principal.id, CodePurpose.PASSWORD_RESET, code)

    async def reset_password(
        self, kind: PrincipalKind, email: str, code: str, new_password: str
    ) -> StoreResult:
        """Replace the password if code matches the live reset code, then consume it."""
        policy_error = check_password_policy(new_password)
        if policy_error:
            return _result(400, policy_error)

        principal = await self._get_principal(kind, email)
        if not principal:
            return _result(400, INVALID_CODE_MESSAGE)

        result = await self.check_code(kind, principal.id, CodePurpose.PASSWORD_RESET, code)
        if not result.ok:
            return result

        await self._principals(kind).update_one(
            {"id": principal.id},
            {"$set": {"password_hash": self._hash(new_password), "updated_at": datetime.utcnow()}},
        )
        await self.consume_code(kind, principal.id, CodePurpose.PASSWORD_RESET)
        return _result(200, "Password reset successfully")

    # ==================== Users ====================

    async def create_user(
        self, email: str, username: str, password: str, confirm_password: str
    ) -> StoreResult:
        """
        Register an unverified user on the default plan.
        Returns the signup verification code in the result.
        """
        email = email.strip().lower()
        username = username.strip()

        if await self.users.find_one({"email": email}) or await self.admins.find_one(
            {"email": email}
        ):
            return _result(400, "Email already exists")
        if await self.users.find_one({"username": username}):
            return _result(400, "Username already exists")
        if password != confirm_password:
            return _result(400, "Passwords do not match")
        policy_error = check_password_policy(password)
        if policy_error:
            return _result(400, policy_error)

        plan = await self.get_plan_by_name(DEFAULT_PLAN_NAME)
        user = User(
            id=self._new_id(),
            email=email,
            username=username,
            password_hash=self._hash(password),
            plan_id=plan.id if plan else None,
            remaining_tries=self._tries_for(plan),
        )
        try:
            await self.users.insert_one(self._to_doc(user))
        except DuplicateKeyError:
            return _result(400, "Email or username already exists")

        result = await self.issue_code(
            PrincipalKind.USER, user.id, CodePurpose.SIGNUP_VERIFICATION
        )
        return _result(200, "User registered successfully", result.code)

    async def authenticate_user(
        self, email: str, password: str
    ) -> tuple[Optional[User], StoreResult]:
        """Check credentials and account state, recording the login on success."""
        user = await self.get_user_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            return None, _result(400, "Email or Password is incorrect")
        if not user.is_verified:
            return None, _result(403, "Please verify your email address before signing in")
        if user.is_banned:
            return None, _result(400, "User is banned")

        user.last_login = datetime.utcnow()
        await self.users.update_one({"id": user.id}, {"$set": {"last_login": user.last_login}})
        return user, _result(200, "User logged in successfully")

    async def change_password(
        self, user_id: str, current_password: str, new_password: str
    ) -> StoreResult:
        user = await self.get_user_by_id(user_id)
        if not user:
            return _result(404, "User not found")
        if not verify_password(current_password, user.password_hash):
            return _result(400, "Current password is incorrect")
        if current_password == new_password:
            return _result(400, "New password must be different from current password")
        policy_error = check_password_policy(new_password)
        if policy_error:
            return _result(400, policy_error)

        await self.users.update_one(
            {"id": user_id},
            {"$set": {"password_hash": self._hash(new_password), "updated_at": datetime.utcnow()}},
        )
        return _result(200, "Password updated successfully")

    async def update_profile(
        self, user_id: str, username: str, email: str
    ) -> tuple[Optional[User], StoreResult]:
        """Change username/email, rejecting values held by another account."""
        email = email.strip().lower()
        username = username.strip()

        user = await self.get_user_by_id(user_id)
        if not user:
            return None, _result(404, "User not found")

        taken = await self.users.find_one(
            {"id": {"$ne": user_id}, "$or": [{"username": username}, {"email": email}]}
        )
        if taken:
            if taken.get("username") == username:
                return None, _result(400, "Username already taken")
            return None, _result(400, "Email already in use")
        if await self.admins.find_one({"email": email}):
            return None, _result(400, "Email already in use")

        now = datetime.utcnow()
        await self.users.update_one(
            {"id": user_id},
            {"$set": {"username": username, "email": email, "updated_at": now}},
        )
        user.username, user.email, user.updated_at = username, email, now
        return user, _result(200, "Profile updated successfully")

    async def update_plan(self, user_id: str, plan_id: str) -> tuple[Optional[User], StoreResult]:
        plan = await self.get_plan(plan_id)
        if not plan:
            return None, _result(404, "Plan not found")
        user = await self.get_user_by_id(user_id)
        if not user:
            return None, _result(404, "User not found")

        user.plan_id = plan.id
        user.remaining_tries = self._tries_for(plan)
        await self.users.update_one(
            {"id": user_id},
            {
                "$set": {
                    "plan_id": user.plan_id,
                    "remaining_tries": user.remaining_tries,
                    "updated_at": datetime.utcnow(),
                }
            },
        )
        return user, _result(200, "Plan updated successfully")

    async def delete_user(self, user_id: str) -> bool:
        """Delete a user and their codes. Returns True if deleted."""
        result = await self.users.delete_one({"id": user_id})
        await self.verification_codes.delete_many(
            {"principal_kind": PrincipalKind.USER.value, "principal_id": user_id}
        )
        return result.deleted_count > 0

    async def get_user_profile(self, user_id: str) -> Optional[dict[str, Any]]:
        """Public user fields with the plan embedded."""
        user = await self.get_user_by_id(user_id)
        if not user:
            return None
        plan = await self.get_plan(user.plan_id) if user.plan_id else None
        return user.to_public(plan)

    # ==================== Admins ====================

    async def authenticate_admin(
        self, email: str, password: str
    ) -> tuple[Optional[Admin], StoreResult]:
        admin = await self.get_admin_by_email(email)
        if not admin or not verify_password(password, admin.password_hash):
            return None, _result(400, "Invalid email or password")
        if not admin.is_active:
            return None, _result(400, "Admin account is not active")

        admin.last_login = datetime.utcnow()
        await self.admins.update_one({"id": admin.id}, {"$set": {"last_login": admin.last_login}})
        return admin, _result(200, "Authentication successful")

    async def seed_admin(
        self, username: str, email: str, password: str, role: Role = Role.SUPER_ADMIN
    ) -> bool:
        """
        Create an admin unless one with this email or username exists.
        Returns True if created.
        """
        email = email.strip().lower()
        existing = await self.admins.find_one({"$or": [{"email": email}, {"username": username}]})
        if existing:
            return False

        admin = Admin(
            id=self._new_id(),
            email=email,
            username=username,
            password_hash=self._hash(password),
            role=role,
        )
        await self.admins.insert_one(self._to_doc(admin))
        return True

    # ==================== Plans ====================

    @staticmethod
    def _tries_for(plan: Optional[Plan]) -> int:
        if not plan:
            return 0
        return UNLIMITED_TRIES if plan.is_unlimited else plan.tries

    async def list_plans(self) -> list[Plan]:
        """All plans, cheapest first."""
        plans = []
        async for doc in self.plans.find({}, sort=[("price", 1)]):
            plans.append(Plan(**self._clean(doc)))
        return plans

    async def get_plan(self, plan_id: str) -> Optional[Plan]:
        doc = self._clean(await self.plans.find_one({"id": plan_id}))
        return Plan(**doc) if doc else None

    async def get_plan_by_name(self, name: str) -> Optional[Plan]:
        doc = self._clean(await self.plans.find_one({"name": name}))
        return Plan(**doc) if doc else None

    async def seed_plans(self, plans: Optional[list[dict]] = None) -> int:
        """Insert missing plans by name. Returns the number created."""
        count = 0
        for plan in plans or DEFAULT_PLANS:
            if await self.get_plan_by_name(plan["name"]):
                continue
            await self.plans.insert_one(Plan(id=self._new_id(), **plan).model_dump())
            count += 1
        return count
