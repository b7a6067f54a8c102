from datetime import datetime, timedelta

from mongomock_motor import AsyncMongoMockClient

from auth.database import (
    INVALID_CODE_MESSAGE,
    UNLIMITED_TRIES,
    UserDatabase,
    check_password_policy,
)
from auth.models import CodePurpose, PrincipalKind
from auth.passwords import verify_password

from conftest import PASSWORD, make_settings


async def register(user_db, email="alice@example.com", username="alice", password=PASSWORD):
    result = await user_db.create_user(email, username, password, password)
    assert result.ok, result.message
    return result


async def register_verified(user_db, email="alice@example.com", username="alice"):
    result = await register(user_db, email, username)
    user, verified = await user_db.verify_user(email, result.code)
    assert verified.ok
    return user


# ==================== Plans ====================


async def test_seed_plans_is_idempotent(user_db):
    assert await user_db.seed_plans() == 0
    assert len(await user_db.list_plans()) == 3


async def test_plans_are_listed_cheapest_first(user_db):
    plans = await user_db.list_plans()

    assert [p.name for p in plans] == ["free", "pro", "premium"]
    assert [p.price for p in plans] == sorted(p.price for p in plans)
    assert plans[-1].is_unlimited


# ==================== Signup ====================


async def test_create_user_starts_unverified_on_free_plan(user_db):
    result = await register(user_db, email="Alice@Example.com")

    user = await user_db.get_user_by_email("alice@example.com")
    free = await user_db.get_plan_by_name("free")
    assert result.code.isdigit() and len(result.code) == 6
    assert not user.is_verified
    assert user.plan_id == free.id
    assert user.remaining_tries == 50
    assert verify_password(PASSWORD, user.password_hash)


async def test_create_user_rejects_duplicates_and_bad_passwords(user_db):
    await register(user_db)

    dup_email = await user_db.create_user("alice@example.com", "other", PASSWORD, PASSWORD)
    dup_name = await user_db.create_user("other@example.com", "alice", PASSWORD, PASSWORD)
    mismatch = await user_db.create_user("bob@example.com", "bob", PASSWORD, "different1")
    short = await user_db.create_user("bob@example.com", "bob", "short", "short")

    assert (dup_email.status, dup_email.message) == (400, "Email already exists")
    assert (dup_name.status, dup_name.message) == (400, "Username already exists")
    assert (mismatch.status, mismatch.message) == (400, "Passwords do not match")
    assert short.status == 400


async def test_create_user_rejects_admin_email(user_db):
    await user_db.seed_admin("admin", "admin@example.com", PASSWORD)

    result = await user_db.create_user("admin@example.com", "someone", PASSWORD, PASSWORD)

    assert result.status == 400


def test_password_policy_limits():
    assert check_password_policy("seven77") is not None
    assert check_password_policy("eight888") is None
    assert check_password_policy("é" * 37) is not None


# ==================== Verification codes ====================


async def test_verify_user_marks_verified_and_consumes_code(user_db):
    result = await register(user_db)

    user, verified = await user_db.verify_user("alice@example.com", result.code)
    again, replay = await user_db.verify_user("alice@example.com", result.code)

    assert verified.ok and user.is_verified
    assert (await user_db.get_user_by_email("alice@example.com")).is_verified
    assert again is None and replay.message == INVALID_CODE_MESSAGE
    assert await user_db.verification_codes.count_documents({}) == 0


async def test_new_code_replaces_previous_one(user_db):
    first = await register(user_db)
    second = await user_db.generate_user_verification_code("alice@example.com")

    assert await user_db.verification_codes.count_documents({}) == 1
    if first.code != second.code:
        _, stale = await user_db.verify_user("alice@example.com", first.code)
        assert stale.status == 400
    user, fresh = await user_db.verify_user("alice@example.com", second.code)
    assert fresh.ok


async def test_unknown_email_and_wrong_code_look_the_same(user_db):
    await register(user_db)

    _, unknown = await user_db.verify_user("nobody@example.com", "123456")
    _, wrong = await user_db.verify_user("alice@example.com", "000000")

    assert unknown.model_dump() == wrong.model_dump()
    assert wrong.message == INVALID_CODE_MESSAGE


async def test_expired_code_is_rejected(user_db):
    result = await register(user_db)
    await user_db.verification_codes.update_one(
        {}, {"$set": {"expires_at": datetime.utcnow() - timedelta(seconds=1)}}
    )

    user, expired = await user_db.verify_user("alice@example.com", result.code)

    assert user is None
    assert expired.status == 400


async def test_code_is_burned_after_too_many_wrong_attempts(user_db):
    result = await register(user_db)
    wrong = "000000" if result.code != "000000" else "111111"

    for _ in range(user_db.max_code_attempts):
        _, attempt = await user_db.verify_user("alice@example.com", wrong)
        assert attempt.status == 400

    user, locked = await user_db.verify_user("alice@example.com", result.code)
    assert user is None and locked.status == 400


async def test_wrong_attempts_are_counted(user_db):
    await register(user_db)

    await user_db.verify_user("alice@example.com", "000000")

    doc = await user_db.verification_codes.find_one({})
    assert doc["attempts"] == 1


async def test_resend_inside_cooldown_is_refused():
    settings = make_settings(code_resend_cooldown_seconds=30)
    user_db = UserDatabase.from_settings(settings, client=AsyncMongoMockClient())
    await user_db.connect()
    await register(user_db)

    result = await user_db.generate_user_verification_code("alice@example.com")

    assert result.status == 429
    assert result.code is None


async def test_resend_for_unknown_or_verified_user(user_db):
    await register_verified(user_db)

    unknown = await user_db.generate_user_verification_code("nobody@example.com")
    verified = await user_db.generate_user_verification_code("alice@example.com")

    assert unknown.status == 404
    assert (verified.status, verified.message) == (400, "User is already verified")


async def test_codes_use_separate_slots_per_purpose(user_db):
    await register(user_db)

    await user_db.generate_password_reset_code(PrincipalKind.USER, "alice@example.com")

    purposes = {doc["purpose"] async for doc in user_db.verification_codes.find({})}
    assert purposes == {CodePurpose.SIGNUP_VERIFICATION.value, CodePurpose.PASSWORD_RESET.value}


# ==================== Password reset ====================


async def test_user_password_reset_flow(user_db):
    await register_verified(user_db)
    issued = await user_db.generate_password_reset_code(PrincipalKind.USER, "alice@example.com")

    checked = await user_db.verify_reset_code(PrincipalKind.USER, "alice@example.com", issued.code)
    reset = await user_db.reset_password(
        PrincipalKind.USER, "alice@example.com", issued.code, "new-password-1"
    )
    replay = await user_db.reset_password(
        PrincipalKind.USER, "alice@example.com", issued.code, "new-password-2"
    )

    assert checked.ok and reset.ok
    assert replay.status == 400
    user, signin = await user_db.authenticate_user("alice@example.com", "new-password-1")
    assert signin.ok and user is not None


async def test_banned_user_cannot_request_reset(user_db):
    await register_verified(user_db)
    await user_db.users.update_one({"email": "alice@example.com"}, {"$set": {"is_banned": True}})

    result = await user_db.generate_password_reset_code(PrincipalKind.USER, "alice@example.com")

    assert (result.status, result.message) == (403, "User is banned")


async def test_admin_password_reset_flow(user_db):
    await user_db.seed_admin("admin", "admin@example.com", PASSWORD)
    issued = await user_db.generate_password_reset_code(PrincipalKind.ADMIN, "admin@example.com")

    reset = await user_db.reset_password(
        PrincipalKind.ADMIN, "admin@example.com", issued.code, "new-admin-pass"
    )

    assert reset.ok
    admin, signin = await user_db.authenticate_admin("admin@example.com", "new-admin-pass")
    assert signin.ok and admin.username == "admin"


async def test_admin_reset_for_unknown_or_inactive_admin(user_db):
    await user_db.seed_admin("admin", "admin@example.com", PASSWORD)
    await user_db.admins.update_one({}, {"$set": {"is_active": False}})

    unknown = await user_db.generate_password_reset_code(PrincipalKind.ADMIN, "x@example.com")
    inactive = await user_db.generate_password_reset_code(PrincipalKind.ADMIN, "admin@example.com")

    assert unknown.status == 404
    assert (inactive.status, inactive.message) == (403, "Admin account is not active")


# ==================== Sign in ====================


async def test_authenticate_user_outcomes(user_db):
    await register(user_db)

    _, unverified = await user_db.authenticate_user("alice@example.com", PASSWORD)
    _, wrong = await user_db.authenticate_user("alice@example.com", "bad-password")
    _, unknown = await user_db.authenticate_user("nobody@example.com", PASSWORD)

    assert unverified.status == 403
    assert (wrong.status, wrong.message) == (400, "Email or Password is incorrect")
    assert unknown.model_dump() == wrong.model_dump()


async def test_authenticate_user_records_last_login(user_db):
    await register_verified(user_db)

    user, result = await user_db.authenticate_user("alice@example.com", PASSWORD)

    assert result.ok
    assert (await user_db.get_user_by_id(user.id)).last_login is not None


async def test_banned_user_cannot_sign_in(user_db):
    await register_verified(user_db)
    await user_db.users.update_one({}, {"$set": {"is_banned": True}})

    user, result = await user_db.authenticate_user("alice@example.com", PASSWORD)

    assert user is None
    assert (result.status, result.message) == (400, "User is banned")


async def test_authenticate_admin_outcomes(user_db):
    assert await user_db.seed_admin("admin", "admin@example.com", PASSWORD)
    assert not await user_db.seed_admin("admin", "admin@example.com", PASSWORD)

    _, wrong = await user_db.authenticate_admin("admin@example.com", "bad-password")
    await user_db.admins.update_one({}, {"$set": {"is_active": False}})
    _, inactive = await user_db.authenticate_admin("admin@example.com", PASSWORD)

    assert (wrong.status, wrong.message) == (400, "Invalid email or password")
    assert (inactive.status, inactive.message) == (400, "Admin account is not active")


# ==================== Account ====================


async def test_change_password(user_db):
    user = await register_verified(user_db)

    wrong = await user_db.change_password(user.id, "bad-password", "new-password-1")
    same = await user_db.change_password(user.id, PASSWORD, PASSWORD)
    changed = await user_db.change_password(user.id, PASSWORD, "new-password-1")

    assert wrong.status == 400 and same.status == 400
    assert changed.ok
    assert (await user_db.authenticate_user("alice@example.com", "new-password-1"))[1].ok


async def test_update_profile_rejects_taken_values(user_db):
    alice = await register_verified(user_db)
    await register_verified(user_db, email="bob@example.com", username="bob")

    _, taken_name = await user_db.update_profile(alice.id, "bob", "alice@example.com")
    _, taken_email = await user_db.update_profile(alice.id, "alice", "bob@example.com")
    updated, ok = await user_db.update_profile(alice.id, "alice2", "Alice2@Example.com")

    assert taken_name.message == "Username already taken"
    assert taken_email.message == "Email already in use"
    assert ok.ok and updated.email == "alice2@example.com"


async def test_update_plan_resets_tries(user_db):
    user = await register_verified(user_db)
    premium = await user_db.get_plan_by_name("premium")
    pro = await user_db.get_plan_by_name("pro")

    unlimited, _ = await user_db.update_plan(user.id, premium.id)
    limited, _ = await user_db.update_plan(user.id, pro.id)
    missing, not_found = await user_db.update_plan(user.id, "no-such-plan")

    assert unlimited.remaining_tries == UNLIMITED_TRIES
    assert limited.remaining_tries == 500
    assert missing is None and not_found.status == 404


async def test_profile_never_contains_password_hash(user_db):
    user = await register_verified(user_db)

    profile = await user_db.get_user_profile(user.id)

    assert "password_hash" not in profile
    assert "password" not in profile
    assert profile["plan"]["name"] == "free"


async def test_delete_user_removes_codes(user_db):
    result = await register(user_db)
    user = await user_db.get_user_by_email("alice@example.com")

    assert result.code
    assert await user_db.delete_user(user.id)
    assert not await user_db.delete_user(user.id)
    assert await user_db.verification_codes.count_documents({}) == 0
