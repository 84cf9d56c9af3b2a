# tests/unit/services/test_auth_service.py
from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from shopauth.infra.jwt import JWTTokenIssuer
from shopauth.models.shop import Shop
from shopauth.models.user import User, UserRole, UserStatus
from shopauth.services._shared.errors import (
    AccountNotVerified,
    AccountSuspended,
    InvalidCredentials,
    InvalidOrExpiredToken,
    NotFoundError,
    SamePassword,
    SessionExpired,
    SessionNotFound,
    StoreUnavailable,
)
from shopauth.services._shared.ports import (
    InMemoryAuditSink,
    InMemoryNotificationGateway,
    InMemorySessionStore,
)
from shopauth.services.auth import AuthConfig, AuthService, ShopVerifier
from shopauth.services.auth.dto import (
    ChangePasswordIn,
    LoginIn,
    LogoutIn,
    RefreshIn,
    ResetPasswordIn,
    VerifyEmailIn,
)
from shopauth.services.auth.service import (
    FORGOT_PASSWORD_MESSAGE,
    RESEND_VERIFICATION_MESSAGE,
    generate_verification_code,
    hash_reset_token,
)
from shopauth.services.sessions import SessionManager
from tests.factories.shop import ShopFactory
from tests.factories.user import DEFAULT_PASSWORD, PendingUserFactory, UserFactory

SECRET = "unit-test-secret-with-enough-entropy-0123"


# ------------------------------ Fixtures ---------------------------------- #
@pytest.fixture()
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture()
def notifier() -> InMemoryNotificationGateway:
    return InMemoryNotificationGateway()


@pytest.fixture()
def audit() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture()
def tokens() -> JWTTokenIssuer:
    return JWTTokenIssuer(secret=SECRET)


@pytest.fixture()
def service(store, notifier, audit, tokens) -> AuthService:
    """
    Build an AuthService wired to in-memory doubles.

    .. note::
       Shop verification runs through the real :class:`ShopVerifier`.
    """
    config = AuthConfig(access_secret=SECRET)
    return AuthService(
        token_issuer=tokens,
        sessions=SessionManager(store, max_active_sessions=config.max_active_sessions),
        notifier=notifier,
        audit=audit,
        config=config,
        on_user_verified=ShopVerifier(),
    )


def _login(service: AuthService, email: str, password: str = DEFAULT_PASSWORD, **kw):
    return service.login(LoginIn(email=email, password=password, **kw))


# -------------------------------- Login ----------------------------------- #
class TestLogin:
    def test_success_issues_tokens_and_session(self, service, session, store, tokens, audit):
        user = UserFactory(role=UserRole.ADMIN.value)
        session.commit()

        out = _login(service, user.email, device="Firefox", ip="10.0.0.9")

        assert out.user.id == user.id
        assert out.user.verified is True
        assert out.user.last_login_at is not None
        claims = tokens.verify(out.access_token)
        assert claims["sub"] == str(user.id)
        assert claims["uid"] == user.id
        assert claims["role"] == "admin"

        rec = store.get_by_token(out.refresh_token)
        assert rec is not None and rec.is_active
        assert (rec.user_id, rec.device, rec.ip) == (str(user.id), "Firefox", "10.0.0.9")
        assert "user_login" in audit.types()
        assert session.get(User, user.id).last_login_at is not None

    def test_email_is_case_insensitive(self, service, session):
        user = UserFactory(email="dana@example.com")
        session.commit()
        assert _login(service, "  DANA@Example.com").user.id == user.id

    def test_unknown_email_and_wrong_password_are_indistinguishable(self, service, session):
        user = UserFactory()
        session.commit()

        with pytest.raises(InvalidCredentials) as unknown:
            _login(service, "ghost@example.com")
        with pytest.raises(InvalidCredentials) as wrong:
            _login(service, user.email, "wrong-password")

        assert unknown.value.message == wrong.value.message == "Invalid email or password"
        assert unknown.value.code == wrong.value.code

    def test_wrong_password_is_audited_without_session(self, service, session, store, audit):
        user = UserFactory()
        session.commit()

        with pytest.raises(InvalidCredentials):
            _login(service, user.email, "wrong-password")

        assert store.list_user(str(user.id), active_only=False) == []
        assert "failed_login_attempt" in audit.types()

    def test_suspended_rejected_before_password_check(self, service, session, audit):
        user = UserFactory(is_suspended=True, suspension_reason="fraud")
        session.commit()

        with pytest.raises(AccountSuspended):
            _login(service, user.email, "wrong-password")
        assert audit.events[-1].event_type == "suspended_login_attempt"
        assert audit.events[-1].details == {"reason": "fraud"}

    def test_pending_account(self, service, session):
        user = PendingUserFactory()
        session.commit()

        with pytest.raises(AccountNotVerified):
            _login(service, user.email)
        with pytest.raises(InvalidCredentials):
            _login(service, user.email, "wrong-password")

    def test_active_but_email_unverified(self, service, session, audit):
        user = UserFactory(email_verified=False)
        session.commit()

        with pytest.raises(AccountNotVerified):
            _login(service, user.email)
        assert "unverified_login_attempt" in audit.types()

    def test_deleted_user_cannot_log_in(self, service, session):
        user = UserFactory(is_deleted=True)
        session.commit()
        with pytest.raises(InvalidCredentials):
            _login(service, user.email)

    def test_sixth_login_evicts_oldest(self, service, session, store):
        user = UserFactory()
        session.commit()

        outs = [_login(service, user.email) for _ in range(6)]

        assert len(store.list_user(str(user.id))) == 5
        with pytest.raises(SessionExpired):
            service.refresh(RefreshIn(refresh_token=outs[0].refresh_token))
        assert service.refresh(RefreshIn(refresh_token=outs[-1].refresh_token))

    def test_store_failure_returns_no_tokens(self, session, notifier, audit, tokens):
        class _DownStore(InMemorySessionStore):
            def insert(self, record, ceiling):
                raise StoreUnavailable()

        svc = AuthService(
            token_issuer=tokens,
            sessions=SessionManager(_DownStore()),
            notifier=notifier,
            audit=audit,
            config=AuthConfig(access_secret=SECRET),
        )
        user = UserFactory()
        session.commit()

        with pytest.raises(StoreUnavailable):
            _login(svc, user.email)
        assert "user_login" not in audit.types()
        session.expire_all()
        assert session.get(User, user.id).last_login_at is None


# ------------------------------- Refresh ---------------------------------- #
class TestRefresh:
    def test_refresh_keeps_refresh_token(self, service, session, tokens):
        user = UserFactory()
        session.commit()
        out = _login(service, user.email)

        again = service.refresh(RefreshIn(refresh_token=out.refresh_token))

        assert again.refresh_token == out.refresh_token
        assert tokens.verify(again.access_token)["sub"] == str(user.id)

    def test_unknown_token(self, service):
        with pytest.raises(SessionNotFound):
            service.refresh(RefreshIn(refresh_token="nope"))

    def test_revoked_token(self, service, session):
        user = UserFactory()
        session.commit()
        out = _login(service, user.email)
        service.logout(LogoutIn(refresh_token=out.refresh_token))

        with pytest.raises(SessionExpired):
            service.refresh(RefreshIn(refresh_token=out.refresh_token))

    def test_suspended_after_login(self, service, session):
        user = UserFactory()
        session.commit()
        out = _login(service, user.email)
        session.get(User, user.id).is_suspended = True
        session.commit()

        with pytest.raises(AccountSuspended):
            service.refresh(RefreshIn(refresh_token=out.refresh_token))

    def test_deleted_after_login(self, service, session):
        user = UserFactory()
        session.commit()
        out = _login(service, user.email)
        session.get(User, user.id).is_deleted = True
        session.commit()

        with pytest.raises(SessionNotFound):
            service.refresh(RefreshIn(refresh_token=out.refresh_token))


# ------------------------------- Profile ---------------------------------- #
class TestProfile:
    def test_returns_public_view(self, service, session):
        user = UserFactory(email="ivy@example.com", role=UserRole.ADMIN.value)
        session.commit()
        _login(service, user.email)

        profile = service.get_profile(user.id)

        assert profile.email == "ivy@example.com"
        assert profile.role == "admin"
        assert profile.verified is True
        assert profile.last_login_at is not None

    def test_deleted_user(self, service, session):
        user = UserFactory(is_deleted=True)
        session.commit()

        with pytest.raises(NotFoundError):
            service.get_profile(user.id)

    def test_unknown_user(self, service):
        with pytest.raises(NotFoundError):
            service.get_profile(424242)


# -------------------------------- Logout ---------------------------------- #
class TestLogout:
    def test_logout_is_idempotent(self, service, session):
        user = UserFactory()
        session.commit()
        out = _login(service, user.email)

        assert service.logout(LogoutIn(refresh_token=out.refresh_token)).revoked is True
        assert service.logout(LogoutIn(refresh_token=out.refresh_token)).revoked is False
        assert service.logout(LogoutIn(refresh_token="unknown")).revoked is False

    def test_logout_all(self, service, session, audit):
        user = UserFactory()
        other = UserFactory()
        session.commit()
        outs = [_login(service, user.email) for _ in range(3)]
        theirs = _login(service, other.email)

        assert service.logout_all(user.id).revoked_count == 3
        for out in outs:
            with pytest.raises(SessionExpired):
                service.refresh(RefreshIn(refresh_token=out.refresh_token))
        assert service.refresh(RefreshIn(refresh_token=theirs.refresh_token))
        assert audit.events[-1].event_type == "logout_all_devices"
        assert audit.events[-1].details == {"revoked_count": 3}

    def test_logout_others_keeps_current(self, service, session):
        user = UserFactory()
        session.commit()
        keep, *others = [_login(service, user.email) for _ in range(3)]

        assert service.logout_others(user.id, keep.refresh_token).revoked_count == 2
        assert service.refresh(RefreshIn(refresh_token=keep.refresh_token))
        with pytest.raises(SessionExpired):
            service.refresh(RefreshIn(refresh_token=others[0].refresh_token))

    def test_logout_others_rejects_foreign_token(self, service, session):
        user = UserFactory()
        other = UserFactory()
        session.commit()
        _login(service, user.email)
        theirs = _login(service, other.email)

        with pytest.raises(SessionNotFound):
            service.logout_others(user.id, theirs.refresh_token)


# --------------------------- E-mail verification -------------------------- #
class TestVerifyEmail:
    def test_activates_and_consumes_code(self, service, session, audit):
        user = PendingUserFactory()
        session.commit()

        out = service.verify_email(VerifyEmailIn(email=user.email, code="123456"))

        assert out.status == UserStatus.ACTIVE.value
        assert out.verified is True
        assert "email_verified" in audit.types()
        with pytest.raises(InvalidOrExpiredToken):
            service.verify_email(VerifyEmailIn(email=user.email, code="123456"))
        assert _login(service, user.email).user.id == user.id

    def test_wrong_code(self, service, session):
        user = PendingUserFactory()
        session.commit()
        with pytest.raises(InvalidOrExpiredToken) as err:
            service.verify_email(VerifyEmailIn(email=user.email, code="000000"))
        assert err.value.message == "Invalid or expired verification code"

    def test_expired_code(self, service, session, freeze_time):
        with freeze_time("2024-01-02 00:00:00"):
            user = PendingUserFactory(
                verification_code_expires=datetime(2024, 1, 1, 23, 59, tzinfo=UTC)
            )
            session.commit()
            with pytest.raises(InvalidOrExpiredToken):
                service.verify_email(VerifyEmailIn(email=user.email, code="123456"))

    def test_admin_verification_verifies_shop(self, service, session):
        shop = ShopFactory()
        admin = PendingUserFactory(role=UserRole.ADMIN.value, shop_id=shop.id)
        session.commit()

        service.verify_email(VerifyEmailIn(email=admin.email, code="123456"))

        refreshed = session.get(Shop, shop.id)
        assert refreshed.verified is True
        assert refreshed.verified_by == admin.id
        assert refreshed.verified_at is not None

    def test_employee_verification_leaves_shop(self, service, session):
        shop = ShopFactory()
        employee = PendingUserFactory(shop_id=shop.id)
        session.commit()

        service.verify_email(VerifyEmailIn(email=employee.email, code="123456"))

        assert session.get(Shop, shop.id).verified is False

    def test_hook_failure_does_not_undo_verification(self, service, session):
        def _boom(user):
            raise RuntimeError("downstream unavailable")

        service.on_user_verified = _boom
        shop = ShopFactory()
        admin = PendingUserFactory(role=UserRole.ADMIN.value, shop_id=shop.id)
        session.commit()

        out = service.verify_email(VerifyEmailIn(email=admin.email, code="123456"))

        assert out.verified is True
        assert session.get(User, admin.id).is_fully_verified is True


class TestResendVerification:
    def test_uniform_for_unknown_and_verified(self, service, session, notifier):
        verified = UserFactory()
        session.commit()

        assert service.resend_verification("ghost@example.com").message == (
            RESEND_VERIFICATION_MESSAGE
        )
        assert service.resend_verification(verified.email).message == (
            RESEND_VERIFICATION_MESSAGE
        )
        assert notifier.sent == []

    def test_issues_fresh_code(self, service, session, notifier):
        user = PendingUserFactory()
        session.commit()

        assert service.resend_verification(user.email).message == RESEND_VERIFICATION_MESSAGE

        recipient, code = notifier.last("verification_code")
        assert recipient.email == user.email
        stored = session.get(User, user.id)
        assert stored.verification_code == code
        assert stored.verification_code_expires is not None
        service.verify_email(VerifyEmailIn(email=user.email, code=code))

    def test_gateway_failure_is_hidden(self, service, session):
        class _Down(InMemoryNotificationGateway):
            def send_verification_code(self, recipient, code):
                raise ConnectionError("smtp down")

        service.notifier = _Down()
        user = PendingUserFactory()
        session.commit()

        assert service.resend_verification(user.email).message == RESEND_VERIFICATION_MESSAGE


def test_verification_codes_are_six_digits():
    codes = {generate_verification_code() for _ in range(50)}
    assert all(len(c) == 6 and c.isdigit() for c in codes)
    assert len(codes) > 1


# ------------------------------- Passwords -------------------------------- #
class TestForgotPassword:
    def test_uniform_for_unknown(self, service, notifier):
        assert service.forgot_password("ghost@example.com").message == FORGOT_PASSWORD_MESSAGE
        assert notifier.sent == []

    def test_stores_digest_and_sends_token(self, service, session, notifier, audit):
        user = UserFactory()
        session.commit()

        assert service.forgot_password(user.email).message == FORGOT_PASSWORD_MESSAGE

        recipient, token = notifier.last("password_reset")
        assert recipient.user_id == user.id
        stored = session.get(User, user.id)
        assert stored.reset_password_token == hash_reset_token(token)
        assert stored.reset_password_token != token
        assert "password_reset_requested" in audit.types()

    def test_suspended_gets_nothing(self, service, session, notifier):
        user = UserFactory(is_suspended=True)
        session.commit()

        assert service.forgot_password(user.email).message == FORGOT_PASSWORD_MESSAGE
        assert notifier.sent == []

    def test_second_request_supersedes_first(self, service, session, notifier):
        user = UserFactory()
        session.commit()
        service.forgot_password(user.email)
        _, first = notifier.last("password_reset")
        service.forgot_password(user.email)

        with pytest.raises(InvalidOrExpiredToken):
            service.reset_password(ResetPasswordIn(token=first, new_password="BrandNew123"))


class TestResetPassword:
    @pytest.fixture()
    def reset_token(self, service, session, notifier):
        user = UserFactory(email="reset@example.com")
        session.commit()
        service.forgot_password(user.email)
        _, token = notifier.last("password_reset")
        return token

    def test_success_revokes_every_session(self, service, session, notifier, audit, reset_token):
        outs = [_login(service, "reset@example.com") for _ in range(2)]

        result = service.reset_password(
            ResetPasswordIn(token=reset_token, new_password="BrandNew123")
        )

        for out in outs:
            with pytest.raises(SessionExpired):
                service.refresh(RefreshIn(refresh_token=out.refresh_token))
        with pytest.raises(InvalidCredentials):
            _login(service, "reset@example.com")
        assert _login(service, "reset@example.com", "BrandNew123").user.id == result.user_id
        assert notifier.last("password_changed") is not None
        assert "password_reset" in audit.types()

    def test_token_is_single_use(self, service, reset_token):
        service.reset_password(ResetPasswordIn(token=reset_token, new_password="BrandNew123"))
        with pytest.raises(InvalidOrExpiredToken):
            service.reset_password(ResetPasswordIn(token=reset_token, new_password="Other12345"))

    def test_same_password_keeps_token(self, service, reset_token):
        with pytest.raises(SamePassword):
            service.reset_password(
                ResetPasswordIn(token=reset_token, new_password=DEFAULT_PASSWORD)
            )
        service.reset_password(ResetPasswordIn(token=reset_token, new_password="BrandNew123"))

    def test_expired_token(self, service, reset_token, freeze_time):
        with freeze_time(datetime.now(UTC) + timedelta(hours=2)):
            with pytest.raises(InvalidOrExpiredToken) as err:
                service.reset_password(
                    ResetPasswordIn(token=reset_token, new_password="BrandNew123")
                )
        assert err.value.message == "Invalid or expired reset token"

    def test_unknown_or_empty_token(self, service):
        with pytest.raises(InvalidOrExpiredToken):
            service.reset_password(ResetPasswordIn(token="", new_password="BrandNew123"))
        with pytest.raises(InvalidOrExpiredToken):
            service.reset_password(ResetPasswordIn(token="f" * 64, new_password="BrandNew123"))


class TestChangePassword:
    def test_success_revokes_every_session(self, service, session, audit, notifier):
        user = UserFactory()
        session.commit()
        out = _login(service, user.email)

        service.change_password(
            ChangePasswordIn(
                user_id=user.id, current_password=DEFAULT_PASSWORD, new_password="BrandNew123"
            )
        )

        with pytest.raises(SessionExpired):
            service.refresh(RefreshIn(refresh_token=out.refresh_token))
        assert _login(service, user.email, "BrandNew123")
        assert "password_changed" in audit.types()
        assert notifier.last("password_changed") is not None

    def test_wrong_current_password_keeps_hash(self, service, session, audit):
        user = UserFactory()
        session.commit()
        before = user.password_hash

        with pytest.raises(InvalidCredentials) as err:
            service.change_password(
                ChangePasswordIn(
                    user_id=user.id, current_password="nope", new_password="BrandNew123"
                )
            )

        assert err.value.message == "Current password is incorrect"
        assert session.get(User, user.id).password_hash == before
        assert "failed_password_change" in audit.types()

    def test_same_password(self, service, session):
        user = UserFactory()
        session.commit()
        with pytest.raises(SamePassword):
            service.change_password(
                ChangePasswordIn(
                    user_id=user.id,
                    current_password=DEFAULT_PASSWORD,
                    new_password=DEFAULT_PASSWORD,
                )
            )

    def test_missing_user(self, service):
        with pytest.raises(NotFoundError):
            service.change_password(
                ChangePasswordIn(user_id=99999, current_password="x", new_password="BrandNew123")
            )


# ---------------------------- Best-effort sinks --------------------------- #
def test_failing_audit_sink_never_breaks_login(service, session):
    class _Down(InMemoryAuditSink):
        def record(self, event):
            raise RuntimeError("sink down")

    service.audit = _Down()
    user = UserFactory()
    session.commit()
    assert _login(service, user.email).user.id == user.id
