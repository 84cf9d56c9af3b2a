# shopauth/services/auth/service.py
from __future__ import annotations

import hashlib
import logging
import secrets
from collections.abc import Callable
from datetime import datetime
from typing import Any

from shopauth.models.base import utcnow
from shopauth.models.user import User, UserRole, UserStatus, check_dummy_password
from shopauth.repositories.user import normalize_email
from shopauth.services._shared.base import BaseService
from shopauth.services._shared.errors import (
    AccountNotVerified,
    AccountSuspended,
    InvalidCredentials,
    InvalidOrExpiredToken,
    NotFoundError,
    SamePassword,
    SessionNotFound,
)
from shopauth.services._shared.ports import (
    AuditEvent,
    AuditSink,
    NotificationGateway,
    Recipient,
    TokenIssuer,
)
from shopauth.services.auth.dto import (
    AuthConfig,
    ChangePasswordIn,
    LoginIn,
    LoginOut,
    LogoutAllOut,
    LogoutIn,
    LogoutOut,
    RefreshIn,
    RefreshOut,
    ResetPasswordIn,
    ResetPasswordOut,
    UniformOut,
    UserPublicOut,
    VerifyEmailIn,
)
from shopauth.services.sessions import SessionManager

log = logging.getLogger(__name__)

RESEND_VERIFICATION_MESSAGE = (
    "If an unverified account exists for this email, a new verification code has been sent."
)
FORGOT_PASSWORD_MESSAGE = "If your email is registered, you will receive a password reset link."
PASSWORD_CHANGED_MESSAGE = "Password changed successfully."

VERIFICATION_CODE_LENGTH = 6


def generate_verification_code(length: int = VERIFICATION_CODE_LENGTH) -> str:
    """Return a uniformly random numeric code, zero-padded to ``length`` digits."""
    return f"{secrets.randbelow(10**length):0{length}d}"


def generate_reset_token() -> str:
    """Return an opaque 256-bit reset token (hex)."""
    return secrets.token_hex(32)


def hash_reset_token(token: str) -> str:
    """SHA-256 hex digest under which a reset token is stored and looked up."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class AuthService(BaseService):
    """
    Authentication lifecycle service.

    Login, refresh, logout, e-mail verification and password reset / change.
    Access tokens are minted by a :class:`TokenIssuer`; every refresh token is
    a server-side session owned by the :class:`SessionManager`.

    Security
    --------
    - Unknown e-mails and wrong passwords fail identically.
    - ``resend_verification`` and ``forgot_password`` always return the same
      payload and never surface internal failures.
    - Credential changes revoke every session of the user, after the new
      password is committed.
    """

    def __init__(
        self,
        *,
        token_issuer: TokenIssuer,
        sessions: SessionManager,
        notifier: NotificationGateway,
        audit: AuditSink,
        config: AuthConfig | None = None,
        on_user_verified: Callable[[UserPublicOut], Any] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """
        Initialize the service with its collaborators.

        :param token_issuer: Access-token signer.
        :param sessions: Session lifecycle owner.
        :param notifier: Outbound e-mail gateway (best-effort).
        :param audit: Security event sink (best-effort).
        :param config: Lifetimes and ceiling.
        :param on_user_verified: Called once an admin with a shop verifies.
        :param clock: Source of "now" (UTC).
        """
        super().__init__()
        self.tokens = token_issuer
        self.sessions = sessions
        self.notifier = notifier
        self.audit = audit
        self.cfg = config or AuthConfig()
        self.on_user_verified = on_user_verified
        self._clock = clock

    # ------------------------------------------------------------------ #
    # Login / refresh / logout
    # ------------------------------------------------------------------ #

    def login(self, dto: LoginIn) -> LoginOut:
        """
        Authenticate credentials and open a new session.

        :param dto: Login input.
        :returns: Public user, access token and refresh token.
        :raises InvalidCredentials: Unknown e-mail or wrong password.
        :raises AccountSuspended: Suspended account (password not checked).
        :raises AccountNotVerified: Correct password on a non-active or
            unverified account.
        """
        email = normalize_email(dto.email)

        with self.ro_uow() as uow:
            user = uow.users.find_by_email(email)
            if user is None:
                # Spend a hash comparison so unknown e-mails are not faster.
                check_dummy_password(dto.password)
                log.info("Login failed: unknown email", extra={"event": "login_failed"})
                raise InvalidCredentials()

            if user.is_suspended:
                self._audit(
                    "suspended_login_attempt",
                    user,
                    details={"reason": user.suspension_reason},
                )
                raise AccountSuspended()

            active = uow.users.find_by_email(email, status=UserStatus.ACTIVE)
            if active is None:
                if user.verify_password(dto.password):
                    raise AccountNotVerified()
                raise InvalidCredentials()

            if not active.verify_password(dto.password):
                self._audit("failed_login_attempt", active, details={"ip": dto.ip})
                raise InvalidCredentials()

            if not active.is_fully_verified:
                self._audit("unverified_login_attempt", active)
                raise AccountNotVerified()

            public = self._public(active)
            access = self.tokens.mint(self._claims(public), ttl=self.cfg.access_ttl)

        # No session, no tokens: a store failure propagates before anything is returned.
        session = self.sessions.create_session(
            user_id=public.id,
            role=public.role,
            shop_id=public.shop_id,
            device=dto.device,
            ip=dto.ip,
        )
        with self.rw_uow() as uow:
            user = uow.users.find_by_id(public.id)
            if user is not None:
                user.last_login_at = self._clock()
                public = self._public(user)

        self._record(
            AuditEvent(
                "user_login",
                actor_id=public.id,
                target_id=public.id,
                role=public.role,
                shop_id=public.shop_id,
                details={"session_id": session.session_id, "device": session.device},
            )
        )
        return LoginOut(user=public, access_token=access, refresh_token=session.token)

    def refresh(self, dto: RefreshIn) -> RefreshOut:
        """
        Mint a new access token from an active session.

        The refresh token is returned unchanged: no rotation and no extension
        of the session's expiry.

        :raises SessionNotFound: Unknown token, or its user no longer exists.
        :raises SessionExpired: Revoked or expired session.
        :raises AccountSuspended: The user was suspended after login.
        """
        record = self.sessions.lookup_active(dto.refresh_token)

        with self.ro_uow() as uow:
            user = uow.users.find_by_id(record.user_id)
            if user is None:
                raise SessionNotFound()
            if user.is_suspended:
                raise AccountSuspended()
            uid, email = user.id, user.email

        claims = {"uid": uid, "role": record.user_role, "shop_id": record.shop_id, "email": email}
        access = self.tokens.mint(claims, ttl=self.cfg.access_ttl)
        return RefreshOut(access_token=access, refresh_token=record.token)

    def logout(self, dto: LogoutIn) -> LogoutOut:
        """Revoke the session owning the refresh token. Never fails on "nothing to revoke"."""
        return LogoutOut(revoked=self.sessions.revoke(dto.refresh_token))

    def logout_all(self, user_id: int) -> LogoutAllOut:
        """Revoke every active session of ``user_id``."""
        count = self.sessions.revoke_all(user_id)
        self._record(
            AuditEvent(
                "logout_all_devices",
                actor_id=user_id,
                target_id=user_id,
                details={"revoked_count": count},
            )
        )
        return LogoutAllOut(revoked_count=count)

    def logout_others(self, user_id: int, keep_token: str) -> LogoutAllOut:
        """
        Revoke every session of ``user_id`` except the caller's own.

        :raises InvalidSession: ``keep_token`` is not an active session of ``user_id``.
        """
        record = self.sessions.lookup_active(keep_token)
        if record.user_id != str(user_id):
            raise SessionNotFound()
        return LogoutAllOut(revoked_count=self.sessions.revoke_all_except(user_id, keep_token))

    def get_profile(self, user_id: int) -> UserPublicOut:
        """
        Return the public view of the authenticated user.

        :raises NotFoundError: The user no longer exists (or was deleted).
        """
        with self.ro_uow() as uow:
            user = uow.users.find_by_id(user_id)
            if user is None:
                raise NotFoundError("User", user_id)
            return self._public(user)

    # ------------------------------------------------------------------ #
    # E-mail verification
    # ------------------------------------------------------------------ #

    def verify_email(self, dto: VerifyEmailIn) -> UserPublicOut:
        """
        Consume a verification code and activate the account.

        :raises InvalidOrExpiredToken: No unverified account holds this
            unexpired code (including a replayed code).
        """
        now = self._clock()
        with self.rw_uow() as uow:
            user = uow.users.find_pending_verification(dto.email, (dto.code or "").strip(), now)
            if user is None:
                raise InvalidOrExpiredToken("Invalid or expired verification code")
            user.mark_verified(now)
            public = self._public(user)

        self._record(
            AuditEvent(
                "email_verified",
                actor_id=public.id,
                target_id=public.id,
                role=public.role,
                shop_id=public.shop_id,
            )
        )
        if (
            self.on_user_verified is not None
            and public.role == UserRole.ADMIN.value
            and public.shop_id is not None
        ):
            try:
                self.on_user_verified(public)
            except Exception:
                log.exception(
                    "Post-verification hook failed for user %s",
                    public.id,
                    extra={"event": "on_user_verified_failed", "user_id": public.id},
                )
        return public

    def resend_verification(self, email: str) -> UniformOut:
        """Issue a fresh code to an eligible account. Always returns the same payload."""
        try:
            with self.rw_uow() as uow:
                user = uow.users.find_for_resend(email)
                if user is None:
                    log.info(
                        "Resend verification: no eligible account",
                        extra={"event": "resend_skipped"},
                    )
                    return UniformOut(RESEND_VERIFICATION_MESSAGE)
                code = generate_verification_code()
                user.issue_verification_code(code, self._clock() + self.cfg.verification_code_ttl)
                recipient = self._recipient(user)
            self._notify(self.notifier.send_verification_code, recipient, code)
        except Exception:
            log.exception("Resend verification failed", extra={"event": "resend_failed"})
        return UniformOut(RESEND_VERIFICATION_MESSAGE)

    # ------------------------------------------------------------------ #
    # Passwords
    # ------------------------------------------------------------------ #

    def forgot_password(self, email: str) -> UniformOut:
        """Issue a reset token to an eligible account. Always returns the same payload."""
        try:
            with self.rw_uow() as uow:
                user = uow.users.find_by_email(email)
                if user is None or user.is_suspended:
                    log.info(
                        "Password reset: no eligible account", extra={"event": "reset_skipped"}
                    )
                    return UniformOut(FORGOT_PASSWORD_MESSAGE)
                token = generate_reset_token()
                expires_at = self._clock() + self.cfg.reset_token_ttl
                user.set_reset_token(hash_reset_token(token), expires_at)
                recipient = self._recipient(user)
                self._audit("password_reset_requested", user)
            self._notify(self.notifier.send_password_reset, recipient, token)
        except Exception:
            log.exception("Password reset request failed", extra={"event": "reset_request_failed"})
        return UniformOut(FORGOT_PASSWORD_MESSAGE)

    def reset_password(self, dto: ResetPasswordIn) -> ResetPasswordOut:
        """
        Consume a reset token, set the new password and revoke every session.

        :raises InvalidOrExpiredToken: Unknown, consumed or expired token, or
            the holder is suspended.
        :raises SamePassword: The new password equals the current one (the
            token stays valid).
        """
        if not dto.token:
            raise InvalidOrExpiredToken("Invalid or expired reset token")

        with self.rw_uow() as uow:
            user = uow.users.find_by_reset_digest(hash_reset_token(dto.token), self._clock())
            if user is None:
                raise InvalidOrExpiredToken("Invalid or expired reset token")
            if user.verify_password(dto.new_password):
                raise SamePassword()
            user.password = dto.new_password
            user.clear_reset_token()
            public = self._public(user)
            recipient = self._recipient(user)

        revoked = self.sessions.revoke_all(public.id)
        self._record(
            AuditEvent(
                "password_reset",
                actor_id=public.id,
                target_id=public.id,
                role=public.role,
                shop_id=public.shop_id,
                details={"revoked_sessions": revoked},
            )
        )
        self._notify(self.notifier.send_password_changed, recipient)
        return ResetPasswordOut(user_id=public.id)

    def change_password(self, dto: ChangePasswordIn) -> UniformOut:
        """
        Change the password of an authenticated user and revoke every session.

        :raises NotFoundError: The user no longer exists.
        :raises InvalidCredentials: Wrong current password (hash unchanged).
        :raises SamePassword: New password equals the current one.
        """
        with self.rw_uow() as uow:
            user = uow.users.find_by_id(dto.user_id)
            if user is None:
                raise NotFoundError("User", dto.user_id)
            if not user.verify_password(dto.current_password):
                self._audit("failed_password_change", user)
                raise InvalidCredentials("Current password is incorrect")
            if user.verify_password(dto.new_password):
                raise SamePassword()
            user.password = dto.new_password
            public = self._public(user)
            recipient = self._recipient(user)

        revoked = self.sessions.revoke_all(public.id)
        self._record(
            AuditEvent(
                "password_changed",
                actor_id=public.id,
                target_id=public.id,
                role=public.role,
                shop_id=public.shop_id,
                details={"revoked_sessions": revoked},
            )
        )
        self._notify(self.notifier.send_password_changed, recipient)
        return UniformOut(PASSWORD_CHANGED_MESSAGE)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _public(user: User) -> UserPublicOut:
        return UserPublicOut(
            id=user.id,
            email=user.email,
            full_name=user.full_name,
            role=user.role,
            shop_id=user.shop_id,
            status=user.status,
            verified=user.is_fully_verified,
            last_login_at=user.last_login_at,
        )

    @staticmethod
    def _recipient(user: User) -> Recipient:
        return Recipient(user_id=user.id, email=user.email, full_name=user.full_name)

    @staticmethod
    def _claims(user: UserPublicOut) -> dict[str, Any]:
        return {"uid": user.id, "role": user.role, "shop_id": user.shop_id, "email": user.email}

    def _audit(self, event_type: str, user: User, details: dict[str, Any] | None = None) -> None:
        self._record(
            AuditEvent(
                event_type,
                actor_id=user.id,
                target_id=user.id,
                role=user.role,
                shop_id=user.shop_id,
                details=details or {},
            )
        )

    def _record(self, event: AuditEvent) -> None:
        """Forward to the audit sink; a failing sink never breaks the flow."""
        try:
            self.audit.record(event)
        except Exception:
            log.exception(
                "Audit sink failed for %s", event.event_type, extra={"event": "audit_failed"}
            )

    def _notify(self, send: Callable[..., Any], *args: Any) -> None:
        """Fire-and-forget notification; failures are logged only."""
        try:
            send(*args)
        except Exception:
            log.exception(
                "Notification %s failed",
                getattr(send, "__name__", send),
                extra={"event": "notify_failed"},
            )
