from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from uuid import UUID

import structlog
from pydantic import BaseModel

from authflow.config import Config
from authflow.core.core import Core
from authflow.core.modules.account.models import Account, AccountView
from authflow.core.modules.account.validators import normalize_email, validate_password
from authflow.core.modules.mail.models import MailMessage
from authflow.core.modules.session.models import DeviceInfo, Session, SessionView
from authflow.core.modules.token.models import AccessToken, AuthContext
from authflow.core.modules.verification.models import VerificationKind
from authflow.core.transaction import Transaction
from authflow.errors import (
    AuthenticationError,
    ConflictError,
    InvalidTokenError,
    MissingRefreshTokenError,
    NotFoundError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"


class SignIn(BaseModel):
    """Credentials handed to the client after a sign-in producing operation commits."""

    access_token: AccessToken
    refresh_token: str
    refresh_max_age: int
    verification_code: str | None = None


class EmailUpdateTokens(BaseModel):
    token: str
    revoke_token: str


class PasswordResetTicket(BaseModel):
    account_id: UUID
    token: str


class App:
    """Facade for all identity operations.

    Each operation opens one transaction, performs its domain calls, commits, and only
    then runs side effects (ping cache, session invalidation, mail). Any error before
    the commit leaves the transaction rolled back.
    """

    def __init__(self, config: Config, core: Core | None = None) -> None:
        self._core = core or Core(config)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Application lifespan management - delegates to Core."""
        async with self._core.lifespan():
            yield

    def authenticate(self, access_token: str, allow_expired: bool = False) -> AuthContext:
        """Resolve the caller from a bearer token (signature, issuer, and by default expiry)."""
        return self._core.services.token.decode_access_token(access_token, verify_exp=not allow_expired)

    # === Registration ===
    async def register(
        self, name: str, username: str, email: str, password: str, avatar: str, device: DeviceInfo
    ) -> SignIn:
        """Create account, pending verification, and first session in one transaction."""
        validate_password(password)
        services = self._core.services
        verification_code: str | None = None

        async with self._core.transaction() as tx:
            account = await services.account.create_account(
                tx,
                name=name,
                username=username,
                email=email,
                password=password,
                avatar=avatar,
                verified=not self._core.config.require_verification,
            )
            if self._core.config.require_verification:
                artifact = await services.verification.request(tx, account.id, VerificationKind.REGISTRATION)
                verification_code = artifact.token
            session = await services.session.create(tx, account.id, device)
            access_token = services.token.mint_access_token(account, session.id)
            await tx.commit()

        logger.info("account_registered", account_id=str(account.id), session_id=str(session.id))
        await self._publish_session(session)
        if verification_code is not None:
            await self._send_mail(services.mail.registration_code(account.email, verification_code))
        return self._sign_in(session, access_token, verification_code)

    async def verify_registration(self, ctx: AuthContext, code: str) -> AccessToken:
        """Redeem the registration code and return a token carrying verified=true."""
        services = self._core.services
        async with self._core.transaction() as tx:
            await services.verification.redeem(tx, ctx.account_id, VerificationKind.REGISTRATION, code)
            account = await services.account.mark_verified(tx, ctx.account_id)
            access_token = services.token.mint_access_token(account, ctx.session_id)
            await tx.commit()

        logger.info("registration_verified", account_id=str(ctx.account_id))
        return access_token

    # === Authentication ===
    async def login_with_email(self, email: str, password: str, device: DeviceInfo) -> SignIn:
        return await self._login(lambda tx: self._core.services.account.find_by_email(email, tx), password, device)

    async def login_with_username(self, username: str, password: str, device: DeviceInfo) -> SignIn:
        return await self._login(lambda tx: self._core.services.account.find_by_username(username, tx), password, device)

    async def _login(
        self, lookup: Callable[[Transaction], Awaitable[Account | None]], password: str, device: DeviceInfo
    ) -> SignIn:
        """Unknown identifier and wrong password fail with the same error."""
        services = self._core.services
        async with self._core.transaction() as tx:
            account = await lookup(tx)
            password_ok = services.token.verify_password(password, account.password_hash if account else None)
            if account is None or not password_ok:
                logger.info("login_failed")
                raise AuthenticationError(INVALID_CREDENTIALS)
            session = await services.session.touch(tx, account.id, device)
            access_token = services.token.mint_access_token(account, session.id)
            await tx.commit()

        logger.info("login_succeeded", account_id=str(account.id), session_id=str(session.id))
        await self._publish_session(session)
        return self._sign_in(session, access_token)

    async def refresh(self, ctx: AuthContext, refresh_token: str | None) -> SignIn:
        """Rotate the refresh token of a live session and mint a new access token."""
        if not refresh_token:
            raise MissingRefreshTokenError

        services = self._core.services
        async with self._core.transaction() as tx:
            session = await services.session.refresh(tx, ctx.account_id, refresh_token)
            account = await services.account.get_account(ctx.account_id, tx)
            access_token = services.token.mint_access_token(account, session.id)
            await tx.commit()

        logger.info("session_refreshed", account_id=str(ctx.account_id), session_id=str(session.id))
        await self._publish_session(session)
        return self._sign_in(session, access_token)

    # === Account ===
    async def get_account(self, ctx: AuthContext) -> AccountView:
        return AccountView.from_domain(await self._core.services.account.get_account(ctx.account_id))

    async def update_account(
        self, ctx: AuthContext, name: str | None = None, username: str | None = None, avatar: str | None = None
    ) -> AccessToken:
        """Partial profile update; returns an access token with the new claims."""
        services = self._core.services
        async with self._core.transaction() as tx:
            account = await services.account.update_profile(tx, ctx.account_id, name, username, avatar)
            await tx.commit()
        return services.token.mint_access_token(account, ctx.session_id)

    # === Email update ===
    async def request_email_update(self, ctx: AuthContext, new_email: str) -> EmailUpdateTokens:
        """Start an email change, superseding any pending one."""
        new_email = normalize_email(new_email)
        services = self._core.services
        async with self._core.transaction() as tx:
            account = await services.account.get_account(ctx.account_id, tx)
            if new_email == account.email:
                raise ValidationError("New email is the same as the current one")
            if await services.account.is_email_taken(new_email, tx):
                raise ConflictError("Email is already in use")
            artifact = await services.verification.request(
                tx, account.id, VerificationKind.EMAIL_UPDATE, new_email=new_email
            )
            if artifact.revoke_token is None:
                raise RuntimeError("Email update artifact without revoke token")
            await tx.commit()

        logger.info("email_update_requested", account_id=str(account.id))
        await self._send_mail(services.mail.email_update_token(new_email, artifact.token))
        await self._send_mail(services.mail.email_update_notice(account.email, new_email, artifact.revoke_token))
        return EmailUpdateTokens(token=artifact.token, revoke_token=artifact.revoke_token)

    async def resend_email_update(self, ctx: AuthContext) -> EmailUpdateTokens:
        """Reissue tokens for the pending email change; the previous ones stop working."""
        async with self._core.transaction() as tx:
            pending = await self._core.services.verification.get_pending(tx, ctx.account_id, VerificationKind.EMAIL_UPDATE)
        if pending is None or pending.new_email is None:
            raise NotFoundError("No pending email update")
        return await self.request_email_update(ctx, pending.new_email)

    async def validate_email_update(self, account_id: UUID, token: str) -> None:
        """Apply the pending email change, then sign the account out everywhere."""
        services = self._core.services
        async with self._core.transaction() as tx:
            artifact = await services.verification.redeem(tx, account_id, VerificationKind.EMAIL_UPDATE, token)
            if artifact.new_email is None:
                raise InvalidTokenError
            await services.account.set_email(tx, account_id, artifact.new_email)
            await tx.commit()

        logger.info("email_updated", account_id=str(account_id))
        await self._invalidate_sessions(account_id)

    async def revoke_email_update(self, account_id: UUID, revoke_token: str) -> None:
        """Cancel the pending email change without touching the account."""
        async with self._core.transaction() as tx:
            await self._core.services.verification.revoke(tx, account_id, VerificationKind.EMAIL_UPDATE, revoke_token)
            await tx.commit()
        logger.info("email_update_revoked", account_id=str(account_id))

    # === Password ===
    async def update_password(self, ctx: AuthContext, old_password: str, new_password: str) -> None:
        """Change password after checking the current one, then sign the account out everywhere."""
        validate_password(new_password)
        services = self._core.services
        async with self._core.transaction() as tx:
            account = await services.account.get_account(ctx.account_id, tx)
            if not services.token.verify_password(old_password, account.password_hash):
                raise AuthenticationError("Invalid current password")
            await services.account.set_password(tx, account.id, new_password)
            await tx.commit()

        logger.info("password_updated", account_id=str(ctx.account_id))
        await self._invalidate_sessions(ctx.account_id)

    async def forgot_password(self, email: str) -> PasswordResetTicket:
        """Open a password reset; unknown emails fail exactly like a bad login."""
        services = self._core.services
        async with self._core.transaction() as tx:
            account = await services.account.find_by_email(email, tx)
            if account is None:
                raise AuthenticationError(INVALID_CREDENTIALS)
            artifact = await services.verification.request(tx, account.id, VerificationKind.PASSWORD_RESET)
            await tx.commit()

        logger.info("password_reset_requested", account_id=str(account.id))
        await self._send_mail(services.mail.password_reset_token(account.email, artifact.token))
        return PasswordResetTicket(account_id=account.id, token=artifact.token)

    async def reset_password(self, account_id: UUID, token: str, new_password: str) -> None:
        validate_password(new_password)
        services = self._core.services
        async with self._core.transaction() as tx:
            await services.verification.redeem(tx, account_id, VerificationKind.PASSWORD_RESET, token)
            await services.account.set_password(tx, account_id, new_password)
            await tx.commit()

        logger.info("password_reset", account_id=str(account_id))
        await self._invalidate_sessions(account_id)

    # === Sessions ===
    async def get_sessions(self, ctx: AuthContext) -> list[SessionView]:
        sessions = await self._core.services.session.list_sessions(ctx.account_id)
        return [SessionView.from_domain(session, ctx.session_id) for session in sessions]

    async def revoke_session(self, ctx: AuthContext, session_id: UUID) -> None:
        """End one session of the caller's account."""
        services = self._core.services
        async with self._core.transaction() as tx:
            await services.session.revoke(tx, ctx.account_id, session_id)
            await tx.commit()

        logger.info("session_revoked", account_id=str(ctx.account_id), session_id=str(session_id))
        await self._after_commit("session_forget_failed", services.session.forget(session_id), session_id=str(session_id))

    async def ensure_live_session(self, ctx: AuthContext) -> None:
        if not await self._core.services.session.ping(ctx.session_id, ctx.account_id):
            raise AuthenticationError("Session is no longer active")

    async def get_content(self, ctx: AuthContext) -> str:
        """Example protected resource; callers must have passed ensure_live_session."""
        account = await self._core.services.account.get_account(ctx.account_id)
        return f"Hi {account.name}. If you can see this, you are authenticated."

    # === Post-commit side effects ===
    async def _after_commit(self, event: str, action: Awaitable[object], **context: str) -> None:
        """Run a side effect of an already committed change; failures are logged, never raised."""
        try:
            await action
        except Exception:
            logger.exception(event, **context)

    async def _publish_session(self, session: Session) -> None:
        await self._after_commit(
            "session_publish_failed", self._core.services.session.publish(session), session_id=str(session.id)
        )

    async def _invalidate_sessions(self, account_id: UUID) -> None:
        await self._after_commit(
            "session_invalidation_failed",
            self._core.services.session.invalidate_all(account_id),
            account_id=str(account_id),
        )

    async def _send_mail(self, message: MailMessage) -> None:
        await self._after_commit("mail_delivery_failed", self._core.services.mail.send(message), subject=message.subject)

    def _sign_in(self, session: Session, access_token: AccessToken, verification_code: str | None = None) -> SignIn:
        return SignIn(
            access_token=access_token,
            refresh_token=session.refresh_token,
            refresh_max_age=session.remaining_seconds(),
            verification_code=verification_code,
        )
