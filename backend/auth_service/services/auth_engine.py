"""Authentication engine: signup, one-time-code verification, login.

Account state machine:

    PENDING_VERIFICATION --verify_code--> VERIFIED   (one-way, terminal)

The engine keeps no state between calls. Every operation reads the
current account and challenge from the injected stores, decides, and
writes back, so correctness under concurrency comes from the stores'
per-identifier atomicity (see services/stores.py).

verify_code check order is fixed and clients depend on it:
1. account exists        -> ACCOUNT_NOT_FOUND
2. challenge exists      -> CHALLENGE_NOT_FOUND
3. not expired           -> CHALLENGE_EXPIRED   (challenge deleted)
4. attempts below limit  -> TOO_MANY_ATTEMPTS   (challenge deleted)
5. code matches          -> CODE_MISMATCH       (attempt already counted)

Steps 3 and 4 run again on the challenge returned by the attempt
increment, and step 5 compares against that challenge, so once a code is
replaced only the newest one verifies.

Enumeration resistance applies to login only. request_code and
verify_code report ACCOUNT_NOT_FOUND for unknown identifiers.
"""

import hmac
import logging
from collections.abc import Iterator
from datetime import datetime

from auth_service.core.auth import (
    MAX_CREDENTIAL_BYTES,
    Clock,
    CredentialCodec,
    SessionClaims,
    utc_now,
)
from auth_service.core.errors import AuthError, AuthErrorKind
from auth_service.core.otp import code_stream
from auth_service.services.auth_types import (
    AccountPatch,
    AccountRecord,
    AccountState,
    ChallengeRecord,
    CodeIssued,
    LoginResult,
    SignupResult,
    VerificationPolicy,
    VerificationResult,
    is_valid_identifier,
    normalize_identifier,
)
from auth_service.services.code_delivery import CodeSender
from auth_service.services.stores import (
    AccountStore,
    ChallengeStore,
    DuplicateIdentifierError,
)

logger = logging.getLogger(__name__)


class AuthenticationEngine:
    """Orchestrates the account verification state machine.

    Args:
        accounts: Account store.
        challenges: Verification challenge store.
        codec: Password hashing and session token signing.
        policy: Code TTL, attempt limit, credential rules, code exposure.
        code_sender: Delivery channel for issued codes.
        clock: Source of "now". Defaults to the UTC wall clock.
        codes: Source of one-time codes. Defaults to a fresh
            cryptographically random stream of policy.code_length digits.
    """

    def __init__(
        self,
        *,
        accounts: AccountStore,
        challenges: ChallengeStore,
        codec: CredentialCodec,
        policy: VerificationPolicy,
        code_sender: CodeSender,
        clock: Clock = utc_now,
        codes: Iterator[str] | None = None,
    ) -> None:
        self._accounts = accounts
        self._challenges = challenges
        self._codec = codec
        self._policy = policy
        self._code_sender = code_sender
        self._clock = clock
        self._codes = codes if codes is not None else code_stream(policy.code_length)

    # ===================================================================
    # Signup
    # ===================================================================

    async def signup(
        self,
        identifier: str,
        credential: str,
        display_name: str | None = None,
    ) -> SignupResult:
        """Register a new account in PENDING_VERIFICATION and issue a code.

        Args:
            identifier: Email address (any casing).
            credential: Plaintext password.
            display_name: Optional display name.

        Returns:
            SignupResult. ``code`` is set only when the policy exposes codes.

        Raises:
            AuthError: INVALID_IDENTIFIER, INVALID_CREDENTIAL_FORMAT or
                ACCOUNT_EXISTS. Other store errors propagate unchanged.
        """
        normalized = normalize_identifier(identifier)
        if not is_valid_identifier(normalized):
            raise AuthError(AuthErrorKind.INVALID_IDENTIFIER)
        if (
            len(credential) < self._policy.min_credential_length
            or len(credential.encode()) > MAX_CREDENTIAL_BYTES
        ):
            raise AuthError(AuthErrorKind.INVALID_CREDENTIAL_FORMAT)

        account = AccountRecord(
            identifier=normalized,
            display_name=display_name or None,
            credential_hash=self._codec.hash_credential(credential),
            state=AccountState.PENDING_VERIFICATION,
        )
        try:
            account = await self._accounts.create(account)
        except DuplicateIdentifierError as exc:
            raise AuthError(AuthErrorKind.ACCOUNT_EXISTS) from exc

        code = await self._issue_challenge(account.identifier)
        logger.info("Account registered: %s", account.identifier)

        return SignupResult(
            identifier=account.identifier,
            state=account.state,
            code=self._exposed(code),
        )

    # ===================================================================
    # One-time codes
    # ===================================================================

    async def request_code(self, identifier: str) -> CodeIssued:
        """Issue a fresh code, replacing any outstanding challenge.

        Works for pending and verified accounts alike (resend).

        Raises:
            AuthError: ACCOUNT_NOT_FOUND.
        """
        normalized = normalize_identifier(identifier)
        account = await self._accounts.get(normalized)
        if account is None:
            raise AuthError(AuthErrorKind.ACCOUNT_NOT_FOUND)

        code = await self._issue_challenge(account.identifier)
        return CodeIssued(identifier=account.identifier, code=self._exposed(code))

    async def verify_code(self, identifier: str, code: str) -> VerificationResult:
        """Check a submitted code and mark the account VERIFIED on success.

        Args:
            identifier: Email address (any casing).
            code: Code submitted by the user.

        Returns:
            VerificationResult with the verification timestamp.

        Raises:
            AuthError: ACCOUNT_NOT_FOUND, CHALLENGE_NOT_FOUND,
                CHALLENGE_EXPIRED, TOO_MANY_ATTEMPTS or CODE_MISMATCH.
        """
        normalized = normalize_identifier(identifier)
        account = await self._accounts.get(normalized)
        if account is None:
            raise AuthError(AuthErrorKind.ACCOUNT_NOT_FOUND)

        challenge = await self._challenges.get(normalized)
        if challenge is None:
            raise AuthError(AuthErrorKind.CHALLENGE_NOT_FOUND)

        now = self._clock()
        await self._reject_unusable(challenge, now, prior_attempts=challenge.attempts)

        # Everything past this point judges the challenge returned by the
        # increment. A resend may have replaced the one read above.
        current = await self._challenges.increment_attempts(normalized)
        if current is None:
            raise AuthError(AuthErrorKind.CHALLENGE_NOT_FOUND)
        await self._reject_unusable(current, now, prior_attempts=current.attempts - 1)

        if not hmac.compare_digest(code.encode(), current.code.encode()):
            raise AuthError(AuthErrorKind.CODE_MISMATCH)

        # Only the request that removes this exact challenge may complete
        # verification
        if not await self._challenges.delete(normalized, code=current.code):
            raise AuthError(AuthErrorKind.CHALLENGE_NOT_FOUND)

        verified_at = account.verified_at if account.is_verified else None
        verified_at = verified_at or now
        updated = await self._accounts.update(
            normalized,
            AccountPatch(state=AccountState.VERIFIED, verified_at=verified_at),
        )
        if updated is None:
            raise AuthError(AuthErrorKind.ACCOUNT_NOT_FOUND)

        logger.info("Account verified: %s", normalized)
        return VerificationResult(identifier=normalized, verified_at=verified_at)

    # ===================================================================
    # Sessions
    # ===================================================================

    async def login(self, identifier: str, credential: str) -> LoginResult:
        """Check credentials and issue a session token.

        Security: unknown identifier and wrong password raise the same
        INVALID_CREDENTIAL kind, and both pay one bcrypt comparison.
        ACCOUNT_NOT_VERIFIED is only reported after the password matched.

        Raises:
            AuthError: INVALID_CREDENTIAL or ACCOUNT_NOT_VERIFIED.
        """
        normalized = normalize_identifier(identifier)
        account = await self._accounts.get(normalized)

        if account is None:
            self._codec.burn_verification(credential)
            raise AuthError(AuthErrorKind.INVALID_CREDENTIAL)

        if not self._codec.verify_credential(credential, account.credential_hash):
            raise AuthError(AuthErrorKind.INVALID_CREDENTIAL)

        if not account.is_verified:
            raise AuthError(AuthErrorKind.ACCOUNT_NOT_VERIFIED)

        token = self._codec.sign(
            identifier=account.identifier, display_name=account.display_name
        )
        return LoginResult(
            token=token,
            identifier=account.identifier,
            display_name=account.display_name,
        )

    def authenticate(self, token: str | None) -> SessionClaims:
        """Verify a bearer session token.

        Raises:
            AuthError: MISSING_TOKEN if no token was presented,
                INVALID_TOKEN for any verification failure.
        """
        if not token:
            raise AuthError(AuthErrorKind.MISSING_TOKEN)
        return self._codec.verify_token(token)

    async def delete_account(self, identifier: str) -> str:
        """Delete an account and its outstanding challenge.

        Returns:
            The normalized identifier that was deleted.

        Raises:
            AuthError: ACCOUNT_NOT_FOUND if no account matched.
        """
        normalized = normalize_identifier(identifier)
        await self._challenges.delete(normalized)
        if not await self._accounts.delete(normalized):
            raise AuthError(AuthErrorKind.ACCOUNT_NOT_FOUND)
        logger.info("Account deleted: %s", normalized)
        return normalized

    # ===================================================================
    # Helpers
    # ===================================================================

    async def _reject_unusable(
        self, challenge: ChallengeRecord, now: datetime, *, prior_attempts: int
    ) -> None:
        """Discard an expired or exhausted challenge and raise.

        Args:
            challenge: Challenge being judged.
            now: Time of the verification request.
            prior_attempts: Attempts spent before this request.

        Raises:
            AuthError: CHALLENGE_EXPIRED or TOO_MANY_ATTEMPTS.
        """
        if now > challenge.expires_at:
            await self._challenges.delete(challenge.identifier, code=challenge.code)
            logger.info(
                "Expired verification code discarded for %s", challenge.identifier
            )
            raise AuthError(AuthErrorKind.CHALLENGE_EXPIRED)

        # Checked before comparing: an exhausted challenge stays locked even
        # when the final guess is correct.
        if prior_attempts >= self._policy.max_attempts:
            await self._challenges.delete(challenge.identifier, code=challenge.code)
            logger.warning(
                "Verification attempts exhausted for %s", challenge.identifier
            )
            raise AuthError(AuthErrorKind.TOO_MANY_ATTEMPTS)

    async def _issue_challenge(self, identifier: str) -> str:
        """Store a fresh challenge (attempts reset to 0) and deliver its code.

        The code goes out before the caller's transaction commits. If that
        commit fails, the user holds a code for a challenge (or an account)
        that was never stored, and has to sign up or request a code again.
        """
        code = next(self._codes)
        await self._challenges.upsert(
            ChallengeRecord(
                identifier=identifier,
                code=code,
                expires_at=self._clock() + self._policy.code_ttl,
                attempts=0,
            )
        )
        await self._code_sender.send(identifier=identifier, code=code)
        return code

    def _exposed(self, code: str) -> str | None:
        return code if self._policy.expose_codes else None
