import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app.core.errors import BackendError, IssuanceError, NotFound
from app.core.security import TOKEN_PLAINTEXT_LENGTH, generate_token_plaintext, hash_token
from app.core.validator import Validator
from app.models.token import Token
from app.models.user import User

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class IssuedToken:
    """Token as handed to the client. plaintext is not recoverable later."""

    plaintext: str
    hash: bytes
    user_id: int
    expiry: datetime
    scope: str


def validate_token_plaintext(v: Validator, token_plaintext: str) -> None:
    v.check(token_plaintext != "", "token", "must be provided")
    v.check(len(token_plaintext) == TOKEN_PLAINTEXT_LENGTH, "token",
            f"must be {TOKEN_PLAINTEXT_LENGTH} characters long")


class TokenService:
    """
    Issues opaque bearer tokens and resolves them back to users.

    The clock is injectable so expiry can be exercised without sleeping.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock

    def issue(self, db: Session, user_id: int, ttl: timedelta, scope: str) -> IssuedToken:
        """Generate, persist and return a token. Only its digest is stored."""
        try:
            plaintext = generate_token_plaintext()
        except (OSError, NotImplementedError) as exc:
            # No usable system randomness
            raise IssuanceError(f"random source failed: {exc}") from exc

        token = IssuedToken(
            plaintext=plaintext,
            hash=hash_token(plaintext),
            user_id=user_id,
            expiry=self._clock() + ttl,
            scope=scope,
        )

        try:
            db.add(Token(hash=token.hash, user_id=token.user_id,
                         expiry=token.expiry, scope=token.scope))
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise IssuanceError(f"storing token failed: {exc}") from exc

        logger.info(f"Issued {scope} token for user {user_id}, expires {token.expiry.isoformat()}")
        return token

    def verify(self, db: Session, token_plaintext: str) -> User:
        """
        Resolve a presented plaintext to its owner.

        Raises NotFound for unknown and expired tokens alike. Scope is not
        checked: any live token authenticates.
        """
        try:
            user = (
                db.query(User)
                .join(Token, Token.user_id == User.id)
                .filter(Token.hash == hash_token(token_plaintext), Token.expiry > self._clock())
                .first()
            )
        except SQLAlchemyError as exc:
            db.rollback()
            raise BackendError(f"token lookup failed: {exc}") from exc

        if user is None:
            raise NotFound("no live token matches")
        return user

    def purge_expired(self, db: Session) -> int:
        """Delete expired token rows. Returns the number removed."""
        try:
            deleted = (
                db.query(Token)
                .filter(Token.expiry <= self._clock())
                .delete(synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise BackendError(f"purging expired tokens failed: {exc}") from exc
        return deleted


token_service = TokenService()
