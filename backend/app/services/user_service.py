import logging
from email_validator import EmailNotValidError
from email_validator import validate_email as check_email_address
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from app.core.errors import BackendError, DuplicateEmailError, ValidationError
from app.core.security import get_password_hash, verify_password
from app.core.validator import Validator
from app.models.user import User

logger = logging.getLogger(__name__)


def validate_email(v: Validator, email: str) -> None:
    v.check(email != "", "email", "must be provided")
    try:
        # Syntax only, no DNS lookup
        check_email_address(email, check_deliverability=False)
    except EmailNotValidError:
        v.add_error("email", "must be a valid email address")


def validate_password_plaintext(v: Validator, password: str) -> None:
    v.check(password != "", "password", "must be provided")
    v.check(len(password) >= 8, "password", "must be at least 8 characters long")
    # bcrypt only looks at the first 72 bytes
    v.check(len(password) <= 72, "password", "must not be more than 72 characters long")


def validate_user(v: Validator, name: str, email: str, password: str | None) -> None:
    v.check(name != "", "name", "must be provided")
    v.check(len(name) <= 500, "name", "must not be more than 500 characters long")

    validate_email(v, email)

    # Plaintext is only present while registering or changing a password
    if password is not None:
        validate_password_plaintext(v, password)


class UserService:
    @staticmethod
    def register(db: Session, name: str, email: str, password: str) -> User:
        """Validate, hash and insert a new user"""
        v = Validator()
        validate_user(v, name, email, password)
        if not v.valid():
            raise ValidationError(v.errors)

        user = User(name=name, email=email, hashed_password=get_password_hash(password))
        if not user.hashed_password:
            raise RuntimeError("missing password hash for user")

        try:
            db.add(user)
            db.commit()
            # Refresh to load server-generated fields (id, created_at)
            db.refresh(user)
        except IntegrityError as exc:
            # Unique constraint on email; also covers concurrent registrations
            db.rollback()
            raise DuplicateEmailError() from exc
        except SQLAlchemyError as exc:
            db.rollback()
            raise BackendError(f"inserting user failed: {exc}") from exc

        logger.info(f"Registered user {user.id}")
        return user

    @staticmethod
    def get_by_email(db: Session, email: str) -> User | None:
        try:
            return db.query(User).filter(User.email == email).first()
        except SQLAlchemyError as exc:
            db.rollback()
            raise BackendError(f"user lookup failed: {exc}") from exc

    @staticmethod
    def authenticate(db: Session, email: str, password: str) -> User | None:
        """
        Return the user when email and password match, else None.

        Unknown email and wrong password look the same to the caller so the
        response cannot be used to enumerate accounts.
        """
        user = UserService.get_by_email(db, email)
        if user is None:
            return None
        if not verify_password(password, user.hashed_password):
            return None
        return user


user_service = UserService()
