from datetime import datetime, timedelta
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from pydantic import BaseModel
from app.core.config import settings
from app.core.database import get_db
from app.core.errors import InvalidCredentials, ValidationError
from app.core.validator import Validator
from app.api.dependencies import get_token_service
from app.models.token import SCOPE_AUTHENTICATION
from app.services.user_service import user_service, validate_email, validate_password_plaintext

router = APIRouter(prefix="/auth", tags=["auth"])


class SignInRequest(BaseModel):
    email: str = ""
    password: str = ""


class AuthenticationToken(BaseModel):
    token: str
    expiry: datetime


class SignInResponse(BaseModel):
    authentication_token: AuthenticationToken


@router.post("/sign-in", response_model=SignInResponse, status_code=status.HTTP_201_CREATED)
def sign_in(
    credentials: SignInRequest,
    db: Session = Depends(get_db),
    tokens=Depends(get_token_service),
):
    """Exchange email and password for an opaque bearer token"""
    v = Validator()
    validate_email(v, credentials.email)
    validate_password_plaintext(v, credentials.password)
    if not v.valid():
        raise ValidationError(v.errors)

    # Same error for unknown email and wrong password - prevents email enumeration
    user = user_service.authenticate(db, credentials.email, credentials.password)
    if user is None:
        raise InvalidCredentials(f"failed sign-in for {credentials.email}")

    # The plaintext leaves the server only in this response
    issued = tokens.issue(
        db,
        user.id,
        timedelta(hours=settings.AUTH_TOKEN_TTL_HOURS),
        SCOPE_AUTHENTICATION,
    )

    return {"authentication_token": {"token": issued.plaintext, "expiry": issued.expiry}}
