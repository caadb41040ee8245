from fastapi import Depends, Request, Response
from sqlalchemy.orm import Session
from app.core.database import get_db
from app.core.errors import InvalidAuthenticationHeader, NotFound
from app.core.validator import Validator
from app.models.user import User
from app.services.token_service import token_service, validate_token_plaintext


def get_token_service():
    """Indirection so tests can swap in a service with a fake clock"""
    return token_service


def get_current_user(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    tokens=Depends(get_token_service),
) -> User:
    """
    Resolve the bearer token on the request to a user.

    Used as a dependency on every protected route. Missing, malformed,
    unknown and expired tokens all raise the same InvalidAuthenticationHeader
    so clients cannot tell them apart. Storage failures propagate as
    BackendError and become a logged 500.
    """
    # Authenticated and anonymous responses for one URL must not share a cache entry
    response.headers.append("Vary", "Authorization")

    authorization_header = request.headers.get("Authorization")
    if not authorization_header:
        raise InvalidAuthenticationHeader("missing Authorization header")

    header_parts = authorization_header.split(" ")
    if len(header_parts) != 2 or header_parts[0] != "Bearer":
        raise InvalidAuthenticationHeader("malformed Authorization header")

    token = header_parts[1]

    # Reject garbage before spending a database round-trip on it
    v = Validator()
    validate_token_plaintext(v, token)
    if not v.valid():
        raise InvalidAuthenticationHeader("malformed bearer token")

    try:
        user = tokens.verify(db, token)
    except NotFound:
        raise InvalidAuthenticationHeader("unknown or expired token")

    # Downstream handlers and middleware can read the identity from request state
    request.state.user = user
    return user
