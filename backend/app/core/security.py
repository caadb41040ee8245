import base64
import hashlib
import secrets
from passlib.context import CryptContext
from app.core.config import settings

# CryptContext handles password hashing using bcrypt
# bcrypt is slow by design to prevent brute-force attacks
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

# 16 random bytes = 128 bits of entropy per token
TOKEN_ENTROPY_BYTES = 16
# Length of the base32 text for TOKEN_ENTROPY_BYTES with padding stripped
TOKEN_PLAINTEXT_LENGTH = 26


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash using constant-time comparison"""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt"""
    # bcrypt generates a salt per call and embeds it in the hash
    return pwd_context.hash(password)


def generate_token_plaintext() -> str:
    """Create the client-facing secret for an opaque bearer token"""
    random_bytes = secrets.token_bytes(TOKEN_ENTROPY_BYTES)
    return base64.b32encode(random_bytes).decode("ascii").rstrip("=")


def hash_token(plaintext: str) -> bytes:
    """
    Digest used to store and look up tokens.

    Issuance and verification must use this same function; the stored
    digest is the only trace of a token on the server.
    """
    return hashlib.sha256(plaintext.encode("utf-8")).digest()
