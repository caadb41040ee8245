from sqlalchemy import Column, DateTime, ForeignKey, Integer, LargeBinary, String
from sqlalchemy.orm import relationship
from app.core.database import Base

# Scope recorded on tokens issued by sign-in
SCOPE_AUTHENTICATION = "authentication"


class Token(Base):
    """
    Stored half of an opaque bearer token.

    Only the SHA-256 digest of the plaintext is kept, so a database read
    cannot recover a usable token. Rows are never updated.
    """
    __tablename__ = "tokens"

    # Digest is unique with overwhelming probability, so it doubles as the key
    hash = Column(LargeBinary(32), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    expiry = Column(DateTime(timezone=True), nullable=False, index=True)
    # Recorded but not enforced by verification yet
    scope = Column(String, nullable=False)

    user = relationship("User", backref="tokens")
