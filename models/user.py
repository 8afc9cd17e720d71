import enum

from models.base_model import Base, BaseModel
from sqlalchemy import Boolean, Column, DateTime, String


class UserRole(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"
    CREATOR = "creator"
    DONOR = "donor"


class User(BaseModel, Base):
    __tablename__ = "users"
    __private_fields__ = (
        "password_hash",
        "refresh_token_hash",
        "email_verification_token",
        "email_verification_expires_at",
        "reset_token_selector",
        "reset_token_hash",
        "reset_token_expires_at",
    )

    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    wallet_address = Column(String(56), nullable=True, unique=True)
    role = Column(String(20), nullable=False, default=UserRole.USER.value)

    is_email_verified = Column(Boolean, nullable=False, default=False)
    email_verification_token = Column(String(64), nullable=True, index=True)
    email_verification_expires_at = Column(DateTime(timezone=True), nullable=True)

    # selector.validator reset scheme: selector is looked up, validator is only stored hashed
    reset_token_selector = Column(String(32), nullable=True, index=True)
    reset_token_hash = Column(String(255), nullable=True)
    reset_token_expires_at = Column(DateTime(timezone=True), nullable=True)

    # at most one live refresh token per user; NULL means no session
    refresh_token_hash = Column(String(255), nullable=True)

    @property
    def password(self):
        raise AttributeError("Password: Write-only field")

    def __repr__(self):
        return f"<User {self.id} role={self.role}>"
