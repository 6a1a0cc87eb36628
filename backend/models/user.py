import enum

from sqlalchemy import Boolean, Column, DateTime, Enum, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from db.database import Base


class UserType(str, enum.Enum):
    CUSTOMER = "customer"
    STAFF = "staff"
    ADMIN = "admin"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    # bcrypt hash; the plaintext password is never stored
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False, default="")
    last_name = Column(String(100), nullable=False, default="")
    phone = Column(String(32), nullable=True)
    phone_verified = Column(Boolean, default=False, nullable=False)
    # SHA-256 of the pending 6-digit code
    phone_verification_code_hash = Column(String(64), nullable=True)
    phone_verification_expires_at = Column(DateTime(timezone=True), nullable=True)
    user_type = Column(
        Enum(UserType, name="user_type", native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=UserType.CUSTOMER,
    )
    is_active = Column(Boolean, default=True, nullable=False)
    email_verified = Column(Boolean, default=False, nullable=False)
    # SHA-256 of the emailed reset token
    reset_password_token_hash = Column(String(64), nullable=True, index=True)
    reset_password_expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    refresh_tokens = relationship(
        "RefreshToken", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    orders = relationship("Order", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    auth_audit_logs = relationship("AuthAuditLog", back_populates="user", passive_deletes=True)

    @property
    def name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    @property
    def role(self) -> str:
        user_type = self.user_type
        return user_type.value if isinstance(user_type, UserType) else str(user_type)

    @property
    def is_admin(self) -> bool:
        return self.role == UserType.ADMIN.value

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', type='{self.role}')>"
