import enum

from sqlalchemy import Column, String
from sqlalchemy.orm import relationship

from database.database import Base


class Role(str, enum.Enum):
    DOCTOR = "doctor"
    PENDING = "pending"
    UNSET = "unset"

    @classmethod
    def from_stored(cls, value):
        """NULL in the users table means the role was never assigned."""
        return cls(value) if value else cls.UNSET

    def to_stored(self):
        return None if self is Role.UNSET else self.value


class User(Base):
    __tablename__ = "users"

    user_id = Column(String, nullable=False, primary_key=True, index=True)
    full_name = Column(String(200), nullable=True)
    email = Column(String, nullable=False, unique=True)
    password = Column(String, nullable=False)
    role = Column(String, nullable=True)
    time_created = Column(String, nullable=True)
    time_updated = Column(String, nullable=True)

    # Relationship to tokens (one-to-many)
    tokens = relationship("Token", back_populates="user", cascade="all, delete-orphan")

    def to_dict(self):
        # Password hashes never leave the service
        return {
            "id": self.user_id,
            "email": self.email,
            "user_metadata": {
                "full_name": self.full_name,
                "role": self.role,
            },
            "created_at": self.time_created,
            "updated_at": self.time_updated,
        }
