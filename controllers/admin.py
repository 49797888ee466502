import datetime
from typing import List

from sqlalchemy.orm import Session

from core.exceptions import NotFoundError
from core.storage import ObjectStorage
from database.database import Base, engine
from models.medical_photo import MedicalPhoto  # noqa: F401  registers table
from models.medical_record import MedicalRecord  # noqa: F401  registers table
from models.patient import Patient  # noqa: F401  registers table
from models.token import Token  # noqa: F401  registers table
from models.user import Role, User
from utils.state import State


def list_users(db: Session) -> List[User]:
    return db.query(User).order_by(User.time_created).all()


def update_user_role(user_id: str, role: Role, db: Session) -> User:
    """
    Set a user's role. ``Role.UNSET`` clears it.

    Raises:
        NotFoundError: If no user has this id.
    """
    user = db.query(User).filter(User.user_id == user_id).first()
    if not user:
        State.logger.error(f"User {user_id} not found for role update")
        raise NotFoundError("User not found")
    user.role = role.to_stored()
    user.time_updated = datetime.datetime.now(datetime.UTC).isoformat()
    db.commit()
    db.refresh(user)
    State.logger.info(f"User {user_id} role updated to {role.value}")
    return user


def run_migration(storage: ObjectStorage) -> str:
    """Create missing tables and the photo bucket."""
    Base.metadata.create_all(bind=engine)
    created = storage.ensure_bucket()
    bucket_state = "created" if created else "verified"
    return f"Database tables verified, storage bucket {bucket_state}"
