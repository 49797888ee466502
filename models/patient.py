from sqlalchemy import Column, Integer, String, Text
from sqlalchemy.orm import relationship

from database.database import Base


class Patient(Base):
    __tablename__ = "patients"

    id = Column(String, nullable=False, primary_key=True, index=True)
    full_name = Column(String(200), nullable=False)
    age = Column(Integer, nullable=False)
    file_number = Column(String(50), nullable=False, unique=True, index=True)
    gender = Column(String(20), nullable=True)
    additional_notes = Column(Text, nullable=True)
    created_by_doctor_id = Column(String, nullable=True)
    created_by_doctor_name = Column(String(200), nullable=True)
    created_by_doctor_email = Column(String, nullable=True)
    created_at = Column(String, nullable=True, index=True)
    updated_at = Column(String, nullable=True)

    # One-to-many: Patient -> MedicalPhoto
    photos = relationship(
        "MedicalPhoto",
        back_populates="patient",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    # One-to-many: Patient -> MedicalRecord
    records = relationship(
        "MedicalRecord",
        back_populates="patient",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def to_dict(self):
        return {
            "id": self.id,
            "full_name": self.full_name,
            "age": self.age,
            "file_number": self.file_number,
            "gender": self.gender,
            "additional_notes": self.additional_notes,
            "created_by_doctor_id": self.created_by_doctor_id,
            "created_by_doctor_name": self.created_by_doctor_name,
            "created_by_doctor_email": self.created_by_doctor_email,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
