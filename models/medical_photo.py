import enum

from sqlalchemy import Column, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from database.database import Base


class PhotoType(str, enum.Enum):
    GENERAL = "general"
    X_RAY = "x-ray"
    WOUND = "wound"
    SKIN_CONDITION = "skin-condition"
    SURGICAL = "surgical"
    DIAGNOSTIC = "diagnostic"
    TREATMENT = "treatment"
    OTHER = "other"


class MedicalPhoto(Base):
    __tablename__ = "medical_photos"

    id = Column(String, primary_key=True, nullable=False, index=True)
    patient_id = Column(
        String,
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    file_name = Column(String(255), nullable=False)
    file_path = Column(String(500), nullable=False)
    file_size = Column(Integer, nullable=True)
    mime_type = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    photo_type = Column(String(50), nullable=False, default=PhotoType.GENERAL.value)
    taken_date = Column(String, nullable=False, index=True)
    uploaded_by = Column(String, nullable=True)
    created_at = Column(String, nullable=True)
    updated_at = Column(String, nullable=True)

    patient = relationship("Patient", back_populates="photos")

    def to_dict(self):
        return {
            "id": self.id,
            "patient_id": self.patient_id,
            "file_name": self.file_name,
            "file_path": self.file_path,
            "file_size": self.file_size,
            "mime_type": self.mime_type,
            "description": self.description,
            "photo_type": self.photo_type,
            "taken_date": self.taken_date,
            "uploaded_by": self.uploaded_by,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
