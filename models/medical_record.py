from sqlalchemy import Column, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from database.database import Base


class MedicalRecord(Base):
    __tablename__ = "medical_records"

    id = Column(String, primary_key=True, nullable=False, index=True)
    patient_id = Column(
        String,
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    visit_date = Column(String, nullable=False, index=True)
    diagnosis = Column(Text, nullable=True)
    symptoms = Column(Text, nullable=True)
    treatment = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    doctor_name = Column(String(200), nullable=True)
    created_at = Column(String, nullable=True)
    updated_at = Column(String, nullable=True)

    patient = relationship("Patient", back_populates="records")

    def to_dict(self):
        return {
            "id": self.id,
            "patient_id": self.patient_id,
            "visit_date": self.visit_date,
            "diagnosis": self.diagnosis,
            "symptoms": self.symptoms,
            "treatment": self.treatment,
            "notes": self.notes,
            "doctor_name": self.doctor_name,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
