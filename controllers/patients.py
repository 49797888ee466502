import datetime
import uuid
from typing import List

from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from core.auth import StaffSession
from core.exceptions import (
    DuplicateFileNumberError,
    MetadataError,
    NotFoundError,
    StorageError,
)
from core.storage import ObjectStorage
from models.medical_photo import MedicalPhoto
from models.medical_record import MedicalRecord
from models.patient import Patient
from schema.patient import PatientCreate, PatientUpdate
from utils.state import State

UNIQUE_VIOLATION_CODE = "23505"


def is_unique_violation(error: IntegrityError) -> bool:
    """Tell a unique-constraint failure apart from other integrity errors.

    PostgreSQL reports SQLSTATE 23505; SQLite only says so in the message.
    """
    orig = error.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code:
        return code == UNIQUE_VIOLATION_CODE
    return "unique" in str(orig).lower()


def filter_patients(patients: List[Patient], search: str | None) -> List[Patient]:
    """Case-insensitive substring match on full name or file number."""
    if not search:
        return list(patients)
    needle = search.lower()
    return [
        patient
        for patient in patients
        if needle in patient.full_name.lower() or needle in patient.file_number.lower()
    ]


def list_patients(db: Session) -> List[Patient]:
    return db.query(Patient).order_by(desc(Patient.created_at)).all()


def get_patient(patient_id: str, db: Session) -> Patient:
    patient = db.query(Patient).filter(Patient.id == patient_id).first()
    if not patient:
        State.logger.error(f"Patient with ID {patient_id} not found")
        raise NotFoundError("Patient not found")
    return patient


def _commit_patient(patient: Patient, db: Session) -> Patient:
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if is_unique_violation(e):
            State.logger.error(f"File number {patient.file_number} already exists")
            raise DuplicateFileNumberError(patient.file_number)
        raise
    db.refresh(patient)
    return patient


def create_patient(data: PatientCreate, session: StaffSession, db: Session) -> Patient:
    now = datetime.datetime.now(datetime.UTC).isoformat()
    patient = Patient(
        id=str(uuid.uuid4()),
        full_name=data.full_name,
        age=data.age,
        file_number=data.file_number,
        gender=data.gender,
        additional_notes=data.additional_notes,
        created_by_doctor_id=session.user_id,
        created_by_doctor_name=session.display_name,
        created_by_doctor_email=session.email,
        created_at=now,
        updated_at=now,
    )
    db.add(patient)
    patient = _commit_patient(patient, db)
    State.logger.info(f"Patient {patient.id} created by {session.email}")
    return patient


def update_patient(patient_id: str, data: PatientUpdate, db: Session) -> Patient:
    patient = get_patient(patient_id, db)
    changes = data.model_dump(exclude_unset=True)
    # Required columns cannot be cleared
    for field in ("full_name", "age", "file_number"):
        if changes.get(field) is None:
            changes.pop(field, None)
    for field, value in changes.items():
        setattr(patient, field, value)
    patient.updated_at = datetime.datetime.now(datetime.UTC).isoformat()
    return _commit_patient(patient, db)


async def delete_patient(patient_id: str, db: Session, storage: ObjectStorage) -> int:
    """Delete a patient together with its photos and records.

    The three row deletions share one transaction. Blobs are removed before
    the commit, so a storage failure rolls everything back. Returns the
    number of photos removed.
    """
    patient = get_patient(patient_id, db)
    file_paths = [
        row.file_path
        for row in db.query(MedicalPhoto.file_path).filter(
            MedicalPhoto.patient_id == patient_id
        )
    ]
    try:
        db.query(MedicalPhoto).filter(MedicalPhoto.patient_id == patient_id).delete(
            synchronize_session=False
        )
        db.query(MedicalRecord).filter(MedicalRecord.patient_id == patient_id).delete(
            synchronize_session=False
        )
        db.delete(patient)
        db.flush()
    except SQLAlchemyError:
        db.rollback()
        raise

    try:
        await run_in_threadpool(storage.remove, file_paths)
    except StorageError as e:
        db.rollback()
        State.logger.error(
            f"Patient {patient_id} not deleted, storage removal failed: {e.detail}"
        )
        raise

    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        State.logger.error(
            f"Blobs for patient {patient_id} were removed but the commit failed, "
            f"metadata now points at missing files {file_paths}: {e}"
        )
        raise MetadataError("Patient photos were removed but the patient could not be deleted")

    State.logger.info(f"Patient {patient_id} deleted with {len(file_paths)} photo(s)")
    return len(file_paths)


def list_records(patient_id: str, db: Session) -> List[MedicalRecord]:
    get_patient(patient_id, db)
    return (
        db.query(MedicalRecord)
        .filter(MedicalRecord.patient_id == patient_id)
        .order_by(desc(MedicalRecord.visit_date))
        .all()
    )
