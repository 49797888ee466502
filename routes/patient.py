from fastapi import APIRouter, Depends, HTTPException, Query

from controllers.patients import (
    create_patient,
    delete_patient,
    filter_patients,
    get_patient,
    list_patients,
    list_records,
    update_patient,
)
from controllers.photos import RECENT_PHOTO_LIMIT, list_photos
from core.auth import StaffSession, require_doctor
from core.exceptions import AppException
from core.storage import get_storage
from database.database import get_db
from schema.patient import PatientCreate, PatientUpdate
from utils.state import State

router = APIRouter()


@router.get("/")
async def get_patients(
    search: str | None = Query(None, description="Filter by name or file number"),
    session: StaffSession = Depends(require_doctor),
    db=Depends(get_db),
):
    try:
        patients = list_patients(db)
        matches = filter_patients(patients, search)
        return {
            "patients": [patient.to_dict() for patient in matches],
            "total": len(patients),
        }
    except (HTTPException, AppException):
        raise
    except Exception as e:
        State.logger.error(f"An error occured while fetching all patients: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"An error occured while fetching all patients: {str(e)}",
        )


@router.get("/{patient_id}")
async def get_patient_detail(
    patient_id: str,
    session: StaffSession = Depends(require_doctor),
    db=Depends(get_db),
    storage=Depends(get_storage),
):
    try:
        patient = get_patient(patient_id, db)
        recent_photos = await list_photos(
            patient_id, db, storage, limit=RECENT_PHOTO_LIMIT
        )
        return {"patient": patient.to_dict(), "recent_photos": recent_photos}
    except (HTTPException, AppException):
        raise
    except Exception as e:
        State.logger.error(f"An error occured while fetching patient: {str(e)}")
        raise HTTPException(
            status_code=500, detail=f"An error occured while fetching patient: {str(e)}"
        )


@router.post("/", status_code=201)
async def create_patient_(
    req: PatientCreate,
    session: StaffSession = Depends(require_doctor),
    db=Depends(get_db),
):
    try:
        patient = create_patient(req, session, db)
        return {"message": "Patient created successfully", "patient": patient.to_dict()}
    except (HTTPException, AppException):
        raise
    except Exception as e:
        State.logger.error(f"An error occured while creating new patient: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"An error occured while creating new patient: {str(e)}",
        )


@router.put("/{patient_id}")
async def update_patient_(
    patient_id: str,
    req: PatientUpdate,
    session: StaffSession = Depends(require_doctor),
    db=Depends(get_db),
):
    try:
        patient = update_patient(patient_id, req, db)
        return {"patient": patient.to_dict()}
    except (HTTPException, AppException):
        raise
    except Exception as e:
        State.logger.error(f"An error occured while updating patient: {str(e)}")
        raise HTTPException(
            status_code=500, detail=f"An error occured while updating patient: {str(e)}"
        )


@router.delete("/{patient_id}")
async def delete_patient_(
    patient_id: str,
    session: StaffSession = Depends(require_doctor),
    db=Depends(get_db),
    storage=Depends(get_storage),
):
    try:
        removed_photos = await delete_patient(patient_id, db, storage)
        return {
            "detail": "Patient deleted successfully",
            "removed_photos": removed_photos,
        }
    except (HTTPException, AppException):
        raise
    except Exception as e:
        State.logger.error(f"An error occured while deleting patient: {str(e)}")
        raise HTTPException(
            status_code=500, detail=f"An error occured while deleting patient: {str(e)}"
        )


@router.get("/{patient_id}/records")
async def get_patient_records(
    patient_id: str,
    session: StaffSession = Depends(require_doctor),
    db=Depends(get_db),
):
    try:
        records = list_records(patient_id, db)
        return {"records": [record.to_dict() for record in records]}
    except (HTTPException, AppException):
        raise
    except Exception as e:
        State.logger.error(f"An error occured while fetching records: {str(e)}")
        raise HTTPException(
            status_code=500, detail=f"An error occured while fetching records: {str(e)}"
        )
