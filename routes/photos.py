from typing import List

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import JSONResponse

from controllers.patients import get_patient
from controllers.photos import (
    check_photo_size,
    delete_photo,
    list_photos,
    upload_photos,
    validate_photo_file,
)
from core.auth import StaffSession, require_doctor
from core.exceptions import AppException
from core.storage import get_storage
from database.database import get_db
from models.medical_photo import PhotoType
from utils.state import State

router = APIRouter()


@router.get("/{patient_id}/photos")
async def get_patient_photos(
    patient_id: str,
    session: StaffSession = Depends(require_doctor),
    db=Depends(get_db),
    storage=Depends(get_storage),
):
    try:
        patient = get_patient(patient_id, db)
        photos = await list_photos(patient.id, db, storage)
        return {"patient": patient.to_dict(), "photos": photos}
    except (HTTPException, AppException):
        raise
    except Exception as e:
        State.logger.error(f"An error occured while fetching photos: {str(e)}")
        raise HTTPException(
            status_code=500, detail=f"An error occured while fetching photos: {str(e)}"
        )


@router.post("/{patient_id}/photos")
async def upload_patient_photos(
    patient_id: str,
    files: List[UploadFile] | None = File(None, description="Image files to upload"),
    description: str | None = Form(None, description="Shared description for the batch"),
    photo_type: PhotoType = Form(PhotoType.GENERAL, description="Shared photo type"),
    session: StaffSession = Depends(require_doctor),
    db=Depends(get_db),
    storage=Depends(get_storage),
):
    try:
        patient = get_patient(patient_id, db)
        photo_files = []
        for upload in files or []:
            check_photo_size(upload.filename or "", upload.size)
            data = await upload.read()
            photo_files.append(
                validate_photo_file(upload.filename or "", upload.content_type, data)
            )
        batch = await upload_photos(
            patient, photo_files, description, photo_type, session, db, storage
        )
        if batch.all_succeeded:
            message = f"Successfully uploaded {batch.uploaded} photo(s)!"
        else:
            message = f"Uploaded {batch.uploaded} photo(s), {batch.failed} failed"
        return JSONResponse(
            status_code=201 if batch.all_succeeded else 207,
            content={
                "message": message,
                "uploaded": batch.uploaded,
                "failed": batch.failed,
                "results": [result.to_dict() for result in batch.results],
            },
        )
    except (HTTPException, AppException):
        raise
    except Exception as e:
        State.logger.error(f"An error occured while uploading photos: {str(e)}")
        raise HTTPException(
            status_code=500, detail=f"An error occured while uploading photos: {str(e)}"
        )


@router.delete("/{patient_id}/photos/{photo_id}")
async def delete_patient_photo(
    patient_id: str,
    photo_id: str,
    session: StaffSession = Depends(require_doctor),
    db=Depends(get_db),
    storage=Depends(get_storage),
):
    try:
        await delete_photo(patient_id, photo_id, db, storage)
        return {"detail": "Photo deleted successfully"}
    except (HTTPException, AppException):
        raise
    except Exception as e:
        State.logger.error(f"An error occured while deleting photo: {str(e)}")
        raise HTTPException(
            status_code=500, detail=f"An error occured while deleting photo: {str(e)}"
        )
