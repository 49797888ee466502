import asyncio
import datetime
import time
import uuid
from dataclasses import dataclass, field
from io import BytesIO
from typing import List

from PIL import Image, UnidentifiedImageError
from sqlalchemy import desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from core.auth import StaffSession
from core.exceptions import InvalidUploadError, MetadataError, NotFoundError, StorageError
from core.storage import SIGNED_URL_TTL_SECONDS, ObjectStorage
from models.medical_photo import MedicalPhoto, PhotoType
from models.patient import Patient
from utils.state import State

ALLOWED_PHOTO_EXTENSIONS = {"jpeg", "jpg", "png", "gif", "webp"}
MAX_PHOTO_SIZE_BYTES = 10 * 1024 * 1024  # 10 MB
RECENT_PHOTO_LIMIT = 4
STORAGE_PREFIX = "medical-photos"


@dataclass
class PhotoFile:
    """An uploaded image that passed validation and is ready to store."""

    file_name: str
    content_type: str
    data: bytes
    extension: str

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class UploadResult:
    file_name: str
    success: bool
    photo: dict | None = None
    error: str | None = None

    def to_dict(self):
        return {
            "file_name": self.file_name,
            "success": self.success,
            "photo": self.photo,
            "error": self.error,
        }


@dataclass
class UploadBatch:
    results: List[UploadResult] = field(default_factory=list)

    @property
    def uploaded(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def failed(self) -> int:
        return len(self.results) - self.uploaded

    @property
    def all_succeeded(self) -> bool:
        return self.failed == 0


def check_photo_size(file_name: str, size: int | None) -> None:
    if size is not None and size > MAX_PHOTO_SIZE_BYTES:
        raise InvalidUploadError(
            f"{file_name} exceeds the maximum size of {MAX_PHOTO_SIZE_BYTES // (1024 * 1024)}MB"
        )


def validate_photo_file(file_name: str, content_type: str | None, data: bytes) -> PhotoFile:
    """
    Check that an uploaded file is an image we accept.

    Args:
        file_name (str): Name of the file as sent by the client.
        content_type (str): MIME type declared by the client.
        data (bytes): File contents.

    Returns:
        PhotoFile: The validated file with its storage extension.

    Raises:
        InvalidUploadError: If the file is not an accepted image.
    """
    if not content_type or not content_type.startswith("image/"):
        raise InvalidUploadError("Only image files are allowed")
    if not data:
        raise InvalidUploadError(f"{file_name} is empty")
    check_photo_size(file_name, len(data))
    try:
        with Image.open(BytesIO(data)) as image:
            image.verify()
            detected_format = (image.format or "").lower()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError):
        raise InvalidUploadError(f"{file_name} is not a valid image")

    extension = file_name.rsplit(".", 1)[-1].lower() if "." in file_name else detected_format
    if extension not in ALLOWED_PHOTO_EXTENSIONS:
        raise InvalidUploadError(
            f"Invalid file type. Allowed: {', '.join(sorted(ALLOWED_PHOTO_EXTENSIONS))}"
        )
    return PhotoFile(
        file_name=file_name,
        content_type=content_type,
        data=data,
        extension=extension,
    )


def build_storage_key(patient: Patient, extension: str) -> tuple[str, str]:
    """Return ``(file_name, file_path)`` for a new blob of this patient."""
    safe_file_number = "".join(
        c for c in patient.file_number if c.isalnum() or c in "._-"
    )
    file_name = (
        f"{safe_file_number}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}.{extension}"
    )
    return file_name, f"{STORAGE_PREFIX}/{patient.id}/{file_name}"


async def resolve_photo_url(photo: MedicalPhoto, storage: ObjectStorage) -> dict:
    data = photo.to_dict()
    try:
        data["url"] = await run_in_threadpool(
            storage.create_signed_url, photo.file_path, SIGNED_URL_TTL_SECONDS
        )
        data["url_kind"] = "signed"
    except StorageError as e:
        State.logger.warning(
            f"Signing failed for photo {photo.id}, using public URL: {e.detail}"
        )
        data["url"] = storage.get_public_url(photo.file_path)
        data["url_kind"] = "public"
    return data


async def list_photos(
    patient_id: str,
    db: Session,
    storage: ObjectStorage,
    limit: int | None = None,
) -> List[dict]:
    """
    Fetch a patient's photos, newest first, each with an access URL.

    Returns:
        List[dict]: Photo metadata plus ``url`` and ``url_kind``.
    """
    query = (
        db.query(MedicalPhoto)
        .filter(MedicalPhoto.patient_id == patient_id)
        .order_by(desc(MedicalPhoto.taken_date))
    )
    if limit:
        query = query.limit(limit)
    photos = query.all()
    return list(await asyncio.gather(*[resolve_photo_url(p, storage) for p in photos]))


async def _discard_blob(storage: ObjectStorage, file_path: str):
    try:
        await run_in_threadpool(storage.remove, [file_path])
    except StorageError as e:
        State.logger.error(f"Orphaned blob {file_path} could not be removed: {e.detail}")
    except Exception as e:
        State.logger.error(f"Orphaned blob {file_path} could not be removed: {str(e)}")


async def _upload_one(
    patient: Patient,
    photo_file: PhotoFile,
    description: str | None,
    photo_type: PhotoType,
    session: StaffSession,
    db: Session,
    storage: ObjectStorage,
) -> UploadResult:
    file_name, file_path = build_storage_key(patient, photo_file.extension)
    try:
        await run_in_threadpool(
            storage.upload, file_path, photo_file.data, photo_file.content_type
        )
    except StorageError as e:
        State.logger.error(f"Upload failed for {photo_file.file_name}: {e.detail}")
        return UploadResult(
            file_name=photo_file.file_name,
            success=False,
            error=f"Upload failed for {photo_file.file_name}: {e.detail}",
        )
    except Exception as e:
        State.logger.error(
            f"Unexpected error uploading {photo_file.file_name}: {str(e)}"
        )
        return UploadResult(
            file_name=photo_file.file_name,
            success=False,
            error=f"Upload failed for {photo_file.file_name}: {str(e)}",
        )

    now = datetime.datetime.now(datetime.UTC).isoformat()
    try:
        record = MedicalPhoto(
            id=str(uuid.uuid4()),
            patient_id=patient.id,
            file_name=file_name,
            file_path=file_path,
            file_size=photo_file.size,
            mime_type=photo_file.content_type,
            description=description or None,
            photo_type=photo_type.value,
            taken_date=now,
            uploaded_by=session.user_id,
            created_at=now,
            updated_at=now,
        )
        db.add(record)
        db.commit()
        db.refresh(record)
    except Exception as e:
        db.rollback()
        State.logger.error(f"Database error for {photo_file.file_name}: {str(e)}")
        await _discard_blob(storage, file_path)
        return UploadResult(
            file_name=photo_file.file_name,
            success=False,
            error=f"Database error for {photo_file.file_name}: {str(e)}",
        )
    return UploadResult(
        file_name=photo_file.file_name, success=True, photo=record.to_dict()
    )


async def upload_photos(
    patient: Patient,
    photo_files: List[PhotoFile],
    description: str | None,
    photo_type: PhotoType,
    session: StaffSession,
    db: Session,
    storage: ObjectStorage,
) -> UploadBatch:
    """
    Store a batch of photos for a patient.

    Every file is uploaded and recorded independently; a failure for one file
    never undoes the others. When the metadata insert fails the freshly
    uploaded blob is removed again.

    Returns:
        UploadBatch: One result per file, in request order.
    """
    if not photo_files:
        raise InvalidUploadError("Please select at least one photo to upload")
    results = await asyncio.gather(
        *[
            _upload_one(patient, f, description, photo_type, session, db, storage)
            for f in photo_files
        ]
    )
    batch = UploadBatch(results=list(results))
    State.logger.info(
        f"Uploaded {batch.uploaded}/{len(batch.results)} photo(s) for patient {patient.id}"
    )
    return batch


async def delete_photo(
    patient_id: str, photo_id: str, db: Session, storage: ObjectStorage
) -> None:
    photo = (
        db.query(MedicalPhoto)
        .filter(MedicalPhoto.id == photo_id, MedicalPhoto.patient_id == patient_id)
        .first()
    )
    if not photo:
        raise NotFoundError("Photo not found")

    try:
        await run_in_threadpool(storage.remove, [photo.file_path])
    except StorageError as e:
        State.logger.error(f"Storage removal failed for photo {photo_id}: {e.detail}")
        raise StorageError("Failed to delete file from storage")

    try:
        db.delete(photo)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        State.logger.error(f"Metadata removal failed for photo {photo_id}: {str(e)}")
        raise MetadataError("Failed to delete photo record")
    State.logger.info(f"Photo {photo_id} deleted")
