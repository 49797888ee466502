"""
Object storage for medical photo blobs.

Talks to an S3-compatible service (MinIO in development) and exposes the four
operations the photo workflow needs: upload, bulk remove, signed URL and
public URL.
"""
import io
import os
from datetime import timedelta
from typing import List

from minio import Minio
from minio.deleteobjects import DeleteObject
from minio.error import MinioException
from urllib3.exceptions import HTTPError as TransportError

from core.exceptions import StorageError
from utils.state import State

SIGNED_URL_TTL_SECONDS = 3600


class ObjectStorage:
    def __init__(
        self,
        client: Minio,
        bucket: str,
        public_url: str,
    ):
        self.client = client
        self.bucket = bucket
        self.public_url = public_url.rstrip("/")

    def ensure_bucket(self) -> bool:
        """Create the photo bucket if missing. Returns True when it was created."""
        try:
            if self.client.bucket_exists(bucket_name=self.bucket):
                return False
            self.client.make_bucket(bucket_name=self.bucket)
            State.logger.info(f"Created storage bucket {self.bucket}")
            return True
        except (MinioException, TransportError) as e:
            raise StorageError(f"Failed to prepare bucket {self.bucket}: {e}")

    def upload(self, path: str, data: bytes, content_type: str) -> None:
        try:
            self.client.put_object(
                bucket_name=self.bucket,
                object_name=path,
                data=io.BytesIO(data),
                length=len(data),
                content_type=content_type,
            )
        except (MinioException, TransportError) as e:
            raise StorageError(f"Upload failed for {path}: {e}")

    def remove(self, paths: List[str]) -> None:
        if not paths:
            return
        try:
            # remove_objects is lazy: errors only surface while iterating
            errors = list(
                self.client.remove_objects(
                    bucket_name=self.bucket,
                    delete_object_list=[DeleteObject(name=path) for path in paths],
                )
            )
        except (MinioException, TransportError) as e:
            raise StorageError(f"Failed to delete file from storage: {e}")
        if errors:
            failed = ", ".join(error.name for error in errors)
            raise StorageError(f"Failed to delete file from storage: {failed}")

    def create_signed_url(
        self, path: str, ttl_seconds: int = SIGNED_URL_TTL_SECONDS
    ) -> str:
        try:
            # Presigning never checks the object, so a stat is needed to
            # report blobs that were removed behind our back.
            self.client.stat_object(bucket_name=self.bucket, object_name=path)
            return self.client.presigned_get_object(
                bucket_name=self.bucket,
                object_name=path,
                expires=timedelta(seconds=ttl_seconds),
            )
        except (MinioException, TransportError) as e:
            raise StorageError(f"Failed to sign URL for {path}: {e}")

    def get_public_url(self, path: str) -> str:
        return f"{self.public_url}/{self.bucket}/{path}"


def build_storage() -> ObjectStorage:
    endpoint = os.getenv("STORAGE_ENDPOINT", "localhost:9000")
    secure = os.getenv("STORAGE_SECURE", "False").lower() == "true"
    client = Minio(
        endpoint,
        access_key=os.getenv("STORAGE_ACCESS_KEY"),
        secret_key=os.getenv("STORAGE_SECRET_KEY"),
        secure=secure,
    )
    return ObjectStorage(
        client,
        bucket=os.getenv("STORAGE_BUCKET", "medical-photos"),
        public_url=os.getenv(
            "STORAGE_PUBLIC_URL", f"{'https' if secure else 'http'}://{endpoint}"
        ),
    )


def get_storage() -> ObjectStorage:
    """FastAPI dependency returning the process-wide storage client."""
    if State.storage is None:
        State.storage = build_storage()
    return State.storage
