"""Media service for case and household uploads."""

import hashlib
import os
import uuid
from typing import BinaryIO

import boto3
from botocore.exceptions import ClientError
from fastapi import Request
from sqlalchemy.orm import Session

from whosehouse.core.config import settings
from whosehouse.core.policies import can_write, is_household_member, scoped_query
from whosehouse.db.enums import AuditAction, MediaType, Role
from whosehouse.db.models import CaseMedia, Household
from whosehouse.services import audit_service, case_service


# =============================================================================
# Configuration
# =============================================================================

ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png", "webp", "gif", "pdf", "doc", "docx"}
ALLOWED_MIME_TYPES = {
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/gif",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}


class MediaServiceError(Exception):
    """Base exception for media service errors."""

    pass


class MediaValidationError(MediaServiceError):
    """File type or size rejected."""

    pass


class MediaNotFoundError(MediaServiceError):
    """Media missing or not visible to the caller."""

    pass


class MediaPermissionError(MediaServiceError):
    """Caller may not upload to this target or delete this file."""

    pass


def max_file_size_bytes() -> int:
    return settings.MEDIA_MAX_FILE_SIZE_MB * 1024 * 1024


# =============================================================================
# Storage Backend
# =============================================================================

def _get_s3_client():
    """Get boto3 S3 client."""
    kwargs = {
        "region_name": settings.S3_REGION,
        "aws_access_key_id": settings.AWS_ACCESS_KEY_ID or None,
        "aws_secret_access_key": settings.AWS_SECRET_ACCESS_KEY or None,
    }
    if settings.S3_ENDPOINT_URL:
        kwargs["endpoint_url"] = settings.S3_ENDPOINT_URL
    return boto3.client("s3", **kwargs)


def _get_local_storage_path() -> str:
    path = settings.LOCAL_STORAGE_PATH
    os.makedirs(path, exist_ok=True)
    return path


# =============================================================================
# File Operations
# =============================================================================

def file_extension(filename: str) -> str:
    return filename.rsplit(".", 1)[-1].lower() if "." in filename else ""


def calculate_checksum(file: BinaryIO) -> str:
    """Calculate SHA-256 checksum of file."""
    sha256 = hashlib.sha256()
    file.seek(0)
    for chunk in iter(lambda: file.read(8192), b""):
        sha256.update(chunk)
    file.seek(0)
    return sha256.hexdigest()


def validate_file(filename: str, content_type: str, file_size: int) -> None:
    """
    Validate file against allowlists and the size cap.

    Raises:
        MediaValidationError
    """
    ext = file_extension(filename)
    if ext not in ALLOWED_EXTENSIONS:
        raise MediaValidationError(f"File extension '.{ext}' not allowed")
    if content_type not in ALLOWED_MIME_TYPES:
        raise MediaValidationError(f"Content type '{content_type}' not allowed")
    if file_size <= 0:
        raise MediaValidationError("File is empty")
    if file_size > max_file_size_bytes():
        raise MediaValidationError(
            f"File size exceeds {settings.MEDIA_MAX_FILE_SIZE_MB} MB limit"
        )


def store_file(storage_key: str, file: BinaryIO) -> None:
    """Store file to configured backend."""
    if settings.STORAGE_BACKEND == "s3":
        file.seek(0)
        _get_s3_client().upload_fileobj(file, settings.S3_BUCKET, storage_key)
    else:
        path = os.path.join(_get_local_storage_path(), storage_key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            file.seek(0)
            f.write(file.read())


def generate_signed_url(storage_key: str) -> str:
    """Generate a short-lived download URL."""
    if settings.STORAGE_BACKEND == "s3":
        try:
            return _get_s3_client().generate_presigned_url(
                "get_object",
                Params={"Bucket": settings.S3_BUCKET, "Key": storage_key},
                ExpiresIn=settings.MEDIA_SIGNED_URL_TTL_SECONDS,
            )
        except ClientError:
            return ""
    # Local: served by the dev static route
    return f"/media/local/{storage_key}"


def delete_file(storage_key: str) -> None:
    if settings.STORAGE_BACKEND == "s3":
        _get_s3_client().delete_object(Bucket=settings.S3_BUCKET, Key=storage_key)
    else:
        path = os.path.join(_get_local_storage_path(), storage_key)
        if os.path.exists(path):
            os.remove(path)


# =============================================================================
# Service Functions
# =============================================================================

def _resolve_owner(
    db: Session, session, case_id: uuid.UUID | None, household_id: uuid.UUID | None
) -> tuple[str, uuid.UUID]:
    """Check the caller may attach files to the target; returns (kind, id)."""
    if bool(case_id) == bool(household_id):
        raise MediaServiceError("Provide exactly one of case_id or household_id")

    if case_id:
        case = case_service.get_case(db, session, case_id)
        case_service.require_participant(db, session, case)
        return "case", case.id

    household = scoped_query(db, session, Household).filter(Household.id == household_id).first()
    if not household:
        raise MediaNotFoundError("Household not found")
    if session.role != Role.ADMIN and not is_household_member(db, session, household.id):
        raise MediaPermissionError("Only household members can add household photos")
    return "household", household.id


def upload_media(
    db: Session,
    session,
    filename: str,
    content_type: str,
    file: BinaryIO,
    file_size: int,
    case_id: uuid.UUID | None = None,
    household_id: uuid.UUID | None = None,
    media_type: MediaType = MediaType.OTHER,
    description: str | None = None,
    is_visible_to_child: bool = False,
    request: Request | None = None,
) -> CaseMedia:
    """Validate, store and record an upload."""
    validate_file(filename, content_type, file_size)
    kind, owner_id = _resolve_owner(db, session, case_id, household_id)

    checksum = calculate_checksum(file)
    media_id = uuid.uuid4()
    storage_key = f"{session.org_id}/{owner_id}/{media_id}.{file_extension(filename)}"
    store_file(storage_key, file)

    media = CaseMedia(
        id=media_id,
        organization_id=session.org_id,
        case_id=owner_id if kind == "case" else None,
        household_id=owner_id if kind == "household" else None,
        uploaded_by=session.user_id,
        storage_key=storage_key,
        file_name=os.path.basename(filename)[:255],
        content_type=content_type,
        file_size=file_size,
        checksum_sha256=checksum,
        media_type=media_type.value,
        description=description,
        is_visible_to_child=is_visible_to_child,
    )
    db.add(media)
    db.flush()

    audit_service.log_event(
        db,
        org_id=session.org_id,
        action=AuditAction.MEDIA_UPLOADED,
        actor_user_id=session.user_id,
        target_type=kind,
        target_id=owner_id,
        details={"media_id": str(media.id), "content_type": content_type, "file_size": file_size},
        request=request,
    )
    return media


def list_media(
    db: Session,
    session,
    case_id: uuid.UUID | None = None,
    household_id: uuid.UUID | None = None,
) -> list[CaseMedia]:
    query = scoped_query(db, session, CaseMedia)
    if case_id:
        query = query.filter(CaseMedia.case_id == case_id)
    if household_id:
        query = query.filter(CaseMedia.household_id == household_id)
    return query.order_by(CaseMedia.uploaded_at.desc()).all()


def get_media(db: Session, session, media_id: uuid.UUID) -> CaseMedia:
    media = scoped_query(db, session, CaseMedia).filter(CaseMedia.id == media_id).first()
    if not media:
        raise MediaNotFoundError("Media not found")
    return media


def get_media_url(db: Session, session, media_id: uuid.UUID) -> str:
    return generate_signed_url(get_media(db, session, media_id).storage_key)


def delete_media(db: Session, session, media_id: uuid.UUID) -> None:
    media = get_media(db, session, media_id)
    if not can_write(db, session, media):
        raise MediaPermissionError("Only the uploader or an admin can delete this file")
    storage_key = media.storage_key
    db.delete(media)
    db.flush()
    delete_file(storage_key)
