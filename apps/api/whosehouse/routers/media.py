"""Media router - case files and household photos."""

from io import BytesIO
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from sqlalchemy.orm import Session

from whosehouse.core.config import settings
from whosehouse.core.deps import get_current_session, get_db, require_csrf_header
from whosehouse.db.enums import MediaType
from whosehouse.schemas.auth import UserSession
from whosehouse.schemas.media import MediaRead, MediaUrl
from whosehouse.services import case_service, media_service

router = APIRouter(prefix="/media", tags=["media"])


def _raise_for(e: Exception):
    if isinstance(e, (media_service.MediaNotFoundError, case_service.CaseNotFoundError)):
        raise HTTPException(status_code=404, detail=str(e))
    if isinstance(e, media_service.MediaPermissionError):
        raise HTTPException(status_code=403, detail=str(e))
    raise HTTPException(status_code=400, detail=str(e))


@router.post("", response_model=MediaRead, status_code=201)
async def upload_media(
    request: Request,
    file: Annotated[UploadFile, File()],
    case_id: Annotated[UUID | None, Form()] = None,
    household_id: Annotated[UUID | None, Form()] = None,
    media_type: Annotated[MediaType, Form()] = MediaType.OTHER,
    description: Annotated[str | None, Form(max_length=1000)] = None,
    is_visible_to_child: Annotated[bool, Form()] = False,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
    _: str = Depends(require_csrf_header),
):
    """
    Upload a file to a case or a household.

    Exactly one of case_id / household_id is required. Files marked
    visible to the child appear in the child view.
    """
    content = await file.read()
    file_obj = BytesIO(content)

    try:
        media = media_service.upload_media(
            db,
            session,
            filename=file.filename or "untitled",
            content_type=file.content_type or "application/octet-stream",
            file=file_obj,
            file_size=len(content),
            case_id=case_id,
            household_id=household_id,
            media_type=media_type,
            description=description,
            is_visible_to_child=is_visible_to_child,
            request=request,
        )
    except (media_service.MediaServiceError, case_service.CaseServiceError) as e:
        _raise_for(e)
    db.commit()
    db.refresh(media)
    return media


@router.get("", response_model=list[MediaRead])
def list_media(
    case_id: UUID | None = None,
    household_id: UUID | None = None,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return media_service.list_media(db, session, case_id=case_id, household_id=household_id)


@router.get("/{media_id}/url", response_model=MediaUrl)
def get_media_url(
    media_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Short-lived download URL."""
    try:
        url = media_service.get_media_url(db, session, media_id)
    except media_service.MediaServiceError as e:
        _raise_for(e)
    if not url:
        raise HTTPException(status_code=502, detail="Could not create a download link")
    return MediaUrl(url=url, expires_in_seconds=settings.MEDIA_SIGNED_URL_TTL_SECONDS)


@router.delete("/{media_id}", status_code=204, dependencies=[Depends(require_csrf_header)])
def delete_media(
    media_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    try:
        media_service.delete_media(db, session, media_id)
    except media_service.MediaServiceError as e:
        _raise_for(e)
    db.commit()
