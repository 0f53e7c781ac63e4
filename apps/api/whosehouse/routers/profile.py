"""Profile router - own profile and social worker professional details."""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from whosehouse.core.deps import get_current_user, get_db, require_csrf_header
from whosehouse.schemas.profile import (
    AssignedSocialWorker,
    ProfileRead,
    ProfileUpdate,
    SocialWorkerProfileFields,
    SocialWorkerProfileRead,
)
from whosehouse.services import profile_service

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("", response_model=ProfileRead)
def get_profile(user=Depends(get_current_user)):
    return user


@router.patch("", response_model=ProfileRead, dependencies=[Depends(require_csrf_header)])
def update_profile(
    data: ProfileUpdate,
    request: Request,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        profile = profile_service.update_my_profile(
            db, user, data.model_dump(exclude_unset=True), request=request
        )
    except profile_service.ProfileServiceError as e:
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    db.refresh(profile)
    return profile


@router.get("/social-worker", response_model=SocialWorkerProfileRead | None)
def get_social_worker_details(
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return profile_service.get_social_worker_profile(db, user)
    except profile_service.NotSocialWorkerError as e:
        raise HTTPException(status_code=403, detail=str(e))


@router.put(
    "/social-worker",
    response_model=SocialWorkerProfileRead,
    dependencies=[Depends(require_csrf_header)],
)
def put_social_worker_details(
    data: SocialWorkerProfileFields,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        details = profile_service.upsert_social_worker_profile(db, user, data.model_dump())
    except profile_service.NotSocialWorkerError as e:
        raise HTTPException(status_code=403, detail=str(e))
    db.commit()
    db.refresh(details)
    return details


@router.get("/my-social-worker", response_model=AssignedSocialWorker | None)
def get_my_social_worker(
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """The social worker on the carer's active placement, if any."""
    return profile_service.get_assigned_social_worker_for_carer(db, user)
