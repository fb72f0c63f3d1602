from fastapi import APIRouter, Depends
from typing import Optional, Union
from sqlalchemy.orm import Session

from edurecords import models, schemas, crud
from edurecords.dependencies import get_db, get_current_user, get_current_admin_user
from edurecords.routers.auth import PROFILE_SCHEMAS

router = APIRouter(prefix="/api/settings", tags=["Settings"])

ProfileOut = Union[schemas.AdminOut, schemas.TeacherOut, schemas.StudentOut]


@router.get("/profile", response_model=ProfileOut, summary="Current user's profile")
def get_profile(current_user: models.User = Depends(get_current_user)):
    return PROFILE_SCHEMAS[current_user.role].model_validate(crud.get_profile(current_user))

@router.put("/profile", response_model=ProfileOut, summary="Update own profile")
def update_profile(
    data: schemas.ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """Only the provided fields change. Fields the role does not have are ignored."""
    profile = crud.update_profile(db, current_user, data)
    return PROFILE_SCHEMAS[current_user.role].model_validate(profile)

@router.get(
    "/school",
    response_model=Optional[schemas.SchoolInfoOut],
    summary="Institution details",
    dependencies=[Depends(get_current_user)]
)
def get_school(db: Session = Depends(get_db)):
    return crud.get_school_info(db)

@router.put(
    "/school",
    response_model=schemas.SchoolInfoOut,
    summary="Create or update institution details",
    dependencies=[Depends(get_current_admin_user)]
)
def put_school(data: schemas.SchoolInfoIn, db: Session = Depends(get_db)):
    return crud.upsert_school_info(db, data)
