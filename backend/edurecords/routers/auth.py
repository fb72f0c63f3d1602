from fastapi import APIRouter, Depends, HTTPException, status
from typing import Union
from sqlalchemy.orm import Session

from edurecords import schemas, crud, models
from edurecords.core.security import create_access_token, verify_password
from edurecords.dependencies import get_db, get_current_user

router = APIRouter(prefix="/api/auth", tags=["Authentication"])

PROFILE_SCHEMAS = {
    models.UserRole.admin: schemas.AdminOut,
    models.UserRole.teacher: schemas.TeacherOut,
    models.UserRole.student: schemas.StudentOut,
}


def _login(db: Session, credentials: schemas.LoginRequest, role: models.UserRole) -> dict:
    """
    Shared login flow for the three role-specific endpoints.
    An account of another role is reported the same way as an unknown email.
    """
    user = crud.get_user_by_email(db, email=credentials.email)
    profile = crud.get_profile(user) if user else None
    if not user or user.role != role or profile is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid Email")
    if not verify_password(credentials.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Incorrect Password")

    token = create_access_token(data={"sub": user.email, "role": role.value})
    return {"token": token, role.value: PROFILE_SCHEMAS[role].model_validate(profile)}


@router.post("/admin/login", response_model=schemas.LoginResponse, response_model_exclude_none=True, summary="Admin login")
def admin_login(credentials: schemas.LoginRequest, db: Session = Depends(get_db)):
    return _login(db, credentials, models.UserRole.admin)

@router.post("/teacher/login", response_model=schemas.LoginResponse, response_model_exclude_none=True, summary="Teacher login")
def teacher_login(credentials: schemas.LoginRequest, db: Session = Depends(get_db)):
    return _login(db, credentials, models.UserRole.teacher)

@router.post("/student/login", response_model=schemas.LoginResponse, response_model_exclude_none=True, summary="Student login")
def student_login(credentials: schemas.LoginRequest, db: Session = Depends(get_db)):
    return _login(db, credentials, models.UserRole.student)

@router.get(
    "/me",
    response_model=Union[schemas.AdminOut, schemas.TeacherOut, schemas.StudentOut],
    summary="Get current user's full profile"
)
def read_users_me(current_user: models.User = Depends(get_current_user)):
    """
    Returns the profile (Admin, Teacher or Student) of the currently
    authenticated user.
    """
    profile = crud.get_profile(current_user)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return PROFILE_SCHEMAS[current_user.role].model_validate(profile)
