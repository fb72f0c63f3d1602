from fastapi import Depends, HTTPException, Request, status, Security
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from typing import Callable

from edurecords import models, crud
from edurecords.core.authorization import Principal
from edurecords.core.security import decode_access_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/admin/login")

# --- Core Dependencies ---

def get_db(request: Request):
    """Dependency to get a new database session for each request.
    The session factory is built by create_app() and kept on app.state."""
    db_session = request.app.state.session_factory()
    try:
        yield db_session
    finally:
        db_session.close()

def get_current_user(
    token: str = Security(oauth2_scheme), db: Session = Depends(get_db)
) -> models.User:
    """
    Decodes the JWT token to get the email and fetches the
    user account from the database.
    """
    email = decode_access_token(token)
    if not email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = crud.get_user_by_email(db, email=email)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user

def get_current_principal(
    current_user: models.User = Depends(get_current_user)
) -> Principal:
    """
    The acting principal for authorization checks: profile id for teachers and
    students, account id for admins.
    """
    if current_user.role == models.UserRole.admin:
        return Principal(id=current_user.id, role=current_user.role)

    profile = crud.get_profile(current_user)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return Principal(id=profile.id, role=current_user.role)


# --- Role-Specific Profile Dependencies ---

def get_current_teacher_profile(
    current_user: models.User = Depends(get_current_user)
) -> models.Teacher:
    if current_user.role != models.UserRole.teacher or not current_user.teacher_profile:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is not a teacher")
    return current_user.teacher_profile

def get_current_student_profile(
    current_user: models.User = Depends(get_current_user)
) -> models.Student:
    if current_user.role != models.UserRole.student or not current_user.student_profile:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is not a student")
    return current_user.student_profile

def get_current_admin_user(
    current_user: models.User = Depends(get_current_user)
) -> models.User:
    if current_user.role != models.UserRole.admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return current_user

def require_role(*roles: models.UserRole) -> Callable:
    """
    A dependency factory that returns a dependency function allowing only the given roles.
    Example Usage: dependencies=[Depends(require_role(models.UserRole.teacher, models.UserRole.student))]
    """
    def role_checker(current_user: models.User = Depends(get_current_user)) -> models.User:
        if current_user.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
        return current_user
    return role_checker
