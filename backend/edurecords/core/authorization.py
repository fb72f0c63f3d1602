import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from edurecords import models
from edurecords.core.errors import AuthorizationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """
    The authenticated actor of a request.
    `id` is the profile id for teachers and students and the account id for admins.
    """
    id: int
    role: models.UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == models.UserRole.admin


def teacher_has_batch(db: Session, teacher_id: int, batch_id: int) -> bool:
    return db.query(models.TeacherBatchAssignment).filter(
        models.TeacherBatchAssignment.teacher_id == teacher_id,
        models.TeacherBatchAssignment.batch_id == batch_id,
    ).first() is not None


def is_self_or_admin(principal: Principal, teacher_id: int) -> bool:
    if principal.is_admin:
        return True
    return principal.role == models.UserRole.teacher and principal.id == int(teacher_id)


def can_write_batch(
    db: Session, principal: Principal, batch_id: Optional[int], teacher_id: Optional[int] = None
) -> bool:
    """
    Admins may write any batch. A teacher may write only batches assigned to
    them, and only when acting as themselves (teacher_id, if given, is theirs).
    A missing batch id never matches an assignment.
    """
    if principal.is_admin:
        return True
    if principal.role != models.UserRole.teacher:
        return False
    if teacher_id is not None and int(teacher_id) != principal.id:
        return False
    if batch_id is None:
        return False
    return teacher_has_batch(db, principal.id, batch_id)


def authorize_batch_write(
    db: Session, principal: Principal, batch_id: Optional[int], teacher_id: Optional[int] = None
) -> None:
    if not can_write_batch(db, principal, batch_id, teacher_id):
        logger.info(
            "batch write denied role=%s principal=%s teacher=%s batch=%s",
            principal.role.value, principal.id, teacher_id, batch_id,
        )
        raise AuthorizationError()
