from fastapi import APIRouter, Depends, HTTPException, status
from typing import List, Union
from sqlalchemy.orm import Session

from edurecords import models, schemas, crud
from edurecords.core.authorization import Principal
from edurecords.dependencies import (
    get_db, get_current_admin_user, get_current_principal, require_role
)

router = APIRouter(prefix="/api/settings/notifications", tags=["Notifications"])

reader_only = require_role(models.UserRole.teacher, models.UserRole.student)


def _get_notification_or_404(db: Session, notification_id: int) -> models.Notification:
    db_notification = crud.get_notification(db, notification_id)
    if not db_notification:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return db_notification


@router.get(
    "",
    response_model=Union[schemas.UserNotificationsOut, List[schemas.NotificationOut]],
    summary="List notifications"
)
def list_notifications(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    """
    Admins get every notification. Teachers and students get the ones
    addressed to them that are already due, with their read state.
    """
    if principal.is_admin:
        return [schemas.NotificationOut.model_validate(n) for n in crud.get_notifications(db)]

    notifications = crud.get_user_notifications(db, principal.role, principal.id)
    return schemas.UserNotificationsOut(
        notifications=notifications,
        unread_count=sum(1 for n in notifications if not n["is_read"]),
    )

@router.post(
    "",
    response_model=schemas.CreatedOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a notification"
)
def create_notification(
    data: schemas.NotificationCreate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(get_current_admin_user)
):
    db_notification = crud.create_notification(db, data, created_by=admin.id)
    return {"message": "Notification created", "id": db_notification.id}

@router.post(
    "/read-all",
    response_model=schemas.BulkWriteOut,
    summary="Mark every visible notification read",
    dependencies=[Depends(reader_only)]
)
def mark_all_read(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    count = crud.mark_all_notifications_read(db, principal.role, principal.id)
    return {"message": "All notifications marked read", "count": count}

@router.post(
    "/{notification_id}/mark-read",
    response_model=schemas.MessageResponse,
    summary="Mark one notification read",
    dependencies=[Depends(reader_only)]
)
def mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    _get_notification_or_404(db, notification_id)
    crud.mark_notification_read(db, notification_id, principal.role, principal.id)
    return {"message": "Marked read"}

@router.get(
    "/{notification_id}/receipts",
    response_model=List[schemas.ReceiptOut],
    summary="Read receipts of a notification",
    dependencies=[Depends(get_current_admin_user)]
)
def list_receipts(notification_id: int, db: Session = Depends(get_db)):
    _get_notification_or_404(db, notification_id)
    return crud.get_receipts(db, notification_id)

@router.delete(
    "/{notification_id}",
    response_model=schemas.MessageResponse,
    summary="Delete a notification and its receipts",
    dependencies=[Depends(get_current_admin_user)]
)
def delete_notification(notification_id: int, db: Session = Depends(get_db)):
    crud.delete_notification(db, _get_notification_or_404(db, notification_id))
    return {"message": "Notification deleted"}
