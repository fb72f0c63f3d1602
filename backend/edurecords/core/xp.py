"""
Teacher experience points and leveling.

State is (xp, level, next_xp_target). Levels run from 1 to MAX_LEVEL; each
level-up consumes the current target and raises the next one by
XP_TARGET_STEP, except the final level-up, which leaves the target frozen.
XP keeps accruing at MAX_LEVEL but no longer changes the level.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from edurecords import models
from edurecords.core.errors import XPUpdateError

logger = logging.getLogger(__name__)

XP_ATTENDANCE = 10
XP_MARKS = 15
MAX_LEVEL = 10
XP_TARGET_STEP = 150
CAS_ATTEMPTS = 3


@dataclass(frozen=True)
class XPState:
    xp: int
    level: int
    next_xp_target: int


def apply_award(state: XPState, amount: int) -> XPState:
    if amount < 0:
        raise ValueError("XP award must be non-negative")

    xp = state.xp + amount
    level = state.level
    target = state.next_xp_target

    while level < MAX_LEVEL and xp >= target:
        xp -= target
        level += 1
        if level < MAX_LEVEL:
            target += XP_TARGET_STEP

    return XPState(xp=xp, level=level, next_xp_target=target)


def award_xp(db: Session, teacher_id: int, amount: int) -> Optional[XPState]:
    """
    Persist an award with an optimistic compare-and-swap on teachers.xp_version.
    Returns the new state, or None when the teacher no longer exists.
    Raises XPUpdateError when every attempt lost a race.
    """
    for attempt in range(1, CAS_ATTEMPTS + 1):
        row = db.query(
            models.Teacher.xp,
            models.Teacher.level,
            models.Teacher.next_xp_target,
            models.Teacher.xp_version,
        ).filter(models.Teacher.id == teacher_id).first()

        if row is None:
            logger.warning("xp award skipped, teacher %s not found", teacher_id)
            return None

        new_state = apply_award(XPState(row.xp, row.level, row.next_xp_target), amount)

        updated = db.query(models.Teacher).filter(
            models.Teacher.id == teacher_id,
            models.Teacher.xp_version == row.xp_version,
        ).update(
            {
                models.Teacher.xp: new_state.xp,
                models.Teacher.level: new_state.level,
                models.Teacher.next_xp_target: new_state.next_xp_target,
                models.Teacher.xp_version: row.xp_version + 1,
            },
            synchronize_session=False,
        )

        if updated == 1:
            db.commit()
            if new_state.level > row.level:
                logger.info("teacher %s reached level %s", teacher_id, new_state.level)
            return new_state

        db.rollback()
        logger.debug("xp award for teacher %s lost race (attempt %s)", teacher_id, attempt)

    raise XPUpdateError(f"XP update for teacher {teacher_id} gave up after {CAS_ATTEMPTS} attempts")
