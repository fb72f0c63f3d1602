import pytest
from sqlalchemy import event

from edurecords import models
from edurecords.core import xp
from edurecords.core.errors import XPUpdateError
from edurecords.core.xp import XPState, apply_award

START = XPState(xp=0, level=1, next_xp_target=models.INITIAL_XP_TARGET)


def test_exact_target_levels_up():
    assert apply_award(START, 250) == XPState(xp=0, level=2, next_xp_target=400)

def test_below_target_only_accrues():
    assert apply_award(START, 10) == XPState(xp=10, level=1, next_xp_target=250)

def test_large_award_crosses_several_levels():
    # 1000 - 250 = 750 (L2, 400); 750 - 400 = 350 (L3, 550)
    assert apply_award(START, 1000) == XPState(xp=350, level=3, next_xp_target=550)

def test_level_is_capped_and_target_frozen():
    state = apply_award(START, 10 ** 6)
    assert state.level == xp.MAX_LEVEL
    # targets 250, 400, ... 1450: the ninth level-up leaves 1450 in place
    assert state.next_xp_target == 1450

def test_xp_keeps_accruing_at_max_level():
    top = XPState(xp=5, level=xp.MAX_LEVEL, next_xp_target=1450)
    assert apply_award(top, 5000) == XPState(xp=5005, level=xp.MAX_LEVEL, next_xp_target=1450)

def test_negative_award_rejected():
    with pytest.raises(ValueError):
        apply_award(START, -1)

def test_many_small_awards_match_one_large():
    state = START
    for _ in range(25):
        state = apply_award(state, xp.XP_ATTENDANCE)
    assert state == apply_award(START, 25 * xp.XP_ATTENDANCE)


# --- persisted awards ---

def _concurrent_writer(engine, times):
    """Simulates a concurrent writer: bumps xp_version just before the guarded update runs."""
    calls = {"updates": 0}

    def before_execute(conn, cursor, statement, parameters, context, executemany):
        if statement.lstrip().startswith("UPDATE teachers SET") and "xp_version" in statement:
            calls["updates"] += 1
            if calls["updates"] <= times:
                cursor.connection.execute("UPDATE teachers SET xp_version = xp_version + 1")

    event.listen(engine, "before_cursor_execute", before_execute)
    return calls

def test_award_xp_persists_and_bumps_version(db, make):
    teacher = make.teacher()
    state = xp.award_xp(db, teacher.id, 260)

    assert state == XPState(xp=10, level=2, next_xp_target=400)
    db.expire_all()
    row = db.get(models.Teacher, teacher.id)
    assert (row.xp, row.level, row.next_xp_target, row.xp_version) == (10, 2, 400, 1)

def test_award_xp_missing_teacher_returns_none(db):
    assert xp.award_xp(db, 999, 10) is None

def test_award_xp_retries_after_lost_race(db, make, engine):
    teacher = make.teacher()
    calls = _concurrent_writer(engine, times=1)

    state = xp.award_xp(db, teacher.id, 10)

    assert state == XPState(xp=10, level=1, next_xp_target=250)
    assert calls["updates"] == 2
    db.expire_all()
    assert db.get(models.Teacher, teacher.id).xp == 10

def test_award_xp_gives_up_after_repeated_races(db, make, engine):
    teacher = make.teacher()
    calls = _concurrent_writer(engine, times=xp.CAS_ATTEMPTS)

    with pytest.raises(XPUpdateError):
        xp.award_xp(db, teacher.id, 10)

    assert calls["updates"] == xp.CAS_ATTEMPTS
    db.expire_all()
    assert db.get(models.Teacher, teacher.id).xp == 0
