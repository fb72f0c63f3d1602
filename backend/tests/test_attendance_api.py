import pytest
from sqlalchemy import Insert
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from edurecords import models
from edurecords.core import xp

DAY = "2024-03-01"


@pytest.fixture
def classroom(make, headers_for):
    """A teacher assigned to a batch of three students."""
    batch = make.batch()
    students = [make.student(batch) for _ in range(3)]
    teacher = make.teacher()
    make.assign(teacher, batch)
    return {
        "batch": batch,
        "students": students,
        "teacher": teacher,
        "headers": headers_for(teacher.user),
    }

def _payload(classroom, statuses, date=DAY):
    return {
        "date": date,
        "batch_id": classroom["batch"].id,
        "records": [
            {"student_id": s.id, "status": status}
            for s, status in zip(classroom["students"], statuses)
        ],
    }

def _rows(db):
    db.expire_all()
    return db.query(models.AttendanceRecord).order_by(models.AttendanceRecord.student_id).all()


def test_teacher_saves_attendance(client, db, classroom):
    teacher = classroom["teacher"]
    response = client.post(
        f"/api/teachers/{teacher.id}/attendance",
        json=_payload(classroom, ["Present", "Absent", "Present"]),
        headers=classroom["headers"],
    )

    assert response.status_code == 200
    assert response.json() == {"message": "Attendance saved", "count": 3}
    rows = _rows(db)
    assert [r.status for r in rows] == [
        models.AttendanceStatus.Present, models.AttendanceStatus.Absent, models.AttendanceStatus.Present
    ]
    assert {r.recorded_by for r in rows} == {teacher.id}

def test_resubmitting_same_day_is_idempotent(client, db, classroom):
    url = f"/api/teachers/{classroom['teacher'].id}/attendance"
    payload = _payload(classroom, ["Present", "Present", "Present"])

    client.post(url, json=payload, headers=classroom["headers"])
    client.post(url, json=payload, headers=classroom["headers"])

    assert len(_rows(db)) == 3

def test_resubmitting_overwrites_status(client, db, classroom):
    url = f"/api/teachers/{classroom['teacher'].id}/attendance"
    client.post(url, json=_payload(classroom, ["Present", "Present", "Present"]), headers=classroom["headers"])
    client.post(url, json=_payload(classroom, ["Absent", "Present", "Absent"]), headers=classroom["headers"])

    assert [r.status.value for r in _rows(db)] == ["Absent", "Present", "Absent"]

def test_unknown_status_is_stored_absent(client, db, classroom):
    client.post(
        f"/api/teachers/{classroom['teacher'].id}/attendance",
        json=_payload(classroom, ["present", "Late", None]),
        headers=classroom["headers"],
    )
    assert {r.status for r in _rows(db)} == {models.AttendanceStatus.Absent}

def test_unassigned_teacher_is_forbidden(client, db, classroom, make, headers_for):
    stranger = make.teacher(name="Meera Iyer")
    response = client.post(
        f"/api/teachers/{stranger.id}/attendance",
        json=_payload(classroom, ["Present"] * 3),
        headers=headers_for(stranger.user),
    )

    assert response.status_code == 403
    assert response.json() == {"message": "Forbidden"}
    assert _rows(db) == []

def test_teacher_cannot_post_for_colleague(client, db, classroom, make, headers_for):
    colleague = make.teacher(name="Meera Iyer")
    make.assign(colleague, classroom["batch"])
    response = client.post(
        f"/api/teachers/{classroom['teacher'].id}/attendance",
        json=_payload(classroom, ["Present"] * 3),
        headers=headers_for(colleague.user),
    )
    assert response.status_code == 403
    assert _rows(db) == []

def test_admin_may_write_any_batch(client, db, classroom, admin_headers):
    response = client.post("/api/attendance", json=_payload(classroom, ["Present"] * 3), headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["count"] == 3
    assert {r.recorded_by for r in _rows(db)} == {None}

def test_teacher_cannot_use_admin_route(client, classroom):
    response = client.post("/api/attendance", json=_payload(classroom, ["Present"] * 3), headers=classroom["headers"])
    assert response.status_code == 403

def test_outsider_student_rejects_whole_payload(client, db, classroom, make):
    outsider = make.student(make.batch(name="Other"))
    payload = _payload(classroom, ["Present"] * 3)
    payload["records"].append({"student_id": outsider.id, "status": "Present"})

    response = client.post(
        f"/api/teachers/{classroom['teacher'].id}/attendance", json=payload, headers=classroom["headers"]
    )

    assert response.status_code == 400
    assert response.json() == {
        "message": "Validation failed",
        "fields": {"records": "Some student(s) not in selected batch"},
    }
    assert _rows(db) == []

@pytest.mark.parametrize("date", ["2024-02-30", "01-03-2024", "", None])
def test_invalid_date_rejected(client, classroom, date):
    response = client.post(
        f"/api/teachers/{classroom['teacher'].id}/attendance",
        json=_payload(classroom, ["Present"] * 3, date=date),
        headers=classroom["headers"],
    )
    assert response.status_code == 400
    assert response.json()["fields"] == {"date": "Invalid date"}

def test_missing_batch_id_is_a_validation_error_for_admin(client, classroom, admin_headers):
    payload = _payload(classroom, ["Present"] * 3)
    del payload["batch_id"]
    response = client.post("/api/attendance", json=payload, headers=admin_headers)
    assert response.status_code == 400
    assert response.json() == {"message": "Validation failed", "fields": {"batch_id": "batch_id required"}}

def test_teacher_without_batch_id_is_forbidden(client, db, classroom):
    payload = _payload(classroom, ["Present"] * 3)
    del payload["batch_id"]
    response = client.post(
        f"/api/teachers/{classroom['teacher'].id}/attendance", json=payload, headers=classroom["headers"]
    )
    assert response.status_code == 403
    assert _rows(db) == []

@pytest.mark.parametrize("mutate", [
    lambda p: p.pop("batch_id"),
    lambda p: p.update(batch_id="abc"),
    lambda p: p.update(date=20240301),
    lambda p: p["records"][0].update(student_id="abc"),
])
def test_unassigned_teacher_gets_403_before_payload_checks(client, classroom, make, headers_for, mutate):
    stranger = make.teacher(name="Meera Iyer")
    payload = _payload(classroom, ["Present"] * 3)
    mutate(payload)
    response = client.post(
        f"/api/teachers/{stranger.id}/attendance", json=payload, headers=headers_for(stranger.user)
    )
    assert response.status_code == 403
    assert response.json() == {"message": "Forbidden"}

def test_non_integer_student_id_rejected_for_assigned_teacher(client, db, classroom):
    payload = _payload(classroom, ["Present"] * 3)
    payload["records"][1]["student_id"] = "abc"
    response = client.post(
        f"/api/teachers/{classroom['teacher'].id}/attendance", json=payload, headers=classroom["headers"]
    )
    assert response.status_code == 400
    assert response.json()["fields"] == {"records": "student_id required"}
    assert _rows(db) == []

def test_store_failure_returns_500_and_writes_nothing(client, db, classroom, monkeypatch):
    original_execute = Session.execute

    def failing_execute(self, statement, *args, **kwargs):
        if isinstance(statement, Insert):
            raise OperationalError("INSERT INTO attendance", {}, Exception("disk I/O error"))
        return original_execute(self, statement, *args, **kwargs)

    monkeypatch.setattr(Session, "execute", failing_execute)
    teacher = classroom["teacher"]
    response = client.post(
        f"/api/teachers/{teacher.id}/attendance",
        json=_payload(classroom, ["Present"] * 3),
        headers=classroom["headers"],
    )

    assert response.status_code == 500
    assert response.json() == {"message": "Server error"}
    assert _rows(db) == []
    db.expire_all()
    assert db.get(models.Teacher, teacher.id).xp == 0

def test_requires_authentication(client, classroom):
    response = client.post(f"/api/teachers/{classroom['teacher'].id}/attendance", json=_payload(classroom, ["Present"] * 3))
    assert response.status_code == 401


# --- XP ---

def test_attendance_awards_xp_once_per_batch_write(client, db, classroom):
    teacher = classroom["teacher"]
    url = f"/api/teachers/{teacher.id}/attendance"
    client.post(url, json=_payload(classroom, ["Present"] * 3), headers=classroom["headers"])
    client.post(url, json=_payload(classroom, ["Absent"] * 3, date="2024-03-02"), headers=classroom["headers"])

    db.expire_all()
    assert db.get(models.Teacher, teacher.id).xp == 2 * xp.XP_ATTENDANCE

def test_admin_route_awards_no_xp(client, db, classroom, admin_headers):
    client.post("/api/attendance", json=_payload(classroom, ["Present"] * 3), headers=admin_headers)
    db.expire_all()
    assert db.get(models.Teacher, classroom["teacher"].id).xp == 0

def test_xp_failure_does_not_fail_the_write(client, db, classroom, monkeypatch):
    def broken_award(*args, **kwargs):
        raise RuntimeError("xp store down")

    monkeypatch.setattr(xp, "award_xp", broken_award)
    response = client.post(
        f"/api/teachers/{classroom['teacher'].id}/attendance",
        json=_payload(classroom, ["Present"] * 3),
        headers=classroom["headers"],
    )

    assert response.status_code == 200
    assert response.json()["count"] == 3
    assert len(_rows(db)) == 3

def test_no_xp_on_rejected_write(client, db, classroom):
    response = client.post(
        f"/api/teachers/{classroom['teacher'].id}/attendance",
        json=_payload(classroom, ["Present"] * 3, date="bad"),
        headers=classroom["headers"],
    )
    assert response.status_code == 400
    db.expire_all()
    assert db.get(models.Teacher, classroom["teacher"].id).xp == 0


# --- reads ---

def test_teacher_reads_batch_attendance(client, classroom):
    url = f"/api/teachers/{classroom['teacher'].id}/attendance"
    client.post(url, json=_payload(classroom, ["Present", "Absent", "Present"]), headers=classroom["headers"])

    response = client.get(url, params={"date": DAY, "batch_id": classroom["batch"].id}, headers=classroom["headers"])

    assert response.status_code == 200
    body = response.json()
    assert [row["student_id"] for row in body] == [s.id for s in classroom["students"]]
    assert body[1]["status"] == "Absent"

def test_teacher_read_of_unassigned_batch_forbidden(client, classroom, make):
    other = make.batch(name="Other")
    response = client.get(
        f"/api/teachers/{classroom['teacher'].id}/attendance",
        params={"date": DAY, "batch_id": other.id},
        headers=classroom["headers"],
    )
    assert response.status_code == 403

def test_admin_lists_attendance_by_date(client, classroom, admin_headers):
    client.post("/api/attendance", json=_payload(classroom, ["Present"] * 3), headers=admin_headers)

    assert len(client.get("/api/attendance", params={"date": DAY}, headers=admin_headers).json()) == 3
    assert client.get("/api/attendance", params={"date": "2024-03-02"}, headers=admin_headers).json() == []
    assert client.get("/api/attendance", headers=admin_headers).status_code == 400
