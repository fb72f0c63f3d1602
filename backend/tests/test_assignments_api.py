import os

import pytest

from edurecords import models


@pytest.fixture
def course(make, headers_for):
    batch = make.batch()
    teacher = make.teacher()
    make.assign(teacher, batch)
    students = [make.student(batch, with_login=True) for _ in range(2)]
    return {
        "batch": batch,
        "teacher": teacher,
        "teacher_headers": headers_for(teacher.user),
        "students": students,
        "student_headers": headers_for(students[0].user),
    }

def _create(client, course, **data):
    payload = {
        "batch_id": course["batch"].id,
        "subject": "Maths",
        "title": "Algebra worksheet",
        "due_date": "2024-04-01",
        **data,
    }
    response = client.post("/api/assignments", json=payload, headers=course["teacher_headers"])
    assert response.status_code == 201, response.text
    return response.json()


def test_teacher_creates_and_lists_assignments(client, course):
    created = _create(client, course)
    assert created["teacher_id"] == course["teacher"].id

    listed = client.get(
        f"/api/assignments/teacher/{course['teacher'].id}", headers=course["teacher_headers"]
    ).json()
    assert len(listed) == 1
    assert listed[0]["batch_name"] == "A"
    assert listed[0]["course"] == "BSc"

def test_teacher_cannot_create_for_unassigned_batch(client, course, make):
    other = make.batch(name="Other")
    response = client.post("/api/assignments", json={
        "batch_id": other.id, "subject": "Maths", "title": "Nope",
    }, headers=course["teacher_headers"])
    assert response.status_code == 403

def test_only_owner_updates_or_deletes(client, course, make, headers_for):
    assignment = _create(client, course)
    colleague = make.teacher(name="Ravi Kumar")
    make.assign(colleague, course["batch"])
    payload = {"batch_id": course["batch"].id, "subject": "Maths", "title": "Renamed"}

    assert client.put(f"/api/assignments/{assignment['id']}", json=payload, headers=headers_for(colleague.user)).status_code == 403
    response = client.put(f"/api/assignments/{assignment['id']}", json=payload, headers=course["teacher_headers"])
    assert response.json()["title"] == "Renamed"

    assert client.delete(f"/api/assignments/{assignment['id']}", headers=headers_for(colleague.user)).status_code == 403
    assert client.delete(f"/api/assignments/{assignment['id']}", headers=course["teacher_headers"]).status_code == 200

def test_student_submits_text_and_resubmits(client, course, db):
    assignment = _create(client, course)
    url = f"/api/assignments/{assignment['id']}/submit"

    assert client.post(url, data={"submission_text": "x = 4"}, headers=course["student_headers"]).status_code == 200
    assert client.post(url, data={"submission_text": "x = 5"}, headers=course["student_headers"]).status_code == 200

    db.expire_all()
    submissions = db.query(models.AssignmentSubmission).all()
    assert len(submissions) == 1
    assert submissions[0].submission_text == "x = 5"

    mine = client.get("/api/assignments/student", headers=course["student_headers"]).json()
    assert mine[0]["submission_text"] == "x = 5"

def test_empty_submission_rejected(client, course):
    assignment = _create(client, course)
    response = client.post(f"/api/assignments/{assignment['id']}/submit", data={}, headers=course["student_headers"])
    assert response.status_code == 400
    assert response.json() == {"message": "File or text submission required"}

def test_file_submission_saved_to_upload_dir(client, course, db):
    from edurecords.config import settings

    assignment = _create(client, course)
    response = client.post(
        f"/api/assignments/{assignment['id']}/submit",
        files={"file": ("answers.pdf", b"%PDF-1.4 answers", "application/pdf")},
        headers=course["student_headers"],
    )
    assert response.status_code == 200

    db.expire_all()
    submission = db.query(models.AssignmentSubmission).one()
    assert submission.file_path.startswith(settings.upload_dir)
    assert submission.file_path.endswith(".pdf")
    with open(submission.file_path, "rb") as fh:
        assert fh.read() == b"%PDF-1.4 answers"

    download = client.get(f"/api/assignments/submissions/{submission.id}/file", headers=course["teacher_headers"])
    assert download.status_code == 200
    assert download.content == b"%PDF-1.4 answers"

def test_disallowed_file_type(client, course):
    assignment = _create(client, course)
    response = client.post(
        f"/api/assignments/{assignment['id']}/submit",
        files={"file": ("script.exe", b"MZ", "application/octet-stream")},
        headers=course["student_headers"],
    )
    assert response.status_code == 400

def test_oversized_file_rejected_and_not_kept(client, course, monkeypatch):
    from edurecords.config import settings

    monkeypatch.setattr(settings, "max_upload_bytes", 16)
    assignment = _create(client, course)
    response = client.post(
        f"/api/assignments/{assignment['id']}/submit",
        files={"file": ("big.docx", b"x" * 64, "application/octet-stream")},
        headers=course["student_headers"],
    )
    assert response.status_code == 400
    assert not os.listdir(settings.upload_dir)

def test_submissions_list_covers_whole_batch_and_review(client, course):
    assignment = _create(client, course)
    client.post(f"/api/assignments/{assignment['id']}/submit", data={"submission_text": "done"}, headers=course["student_headers"])

    rows = client.get(f"/api/assignments/{assignment['id']}/submissions", headers=course["teacher_headers"]).json()
    assert len(rows) == 2
    submitted = [r for r in rows if r["submission_id"]]
    assert len(submitted) == 1

    url = f"/api/assignments/submissions/{submitted[0]['submission_id']}/review"
    assert client.put(url, json={"marks": 11}, headers=course["teacher_headers"]).status_code == 400
    assert client.put(url, json={"marks": 9, "feedback": "Good"}, headers=course["teacher_headers"]).status_code == 200

    mine = client.get("/api/assignments/student", headers=course["student_headers"]).json()
    assert (mine[0]["marks"], mine[0]["feedback"]) == (9, "Good")

def test_student_of_other_batch_cannot_submit(client, course, make, headers_for):
    assignment = _create(client, course)
    outsider = make.student(make.batch(name="Other"), with_login=True)
    response = client.post(
        f"/api/assignments/{assignment['id']}/submit", data={"submission_text": "hi"}, headers=headers_for(outsider.user)
    )
    assert response.status_code == 404

def _submit_file(client, course, assignment, name, content):
    return client.post(
        f"/api/assignments/{assignment['id']}/submit",
        files={"file": (name, content, "application/pdf")},
        headers=course["student_headers"],
    )

def test_resubmission_replaces_stored_file(client, course, db):
    from edurecords.config import settings

    assignment = _create(client, course)
    assert _submit_file(client, course, assignment, "first.pdf", b"%PDF-1.4 first").status_code == 200
    assert _submit_file(client, course, assignment, "second.pdf", b"%PDF-1.4 second").status_code == 200

    stored = os.listdir(settings.upload_dir)
    assert len(stored) == 1
    db.expire_all()
    submission = db.query(models.AssignmentSubmission).one()
    assert os.path.basename(submission.file_path) == stored[0]
    with open(submission.file_path, "rb") as fh:
        assert fh.read() == b"%PDF-1.4 second"

def test_text_resubmission_drops_previous_file(client, course):
    from edurecords.config import settings

    assignment = _create(client, course)
    _submit_file(client, course, assignment, "answers.pdf", b"%PDF-1.4 answers")
    client.post(
        f"/api/assignments/{assignment['id']}/submit", data={"submission_text": "typed instead"},
        headers=course["student_headers"],
    )
    assert os.listdir(settings.upload_dir) == []

def test_deleting_assignment_removes_uploads(client, course):
    from edurecords.config import settings

    assignment = _create(client, course)
    _submit_file(client, course, assignment, "answers.pdf", b"%PDF-1.4 answers")
    assert len(os.listdir(settings.upload_dir)) == 1

    client.delete(f"/api/assignments/{assignment['id']}", headers=course["teacher_headers"])
    assert os.listdir(settings.upload_dir) == []
