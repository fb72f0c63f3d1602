from edurecords.core.security import decode_access_token


def test_teacher_login_returns_token_and_profile(client, password, make):
    teacher = make.teacher(subject="Physics")
    response = client.post("/api/auth/teacher/login", json={"email": teacher.user.email, "password": password})

    assert response.status_code == 200
    body = response.json()
    assert decode_access_token(body["token"]) == teacher.user.email
    assert body["teacher"]["id"] == teacher.id
    assert body["teacher"]["subject"] == "Physics"
    assert "admin" not in body

def test_wrong_password(client, make):
    teacher = make.teacher()
    response = client.post("/api/auth/teacher/login", json={"email": teacher.user.email, "password": "wrong-one"})
    assert response.status_code == 400
    assert response.json() == {"message": "Incorrect Password"}

def test_unknown_email(client, password):
    response = client.post("/api/auth/admin/login", json={"email": "ghost@school.org", "password": password})
    assert response.status_code == 400
    assert response.json() == {"message": "Invalid Email"}

def test_role_mismatch_reads_as_unknown_email(client, password, make):
    teacher = make.teacher()
    response = client.post("/api/auth/admin/login", json={"email": teacher.user.email, "password": password})
    assert response.json() == {"message": "Invalid Email"}

def test_student_login_and_me(client, make, password):
    student = make.student(make.batch(), with_login=True)
    response = client.post("/api/auth/student/login", json={"email": student.user.email, "password": password})
    assert response.status_code == 200
    token = response.json()["token"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["roll_number"] == student.roll_number

def test_admin_me(client, make, headers_for):
    admin = make.admin(name="Head Office")
    me = client.get("/api/auth/me", headers=headers_for(admin))
    assert me.json()["name"] == "Head Office"
    assert me.json()["email"] == admin.email

def test_garbage_token_rejected(client):
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json() == {"message": "Invalid authentication credentials"}

def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "OK"
