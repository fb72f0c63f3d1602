import pytest
from fastapi.testclient import TestClient

from edurecords import models
from edurecords.config import settings
from edurecords.core.security import create_access_token, get_password_hash
from edurecords.db import Base, build_engine
from edurecords.main import create_app

PASSWORD = "secret123"


@pytest.fixture(scope="session")
def password_hash():
    """Hashing is slow; every fixture account shares one hash."""
    return get_password_hash(PASSWORD)

@pytest.fixture(scope="function")
def engine():
    """Fresh in-memory database per test."""
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()

@pytest.fixture(scope="function")
def app(engine, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "upload_dir", str(tmp_path / "uploads"))
    return create_app(engine=engine)

@pytest.fixture(scope="function")
def client(app):
    return TestClient(app)

@pytest.fixture(scope="function")
def db(app):
    session = app.state.session_factory()
    yield session
    session.close()


def auth_headers(user: models.User) -> dict:
    token = create_access_token(data={"sub": user.email, "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


class Factory:
    """Builds committed rows for tests."""

    def __init__(self, db, password_hash):
        self.db = db
        self.password_hash = password_hash
        self._seq = 0

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def admin(self, name="Principal Admin"):
        user = models.User(
            email=f"admin{self._next()}@school.org",
            hashed_password=self.password_hash,
            role=models.UserRole.admin,
        )
        self._save(models.Admin(name=name, user=user))
        return user

    def teacher(self, name="Asha Rao", **kwargs):
        user = models.User(
            email=f"teacher{self._next()}@school.org",
            hashed_password=self.password_hash,
            role=models.UserRole.teacher,
        )
        return self._save(models.Teacher(name=name, user=user, **kwargs))

    def batch(self, course="BSc", name="A", year=2024):
        return self._save(models.Batch(course=course, name=name, year=year))

    def student(self, batch=None, roll_number=None, name="Student", with_login=False):
        n = self._next()
        student = models.Student(
            roll_number=roll_number or str(n),
            name=f"{name} {n}",
            course=batch.course if batch else "BSc",
            year=batch.year if batch else 2024,
            batch_id=batch.id if batch else None,
        )
        if with_login:
            student.user = models.User(
                email=f"student{n}@school.org",
                hashed_password=self.password_hash,
                role=models.UserRole.student,
            )
        return self._save(student)

    def assign(self, teacher, batch):
        self._save(models.TeacherBatchAssignment(teacher_id=teacher.id, batch_id=batch.id))


@pytest.fixture(scope="function")
def make(db, password_hash):
    return Factory(db, password_hash)

@pytest.fixture(scope="function")
def admin_headers(make):
    return auth_headers(make.admin())

@pytest.fixture(scope="function")
def headers_for():
    return auth_headers

@pytest.fixture(scope="session")
def password():
    return PASSWORD
