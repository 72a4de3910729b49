import sys
import time
import uuid
from pathlib import Path
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

backend_dir = Path(__file__).resolve().parents[1]
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from quizhub.core.security import create_access_token, hash_password
from quizhub.db.base import Base
from quizhub.db import session as session_module
from quizhub.main import create_app

# Import models so that they are registered in Base.metadata before create_all.
from quizhub.models.user import User, UserRole
from quizhub.models.quiz import Question, Quiz, QuizStatus
from quizhub.models.result import Result, ResultAnswer  # noqa: F401
from quizhub.models.security_audit import SecurityAuditEvent  # noqa: F401


class _MemoryRedis:
    def __init__(self):
        self._data: dict[str, tuple[str, float | None]] = {}

    def ping(self):
        return True

    def _now(self) -> float:
        return time.time()

    def _get_entry(self, key: str):
        v = self._data.get(key)
        if not v:
            return None
        value, exp = v
        if exp is not None and exp <= self._now():
            self._data.pop(key, None)
            return None
        return value, exp

    def get(self, key: str):
        entry = self._get_entry(key)
        return entry[0] if entry else None

    def incr(self, key: str):
        entry = self._get_entry(key)
        n = int(entry[0] if entry else 0) + 1
        self._data[key] = (str(n), entry[1] if entry else None)
        return n

    def expire(self, key: str, seconds: int):
        entry = self._get_entry(key)
        if not entry:
            return False
        self._data[key] = (entry[0], self._now() + int(seconds))
        return True

    def ttl(self, key: str):
        entry = self._get_entry(key)
        if not entry:
            return -2
        _, exp = entry
        if exp is None:
            return -1
        return max(0, int(exp - self._now()))

    def flushall(self):
        self._data.clear()


# SQLite in-memory, shared by every session through StaticPool.
_engine = create_engine(
    "sqlite+pysqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
Base.metadata.create_all(bind=_engine)
session_module.engine = _engine
session_module.SessionLocal = session_module.sessionmaker(autoflush=False, bind=_engine)


# Stub Redis at import time (rate limiting + readiness check).
_mem_redis = _MemoryRedis()
import quizhub.core.redis_client as redis_client_module

redis_client_module.get_redis = lambda: _mem_redis


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    _mem_redis.flushall()
    yield


@pytest.fixture(scope="session")
def client():
    app = create_app()

    def _get_db_override():
        db = session_module.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[session_module.get_db] = _get_db_override
    return TestClient(app)


@pytest.fixture()
def db():
    with session_module.SessionLocal() as session:
        yield session


def make_user(*, role: UserRole = UserRole.user, password: str = "testpass123") -> SimpleNamespace:
    username = f"u_{uuid.uuid4().hex[:10]}"
    with session_module.SessionLocal() as s:
        user = User(
            username=username,
            email=f"{username}@example.com",
            role=role,
            password_hash=hash_password(password),
        )
        s.add(user)
        s.commit()
        s.refresh(user)
        token = create_access_token(user=user)
        return SimpleNamespace(
            id=user.id,
            username=username,
            password=password,
            headers={"Authorization": f"Bearer {token}"},
        )


@pytest.fixture()
def admin():
    return make_user(role=UserRole.admin)


@pytest.fixture()
def user():
    return make_user()


@pytest.fixture()
def other_user():
    return make_user()


def make_quiz(*, created_by: uuid.UUID, questions=(), status: QuizStatus = QuizStatus.published) -> SimpleNamespace:
    """Insert a quiz and its questions; ``questions`` is a list of (options, correct, marks)."""
    with session_module.SessionLocal() as s:
        quiz = Quiz(
            title=f"Quiz {uuid.uuid4().hex[:6]}",
            description="test quiz",
            category="general",
            time_limit=10,
            status=status,
            created_by=created_by,
        )
        s.add(quiz)
        s.flush()
        qids = []
        for i, (options, correct, marks) in enumerate(questions, start=1):
            q = Question(
                quiz_id=quiz.id,
                question_text=f"Question {i}",
                options=list(options),
                correct_answer=correct,
                marks=marks,
            )
            s.add(q)
            s.flush()
            qids.append(str(q.id))
        s.commit()
        return SimpleNamespace(id=str(quiz.id), title=quiz.title, question_ids=qids)


@pytest.fixture()
def two_question_quiz(admin):
    # Q1: [A,B,C] correct A, 5 marks. Q2: [X,Y] correct Y, 3 marks.
    quiz = make_quiz(
        created_by=admin.id,
        questions=[(["A", "B", "C"], "A", 5), (["X", "Y"], "Y", 3)],
    )
    quiz.q1, quiz.q2 = quiz.question_ids
    return quiz


@pytest.fixture()
def quiz_factory():
    return make_quiz
