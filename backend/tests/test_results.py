import uuid
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from quizhub.db import session as session_module
from quizhub.models.result import Result, ResultAnswer
from quizhub.services.results import ResultService


def _submit(client, headers, quiz_id, answers, **extra):
    body = {
        "quizId": quiz_id,
        "answers": [{"questionId": qid, "selectedAnswer": sel} for qid, sel in answers],
        **extra,
    }
    return client.post("/api/results/submit", json=body, headers=headers)


def _result_count(user_id) -> int:
    with session_module.SessionLocal() as s:
        return int(s.scalar(select(func.count()).select_from(Result).where(Result.user_id == user_id)) or 0)


def test_submit_one_right_one_wrong(client, user, two_question_quiz):
    quiz = two_question_quiz
    r = _submit(client, user.headers, quiz.id, [(quiz.q1, "A"), (quiz.q2, "X")])
    assert r.status_code == 201, r.text

    body = r.json()
    assert body["message"] == "Quiz submitted successfully"
    result = body["result"]
    assert result["score"] == 5
    assert result["totalMarks"] == 8
    assert result["quizId"] == quiz.id
    assert result["userId"] == str(user.id)
    assert result["answers"] == [
        {"questionId": quiz.q1, "selectedAnswer": "A", "isCorrect": True, "marksObtained": 5},
        {"questionId": quiz.q2, "selectedAnswer": "X", "isCorrect": False, "marksObtained": 0},
    ]
    for key in ("id", "completedAt", "createdAt", "updatedAt", "timeTaken"):
        assert key in result


def test_submit_all_right(client, user, two_question_quiz):
    quiz = two_question_quiz
    r = _submit(client, user.headers, quiz.id, [(quiz.q1, "A"), (quiz.q2, "Y")])
    assert r.status_code == 201
    assert r.json()["result"]["score"] == 8
    assert r.json()["result"]["totalMarks"] == 8


def test_unknown_question_is_recorded_as_wrong(client, user, two_question_quiz):
    quiz = two_question_quiz
    r = _submit(client, user.headers, quiz.id, [("Q99", "A"), (quiz.q1, "A")])
    assert r.status_code == 201

    result = r.json()["result"]
    assert result["answers"][0] == {"questionId": "Q99", "selectedAnswer": "A", "isCorrect": False, "marksObtained": 0}
    assert result["score"] == 5
    assert result["totalMarks"] == 8


def test_quiz_without_questions(client, admin, user, quiz_factory):
    quiz = quiz_factory(created_by=admin.id)
    r = _submit(client, user.headers, quiz.id, [(str(uuid.uuid4()), "A")])
    assert r.status_code == 201
    assert r.json()["result"]["score"] == 0
    assert r.json()["result"]["totalMarks"] == 0


def test_unknown_quiz_is_404_and_nothing_saved(client, user):
    r = _submit(client, user.headers, str(uuid.uuid4()), [("x", "A")])
    assert r.status_code == 404
    assert r.json()["error"] == "not_found"
    assert r.json()["ok"] is False
    assert _result_count(user.id) == 0


def test_identical_submissions_are_stored_separately(client, user, two_question_quiz):
    quiz = two_question_quiz
    first = _submit(client, user.headers, quiz.id, [(quiz.q1, "A")])
    second = _submit(client, user.headers, quiz.id, [(quiz.q1, "A")])
    assert first.status_code == second.status_code == 201
    assert first.json()["result"]["id"] != second.json()["result"]["id"]
    assert _result_count(user.id) == 2


def test_time_taken_is_stored(client, user, two_question_quiz):
    quiz = two_question_quiz
    r = _submit(client, user.headers, quiz.id, [(quiz.q1, "A")], timeTaken=95)
    assert r.status_code == 201
    assert r.json()["result"]["timeTaken"] == 95


def test_submit_validation_errors(client, user, two_question_quiz):
    quiz = two_question_quiz

    r = _submit(client, user.headers, "not-a-uuid", [(quiz.q1, "A")])
    assert r.status_code == 400
    assert r.json()["error"] == "invalid_input"

    r = _submit(client, user.headers, quiz.id, [])
    assert r.status_code == 400

    r = client.post("/api/results/submit", json={"quizId": quiz.id}, headers=user.headers)
    assert r.status_code == 400

    r = client.post(
        "/api/results/submit",
        json={"quizId": quiz.id, "answers": [{"questionId": quiz.q1}]},
        headers=user.headers,
    )
    assert r.status_code == 400

    r = _submit(client, user.headers, quiz.id, [(quiz.q1, "A")], timeTaken=-1)
    assert r.status_code == 400

    assert _result_count(user.id) == 0


def test_long_unknown_question_id_is_stored(client, user, two_question_quiz):
    quiz = two_question_quiz
    long_id = "q" * 300
    r = _submit(client, user.headers, quiz.id, [(long_id, "A"), (quiz.q1, "A")])
    assert r.status_code == 201, r.text

    result = r.json()["result"]
    assert result["answers"][0] == {"questionId": long_id, "selectedAnswer": "A", "isCorrect": False, "marksObtained": 0}
    assert result["score"] == 5

    detail = client.get(f"/api/results/{result['id']}", headers=user.headers).json()
    assert detail["answers"][0]["questionId"] == long_id
    assert detail["answers"][0]["question"] is None


def test_blank_and_repeated_question_ids_are_scored(client, user, two_question_quiz):
    quiz = two_question_quiz
    r = _submit(client, user.headers, quiz.id, [("   ", "A"), (quiz.q1, "A"), (quiz.q1, "A"), (quiz.q2, "Y")])
    assert r.status_code == 201, r.text

    result = r.json()["result"]
    assert [a["marksObtained"] for a in result["answers"]] == [0, 5, 0, 3]
    assert [a["questionId"] for a in result["answers"]] == ["   ", quiz.q1, quiz.q1, quiz.q2]
    assert result["score"] == 8
    assert result["totalMarks"] == 8


def test_submit_requires_auth(client, two_question_quiz):
    quiz = two_question_quiz
    r = _submit(client, {}, quiz.id, [(quiz.q1, "A")])
    assert r.status_code == 401
    assert r.json()["error"] == "unauthorized"


def test_my_results_lists_only_own_newest_first(client, user, other_user, two_question_quiz):
    quiz = two_question_quiz
    older = _submit(client, user.headers, quiz.id, [(quiz.q1, "B")]).json()["result"]["id"]
    newer = _submit(client, user.headers, quiz.id, [(quiz.q1, "A")]).json()["result"]["id"]
    _submit(client, other_user.headers, quiz.id, [(quiz.q1, "A")])

    r = client.get("/api/results/my-results", headers=user.headers)
    assert r.status_code == 200
    rows = r.json()
    assert len(rows) == 2
    assert {row["userId"] for row in rows} == {str(user.id)}
    assert [row["id"] for row in rows] == [newer, older]
    assert rows[0]["quiz"] == {"id": quiz.id, "title": quiz.title}


def test_results_with_equal_timestamps_have_stable_order(db, user, two_question_quiz):
    stamp = datetime(2024, 1, 1, tzinfo=timezone.utc)
    ids = [uuid.uuid4() for _ in range(3)]
    for rid in ids:
        db.add(
            Result(
                id=rid,
                user_id=user.id,
                quiz_id=uuid.UUID(two_question_quiz.id),
                completed_at=stamp,
                created_at=stamp,
                updated_at=stamp,
            )
        )
    db.commit()

    listed = [s.result.id for s in ResultService(db).get_by_user(user.id)]
    assert listed == sorted(ids, reverse=True)
    assert [s.result.id for s in ResultService(db).get_by_user(user.id)] == listed


def test_result_detail_includes_questions(client, user, two_question_quiz):
    quiz = two_question_quiz
    rid = _submit(client, user.headers, quiz.id, [(quiz.q1, "B"), ("Q99", "A")]).json()["result"]["id"]

    r = client.get(f"/api/results/{rid}", headers=user.headers)
    assert r.status_code == 200
    body = r.json()
    assert body["quiz"]["title"] == quiz.title
    first, second = body["answers"]
    assert first["question"]["questionText"] == "Question 1"
    assert first["question"]["options"] == ["A", "B", "C"]
    assert first["question"]["correctAnswer"] == "A"
    assert first["isCorrect"] is False
    assert second["question"] is None


def test_result_detail_access(client, admin, user, other_user, two_question_quiz):
    quiz = two_question_quiz
    rid = _submit(client, user.headers, quiz.id, [(quiz.q1, "A")]).json()["result"]["id"]

    assert client.get(f"/api/results/{rid}", headers=other_user.headers).status_code == 403
    assert client.get(f"/api/results/{rid}", headers=admin.headers).status_code == 200
    assert client.get(f"/api/results/{uuid.uuid4()}", headers=user.headers).status_code == 404
    assert client.get("/api/results/nope", headers=user.headers).status_code == 400


def test_result_survives_question_and_quiz_deletion(client, admin, user, two_question_quiz):
    quiz = two_question_quiz
    rid = _submit(client, user.headers, quiz.id, [(quiz.q1, "A"), (quiz.q2, "Y")]).json()["result"]["id"]

    assert client.delete(f"/api/questions/{quiz.q1}", headers=admin.headers).status_code == 200
    body = client.get(f"/api/results/{rid}", headers=user.headers).json()
    assert body["score"] == 8
    assert body["answers"][0]["question"] is None
    assert body["answers"][1]["question"]["id"] == quiz.q2

    assert client.delete(f"/api/quizzes/{quiz.id}", headers=admin.headers).status_code == 200
    body = client.get(f"/api/results/{rid}", headers=user.headers).json()
    assert body["score"] == 8
    assert body["quiz"]["title"] is None


def test_admin_lists_and_deletes_results(client, admin, user, two_question_quiz):
    quiz = two_question_quiz
    rid = _submit(client, user.headers, quiz.id, [(quiz.q1, "A")]).json()["result"]["id"]

    assert client.get("/api/results/all", headers=user.headers).status_code == 403
    r = client.get("/api/results/all", headers=admin.headers)
    assert r.status_code == 200
    assert rid in {row["id"] for row in r.json()}

    assert client.delete(f"/api/results/{rid}", headers=user.headers).status_code == 403
    r = client.delete(f"/api/results/{rid}", headers=admin.headers)
    assert r.status_code == 200
    assert r.json()["message"] == "Result deleted successfully"
    assert client.get(f"/api/results/{rid}", headers=admin.headers).status_code == 404

    with session_module.SessionLocal() as s:
        left = s.scalar(select(func.count()).select_from(ResultAnswer).where(ResultAnswer.result_id == uuid.UUID(rid)))
    assert left == 0


def test_question_fetch_failure_is_storage_error(client, user, two_question_quiz, monkeypatch):
    quiz = two_question_quiz

    def _broken_scalars(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection lost"))

    monkeypatch.setattr(Session, "scalars", _broken_scalars)
    r = _submit(client, user.headers, quiz.id, [(quiz.q1, "A")])
    monkeypatch.undo()

    assert r.status_code == 500
    assert r.json()["error"] == "storage_unavailable"
    assert _result_count(user.id) == 0


def test_failed_answer_write_leaves_no_partial_result(client, user, two_question_quiz, monkeypatch):
    quiz = two_question_quiz

    def _broken_add_all(self, *args, **kwargs):
        raise OperationalError("INSERT", {}, Exception("disk full"))

    monkeypatch.setattr(Session, "add_all", _broken_add_all)
    r = _submit(client, user.headers, quiz.id, [(quiz.q1, "A"), (quiz.q2, "Y")])
    monkeypatch.undo()

    assert r.status_code == 500
    assert r.json()["error"] == "storage_unavailable"
    assert _result_count(user.id) == 0
