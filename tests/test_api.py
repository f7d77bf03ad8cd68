def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_mock_login_issues_usable_token(client):
    r = client.post("/v1/auth/mock-login", json={"user_id": "tutor-1", "roles": ["tutor"]})
    assert r.status_code == 200
    token = r.json()["access_token"]

    r = client.get("/v1/quizzes", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json() == {"quizzes": [], "total": 0}


def test_bad_token_and_wrong_role(client, auth):
    r = client.get("/v1/quizzes", headers={"Authorization": "Bearer not-a-token"})
    assert r.status_code == 401
    assert r.json()["error"]["type"] == "http_error"

    r = client.post("/v1/attempts", json={"quiz_id": "x"}, headers=auth("tutor-1", "tutor"))
    assert r.status_code == 403


def test_service_errors_use_error_envelope(client, auth):
    r = client.get("/v1/quizzes/missing", headers=auth("tutor-1", "tutor"))
    assert r.status_code == 404
    assert r.json()["error"] == {
        "message": "Quiz not found or access denied", "type": "not_found", "status_code": 404,
    }


def test_invalid_question_is_a_400(client, auth, mc):
    tutor = auth("tutor-1", "tutor")
    quiz = client.post("/v1/quizzes", json={"title": "T", "subject": "S", "total_questions": 1}, headers=tutor).json()

    bad = mc(correct=())
    r = client.post(f"/v1/quizzes/{quiz['id']}/questions", json=bad, headers=tutor)

    assert r.status_code == 400
    assert r.json()["error"]["type"] == "validation_error"


def test_end_to_end_quiz_flow(client, auth, mc, tf):
    tutor = auth("tutor-1", "tutor")
    student = auth("student-1", "student")

    # tutor builds a two question quiz
    r = client.post("/v1/quizzes", headers=tutor, json={
        "title": "Algebra Basics", "subject": "Math", "total_questions": 2, "passing_score": 70,
    })
    assert r.status_code == 201
    quiz = r.json()
    assert quiz["is_public"] is True

    a = client.post(f"/v1/quizzes/{quiz['id']}/questions", headers=tutor,
                    json=mc("Question A", n=2, correct=(0,))).json()
    b = client.post(f"/v1/quizzes/{quiz['id']}/questions", headers=tutor,
                    json=tf("Question B", truth=True)).json()
    stats = client.get(f"/v1/quizzes/{quiz['id']}/stats", headers=tutor).json()
    assert stats["is_complete"] is True

    # student starts twice and gets the same attempt
    first = client.post("/v1/attempts", headers=student, json={"quiz_id": quiz["id"]}).json()
    again = client.post("/v1/attempts", headers=student, json={"quiz_id": quiz["id"]}).json()
    assert first["status"] == "in_progress"
    assert again["id"] == first["id"]

    right_a = next(x["id"] for x in a["answers"] if x["is_correct"])
    wrong_b = next(x["id"] for x in b["answers"] if not x["is_correct"])
    submission = {"attempt_id": first["id"], "answers": [
        {"question_id": a["id"], "selected_answer_id": right_a},
        {"question_id": b["id"], "selected_answer_ids": [wrong_b]},
    ]}
    r = client.post("/v1/attempts/submit", headers=student, json=submission)
    assert r.status_code == 200
    result = r.json()
    assert (result["score"], result["max_score"]) == (10, 20)
    assert (result["correct_answers"], result["total_questions"]) == (1, 2)
    assert result["percentage"] == 50.0
    assert result["passed"] is False

    # resubmitting is rejected and the frozen score stays
    r = client.post("/v1/attempts/submit", headers=student, json=submission)
    assert r.status_code == 400
    assert r.json()["error"]["type"] == "invalid_state"
    attempt = client.get(f"/v1/attempts/{first['id']}", headers=student).json()
    assert attempt["status"] == "completed"
    assert attempt["score"] == 10

    # another student duplicates the public quiz into a private copy
    r = client.post(f"/v1/quizzes/{quiz['id']}/duplicate", headers=auth("student-x", "student"))
    assert r.status_code == 201
    copy = r.json()
    assert copy["created_by"] == "student-x"
    assert copy["is_public"] is False
    copied = client.get(f"/v1/quizzes/{copy['id']}/questions", headers=auth("student-x", "student")).json()
    assert [q["question_text"] for q in copied] == ["Question A", "Question B"]

    original = client.get(f"/v1/quizzes/{quiz['id']}", headers=tutor).json()
    assert original["is_public"] is True
    assert original["created_by"] == "tutor-1"

    # the copy stays invisible to everyone but its owner
    r = client.get(f"/v1/quizzes/{copy['id']}", headers=tutor)
    assert r.status_code == 404


def test_tutor_reviews_attempts(client, auth, tf):
    tutor = auth("tutor-1", "tutor")
    student = auth("student-1", "student")
    quiz = client.post("/v1/quizzes", headers=tutor, json={
        "title": "Biology", "subject": "Science", "total_questions": 1, "questions": [tf()],
    }).json()
    attempt = client.post("/v1/attempts", headers=student, json={"quiz_id": quiz["id"]}).json()
    client.post("/v1/attempts/submit", headers=student, json={"attempt_id": attempt["id"], "answers": []})

    r = client.put(f"/v1/attempts/{attempt['id']}/feedback", headers=tutor, json={"feedback": "Try again"})
    assert r.status_code == 200
    assert r.json()["tutor_feedback"] == "Try again"

    attempts = client.get(f"/v1/quizzes/{quiz['id']}/attempts", headers=tutor).json()
    assert [a["id"] for a in attempts] == [attempt["id"]]
    stats = client.get(f"/v1/quizzes/{quiz['id']}/attempts/stats", headers=tutor).json()
    assert stats["completed_attempts"] == 1
    assert stats["passed"] == 0

    r = client.get(f"/v1/quizzes/{quiz['id']}/attempts", headers=auth("tutor-2", "tutor"))
    assert r.status_code == 403

    overview = client.get("/v1/stats/tutor", headers=tutor).json()
    assert overview["total_quizzes"] == 1
    assert overview["total_students"] == 1


def test_student_dashboard(client, auth, mc):
    tutor = auth("tutor-1", "tutor")
    student = auth("student-1", "student")
    quiz = client.post("/v1/quizzes", headers=tutor, json={
        "title": "History", "subject": "Humanities", "total_questions": 1, "questions": [mc()],
    }).json()
    attempt = client.post("/v1/attempts", headers=student, json={"quiz_id": quiz["id"]}).json()

    available = client.get("/v1/quizzes/available", headers=student).json()
    assert available[0]["attempt_id"] == attempt["id"]

    recent = client.get("/v1/attempts/recent", headers=student).json()
    assert [a["id"] for a in recent] == [attempt["id"]]

    r = client.delete(f"/v1/attempts/{attempt['id']}", headers=student)
    assert r.status_code == 204
    assert client.get("/v1/attempts/mine", headers=student).json() == []


def test_mock_login_rejects_unknown_roles(client):
    r = client.post("/v1/auth/mock-login", json={"user_id": "x", "roles": ["superuser"]})
    assert r.status_code == 422
    assert r.json()["error"]["type"] == "validation_error"

    r = client.post("/v1/auth/mock-login", json={"user_id": "x", "roles": []})
    assert r.status_code == 422

    r = client.post("/v1/auth/mock-login", json={"user_id": "s-1", "roles": ["student", "student", "admin"]})
    assert r.status_code == 200
    body = r.json()
    assert body["roles"] == ["student", "admin"]
    assert body["token_type"] == "bearer"
    assert body["expires_in"] > 0


def test_multi_role_student_can_create_quiz(client, auth):
    r = client.post("/v1/quizzes", headers=auth("multi-1", "admin", "student"),
                    json={"title": "Notes", "subject": "Math", "total_questions": 1})
    assert r.status_code == 201
    assert r.json()["created_by"] == "multi-1"
    assert r.json()["is_public"] is False


def test_answer_key_hidden_from_non_owners(client, auth, mc):
    tutor = auth("tutor-1", "tutor")
    student = auth("student-1", "student")
    quiz = client.post("/v1/quizzes", headers=tutor, json={
        "title": "Geometry", "subject": "Math", "total_questions": 1, "questions": [mc()],
    }).json()

    seen = client.get(f"/v1/quizzes/{quiz['id']}/questions", headers=student).json()
    assert all(a["is_correct"] is None for a in seen[0]["answers"])
    single = client.get(f"/v1/questions/{seen[0]['id']}", headers=student).json()
    assert all(a["is_correct"] is None for a in single["answers"])

    owned = client.get(f"/v1/quizzes/{quiz['id']}/questions", headers=tutor).json()
    assert [a["is_correct"] for a in owned[0]["answers"]] == [False, True, False]
