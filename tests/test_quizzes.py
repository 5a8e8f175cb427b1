from conftest import auth_headers, sample_quiz


def create_quiz(client, headers, **overrides):
    res = client.post("/quizzes", json=sample_quiz(**overrides), headers=headers)
    assert res.status_code == 201, res.text
    return res.json()


def answers_for(quiz, mc="1", tf="true", short="the bottom part"):
    ids = [str(q["id"]) for q in quiz["questions"]]
    return {ids[0]: mc, ids[1]: tf, ids[2]: short}


def test_create_quiz_defaults_and_order(client, teacher_headers):
    quiz = create_quiz(client, teacher_headers)
    assert quiz["status"] == "published"
    assert quiz["attempts_allowed"] == 1
    assert [q["order_index"] for q in quiz["questions"]] == [0, 1, 2]
    assert quiz["questions"][0]["correct_answer"] == "1"
    # options are dropped for non multiple-choice questions
    assert quiz["questions"][1]["options"] is None


def test_create_quiz_needs_questions(client, teacher_headers):
    res = client.post("/quizzes", json=sample_quiz(questions=[]), headers=teacher_headers)
    assert res.status_code == 400
    assert res.json()["detail"] == "Please fill all required fields and add at least one question."

    res = client.post("/quizzes", json=sample_quiz(title="   "), headers=teacher_headers)
    assert res.status_code == 400


def test_create_quiz_rejects_bad_answer_key(client, teacher_headers):
    bad = sample_quiz()
    bad["questions"][0]["correct_answer"] = "7"
    res = client.post("/quizzes", json=bad, headers=teacher_headers)
    assert res.status_code == 400


def test_students_cannot_create_quizzes(client, student_headers):
    res = client.post("/quizzes", json=sample_quiz(), headers=student_headers)
    assert res.status_code == 403


def test_student_view_hides_answer_key_and_drafts(client, teacher_headers, student_headers):
    published = create_quiz(client, teacher_headers)
    draft = create_quiz(client, teacher_headers, title="Draft quiz", status="draft")

    res = client.get("/quizzes", headers=student_headers)
    assert [q["id"] for q in res.json()] == [published["id"]]
    assert all("correct_answer" not in q for q in res.json()[0]["questions"])

    res = client.get(f"/quizzes/{published['id']}", headers=student_headers)
    assert res.status_code == 200
    assert "correct_answer" not in res.json()["questions"][0]

    assert client.get(f"/quizzes/{draft['id']}", headers=student_headers).status_code == 404

    res = client.get("/quizzes", headers=teacher_headers)
    assert {q["id"] for q in res.json()} == {published["id"], draft["id"]}


def test_teacher_only_sees_own_quizzes(client, teacher_headers):
    create_quiz(client, teacher_headers)
    _, other_headers = auth_headers(client, "other@school.test", "teacher", "Mr Other")

    assert client.get("/quizzes", headers=other_headers).json() == []


def test_update_replaces_questions(client, teacher_headers):
    quiz = create_quiz(client, teacher_headers)
    new_questions = [
        {"question_type": "true-false", "question_text": "Sky is blue", "correct_answer": "1", "points": 3}
    ]
    res = client.put(
        f"/quizzes/{quiz['id']}",
        json={"title": "Renamed", "questions": new_questions},
        headers=teacher_headers,
    )
    assert res.status_code == 200
    body = res.json()
    assert body["title"] == "Renamed"
    assert len(body["questions"]) == 1
    assert body["questions"][0]["question_text"] == "Sky is blue"


def test_other_teacher_cannot_edit(client, teacher_headers):
    quiz = create_quiz(client, teacher_headers)
    _, other_headers = auth_headers(client, "other@school.test", "teacher", "Mr Other")

    res = client.put(f"/quizzes/{quiz['id']}", json={"title": "Mine now"}, headers=other_headers)
    assert res.status_code == 403
    res = client.delete(f"/quizzes/{quiz['id']}", headers=other_headers)
    assert res.status_code == 403


def test_question_add_update_delete(client, teacher_headers):
    quiz = create_quiz(client, teacher_headers)

    res = client.post(
        f"/quizzes/{quiz['id']}/questions",
        json=[{"question_type": "short-answer", "question_text": "Why?", "correct_answer": "", "points": 2}],
        headers=teacher_headers,
    )
    assert res.status_code == 201
    added = res.json()[0]
    assert added["order_index"] == 3

    res = client.patch(f"/questions/{added['id']}", json={"points": 4}, headers=teacher_headers)
    assert res.json()["points"] == 4

    first_id = quiz["questions"][0]["id"]
    assert client.delete(f"/questions/{first_id}", headers=teacher_headers).status_code == 204

    res = client.get(f"/quizzes/{quiz['id']}", headers=teacher_headers)
    assert [q["order_index"] for q in res.json()["questions"]] == [0, 1, 2]


def test_attempt_scores_and_creates_grade(client, teacher_headers, student_headers):
    quiz = create_quiz(client, teacher_headers)
    public = client.get(f"/quizzes/{quiz['id']}", headers=student_headers).json()

    res = client.post(
        f"/quizzes/{quiz['id']}/attempts",
        json={"answers": answers_for(public), "time_spent": 99999},
        headers=student_headers,
    )
    assert res.status_code == 201, res.text
    result = res.json()
    assert result["score"] == 15
    assert result["max_score"] == 20
    assert result["needs_review"] is True
    assert result["time_spent"] == 600

    grades = client.get("/me/grades", headers=student_headers).json()
    assert len(grades) == 1
    assert grades[0]["kind"] == "quiz"
    assert grades[0]["percentage"] == 75.0
    assert grades[0]["letter_grade"] == "C"


def test_second_attempt_is_rejected(client, teacher_headers, student_headers):
    quiz = create_quiz(client, teacher_headers)
    payload = {"answers": answers_for(quiz), "time_spent": 30}

    assert client.post(f"/quizzes/{quiz['id']}/attempts", json=payload, headers=student_headers).status_code == 201
    res = client.post(f"/quizzes/{quiz['id']}/attempts", json=payload, headers=student_headers)
    assert res.status_code == 409
    assert res.json()["detail"] == "You have already taken this quiz."


def test_multiple_attempts_when_allowed(client, teacher_headers, student_headers):
    quiz = create_quiz(client, teacher_headers, attempts_allowed=2)
    payload = {"answers": answers_for(quiz, mc="0"), "time_spent": 30}

    for _ in range(2):
        res = client.post(f"/quizzes/{quiz['id']}/attempts", json=payload, headers=student_headers)
        assert res.status_code == 201
    res = client.post(f"/quizzes/{quiz['id']}/attempts", json=payload, headers=student_headers)
    assert res.status_code == 409


def test_closed_quiz_rejects_attempts(client, teacher_headers, student_headers):
    quiz = create_quiz(client, teacher_headers)
    res = client.patch(f"/quizzes/{quiz['id']}/status", json={"status": "closed"}, headers=teacher_headers)
    assert res.json()["status"] == "closed"

    res = client.post(
        f"/quizzes/{quiz['id']}/attempts",
        json={"answers": answers_for(quiz)},
        headers=student_headers,
    )
    assert res.status_code == 409


def test_attempt_listing_and_review(client, teacher_headers, student, other_student):
    _, alice_headers = student
    _, bob_headers = other_student
    quiz = create_quiz(client, teacher_headers)

    client.post(f"/quizzes/{quiz['id']}/attempts", json={"answers": answers_for(quiz)}, headers=alice_headers)
    client.post(
        f"/quizzes/{quiz['id']}/attempts",
        json={"answers": answers_for(quiz, mc="0", tf="false")},
        headers=bob_headers,
    )

    teacher_view = client.get(f"/quizzes/{quiz['id']}/attempts", headers=teacher_headers).json()
    assert {a["student_name"] for a in teacher_view} == {"Alice", "Bob"}

    alice_view = client.get(f"/quizzes/{quiz['id']}/attempts", headers=alice_headers).json()
    assert len(alice_view) == 1
    assert alice_view[0]["student_email"] == "alice@school.test"

    mine = client.get("/me/attempts", headers=alice_headers).json()
    assert len(mine) == 1

    attempt_id = mine[0]["id"]
    res = client.patch(
        f"/quiz-attempts/{attempt_id}",
        json={"score": 21, "feedback": "nice"},
        headers=teacher_headers,
    )
    assert res.status_code == 400

    res = client.patch(
        f"/quiz-attempts/{attempt_id}",
        json={"score": 20, "feedback": "Good explanation"},
        headers=teacher_headers,
    )
    assert res.json()["score"] == 20

    grades = client.get(f"/quizzes/{quiz['id']}/grades", headers=teacher_headers).json()
    reviewed = [g for g in grades if g["quiz_attempt_id"] == attempt_id][0]
    assert reviewed["percentage"] == 100.0
    assert reviewed["feedback"] == "Good explanation"


def test_delete_quiz_removes_attempts_and_grades(client, teacher_headers, student_headers):
    quiz = create_quiz(client, teacher_headers)
    client.post(f"/quizzes/{quiz['id']}/attempts", json={"answers": answers_for(quiz)}, headers=student_headers)

    assert client.delete(f"/quizzes/{quiz['id']}", headers=teacher_headers).status_code == 204
    assert client.get(f"/quizzes/{quiz['id']}", headers=teacher_headers).status_code == 404
    assert client.get("/me/attempts", headers=student_headers).json() == []
    assert client.get("/me/grades", headers=student_headers).json() == []


def test_update_ignores_null_fields(client, teacher_headers):
    quiz = create_quiz(client, teacher_headers)

    for body in ({"title": None}, {"due_date": None}, {"attempts_allowed": None}):
        res = client.put(f"/quizzes/{quiz['id']}", json=body, headers=teacher_headers)
        assert res.status_code == 200, res.text

    res = client.get(f"/quizzes/{quiz['id']}", headers=teacher_headers).json()
    assert res["title"] == quiz["title"]
    assert res["due_date"] == quiz["due_date"]
    assert res["attempts_allowed"] == 1

    question_id = quiz["questions"][0]["id"]
    res = client.patch(
        f"/questions/{question_id}",
        json={"question_text": None, "points": None},
        headers=teacher_headers,
    )
    assert res.status_code == 200, res.text
    assert res.json()["question_text"] == quiz["questions"][0]["question_text"]
    assert res.json()["points"] == 10
