from conftest import past, sample_assignment


def create_assignment(client, headers, **overrides):
    res = client.post("/assignments", json=sample_assignment(**overrides), headers=headers)
    assert res.status_code == 201, res.text
    return res.json()


def submit(client, headers, assignment_id, content="My essay", attachments=None):
    return client.put(
        f"/assignments/{assignment_id}/submission",
        json={"content": content, "attachments": attachments or []},
        headers=headers,
    )


def test_assignment_crud(client, teacher_headers, student_headers):
    assignment = create_assignment(client, teacher_headers)
    assert assignment["max_points"] == 100
    assert assignment["status"] == "published"

    res = client.put(
        f"/assignments/{assignment['id']}",
        json={"title": "Essay v2", "max_points": 50},
        headers=teacher_headers,
    )
    assert res.json()["title"] == "Essay v2"
    assert res.json()["max_points"] == 50

    assert client.get(f"/assignments/{assignment['id']}", headers=student_headers).status_code == 200
    assert client.delete(f"/assignments/{assignment['id']}", headers=teacher_headers).status_code == 204
    assert client.get(f"/assignments/{assignment['id']}", headers=teacher_headers).status_code == 404


def test_drafts_hidden_from_students(client, teacher_headers, student_headers):
    draft = create_assignment(client, teacher_headers, status="draft")
    assert client.get("/assignments", headers=student_headers).json() == []
    assert client.get(f"/assignments/{draft['id']}", headers=student_headers).status_code == 404
    assert submit(client, student_headers, draft["id"]).status_code == 404


def test_submit_rejects_blank_content(client, teacher_headers, student_headers):
    assignment = create_assignment(client, teacher_headers)
    res = submit(client, student_headers, assignment["id"], content="   ")
    assert res.status_code == 400
    assert res.json()["detail"] == "Submission content cannot be empty"


def test_submit_on_time_and_resubmit(client, teacher_headers, student_headers):
    assignment = create_assignment(client, teacher_headers)

    res = submit(client, student_headers, assignment["id"], attachments=["https://files.test/essay.pdf"])
    assert res.status_code == 200
    first = res.json()
    assert first["status"] == "pending"
    assert first["attachments"] == ["https://files.test/essay.pdf"]

    res = submit(client, student_headers, assignment["id"], content="Revised essay")
    assert res.json()["id"] == first["id"]
    assert res.json()["content"] == "Revised essay"

    mine = client.get(f"/assignments/{assignment['id']}/submission", headers=student_headers)
    assert mine.json()["content"] == "Revised essay"


def test_late_submission(client, teacher_headers, student_headers):
    assignment = create_assignment(client, teacher_headers, due_date=past())
    res = submit(client, student_headers, assignment["id"])
    assert res.json()["status"] == "late"


def test_no_submission_yet(client, teacher_headers, student_headers):
    assignment = create_assignment(client, teacher_headers)
    res = client.get(f"/assignments/{assignment['id']}/submission", headers=student_headers)
    assert res.status_code == 404
    assert res.json()["detail"] == "No submission yet"


def test_grading_flow(client, teacher_headers, student_headers):
    assignment = create_assignment(client, teacher_headers)
    submission = submit(client, student_headers, assignment["id"]).json()

    listed = client.get(f"/assignments/{assignment['id']}/submissions", headers=teacher_headers).json()
    assert listed[0]["student_name"] == "Alice"
    assert listed[0]["student_email"] == "alice@school.test"

    res = client.post(f"/submissions/{submission['id']}/grade", json={"points": 101}, headers=teacher_headers)
    assert res.status_code == 400

    res = client.post(
        f"/submissions/{submission['id']}/grade",
        json={"points": 85, "feedback": "Well argued"},
        headers=teacher_headers,
    )
    assert res.status_code == 200
    graded = res.json()
    assert graded["status"] == "graded"
    assert graded["points"] == 85
    assert graded["max_points"] == 100

    # graded work is locked
    assert submit(client, student_headers, assignment["id"], content="Sneaky edit").status_code == 409

    grades = client.get(f"/assignments/{assignment['id']}/grades", headers=teacher_headers).json()
    assert len(grades) == 1
    assert grades[0]["letter_grade"] == "B"
    assert grades[0]["feedback"] == "Well argued"

    mine = client.get("/me/submissions", headers=student_headers).json()
    assert mine[0]["assignment_title"] == "Essay on photosynthesis"
    assert mine[0]["assignment_max_points"] == 100


def test_regrading_keeps_one_grade_row(client, teacher_headers, student_headers):
    assignment = create_assignment(client, teacher_headers)
    submission = submit(client, student_headers, assignment["id"]).json()

    client.post(f"/submissions/{submission['id']}/grade", json={"points": 40}, headers=teacher_headers)
    client.post(f"/submissions/{submission['id']}/grade", json={"points": 95}, headers=teacher_headers)

    grades = client.get("/me/grades", headers=student_headers).json()
    assert len(grades) == 1
    assert grades[0]["points"] == 95
    assert grades[0]["letter_grade"] == "A"


def test_students_cannot_grade(client, teacher_headers, student_headers):
    assignment = create_assignment(client, teacher_headers)
    submission = submit(client, student_headers, assignment["id"]).json()
    res = client.post(f"/submissions/{submission['id']}/grade", json={"points": 100}, headers=student_headers)
    assert res.status_code == 403


def test_update_ignores_null_fields(client, teacher_headers):
    assignment = create_assignment(client, teacher_headers)

    for body in ({"title": None}, {"due_date": None}, {"max_points": None}):
        res = client.put(f"/assignments/{assignment['id']}", json=body, headers=teacher_headers)
        assert res.status_code == 200, res.text

    res = client.get(f"/assignments/{assignment['id']}", headers=teacher_headers).json()
    assert res["title"] == assignment["title"]
    assert res["due_date"] == assignment["due_date"]
    assert res["max_points"] == 100


def test_delete_assignment_removes_submissions_and_grades(client, teacher_headers, student_headers):
    assignment = create_assignment(client, teacher_headers)
    submission = submit(client, student_headers, assignment["id"]).json()
    client.post(f"/submissions/{submission['id']}/grade", json={"points": 70}, headers=teacher_headers)
    assert len(client.get("/me/grades", headers=student_headers).json()) == 1

    assert client.delete(f"/assignments/{assignment['id']}", headers=teacher_headers).status_code == 204

    assert client.get("/me/grades", headers=student_headers).json() == []
    assert client.get("/me/submissions", headers=student_headers).json() == []
    assert client.get("/grades", headers=teacher_headers).json() == []
