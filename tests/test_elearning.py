from __future__ import annotations

import json
from types import SimpleNamespace
from uuid import uuid4

import pytest

from shieldcuisine_api.services.elearning import progress_percent, score_answers


@pytest.mark.parametrize(
    "done, total, expected",
    [(0, 3, 0), (1, 3, 33), (2, 3, 66), (3, 3, 100), (0, 0, 0), (199, 200, 99), (200, 200, 100)],
)
def test_progress_percent(done, total, expected):
    assert progress_percent(done, total) == expected


async def _course_with_lessons(client, headers, n: int = 2) -> dict:
    course = await client.post(
        "/api/e-learning/courses",
        json={"title": "Manipulador de alimentos", "category": "higiene", "is_published": True},
        headers=headers,
    )
    assert course.status_code == 201, course.text
    lessons = []
    for i in range(n):
        res = await client.post(
            f"/api/e-learning/courses/{course.json()['id']}/lessons",
            json={"title": f"Lección {i + 1}", "content": "..."},
            headers=headers,
        )
        assert res.status_code == 201, res.text
        lessons.append(res.json())
    return {**course.json(), "lessons": lessons}


async def _enroll(client, course, headers) -> dict:
    res = await client.post(f"/api/e-learning/courses/{course['id']}/enroll", headers=headers)
    assert res.status_code == 200, res.text
    return res.json()


async def test_lessons_are_appended_in_order(client, admin_headers):
    course = await _course_with_lessons(client, admin_headers, n=3)
    assert [lesson["order_index"] for lesson in course["lessons"]] == [0, 1, 2]

    detail = await client.get(f"/api/e-learning/courses/{course['id']}", headers=admin_headers)
    assert [lesson["title"] for lesson in detail.json()["lessons"]] == ["Lección 1", "Lección 2", "Lección 3"]


async def test_enrolling_twice_returns_same_enrollment(client, admin_headers, staff_headers):
    course = await _course_with_lessons(client, admin_headers)
    first = await client.post(f"/api/e-learning/courses/{course['id']}/enroll", headers=staff_headers)
    second = await client.post(f"/api/e-learning/courses/{course['id']}/enroll", headers=staff_headers)
    assert first.status_code == 200
    assert first.json()["id"] == second.json()["id"]
    assert first.json()["status"] == "enrolled"
    assert first.json()["progress"] == 0


async def test_completing_every_lesson_completes_the_course(client, admin_headers, staff_headers):
    course = await _course_with_lessons(client, admin_headers)
    first, second = course["lessons"]
    await _enroll(client, course, staff_headers)

    res = await client.post(f"/api/e-learning/lessons/{first['id']}/complete", headers=staff_headers)
    assert res.status_code == 200
    assert res.json()["progress"] == 50
    assert res.json()["status"] == "enrolled"

    # Completing the same lesson again changes nothing
    again = await client.post(f"/api/e-learning/lessons/{first['id']}/complete", headers=staff_headers)
    assert again.json()["progress"] == 50

    done = await client.post(f"/api/e-learning/lessons/{second['id']}/complete", headers=staff_headers)
    assert done.json()["progress"] == 100
    assert done.json()["status"] == "completed"
    assert done.json()["completed_at"] is not None

    inbox = await client.get("/api/notifications", headers=staff_headers)
    assert [n["type"] for n in inbox.json()["items"]] == ["learning"]

    mine = await client.get("/api/e-learning/my-enrollments", headers=staff_headers)
    assert len(mine.json()) == 1
    assert mine.json()[0]["course"]["title"] == "Manipulador de alimentos"
    assert sorted(mine.json()[0]["completed_lessons"]) == sorted([first["id"], second["id"]])


async def test_learning_notifications_can_be_disabled(client, admin_headers, staff_headers):
    await client.put(
        "/api/notification-preferences", json={"learning_notifications": False}, headers=staff_headers
    )
    course = await _course_with_lessons(client, admin_headers, n=1)
    await _enroll(client, course, staff_headers)
    res = await client.post(f"/api/e-learning/lessons/{course['lessons'][0]['id']}/complete", headers=staff_headers)
    assert res.json()["status"] == "completed"

    inbox = await client.get("/api/notifications", headers=staff_headers)
    assert inbox.json()["total"] == 0


async def test_deleting_a_course_removes_enrollments(client, admin_headers, staff_headers):
    course = await _course_with_lessons(client, admin_headers)
    await _enroll(client, course, staff_headers)
    await client.post(f"/api/e-learning/lessons/{course['lessons'][0]['id']}/complete", headers=staff_headers)

    res = await client.delete(f"/api/e-learning/courses/{course['id']}", headers=admin_headers)
    assert res.status_code == 200
    assert (await client.get("/api/e-learning/my-enrollments", headers=staff_headers)).json() == []
    assert (await client.get(f"/api/e-learning/courses/{course['id']}", headers=admin_headers)).status_code == 404


async def test_unenroll(client, admin_headers, staff_headers):
    course = await _course_with_lessons(client, admin_headers)
    missing = await client.delete(f"/api/e-learning/courses/{course['id']}/enroll", headers=staff_headers)
    assert missing.status_code == 404

    await client.post(f"/api/e-learning/courses/{course['id']}/enroll", headers=staff_headers)
    res = await client.delete(f"/api/e-learning/courses/{course['id']}/enroll", headers=staff_headers)
    assert res.status_code == 200


async def test_only_managers_author_courses(client, staff_headers):
    res = await client.post("/api/e-learning/courses", json={"title": "Curso"}, headers=staff_headers)
    assert res.status_code == 403


def test_score_answers_weights_points():
    first, second = uuid4(), uuid4()
    options = [{"text": "Sí", "is_correct": True}, {"text": "No", "is_correct": False}]
    questions = [
        SimpleNamespace(id=first, options=options, points=1),
        SimpleNamespace(id=second, options=options, points=3),
    ]
    assert score_answers(questions, {first: 0, second: 0}) == (100, 2)
    assert score_answers(questions, {second: 0}) == (75, 1)
    assert score_answers(questions, {first: 0, second: 1}) == (25, 1)
    # Out of range choices earn nothing
    assert score_answers(questions, {first: 7, second: -1}) == (0, 0)


async def test_completing_a_lesson_requires_enrollment(client, admin_headers, staff_headers):
    course = await _course_with_lessons(client, admin_headers, n=1)
    res = await client.post(f"/api/e-learning/lessons/{course['lessons'][0]['id']}/complete", headers=staff_headers)
    assert res.status_code == 403
    assert res.json()["error"]["type"] == "forbidden"
    assert res.json()["message"] == "No tienes acceso a este curso"
    assert (await client.get("/api/e-learning/my-enrollments", headers=staff_headers)).json() == []

    progress = await client.get(f"/api/e-learning/courses/{course['id']}/progress", headers=staff_headers)
    assert progress.status_code == 403


async def test_course_completion_issues_a_certificate(client, admin_headers, staff_headers):
    course = await _course_with_lessons(client, admin_headers)
    await _enroll(client, course, staff_headers)
    first, second = course["lessons"]

    await client.post(f"/api/e-learning/lessons/{first['id']}/complete", headers=staff_headers)
    partial = await client.get(f"/api/e-learning/courses/{course['id']}/progress", headers=staff_headers)
    assert partial.json()["course_progress"] == 50
    assert partial.json()["completed_lesson_ids"] == [first["id"]]
    assert (await client.get("/api/e-learning/my-certificates", headers=staff_headers)).json() == []

    await client.post(f"/api/e-learning/lessons/{second['id']}/complete", headers=staff_headers)
    await client.post(f"/api/e-learning/lessons/{second['id']}/complete", headers=staff_headers)

    progress = (await client.get(f"/api/e-learning/courses/{course['id']}/progress", headers=staff_headers)).json()
    assert progress["status"] == "completed"
    assert progress["course_progress"] == 100
    assert (progress["completed_lessons"], progress["total_lessons"]) == (2, 2)

    certificates = (await client.get("/api/e-learning/my-certificates", headers=staff_headers)).json()
    assert len(certificates) == 1
    code = certificates[0]["code"]
    assert code.startswith("SC-")

    detail = await client.get(f"/api/e-learning/certificates/{code}", headers=admin_headers)
    assert detail.status_code == 200
    assert detail.json()["course_title"] == "Manipulador de alimentos"
    assert detail.json()["holder_name"]

    inbox = (await client.get("/api/notifications", headers=staff_headers)).json()
    assert inbox["items"][0]["link"] == f"/e-learning/certificates/{code}"

    missing = await client.get("/api/e-learning/certificates/SC-NOPE", headers=staff_headers)
    assert missing.status_code == 404
    assert missing.json()["message"] == "Certificado no encontrado"


async def test_course_enrollments_are_listed_for_managers(client, admin_headers, staff_headers):
    course = await _course_with_lessons(client, admin_headers, n=1)
    staff_enrollment = await _enroll(client, course, staff_headers)

    res = await client.get(f"/api/e-learning/courses/{course['id']}/enrollments", headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["total"] == 1
    assert res.json()["items"][0]["id"] == staff_enrollment["id"]

    denied = await client.get(f"/api/e-learning/courses/{course['id']}/enrollments", headers=staff_headers)
    assert denied.status_code == 403


# Modules

async def test_modules_group_lessons(client, admin_headers, staff_headers):
    course = await _course_with_lessons(client, admin_headers, n=0)
    base = f"/api/e-learning/courses/{course['id']}"
    basics = (await client.post(f"{base}/modules", json={"title": "Higiene básica"}, headers=admin_headers)).json()
    allergens = (await client.post(f"{base}/modules", json={"title": "Alérgenos"}, headers=admin_headers)).json()
    assert (basics["order_index"], allergens["order_index"]) == (0, 1)

    lesson = await client.post(
        f"{base}/lessons", json={"title": "Lavado de manos", "module_id": basics["id"]}, headers=admin_headers
    )
    assert lesson.status_code == 201
    assert lesson.json()["module_id"] == basics["id"]

    detail = await client.get(f"/api/e-learning/modules/{basics['id']}", headers=staff_headers)
    assert [item["title"] for item in detail.json()["lessons"]] == ["Lavado de manos"]
    listed = await client.get(f"{base}/modules", headers=staff_headers)
    assert [m["title"] for m in listed.json()] == ["Higiene básica", "Alérgenos"]

    res = await client.delete(f"/api/e-learning/modules/{basics['id']}", headers=admin_headers)
    assert res.status_code == 200
    lessons = (await client.get(f"{base}/lessons", headers=staff_headers)).json()
    assert lessons[0]["module_id"] is None


async def test_lesson_module_must_belong_to_the_course(client, admin_headers):
    first = await _course_with_lessons(client, admin_headers, n=0)
    other = await _course_with_lessons(client, admin_headers, n=0)
    module = (
        await client.post(f"/api/e-learning/courses/{other['id']}/modules", json={"title": "M"}, headers=admin_headers)
    ).json()

    res = await client.post(
        f"/api/e-learning/courses/{first['id']}/lessons",
        json={"title": "Lección", "module_id": module["id"]},
        headers=admin_headers,
    )
    assert res.status_code == 400
    assert res.json()["error"]["type"] == "validation_failed"


# Quizzes

QUESTIONS = [
    {
        "question": "¿A qué temperatura se conservan los refrigerados?",
        "options": [{"text": "Entre 0 y 5 °C", "is_correct": True}, {"text": "A 12 °C"}],
        "points": 1,
    },
    {
        "question": "¿Cuántos alérgenos de declaración obligatoria hay en la UE?",
        "options": [{"text": "8"}, {"text": "14", "is_correct": True}, {"text": "20"}],
        "explanation": "Reglamento (UE) 1169/2011",
        "points": 3,
    },
]


async def _quiz(client, headers, course, passing_score: int = 70) -> dict:
    quiz = await client.post(
        f"/api/e-learning/courses/{course['id']}/quizzes",
        json={"title": "Evaluación final", "passing_score": passing_score},
        headers=headers,
    )
    assert quiz.status_code == 201, quiz.text
    questions = []
    for body in QUESTIONS:
        res = await client.post(f"/api/e-learning/quizzes/{quiz.json()['id']}/questions", json=body, headers=headers)
        assert res.status_code == 201, res.text
        questions.append(res.json())
    return {**quiz.json(), "questions": questions}


@pytest.mark.parametrize(
    "options",
    [
        [{"text": "Única", "is_correct": True}],
        [{"text": "A"}, {"text": "B"}],
    ],
)
async def test_question_needs_two_options_and_a_correct_one(client, admin_headers, options):
    course = await _course_with_lessons(client, admin_headers, n=0)
    quiz = await _quiz(client, admin_headers, course)
    res = await client.post(
        f"/api/e-learning/quizzes/{quiz['id']}/questions",
        json={"question": "¿?", "options": options},
        headers=admin_headers,
    )
    assert res.status_code == 422


async def test_learners_do_not_see_correct_answers(client, admin_headers, staff_headers):
    course = await _course_with_lessons(client, admin_headers, n=0)
    quiz = await _quiz(client, admin_headers, course)

    public = (await client.get(f"/api/e-learning/quizzes/{quiz['id']}", headers=staff_headers)).json()
    assert [q["options"] for q in public["questions"]] == [["Entre 0 y 5 °C", "A 12 °C"], ["8", "14", "20"]]
    assert "explanation" not in public["questions"][1]

    assert (await client.get(f"/api/e-learning/quizzes/{quiz['id']}/questions", headers=staff_headers)).status_code == 403
    full = (await client.get(f"/api/e-learning/quizzes/{quiz['id']}/questions", headers=admin_headers)).json()
    assert full[1]["options"][1] == {"text": "14", "is_correct": True}


async def test_quiz_submission_is_scored_by_points(client, admin_headers, staff_headers):
    course = await _course_with_lessons(client, admin_headers, n=1)
    quiz = await _quiz(client, admin_headers, course)
    first, second = quiz["questions"]
    url = f"/api/e-learning/quizzes/{quiz['id']}/submit"

    denied = await client.post(url, json={"answers": {first["id"]: 0}}, headers=staff_headers)
    assert denied.status_code == 403

    await _enroll(client, course, staff_headers)
    failed = await client.post(url, json={"answers": {first["id"]: 0, second["id"]: 0}}, headers=staff_headers)
    assert failed.status_code == 200
    assert failed.json()["score"] == 25
    assert failed.json()["passed"] is False
    assert (failed.json()["correct_answers"], failed.json()["total_questions"]) == (1, 2)

    passed = await client.post(url, json={"answers": {second["id"]: 1}}, headers=staff_headers)
    assert passed.json()["score"] == 75
    assert passed.json()["passed"] is True

    progress = (await client.get(f"/api/e-learning/courses/{course['id']}/progress", headers=staff_headers)).json()
    assert progress["passed_quizzes"] == [quiz["id"]]


async def test_quiz_without_questions_cannot_be_submitted(client, admin_headers, staff_headers):
    course = await _course_with_lessons(client, admin_headers, n=0)
    quiz = await client.post(
        f"/api/e-learning/courses/{course['id']}/quizzes", json={"title": "Vacía"}, headers=admin_headers
    )
    await _enroll(client, course, staff_headers)
    res = await client.post(f"/api/e-learning/quizzes/{quiz.json()['id']}/submit", json={}, headers=staff_headers)
    assert res.status_code == 400


async def test_deleting_a_quiz_removes_its_questions(client, admin_headers):
    course = await _course_with_lessons(client, admin_headers, n=0)
    quiz = await _quiz(client, admin_headers, course)
    edited = await client.patch(
        f"/api/e-learning/questions/{quiz['questions'][0]['id']}", json={"points": 2}, headers=admin_headers
    )
    assert edited.json()["points"] == 2

    res = await client.delete(f"/api/e-learning/quizzes/{quiz['id']}", headers=admin_headers)
    assert res.status_code == 200
    assert (await client.get(f"/api/e-learning/quizzes/{quiz['id']}", headers=admin_headers)).status_code == 404
    for question in quiz["questions"]:
        gone = await client.patch(f"/api/e-learning/questions/{question['id']}", json={"points": 1}, headers=admin_headers)
        assert gone.status_code == 404


async def test_deleting_a_course_removes_its_content(client, admin_headers, staff_headers):
    course = await _course_with_lessons(client, admin_headers, n=1)
    module = (
        await client.post(f"/api/e-learning/courses/{course['id']}/modules", json={"title": "M"}, headers=admin_headers)
    ).json()
    quiz = await _quiz(client, admin_headers, course)
    await _enroll(client, course, staff_headers)
    await client.post(f"/api/e-learning/quizzes/{quiz['id']}/submit", json={"answers": {}}, headers=staff_headers)
    await client.post(f"/api/e-learning/lessons/{course['lessons'][0]['id']}/complete", headers=staff_headers)

    res = await client.delete(f"/api/e-learning/courses/{course['id']}", headers=admin_headers)
    assert res.status_code == 200
    assert (await client.get(f"/api/e-learning/modules/{module['id']}", headers=admin_headers)).status_code == 404
    assert (await client.get(f"/api/e-learning/quizzes/{quiz['id']}", headers=admin_headers)).status_code == 404
    assert (await client.get("/api/e-learning/my-certificates", headers=staff_headers)).json() == []


# AI authoring

async def test_generate_lesson_draft(client, admin_headers, ai_registry):
    course = await _course_with_lessons(client, admin_headers, n=0)
    provider = ai_registry.get("openai")
    provider.content = json.dumps({"content": "<h2>Lavado de manos</h2><p>...</p>", "durationMinutes": "15"})

    res = await client.post(
        "/api/e-learning/ai/generate-lesson",
        json={"course_id": course["id"], "title": "Lavado de manos", "prompt": "Pasos y frecuencia"},
        headers=admin_headers,
    )
    assert res.status_code == 200, res.text
    assert res.json()["content"].startswith("<h2>")
    assert res.json()["duration_minutes"] == 15
    prompt = provider.payloads[-1]["messages"][1]["content"]
    assert "Manipulador de alimentos" in prompt
    assert "Pasos y frecuencia" in prompt

    provider.content = json.dumps({"durationMinutes": 15})
    bad = await client.post(
        "/api/e-learning/ai/generate-lesson",
        json={"course_id": course["id"], "title": "Lavado de manos", "prompt": "Pasos"},
        headers=admin_headers,
    )
    assert bad.status_code == 502
    assert bad.json()["error"]["type"] == "upstream_error"


async def test_generate_lesson_is_for_managers(client, admin_headers, staff_headers):
    course = await _course_with_lessons(client, admin_headers, n=0)
    res = await client.post(
        "/api/e-learning/ai/generate-lesson",
        json={"course_id": course["id"], "title": "T", "prompt": "P"},
        headers=staff_headers,
    )
    assert res.status_code == 403


async def test_generate_quiz_questions_drafts(client, admin_headers, ai_registry):
    course = await _course_with_lessons(client, admin_headers, n=0)
    quiz = await _quiz(client, admin_headers, course)
    provider = ai_registry.get("openai")
    question = {
        "question": "¿Qué indica el color rojo en las tablas de corte?",
        "options": [{"text": "Carne cruda", "isCorrect": True}, {"text": "Verduras", "isCorrect": False}],
        "explanation": "Código de colores",
    }
    provider.content = json.dumps({"questions": [question, question, question]})

    res = await client.post(
        "/api/e-learning/ai/generate-quiz-questions",
        json={"quiz_id": quiz["id"], "topic": "Contaminación cruzada", "number_of_questions": 2},
        headers=admin_headers,
    )
    assert res.status_code == 200, res.text
    drafts = res.json()["questions"]
    assert len(drafts) == 2
    assert drafts[0]["options"][0] == {"text": "Carne cruda", "is_correct": True}
    assert drafts[0]["points"] == 1
    # Drafts are not saved
    saved = await client.get(f"/api/e-learning/quizzes/{quiz['id']}/questions", headers=admin_headers)
    assert len(saved.json()) == len(QUESTIONS)

    provider.content = json.dumps({"questions": [{"question": "¿?", "options": [{"text": "Sola"}]}]})
    bad = await client.post(
        "/api/e-learning/ai/generate-quiz-questions",
        json={"quiz_id": quiz["id"], "topic": "Contaminación cruzada"},
        headers=admin_headers,
    )
    assert bad.status_code == 502
