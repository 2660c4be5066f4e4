"""
Integration tests for API endpoints
"""
import io
import json
from unittest.mock import patch

from docx import Document

from studysets import config
from studysets.main import app
from studysets.services.documents import DOCX_TYPE
from studysets.services.llm import get_llm
from tests.fakes import make_questions, wrapped

NOTES = ("Mitochondria are the powerhouse of the cell. " * 40).encode()


def create_study_set(client, name="Biology"):
    response = client.post("/api/study-sets", params={"name": name})
    assert response.status_code == 200
    return response.json()["id"]


def generate(client, files=None, **data):
    return client.post("/api/generate-quiz", data=data, files=files)


class TestHealthEndpoints:
    def test_health_check(self, client):
        """Test health check endpoint"""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert "status" in data
        assert "timestamp" in data
        assert set(data["checks"]) == {"database", "cache", "llm"}

    def test_metrics_endpoint(self, client):
        """Test metrics endpoint"""
        response = client.get("/metrics")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "ai_generation_requests_total" in response.text

    def test_request_id_echoed(self, client):
        response = client.get("/api/study-sets", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"
        assert "X-Process-Time" in response.headers


class TestGenerateQuiz:
    def test_missing_study_set_id(self, client):
        """Study set id is checked before anything else"""
        response = generate(client, fileContent="Some notes")
        assert response.status_code == 400
        assert response.json() == {"error": "Study set ID is required"}

    def test_no_content(self, client):
        response = generate(client, studySetId="1")
        assert response.status_code == 400
        assert "error" in response.json()

    def test_generate_from_text_content(self, client, fake_llm):
        study_set_id = create_study_set(client)
        fake_llm.responses = [wrapped(make_questions(3))]

        response = generate(client, studySetId=str(study_set_id), numQuestions="3", fileContent="Cells and HTTP")
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Quiz generated successfully", "count": 3}

        questions = client.get(f"/api/study-sets/{study_set_id}/questions").json()
        assert len(questions) == 3
        assert all(q["answer"] in q["options"] for q in questions)

    def test_generate_from_uploaded_file(self, client, fake_llm):
        study_set_id = create_study_set(client)
        fake_llm.responses = [wrapped(make_questions(5))]

        response = generate(
            client,
            files={"file": ("notes.txt", NOTES, "text/plain")},
            studySetId=str(study_set_id),
        )
        assert response.status_code == 200
        assert response.json()["count"] == 5
        assert fake_llm.content_lengths == [len(NOTES.decode().strip())]

    def test_num_questions_clamped(self, client, fake_llm):
        study_set_id = create_study_set(client)
        fake_llm.responses = [wrapped(make_questions(60))]

        response = generate(client, studySetId=str(study_set_id), numQuestions="500", fileContent="notes")
        assert response.json()["count"] == 50

    def test_exhausted_generation(self, client, fake_llm):
        study_set_id = create_study_set(client)
        fake_llm.responses = [wrapped([]), wrapped([]), wrapped([])]

        response = generate(client, studySetId=str(study_set_id), fileContent="notes")
        assert response.status_code == 500
        assert response.json() == {"error": "Failed to generate quiz after multiple attempts"}
        assert client.get(f"/api/study-sets/{study_set_id}/questions").json() == []

    def test_unknown_study_set_rejected(self, client, fake_llm):
        """An unknown study set is rejected before any model call"""
        fake_llm.responses = [wrapped(make_questions(3))]

        response = generate(client, studySetId="999", numQuestions="3", fileContent="notes")
        assert response.status_code == 404
        assert response.json() == {"error": "Study set not found"}
        assert fake_llm.content_lengths == []
        assert client.get("/api/categories").json() == []

    def test_unconfigured_llm(self, client):
        app.dependency_overrides.pop(get_llm)
        with patch.object(config, "OPENAI_API_KEY", ""):
            response = generate(client, studySetId="1", fileContent="notes")
        assert response.status_code == 503
        assert "error" in response.json()

    def test_image_url_uses_vision(self, client, fake_llm):
        study_set_id = create_study_set(client)
        fake_llm.vision_responses = [wrapped(make_questions(2))]

        response = generate(
            client,
            studySetId=str(study_set_id),
            numQuestions="2",
            fileType="image/png",
            fileName="slide.png",
            fileUrl="https://storage.example.com/slide.png",
        )
        assert response.status_code == 200
        assert response.json()["message"] == "Quiz generated successfully from image"
        assert fake_llm.image_urls == ["https://storage.example.com/slide.png"]


class TestGenerateName:
    def test_office_document_uses_file_name(self, client):
        buf = io.BytesIO()
        Document().save(buf)
        response = client.post(
            "/api/generate-name", files={"file": ("Week 3 Lecture.docx", buf.getvalue(), DOCX_TYPE)}
        )
        assert response.json() == {"name": "Week 3 Lecture"}

    def test_text_document_named_by_llm(self, client, fake_llm):
        response = client.post("/api/generate-name", files={"file": ("notes.txt", NOTES, "text/plain")})
        assert response.json() == {"name": fake_llm.name}

    def test_short_text_gets_dated_name(self, client):
        response = client.post("/api/generate-name", files={"file": ("notes.txt", b"tiny", "text/plain")})
        assert response.json()["name"].startswith("Study Set - ")

    def test_image_with_url_named_by_vision(self, client, fake_llm):
        response = client.post(
            "/api/generate-name",
            files={"file": ("board.jpg", b"\xff\xd8\xff", "image/jpeg")},
            data={"fileUrl": "https://storage.example.com/board.jpg"},
        )
        assert response.json() == {"name": fake_llm.name}
        assert fake_llm.image_urls == ["https://storage.example.com/board.jpg"]

    def test_missing_file(self, client):
        assert client.post("/api/generate-name").status_code == 400


class TestStudySetEndpoints:
    def test_crud(self, client):
        study_set_id = create_study_set(client, "Draft")

        assert any(s["id"] == study_set_id for s in client.get("/api/study-sets").json())

        renamed = client.patch(f"/api/study-sets/{study_set_id}", params={"name": "Final"})
        assert renamed.json()["name"] == "Final"

        detail = client.get(f"/api/study-sets/{study_set_id}").json()
        assert detail["name"] == "Final"
        assert detail["question_count"] == 0

        assert client.delete(f"/api/study-sets/{study_set_id}").status_code == 200
        assert client.get(f"/api/study-sets/{study_set_id}").status_code == 404

    def test_unknown_study_set(self, client):
        assert client.get("/api/study-sets/999").status_code == 404
        assert client.delete("/api/study-sets/999").status_code == 404
        assert client.get("/api/study-sets/999/questions").status_code == 404

    def test_unlink_question(self, client, fake_llm):
        study_set_id = create_study_set(client)
        fake_llm.responses = [wrapped(make_questions(2))]
        generate(client, studySetId=str(study_set_id), numQuestions="2", fileContent="notes")

        question_id = client.get(f"/api/study-sets/{study_set_id}/questions").json()[0]["id"]
        response = client.delete(f"/api/study-sets/{study_set_id}/questions/{question_id}")
        assert response.status_code == 200
        assert len(client.get(f"/api/study-sets/{study_set_id}/questions").json()) == 1
        assert client.delete(f"/api/study-sets/{study_set_id}/questions/{question_id}").status_code == 404

    def test_materials(self, client):
        study_set_id = create_study_set(client)
        created = client.post(
            f"/api/study-sets/{study_set_id}/materials",
            params={"file_path": "uploads/notes.pdf", "file_name": "notes.pdf", "file_type": "application/pdf"},
        ).json()

        listed = client.get(f"/api/study-sets/{study_set_id}/materials").json()
        assert [m["file_name"] for m in listed] == ["notes.pdf"]

        assert client.delete(f"/api/study-sets/{study_set_id}/materials/{created['id']}").status_code == 200
        assert client.get(f"/api/study-sets/{study_set_id}/materials").json() == []


class TestCategoryEndpoints:
    def test_categories_and_questions(self, client, fake_llm):
        study_set_id = create_study_set(client)
        fake_llm.responses = [wrapped(make_questions(2))]
        generate(client, studySetId=str(study_set_id), numQuestions="2", fileContent="notes")

        categories = client.get("/api/categories").json()
        assert categories[0]["name"] == "Web Protocols"
        assert categories[0]["question_count"] == 2
        assert categories[0]["subject"] == fake_llm.subject

        body = client.get("/api/categories/Web Protocols/questions").json()
        assert body["count"] == 2
        assert all(q["category"] == "Web Protocols" for q in body["questions"])


class TestScoreEndpoints:
    def test_record_and_read_scores(self, client):
        study_set_id = create_study_set(client)
        for correct in ("true", "false", "true"):
            response = client.post(
                "/api/scores/answer",
                params={"category": "Optics", "isCorrect": correct, "studySetId": study_set_id},
            )
            assert response.status_code == 200

        score = client.get(f"/api/scores/study-sets/{study_set_id}").json()
        assert (score["questions_right"], score["questions_solved"]) == (2, 3)
        assert score["percentage"] == 66.7

        categories = client.get("/api/scores/categories", params={"names": "Optics,Acoustics"}).json()
        assert categories == [
            {"category_name": "Optics", "questions_right": 2, "questions_solved": 3, "percentage": 66.7}
        ]

    def test_answer_for_unknown_study_set(self, client):
        response = client.post(
            "/api/scores/answer", params={"category": "Optics", "isCorrect": "true", "studySetId": 404}
        )
        assert response.status_code == 404

    def test_unscored_study_set_reads_zero(self, client):
        score = client.get("/api/scores/study-sets/12").json()
        assert score["questions_solved"] == 0
        assert score["percentage"] == 0.0

    def test_overall_stats_adds_placeholders(self, client, fake_llm):
        study_set_id = create_study_set(client, "Networking")
        fake_llm.responses = [wrapped(make_questions(1))]
        generate(client, studySetId=str(study_set_id), numQuestions="1", fileContent="notes")
        client.post("/api/scores/answer", params={"category": "Optics", "isCorrect": "true", "studySetId": study_set_id})

        stats = client.get("/api/stats").json()
        names = {c["category_name"] for c in stats["categories"]}
        assert names == {"Optics", "Web Protocols"}
        assert stats["study_sets"][0]["name"] == "Networking"
        assert stats["total_solved"] == 1
        assert stats["overall_percentage"] == 100.0
        assert json.dumps(stats)
