"""
HTTP 接口测试
使用 TestClient，数据库和渲染服务通过 dependency_overrides 注入
"""
import pytest
import sys
import os
from datetime import datetime, timedelta

import httpx
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from conftest import NOW, make_renderer_payload
from courseware.api.questions import get_renderer
from courseware.core.clock import utcnow
from courseware.core.database import get_db
from courseware.models import CourseTopicContent
from courseware.renderer import RendererClient


@pytest.fixture
def client(db):
    from main import app

    def override_db():
        yield db

    def override_renderer():
        def handler(request):
            return httpx.Response(200, json=make_renderer_payload(score=0.5))
        return RendererClient(base_url="http://renderer.test", transport=httpx.MockTransport(handler))

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_renderer] = override_renderer
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def course_payload(instructor_id, code="API101"):
    return {
        "name": "API Course",
        "code": code,
        "start": NOW.isoformat(),
        "end": NOW.replace(year=NOW.year + 1).isoformat(),
        "instructor_id": instructor_id,
    }


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestCourseRoutes:
    """测试课程接口和异常映射"""

    def test_create_and_get(self, client, factory):
        professor = factory.user(role="professor")

        created = client.post("/api/courses", json=course_payload(professor.id))
        assert created.status_code == 201
        course_id = created.json()["id"]

        fetched = client.get(f"/api/courses/{course_id}")
        assert fetched.status_code == 200
        assert fetched.json()["units"] == []

        by_code = client.get("/api/courses/code/API101")
        assert by_code.json()["id"] == course_id

    def test_duplicate_code_is_conflict(self, client, factory):
        professor = factory.user(role="professor")
        client.post("/api/courses", json=course_payload(professor.id))

        response = client.post("/api/courses", json=course_payload(professor.id))

        assert response.status_code == 409
        assert response.json()["detail"] == "A course already exists with this course code"

    def test_missing_course_is_not_found(self, client):
        assert client.get("/api/courses/999").status_code == 404

    def test_enroll_by_code(self, client, factory):
        course = factory.course(code="JOINME")
        student = factory.user()

        response = client.post("/api/courses/enroll", json={"code": "JOINME", "user_id": student.id})

        assert response.status_code == 201
        assert response.json()["course_id"] == course.id

        again = client.post(f"/api/courses/{course.id}/enroll", json={"user_id": student.id})
        assert again.status_code == 409


class TestContentRoutes:
    """测试内容接口"""

    def test_unit_lifecycle(self, client, factory):
        course = factory.course()
        for name in ("A", "B", "C"):
            assert client.post("/api/units", json={"course_id": course.id, "name": name}).status_code == 201

        tree = client.get(f"/api/courses/{course.id}").json()
        unit_ids = [u["id"] for u in tree["units"]]

        moved = client.put(f"/api/units/{unit_ids[0]}", json={"content_order": 3})
        assert moved.json()["content_order"] == 3

        deleted = client.delete(f"/api/units/{unit_ids[1]}")
        assert deleted.json() == {"deleted": 1}

        tree = client.get(f"/api/courses/{course.id}").json()
        assert [(u["name"], u["content_order"]) for u in tree["units"]] == [("C", 1), ("A", 2)]

        assert client.delete(f"/api/units/{unit_ids[1]}").status_code == 404

    def test_topic_dates_stored_as_utc(self, client, db, factory):
        unit = factory.unit(factory.course(), 1)

        created = client.post("/api/topics", json={
            "unit_id": unit.id,
            "name": "Week 1",
            "start_date": "2026-03-01T08:00:00+08:00",
            "end_date": "2026-03-07T00:00:00+08:00",
            "dead_date": "2026-03-10T00:00:00",
        })

        assert created.status_code == 201
        topic = db.get(CourseTopicContent, created.json()["id"])
        assert topic.start_date == datetime(2026, 3, 1, 0, 0)
        assert topic.end_date == datetime(2026, 3, 6, 16, 0)
        assert topic.dead_date == datetime(2026, 3, 10, 0, 0)

        updated = client.put(f"/api/topics/{topic.id}", json={"end_date": "2026-03-08T12:00:00-05:00"})
        assert updated.json()["end_date"] == "2026-03-08T17:00:00"

    def test_order_gap_is_bad_request(self, client, factory):
        course = factory.course()
        response = client.post("/api/units", json={"course_id": course.id, "name": "X", "content_order": 9})
        assert response.status_code == 400


class TestGradingRoutes:
    """测试作答和统计接口"""

    def test_submit_and_statistics(self, client, factory):
        # 接口使用真实时钟，主题日期围绕当前时间设置
        now = utcnow()
        course = factory.course()
        topic = factory.topic(
            factory.unit(course, 1), 1,
            start_date=now - timedelta(days=1),
            end_date=now + timedelta(days=5),
            dead_date=now + timedelta(days=10),
        )
        question_id = factory.question(topic, 1).id
        student = factory.user()
        factory.enroll(course, student)
        student_id = student.id

        rendered = client.post(
            f"/api/questions/{question_id}/render",
            json={"user_id": student_id, "form_url": "/submit"}
        )
        assert rendered.status_code == 200
        assert "renderedHTML" in rendered.json()

        submitted = client.post(
            f"/api/questions/{question_id}/submit",
            json={
                "user_id": student_id,
                "form_url": "/submit",
                "form_data": {"AnSwEr0001": "4", "submitAnswers": "Submit"},
            }
        )
        assert submitted.status_code == 200
        body = submitted.json()
        assert body["grade"]["num_attempts"] == 1
        assert body["workbook_id"] is not None

        grades = client.get("/api/grades", params={"question_id": question_id})
        assert grades.json()[0]["num_attempts"] == 1

        stats = client.get("/api/statistics/questions", params={"topic_id": topic.id})
        assert stats.json()[0]["name"] == "Problem 1"

    def test_grades_without_filter_is_bad_request(self, client):
        response = client.get("/api/grades")
        assert response.status_code == 400
