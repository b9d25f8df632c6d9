"""Tests for the teacher/parent student report."""

from __future__ import annotations

from game_engine import GameEngine
from reports import build_student_report


class TestReportRoute:
    def test_requires_login(self, client, student):
        resp = client.get(f"/api/teacher/students/{student.id}/report")
        assert resp.status_code == 401

    def test_students_forbidden(self, app, app_storage, student):
        from werkzeug.security import generate_password_hash

        app_storage.upsert_user({"username": "kid2", "role": "student",
                                 "password_hash": generate_password_hash("KidPass123")})
        client = app.test_client()
        client.post("/api/login", json={"username": "kid2", "password": "KidPass123"})
        resp = client.get(f"/api/teacher/students/{student.id}/report")
        assert resp.status_code == 403
        assert "message" in resp.get_json()

    def test_teacher_sees_report(self, teacher_client, student):
        resp = teacher_client.get(f"/api/teacher/students/{student.id}/report")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["student"]["displayName"] == "Mia"
        assert data["profile"]["id"] == student.id
        assert len(data["subjects"]) == 4

    def test_unknown_student(self, teacher_client):
        assert teacher_client.get("/api/teacher/students/999/report").status_code == 404


class TestBuildReport:
    def test_summary_and_history(self, app_storage, student):
        engine = GameEngine(app_storage)
        engine.submit_survey(student.id, {"mood": "happy", "learningStyle": "visual"})
        app_storage.upsert_student_progress({"student_id": student.id, "subject_id": 1, "progress": 40,
                                             "completed_tasks": 4, "total_tasks": 10})
        app_storage.upsert_student_progress({"student_id": student.id, "subject_id": 2, "progress": 80,
                                             "completed_tasks": 8, "total_tasks": 10})
        engine.spin(student.id)

        report = build_student_report(app_storage, student.id)
        assert report["summary"]["averageProgress"] == 30
        assert report["summary"]["completedTasks"] == 12
        assert report["summary"]["rewardsEarned"] == 1
        assert report["rewards"][0]["reward"]["name"]
        assert report["recommendations"][0] == "Maintain positive reinforcement"
        assert report["latestSurvey"]["responses"]["mood"] == "happy"

    def test_without_survey(self, app_storage, student):
        report = build_student_report(app_storage, student.id)
        assert report["latestSurvey"] is None
        assert report["recommendations"] == []
        assert report["summary"]["averageProgress"] == 0

    def test_history_joined_with_reward_details(self, app_storage, student):
        engine = GameEngine(app_storage)
        engine.spin(student.id)
        engine.spin(student.id)

        report = build_student_report(app_storage, student.id)
        assert len(report["rewards"]) == 2
        for entry in report["rewards"]:
            assert entry["reward"] == app_storage.get_reward(entry["rewardId"]).to_dict()
