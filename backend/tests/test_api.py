from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, select


def _student_token(client: TestClient, email: str) -> str:
    client.post("/auth/signup", json={
        "email": email,
        "full_name": "Estudiante API",
        "password": "student123",
        "role": "student",
    })
    res = client.post(
        "/auth/token",
        data={"username": email, "password": "student123"},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert res.status_code == 200, res.text
    return res.json()["access_token"]


def _seed_student_and_courses(email: str, code: str):
    from gestion_academica import db
    from gestion_academica.models import Course, CoursePrerequisite, Student, User

    with Session(db.engine) as session:
        user = session.exec(select(User).where(User.email == email)).one()
        student = Student(user_id=user.id, code=code, first_names="Estudiante", last_names="API")
        base = Course(code=f"{code}-B", name="Base API", credits=4, cycle=1)
        advanced = Course(code=f"{code}-A", name="Avanzado API", credits=4, cycle=1)
        session.add(student)
        session.add(base)
        session.add(advanced)
        session.commit()
        session.add(CoursePrerequisite(course_id=advanced.id, prerequisite_course_id=base.id))
        session.commit()
        return student.id, base.id, advanced.id


def test_requires_authentication(client: TestClient):
    assert client.get("/periods/").status_code == 401


def test_academic_flow_over_http(client: TestClient, admin_token: str):
    admin = {"Authorization": f"Bearer {admin_token}"}
    email = "flujo@test.com"
    student = {"Authorization": f"Bearer {_student_token(client, email)}"}
    student_id, base_id, advanced_id = _seed_student_and_courses(email, "API")

    res = client.post("/periods/", json={
        "name": "2030-I",
        "year": 2030,
        "half": "I",
        "start_date": "2030-03-01",
        "end_date": "2030-07-31",
    }, params={"activate": True}, headers=admin)
    assert res.status_code == 201, res.text
    period = res.json()
    assert period["state"] == "Active"

    assert client.post("/periods/", json={
        "name": "2030-II", "year": 2030, "half": "II", "start_date": "2030-08-01", "end_date": "2030-12-01",
    }, headers=student).status_code == 403

    res = client.post("/enrollments/", json={"course_id": advanced_id}, headers=student)
    assert res.status_code == 422
    body = res.json()
    assert body["kind"] == "policy_violation"
    assert body["details"]["unmet_prerequisites"][0]["status"] == "not_taken"

    res = client.post("/enrollments/", json={"course_id": base_id}, headers=student)
    assert res.status_code == 201, res.text
    enrollment_id = res.json()["id"]

    res = client.post("/enrollments/", json={"course_id": base_id}, headers=student)
    assert res.status_code == 422

    res = client.get("/enrollments/available", headers=student)
    assert res.status_code == 200
    by_id = {item["course_id"]: item for item in res.json()}
    assert by_id[base_id]["available"] is False

    res = client.get(f"/grades/courses/{base_id}/evaluation-types", headers=student)
    assert res.status_code == 200
    assert len(res.json()) == 7

    res = client.post(f"/grades/enrollments/{enrollment_id}", json={"grades": {"Examen Final": "15"}}, headers=admin)
    assert res.status_code == 200, res.text
    assert res.json()["final_grade"] == 3
    assert res.json()["approved"] is False

    res = client.post(f"/grades/enrollments/{enrollment_id}", json={"grades": {"Examen Final": "25"}}, headers=admin)
    assert res.status_code == 422

    res = client.get(f"/periods/{period['id']}/close-validation", headers=admin)
    assert res.status_code == 200
    assert res.json()["ready"] is False

    res = client.post(f"/enrollments/{enrollment_id}/withdraw", headers=student)
    assert res.status_code == 200, res.text
    assert res.json()["state"] == "Retirado"

    res = client.post(f"/enrollments/{enrollment_id}/withdraw", headers=student)
    assert res.status_code == 409

    res = client.post(f"/periods/{period['id']}/close", headers=admin)
    assert res.status_code == 200, res.text
    assert res.json()["period_name"] == "2030-I"

    res = client.post(f"/periods/{period['id']}/activate", headers=admin)
    assert res.status_code == 409

    res = client.delete(f"/periods/{period['id']}", headers=admin)
    assert res.status_code == 409

    res = client.get(f"/students/{student_id}/transcript", headers=student)
    assert res.status_code == 200
    assert res.json()["semesters"] == []

    res = client.get(f"/students/{student_id}/transcript.xlsx", headers=admin)
    assert res.status_code == 200
    assert res.headers["content-type"].startswith("application/vnd.openxmlformats")


def test_student_cannot_read_other_transcript(client: TestClient):
    email = "curioso@test.com"
    token = _student_token(client, email)
    own_id, _, _ = _seed_student_and_courses(email, "CUR")
    res = client.get(f"/students/{own_id + 1000}/transcript", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 403


def test_schedule_conflict_endpoint(client: TestClient, admin_token: str):
    from gestion_academica import db
    from gestion_academica.models import Course, Teacher

    headers = {"Authorization": f"Bearer {admin_token}"}
    with Session(db.engine) as session:
        teacher = Teacher(first_names="Elena", last_names="Horario")
        session.add(teacher)
        session.commit()
        first = Course(code="HOR-1", name="Horario Uno", teacher_id=teacher.id)
        second = Course(code="HOR-2", name="Horario Dos", teacher_id=teacher.id)
        session.add(first)
        session.add(second)
        session.commit()
        first_id, second_id, teacher_id = first.id, second.id, teacher.id

    res = client.post("/schedules/", json={
        "course_id": first_id, "day_of_week": 3, "start_time": "08:00", "end_time": "10:00",
    }, headers=headers)
    assert res.status_code == 201, res.text

    res = client.post("/schedules/conflicts", json={
        "course_id": second_id, "day_of_week": 3, "start_time": "09:00", "end_time": "11:00",
    }, headers=headers)
    assert res.json()["conflict"] is True
    assert res.json()["time_range"] == "08:00 - 10:00"

    res = client.post("/schedules/", json={
        "course_id": second_id, "day_of_week": 3, "start_time": "10:00", "end_time": "12:00",
    }, headers=headers)
    assert res.status_code == 201

    res = client.get(f"/schedules/teachers/{teacher_id}", headers=headers)
    assert [item["course_code"] for item in res.json()] == ["HOR-1", "HOR-2"]


def test_teacher_only_manages_assigned_courses(client: TestClient, teacher_token: str):
    from gestion_academica import db
    from gestion_academica.models import Course, Enrollment, Period, Student, Teacher, User

    headers = {"Authorization": f"Bearer {teacher_token}"}
    with Session(db.engine) as session:
        user = session.exec(select(User).where(User.email == "teacher@test.com")).one()
        owner = Teacher(user_id=user.id, first_names="Docente", last_names="Test")
        other = Teacher(first_names="Otro", last_names="Docente")
        session.add(owner)
        session.add(other)
        session.commit()
        own_course = Course(code="DOC-1", name="Curso Propio", teacher_id=owner.id)
        foreign_course = Course(code="DOC-2", name="Curso Ajeno", teacher_id=other.id)
        student = Student(code="DOC-E", first_names="Alumno", last_names="Ajeno")
        period = Period(name="2031-I", year=2031, start_date=date(2031, 3, 1), end_date=date(2031, 7, 31))
        for row in (own_course, foreign_course, student, period):
            session.add(row)
        session.commit()
        enrollment = Enrollment(student_id=student.id, course_id=foreign_course.id, period_id=period.id)
        session.add(enrollment)
        session.commit()
        own_id, foreign_id, student_id, enrollment_id = own_course.id, foreign_course.id, student.id, enrollment.id

    res = client.post(f"/grades/enrollments/{enrollment_id}", json={"grades": {"Parcial 1": "20"}}, headers=headers)
    assert res.status_code == 403
    assert res.json()["detail"] == "El curso pertenece a otro docente"

    weights = [{"name": "Parcial", "weight": "40"}, {"name": "Final", "weight": "60"}]
    assert client.put(f"/grades/courses/{foreign_id}/evaluation-types", json=weights, headers=headers).status_code == 403
    res = client.put(f"/grades/courses/{own_id}/evaluation-types", json=weights, headers=headers)
    assert res.status_code == 200, res.text

    res = client.post("/attendance/", json={
        "student_id": student_id, "course_id": foreign_id, "session_date": "2031-04-01", "present": True,
    }, headers=headers)
    assert res.status_code == 403
    res = client.post("/attendance/bulk", json={
        "course_id": foreign_id, "session_date": "2031-04-01", "marks": {str(student_id): True},
    }, headers=headers)
    assert res.status_code == 403
    assert client.get(f"/attendance/courses/{foreign_id}/summary", headers=headers).status_code == 403


def test_student_reads_only_own_attendance(client: TestClient):
    email = "asistencia@test.com"
    headers = {"Authorization": f"Bearer {_student_token(client, email)}"}
    own_id, base_id, _ = _seed_student_and_courses(email, "PCT")

    res = client.get("/attendance/percentage", params={"student_id": own_id, "course_id": base_id}, headers=headers)
    assert res.status_code == 200
    assert float(res.json()["percentage"]) == 0

    res = client.get("/attendance/percentage", params={"student_id": own_id + 1000, "course_id": base_id}, headers=headers)
    assert res.status_code == 403


def test_failed_export_removes_temporary_file(client: TestClient, admin_token: str, tmp_path, monkeypatch):
    from gestion_academica.routers import students as students_router

    email = "exporta@test.com"
    _student_token(client, email)
    student_id, _, _ = _seed_student_and_courses(email, "EXP")
    target = tmp_path / "registro.xlsx"

    def temp_path(suffix):
        target.write_bytes(b"")
        return str(target)

    def broken_export(transcript, path):
        raise OSError("sin espacio en disco")

    monkeypatch.setattr(students_router, "_temp_path", temp_path)
    monkeypatch.setattr(students_router, "export_transcript_excel", broken_export)

    with pytest.raises(OSError):
        client.get(f"/students/{student_id}/transcript.xlsx", headers={"Authorization": f"Bearer {admin_token}"})
    assert not target.exists()
