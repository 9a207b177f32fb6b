from datetime import date


def _request(client, method: str, path: str, expected_status: int, **kwargs):
    response = client.request(method, f"/api/v1{path}", **kwargs)
    assert (
        response.status_code == expected_status
    ), f"{method} {path} returned {response.status_code}, expected {expected_status}. Body: {response.text}"
    return response


def _login(client, email: str, password: str) -> dict:
    token = _request(client, "POST", "/auth/login", 200, json={"email": email, "password": password}).json()
    return {"Authorization": f"Bearer {token['accessToken']}"}


def test_ping(client):
    response = client.get("/api/ping")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_full_api_smoke(client):
    admin_headers = _login(client, "admin@school.local", "admin123")

    teacher = _request(
        client,
        "POST",
        "/users",
        201,
        headers=admin_headers,
        json={"name": "Ama Mensah", "email": "ama@school.local", "password": "pass1234", "assignedClassIds": ["c_p1"]},
    ).json()
    assert "passwordHash" not in teacher
    _request(
        client,
        "POST",
        "/users",
        409,
        headers=admin_headers,
        json={"name": "Dup", "email": "ama@school.local", "password": "pass1234"},
    )

    student_ids = []
    for name, gender in [("Kofi", "Male"), ("Esi", "Female")]:
        student = _request(
            client,
            "POST",
            "/students",
            201,
            headers=admin_headers,
            json={"name": name, "gender": gender, "dob": "2016-03-01", "classId": "c_p1", "guardianPhone": "0240000000"},
        ).json()
        student_ids.append(student["id"])

    teacher_headers = _login(client, "ama@school.local", "pass1234")
    classes = _request(client, "GET", "/classes", 200, headers=teacher_headers).json()
    assert [c["id"] for c in classes] == ["c_p1"]

    today = date.today().isoformat()
    _request(
        client,
        "PUT",
        "/attendance",
        200,
        headers=teacher_headers,
        json={"classId": "c_p1", "date": today, "presentStudentIds": student_ids[:1]},
    )
    _request(
        client,
        "PUT",
        "/attendance",
        200,
        headers=teacher_headers,
        json={"classId": "c_p1", "date": today, "presentStudentIds": student_ids},
    )
    attendance = _request(client, "GET", f"/attendance?classId=c_p1&date={today}", 200, headers=teacher_headers).json()
    assert attendance["isFilled"] is True
    assert sorted(attendance["presentStudentIds"]) == sorted(student_ids)

    class_stats = _request(client, "GET", "/statistics/classes/c_p1/attendance", 200, headers=admin_headers).json()
    assert class_stats["daysMarked"] == 1
    assert class_stats["percentage"] == 100

    dashboard = _request(client, "GET", "/statistics/dashboard", 200, headers=admin_headers).json()
    assert dashboard["studentsCount"] == 2
    assert dashboard["teachersCount"] == 1
    assert dashboard["gender"] == {"male": 1, "female": 1}

    saved = _request(
        client,
        "PUT",
        "/assessments",
        200,
        headers=teacher_headers,
        json=[
            {
                "studentId": student_ids[0],
                "classId": "c_p1",
                "term": 1,
                "academicYear": "2024-2025",
                "subject": "Mathematics",
                "testScore": 15,
                "homeworkScore": 10,
                "projectScore": 10,
                "examScore": 70,
            }
        ],
    ).json()
    assert saved[0]["total"] == 70

    grades = _request(
        client, "GET", "/statistics/grades?classId=c_p1&subject=Mathematics", 200, headers=admin_headers
    ).json()
    assert grades["B"] == 1

    notifications = _request(client, "GET", "/notifications", 200, headers=admin_headers).json()
    assert {n["type"] for n in notifications} == {"attendance", "assessment"}

    _request(client, "PUT", "/teacher-attendance/me", 200, headers=teacher_headers, json={"date": today, "status": "present"})
    own = _request(client, "GET", f"/teacher-attendance/me?date={today}", 200, headers=teacher_headers).json()
    assert own["id"] == f"{teacher['id']}_{today}"


def test_access_rules(client):
    admin_headers = _login(client, "admin@school.local", "admin123")
    _request(
        client,
        "POST",
        "/users",
        201,
        headers=admin_headers,
        json={"name": "Yaw", "email": "yaw@school.local", "password": "pass1234", "assignedClassIds": ["c_p2"]},
    )
    teacher_headers = _login(client, "yaw@school.local", "pass1234")

    _request(client, "GET", "/users", 401)
    _request(client, "GET", "/users", 403, headers=teacher_headers)
    _request(
        client,
        "PUT",
        "/attendance",
        403,
        headers=teacher_headers,
        json={"classId": "c_p1", "date": "2024-09-10", "presentStudentIds": []},
    )
    _request(client, "GET", "/classes/unknown/students", 404, headers=admin_headers)
    _request(client, "POST", "/auth/login", 401, json={"email": "yaw@school.local", "password": "wrong"})


def test_validation_errors_are_reported_as_messages(client):
    admin_headers = _login(client, "admin@school.local", "admin123")

    response = _request(
        client,
        "PUT",
        "/attendance",
        400,
        headers=admin_headers,
        json={"classId": "c_p1", "date": "10/09/2024", "presentStudentIds": []},
    )
    assert "message" in response.json()

    response = _request(
        client,
        "PUT",
        "/attendance",
        400,
        headers=admin_headers,
        json={"classId": "c_p1", "date": "2024-09-10", "presentStudentIds": ["ghost"]},
    )
    assert response.json() == {"message": "Invalid studentId"}


def test_term_reset_and_backups(client):
    admin_headers = _login(client, "admin@school.local", "admin123")
    _request(
        client,
        "POST",
        "/notices",
        201,
        headers=admin_headers,
        json={"message": "PTA meeting on Friday", "date": "Friday", "type": "urgent"},
    )

    config = _request(client, "POST", "/term/reset", 200, headers=admin_headers).json()
    assert config["currentTerm"] == "Term 2"
    assert config["termTransitionProcessed"] is True

    notices = _request(client, "GET", "/notices", 200, headers=admin_headers).json()
    assert notices == []

    backups = _request(client, "GET", "/backups", 200, headers=admin_headers).json()
    assert len(backups) == 1
    assert "data" not in backups[0]
    assert backups[0]["term"] == "Term 1"

    details = _request(client, "GET", f"/backups/{backups[0]['id']}", 200, headers=admin_headers).json()
    assert len(details["data"]["notices"]) == 1

    _request(client, "DELETE", f"/backups/{backups[0]['id']}", 200, headers=admin_headers)
    _request(client, "GET", f"/backups/{backups[0]['id']}", 404, headers=admin_headers)


def test_settings_and_holidays(client):
    admin_headers = _login(client, "admin@school.local", "admin123")
    settings = _request(client, "GET", "/settings", 200, headers=admin_headers).json()

    settings["schoolReopenDate"] = "2024-09-09"
    settings["nextTermBegins"] = "2099-01-06"
    saved = _request(client, "PUT", "/settings", 200, headers=admin_headers, json=settings).json()
    assert saved["termTransitionProcessed"] is False

    _request(client, "POST", "/settings/holidays", 201, headers=admin_headers, json={"date": "2024-10-01", "reason": "Holiday"})
    _request(client, "POST", "/settings/holidays", 409, headers=admin_headers, json={"date": "2024-10-01"})
    config = _request(client, "DELETE", "/settings/holidays/2024-10-01", 200, headers=admin_headers).json()
    assert config["holidayDates"] == []


def test_settings_reject_malformed_academic_year(client):
    admin_headers = _login(client, "admin@school.local", "admin123")
    settings = _request(client, "GET", "/settings", 200, headers=admin_headers).json()

    settings.update({"academicYear": "2024/25", "currentTerm": "Term 3", "nextTermBegins": "2020-01-06"})
    _request(client, "PUT", "/settings", 400, headers=admin_headers, json=settings)

    after = _request(client, "GET", "/settings", 200, headers=admin_headers).json()
    assert after["academicYear"] != "2024/25"
    assert _request(client, "GET", "/backups", 200, headers=admin_headers).json() == []


def test_statistics_run_pending_term_transition(client, repo):
    admin_headers = _login(client, "admin@school.local", "admin123")
    repo.save_school_config(
        {
            **repo.get_school_config(),
            "academicYear": "2024-2025",
            "currentTerm": "Term 1",
            "vacationDate": "2024-12-13",
            "nextTermBegins": "2025-01-06",
        }
    )

    _request(client, "GET", "/statistics/dashboard", 200, headers=admin_headers)

    config = repo.get_school_config()
    assert config["currentTerm"] == "Term 2"
    assert config["schoolReopenDate"] == "2025-01-06"
    assert len(_request(client, "GET", "/backups", 200, headers=admin_headers).json()) == 1
