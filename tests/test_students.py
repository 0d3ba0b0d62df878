from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.models import Student


async def test_create_student(api, superadmin_token, school, create_classroom) -> None:
    classroom = await create_classroom(school["id"])
    response = await api(
        "POST",
        "student/createStudent",
        token=superadmin_token,
        json={
            "schoolId": school["id"],
            "classroomId": classroom["id"],
            "firstName": "Bart",
            "lastName": "Simpson",
            "email": "Bart@Example.com",
            "dateOfBirth": "2012-04-01",
        },
    )
    assert response.status_code == 200
    student = response.json()["data"]["student"]
    assert student["fullName"] == "Bart Simpson"
    assert student["email"] == "bart@example.com"
    assert student["dateOfBirth"] == "2012-04-01"
    assert student["schoolName"] == school["name"]
    assert student["classroomName"] == classroom["name"]


async def test_create_student_duplicate_email(api, superadmin_token, school, create_student) -> None:
    await create_student(school["id"], "bart@example.com")
    response = await api(
        "POST",
        "student/createStudent",
        token=superadmin_token,
        json={"schoolId": school["id"], "firstName": "B", "lastName": "S", "email": "bart@example.com"},
    )
    assert response.status_code == 400
    assert response.json()["errors"] == "Student with this email already exists"


async def test_create_student_in_foreign_classroom(api, superadmin_token, school, create_school, create_classroom) -> None:
    other = await create_school(name="Shelbyville Elementary", email="office@shelbyville.example.com")
    foreign = await create_classroom(other["id"])
    response = await api(
        "POST",
        "student/createStudent",
        token=superadmin_token,
        json={
            "schoolId": school["id"],
            "classroomId": foreign["id"],
            "firstName": "Bart",
            "lastName": "Simpson",
            "email": "bart@example.com",
        },
    )
    assert response.status_code == 400
    assert response.json()["errors"] == "Classroom does not belong to the specified school"


async def test_enroll_beyond_capacity(api, superadmin_token, create_school, create_classroom, create_student) -> None:
    school = await create_school(name="A School", email="a@a.com")
    classroom = await create_classroom(school["id"], capacity=1)

    first = await create_student(school["id"], "one@example.com")
    second = await create_student(school["id"], "two@example.com")

    response = await api(
        "POST",
        "student/enrollStudent",
        token=superadmin_token,
        json={"studentId": first["id"], "classroomId": classroom["id"]},
    )
    assert response.status_code == 200
    assert response.json()["data"]["message"] == "Student enrolled successfully"

    response = await api(
        "POST",
        "student/enrollStudent",
        token=superadmin_token,
        json={"studentId": second["id"], "classroomId": classroom["id"]},
    )
    assert response.status_code == 400
    assert response.json()["errors"] == "Classroom is at full capacity"


async def test_re_enrolling_same_classroom_does_not_count_twice(
    api, superadmin_token, school, create_classroom, create_student
) -> None:
    classroom = await create_classroom(school["id"], capacity=1)
    student = await create_student(school["id"], "bart@example.com", classroom["id"])
    response = await api(
        "POST",
        "student/enrollStudent",
        token=superadmin_token,
        json={"studentId": student["id"], "classroomId": classroom["id"]},
    )
    assert response.status_code == 200


async def test_enroll_requires_ids(api, superadmin_token) -> None:
    response = await api("POST", "student/enrollStudent", token=superadmin_token, json={"studentId": "x"})
    assert response.status_code == 400
    assert response.json()["errors"] == "Student ID and Classroom ID are required"


async def test_enroll_into_other_school_classroom(
    api, superadmin_token, school, create_school, create_classroom, create_student
) -> None:
    other = await create_school(name="Shelbyville Elementary", email="office@shelbyville.example.com")
    foreign = await create_classroom(other["id"])
    student = await create_student(school["id"], "bart@example.com")
    response = await api(
        "POST",
        "student/enrollStudent",
        token=superadmin_token,
        json={"studentId": student["id"], "classroomId": foreign["id"]},
    )
    assert response.status_code == 400
    assert response.json()["errors"] == "Classroom does not belong to the student's school"


async def test_school_admin_isolated_from_other_school_students(
    api, create_school, create_student, school_admin_token
) -> None:
    other = await create_school(name="Shelbyville Elementary", email="office@shelbyville.example.com")
    foreign = await create_student(other["id"], "nelson@example.com")

    response = await api("GET", "student/getStudent", token=school_admin_token, params={"studentId": foreign["id"]})
    assert response.status_code == 400
    assert response.json()["errors"] == "Access denied to this student"

    listed = await api("GET", "student/getStudents", token=school_admin_token)
    assert listed.json()["data"]["students"] == []


async def test_get_students_filters(api, superadmin_token, school, create_classroom, create_student) -> None:
    classroom = await create_classroom(school["id"])
    await create_student(school["id"], "bart@example.com", classroom["id"])
    await create_student(school["id"], "lisa@example.com")

    everyone = await api("GET", "student/getStudents", token=superadmin_token, params={"schoolId": school["id"]})
    assert len(everyone.json()["data"]["students"]) == 2

    in_room = await api("GET", "student/getStudents", token=superadmin_token, params={"classroomId": classroom["id"]})
    assert [s["email"] for s in in_room.json()["data"]["students"]] == ["bart@example.com"]


async def test_update_student(api, superadmin_token, school, create_student) -> None:
    bart = await create_student(school["id"], "bart@example.com")
    lisa = await create_student(school["id"], "lisa@example.com")

    response = await api(
        "PUT", "student/updateStudent", token=superadmin_token, json={"studentId": bart["id"], "email": "lisa@example.com"}
    )
    assert response.status_code == 400
    assert response.json()["errors"] == "Another student with this email already exists"

    response = await api(
        "PUT", "student/updateStudent", token=superadmin_token, json={"studentId": lisa["id"], "firstName": "Maggie"}
    )
    assert response.status_code == 200
    assert response.json()["data"]["student"]["fullName"] == "Maggie Simpson"


async def test_delete_student_is_soft(api, superadmin_token, school, create_student, db_session: AsyncSession) -> None:
    student = await create_student(school["id"], "bart@example.com")
    response = await api("DELETE", "student/deleteStudent", token=superadmin_token, json={"studentId": student["id"]})
    assert response.status_code == 200
    assert response.json()["data"]["message"] == "Student deleted successfully"

    response = await api("GET", "student/getStudent", token=superadmin_token, params={"studentId": student["id"]})
    assert response.json()["errors"] == "Student not found"

    row = (await db_session.execute(select(Student).where(Student.email == "bart@example.com"))).scalar_one()
    assert row.is_active is False

    # A deleted student's email can be reused
    assert (await create_student(school["id"], "bart@example.com"))["email"] == "bart@example.com"


async def test_transfer_student(api, superadmin_token, school, create_school, create_classroom, create_student) -> None:
    origin_room = await create_classroom(school["id"])
    student = await create_student(school["id"], "bart@example.com", origin_room["id"])
    target = await create_school(name="Shelbyville Elementary", email="office@shelbyville.example.com")
    target_room = await create_classroom(target["id"], name="Room 9")

    response = await api(
        "POST",
        "student/transferStudent",
        token=superadmin_token,
        json={"studentId": student["id"], "targetSchoolId": target["id"], "targetClassroomId": target_room["id"]},
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["message"] == "Student transferred successfully"
    assert data["student"]["schoolId"] == target["id"]
    assert data["student"]["classroomId"] == target_room["id"]

    room = await api("GET", "classroom/getClassroom", token=superadmin_token, params={"classroomId": origin_room["id"]})
    assert room.json()["data"]["classroom"]["enrolledCount"] == 0


async def test_transfer_without_classroom_clears_enrollment(
    api, superadmin_token, school, create_school, create_classroom, create_student
) -> None:
    room = await create_classroom(school["id"])
    student = await create_student(school["id"], "bart@example.com", room["id"])
    target = await create_school(name="Shelbyville Elementary", email="office@shelbyville.example.com")

    response = await api(
        "POST",
        "student/transferStudent",
        token=superadmin_token,
        json={"studentId": student["id"], "targetSchoolId": target["id"]},
    )
    assert response.status_code == 200
    assert response.json()["data"]["student"]["classroomId"] is None


async def test_transfer_checks(api, superadmin_token, school, create_school, create_classroom, create_student) -> None:
    student = await create_student(school["id"], "bart@example.com")
    target = await create_school(name="Shelbyville Elementary", email="office@shelbyville.example.com")
    full_room = await create_classroom(target["id"], capacity=1)
    await create_student(target["id"], "nelson@example.com", full_room["id"])
    wrong_room = await create_classroom(school["id"], name="Room 2")

    response = await api(
        "POST",
        "student/transferStudent",
        token=superadmin_token,
        json={"studentId": student["id"], "targetSchoolId": target["id"], "targetClassroomId": full_room["id"]},
    )
    assert response.json()["errors"] == "Target classroom is at full capacity"

    response = await api(
        "POST",
        "student/transferStudent",
        token=superadmin_token,
        json={"studentId": student["id"], "targetSchoolId": target["id"], "targetClassroomId": wrong_room["id"]},
    )
    assert response.json()["errors"] == "Target classroom does not belong to the target school"

    response = await api(
        "POST",
        "student/transferStudent",
        token=superadmin_token,
        json={"studentId": student["id"], "targetSchoolId": "00000000-0000-0000-0000-000000000000"},
    )
    assert response.json()["errors"] == "Target school not found"


async def test_school_admin_cannot_transfer(api, school, create_school, create_student, school_admin_token) -> None:
    student = await create_student(school["id"], "bart@example.com")
    target = await create_school(name="Shelbyville Elementary", email="office@shelbyville.example.com")
    response = await api(
        "POST",
        "student/transferStudent",
        token=school_admin_token,
        json={"studentId": student["id"], "targetSchoolId": target["id"]},
    )
    assert response.status_code == 400
    assert response.json()["errors"] == "Only superadmins can transfer students between schools"


async def test_school_admin_creates_students_in_own_school(api, school, create_school, school_admin_token) -> None:
    """A schoolId sent by a school admin is replaced by their own school."""
    other = await create_school(name="Shelbyville Elementary", email="office@shelbyville.example.com")
    response = await api(
        "POST",
        "student/createStudent",
        token=school_admin_token,
        json={"schoolId": other["id"], "firstName": "Milhouse", "lastName": "Van Houten", "email": "milhouse@example.com"},
    )
    assert response.status_code == 200
    student = response.json()["data"]["student"]
    assert student["schoolId"] == school["id"]
    assert student["schoolName"] == school["name"]


async def test_school_admin_cannot_modify_other_school_students(
    api, superadmin_token, create_school, create_student, school_admin_token
) -> None:
    other = await create_school(name="Shelbyville Elementary", email="office@shelbyville.example.com")
    foreign = await create_student(other["id"], "nelson@example.com")

    response = await api(
        "PUT", "student/updateStudent", token=school_admin_token, json={"studentId": foreign["id"], "firstName": "Hacked"}
    )
    assert response.status_code == 400
    assert response.json()["errors"] == "Access denied to update this student"

    response = await api("DELETE", "student/deleteStudent", token=school_admin_token, json={"studentId": foreign["id"]})
    assert response.status_code == 400
    assert response.json()["errors"] == "Access denied to delete this student"

    unchanged = await api("GET", "student/getStudent", token=superadmin_token, params={"studentId": foreign["id"]})
    assert unchanged.json()["data"]["student"]["firstName"] == "Lisa"
    assert unchanged.json()["data"]["student"]["isActive"] is True
