"""Registration table for every API operation."""
from typing import List, Tuple

from app.api.dispatch import OperationRegistry
from app.api.v1.auth.router import OPERATIONS as USER_OPERATIONS
from app.api.v1.classrooms.router import OPERATIONS as CLASSROOM_OPERATIONS
from app.api.v1.schools.router import OPERATIONS as SCHOOL_OPERATIONS
from app.api.v1.students.router import OPERATIONS as STUDENT_OPERATIONS

EXPECTED_OPERATIONS: List[Tuple[str, str]] = [
    ("user", "register"),
    ("user", "login"),
    ("user", "getProfile"),
    ("user", "createSchoolAdmin"),
    ("token", "createSessionToken"),
    ("school", "createSchool"),
    ("school", "getSchool"),
    ("school", "getAllSchools"),
    ("school", "updateSchool"),
    ("school", "deleteSchool"),
    ("classroom", "createClassroom"),
    ("classroom", "getClassroom"),
    ("classroom", "getClassrooms"),
    ("classroom", "updateClassroom"),
    ("classroom", "deleteClassroom"),
    ("student", "createStudent"),
    ("student", "getStudent"),
    ("student", "getStudents"),
    ("student", "updateStudent"),
    ("student", "deleteStudent"),
    ("student", "enrollStudent"),
    ("student", "transferStudent"),
]


def build_registry() -> OperationRegistry:
    registry = OperationRegistry()
    for operations in (USER_OPERATIONS, SCHOOL_OPERATIONS, CLASSROOM_OPERATIONS, STUDENT_OPERATIONS):
        registry.register_all(operations)
    registry.check_complete(EXPECTED_OPERATIONS)
    return registry
