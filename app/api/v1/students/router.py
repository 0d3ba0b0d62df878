from typing import List

from app.api.dispatch import Operation, session_handler
from app.api.v1.students import service

OPERATIONS: List[Operation] = [
    Operation("student", "createStudent", "POST", session_handler(service.create_student)),
    Operation("student", "getStudent", "GET", session_handler(service.get_student)),
    Operation("student", "getStudents", "GET", session_handler(service.list_students)),
    Operation("student", "updateStudent", "PUT", session_handler(service.update_student)),
    Operation("student", "deleteStudent", "DELETE", session_handler(service.delete_student)),
    # Enrollment and transfer move a student between classrooms (and schools)
    Operation("student", "enrollStudent", "POST", session_handler(service.enroll_student)),
    Operation("student", "transferStudent", "POST", session_handler(service.transfer_student)),
]
