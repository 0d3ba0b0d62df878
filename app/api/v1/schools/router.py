from typing import List

from app.api.dispatch import Operation, session_handler
from app.api.v1.schools import service

OPERATIONS: List[Operation] = [
    Operation("school", "createSchool", "POST", session_handler(service.create_school)),
    Operation("school", "getSchool", "GET", session_handler(service.get_school)),
    Operation("school", "getAllSchools", "GET", session_handler(service.list_schools)),
    Operation("school", "updateSchool", "PUT", session_handler(service.update_school)),
    Operation("school", "deleteSchool", "DELETE", session_handler(service.delete_school)),
]
