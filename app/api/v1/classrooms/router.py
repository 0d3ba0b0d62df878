from typing import List

from app.api.dispatch import Operation, session_handler
from app.api.v1.classrooms import service

OPERATIONS: List[Operation] = [
    Operation("classroom", "createClassroom", "POST", session_handler(service.create_classroom)),
    Operation("classroom", "getClassroom", "GET", session_handler(service.get_classroom)),
    Operation("classroom", "getClassrooms", "GET", session_handler(service.list_classrooms)),
    Operation("classroom", "updateClassroom", "PUT", session_handler(service.update_classroom)),
    Operation("classroom", "deleteClassroom", "DELETE", session_handler(service.delete_classroom)),
]
