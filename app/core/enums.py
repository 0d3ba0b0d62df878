from enum import Enum


class Role(str, Enum):
    SUPERADMIN = "superadmin"
    SCHOOL_ADMIN = "school_admin"


class Resource(str, Enum):
    SCHOOL = "school"
    CLASSROOM = "classroom"
    STUDENT = "student"
    ACCOUNT = "account"


class Action(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    ENROLL = "enroll"
    TRANSFER = "transfer"
