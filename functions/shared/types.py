"""
Enumerations and constants shared across the admin service.
"""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


# Roles permitted into the admin panel. Checked against the `users.role`
# column, never against token claims.
ALLOWED_ROLES = frozenset({Role.SUPERADMIN.value, Role.ADMIN.value, Role.TEACHER.value})


class QuestionType(str, Enum):
    OBJECTIVE = "objective"
    NUMERICAL = "numerical"


class QuestionCategory(str, Enum):
    PYQ = "PYQ"
    DPP = "DPP"


class Difficulty(str, Enum):
    HIGH_OUTPUT_HIGH_INPUT = "High Output High Input"
    HIGH_OUTPUT_LOW_INPUT = "High Output Low Input"
    LOW_OUTPUT_LOW_INPUT = "Low Output Low Input"
    LOW_OUTPUT_HIGH_INPUT = "Low Output High Input"


class ChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class AuditAction(str, Enum):
    CREATE_TOPIC = "CREATE_TOPIC"
    UPDATE_TOPIC = "UPDATE_TOPIC"
    DELETE_TOPIC = "DELETE_TOPIC"


class Bucket(str, Enum):
    CONTENT = "content"
    FORMULA_CARDS = "formulacards"
    BANNERS = "banners"


SHIFTS = ("shift-1", "shift-2")

TOLERANCE_CHOICES = ("0", "0.001", "0.01", "0.1", "1", "5", "custom")
