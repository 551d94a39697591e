"""Course database payload used by the command-line tools."""

from __future__ import annotations

import re

from pydantic import BaseModel, Field

_CODE_RE = re.compile(r"^[a-z][a-z0-9_-]*$")


def validate_code(code: str) -> None:
    """Raise ValueError unless *code* is a valid assignment code."""
    if not code:
        raise ValueError("assignment code must be non-empty")
    if not _CODE_RE.fullmatch(code):
        raise ValueError(
            f"assignment code {code!r} must start with a lowercase letter and contain only "
            "lowercase letters, digits, '_' and '-'"
        )


class Student(BaseModel):
    uid: str


class Assignment(BaseModel):
    code: str
    title: str = ""


class CourseDatabase(BaseModel):
    students: dict[str, Student] = Field(default_factory=dict)
    assignments: dict[str, Assignment] = Field(default_factory=dict)
    # assignment code -> student uid -> grade
    grades: dict[str, dict[str, float]] = Field(default_factory=dict)

    def add_student(self, uid: str) -> bool:
        """Add a student; returns False if they are already enrolled."""
        if uid in self.students:
            return False
        self.students[uid] = Student(uid=uid)
        return True

    def add_assignment(self, assignment: Assignment) -> bool:
        """Add an assignment; returns False if its code is already taken."""
        if assignment.code in self.assignments:
            return False
        self.assignments[assignment.code] = assignment
        return True

    def delete_assignment(self, code: str) -> bool:
        """Remove an assignment and any grades recorded for it."""
        if code not in self.assignments:
            return False
        del self.assignments[code]
        self.grades.pop(code, None)
        return True

    def has_grades(self, code: str) -> bool:
        return bool(self.grades.get(code))
