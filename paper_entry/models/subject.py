"""
Subject names and the numeric codes the question bank expects.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional


class UnknownSubjectError(ValueError):
    """Subject name does not map to a known subject code."""

    pass


class Subject(Enum):
    """Known subjects, valued by question-bank subject code."""

    CHINESE = 55
    MATH = 54
    ENGLISH = 53
    PHYSICS = 56
    CHEMISTRY = 57
    BIOLOGY = 58
    HISTORY = 61
    POLITICS = 60
    GEOGRAPHY = 59
    SCIENCE = 62

    @property
    def code(self) -> str:
        """Subject code as sent in search requests."""
        return str(self.value)

    @classmethod
    def from_name(cls, name: str) -> Optional[Subject]:
        """
        Look up a subject by name.

        Accepts the full Chinese name, its one-character abbreviation, or the
        English name. Falls back to a name that contains a full Chinese subject
        name, e.g. "初中数学".
        """
        if not name:
            return None
        key = name.strip()
        lowered = key.lower()
        for subject, aliases in _NAMES.items():
            if key in aliases or lowered in aliases:
                return subject
        for subject, aliases in _NAMES.items():
            if aliases[0] in key:
                return subject
        return None

    @classmethod
    def code_for(cls, name: str) -> str:
        """
        Resolve a subject name to its code.

        Raises:
            UnknownSubjectError: If the name does not map to a subject
        """
        subject = cls.from_name(name)
        if subject is None:
            raise UnknownSubjectError(f"Unknown subject: {name!r}")
        return subject.code


# First alias is the canonical Chinese name.
_NAMES = {
    Subject.CHINESE: ("语文", "语", "chinese"),
    Subject.MATH: ("数学", "数", "math", "maths", "mathematics"),
    Subject.ENGLISH: ("英语", "英", "english"),
    Subject.PHYSICS: ("物理", "物", "physics"),
    Subject.CHEMISTRY: ("化学", "化", "chemistry"),
    Subject.BIOLOGY: ("生物", "生", "biology"),
    Subject.HISTORY: ("历史", "历", "history"),
    Subject.POLITICS: ("政治", "政", "politics", "道德与法治"),
    Subject.GEOGRAPHY: ("地理", "地", "geography"),
    Subject.SCIENCE: ("科学", "科", "science"),
}
