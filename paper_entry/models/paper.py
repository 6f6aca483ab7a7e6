"""
Pydantic data models for papers and their questions.

Field aliases follow the keys used in the paper files (``province``,
``page_id``, ``stemlist``, ``imgs``, ``name_for_cos``).
"""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .subject import Subject


class MissingPaperIdError(ValueError):
    """Paper has no external identifier and cannot be submitted."""

    pass


class Question(BaseModel):
    """A single entry of a paper: a gradable question or a title/header."""

    model_config = ConfigDict(populate_by_name=True)

    stem: str = Field(..., description="Question text used as the search key")
    is_title: bool = Field(False, description="Non-gradable title/header entry")
    images: Optional[List[str]] = Field(
        None, alias="imgs", description="Image URLs belonging to the stem"
    )


class Paper(BaseModel):
    """One exam paper and its ordered questions."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., description="Paper title")
    jurisdiction: str = Field(..., alias="province", description="Province/region")
    grade: str = Field(..., description="Grade level")
    year: str = Field(..., description="Academic year, normalized to text")
    subject: str = Field(..., description="Subject name, e.g. 数学")
    name_for_upload: Optional[str] = Field(None, alias="name_for_cos")
    paper_id: Optional[str] = Field(
        None, alias="page_id", description="External paper identifier"
    )
    questions: List[Question] = Field(default_factory=list, alias="stemlist")

    # Set by the loader; never read from the file
    source_path: Optional[str] = Field(None, exclude=True)

    @field_validator("year", mode="before")
    @classmethod
    def _normalize_year(cls, value):
        if isinstance(value, bool):
            raise ValueError("year must be text or an integer")
        if isinstance(value, int):
            return str(value)
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return value

    @field_validator("paper_id", mode="before")
    @classmethod
    def _normalize_paper_id(cls, value):
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def upload_name(self) -> str:
        return self.name_for_upload or self.name

    @property
    def subject_code(self) -> str:
        """
        Question-bank code for this paper's subject.

        Raises:
            UnknownSubjectError: If the subject name is not recognized
        """
        return Subject.code_for(self.subject)

    def require_paper_id(self) -> str:
        """
        Return the external paper identifier.

        Raises:
            MissingPaperIdError: If no identifier was assigned
        """
        if not self.paper_id:
            raise MissingPaperIdError(f"Paper {self.name!r} has no paper id")
        return self.paper_id
