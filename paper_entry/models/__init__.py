"""Data models for papers, questions and search candidates."""
from .paper import MissingPaperIdError, Paper, Question
from .search import ProcessResult, QuestionContext, SearchCandidate
from .subject import Subject, UnknownSubjectError

__all__ = [
    "MissingPaperIdError",
    "Paper",
    "ProcessResult",
    "Question",
    "QuestionContext",
    "SearchCandidate",
    "Subject",
    "UnknownSubjectError",
]
