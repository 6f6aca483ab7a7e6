"""
Pytest configuration and fixtures for the paper-entry test suite.

Provides:
- A scripted fake remote call (records every request)
- A scripted fake judgment client
- Paper/question factories and a paper file on disk
"""

import sys
from collections import defaultdict, deque
from pathlib import Path

import pytest

# Ensure project root is on sys.path to import paper_entry.* modules
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from paper_entry.models import Paper, Question, SearchCandidate  # noqa: E402

SIMILAR_ENDPOINT = "/api/questionsimilar/queryByText"
XKW_ENDPOINT = "/api/third/xkw/question/v2/text-search"
SAVE_ENDPOINT = "/question/new/save"
SUBMIT_ENDPOINT = "/paper/process/submit"

OK = {"code": 200, "message": "ok"}


class FakeRemote:
    """
    Stand-in for HttpRemoteCall.

    Responses are scripted per endpoint; a scripted Exception instance is raised.
    When a script runs out, the endpoint's default is returned.
    """

    def __init__(self, defaults=None):
        self.calls = []
        self._scripts = defaultdict(deque)
        self.defaults = {SAVE_ENDPOINT: OK, SUBMIT_ENDPOINT: OK}
        if defaults:
            self.defaults.update(defaults)
        self.clones = 0
        self.closed = 0

    def script(self, endpoint, *responses):
        self._scripts[endpoint].extend(responses)
        return self

    def execute(self, endpoint, payload):
        self.calls.append((endpoint, payload))
        queue = self._scripts[endpoint]
        response = queue.popleft() if queue else self.defaults.get(endpoint)
        if isinstance(response, Exception):
            raise response
        return response

    def calls_to(self, endpoint):
        return [payload for ep, payload in self.calls if ep == endpoint]

    # Clone/close protocol used by the orchestrator
    def clone(self):
        self.clones += 1
        return self

    def close(self):
        self.closed += 1

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


class FakeJudgment:
    """Stand-in for JudgmentClient; replies (or raises) from a script."""

    def __init__(self, *replies, default="none"):
        self.replies = deque(replies)
        self.default = default
        self.prompts = []

    def chat(self, prompt, system_message=None):
        self.prompts.append(prompt)
        reply = self.replies.popleft() if self.replies else self.default
        if isinstance(reply, Exception):
            raise reply
        return reply


def search_response(*entries):
    """Build a search response with entries given as (content, similarity) pairs."""
    return {
        "code": 200,
        "data": [
            {"questionId": f"q{i}", "questionContent": content, "xkwQuestionSimilarity": sim}
            for i, (content, sim) in enumerate(entries)
        ],
    }


def make_paper(questions=None, **overrides):
    data = {
        "name": "2024 Beijing Grade 8 Math Midterm",
        "province": "北京",
        "grade": "八年级",
        "year": 2024,
        "subject": "数学",
        "page_id": "P-1001",
        "stemlist": questions if questions is not None else [{"stem": "1+1=?"}],
    }
    data.update(overrides)
    return Paper.model_validate(data)


def make_candidates(*similarities, content="candidate"):
    return [SearchCandidate(content=f"{content} {i}", similarity=s) for i, s in enumerate(similarities)]


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def warn_path(tmp_path):
    return tmp_path / "warn.txt"


@pytest.fixture
def paper_file(tmp_path):
    """Write a minimal paper file and return its path."""
    path = tmp_path / "papers" / "math.toml"
    path.parent.mkdir()
    path.write_text(
        'name = "2024 Beijing Grade 8 Math Midterm"\n'
        'province = "北京"\n'
        'grade = "八年级"\n'
        "year = 2024\n"
        'subject = "数学"\n'
        'page_id = "P-1001"\n'
        "\n"
        "[[stemlist]]\n"
        'stem = "一、选择题"\n'
        "is_title = true\n"
        "\n"
        "[[stemlist]]\n"
        'stem = "计算 1+1"\n'
        'imgs = ["https://img.example.com/a.png"]\n',
        encoding="utf-8",
    )
    return path


def question(stem, **kwargs):
    return Question(stem=stem, **kwargs)
