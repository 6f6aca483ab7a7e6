"""
Save matched questions, titles and finished papers to the question bank.
"""
from __future__ import annotations

import copy
import logging
from typing import Any, Dict

logger = logging.getLogger(__name__)

SUCCESS_CODE = 200


def is_success_response(result: Any) -> bool:
    return isinstance(result, dict) and result.get("code") == SUCCESS_CODE


def build_question_payload(raw_candidate: Dict[str, Any], paper_id: str, question_index: int) -> Dict[str, Any]:
    """Copy a raw search entry and add the fields that bind it to a paper slot."""
    payload = copy.deepcopy(raw_candidate)
    payload.update(
        {
            "addFlag": 1,
            "paperId": paper_id,
            "sysCode": 1,
            "questionType": "1",
            "relationType": 1,
            "inputType": 1,
            "questionIndex": question_index,
        }
    )
    return payload


def build_title_payload(paper_id: str, question_index: int, stem: str) -> Dict[str, Any]:
    return {
        "paperId": paper_id,
        "inputType": 1,
        "questionIndex": question_index,
        "questionType": "2",
        "addFlag": 1,
        "sysCode": 1,
        "relationType": 0,
        "questionSource": 3,
        "structureType": "biaoti",
        "questionInfo": {"stem": f"<span>{stem}</span>"},
    }


class SubmissionAdapter:
    """
    Thin wrapper over the save and submit endpoints.

    Responses are returned as-is; callers decide with ``is_success_response``.
    Transport errors from ``remote`` propagate.
    """

    def __init__(
        self,
        remote,
        save_endpoint: str = "/question/new/save",
        submit_endpoint: str = "/paper/process/submit",
    ) -> None:
        self.remote = remote
        self.save_endpoint = save_endpoint
        self.submit_endpoint = submit_endpoint

    @classmethod
    def from_config(cls, remote, config: Dict[str, Any]) -> SubmissionAdapter:
        endpoints = (config.get("tiku") or {}).get("endpoints") or {}
        return cls(
            remote,
            save_endpoint=endpoints.get("save_question", "/question/new/save"),
            submit_endpoint=endpoints.get("submit_paper", "/paper/process/submit"),
        )

    def save_question(self, raw_candidate: Dict[str, Any], paper_id: str, question_index: int) -> Any:
        payload = build_question_payload(raw_candidate, paper_id, question_index)
        return self.remote.execute(self.save_endpoint, payload)

    def save_title(self, paper_id: str, question_index: int, stem: str) -> Any:
        return self.remote.execute(self.save_endpoint, build_title_payload(paper_id, question_index, stem))

    def submit_paper(self, paper_id: str) -> Any:
        logger.info(f"Submitting paper {paper_id}")
        return self.remote.execute(self.submit_endpoint, {"paperId": paper_id, "type": "NEW_INPUT"})
