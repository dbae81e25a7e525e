from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import settings
from .errors import QuestionSyntaxError
from .services.parser import parse_question_string

logger = logging.getLogger("mathquiz")


class BankProblem(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    question_string: str = Field(alias="questionString", min_length=1)
    answer: float
    estimated_time: float = Field(alias="estimatedTime", gt=0)


class ProblemBank:
    """Pre-vetted problems keyed by level.

    Records that fail validation or do not parse are skipped with a warning
    instead of failing the whole bank.
    """

    def __init__(self, levels: Dict[int, List[BankProblem]]) -> None:
        empty = sorted(level for level, problems in levels.items() if not problems)
        if not levels or empty:
            raise ValueError(f"Problem bank has empty levels: {empty or 'all'}")
        self.levels = levels

    @classmethod
    def from_file(cls, path: str | Path) -> "ProblemBank":
        p = Path(path)
        with p.open("r", encoding="utf-8") as f:
            raw = json.load(f)
        if not isinstance(raw, dict):
            raise ValueError(f"Problem bank {p} must map levels to problem lists")
        levels: Dict[int, List[BankProblem]] = {}
        for key, items in raw.items():
            level = int(key)
            problems: List[BankProblem] = []
            for idx, item in enumerate(items if isinstance(items, list) else []):
                try:
                    problem = BankProblem.model_validate(item)
                    parse_question_string(problem.question_string)
                except (ValidationError, QuestionSyntaxError) as exc:
                    logger.warning({"event": "bank_record_skipped", "level": level, "index": idx, "reason": str(exc)})
                    continue
                problems.append(problem)
            levels[level] = problems
        return cls(levels)

    def problems(self, level: int) -> List[BankProblem]:
        return self.levels.get(level, [])


_bank: ProblemBank | None = None


def get_bank() -> ProblemBank:
    global _bank
    if _bank is None:
        _bank = ProblemBank.from_file(settings.bank_path)
        logger.debug({"event": "bank_loaded", "levels": {lvl: len(p) for lvl, p in _bank.levels.items()}})
    return _bank
