import math
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, ValidationError, field_validator

from ..errors import MalformedResponse
from ..models import DifficultyAdjustment


class GeneratedProblem(BaseModel):
    """Shape of one problem as returned by the generator (camelCase on the wire)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    question_string: StrictStr = Field(alias="questionString")
    estimated_time: StrictInt = Field(alias="estimatedTime", gt=0)
    difficulty_adjustment: DifficultyAdjustment = Field(alias="difficultyAdjustment")
    # the local evaluator is authoritative; a supplied answer is only compared against it
    answer: Optional[float] = None
    reasoning: Optional[StrictStr] = None

    @field_validator("question_string")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("questionString must be a non-empty string")
        return value.strip()

    @field_validator("answer")
    @classmethod
    def _finite(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and not math.isfinite(value):
            raise ValueError("answer must be a finite number")
        return value


def validate_generated_problem(data: Any) -> GeneratedProblem:
    if not isinstance(data, dict):
        raise MalformedResponse(f"Invalid problem format: expected an object, got {type(data).__name__}")
    try:
        return GeneratedProblem.model_validate(data)
    except ValidationError as exc:
        fields = [".".join(str(p) for p in err["loc"]) for err in exc.errors()]
        raise MalformedResponse(f"Invalid problem format: bad fields {fields}") from exc
