"""Problem producers behind one acquisition contract.

Both producers expose ``async produce(request) -> Problem`` and only return
problems whose question string parses and whose estimated time is positive.

- ``GenerativeProducer`` asks Gemini for a question, validates the reply,
  parses it and computes the answer locally. Failed attempts are retried
  with a fixed backoff; when the budget is spent it raises
  ``SourceExhausted``.
- ``StaticBankProducer`` draws from the ten-level bank. With no-repeat on it
  remembers what this session has seen and raises ``LevelExhausted`` once a
  level runs dry.
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, Dict, Optional, Set

from ..bank import ProblemBank
from ..config import Settings, settings as default_settings
from ..errors import MalformedResponse, ProblemSourceError, QuestionSyntaxError, LevelExhausted, SourceExhausted
from ..models import DifficultyAdjustment, Problem, ProblemRequest
from .adaptive_engine import determine_target
from .evaluator import evaluate
from .gemini_client import GeminiProblemGenerator
from .parser import parse_question_string
from .validation import validate_generated_problem

logger = logging.getLogger("mathquiz")


class GenerativeProducer:
    def __init__(
        self,
        generator: GeminiProblemGenerator,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        session_id: Optional[str] = None,
    ) -> None:
        self.generator = generator
        self.settings = settings or default_settings
        self.sleep = sleep
        self.session_id = session_id

    @property
    def available(self) -> bool:
        return bool(getattr(self.generator, "available", True))

    def _to_problem(self, payload) -> Problem:
        generated = validate_generated_problem(payload)
        try:
            tree = parse_question_string(generated.question_string, self.settings.max_nesting_depth)
        except QuestionSyntaxError as exc:
            raise MalformedResponse(f"Question does not parse: {exc.message}") from exc
        answer = evaluate(tree)
        if answer is None:
            raise MalformedResponse(f"Question has no numeric answer: {generated.question_string}")
        if generated.answer is not None and abs(generated.answer - answer) >= self.settings.answer_tolerance:
            logger.debug({"event": "generator_answer_ignored", "question": generated.question_string, "supplied": generated.answer, "computed": answer})
        return Problem(
            question_string=generated.question_string,
            tree=tree,
            answer=answer,
            estimated_time=generated.estimated_time,
            difficulty_adjustment=generated.difficulty_adjustment,
            reasoning=generated.reasoning,
        )

    async def produce(self, request: ProblemRequest) -> Problem:
        window = request.history[-self.settings.history_window:] if self.settings.history_window > 0 else []
        target = determine_target(window)
        budget = max(1, self.settings.retry_budget)
        for attempt in range(1, budget + 1):
            try:
                payload = await asyncio.to_thread(self.generator.request_problem, window, target, self.session_id)
                problem = self._to_problem(payload)
                logger.debug({"event": "generative_problem", "attempt": attempt, "question": problem.question_string, "answer": problem.answer, "estimated_time": problem.estimated_time})
                return problem
            except ProblemSourceError as exc:
                logger.warning({"event": "generative_attempt_failed", "attempt": attempt, "retries_left": budget - attempt, "code": exc.code, "reason": exc.message})
                if attempt < budget:
                    await self.sleep(self.settings.retry_backoff)
        raise SourceExhausted(f"No valid problem after {budget} attempts", attempts=budget)


class StaticBankProducer:
    def __init__(
        self,
        bank: ProblemBank,
        settings: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
        no_repeat: Optional[bool] = None,
    ) -> None:
        self.bank = bank
        self.settings = settings or default_settings
        self.rng = rng or random.Random()
        self.no_repeat = self.settings.bank_no_repeat if no_repeat is None else no_repeat
        self.consumed: Dict[int, Set[int]] = {}

    def reset(self) -> None:
        self.consumed.clear()

    def pick(self, level: int) -> Problem:
        level = max(self.settings.min_level, min(self.settings.max_level, level))
        problems = self.bank.problems(level)
        if not problems:
            raise LevelExhausted(level)
        seen = self.consumed.setdefault(level, set())
        candidates = [i for i in range(len(problems)) if not (self.no_repeat and i in seen)]
        if not candidates:
            raise LevelExhausted(level)
        index = self.rng.choice(candidates)
        seen.add(index)
        chosen = problems[index]
        return Problem(
            question_string=chosen.question_string,
            tree=parse_question_string(chosen.question_string, self.settings.max_nesting_depth),
            answer=chosen.answer,
            estimated_time=chosen.estimated_time,
            difficulty_adjustment=DifficultyAdjustment.INITIAL,
        )

    async def produce(self, request: ProblemRequest) -> Problem:
        return self.pick(request.level)
