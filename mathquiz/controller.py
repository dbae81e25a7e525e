"""Session controller: the quiz state machine.

Phases run ``start -> loading -> playing -> feedback -> loading -> ...``.
All session state lives in one ``SessionState`` owned by the controller and
is only changed by the transitions below. Time-driven transitions go through
a scheduler with named slots (tick, acquire, notice, shake); re-arming a slot
cancels the timer pending in it.

Only one acquisition may be in flight: ``acquire_problem`` returns at once
if another one has not finished yet.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from .config import Settings, settings as default_settings
from .errors import LevelExhausted, SourceExhausted
from .models import FeedbackKind, GameMode, GamePhase, PerformanceRecord, Problem, ProblemRequest, SessionView, DifficultyAdjustment
from .notice_flags import DECIMALS_DISCLAIMER, NoticeFlags
from .scheduler import ACQUIRE, NOTICE, SHAKE, TICK
from .services.adaptive_engine import CLEAN, SLOPPY, WRONG, apply_outcome, clamp_level, points_for
from .state import SessionState

logger = logging.getLogger("mathquiz")

GENERATIVE_EXHAUSTED_NOTICE = "AI is resting. Switched to Standard Mode!"
GENERATIVE_UNAVAILABLE_NOTICE = "The AI tutor is unavailable for the rest of this session."
BANK_FAILED_NOTICE = "Failed to generate a standard problem."
TOP_LEVEL_NOTICE = "You are on the highest level!"
IDLE_NOTICE = "Paused after several unanswered questions. Start again when you are ready."
DECIMALS_NOTICE = "Heads up! Decimal answers are rounded to the hundredths place."

DIGITS = "0123456789"


def parse_answer(buffer: str) -> Optional[float]:
    try:
        return float(buffer)
    except ValueError:
        return None


class QuizController:
    def __init__(
        self,
        *,
        generative,
        bank_producer,
        scheduler,
        notice_flags: Optional[NoticeFlags] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.monotonic,
        mode: Optional[GameMode] = None,
        session_id: str = "",
    ) -> None:
        self.generative = generative
        self.bank_producer = bank_producer
        self.scheduler = scheduler
        self.notice_flags = notice_flags
        self.settings = settings or default_settings
        self.clock = clock
        self.session_id = session_id
        generative_ok = generative is not None and getattr(generative, "available", True)
        if mode is None:
            mode = GameMode.ADAPTIVE if generative_ok else GameMode.STANDARD
        self.state = SessionState(mode=mode, generative_unavailable=not generative_ok)
        if mode == GameMode.ADAPTIVE and not generative_ok:
            self.state.mode = GameMode.STANDARD
        self._in_flight = False
        self._acquisition_task: Optional[asyncio.Task] = None

    # -- lifecycle ---------------------------------------------------------

    def start_game(self) -> None:
        previous = self.state
        self.scheduler.cancel_all()
        # mode and source availability outlive a restart
        self.state = SessionState(mode=previous.mode, generative_unavailable=previous.generative_unavailable)
        self.state.phase = GamePhase.LOADING
        self.bank_producer.reset()
        logger.debug({"event": "game_started", "session_id": self.session_id, "mode": self.state.mode.value})
        self._schedule_acquisition(0.0)

    def close(self) -> None:
        self.scheduler.cancel_all()
        if self._acquisition_task is not None and not self._acquisition_task.done():
            self._acquisition_task.cancel()

    def set_mode(self, mode: GameMode) -> bool:
        if mode == GameMode.ADAPTIVE and self.state.generative_unavailable:
            self._notify(GENERATIVE_UNAVAILABLE_NOTICE)
            return False
        self.state.mode = mode
        logger.debug({"event": "mode_changed", "session_id": self.session_id, "mode": mode.value})
        return True

    # -- acquisition -------------------------------------------------------

    def _schedule_acquisition(self, delay: float) -> None:
        self.scheduler.call_later(ACQUIRE, delay, self._launch_acquisition)

    def _launch_acquisition(self) -> None:
        self._acquisition_task = asyncio.get_running_loop().create_task(self.acquire_problem())
        self._acquisition_task.add_done_callback(self._acquisition_done)

    def _acquisition_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error({"event": "acquisition_task_failed", "session_id": self.session_id, "error": repr(exc)}, exc_info=exc)

    @property
    def acquisition_in_flight(self) -> bool:
        return self._in_flight

    async def acquire_problem(self) -> None:
        if self._in_flight:
            logger.debug({"event": "acquisition_skipped", "session_id": self.session_id, "reason": "already_in_flight"})
            return
        self._in_flight = True
        self.scheduler.cancel(ACQUIRE)
        self.scheduler.cancel(TICK)
        self.state.phase = GamePhase.LOADING
        self.state.reset_attempt()
        try:
            problem = await self._produce()
        finally:
            self._in_flight = False
        if problem is None:
            return
        s = self.state
        s.problem = problem
        s.phase = GamePhase.PLAYING
        s.started_at = self.clock()
        s.elapsed = 0.0
        self.scheduler.every(TICK, self.settings.tick_interval, self.tick)
        logger.debug({
            "event": "serve_problem",
            "session_id": self.session_id,
            "mode": s.mode.value,
            "level": s.level,
            "question": problem.question_string,
            "estimated_time": problem.estimated_time,
        })

    async def _produce(self) -> Optional[Problem]:
        s = self.state
        if s.mode == GameMode.ADAPTIVE and not s.generative_unavailable:
            request = ProblemRequest(history=s.recent_history(self.settings.history_window), level=s.level)
            try:
                return await self.generative.produce(request)
            except SourceExhausted as exc:
                logger.error({"event": "generative_source_exhausted", "session_id": self.session_id, "attempts": exc.attempts})
                self._mark_generative_unavailable()
            except Exception:
                logger.exception({"event": "generative_problem_failed", "session_id": self.session_id})
                self._mark_generative_unavailable()
        try:
            return await self._produce_from_bank()
        except Exception:
            logger.exception({"event": "standard_problem_failed", "session_id": self.session_id})
            self.state.phase = GamePhase.START
            self._notify(BANK_FAILED_NOTICE)
            return None

    def _mark_generative_unavailable(self) -> None:
        self.state.generative_unavailable = True
        self.state.mode = GameMode.STANDARD
        self._notify(GENERATIVE_EXHAUSTED_NOTICE)

    async def _produce_from_bank(self) -> Problem:
        s = self.state
        # every level can be rolled over once, plus one pass after wrapping
        for _ in range(self.settings.max_level - self.settings.min_level + 2):
            try:
                problem = await self.bank_producer.produce(ProblemRequest(history=[], level=s.level))
            except LevelExhausted as exc:
                self._roll_exhausted_level(exc.level)
                continue
            self._maybe_show_decimals_notice()
            return problem
        raise LevelExhausted(s.level)

    def _roll_exhausted_level(self, level: int) -> None:
        s = self.state
        if level < self.settings.max_level:
            s.level = level + 1
        else:
            s.level = clamp_level(self.settings.bank_wrap_level, self.settings)
            self.bank_producer.reset()
        s.correct_streak = 0
        s.wrong_streak = 0
        logger.info({"event": "level_exhausted", "session_id": self.session_id, "exhausted": level, "level": s.level})

    def _maybe_show_decimals_notice(self) -> None:
        if self.notice_flags is None or self.state.level < self.settings.decimal_notice_level:
            return
        if not self.notice_flags.has_seen(DECIMALS_DISCLAIMER):
            self._notify(DECIMALS_NOTICE)
            self.notice_flags.mark_seen(DECIMALS_DISCLAIMER)

    # -- rounds ------------------------------------------------------------

    def _playing(self) -> bool:
        return self.state.phase == GamePhase.PLAYING and self.state.problem is not None

    def tick(self) -> None:
        s = self.state
        if not self._playing() or s.started_at is None:
            return
        s.elapsed = self.clock() - s.started_at
        if s.elapsed >= s.problem.estimated_time:
            self.submit_answer(timed_out=True)

    def _record(self, user_answer: Optional[float], correct: bool, adjustment: DifficultyAdjustment) -> PerformanceRecord:
        s = self.state
        record = PerformanceRecord(
            question_text=s.problem.question_string,
            correct_answer=s.problem.answer,
            user_answer=user_answer,
            time_taken=round(s.elapsed, 2),
            estimated_time=s.problem.estimated_time,
            correct=correct,
            difficulty_adjustment=adjustment,
        )
        s.history.append(record)
        return record

    def _apply_outcome(self, outcome: str) -> None:
        s = self.state
        update = apply_outcome(
            outcome,
            mode=s.mode,
            level=s.level,
            correct_streak=s.correct_streak,
            wrong_streak=s.wrong_streak,
            settings=self.settings,
        )
        if update.direction != "none":
            logger.debug({"event": "level_changed", "session_id": self.session_id, "direction": update.direction, "level": update.level})
        s.level = update.level
        s.correct_streak = update.correct_streak
        s.wrong_streak = update.wrong_streak

    def _stop_clock(self) -> None:
        self.scheduler.cancel(TICK)
        s = self.state
        if s.started_at is not None:
            s.elapsed = self.clock() - s.started_at

    def submit_answer(self, timed_out: bool = False) -> bool:
        s = self.state
        if not self._playing():
            return False
        if not timed_out and s.answer_buffer in ("", "-"):
            return False
        self._stop_clock()
        problem = s.problem
        user_answer = parse_answer(s.answer_buffer)
        numerically_correct = user_answer is not None and abs(user_answer - problem.answer) < self.settings.answer_tolerance
        was_correct = not timed_out and numerically_correct
        clean = was_correct and not s.made_mistake
        self._record(user_answer, clean, problem.difficulty_adjustment)
        if clean:
            s.score += points_for(problem.estimated_time, s.elapsed)
        self._apply_outcome(CLEAN if clean else SLOPPY if was_correct else WRONG)
        s.phase = GamePhase.FEEDBACK
        s.feedback = FeedbackKind.CORRECT if was_correct else FeedbackKind.INCORRECT
        s.correct_answer = None if was_correct else problem.answer
        s.last_time_taken = round(s.elapsed, 1)
        s.timed_out = timed_out
        logger.debug({
            "event": "submit_answer",
            "session_id": self.session_id,
            "question": problem.question_string,
            "user_answer": user_answer,
            "correct_answer": problem.answer,
            "timed_out": timed_out,
            "correct": was_correct,
            "clean": clean,
            "score": s.score,
            "level": s.level,
        })
        if timed_out:
            s.idle_rounds += 1
            if 0 < self.settings.idle_round_limit <= s.idle_rounds:
                self._pause_idle()
                return True
        self._schedule_acquisition(self.settings.correct_delay if was_correct else self.settings.incorrect_delay)
        return True

    def _pause_idle(self) -> None:
        s = self.state
        logger.info({"event": "session_paused", "session_id": self.session_id, "idle_rounds": s.idle_rounds})
        s.idle_rounds = 0
        s.phase = GamePhase.START
        self._notify(IDLE_NOTICE)

    def skip(self) -> bool:
        s = self.state
        if not self._playing():
            return False
        self._stop_clock()
        self._record(None, False, s.problem.difficulty_adjustment)
        self._apply_outcome(WRONG)
        s.phase = GamePhase.FEEDBACK
        s.feedback = FeedbackKind.INCORRECT
        s.correct_answer = s.problem.answer
        s.last_time_taken = round(s.elapsed, 1)
        logger.debug({"event": "skip_question", "session_id": self.session_id, "question": s.problem.question_string})
        self._schedule_acquisition(self.settings.incorrect_delay)
        return True

    def increase_difficulty(self) -> bool:
        s = self.state
        if not self._playing():
            return False
        if s.mode == GameMode.STANDARD and s.level >= self.settings.max_level:
            self._notify(TOP_LEVEL_NOTICE)
            return False
        self._stop_clock()
        if s.mode == GameMode.STANDARD:
            self._record(None, False, s.problem.difficulty_adjustment)
            s.level = clamp_level(s.level + 1, self.settings)
            s.correct_streak = 0
            s.wrong_streak = 0
        else:
            self._record(None, False, DifficultyAdjustment.SIGNIFICANT_INCREASE)
        s.phase = GamePhase.LOADING
        logger.debug({"event": "increase_difficulty", "session_id": self.session_id, "mode": s.mode.value, "level": s.level})
        self._schedule_acquisition(0.0)
        return True

    # -- answer buffer -----------------------------------------------------

    def press_digit(self, digit: str) -> None:
        if len(digit) != 1 or digit not in DIGITS:
            raise ValueError(f"Not a digit: {digit!r}")
        if self._playing():
            self.state.answer_buffer += digit

    def toggle_sign(self) -> None:
        if not self._playing():
            return
        buffer = self.state.answer_buffer
        self.state.answer_buffer = buffer[1:] if buffer.startswith("-") else "-" + buffer

    def insert_decimal_point(self) -> None:
        if not self._playing():
            return
        buffer = self.state.answer_buffer
        if "." in buffer:
            return
        self.state.answer_buffer = buffer + ("0." if buffer in ("", "-") else ".")

    def backspace(self) -> None:
        s = self.state
        if not self._playing():
            return
        if not s.made_mistake:
            s.made_mistake = True
            s.shaking = True
            self.scheduler.call_later(SHAKE, self.settings.shake_duration, self._clear_shake)
        s.answer_buffer = s.answer_buffer[:-1]

    def handle_key(self, key: str) -> None:
        """Dispatch one keypad event. Any key counts as activity for the idle pause."""
        self.state.idle_rounds = 0
        if self.state.phase == GamePhase.FEEDBACK:
            return
        if key == "enter":
            self.submit_answer(timed_out=False)
        elif key == "skip":
            self.skip()
        elif key == "increase_difficulty":
            self.increase_difficulty()
        elif key == "backspace":
            self.backspace()
        elif key == "-":
            self.toggle_sign()
        elif key == ".":
            self.insert_decimal_point()
        else:
            self.press_digit(key)

    # -- transient flags ---------------------------------------------------

    def _notify(self, message: str) -> None:
        self.state.notice = message
        self.scheduler.call_later(NOTICE, self.settings.notice_duration, self._clear_notice)

    def _clear_notice(self) -> None:
        self.state.notice = None

    def _clear_shake(self) -> None:
        self.state.shaking = False

    def view(self) -> SessionView:
        s = self.state
        problem = s.problem if s.phase in (GamePhase.PLAYING, GamePhase.FEEDBACK) else None
        return SessionView(
            session_id=self.session_id,
            phase=s.phase,
            mode=s.mode,
            question_string=problem.question_string if problem else None,
            tree=problem.tree if problem else None,
            estimated_time=problem.estimated_time if problem else None,
            answer_buffer=s.answer_buffer,
            score=s.score,
            level=s.level,
            correct_streak=s.correct_streak,
            wrong_streak=s.wrong_streak,
            elapsed=round(s.elapsed, 2),
            last_time_taken=s.last_time_taken,
            feedback=s.feedback,
            correct_answer=s.correct_answer,
            notice=s.notice,
            shaking=s.shaking,
            generative_unavailable=s.generative_unavailable,
            rounds_played=len(s.history),
            timed_out=s.timed_out,
        )
