import asyncio
import random

import pytest

from mathquiz.bank import BankProblem, ProblemBank
from mathquiz.config import Settings
from mathquiz.controller import QuizController
from mathquiz.notice_flags import NoticeFlags
from mathquiz.services.problem_sources import GenerativeProducer, StaticBankProducer


class FakeScheduler:
    """Records timers by slot name; tests fire them by hand."""

    def __init__(self):
        self.timers = {}

    def call_later(self, name, delay, callback):
        self.timers[name] = (delay, callback, False)

    def every(self, name, interval, callback):
        self.timers[name] = (interval, callback, True)

    def cancel(self, name):
        self.timers.pop(name, None)

    def cancel_all(self):
        self.timers.clear()

    def pending(self, name):
        return name in self.timers

    def delay(self, name):
        return self.timers[name][0]

    def fire(self, name):
        delay, callback, repeating = self.timers[name]
        if not repeating:
            del self.timers[name]
        callback()


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeGenerator:
    """Stands in for the Gemini client. Replies are served in order; the last one repeats."""

    def __init__(self, replies=None, available=True):
        self.replies = list(replies or [])
        self.available = available
        self.calls = []

    def request_problem(self, history, target="baseline", session_id=None):
        self.calls.append({"history": list(history), "target": target, "session_id": session_id})
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply

    def build_prompt(self, history, target):
        return f"prompt target={target} history={len(history)}"


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def generated(question="3+4", estimated_time=5, adjustment="initial", **extra):
    payload = {"questionString": question, "estimatedTime": estimated_time, "difficultyAdjustment": adjustment}
    payload.update(extra)
    return payload


def acquire(controller):
    asyncio.run(controller.acquire_problem())


def type_answer(controller, text):
    for key in text:
        controller.handle_key(key)


def answer_text(value):
    return f"{value:g}"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        gemini_api_key=None,
        notice_flags_path=str(tmp_path / "notice_flags.json"),
        session_log_dir=None,
    )


@pytest.fixture
def small_bank():
    return ProblemBank({
        level: [BankProblem(question_string=f"{level}+1", answer=level + 1, estimated_time=5)]
        for level in range(1, 11)
    })


@pytest.fixture
def real_bank(settings):
    return ProblemBank.from_file(settings.bank_path)


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_controller(settings, real_bank, scheduler, clock):
    def factory(generator=None, bank=None, mode=None, bank_producer=None, generative=None):
        if generative is None and generator is not None:
            generative = GenerativeProducer(generator, settings=settings, sleep=RecordingSleep())
        if bank_producer is None:
            bank_producer = StaticBankProducer(bank or real_bank, settings=settings, rng=random.Random(7))
        return QuizController(
            generative=generative,
            bank_producer=bank_producer,
            scheduler=scheduler,
            notice_flags=NoticeFlags(settings.notice_flags_path),
            settings=settings,
            clock=clock,
            mode=mode,
            session_id="test-session",
        )

    return factory
