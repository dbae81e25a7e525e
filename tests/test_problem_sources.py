import asyncio
import random

import pytest

from mathquiz.errors import LevelExhausted, SourceExhausted, SourceUnavailable
from mathquiz.models import DifficultyAdjustment, PerformanceRecord, ProblemRequest
from mathquiz.services.problem_sources import GenerativeProducer, StaticBankProducer

from conftest import FakeGenerator, RecordingSleep, generated


def record(correct, adjustment=DifficultyAdjustment.INITIAL, user_answer=1.0):
    return PerformanceRecord(
        question_text="1+1",
        correct_answer=2.0,
        user_answer=user_answer,
        time_taken=3.0,
        estimated_time=5,
        correct=correct,
        difficulty_adjustment=adjustment,
    )


def produce(producer, history=None, level=1):
    return asyncio.run(producer.produce(ProblemRequest(history=history or [], level=level)))


def test_generated_problem_answer_is_computed_locally(settings):
    generator = FakeGenerator([generated("2+3*4", estimated_time=8, answer=99, reasoning="warm up")])
    problem = produce(GenerativeProducer(generator, settings=settings, sleep=RecordingSleep()))
    assert problem.answer == 14
    assert problem.estimated_time == 8
    assert problem.reasoning == "warm up"
    assert problem.tree


def test_retries_until_a_valid_problem(settings):
    sleep = RecordingSleep()
    generator = FakeGenerator([
        SourceUnavailable("down"),
        generated("2+"),
        generated("1/0"),
        generated("6*7"),
    ])
    settings.retry_budget = 4
    problem = produce(GenerativeProducer(generator, settings=settings, sleep=sleep))
    assert problem.answer == 42
    assert len(generator.calls) == 4
    assert sleep.delays == [settings.retry_backoff] * 3


def test_exhausts_retry_budget(settings):
    sleep = RecordingSleep()
    generator = FakeGenerator([{"unexpected": "shape"}])
    with pytest.raises(SourceExhausted) as exc:
        produce(GenerativeProducer(generator, settings=settings, sleep=sleep))
    assert exc.value.attempts == 3
    assert len(generator.calls) == 3
    assert len(sleep.delays) == 2


def test_sends_recent_window_and_target(settings):
    generator = FakeGenerator([generated()])
    producer = GenerativeProducer(generator, settings=settings, sleep=RecordingSleep(), session_id="abc")
    history = [record(False) for _ in range(3)] + [record(True) for _ in range(5)]
    produce(producer, history=history)
    call = generator.calls[0]
    assert len(call["history"]) == 5
    assert call["target"] == "harder"
    assert call["session_id"] == "abc"


def test_first_request_is_baseline(settings):
    generator = FakeGenerator([generated()])
    produce(GenerativeProducer(generator, settings=settings, sleep=RecordingSleep()))
    assert generator.calls[0]["target"] == "baseline"
    assert generator.calls[0]["history"] == []


def test_bank_problem_is_parsed(settings, real_bank):
    producer = StaticBankProducer(real_bank, settings=settings, rng=random.Random(1))
    problem = produce(producer, level=5)
    assert problem.tree
    assert problem.difficulty_adjustment == DifficultyAdjustment.INITIAL
    assert problem.question_string in [p.question_string for p in real_bank.problems(5)]


def test_bank_does_not_repeat_until_reset(settings, real_bank):
    producer = StaticBankProducer(real_bank, settings=settings, rng=random.Random(3))
    count = len(real_bank.problems(2))
    seen = {producer.pick(2).question_string for _ in range(count)}
    assert len(seen) == count
    with pytest.raises(LevelExhausted) as exc:
        producer.pick(2)
    assert exc.value.level == 2
    producer.reset()
    assert producer.pick(2).question_string in seen


def test_bank_repeats_when_allowed(settings, small_bank):
    producer = StaticBankProducer(small_bank, settings=settings, no_repeat=False)
    for _ in range(5):
        assert producer.pick(1).question_string == "1+1"


def test_bank_clamps_level(settings, small_bank):
    producer = StaticBankProducer(small_bank, settings=settings)
    assert producer.pick(15).question_string == "10+1"
    assert producer.pick(0).question_string == "1+1"
