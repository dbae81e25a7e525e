import pytest

from mathquiz.errors import DivisionByZero, DomainError, InvalidExpression
from mathquiz.services.evaluator import evaluate, evaluate_question_string, evaluate_strict, flatten, round_answer, to_postfix
from mathquiz.services.parser import parse_question_string


@pytest.mark.parametrize("question, expected", [
    ("2+3*4", 14),
    ("(2+3)*4", 20),
    ("2^3^2", 512),
    ("{1/2}+{1/4}", 0.75),
    ("sqrt(64)", 8),
    ("|-5|", 5),
    ("10-4-3", 3),
    ("24/4/2", 3),
    ("-3+2", -1),
    ("2*-3", -6),
    ("12-(-3)*4", 24),
    ("-(8-15)", 7),
    ("2^(-2)", 0.25),
    ("{2/3}", 0.67),
])
def test_evaluates_question_strings(question, expected):
    assert evaluate_question_string(question) == pytest.approx(expected)


@pytest.mark.parametrize("question, expected", [
    ("3(4+5)", 27),
    ("(2)(3)", 6),
    ("2sqrt(9)", 6),
    ("(1+1)sqrt(9)", 6),
    ("(1+1)3", 6),
])
def test_implicit_multiplication(question, expected):
    assert evaluate_question_string(question) == pytest.approx(expected)


def test_flatten_rewrites_unary_minus():
    assert flatten(parse_question_string("-2+3")) == [-1.0, "*", 2.0, "+", 3.0]


def test_flatten_wraps_structures():
    assert flatten(parse_question_string("sqrt(4)")) == ["sqrt", "(", 4.0, ")"]
    assert flatten(parse_question_string("{1/2}")) == ["(", 1.0, ")", "/", "(", 2.0, ")"]


def test_to_postfix_precedence():
    assert to_postfix([2.0, "+", 3.0, "*", 4.0]) == [2.0, 3.0, 4.0, "*", "+"]
    assert to_postfix([2.0, "^", 3.0, "^", 2.0]) == [2.0, 3.0, 2.0, "^", "^"]


def test_division_by_zero():
    assert evaluate_question_string("1/0") is None
    with pytest.raises(DivisionByZero):
        evaluate_strict(parse_question_string("5/(2-2)"))


def test_domain_errors():
    assert evaluate(parse_question_string("sqrt(-4)")) is None
    with pytest.raises(DomainError):
        evaluate_strict(parse_question_string("sqrt(-4)"))
    with pytest.raises(DomainError):
        evaluate_strict(parse_question_string("(-8)^{1/3}"))


def test_overflow_is_invalid():
    with pytest.raises(InvalidExpression):
        evaluate_strict(parse_question_string("10^400"))


def test_malformed_string_gives_no_answer():
    assert evaluate_question_string("2+") is None


def test_round_answer_half_up():
    assert round_answer(0.125) == 0.13
    assert round_answer(-0.125) == -0.13
    assert round_answer(2.0 / 3.0) == 0.67
    assert str(round_answer(-0.001)) == "0.0"


def test_float_noise_is_rounded_away():
    assert evaluate_question_string("3.6/0.4") == 9.0
    assert evaluate_question_string("sqrt(|-49|)*{5/7}") == 5.0


def test_large_results_are_returned_unrounded():
    assert evaluate(parse_question_string("10^30")) == pytest.approx(1e30)
    assert evaluate(parse_question_string("99999999999999*99999999999999")) == pytest.approx(9.9999999999998e27)
    assert round_answer(1e300) == 1e300


def test_rounding_still_applies_below_the_limit():
    assert evaluate_question_string("123456789012.345+0") == 123456789012.35


@pytest.mark.parametrize("question, expected", [
    ("50% of 80", 40),
    ("25%", 0.25),
    ("10+50%", 10.5),
    ("20% of (40+10)", 10),
])
def test_percent_shorthand(question, expected):
    assert evaluate_question_string(question) == pytest.approx(expected)
