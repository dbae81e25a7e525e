"""Exceptions raised by the expression pipeline and the problem sources.

Codes are grouped by their first digit:
    1xxx  expression syntax
    2xxx  expression evaluation
    3xxx  problem sources
"""


class QuizError(Exception):
    def __init__(self, message, code="9999"):
        super().__init__(message)
        self.message = message
        self.code = code


class ExpressionError(QuizError):
    pass

class QuestionSyntaxError(ExpressionError):
    def __init__(self, message, code="1000", position=None):
        super().__init__(message, code=code)
        self.position = position

class DivisionByZero(ExpressionError):
    def __init__(self, message="Division by zero", code="2001"):
        super().__init__(message, code=code)

class DomainError(ExpressionError):
    def __init__(self, message, code="2002"):
        super().__init__(message, code=code)

class InvalidExpression(ExpressionError):
    def __init__(self, message, code="2003"):
        super().__init__(message, code=code)


class ProblemSourceError(QuizError):
    pass

class MalformedResponse(ProblemSourceError):
    def __init__(self, message, code="3001"):
        super().__init__(message, code=code)

class SourceUnavailable(ProblemSourceError):
    def __init__(self, message, code="3002"):
        super().__init__(message, code=code)

class SourceExhausted(ProblemSourceError):
    def __init__(self, message, code="3003", attempts=0):
        super().__init__(message, code=code)
        self.attempts = attempts

class LevelExhausted(ProblemSourceError):
    def __init__(self, level, code="3004"):
        super().__init__(f"No unseen problems left at level {level}", code=code)
        self.level = level
