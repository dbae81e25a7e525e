import math
from typing import List
from ..config import Settings
from ..models import DifficultyAdjustment, GameMode, PerformanceRecord, StreakUpdate

CLEAN = "clean"
SLOPPY = "sloppy"  # numerically correct, but a backspace was used
WRONG = "wrong"

def points_for(estimated_time: float, time_taken: float) -> int:
    time_bonus = max(0.0, estimated_time - time_taken)
    # round half up; the bonus is never negative
    return max(10, 50 + math.floor(time_bonus * 5 + 0.5))

def clamp_level(level: int, settings: Settings) -> int:
    return max(settings.min_level, min(settings.max_level, level))

def apply_outcome(outcome: str, *, mode: GameMode, level: int, correct_streak: int, wrong_streak: int, settings: Settings) -> StreakUpdate:
    direction = "none"
    if outcome == CLEAN:
        correct_streak += 1
        wrong_streak = 0
        if mode == GameMode.STANDARD and correct_streak >= settings.correct_streak_to_level_up and level < settings.max_level:
            level += 1
            correct_streak = 0
            direction = "increase"
    elif outcome == SLOPPY:
        wrong_streak = 0
    else:
        correct_streak = 0
        wrong_streak += 1
        if mode == GameMode.STANDARD and wrong_streak >= settings.wrong_streak_to_level_down:
            if level > settings.min_level:
                direction = "decrease"
            level -= 1
            wrong_streak = 0
    return StreakUpdate(level=clamp_level(level, settings), correct_streak=correct_streak, wrong_streak=wrong_streak, direction=direction)

def determine_target(recent: List[PerformanceRecord]) -> str:
    """Summarise the recent window as harder/easier/baseline for the generator."""
    total = len(recent)
    if total == 0:
        return "baseline"
    last = recent[-1]
    # an explicit "make it harder" request is recorded unanswered and tagged
    if last.difficulty_adjustment == DifficultyAdjustment.SIGNIFICANT_INCREASE and last.user_answer is None and not last.correct:
        return "harder"
    if total < 3:
        return "baseline"
    correct = sum(1 for r in recent if r.correct)
    if correct >= total - 1:
        return "harder"
    if correct <= 1:
        return "easier"
    return "baseline"
