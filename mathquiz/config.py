import os
from pathlib import Path
from pydantic import BaseModel
from dotenv import load_dotenv

load_dotenv()

_PACKAGE_DIR = Path(__file__).resolve().parent

class Settings(BaseModel):
    gemini_api_key: str | None = os.getenv("GEMINI_API_KEY")
    gemini_model: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
    gemini_temperature: float = float(os.getenv("GEMINI_TEMPERATURE", "0.9"))
    history_window: int = int(os.getenv("HISTORY_WINDOW", "5"))
    retry_budget: int = int(os.getenv("RETRY_BUDGET", "3"))
    retry_backoff: float = float(os.getenv("RETRY_BACKOFF", "0.25"))
    tick_interval: float = float(os.getenv("TICK_INTERVAL", "0.1"))
    correct_delay: float = float(os.getenv("CORRECT_DELAY", "0.75"))
    incorrect_delay: float = float(os.getenv("INCORRECT_DELAY", "2.5"))
    notice_duration: float = float(os.getenv("NOTICE_DURATION", "4.0"))
    shake_duration: float = float(os.getenv("SHAKE_DURATION", "0.5"))
    answer_tolerance: float = 0.01
    min_level: int = 1
    max_level: int = 10
    correct_streak_to_level_up: int = int(os.getenv("CORRECT_STREAK_TO_LEVEL_UP", "3"))
    wrong_streak_to_level_down: int = int(os.getenv("WRONG_STREAK_TO_LEVEL_DOWN", "2"))
    idle_round_limit: int = int(os.getenv("IDLE_ROUND_LIMIT", "3"))
    decimal_notice_level: int = 6
    bank_path: str = os.getenv("BANK_PATH", str(_PACKAGE_DIR / "data" / "standard_problems.json"))
    bank_no_repeat: bool = os.getenv("BANK_NO_REPEAT", "true").lower() == "true"
    bank_wrap_level: int = int(os.getenv("BANK_WRAP_LEVEL", "1"))
    max_nesting_depth: int = int(os.getenv("MAX_NESTING_DEPTH", "32"))
    notice_flags_path: str = os.getenv("NOTICE_FLAGS_PATH", str(Path.home() / ".mathquiz" / "notice_flags.json"))
    session_log_dir: str | None = os.getenv("SESSION_LOG_DIR")

settings = Settings()
