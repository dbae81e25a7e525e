import json
import logging
from pathlib import Path
from typing import Dict

logger = logging.getLogger("mathquiz")

DECIMALS_DISCLAIMER = "seen_decimal_notification"


class NoticeFlags:
    """One-shot notice flags that outlive a session, kept in a small JSON file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _load(self) -> Dict[str, bool]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (FileNotFoundError, json.JSONDecodeError):
            return {}
        return data if isinstance(data, dict) else {}

    def has_seen(self, key: str) -> bool:
        return bool(self._load().get(key, False))

    def mark_seen(self, key: str) -> None:
        flags = self._load()
        flags[key] = True
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(flags, f, indent=4)
        except OSError:
            logger.exception("notice_flags_write_failed")
