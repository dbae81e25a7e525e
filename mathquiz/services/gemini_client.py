import os
import json
from typing import List, Dict, Any
import logging
from datetime import datetime, timezone
import google.generativeai as genai
from time import perf_counter
from ..config import settings as default_settings, Settings
from ..errors import MalformedResponse, SourceUnavailable
from ..models import PerformanceRecord
from .prompt_builder import PromptBuilder

logger = logging.getLogger("mathquiz")

PROMPT_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "prompts")

class GeminiProblemGenerator:
    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or default_settings
        if self.settings.gemini_api_key:
            genai.configure(api_key=self.settings.gemini_api_key)
        self.model_name = self.settings.gemini_model
        self.generation_config = {
            "temperature": self.settings.gemini_temperature,
            "response_mime_type": "application/json",
        }
        self.prompt_builder = PromptBuilder()

    @property
    def available(self) -> bool:
        return bool(self.settings.gemini_api_key)

    def _session_log_path(self, session_id: str) -> str | None:
        if not self.settings.session_log_dir:
            return None
        os.makedirs(self.settings.session_log_dir, exist_ok=True)
        return os.path.join(self.settings.session_log_dir, f"session_{session_id}.jsonl")

    def _append_log(self, session_id: str | None, record: Dict[str, Any]) -> None:
        if not session_id:
            return
        try:
            path = self._session_log_path(session_id)
            if path is None:
                return
            enriched = dict(record)
            enriched.setdefault("ts", datetime.now(timezone.utc).isoformat())
            with open(path, 'a', encoding='utf-8') as f:
                f.write(json.dumps(enriched, ensure_ascii=False) + "\n")
        except OSError:
            logger.exception("session_log_write_failed")

    def _load_prompt_template(self) -> str:
        path = os.path.join(PROMPT_DIR, "adaptive_math.txt")
        with open(path, "r", encoding="utf-8") as f:
            return f.read()

    def build_prompt(self, history: List[PerformanceRecord], target: str) -> str:
        return self.prompt_builder.build(self._load_prompt_template(), history=history, target=target)

    def _strip_code_fences(self, text: str) -> str:
        t = text.strip()
        if t.startswith("```"):
            parts = t.split("\n", 1)
            if len(parts) == 2:
                t = parts[1]
            if t.endswith("```"):
                t = t[:-3]
        if t.startswith("json\n"):
            t = t[5:]
        return t.strip()

    def _coerce_payload_to_object(self, obj: Any) -> Any:
        if isinstance(obj, list) and obj:
            return obj[0]
        if isinstance(obj, dict) and isinstance(obj.get("problem"), dict):
            return obj["problem"]
        return obj

    def _response_text(self, response: Any) -> str:
        try:
            raw_text = (response.text or "").strip()
        except ValueError:
            # .text raises when the candidate carries no simple text part
            raw_text = ""
        if not raw_text and getattr(response, "candidates", None):
            parts = response.candidates[0].content.parts
            raw_text = "".join(getattr(p, "text", "") for p in parts)
        return raw_text

    def request_problem(self, history: List[PerformanceRecord], target: str = "baseline", session_id: str | None = None) -> Any:
        """Ask Gemini for one problem and return the decoded JSON payload.

        Raises SourceUnavailable when the call itself fails and
        MalformedResponse when the reply is not JSON. Shape validation is
        left to the caller.
        """
        if not self.available:
            raise SourceUnavailable("No Gemini API key configured")
        prompt = self.build_prompt(history, target)
        self._append_log(session_id, {"event": "prompt", "target": target, "prompt": prompt})
        logger.debug({"event": "gemini_request", "model": self.model_name, "history_len": len(history), "target": target})
        t0 = perf_counter()
        try:
            model = genai.GenerativeModel(self.model_name, generation_config=self.generation_config)
            response = model.generate_content(prompt)
            raw_text = self._response_text(response)
        except Exception as exc:
            logger.exception("gemini_call_failed")
            raise SourceUnavailable(f"Gemini call failed: {type(exc).__name__}: {exc}") from exc
        latency_ms = int((perf_counter() - t0) * 1000)
        cleaned = self._strip_code_fences(raw_text)
        logger.debug({"event": "gemini_response", "preview": cleaned[:200], "latency_ms": latency_ms})
        try:
            payload = json.loads(cleaned)
        except json.JSONDecodeError as exc:
            raise MalformedResponse("Gemini reply is not valid JSON") from exc
        payload = self._coerce_payload_to_object(payload)
        self._append_log(session_id, {"event": "generated", "target": target, "latency_ms": latency_ms, "payload": payload})
        return payload
