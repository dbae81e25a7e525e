from typing import Any, Dict, List, Optional
from .models import FeedbackKind, GameMode, GamePhase, PerformanceRecord, Problem

class SessionState:
	def __init__(self, mode: GameMode = GameMode.ADAPTIVE, generative_unavailable: bool = False) -> None:
		self.phase = GamePhase.START
		self.mode = mode
		self.problem: Optional[Problem] = None
		self.answer_buffer = ""
		self.score = 0
		self.level = 1
		self.correct_streak = 0
		self.wrong_streak = 0
		self.elapsed = 0.0
		self.started_at: Optional[float] = None
		self.last_time_taken: Optional[float] = None
		self.timed_out = False
		self.feedback = FeedbackKind.NONE
		self.correct_answer: Optional[float] = None
		self.notice: Optional[str] = None
		self.shaking = False
		self.made_mistake = False
		self.idle_rounds = 0
		self.history: List[PerformanceRecord] = []
		self.generative_unavailable = generative_unavailable

	def recent_history(self, window: int) -> List[PerformanceRecord]:
		if window <= 0:
			return []
		return list(self.history[-window:])

	def reset_attempt(self) -> None:
		self.feedback = FeedbackKind.NONE
		self.answer_buffer = ""
		self.made_mistake = False
		self.shaking = False
		self.correct_answer = None
		self.timed_out = False

class SessionStore:
	def __init__(self) -> None:
		self.sessions: Dict[str, Any] = {}

	def create_session(self, session_id: str, controller: Any) -> None:
		self.sessions[session_id] = controller

	def has_session(self, session_id: str) -> bool:
		return session_id in self.sessions

	def get(self, session_id: str) -> Any:
		return self.sessions[session_id]

	def remove_session(self, session_id: str) -> None:
		controller = self.sessions.pop(session_id, None)
		if controller is not None:
			controller.close()

session_store = SessionStore()
