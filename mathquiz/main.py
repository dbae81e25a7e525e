from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import ORJSONResponse
from fastapi.middleware.cors import CORSMiddleware
import logging
import uuid
from time import perf_counter
from datetime import datetime, timezone
from .state import session_store
from .models import (
	DebugPromptResponse,
	EvaluateRequest,
	EvaluateResponse,
	GameMode,
	InputRequest,
	ModeRequest,
	SessionView,
	StartSessionRequest,
)
from .bank import get_bank
from .controller import QuizController
from .errors import ExpressionError
from .notice_flags import NoticeFlags
from .scheduler import AsyncioScheduler
from .services.adaptive_engine import determine_target
from .services.evaluator import evaluate_strict
from .services.gemini_client import GeminiProblemGenerator
from .services.parser import parse_question_string
from .services.printer import to_question_string
from .services.problem_sources import GenerativeProducer, StaticBankProducer
from .config import settings

logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(levelname)s %(name)s %(message)s")
logger = logging.getLogger("mathquiz")

app = FastAPI(default_response_class=ORJSONResponse)

app.add_middleware(
	CORSMiddleware,
	allow_origins=["*"],
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)

generator = GeminiProblemGenerator()

def make_scheduler():
	return AsyncioScheduler()

def build_controller(session_id: str, mode: GameMode | None = None) -> QuizController:
	return QuizController(
		generative=GenerativeProducer(generator, settings=settings, session_id=session_id),
		bank_producer=StaticBankProducer(get_bank(), settings=settings),
		scheduler=make_scheduler(),
		notice_flags=NoticeFlags(settings.notice_flags_path),
		settings=settings,
		mode=mode,
		session_id=session_id,
	)

def get_controller(session_id: str) -> QuizController:
	if not session_store.has_session(session_id):
		raise HTTPException(status_code=404, detail="session_not_found")
	return session_store.get(session_id)

@app.on_event("startup")
def on_startup() -> None:
	logger.info({
		"event": "api_startup",
		"utc_time": datetime.now(timezone.utc).isoformat(),
		"model": settings.gemini_model,
		"generative_available": generator.available,
		"retry_budget": settings.retry_budget,
		"history_window": settings.history_window,
	})

@app.on_event("shutdown")
def on_shutdown() -> None:
	for session_id in list(session_store.sessions):
		session_store.remove_session(session_id)

@app.middleware("http")
async def timing_middleware(request: Request, call_next):
	start = perf_counter()
	response = await call_next(request)
	duration_ms = int((perf_counter() - start) * 1000)
	logger.debug({
		"event": "request_timing",
		"method": request.method,
		"path": request.url.path,
		"status_code": response.status_code,
		"duration_ms": duration_ms,
	})
	return response

@app.post("/api/session/start", response_model=SessionView)
async def start_session(payload: StartSessionRequest | None = None):
	session_id = str(uuid.uuid4())
	controller = build_controller(session_id, payload.mode if payload else None)
	session_store.create_session(session_id, controller)
	controller.start_game()
	logger.debug({"event": "session_started", "session_id": session_id, "mode": controller.state.mode.value})
	return controller.view()

@app.get("/api/session/{session_id}", response_model=SessionView)
async def get_session(session_id: str):
	return get_controller(session_id).view()

@app.post("/api/session/{session_id}/input", response_model=SessionView)
async def send_input(session_id: str, payload: InputRequest):
	controller = get_controller(session_id)
	controller.handle_key(payload.key)
	return controller.view()

@app.post("/api/session/{session_id}/mode", response_model=SessionView)
async def set_mode(session_id: str, payload: ModeRequest):
	controller = get_controller(session_id)
	controller.set_mode(payload.mode)
	return controller.view()

@app.post("/api/session/{session_id}/restart", response_model=SessionView)
async def restart_session(session_id: str):
	controller = get_controller(session_id)
	controller.start_game()
	return controller.view()

@app.delete("/api/session/{session_id}")
async def end_session(session_id: str):
	get_controller(session_id)
	session_store.remove_session(session_id)
	logger.debug({"event": "session_ended", "session_id": session_id})
	return {"ok": True}

@app.post("/api/evaluate", response_model=EvaluateResponse)
async def evaluate_question(payload: EvaluateRequest):
	try:
		tree = parse_question_string(payload.question, settings.max_nesting_depth)
		answer = evaluate_strict(tree)
	except ExpressionError as exc:
		return EvaluateResponse(ok=False, feedback=exc.message)
	return EvaluateResponse(ok=True, tree=tree, canonical=to_question_string(tree), answer=answer)

@app.get("/api/debug/prompt", response_model=DebugPromptResponse)
async def get_debug_prompt(session_id: str, target: str | None = None):
	controller = get_controller(session_id)
	history = controller.state.recent_history(settings.history_window)
	chosen_target = target or determine_target(history)
	return DebugPromptResponse(prompt=generator.build_prompt(history, chosen_target))
