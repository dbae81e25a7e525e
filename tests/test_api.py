import asyncio

import pytest
from fastapi.testclient import TestClient

from mathquiz import main
from mathquiz.main import app
from mathquiz.services.gemini_client import GeminiProblemGenerator
from mathquiz.state import session_store

from conftest import FakeScheduler

client = TestClient(app)


@pytest.fixture(autouse=True)
def offline_app(monkeypatch, settings):
    monkeypatch.setattr(main, "make_scheduler", FakeScheduler)
    monkeypatch.setattr(main, "generator", GeminiProblemGenerator(settings))
    monkeypatch.setattr(main.settings, "notice_flags_path", settings.notice_flags_path)


def start(mode="standard"):
    r = client.post("/api/session/start", json={"mode": mode})
    assert r.status_code == 200
    return r.json()


def acquire(session_id):
    asyncio.run(session_store.get(session_id).acquire_problem())


def press(session_id, key):
    r = client.post(f"/api/session/{session_id}/input", json={"key": key})
    assert r.status_code == 200
    return r.json()


def test_start_session():
    body = start()
    assert body["phase"] == "loading"
    assert body["mode"] == "standard"
    assert body["score"] == 0
    assert session_store.has_session(body["session_id"])


def test_adaptive_request_without_key_falls_back_to_standard():
    body = start("adaptive")
    assert body["mode"] == "standard"
    assert body["generative_unavailable"] is True


def test_play_a_round():
    session_id = start()["session_id"]
    acquire(session_id)
    view = client.get(f"/api/session/{session_id}").json()
    assert view["phase"] == "playing"
    assert view["question_string"]
    assert isinstance(view["tree"], list) and view["tree"]

    answer = session_store.get(session_id).state.problem.answer
    for key in f"{answer:g}":
        press(session_id, key)
    body = press(session_id, "enter")
    assert body["phase"] == "feedback"
    assert body["feedback"] == "correct"
    assert body["score"] >= 50
    assert body["rounds_played"] == 1


def test_skip_reveals_answer():
    session_id = start()["session_id"]
    acquire(session_id)
    answer = session_store.get(session_id).state.problem.answer
    body = press(session_id, "skip")
    assert body["feedback"] == "incorrect"
    assert body["correct_answer"] == answer


def test_unknown_key_rejected():
    session_id = start()["session_id"]
    r = client.post(f"/api/session/{session_id}/input", json={"key": "x"})
    assert r.status_code == 422


def test_unknown_session():
    r = client.get("/api/session/nope")
    assert r.status_code == 404
    assert r.json()["detail"] == "session_not_found"


def test_switch_to_adaptive_refused_when_unavailable():
    session_id = start()["session_id"]
    r = client.post(f"/api/session/{session_id}/mode", json={"mode": "adaptive"})
    assert r.status_code == 200
    body = r.json()
    assert body["mode"] == "standard"
    assert body["notice"]


def test_restart_and_end_session():
    session_id = start()["session_id"]
    acquire(session_id)
    press(session_id, "skip")
    body = client.post(f"/api/session/{session_id}/restart").json()
    assert body["phase"] == "loading"
    assert body["rounds_played"] == 0
    assert client.delete(f"/api/session/{session_id}").json() == {"ok": True}
    assert client.get(f"/api/session/{session_id}").status_code == 404


def test_evaluate_valid():
    r = client.post("/api/evaluate", json={"question": "2+3*4"})
    assert r.status_code == 200
    data = r.json()
    assert data["ok"] is True
    assert data["answer"] == 14
    assert data["canonical"] == "2 + 3 * 4"


def test_evaluate_fraction_tree():
    data = client.post("/api/evaluate", json={"question": "(1+2)/3"}).json()
    assert data["ok"] is True
    assert data["tree"][0]["type"] == "fraction"
    assert data["answer"] == 1


def test_evaluate_division_by_zero():
    data = client.post("/api/evaluate", json={"question": "1/0"}).json()
    assert data["ok"] is False
    assert "division" in data["feedback"].lower()


def test_evaluate_malformed():
    data = client.post("/api/evaluate", json={"question": "(2+3"}).json()
    assert data["ok"] is False
    assert data["feedback"]


def test_debug_prompt():
    session_id = start()["session_id"]
    r = client.get("/api/debug/prompt", params={"session_id": session_id})
    assert r.status_code == 200
    assert "questionString" in r.json()["prompt"]


def test_evaluate_huge_result():
    data = client.post("/api/evaluate", json={"question": "10^30"}).json()
    assert data["ok"] is True
    assert data["answer"] == pytest.approx(1e30)
