import pytest
from fastapi.testclient import TestClient

from mockinterview.database import get_store
from mockinterview.dependencies import get_text_generator
from mockinterview.main import app
from mockinterview.models.conversation import ConversationConfig
from mockinterview.routers.voice import _start
from mockinterview.voice.engine import ConversationEngine

from tests.fakes import FakeSpeechBackend, FakeTextGenerator, ScriptedClient

QUESTIONS = ["What is the virtual DOM?", "How do you manage state in React?"]


@pytest.fixture
def generator():
    return FakeTextGenerator()


@pytest.fixture
def client(store, generator):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_text_generator] = lambda: generator
    yield TestClient(app)
    app.dependency_overrides.clear()


def _create_interview(client, user_id="user-1", **fields):
    body = {"userId": user_id, "role": "Frontend Developer", "level": "senior", "type": "technical",
            "techstack": "React,TypeScript", "amount": 3}
    body.update(fields)
    response = client.post("/api/generate-interview", json=body)
    assert response.status_code == 200
    return response.json()


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


class TestGenerateInterview:
    def test_from_explicit_details(self, client):
        data = _create_interview(client)
        assert data["success"] is True
        assert len(data["questions"]) == 3
        assert data["details"]["level"] == "senior-level"
        assert data["details"]["techstack"] == ["React", "TypeScript"]

    def test_from_conversation(self, client):
        response = client.post("/api/generate-interview", json={
            "userId": "user-1",
            "conversation": [
                {"role": "assistant", "content": "What role are you preparing for?"},
                {"role": "user", "content": "I'm preparing for a frontend developer role"},
                {"role": "user", "content": "It's a senior position using React and TypeScript"},
                {"role": "user", "content": "technical questions please, 8 questions"},
            ],
        })
        assert response.status_code == 200
        data = response.json()
        assert data["details"]["role"] == "Frontend Developer"
        assert len(data["questions"]) == 8

    def test_from_transcript_text(self, client):
        response = client.post("/api/generate-interview", json={
            "userId": "user-1",
            "conversation": "assistant: Hi!\nuser: I want a data engineer interview with Python, 2 questions",
        })
        assert response.status_code == 200
        assert response.json()["details"]["role"] == "Data Engineer"

    def test_missing_conversation_and_role(self, client):
        response = client.post("/api/generate-interview", json={"userId": "user-1"})
        assert response.status_code == 400
        assert response.json()["success"] is False
        assert "Missing conversation or role" in response.json()["error"]

    def test_missing_user(self, client):
        response = client.post("/api/generate-interview", json={"role": "Dev"})
        assert response.status_code == 400
        assert "userId" in response.json()["error"]

    def test_store_failure(self, client, store):
        store.failing.add("create:interviews")
        response = client.post("/api/generate-interview", json={"userId": "user-1", "role": "Dev"})
        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Failed to save interview"}


class TestInterviewQueries:
    def test_get_interview(self, client):
        created = _create_interview(client)
        response = client.get(f"/api/interviews/{created['interviewId']}")
        assert response.status_code == 200
        data = response.json()
        assert data["id"] == created["interviewId"]
        assert data["userId"] == "user-1"
        assert data["finalized"] is False
        assert data["questions"] == created["questions"]

    def test_unknown_interview(self, client):
        assert client.get("/api/interviews/not-an-id").status_code == 404

    def test_user_lists_and_latest(self, client):
        mine = _create_interview(client, "me")
        done = _create_interview(client, "me")
        theirs = _create_interview(client, "other")
        client.post("/api/complete-interview", json={"interviewId": done["interviewId"]})
        client.post("/api/complete-interview", json={"interviewId": theirs["interviewId"]})

        pending = client.get("/api/users/me/interviews", params={"status": "pending"}).json()
        assert [i["id"] for i in pending] == [mine["interviewId"]]
        completed = client.get("/api/users/me/interviews", params={"status": "completed"}).json()
        assert [i["id"] for i in completed] == [done["interviewId"]]
        assert len(client.get("/api/users/me/interviews").json()) == 2

        latest = client.get("/api/users/me/interviews/latest").json()
        assert [i["id"] for i in latest] == [theirs["interviewId"]]


class TestCompleteInterview:
    def test_complete(self, client):
        created = _create_interview(client)
        response = client.post("/api/complete-interview", json={"interviewId": created["interviewId"]})
        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert client.get(f"/api/interviews/{created['interviewId']}").json()["finalized"] is True

    def test_unknown(self, client):
        response = client.post("/api/complete-interview", json={"interviewId": "64b7f0c2a1b2c3d4e5f60718"})
        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_missing_id(self, client):
        assert client.post("/api/complete-interview", json={}).status_code == 400


class TestFeedback:
    TRANSCRIPT = [
        {"role": "assistant", "content": "What is the virtual DOM?"},
        {"role": "user", "content": "I built a React dashboard with my team and debugged its rendering."},
    ]

    def test_create_and_fetch(self, client):
        created = _create_interview(client)
        response = client.post("/api/feedback", json={
            "interviewId": created["interviewId"],
            "userId": "user-1",
            "transcript": self.TRANSCRIPT,
        })
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["finalized"] is True

        report = client.get(f"/api/interviews/{created['interviewId']}/feedback", params={"userId": "user-1"}).json()
        assert report["id"] == data["feedbackId"]
        assert [c["name"] for c in report["categoryScores"]] == [
            "Communication Skills", "Technical Knowledge", "Problem Solving", "Cultural Fit", "Confidence and Clarity",
        ]

    def test_empty_transcript(self, client):
        created = _create_interview(client)
        response = client.post("/api/feedback", json={"interviewId": created["interviewId"], "userId": "user-1"})
        assert response.status_code == 200
        assert response.json() == {"success": True, "feedbackId": None, "finalized": True}

    def test_unknown_interview(self, client):
        response = client.post("/api/feedback", json={
            "interviewId": "64b7f0c2a1b2c3d4e5f60718", "userId": "user-1", "transcript": self.TRANSCRIPT,
        })
        assert response.status_code == 404

    def test_write_failure_still_finalizes(self, client, store):
        created = _create_interview(client)
        store.failing.add("create:feedback")
        response = client.post("/api/feedback", json={
            "interviewId": created["interviewId"], "userId": "user-1", "transcript": self.TRANSCRIPT,
        })
        assert response.status_code == 500
        assert response.json() == {"success": False, "feedbackId": None, "finalized": True}

    def test_missing_feedback(self, client):
        created = _create_interview(client)
        response = client.get(f"/api/interviews/{created['interviewId']}/feedback", params={"userId": "user-1"})
        assert response.status_code == 404


class TestChat:
    def test_interview_turn(self, client):
        response = client.post("/api/chat", json={
            "message": "An in-memory copy of the DOM.",
            "conversationHistory": [{"role": "assistant", "content": f"Hello! {QUESTIONS[0]}"}],
            "type": "interview",
            "questions": QUESTIONS,
            "currentQuestionIndex": 1,
            "userName": "Sam",
        })
        assert response.status_code == 200
        assert response.json()["response"].endswith(QUESTIONS[1])

    def test_setup_turn_without_model(self, client):
        response = client.post("/api/chat", json={"message": "hello", "type": "generate"})
        assert response.status_code == 200
        assert response.json()["response"]

    def test_message_list(self, client, generator):
        generator.responses.append("Welcome, let's begin.")
        response = client.post("/api/chat", json={"messages": [{"role": "user", "content": "Hi"}]})
        assert response.status_code == 200
        assert response.json() == {"response": "Welcome, let's begin."}

    def test_message_list_generation_failure(self, client):
        response = client.post("/api/chat", json={"messages": [{"role": "user", "content": "Hi"}]})
        assert response.status_code == 500
        assert response.json() == {"error": "Failed to generate response"}

    def test_invalid_bodies(self, client):
        assert client.post("/api/chat", json={"messages": []}).status_code == 400
        assert client.post("/api/chat", json={"message": "hi"}).status_code == 400
        assert client.post("/api/chat", json={"message": "hi", "type": "interview", "currentQuestionIndex": -1}).status_code == 400


def _receive_until(websocket, predicate, limit=100):
    for _ in range(limit):
        message = websocket.receive_json()
        if predicate(message):
            return message
    raise AssertionError("expected message never arrived")


def _is_event(event, **fields):
    return lambda m: m.get("type") == "event" and m.get("event") == event and all(m.get(k) == v for k, v in fields.items())


class TestVoiceSocket:
    def _config(self, interview_id):
        return {
            "type": "interview",
            "questions": QUESTIONS,
            "userId": "user-1",
            "userName": "Sam",
            "interviewId": interview_id,
        }

    def test_session_without_answers(self, client):
        created = _create_interview(client)
        with client.websocket_connect("/api/voice/ws") as websocket:
            websocket.send_json({"type": "start", "config": self._config(created["interviewId"])})
            _receive_until(websocket, lambda m: m["type"] == "probe")
            websocket.send_json({"type": "capabilities", "recognition": True, "synthesis": True, "microphone": True})

            speak = _receive_until(websocket, lambda m: m["type"] == "speak")
            assert speak["text"].endswith(QUESTIONS[0])
            websocket.send_json({"type": "speech-start", "utteranceId": speak["utteranceId"]})
            websocket.send_json({"type": "speech-end", "utteranceId": speak["utteranceId"]})
            _receive_until(websocket, lambda m: m["type"] == "start-recognition")

            websocket.send_json({"type": "stop"})
            _receive_until(websocket, _is_event("status", value="FINISHED"))
            _receive_until(websocket, _is_event("outcome", value="completed"))

        assert client.get(f"/api/interviews/{created['interviewId']}").json()["finalized"] is True

    def test_missing_capability(self, client):
        with client.websocket_connect("/api/voice/ws") as websocket:
            websocket.send_json({"type": "start", "config": self._config("64b7f0c2a1b2c3d4e5f60718")})
            _receive_until(websocket, lambda m: m["type"] == "probe")
            websocket.send_json({"type": "capabilities", "recognition": True, "synthesis": True, "microphone": False})
            error = _receive_until(websocket, _is_event("error"))
            assert error["errorType"] == "CapabilityError"
            assert error["missing"] == ["microphone"]

    def test_invalid_config(self, client):
        with client.websocket_connect("/api/voice/ws") as websocket:
            websocket.send_json({"type": "start", "config": {"type": "interview"}})
            error = _receive_until(websocket, _is_event("error"))
            assert "Invalid session config" in error["error"]

    def test_malformed_bridge_event_keeps_session(self, client):
        created = _create_interview(client)
        with client.websocket_connect("/api/voice/ws") as websocket:
            websocket.send_json({"type": "start", "config": self._config(created["interviewId"])})
            _receive_until(websocket, lambda m: m["type"] == "probe")
            websocket.send_json({"type": "capabilities", "recognition": True, "synthesis": True, "microphone": True})

            speak = _receive_until(websocket, lambda m: m["type"] == "speak")
            websocket.send_json({"type": "speech-end", "utteranceId": "abc"})
            websocket.send_json({"type": "speech-start", "utteranceId": speak["utteranceId"]})
            websocket.send_json({"type": "speech-end", "utteranceId": speak["utteranceId"]})
            _receive_until(websocket, lambda m: m["type"] == "start-recognition")

            websocket.send_json({"type": "stop"})
            _receive_until(websocket, _is_event("status", value="FINISHED"))


class _RecordingBridge:
    def __init__(self):
        self.sent = []

    def send(self, message):
        self.sent.append(message)


async def test_unexpected_start_failure_is_reported():
    engine = ConversationEngine(FakeSpeechBackend(), ScriptedClient())

    async def broken_start(config):
        raise RuntimeError("speech bridge went away")

    engine.start_conversation = broken_start
    bridge = _RecordingBridge()
    await _start(engine, ConversationConfig(mode="generate", user_id="user-1"), bridge)

    assert bridge.sent == [{
        "type": "event",
        "event": "error",
        "error": "speech bridge went away",
        "errorType": "RuntimeError",
    }]
