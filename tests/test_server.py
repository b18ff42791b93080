import unittest

import chess

from llmchess_live.config import load_settings
from llmchess_live.errors import SuggestionError
from llmchess_live.protocol import SessionProtocolHandler
from llmchess_live.referee import CandidateMove
from llmchess_live.server import build_suggester, create_app
from llmchess_live.store import SessionStore


class NullTransport:
    def __init__(self):
        self.sent = []

    def send(self, connection_id, event, payload):
        self.sent.append((connection_id, event, payload))


class FixedSuggester:
    def __init__(self, move):
        self.move = move

    def suggest(self, referee):
        return self.move


class RaisingSuggester:
    def suggest(self, referee):
        raise SuggestionError(3, RuntimeError("rate limited"))


class HttpApiTests(unittest.TestCase):
    def setUp(self):
        self.settings = load_settings(cfg={}, env={"FRONTEND_URL": "http://localhost:5173"})
        self.store = SessionStore()
        self.transport = NullTransport()
        self.use_suggester(FixedSuggester(CandidateMove("e2", "e4")))

    def use_suggester(self, suggester):
        self.handler = SessionProtocolHandler(self.store, self.transport, suggester=suggester, thinking_delay_s=0)
        self.client = create_app(self.store, self.handler, self.settings).test_client()

    def tearDown(self):
        self.handler.shutdown()

    def test_health(self):
        resp = self.client.get("/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()["status"], "ok")

    def test_create_and_list(self):
        resp = self.client.post("/sessions", json={"isAIGame": True})
        self.assertEqual(resp.status_code, 201)
        game = resp.get_json()["game"]
        self.assertTrue(game["isAIGame"])
        self.assertEqual(game["fen"], chess.STARTING_FEN)
        self.assertNotIn("history", game)

        listed = self.client.get("/sessions").get_json()
        self.assertTrue(listed["success"])
        self.assertEqual([g["id"] for g in listed["games"]], [game["id"]])
        self.assertEqual(listed["games"][0]["turn"], "w")

    def test_create_without_body_is_human_game(self):
        resp = self.client.post("/sessions")
        self.assertEqual(resp.status_code, 201)
        self.assertFalse(resp.get_json()["game"]["isAIGame"])

    def test_automated_opponent_flag_is_accepted(self):
        resp = self.client.post("/sessions", json={"automatedOpponent": True})
        self.assertTrue(resp.get_json()["game"]["isAIGame"])

    def test_get_game_with_history(self):
        session = self.store.create()
        session.referee.apply_text("e4")
        body = self.client.get(f"/sessions/{session.id}").get_json()
        self.assertTrue(body["success"])
        self.assertEqual(body["game"]["turn"], "b")
        self.assertEqual([m["san"] for m in body["game"]["history"]], ["e4"])
        self.assertEqual(body["game"]["history"][0]["from"], "e2")

    def test_get_unknown_game(self):
        resp = self.client.get("/sessions/game_missing")
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.get_json(), {"success": False, "error": "Game not found"})

    def test_games_prefix_is_an_alias(self):
        session = self.store.create()
        resp = self.client.get(f"/games/{session.id}")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()["game"]["id"], session.id)

    def test_cors_headers(self):
        resp = self.client.get("/sessions")
        self.assertEqual(resp.headers["Access-Control-Allow-Origin"], "http://localhost:5173")
        preflight = self.client.open("/sessions", method="OPTIONS")
        self.assertIn(preflight.status_code, (200, 204))

    def test_ai_move(self):
        session = self.store.create(ai_enabled=True)
        self.store.attach(session.id, "viewer")
        resp = self.client.post(f"/sessions/{session.id}/ai-move")
        self.assertEqual(resp.status_code, 200)
        body = resp.get_json()
        self.assertTrue(body["success"])
        self.assertEqual(body["move"]["san"], "e4")
        self.assertEqual(body["turn"], "b")
        self.assertEqual(len(body["history"]), 1)
        events = [ev for cid, ev, _ in self.transport.sent if cid == "viewer"]
        self.assertEqual(events, ["move_made"])
        self.assertFalse(session.ai_pending)

    def test_ai_move_rejections(self):
        human = self.store.create(ai_enabled=False)
        resp = self.client.post(f"/sessions/{human.id}/ai-move")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json()["error"], "This is not an AI game")

        resp = self.client.post("/sessions/game_missing/ai-move")
        self.assertEqual(resp.status_code, 404)

    def test_ai_move_without_provider(self):
        self.use_suggester(None)
        session = self.store.create(ai_enabled=True)
        resp = self.client.post(f"/sessions/{session.id}/ai-move")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json()["error"], "No AI provider configured")
        self.assertFalse(session.ai_pending)

    def test_ai_move_with_no_suggestion(self):
        self.use_suggester(FixedSuggester(None))
        session = self.store.create(ai_enabled=True)
        resp = self.client.post(f"/sessions/{session.id}/ai-move")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json()["error"], "No valid AI move available")
        self.assertEqual(session.referee.fen(), chess.STARTING_FEN)

    def test_ai_move_with_illegal_suggestion(self):
        self.use_suggester(FixedSuggester(CandidateMove("e2", "e5")))
        session = self.store.create(ai_enabled=True)
        resp = self.client.post(f"/sessions/{session.id}/ai-move")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json(), {"success": False, "error": "AI move is invalid"})
        self.assertEqual(session.referee.fen(), chess.STARTING_FEN)
        self.assertFalse(session.ai_pending)

    def test_ai_move_when_suggestions_run_out(self):
        self.use_suggester(RaisingSuggester())
        session = self.store.create(ai_enabled=True)
        resp = self.client.post(f"/sessions/{session.id}/ai-move")
        self.assertEqual(resp.status_code, 400)
        self.assertIn("after 3 attempts", resp.get_json()["error"])
        self.assertEqual(session.referee.fen(), chess.STARTING_FEN)
        self.assertFalse(session.ai_pending)


class BuildSuggesterTests(unittest.TestCase):
    def test_missing_credential_disables_opponent(self):
        self.assertIsNone(build_suggester(load_settings(cfg={}, env={"AI_PROVIDER": "groq"})))

    def test_unknown_provider_disables_opponent(self):
        self.assertIsNone(build_suggester(load_settings(cfg={}, env={"AI_PROVIDER": "mystery"})))

    def test_configured_provider(self):
        suggester = build_suggester(load_settings(cfg={}, env={"AI_PROVIDER": "openai", "OPENAI_API_KEY": "k"}))
        self.assertIsNotNone(suggester)
        self.assertEqual(suggester.provider, "openai")


if __name__ == "__main__":
    unittest.main()
