import sqlite3
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import chatbot
import storage
from auth import AuthService
from catalog import Catalog


class ChatSessionTests(unittest.TestCase):
    def setUp(self):
        self.session = chatbot.ChatSession(Catalog())

    def test_starts_with_welcome(self):
        history = self.session.history()
        self.assertEqual(len(history), 1)
        self.assertEqual(history[0]["id"], "welcome")
        self.assertEqual(history[0]["type"], "bot")
        self.assertEqual(history[0]["confidence"], 1.0)

    def test_single_match_reply(self):
        reply = self.session.send_message("something funny")
        self.assertEqual([movie["title"] for movie in reply["movies"]], ["Superbad"])
        self.assertTrue(reply["content"].endswith("I found the perfect movie for you!"))
        self.assertEqual(reply["confidence"], 0.9)
        types = [message["type"] for message in self.session.history()]
        self.assertEqual(types, ["bot", "user", "bot"])
        self.assertEqual(self.session.history()[1]["status"], "sent")

    def test_multiple_matches_reply(self):
        reply = self.session.send_message("surprise me")
        self.assertIn("I found 6 great movies for you!", reply["content"])

    def test_failure_becomes_apology(self):
        with mock.patch("recommender.get_recommendations", side_effect=RuntimeError("boom")):
            with self.assertLogs("chatbot", level="ERROR"):
                reply = self.session.send_message("anything")
        self.assertEqual(reply["content"], chatbot.ERROR_TEXT)
        self.assertEqual(reply["confidence"], 0.1)

    def test_no_results_text(self):
        empty = {"movies": [], "reasoning": "", "confidence": 0.3, "search_strategy": "fallback"}
        with mock.patch("recommender.get_recommendations", return_value=empty):
            reply = self.session.send_message("anything")
        self.assertEqual(reply["content"], chatbot.NO_RESULTS_TEXT)

    def test_smart_mode_uses_strategies(self):
        session = chatbot.ChatSession(Catalog(), smart=True)
        reply = session.send_message("I'm scared")
        self.assertEqual([movie["title"] for movie in reply["movies"]], ["The Conjuring"])

    def test_select_movie(self):
        message = self.session.select_movie({"title": "Inception", "year": 2010, "rating": 8.8, "genre": "Sci-Fi"})
        self.assertEqual(message["type"], "system")
        self.assertIn("**Inception** (2010)", message["content"])
        self.assertTrue(message["content"].endswith("Great choice!"))

    def test_history_is_capped(self):
        for index in range(60):
            self.session.select_movie({"title": f"Movie {index}", "description": "x" * 300})
        history = self.session.history()
        self.assertEqual(len(history), chatbot.HISTORY_LIMIT)
        self.assertIn("Movie 59", history[-1]["content"])
        self.assertTrue(history[-1]["content"].endswith("..."))

    def test_reset(self):
        self.session.send_message("hello")
        old_session_id = self.session.session_id
        self.session.reset()
        self.assertTrue(self.session.session_id.startswith("session_"))
        self.assertNotEqual(self.session.session_id, old_session_id)
        self.assertEqual([message["id"] for message in self.session.history()], ["welcome"])


class AuthenticatedChatTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.db_path = Path(self.tmpdir.name) / "test.db"
        self.auth = AuthService(db_path=self.db_path, allow_demo_users=True)
        user = self.auth.login("jane@example.com", "pw")["user"]
        self.user_id = user["id"]
        self.catalog = Catalog(user_id=self.user_id, db_path=self.db_path)
        self.session = chatbot.ChatSession(self.catalog, auth=self.auth, db_path=self.db_path)

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_queries_are_logged(self):
        reply = self.session.send_message("a good laugh", mood="funny")
        history = storage.get_user_history(self.user_id, event_type="chat_query", db_path=self.db_path)
        self.assertEqual(len(history), 1)
        payload = history[0]["payload"]
        self.assertEqual(payload["query"], "a good laugh")
        self.assertEqual(payload["mood"], "funny")
        self.assertEqual(payload["movie_ids"], [movie["id"] for movie in reply["movies"]])

    def test_user_context_failure_still_recommends(self):
        with mock.patch.object(self.catalog, "get_liked_movies", side_effect=RuntimeError("boom")):
            with self.assertLogs("chatbot", level="ERROR"):
                reply = self.session.send_message("something funny")
        self.assertEqual([movie["title"] for movie in reply["movies"]], ["Superbad"])
        self.assertEqual(reply["confidence"], 0.9)

    def test_event_log_failure_still_replies(self):
        with mock.patch("storage.log_event", side_effect=sqlite3.OperationalError("database is locked")):
            with self.assertLogs("chatbot", level="ERROR"):
                reply = self.session.send_message("something funny")
        self.assertEqual([movie["title"] for movie in reply["movies"]], ["Superbad"])

    def test_auth_failure_becomes_apology(self):
        with mock.patch.object(self.auth, "get_current_user", side_effect=RuntimeError("boom")):
            with self.assertLogs("chatbot", level="ERROR"):
                reply = self.session.send_message("something funny")
        self.assertEqual(reply["content"], chatbot.ERROR_TEXT)
        self.assertEqual(reply["confidence"], 0.1)

    def test_rated_movies_are_skipped_in_smart_mode(self):
        self.catalog.rate_movie("12", 8)
        session = chatbot.ChatSession(self.catalog, auth=self.auth, db_path=self.db_path, smart=True)
        reply = session.send_message("I'm scared")
        self.assertNotIn("12", [movie["id"] for movie in reply["movies"]])


if __name__ == "__main__":
    unittest.main()
