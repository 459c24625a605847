import datetime
import logging
import sqlite3
import uuid

import recommender
import storage


logger = logging.getLogger(__name__)

HISTORY_LIMIT = 50
MAX_RESULTS = 8

WELCOME_TEXT = """🎬 Welcome to CineBot! I'm your personal movie recommendation assistant.

I can help you find the perfect movie based on:
• Your mood (happy, romantic, thrilled, etc.)
• Specific genres (action, comedy, drama, etc.)
• Time periods (movies from specific years)
• Rating preferences
• Your viewing history

Just tell me what you're in the mood for, and I'll recommend something great!"""

NO_RESULTS_TEXT = (
    "I couldn't find any movies matching your request right now. This might be due to "
    "specific filters or temporary API issues. Try describing what you're looking for in "
    "a different way, or ask for popular movies instead!"
)

ERROR_TEXT = """I apologize, but I'm having trouble processing your request right now. This could be due to:

• Temporary connectivity issues
• High demand on our recommendation system
• API limitations

Please try again in a moment, or try asking in a different way. I'm here to help! 🎬"""


class ChatSession:
    def __init__(self, catalog, auth=None, db_path=None, smart=False):
        self.catalog = catalog
        self.auth = auth
        self.db_path = db_path
        self.smart = smart
        self.session_id = None
        self.messages = []
        self.reset()

    def reset(self):
        self.session_id = f"session_{uuid.uuid4().hex[:12]}"
        self.messages = [
            _message(
                "bot",
                WELCOME_TEXT,
                message_id="welcome",
                confidence=1.0,
                reasoning="Ready to help you discover amazing movies!",
            )
        ]

    def history(self):
        return self.messages[-HISTORY_LIMIT:]

    def send_message(self, content, mood=None):
        self._add(_message("user", content, status="sent"))
        try:
            user = self.auth.get_current_user() if self.auth else None
            request = {
                "query": content,
                "mood": mood,
                "max_results": MAX_RESULTS,
                "user_context": self._user_context() if user else None,
            }
            if self.smart:
                result = recommender.get_smart_recommendations(request, self.catalog)
            else:
                result = recommender.get_recommendations(request, self.catalog)
            if user:
                self._log_query(user, content, mood, result)
        except Exception:
            # any failure becomes an apology; the chat never raises
            logger.exception("Failed to get recommendations for %r", content)
            return self._add(_message("bot", ERROR_TEXT, confidence=0.1))

        return self._add(
            _message(
                "bot",
                _reply_text(result),
                movies=result["movies"],
                reasoning=result["reasoning"],
                confidence=result["confidence"],
            )
        )

    def select_movie(self, movie):
        description = movie.get("description")
        summary = f"{description[:200]}..." if description else "Great choice!"
        content = (
            f"🎬 You selected: **{movie['title']}** ({movie.get('year')})\n\n"
            f"Rating: ⭐ {movie.get('rating')}/10\n"
            f"Genre: {movie.get('genre')}\n\n"
            f"{summary}"
        )
        return self._add(_message("system", content))

    def _user_context(self):
        try:
            return {
                "liked_movies": self.catalog.get_liked_movies(),
                "rated_movies": self.catalog.get_rated_movies(),
                "preferences": recommender.get_user_preferences(self.catalog),
            }
        except Exception:
            logger.exception("Could not load user context, recommending without it")
            return None

    def _log_query(self, user, content, mood, result):
        try:
            storage.log_event(
                user["id"],
                "chat_query",
                {
                    "query": content,
                    "mood": mood,
                    "strategy": result["search_strategy"],
                    "movie_ids": [movie["id"] for movie in result["movies"]],
                },
                db_path=self.db_path,
            )
        except sqlite3.Error:
            logger.exception("Could not record chat query for user %s", user["id"])

    def _add(self, message):
        self.messages.append(message)
        del self.messages[:-HISTORY_LIMIT]
        return message


def _reply_text(result):
    count = len(result["movies"])
    if count == 0:
        return NO_RESULTS_TEXT
    if count == 1:
        return f"{result['reasoning']}\n\nI found the perfect movie for you!"
    return f"{result['reasoning']}\n\nI found {count} great movies for you!"


def _message(message_type, content, message_id=None, **extra):
    message = {
        "id": message_id or uuid.uuid4().hex,
        "type": message_type,
        "content": content,
        "timestamp": datetime.datetime.now(datetime.UTC).isoformat(timespec="seconds"),
    }
    message.update(extra)
    return message
