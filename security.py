import datetime
import logging
import re
import time

import jwt


logger = logging.getLogger(__name__)

SPECIAL_CHARACTERS = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")
COMMON_PATTERNS = [
    re.compile(r"123456"),
    re.compile(r"password", re.IGNORECASE),
    re.compile(r"qwerty", re.IGNORECASE),
    re.compile(r"admin", re.IGNORECASE),
    re.compile(r"login", re.IGNORECASE),
]
EVENT_TYPES = ("login_success", "login_failure", "logout", "token_refresh", "suspicious_activity")


class RateLimiter:
    """Failed-attempt counter per identifier.

    ``max_attempts`` failures inside ``window`` seconds block the identifier
    for ``block_duration`` seconds after the last failure. A success clears it.
    """

    def __init__(self, max_attempts=5, window=15 * 60, block_duration=30 * 60, clock=time.time):
        self.max_attempts = max_attempts
        self.window = window
        self.block_duration = block_duration
        self._clock = clock
        self._attempts = {}

    def can_attempt(self, identifier):
        entry = self._attempts.get(identifier)
        if not entry:
            return True
        elapsed = self._clock() - entry["last_attempt"]
        if entry["count"] >= self.max_attempts:
            if elapsed > self.block_duration:
                del self._attempts[identifier]
                return True
            return False
        if elapsed > self.window:
            del self._attempts[identifier]
        return True

    def record_attempt(self, identifier, success):
        if success:
            self._attempts.pop(identifier, None)
            return
        now = self._clock()
        entry = self._attempts.get(identifier)
        if not entry or now - entry["last_attempt"] > self.window:
            self._attempts[identifier] = {"count": 1, "last_attempt": now}
        else:
            self._attempts[identifier] = {"count": entry["count"] + 1, "last_attempt": now}

    def get_remaining_attempts(self, identifier):
        entry = self._attempts.get(identifier)
        if not entry or self._clock() - entry["last_attempt"] > self.window:
            return self.max_attempts
        return max(0, self.max_attempts - entry["count"])

    def get_block_time_remaining(self, identifier):
        entry = self._attempts.get(identifier)
        if not entry or entry["count"] < self.max_attempts:
            return 0
        return max(0, entry["last_attempt"] + self.block_duration - self._clock())

    def cleanup(self, max_age=60 * 60):
        now = self._clock()
        stale = [key for key, entry in self._attempts.items() if now - entry["last_attempt"] > max_age]
        for key in stale:
            del self._attempts[key]
        return len(stale)


def validate_password_strength(password):
    feedback = []
    score = 0

    if len(password) >= 8:
        score += 1
    else:
        feedback.append("Password must be at least 8 characters long")
    if len(password) >= 12:
        score += 1

    if re.search(r"[a-z]", password):
        score += 1
    else:
        feedback.append("Password must contain lowercase letters")
    if re.search(r"[A-Z]", password):
        score += 1
    else:
        feedback.append("Password must contain uppercase letters")
    if re.search(r"\d", password):
        score += 1
    else:
        feedback.append("Password must contain numbers")
    if SPECIAL_CHARACTERS.search(password):
        score += 1
    else:
        feedback.append("Password must contain special characters")

    if any(pattern.search(password) for pattern in COMMON_PATTERNS):
        score -= 2
        feedback.append("Password contains common patterns")

    return {
        "is_valid": score >= 4 and not feedback,
        "score": max(0, min(5, score)),
        "feedback": feedback,
    }


class SessionTracker:
    def __init__(self, timeout=30 * 60, clock=time.time):
        self.timeout = timeout
        self._clock = clock
        self._last_activity = None

    def update_activity(self):
        self._last_activity = self._clock()

    def is_session_active(self):
        if self._last_activity is None:
            return False
        return self._clock() - self._last_activity < self.timeout

    def clear_session(self):
        self._last_activity = None

    def get_session_duration(self):
        if self._last_activity is None:
            return 0
        return self._clock() - self._last_activity


def sanitize_string(value):
    return (
        value.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&#x27;")
        .replace("/", "&#x2F;")
    )


def sanitize_email(email):
    return email.strip().lower()


def sanitize_filename(filename):
    return re.sub(r"[^a-zA-Z0-9._-]", "", filename)


class SecurityLogger:
    """Keeps the most recent security events in memory, newest first."""

    def __init__(self, max_events=100, clock=time.time):
        self.max_events = max_events
        self._clock = clock
        self._events = []

    def log(self, event_type, user_id=None, metadata=None):
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown security event type: {event_type}")
        event = {
            "type": event_type,
            "user_id": user_id,
            "timestamp": self._clock(),
            "metadata": metadata or {},
        }
        self._events.insert(0, event)
        del self._events[self.max_events:]
        log_level = logging.WARNING if event_type in ("login_failure", "suspicious_activity") else logging.INFO
        logger.log(log_level, "Security event %s user=%s %s", event_type, user_id, event["metadata"])
        return event

    def get_events(self):
        return list(self._events)

    def get_events_by_type(self, event_type):
        return [event for event in self._events if event["type"] == event_type]

    def clear_events(self):
        self._events = []


def validate_token_structure(token):
    if not token or token.count(".") != 2:
        return False
    try:
        jwt.get_unverified_header(token)
        jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return False
    return True


def is_token_expired(token, now=None):
    if not validate_token_structure(token):
        return True
    payload = jwt.decode(token, options={"verify_signature": False})
    exp = payload.get("exp")
    if exp is None:
        return True
    return exp < (now if now is not None else time.time())


def get_token_expiration(token):
    if not validate_token_structure(token):
        return None
    exp = jwt.decode(token, options={"verify_signature": False}).get("exp")
    if exp is None:
        return None
    return datetime.datetime.fromtimestamp(exp, datetime.UTC)
