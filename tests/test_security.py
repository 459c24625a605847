import datetime
import unittest

import jwt

import security


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class RateLimiterTests(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.limiter = security.RateLimiter(max_attempts=3, window=60, block_duration=120, clock=self.clock)

    def test_blocks_after_max_failures(self):
        for _ in range(3):
            self.assertTrue(self.limiter.can_attempt("a@example.com"))
            self.limiter.record_attempt("a@example.com", False)
        self.assertFalse(self.limiter.can_attempt("a@example.com"))
        self.assertEqual(self.limiter.get_remaining_attempts("a@example.com"), 0)
        self.assertEqual(self.limiter.get_block_time_remaining("a@example.com"), 120)
        self.assertTrue(self.limiter.can_attempt("b@example.com"))

    def test_block_expires(self):
        for _ in range(3):
            self.limiter.record_attempt("a", False)
        self.clock.advance(121)
        self.assertTrue(self.limiter.can_attempt("a"))
        self.assertEqual(self.limiter.get_remaining_attempts("a"), 3)

    def test_window_resets_count(self):
        self.limiter.record_attempt("a", False)
        self.limiter.record_attempt("a", False)
        self.assertEqual(self.limiter.get_remaining_attempts("a"), 1)
        self.clock.advance(61)
        self.limiter.record_attempt("a", False)
        self.assertEqual(self.limiter.get_remaining_attempts("a"), 2)

    def test_success_clears(self):
        self.limiter.record_attempt("a", False)
        self.limiter.record_attempt("a", True)
        self.assertEqual(self.limiter.get_remaining_attempts("a"), 3)
        self.assertEqual(self.limiter.get_block_time_remaining("a"), 0)

    def test_cleanup(self):
        self.limiter.record_attempt("old", False)
        self.clock.advance(3601)
        self.limiter.record_attempt("new", False)
        self.assertEqual(self.limiter.cleanup(), 1)
        self.assertEqual(self.limiter.get_remaining_attempts("new"), 2)


class PasswordStrengthTests(unittest.TestCase):
    def test_strong_password(self):
        result = security.validate_password_strength("Str0ng!Secret")
        self.assertTrue(result["is_valid"])
        self.assertEqual(result["score"], 5)
        self.assertEqual(result["feedback"], [])

    def test_weak_password(self):
        result = security.validate_password_strength("abc")
        self.assertFalse(result["is_valid"])
        self.assertIn("Password must be at least 8 characters long", result["feedback"])
        self.assertIn("Password must contain numbers", result["feedback"])

    def test_common_pattern(self):
        result = security.validate_password_strength("MyPassword1!")
        self.assertFalse(result["is_valid"])
        self.assertIn("Password contains common patterns", result["feedback"])


class SessionTrackerTests(unittest.TestCase):
    def test_timeout(self):
        clock = FakeClock()
        tracker = security.SessionTracker(timeout=100, clock=clock)
        self.assertFalse(tracker.is_session_active())
        tracker.update_activity()
        clock.advance(50)
        self.assertTrue(tracker.is_session_active())
        self.assertEqual(tracker.get_session_duration(), 50)
        clock.advance(50)
        self.assertFalse(tracker.is_session_active())
        tracker.clear_session()
        self.assertEqual(tracker.get_session_duration(), 0)


class SanitizeTests(unittest.TestCase):
    def test_sanitize_string(self):
        self.assertEqual(
            security.sanitize_string("<a href='/x'>\"&\"</a>"),
            "&lt;a href=&#x27;&#x2F;x&#x27;&gt;&quot;&amp;&quot;&lt;&#x2F;a&gt;",
        )

    def test_sanitize_email_and_filename(self):
        self.assertEqual(security.sanitize_email("  Me@Example.COM "), "me@example.com")
        self.assertEqual(security.sanitize_filename("../my poster(1).png"), "..myposter1.png")


class SecurityLoggerTests(unittest.TestCase):
    def test_newest_first_and_capped(self):
        log = security.SecurityLogger(max_events=2, clock=FakeClock())
        log.log("login_success", "u1")
        log.log("login_failure", metadata={"email": "x@example.com"})
        log.log("logout", "u1")
        events = log.get_events()
        self.assertEqual([event["type"] for event in events], ["logout", "login_failure"])
        self.assertEqual(events[1]["metadata"], {"email": "x@example.com"})
        self.assertEqual(len(log.get_events_by_type("logout")), 1)
        log.clear_events()
        self.assertEqual(log.get_events(), [])

    def test_unknown_event_type(self):
        with self.assertRaises(ValueError):
            security.SecurityLogger().log("party")


class TokenInspectionTests(unittest.TestCase):
    def setUp(self):
        self.token = jwt.encode({"sub": "u1", "exp": 2_000_000}, "secret", algorithm="HS256")

    def test_structure(self):
        self.assertTrue(security.validate_token_structure(self.token))
        self.assertFalse(security.validate_token_structure("not-a-token"))
        self.assertFalse(security.validate_token_structure("a.b.c"))
        self.assertFalse(security.validate_token_structure(None))

    def test_expiry(self):
        self.assertFalse(security.is_token_expired(self.token, now=1_999_999))
        self.assertTrue(security.is_token_expired(self.token, now=2_000_001))
        self.assertTrue(security.is_token_expired("garbage"))
        no_exp = jwt.encode({"sub": "u1"}, "secret", algorithm="HS256")
        self.assertTrue(security.is_token_expired(no_exp))

    def test_expiration_datetime(self):
        self.assertEqual(
            security.get_token_expiration(self.token),
            datetime.datetime.fromtimestamp(2_000_000, datetime.UTC),
        )
        self.assertIsNone(security.get_token_expiration("garbage"))


if __name__ == "__main__":
    unittest.main()
