"""Locally issued JWT sessions with role-based permissions.

There is no auth server: tokens are signed with ``config.JWT_SECRET`` and
validated in-process. Registered accounts live in ``storage``; when demo
users are allowed, any other email signs in with a role guessed from the
address ("admin" -> admin, "mod" -> moderator, otherwise user).
"""

import datetime
import logging
import secrets
import threading
import time

import jwt

import config
import rbac
import storage
from security import RateLimiter, SecurityLogger, sanitize_email, validate_password_strength


logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
REFRESH_MARGIN = 5 * 60

ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"

DEMO_AVATARS = {
    rbac.ADMIN: "https://images.unsplash.com/photo-1472099645785-5658abf4ff4e?w=100&h=100&fit=crop&crop=face",
    rbac.MODERATOR: "https://images.unsplash.com/photo-1494790108755-2616b612b5f1?w=100&h=100&fit=crop&crop=face",
    rbac.USER: "https://images.unsplash.com/photo-1535713875002-d1d0cf377fde?w=100&h=100&fit=crop&crop=face",
}


class AuthError(Exception):
    pass


class RateLimitedError(AuthError):
    def __init__(self, retry_after):
        minutes = max(1, int(retry_after // 60))
        super().__init__(f"Too many failed attempts. Try again in {minutes} minute(s).")
        self.retry_after = retry_after


class AuthService:
    def __init__(
        self,
        token_store=None,
        db_path=None,
        rate_limiter=None,
        security_log=None,
        secret=None,
        allow_demo_users=None,
        clock=time.time,
    ):
        self.tokens = token_store if token_store is not None else {}
        self.db_path = db_path
        self.rate_limiter = rate_limiter or RateLimiter(clock=clock)
        self.security_log = security_log or SecurityLogger(clock=clock)
        self.secret = secret or config.JWT_SECRET
        self.allow_demo_users = config.ALLOW_DEMO_USERS if allow_demo_users is None else allow_demo_users
        self._clock = clock
        self._refresh_lock = threading.Lock()
        storage.init_db(db_path)

    # token management

    def set_tokens(self, access_token, refresh_token):
        self.tokens[ACCESS_TOKEN_KEY] = access_token
        self.tokens[REFRESH_TOKEN_KEY] = refresh_token

    def get_access_token(self):
        return self.tokens.get(ACCESS_TOKEN_KEY)

    def get_refresh_token(self):
        return self.tokens.get(REFRESH_TOKEN_KEY)

    def remove_tokens(self):
        self.tokens.pop(ACCESS_TOKEN_KEY, None)
        self.tokens.pop(REFRESH_TOKEN_KEY, None)

    def decode_token(self, token):
        if not token:
            return None
        try:
            return jwt.decode(
                token,
                self.secret,
                algorithms=[ALGORITHM],
                options={"verify_exp": False, "verify_iat": False},
            )
        except jwt.PyJWTError as exc:
            logger.debug("Rejected token: %s", exc)
            return None

    def is_token_valid(self, token, token_type="access"):
        payload = self.decode_token(token)
        if not payload or payload.get("type") != token_type:
            return False
        return payload.get("exp", 0) > self._clock()

    def should_refresh_token(self, token):
        payload = self.decode_token(token)
        if not payload:
            return True
        return payload.get("exp", 0) - self._clock() < REFRESH_MARGIN

    def get_current_user(self):
        token = self.get_access_token()
        if not self.is_token_valid(token):
            return None
        return self._user_from_payload(self.decode_token(token))

    def is_authenticated(self):
        return self.is_token_valid(self.get_access_token())

    def get_auth_header(self):
        token = self.get_access_token()
        return {"Authorization": f"Bearer {token}"} if token else {}

    # session lifecycle

    def login(self, email, password):
        email = sanitize_email(email or "")
        if not self.rate_limiter.can_attempt(email):
            retry_after = self.rate_limiter.get_block_time_remaining(email)
            self.security_log.log("suspicious_activity", metadata={"email": email, "reason": "rate_limited"})
            raise RateLimitedError(retry_after)

        user = self._resolve_login(email, password)
        if user is None:
            self.rate_limiter.record_attempt(email, False)
            self.security_log.log(
                "login_failure",
                metadata={
                    "email": email,
                    "remaining_attempts": self.rate_limiter.get_remaining_attempts(email),
                },
            )
            raise AuthError("Invalid email or password")

        self.rate_limiter.record_attempt(email, True)
        user["last_login_at"] = self._iso_now()
        response = self._start_session(user)
        self.security_log.log("login_success", user_id=user["id"], metadata={"role": user["role"]})
        return response

    def register(self, name, email, password, confirm_password):
        email = sanitize_email(email or "")
        if not email:
            raise AuthError("Email is required")
        if password != confirm_password:
            raise AuthError("Passwords do not match")
        strength = validate_password_strength(password)
        if not strength["is_valid"]:
            raise AuthError("; ".join(strength["feedback"]) or "Password is too weak")

        created = storage.create_user(
            email, password, name.strip(), role=rbac.USER, db_path=self.db_path
        )
        if created is None:
            raise AuthError("An account with this email already exists")
        logger.info("Registered user %s", created["id"])
        return self._start_session(self._with_permissions(created))

    def refresh_token(self):
        seen = self.get_access_token()
        with self._refresh_lock:
            current = self.get_access_token()
            # another caller refreshed while this one waited
            if current and current != seen and self.is_token_valid(current):
                return current
            return self._perform_token_refresh()

    def logout(self):
        user = self.get_current_user()
        self.remove_tokens()
        self.security_log.log("logout", user_id=user["id"] if user else None)

    # permission checks

    def has_permission(self, permission):
        return rbac.has_permission(self.get_current_user(), permission)

    def has_role(self, role):
        return rbac.has_role(self.get_current_user(), role)

    def has_any_role(self, roles):
        return rbac.has_any_role(self.get_current_user(), roles)

    def can_access_feature(self, feature):
        return rbac.can_access_feature(self.get_current_user(), feature)

    # internals

    def _perform_token_refresh(self):
        refresh_token = self.get_refresh_token()
        if not refresh_token:
            raise AuthError("No refresh token available")
        if not self.is_token_valid(refresh_token, token_type="refresh"):
            self.remove_tokens()
            raise AuthError("Refresh token expired or invalid")

        user = self._user_from_payload(self.decode_token(refresh_token))
        access_token, new_refresh_token = self._generate_tokens(user)
        self.set_tokens(access_token, new_refresh_token)
        self.security_log.log("token_refresh", user_id=user["id"])
        return access_token

    def _resolve_login(self, email, password):
        registered = storage.get_user_by_email(email, db_path=self.db_path)
        if registered:
            user = storage.authenticate_user(email, password, db_path=self.db_path)
            return self._with_permissions(user) if user else None
        if self.allow_demo_users and email and password:
            return self._demo_user(email)
        return None

    def _demo_user(self, email):
        if "admin" in email:
            role, user_id = rbac.ADMIN, "admin_001"
        elif "mod" in email:
            role, user_id = rbac.MODERATOR, "mod_001"
        else:
            role, user_id = rbac.USER, "user_" + secrets.token_hex(3)
        return {
            "id": user_id,
            "email": email,
            "name": email.split("@")[0],
            "role": role,
            "permissions": rbac.permissions_for(role),
            "avatar": DEMO_AVATARS[role],
            "is_verified": True,
            "created_at": self._iso_now(),
        }

    def _with_permissions(self, user):
        user = dict(user)
        user["permissions"] = rbac.permissions_for(user["role"])
        user.setdefault("avatar", None)
        return user

    def _start_session(self, user):
        access_token, refresh_token = self._generate_tokens(user)
        self.set_tokens(access_token, refresh_token)
        return {
            "user": user,
            "access_token": access_token,
            "refresh_token": refresh_token,
            "expires_in": config.ACCESS_TOKEN_TTL,
        }

    def _generate_tokens(self, user):
        now = int(self._clock())
        payload = {
            "sub": str(user["id"]),
            "email": user["email"],
            "name": user["name"],
            "role": user["role"],
            "permissions": list(user["permissions"]),
            "avatar": user.get("avatar"),
            "is_verified": bool(user.get("is_verified")),
            "iat": now,
        }
        access = dict(payload, exp=now + config.ACCESS_TOKEN_TTL, type="access")
        refresh = dict(payload, exp=now + config.REFRESH_TOKEN_TTL, type="refresh")
        return (
            jwt.encode(access, self.secret, algorithm=ALGORITHM),
            jwt.encode(refresh, self.secret, algorithm=ALGORITHM),
        )

    def _user_from_payload(self, payload):
        return {
            "id": payload["sub"],
            "email": payload["email"],
            "name": payload["name"],
            "role": payload["role"],
            "permissions": payload.get("permissions", []),
            "avatar": payload.get("avatar"),
            "is_verified": payload.get("is_verified", False),
            "created_at": _iso(payload["iat"]),
            "last_login_at": self._iso_now(),
        }

    def _iso_now(self):
        return _iso(self._clock())


def _iso(timestamp):
    return datetime.datetime.fromtimestamp(timestamp, datetime.UTC).isoformat(timespec="seconds")
