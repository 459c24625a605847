import datetime
import json
import pathlib
import sqlite3
from contextlib import contextmanager

import bcrypt

import config


DB_PATH = pathlib.Path(config.DB_PATH)


def init_db(db_path=None):
    path = _resolve_db_path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with _get_conn(path) as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                email TEXT UNIQUE NOT NULL,
                password_hash TEXT NOT NULL,
                name TEXT NOT NULL,
                role TEXT NOT NULL DEFAULT 'user',
                is_verified INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS user_movies (
                user_id TEXT NOT NULL,
                movie_id TEXT NOT NULL,
                rating REAL,
                liked INTEGER NOT NULL DEFAULT 0,
                bookmarked INTEGER NOT NULL DEFAULT 0,
                updated_at TEXT NOT NULL,
                PRIMARY KEY (user_id, movie_id)
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS user_events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                event_type TEXT NOT NULL,
                payload_json TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
            """
        )


def create_user(email, password, name, role="user", is_verified=False, db_path=None):
    if not email or not password:
        return None
    email = normalize_email(email)
    password_hash = _hash_password(password)
    created_at = _now()
    path = _resolve_db_path(db_path)
    with _get_conn(path) as conn:
        try:
            cursor = conn.execute(
                """
                INSERT INTO users (email, password_hash, name, role, is_verified, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (email, password_hash, name, role, int(is_verified), created_at),
            )
        except sqlite3.IntegrityError:
            return None
        return {
            "id": str(cursor.lastrowid),
            "email": email,
            "name": name,
            "role": role,
            "is_verified": bool(is_verified),
            "created_at": created_at,
        }


def get_user_by_email(email, db_path=None):
    if not email:
        return None
    path = _resolve_db_path(db_path)
    with _get_conn(path) as conn:
        row = conn.execute(
            "SELECT * FROM users WHERE email = ?", (normalize_email(email),)
        ).fetchone()
    return _user_from_row(row) if row else None


def authenticate_user(email, password, db_path=None):
    if not email or not password:
        return None
    path = _resolve_db_path(db_path)
    with _get_conn(path) as conn:
        row = conn.execute(
            "SELECT * FROM users WHERE email = ?", (normalize_email(email),)
        ).fetchone()
    if not row:
        return None
    if not _verify_password(password, row["password_hash"]):
        return None
    return _user_from_row(row)


def set_rating(user_id, movie_id, rating, db_path=None):
    _upsert_movie_state(user_id, movie_id, "rating", rating, db_path)


def toggle_flag(user_id, movie_id, flag, db_path=None):
    if flag not in ("liked", "bookmarked"):
        raise ValueError(f"Unknown movie flag: {flag}")
    current = get_movie_state(user_id, db_path=db_path).get(str(movie_id), {})
    new_value = not current.get(flag, False)
    _upsert_movie_state(user_id, movie_id, flag, int(new_value), db_path)
    return new_value


def get_movie_state(user_id, db_path=None):
    path = _resolve_db_path(db_path)
    with _get_conn(path) as conn:
        rows = conn.execute(
            "SELECT movie_id, rating, liked, bookmarked FROM user_movies WHERE user_id = ?",
            (str(user_id),),
        ).fetchall()
    return {
        row["movie_id"]: {
            "rating": row["rating"],
            "liked": bool(row["liked"]),
            "bookmarked": bool(row["bookmarked"]),
        }
        for row in rows
    }


def log_event(user_id, event_type, payload, db_path=None):
    path = _resolve_db_path(db_path)
    with _get_conn(path) as conn:
        conn.execute(
            """
            INSERT INTO user_events (user_id, event_type, payload_json, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (str(user_id), event_type, json.dumps(payload), _now()),
        )


def get_user_history(user_id, limit=200, event_type=None, db_path=None):
    path = _resolve_db_path(db_path)
    query = "SELECT id, user_id, event_type, payload_json, created_at FROM user_events WHERE user_id = ?"
    params = [str(user_id)]
    if event_type:
        query += " AND event_type = ?"
        params.append(event_type)
    query += " ORDER BY id DESC LIMIT ?"
    params.append(limit)
    with _get_conn(path) as conn:
        rows = conn.execute(query, params).fetchall()
    history = []
    for row in rows:
        try:
            payload = json.loads(row["payload_json"])
        except json.JSONDecodeError:
            payload = {}
        history.append(
            {
                "id": row["id"],
                "user_id": row["user_id"],
                "event_type": row["event_type"],
                "payload": payload,
                "created_at": row["created_at"],
            }
        )
    return history


def clear_user_history(user_id, db_path=None):
    path = _resolve_db_path(db_path)
    with _get_conn(path) as conn:
        conn.execute("DELETE FROM user_events WHERE user_id = ?", (str(user_id),))


def normalize_email(email):
    return email.strip().lower()


def _upsert_movie_state(user_id, movie_id, column, value, db_path):
    path = _resolve_db_path(db_path)
    with _get_conn(path) as conn:
        conn.execute(
            f"""
            INSERT INTO user_movies (user_id, movie_id, {column}, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(user_id, movie_id)
            DO UPDATE SET {column} = excluded.{column}, updated_at = excluded.updated_at
            """,
            (str(user_id), str(movie_id), value, _now()),
        )


def _user_from_row(row):
    return {
        "id": str(row["id"]),
        "email": row["email"],
        "name": row["name"],
        "role": row["role"],
        "is_verified": bool(row["is_verified"]),
        "created_at": row["created_at"],
    }


def _resolve_db_path(db_path):
    return pathlib.Path(db_path) if db_path else DB_PATH


def _connect(path):
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def _get_conn(path):
    conn = _connect(path)
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def _hash_password(password):
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def _verify_password(password, password_hash):
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


def _now():
    return datetime.datetime.now(datetime.UTC).isoformat(timespec="seconds")
