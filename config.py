import os

from dotenv import load_dotenv

load_dotenv()


def _flag(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


TMDB_API_KEY = os.getenv("TMDB_API_KEY")
TMDB_LANGUAGE = os.getenv("TMDB_LANGUAGE", "en-US")

JWT_SECRET = os.getenv("JWT_SECRET", "cineverse-dev-secret")
ACCESS_TOKEN_TTL = int(os.getenv("ACCESS_TOKEN_TTL", "3600"))
REFRESH_TOKEN_TTL = int(os.getenv("REFRESH_TOKEN_TTL", str(7 * 24 * 3600)))
ALLOW_DEMO_USERS = _flag("ALLOW_DEMO_USERS", True)

DB_PATH = os.getenv("CINEVERSE_DB_PATH", os.path.join("data", "cineverse.db"))
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:3001/api")
