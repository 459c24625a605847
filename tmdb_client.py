import logging

import requests
import streamlit as st


BASE_URL = "https://api.themoviedb.org/3"
IMAGE_BASE = "https://image.tmdb.org/t/p"
FALLBACK_POSTER = "https://images.unsplash.com/photo-1440404653325-ab127d49abc1?w=400&h=600&fit=crop"
FALLBACK_BACKDROP = "https://images.unsplash.com/photo-1440404653325-ab127d49abc1?w=1280&h=720&fit=crop"


# Local genre labels that TMDB names differently.
GENRE_ALIASES = {
    "sci-fi": "Science Fiction",
    "scifi": "Science Fiction",
    "musical": "Music",
}

logger = logging.getLogger(__name__)


class TMDBError(RuntimeError):
    pass


def _get(path, api_key, language, params=None):
    if not api_key:
        raise TMDBError("TMDB API key is not configured")
    payload = {"api_key": api_key, "language": language}
    for key, value in (params or {}).items():
        if value is not None:
            payload[key] = value
    url = f"{BASE_URL}{path}"
    logger.debug("TMDB GET %s %s", path, {k: v for k, v in payload.items() if k != "api_key"})
    try:
        response = requests.get(url, params=payload, timeout=10)
    except requests.RequestException as exc:
        raise TMDBError(f"TMDB request failed: {exc}") from exc
    if response.status_code != 200:
        raise TMDBError(f"TMDB request failed: {response.status_code}")
    try:
        return response.json()
    except ValueError as exc:
        raise TMDBError("TMDB returned invalid JSON") from exc


@st.cache_data(show_spinner=False, ttl=3600)
def get_genres(api_key, language):
    data = _get("/genre/movie/list", api_key, language)
    return data.get("genres", [])


def get_genre_id(api_key, language, genre_name):
    if not genre_name:
        return None
    lowered = GENRE_ALIASES.get(genre_name.lower(), genre_name).lower()
    for genre in get_genres(api_key, language):
        if genre["name"].lower() == lowered:
            return genre["id"]
    logger.info("Genre not found on TMDB: %s", genre_name)
    return None


@st.cache_data(show_spinner=False, ttl=1800)
def get_popular_movies(api_key, language, page=1):
    return _get("/movie/popular", api_key, language, {"page": page})


@st.cache_data(show_spinner=False, ttl=1800)
def get_trending_movies(api_key, language, time_window="week", page=1):
    return _get(f"/trending/movie/{time_window}", api_key, language, {"page": page})


@st.cache_data(show_spinner=False, ttl=1800)
def get_top_rated_movies(api_key, language, page=1):
    return _get("/movie/top_rated", api_key, language, {"page": page})


@st.cache_data(show_spinner=False, ttl=1800)
def search_movies(api_key, language, query, page=1, filters=None):
    filters = filters or {}
    params = {"query": query, "page": page, "include_adult": "false"}
    params.update(_filter_params(api_key, language, filters, year_key="year"))
    if filters.get("sort_by"):
        params["sort_by"] = filters["sort_by"]
    return _get("/search/movie", api_key, language, params)


@st.cache_data(show_spinner=False, ttl=1800)
def discover_movies(api_key, language, filters=None, page=1):
    filters = filters or {}
    params = {
        "page": page,
        "sort_by": filters.get("sort_by") or "popularity.desc",
        "include_adult": "false",
    }
    params.update(_filter_params(api_key, language, filters, year_key="primary_release_year"))
    return _get("/discover/movie", api_key, language, params)


def get_movies_by_genre(api_key, language, genre_id, page=1):
    return _get(
        "/discover/movie",
        api_key,
        language,
        {"with_genres": genre_id, "page": page, "sort_by": "popularity.desc"},
    )


def get_movies_by_year(api_key, language, year, page=1):
    return _get(
        "/discover/movie",
        api_key,
        language,
        {"primary_release_year": year, "page": page, "sort_by": "popularity.desc"},
    )


@st.cache_data(show_spinner=False, ttl=1800)
def get_movie_details(api_key, language, movie_id):
    return _get(f"/movie/{movie_id}", api_key, language, {"append_to_response": "credits"})


def get_image_url(path, size="w500"):
    if not path:
        return FALLBACK_POSTER
    return f"{IMAGE_BASE}/{size}{path}"


def get_backdrop_url(path, size="w1280"):
    if not path:
        return FALLBACK_BACKDROP
    return f"{IMAGE_BASE}/{size}{path}"


def _filter_params(api_key, language, filters, year_key):
    params = {}
    if filters.get("year"):
        params[year_key] = filters["year"]
    if filters.get("genre"):
        genre_id = get_genre_id(api_key, language, filters["genre"])
        if genre_id:
            params["with_genres"] = genre_id
    if filters.get("min_rating"):
        params["vote_average.gte"] = filters["min_rating"]
    return params
