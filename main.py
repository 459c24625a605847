import argparse
import getpass
import json
import logging
import sys

import config
import recommender
from auth import AuthError, AuthService
from catalog import Catalog
from chatbot import ChatSession
from logging_setup import setup_logging

logger = logging.getLogger(__name__)


def build_parser():
    parser = argparse.ArgumentParser(prog="cineverse", description="Movie discovery and recommendations")
    parser.add_argument("--format", choices=["text", "json"], default="text", help="Output format")
    commands = parser.add_subparsers(dest="command", required=True)

    recommend = commands.add_parser("recommend", help="Recommend movies for a free-text request")
    recommend.add_argument("query")
    recommend.add_argument("--mood", default=None)
    recommend.add_argument("--smart", action="store_true", help="Use the strategy-based matcher")

    search = commands.add_parser("search", help="Search the catalog")
    search.add_argument("query")
    search.add_argument("--genre", default=None)
    search.add_argument("--year", type=int, default=None)
    search.add_argument("--min-rating", type=float, default=None)

    trending = commands.add_parser("trending", help="List trending movies")
    trending.add_argument("--limit", type=int, default=6)

    chat = commands.add_parser("chat", help="Talk to CineBot")
    chat.add_argument("--email", default=None)
    chat.add_argument("--password", default=None)
    chat.add_argument("--smart", action="store_true")

    register = commands.add_parser("register", help="Create an account")
    register.add_argument("name")
    register.add_argument("email")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging()

    if args.command == "register":
        return _register(args)
    if args.command == "chat":
        return _chat(args)

    catalog = Catalog(api_key=config.TMDB_API_KEY, language=config.TMDB_LANGUAGE)
    if args.command == "recommend":
        request = {"query": args.query, "mood": args.mood}
        if args.smart:
            result = recommender.get_smart_recommendations(request, catalog)
        else:
            result = recommender.get_recommendations(request, catalog)
        _print_movies(result["movies"], args.format, header=result["reasoning"])
    elif args.command == "search":
        movies = catalog.search_movies(
            args.query, genre=args.genre, year=args.year, min_rating=args.min_rating
        )
        _print_movies(movies, args.format)
    elif args.command == "trending":
        _print_movies(catalog.get_trending_movies(args.limit), args.format)
    return 0


def _register(args):
    auth = AuthService(db_path=config.DB_PATH)
    password = getpass.getpass("Password: ")
    confirm = getpass.getpass("Confirm password: ")
    try:
        response = auth.register(args.name, args.email, password, confirm)
    except AuthError as exc:
        print(f"Registration failed: {exc}", file=sys.stderr)
        return 1
    print(f"Account created for {response['user']['email']}")
    return 0


def _chat(args):
    auth = AuthService(db_path=config.DB_PATH)
    user_id = None
    if args.email:
        password = args.password or getpass.getpass("Password: ")
        try:
            user_id = auth.login(args.email, password)["user"]["id"]
        except AuthError as exc:
            print(f"Login failed: {exc}", file=sys.stderr)
            return 1

    catalog = Catalog(
        api_key=config.TMDB_API_KEY,
        language=config.TMDB_LANGUAGE,
        user_id=user_id,
        db_path=config.DB_PATH,
    )
    session = ChatSession(catalog, auth=auth, db_path=config.DB_PATH, smart=args.smart)
    print(session.history()[0]["content"])
    while True:
        try:
            text = input("\nyou> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break
        if text.lower() in ("quit", "exit"):
            break
        if not text:
            continue
        reply = session.send_message(text)
        print(f"\ncinebot> {reply['content']}")
        for movie in reply.get("movies") or []:
            print(f"  - {movie['title']} ({movie.get('year')}) {movie['genre']} ⭐ {movie['rating']}")
    if auth.is_authenticated():
        auth.logout()
    return 0


def _print_movies(movies, output_format, header=None):
    if output_format == "json":
        print(json.dumps({"reasoning": header, "movies": movies}, ensure_ascii=False, indent=2))
        return
    if header:
        print(header)
    for movie in movies:
        print(f"{movie['title']} ({movie.get('year')}) - {movie['genre']} - {movie['rating']}/10")


if __name__ == "__main__":
    sys.exit(main())
