import datetime
import logging

from catalog import UNKNOWN_GENRE, sort_by_rating


logger = logging.getLogger(__name__)

SIMPLE_RESULT_LIMIT = 6
DEFAULT_GENRES = ["Action", "Comedy", "Drama", "Thriller", "Romance"]
# Capitalised in any position, so never a hint of a title.
FIRST_PERSON_WORDS = {"i", "i'm", "i'd", "i'll", "i've"}

MOOD_GENRE_MAPPING = {
    # positive
    "happy": ["Comedy", "Adventure", "Family", "Animation", "Musical"],
    "excited": ["Action", "Adventure", "Thriller", "Sci-Fi"],
    "romantic": ["Romance", "Drama", "Comedy"],
    "adventurous": ["Adventure", "Action", "Fantasy", "Sci-Fi"],
    "funny": ["Comedy", "Animation"],
    "uplifting": ["Comedy", "Family", "Adventure", "Musical"],
    # contemplative
    "thoughtful": ["Drama", "Biography", "Documentary", "History"],
    "deep": ["Drama", "Thriller", "Mystery", "Biography"],
    "philosophical": ["Drama", "Sci-Fi", "Documentary"],
    "nostalgic": ["Drama", "Romance", "Family"],
    # intense
    "thrilled": ["Thriller", "Action", "Horror", "Mystery"],
    "scared": ["Horror", "Thriller", "Mystery"],
    "mysterious": ["Mystery", "Thriller", "Crime"],
    "dark": ["Thriller", "Crime", "Horror", "Drama"],
    "suspenseful": ["Thriller", "Mystery", "Crime"],
    # relaxed
    "chill": ["Comedy", "Romance", "Animation", "Family"],
    "relaxed": ["Drama", "Romance", "Comedy"],
    "peaceful": ["Drama", "Family", "Documentary"],
    # emotional
    "sad": ["Drama", "Romance"],
    "emotional": ["Drama", "Romance", "Biography"],
    "inspiring": ["Biography", "Drama", "Adventure"],
    "motivational": ["Biography", "Adventure", "Drama"],
}

KEYWORD_GENRE_MAPPING = {
    "action": ["Action", "Thriller"],
    "fight": ["Action", "Thriller"],
    "explosion": ["Action"],
    "superhero": ["Action", "Adventure", "Sci-Fi"],
    "war": ["War", "Action", "Drama"],
    "battle": ["Action", "War", "Fantasy"],
    "space": ["Sci-Fi", "Adventure"],
    "alien": ["Sci-Fi", "Horror"],
    "future": ["Sci-Fi", "Thriller"],
    "robot": ["Sci-Fi", "Action"],
    "technology": ["Sci-Fi", "Thriller"],
    "time": ["Sci-Fi", "Drama"],
    "horror": ["Horror", "Thriller"],
    "scary": ["Horror", "Thriller"],
    "ghost": ["Horror", "Mystery"],
    "monster": ["Horror", "Thriller"],
    "zombie": ["Horror", "Action"],
    "love": ["Romance", "Drama"],
    "romantic": ["Romance", "Comedy"],
    "relationship": ["Romance", "Drama"],
    "wedding": ["Romance", "Comedy"],
    "funny": ["Comedy"],
    "laugh": ["Comedy"],
    "humor": ["Comedy"],
    "comedy": ["Comedy"],
    "drama": ["Drama"],
    "emotional": ["Drama", "Romance"],
    "family": ["Family", "Drama"],
    "life": ["Drama", "Biography"],
    "crime": ["Crime", "Thriller"],
    "detective": ["Crime", "Mystery"],
    "murder": ["Crime", "Thriller", "Mystery"],
    "police": ["Crime", "Action"],
    "magic": ["Fantasy", "Adventure"],
    "fantasy": ["Fantasy", "Adventure"],
    "medieval": ["Fantasy", "Adventure"],
    "dragon": ["Fantasy", "Adventure"],
    "animated": ["Animation", "Family"],
    "cartoon": ["Animation", "Comedy"],
    "kids": ["Animation", "Family"],
    "biography": ["Biography", "Drama"],
    "real": ["Biography", "Drama"],
    "true": ["Biography", "Drama"],
    "based": ["Biography", "Drama"],
    "documentary": ["Documentary"],
    "nature": ["Documentary"],
    "history": ["History", "Documentary"],
    "music": ["Musical", "Drama"],
    "musical": ["Musical", "Comedy"],
    "singing": ["Musical", "Comedy"],
    "dance": ["Musical", "Romance"],
}

# Checked in order; the first rule with a trigger word in the query wins.
KEYWORD_RULES = [
    (
        "comedy",
        ("comedy", "funny", "laugh", "humor"),
        lambda genre: genre == "comedy",
        "🤣 Perfect! I found some hilarious comedy movies for you!",
    ),
    (
        "action",
        ("action", "fight", "battle", "superhero"),
        lambda genre: genre == "action",
        "💥 Get ready for some intense action movies!",
    ),
    (
        "drama",
        ("drama", "emotional", "serious"),
        lambda genre: genre == "drama",
        "🎭 Here are some powerful drama movies that will move you!",
    ),
    (
        "sci-fi",
        ("sci-fi", "science", "space", "future", "scifi"),
        lambda genre: "sci" in genre,
        "🚀 Blast off with these amazing sci-fi adventures!",
    ),
    (
        "horror",
        ("horror", "scary", "fear", "thriller"),
        lambda genre: genre in ("thriller", "horror"),
        "😱 Prepare to be scared with these thrilling movies!",
    ),
    (
        "romance",
        ("romance", "love", "romantic"),
        lambda genre: genre == "romance",
        "❤️ Fall in love with these romantic movies!",
    ),
]

TOP_RATED_REASONING = "⭐ Here are some of the highest-rated movies I recommend!"
NO_MATCH_REASONING = "🎬 I couldn't find that specific type, but here are some great movies anyway!"

FALLBACK_MOVIES = [
    {
        "id": "fallback-1",
        "title": "The Shawshank Redemption",
        "year": 1994,
        "genre": "Drama",
        "rating": 9.3,
        "poster": "https://images.unsplash.com/photo-1551698618-1dfe5d97d256?w=400&h=600&fit=crop",
        "description": "Two imprisoned men bond over a number of years, finding solace and eventual redemption through acts of common decency.",
    },
    {
        "id": "fallback-2",
        "title": "The Dark Knight",
        "year": 2008,
        "genre": "Action",
        "rating": 9.0,
        "poster": "https://images.unsplash.com/photo-1531259683007-016a7b628fc3?w=400&h=600&fit=crop",
        "description": "When the menace known as the Joker wreaks havoc and chaos on the people of Gotham, Batman must accept one of the greatest psychological and physical tests.",
    },
]

TEST_MOVIES = [
    {
        "id": "test-1",
        "title": "The Dark Knight",
        "year": 2008,
        "genre": "Action",
        "rating": 9.0,
        "poster": "https://images.unsplash.com/photo-1531259683007-016a7b628fc3?w=400&h=600&fit=crop",
        "description": "When the menace known as the Joker wreaks havoc and chaos on the people of Gotham, Batman must accept one of the greatest psychological and physical tests.",
    },
    {
        "id": "test-2",
        "title": "Inception",
        "year": 2010,
        "genre": "Sci-Fi",
        "rating": 8.8,
        "poster": "https://images.unsplash.com/photo-1624138784729-6fd5c3d3b5b5?w=400&h=600&fit=crop",
        "description": "A thief who steals corporate secrets through the use of dream-sharing technology is given the inverse task of planting an idea into the mind of a C.E.O.",
    },
    {
        "id": "test-3",
        "title": "The Shawshank Redemption",
        "year": 1994,
        "genre": "Drama",
        "rating": 9.3,
        "poster": "https://images.unsplash.com/photo-1551698618-1dfe5d97d256?w=400&h=600&fit=crop",
        "description": "Two imprisoned men bond over a number of years, finding solace and eventual redemption through acts of common decency.",
    },
]

STRATEGY_CONFIDENCE = {
    "direct_search": 0.9,
    "personalized": 0.85,
    "mood_based": 0.8,
    "genre_based": 0.7,
    "fallback": 0.3,
}


def get_recommendations(request, catalog):
    query = (request.get("query") or "").lower()
    if request.get("mood"):
        query = f"{query} {request['mood'].lower()}"
    logger.info("Processing recommendation query: %r", query)

    movies = catalog.get_all_movies()
    if not _has_proper_genres(movies):
        logger.info("Catalog movies lack genre info, using local movie data")
        movies = catalog.local_movies()

    if not movies:
        logger.warning("No movies available, using hardcoded test recommendations")
        return get_test_recommendations()

    limit = min(SIMPLE_RESULT_LIMIT, request.get("max_results") or SIMPLE_RESULT_LIMIT)
    label, results, reasoning = _match_keyword_rule(query, movies)
    logger.info("Keyword rule %s matched %d movies", label, len(results))

    if not results:
        results = movies
        reasoning = NO_MATCH_REASONING

    final = sort_by_rating(results)[:limit]
    logger.debug("Returning %s", ", ".join(f"{m['title']} ({m['genre']})" for m in final))
    return {
        "movies": final,
        "reasoning": reasoning,
        "confidence": 0.9,
        "search_strategy": "simple_keyword_match",
    }


def get_smart_recommendations(request, catalog):
    query = request.get("query") or ""
    max_results = request.get("max_results") or 10
    user_context = request.get("user_context") or {}
    analysis = analyze_query(query)
    strategy = determine_search_strategy(request, analysis)
    filters = build_search_filters(request, analysis, user_context.get("preferences"))
    logger.info("Search strategy %s with filters %s", strategy, filters)

    if strategy == "direct_search":
        movies = perform_direct_search(catalog, query, filters, max_results)
        reasoning = f'Here are the best matches I found for "{query.strip()}"'
    elif strategy == "mood_based":
        mood = (request.get("mood") or analysis["detected_moods"][0]).lower()
        movies = perform_mood_based_search(catalog, mood, filters, max_results)
        reasoning = build_genre_reasoning(MOOD_GENRE_MAPPING.get(mood, ["Comedy"]), mood)
    elif strategy == "personalized":
        movies = perform_personalized_search(catalog, user_context, filters, max_results)
        reasoning = "Based on the movies you've enjoyed, I think you'll like these"
    else:
        movies = perform_genre_based_search(catalog, filters["genres"], filters, max_results)
        reasoning = build_genre_reasoning(filters["genres"][:3])

    movies = post_process_results(movies, request, user_context)[:max_results]
    if not movies:
        logger.info("Strategy %s found nothing, using fallback search", strategy)
        strategy = "fallback"
        movies = perform_fallback_search(catalog, max_results)
        reasoning = NO_MATCH_REASONING

    return {
        "movies": movies,
        "reasoning": reasoning,
        "confidence": STRATEGY_CONFIDENCE[strategy],
        "search_strategy": strategy,
    }


def analyze_query(query):
    lowered = query.lower()
    words = [word.strip() for word in lowered.split()]

    has_specific_title = '"' in query or any(
        word[:1].isupper() and word.strip(".,!?").lower() not in FIRST_PERSON_WORDS
        for word in query.split()[1:]
    )

    detected_genres = []
    for keyword, genres in KEYWORD_GENRE_MAPPING.items():
        if keyword in lowered:
            detected_genres.extend(genres)

    detected_moods = [mood for mood in MOOD_GENRE_MAPPING if mood in lowered]
    detected_keywords = [
        word for word in words if word in KEYWORD_GENRE_MAPPING or word in MOOD_GENRE_MAPPING
    ]
    is_question = "?" in query or any(
        word in ("what", "which", "recommend", "suggest") for word in words
    )

    return {
        "has_specific_title": has_specific_title,
        "detected_genres": _unique(detected_genres),
        "detected_moods": detected_moods,
        "detected_keywords": detected_keywords,
        "is_question": is_question,
    }


def determine_search_strategy(request, analysis):
    if analysis["has_specific_title"] and not analysis["is_question"]:
        return "direct_search"
    if request.get("mood") or analysis["detected_moods"]:
        return "mood_based"
    if request.get("genres") or analysis["detected_genres"]:
        return "genre_based"
    liked = (request.get("user_context") or {}).get("liked_movies") or []
    if len(liked) > 2:
        return "personalized"
    return "genre_based"


def build_search_filters(request, analysis, preferences=None):
    genres = list(request.get("genres") or []) + analysis["detected_genres"]
    if request.get("mood"):
        genres.extend(MOOD_GENRE_MAPPING.get(request["mood"].lower(), []))
    for mood in analysis["detected_moods"]:
        genres.extend(MOOD_GENRE_MAPPING.get(mood, []))

    filters = {"genres": _unique(genres) if genres else list(DEFAULT_GENRES)}
    if request.get("year"):
        filters["year"] = request["year"]
    if request.get("min_rating"):
        filters["min_rating"] = request["min_rating"]

    if preferences:
        if preferences.get("disliked_genres"):
            filters["exclude_genres"] = list(preferences["disliked_genres"])
        rating_range = preferences.get("preferred_rating_range")
        if rating_range and not request.get("min_rating"):
            filters["min_rating"] = rating_range["min"]
    return filters


def perform_direct_search(catalog, query, filters, max_results):
    # title lookups ignore inferred genres, only explicit year and rating narrow them
    title = query.replace('"', "").strip()
    movies = catalog.search_movies(
        title,
        year=filters.get("year"),
        min_rating=filters.get("min_rating"),
    )
    if movies:
        return movies[:max_results]
    logger.info("Direct search with filters found nothing, retrying without filters")
    return catalog.search_movies(title)[:max_results]


def perform_genre_based_search(catalog, genres, filters, max_results):
    if not genres:
        return sort_by_rating(catalog.get_all_movies())[:max_results]

    excluded = set(filters.get("exclude_genres") or [])
    genres = [genre for genre in genres if genre not in excluded]
    found = []
    for genre in genres[:3]:
        movies = catalog.discover_movies(
            genre=genre,
            year=filters.get("year"),
            min_rating=filters.get("min_rating") or 5.0,
        )
        logger.debug("Genre %s yielded %d movies", genre, len(movies))
        found.extend(movies)
    return sort_by_rating(remove_duplicate_movies(found))[:max_results]


def perform_mood_based_search(catalog, mood, filters, max_results):
    genres = MOOD_GENRE_MAPPING.get(mood.lower(), ["Comedy"])
    return perform_genre_based_search(catalog, genres, filters, max_results)


def perform_personalized_search(catalog, user_context, filters, max_results):
    preferences = user_context.get("preferences") or {}
    preferred = _top_values(_enjoyed_movies(user_context), "genre", 3)
    preferred.extend(preferences.get("favorite_genres") or [])

    rating_range = preferences.get("preferred_rating_range") or {}
    updated = dict(filters)
    updated["genres"] = _unique(preferred)
    updated["min_rating"] = rating_range.get("min") or filters.get("min_rating") or 7.0
    return perform_genre_based_search(catalog, updated["genres"], updated, max_results)


def perform_fallback_search(catalog, max_results):
    trending = catalog.get_trending_movies(max_results)
    if trending:
        return trending
    movies = sort_by_rating(catalog.get_all_movies())[:max_results]
    if movies:
        return movies
    logger.error("Every fallback source is empty, returning hardcoded movies")
    return [dict(movie) for movie in FALLBACK_MOVIES]


def remove_duplicate_movies(movies):
    seen = set()
    unique = []
    for movie in movies:
        if movie["id"] in seen:
            continue
        seen.add(movie["id"])
        unique.append(movie)
    return unique


def post_process_results(movies, request, user_context=None):
    user_context = user_context or {}
    processed = list(movies)

    rated_ids = {movie["id"] for movie in user_context.get("rated_movies") or []}
    if rated_ids:
        processed = [movie for movie in processed if movie["id"] not in rated_ids]

    preferences = user_context.get("preferences")
    if preferences:
        disliked = set(preferences.get("disliked_genres") or [])
        rating_range = preferences.get("preferred_rating_range")
        year_range = preferences.get("preferred_year_range")

        def keep(movie):
            if movie["genre"] in disliked:
                return False
            if rating_range and not rating_range["min"] <= movie["rating"] <= rating_range["max"]:
                return False
            year = movie.get("year")
            if year_range and year is not None and not year_range["min"] <= year <= year_range["max"]:
                return False
            return True

        processed = [movie for movie in processed if keep(movie)]

    liked_genres = {movie["genre"] for movie in user_context.get("liked_movies") or []}
    processed.sort(key=lambda movie: (movie["genre"] in liked_genres, movie["rating"]), reverse=True)
    return processed


def build_genre_reasoning(genres, mood=None):
    if mood:
        return (
            f"Since you're feeling {mood}, I found some great {', '.join(genres)} movies "
            "that should match your mood perfectly!"
        )
    if len(genres) == 1:
        return f"Here are some excellent {genres[0]} movies I think you'll enjoy"
    return (
        f"Based on your interest in {', '.join(genres[:-1])} and {genres[-1]} movies, "
        "here are my recommendations"
    )


def get_user_preferences(catalog):
    enjoyed = catalog.get_liked_movies() + [
        movie for movie in catalog.get_rated_movies() if (movie.get("user_rating") or 0) >= 7
    ]
    return {
        "favorite_genres": _top_values(enjoyed, "genre", 3),
        "liked_directors": _top_values(enjoyed, "director", 3),
        "preferred_rating_range": {"min": 6.5, "max": 10},
        "preferred_year_range": {"min": 1990, "max": datetime.date.today().year},
    }


def get_test_recommendations():
    return {
        "movies": [dict(movie) for movie in TEST_MOVIES],
        "reasoning": "🧪 Test mode: Here are some classic movies to test the chat functionality!",
        "confidence": 1.0,
        "search_strategy": "test",
    }


def _match_keyword_rule(query, movies):
    for label, triggers, matches_genre, reasoning in KEYWORD_RULES:
        if any(trigger in query for trigger in triggers):
            results = [movie for movie in movies if matches_genre((movie.get("genre") or "").lower())]
            return label, results, reasoning
    return "top_rated", list(movies), TOP_RATED_REASONING


def _has_proper_genres(movies):
    return any(movie.get("genre") not in (UNKNOWN_GENRE, "", None) for movie in movies)


def _enjoyed_movies(user_context):
    rated = [
        movie
        for movie in user_context.get("rated_movies") or []
        if (movie.get("user_rating") or 0) >= 7
    ]
    return list(user_context.get("liked_movies") or []) + rated


def _top_values(movies, key, count):
    frequency = {}
    for movie in movies:
        value = movie.get(key)
        if value:
            frequency[value] = frequency.get(value, 0) + 1
    ranked = sorted(frequency.items(), key=lambda item: item[1], reverse=True)
    return [value for value, _ in ranked[:count]]


def _unique(values):
    return list(dict.fromkeys(values))
