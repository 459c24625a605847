import datetime
import logging

import storage
import tmdb_client
from tmdb_client import TMDBError


logger = logging.getLogger(__name__)

UNKNOWN_GENRE = "Unknown"

LOCAL_MOVIES = [
    {
        "id": "1",
        "title": "Dune: Part Two",
        "year": 2024,
        "genre": "Sci-Fi",
        "rating": 8.7,
        "poster": "https://images.unsplash.com/photo-1440404653325-ab127d49abc1?w=400&h=600&fit=crop",
        "description": "Paul Atreides unites with Chani and the Fremen while seeking revenge against the conspirators who destroyed his family.",
        "director": "Denis Villeneuve",
        "cast": ["Timothée Chalamet", "Zendaya", "Rebecca Ferguson"],
        "runtime": 166,
    },
    {
        "id": "2",
        "title": "Oppenheimer",
        "year": 2023,
        "genre": "Biography",
        "rating": 8.4,
        "poster": "https://images.unsplash.com/photo-1489599096494-2db61da42bc3?w=400&h=600&fit=crop",
        "description": "The story of American scientist J. Robert Oppenheimer and his role in the development of the atomic bomb.",
        "director": "Christopher Nolan",
        "cast": ["Cillian Murphy", "Emily Blunt", "Matt Damon"],
        "runtime": 180,
    },
    {
        "id": "3",
        "title": "Everything Everywhere All at Once",
        "year": 2022,
        "genre": "Action",
        "rating": 7.8,
        "poster": "https://images.unsplash.com/photo-1594909122845-11baa439b7bf?w=400&h=600&fit=crop",
        "description": "A middle-aged Chinese immigrant is swept up into an insane adventure in which she alone can save existence by exploring other universes connecting with the lives she could have led.",
        "director": "Daniel Kwan, Daniel Scheinert",
        "cast": ["Michelle Yeoh", "Ke Huy Quan", "Stephanie Hsu"],
        "runtime": 139,
    },
    {
        "id": "4",
        "title": "The Batman",
        "year": 2022,
        "genre": "Action",
        "rating": 7.9,
        "poster": "https://images.unsplash.com/photo-1635863138275-d9864d171c5d?w=400&h=600&fit=crop",
        "description": "When the Riddler, a sadistic serial killer, begins murdering key political figures in Gotham, Batman is forced to investigate.",
        "director": "Matt Reeves",
        "cast": ["Robert Pattinson", "Zoë Kravitz", "Paul Dano"],
        "runtime": 176,
    },
    {
        "id": "5",
        "title": "Top Gun: Maverick",
        "year": 2022,
        "genre": "Action",
        "rating": 8.2,
        "poster": "https://images.unsplash.com/photo-1518709268805-4e9042af2176?w=400&h=600&fit=crop",
        "description": "After thirty years, Maverick is still pushing the envelope as a top naval aviator.",
        "director": "Joseph Kosinski",
        "cast": ["Tom Cruise", "Miles Teller", "Jennifer Connelly"],
        "runtime": 130,
    },
    {
        "id": "6",
        "title": "Avatar: The Way of Water",
        "year": 2022,
        "genre": "Sci-Fi",
        "rating": 7.6,
        "poster": "https://images.unsplash.com/photo-1446776653964-20c1d3a81b06?w=400&h=600&fit=crop",
        "description": "Jake Sully lives with his newfound family formed on the extrasolar moon Pandora.",
        "director": "James Cameron",
        "cast": ["Sam Worthington", "Zoe Saldana", "Sigourney Weaver"],
        "runtime": 192,
    },
    {
        "id": "7",
        "title": "Inception",
        "year": 2010,
        "genre": "Sci-Fi",
        "rating": 8.8,
        "poster": "https://images.unsplash.com/photo-1624138784729-6fd5c3d3b5b5?w=400&h=600&fit=crop",
        "description": "A thief who steals corporate secrets through the use of dream-sharing technology is given the inverse task of planting an idea into the mind of a C.E.O.",
        "director": "Christopher Nolan",
        "cast": ["Leonardo DiCaprio", "Joseph Gordon-Levitt", "Elliot Page"],
        "runtime": 148,
    },
    {
        "id": "8",
        "title": "The Shawshank Redemption",
        "year": 1994,
        "genre": "Drama",
        "rating": 9.3,
        "poster": "https://images.unsplash.com/photo-1551698618-1dfe5d97d256?w=400&h=600&fit=crop",
        "description": "Two imprisoned men bond over a number of years, finding solace and eventual redemption through acts of common decency.",
        "director": "Frank Darabont",
        "cast": ["Tim Robbins", "Morgan Freeman", "Bob Gunton"],
        "runtime": 142,
    },
    {
        "id": "9",
        "title": "Pulp Fiction",
        "year": 1994,
        "genre": "Crime",
        "rating": 8.9,
        "poster": "https://images.unsplash.com/photo-1542206395-9feb3edaa68d?w=400&h=600&fit=crop",
        "description": "The lives of two mob hitmen, a boxer, a gangster and his wife, and a pair of diner bandits intertwine in four tales of violence and redemption.",
        "director": "Quentin Tarantino",
        "cast": ["John Travolta", "Uma Thurman", "Samuel L. Jackson"],
        "runtime": 154,
    },
    {
        "id": "10",
        "title": "The Dark Knight",
        "year": 2008,
        "genre": "Action",
        "rating": 9.0,
        "poster": "https://images.unsplash.com/photo-1531259683007-016a7b628fc3?w=400&h=600&fit=crop",
        "description": "When the menace known as the Joker wreaks havoc and chaos on the people of Gotham, Batman must accept one of the greatest psychological and physical tests of his ability to fight injustice.",
        "director": "Christopher Nolan",
        "cast": ["Christian Bale", "Heath Ledger", "Aaron Eckhart"],
        "runtime": 152,
    },
    {
        "id": "11",
        "title": "Superbad",
        "year": 2007,
        "genre": "Comedy",
        "rating": 7.6,
        "poster": "https://images.unsplash.com/photo-1578662996442-48f60103fc96?w=400&h=600&fit=crop",
        "description": "Two co-dependent high school seniors are forced to deal with separation anxiety after their plan to stage a booze-soaked party goes awry.",
        "director": "Greg Mottola",
        "cast": ["Jonah Hill", "Michael Cera", "Christopher Mintz-Plasse"],
        "runtime": 113,
    },
    {
        "id": "12",
        "title": "The Conjuring",
        "year": 2013,
        "genre": "Horror",
        "rating": 7.5,
        "poster": "https://images.unsplash.com/photo-1520637836862-4d197d17c98a?w=400&h=600&fit=crop",
        "description": "Paranormal investigators work to help a family terrorized by a dark presence in their farmhouse.",
        "director": "James Wan",
        "cast": ["Patrick Wilson", "Vera Farmiga", "Lili Taylor"],
        "runtime": 112,
    },
    {
        "id": "13",
        "title": "The Notebook",
        "year": 2004,
        "genre": "Romance",
        "rating": 7.8,
        "poster": "https://images.unsplash.com/photo-1518709268805-4e9042af2176?w=400&h=600&fit=crop",
        "description": "A poor yet passionate young man falls in love with a rich young woman, giving her a sense of freedom.",
        "director": "Nick Cassavetes",
        "cast": ["Ryan Gosling", "Rachel McAdams", "James Garner"],
        "runtime": 123,
    },
]


def sort_by_rating(movies):
    return sorted(movies, key=lambda movie: movie.get("rating") or 0, reverse=True)


class Catalog:
    """Movie lookups that prefer TMDB and fall back to the local dataset.

    Every movie returned carries the signed-in user's rating, like and
    bookmark state. Without an api_key every call is served locally.
    """

    def __init__(self, api_key=None, language="en-US", user_id=None, db_path=None):
        self.api_key = api_key
        self.language = language
        self.user_id = user_id
        self.db_path = db_path
        if user_id is not None:
            storage.init_db(db_path)

    def get_all_movies(self):
        try:
            data = tmdb_client.get_popular_movies(self.api_key, self.language, 1)
        except TMDBError as exc:
            logger.warning("Falling back to local movies: %s", exc)
            return self.local_movies()
        return self._convert_results(data)

    def search_movies(self, query, genre=None, year=None, min_rating=None):
        filters = {"genre": genre, "year": year, "min_rating": min_rating}
        try:
            data = tmdb_client.search_movies(self.api_key, self.language, query, 1, filters)
        except TMDBError as exc:
            logger.warning("TMDB search failed, searching locally: %s", exc)
            return self._search_local(query, genre, year, min_rating)
        return self._convert_results(data)

    def discover_movies(self, genre=None, year=None, min_rating=None, sort_by=None):
        filters = {"genre": genre, "year": year, "min_rating": min_rating, "sort_by": sort_by}
        try:
            data = tmdb_client.discover_movies(self.api_key, self.language, filters, 1)
        except TMDBError as exc:
            logger.warning("TMDB discover failed, filtering locally: %s", exc)
            return sort_by_rating(self._search_local("", genre, year, min_rating))
        return self._convert_results(data)

    def get_movie_by_id(self, movie_id):
        try:
            details = tmdb_client.get_movie_details(self.api_key, self.language, int(movie_id))
        except (TMDBError, ValueError) as exc:
            logger.warning("Movie details unavailable for %s: %s", movie_id, exc)
            return next(
                (movie for movie in self.get_all_movies() if movie["id"] == str(movie_id)),
                None,
            )
        return self._convert_details(details)

    def get_trending_movies(self, limit=6):
        try:
            data = tmdb_client.get_trending_movies(self.api_key, self.language, "week", 1)
        except TMDBError as exc:
            logger.warning("Trending unavailable, using top rated: %s", exc)
            return sort_by_rating(self.get_all_movies())[:limit]
        return self._convert_results(data)[:limit]

    def get_top_rated_movies(self, limit=20):
        try:
            data = tmdb_client.get_top_rated_movies(self.api_key, self.language, 1)
        except TMDBError as exc:
            logger.warning("Top rated unavailable, using local ranking: %s", exc)
            return sort_by_rating(self.local_movies())[:limit]
        return self._convert_results(data)[:limit]

    def get_movies_by_genre(self, genre):
        try:
            genre_id = tmdb_client.get_genre_id(self.api_key, self.language, genre)
            if genre_id:
                data = tmdb_client.get_movies_by_genre(self.api_key, self.language, genre_id)
                return self._convert_results(data)
        except TMDBError as exc:
            logger.warning("Genre listing failed for %s: %s", genre, exc)
        return [movie for movie in self.get_all_movies() if movie["genre"] == genre]

    def get_movies_by_year(self, year):
        try:
            data = tmdb_client.get_movies_by_year(self.api_key, self.language, year)
        except TMDBError as exc:
            logger.warning("Year listing failed for %s: %s", year, exc)
            return [movie for movie in self.local_movies() if movie["year"] == year]
        return self._convert_results(data)

    def get_available_genres(self):
        try:
            genres = tmdb_client.get_genres(self.api_key, self.language)
        except TMDBError as exc:
            logger.warning("Genre list unavailable, deriving from movies: %s", exc)
            return sorted({movie["genre"] for movie in self.get_all_movies()})
        return sorted(genre["name"] for genre in genres)

    def get_available_years(self):
        current_year = datetime.date.today().year
        return list(range(current_year, 1899, -1))

    def local_movies(self):
        user_state = self._user_state()
        movies = []
        for movie in LOCAL_MOVIES:
            copy = dict(movie)
            copy["cast"] = list(movie.get("cast", []))
            movies.append(self._apply_user_state(copy, user_state))
        return movies

    # user state

    def rate_movie(self, movie_id, rating):
        self._require_user()
        if not 0 <= rating <= 10:
            raise ValueError("Rating must be between 0 and 10")
        storage.set_rating(self.user_id, movie_id, rating, db_path=self.db_path)

    def toggle_like(self, movie_id):
        self._require_user()
        return storage.toggle_flag(self.user_id, movie_id, "liked", db_path=self.db_path)

    def toggle_bookmark(self, movie_id):
        self._require_user()
        return storage.toggle_flag(self.user_id, movie_id, "bookmarked", db_path=self.db_path)

    def get_liked_movies(self):
        return [movie for movie in self.get_all_movies() if movie["is_liked"]]

    def get_bookmarked_movies(self):
        return [movie for movie in self.get_all_movies() if movie["is_bookmarked"]]

    def get_rated_movies(self):
        return [movie for movie in self.get_all_movies() if movie.get("user_rating") is not None]

    def _require_user(self):
        if self.user_id is None:
            raise PermissionError("Sign in to rate, like or bookmark movies")

    def _user_state(self):
        if self.user_id is None:
            return {}
        return storage.get_movie_state(self.user_id, db_path=self.db_path)

    def _apply_user_state(self, movie, user_state):
        state = user_state.get(movie["id"], {})
        movie["user_rating"] = state.get("rating")
        movie["is_liked"] = state.get("liked", False)
        movie["is_bookmarked"] = state.get("bookmarked", False)
        return movie

    # conversion

    def _genre_names(self):
        try:
            genres = tmdb_client.get_genres(self.api_key, self.language)
        except TMDBError:
            return {}
        return {genre["id"]: genre["name"] for genre in genres}

    def _convert_results(self, data):
        genre_names = self._genre_names()
        user_state = self._user_state()
        movies = []
        for result in data.get("results", []):
            genre_ids = result.get("genre_ids") or []
            genre = genre_names.get(genre_ids[0], UNKNOWN_GENRE) if genre_ids else UNKNOWN_GENRE
            movie = {
                "id": str(result["id"]),
                "title": result.get("title", ""),
                "year": _year(result.get("release_date")),
                "genre": genre,
                "rating": round(float(result.get("vote_average") or 0), 1),
                "poster": tmdb_client.get_image_url(result.get("poster_path"), "w500"),
                "backdrop": tmdb_client.get_backdrop_url(result.get("backdrop_path"), "w1280"),
                "description": result.get("overview", ""),
                "tmdb_id": result["id"],
            }
            movies.append(self._apply_user_state(movie, user_state))
        return movies

    def _convert_details(self, details):
        genres = details.get("genres") or []
        credits = details.get("credits") or {}
        director = next(
            (person["name"] for person in credits.get("crew", []) if person.get("job") == "Director"),
            None,
        )
        movie = {
            "id": str(details["id"]),
            "title": details.get("title", ""),
            "year": _year(details.get("release_date")),
            "genre": genres[0]["name"] if genres else UNKNOWN_GENRE,
            "rating": round(float(details.get("vote_average") or 0), 1),
            "poster": tmdb_client.get_image_url(details.get("poster_path"), "w500"),
            "backdrop": tmdb_client.get_backdrop_url(details.get("backdrop_path"), "w1280"),
            "description": details.get("overview", ""),
            "director": director,
            "cast": [actor["name"] for actor in credits.get("cast", [])[:5]],
            "runtime": details.get("runtime"),
            "tmdb_id": details["id"],
        }
        return self._apply_user_state(movie, self._user_state())

    def _search_local(self, query, genre, year, min_rating):
        movies = self.local_movies()
        lowered = (query or "").lower()

        def matches(movie):
            if lowered:
                haystack = [movie["title"], movie.get("director") or "", movie["genre"]]
                haystack.extend(movie.get("cast", []))
                if not any(lowered in value.lower() for value in haystack):
                    return False
            if genre:
                movie_genre = movie["genre"].lower()
                if genre.lower() not in movie_genre:
                    return False
            if year and movie["year"] != year:
                return False
            if min_rating and movie["rating"] < min_rating:
                return False
            return True

        filtered = [movie for movie in movies if matches(movie)]
        logger.info("Local search matched %d of %d movies", len(filtered), len(movies))
        if not filtered and query:
            return sort_by_rating(movies)[:5]
        return filtered


def _year(release_date):
    if not release_date or len(release_date) < 4:
        return None
    try:
        return int(release_date[:4])
    except ValueError:
        return None
