import tempfile
import unittest
from pathlib import Path
from unittest import mock

import catalog
import tmdb_client
from catalog import Catalog
from tmdb_client import TMDBError


GENRES = [{"id": 28, "name": "Action"}, {"id": 35, "name": "Comedy"}]

POPULAR = {
    "results": [
        {
            "id": 101,
            "title": "Remote Action",
            "release_date": "2021-05-01",
            "genre_ids": [28, 35],
            "vote_average": 7.26,
            "poster_path": "/poster.jpg",
            "backdrop_path": None,
            "overview": "Explosions.",
        },
        {
            "id": 102,
            "title": "No Genre",
            "release_date": "",
            "genre_ids": [],
            "vote_average": None,
        },
    ]
}


class LocalCatalogTests(unittest.TestCase):
    def setUp(self):
        self.catalog = Catalog()

    def test_without_key_serves_local_movies(self):
        movies = self.catalog.get_all_movies()
        self.assertEqual(len(movies), len(catalog.LOCAL_MOVIES))
        self.assertFalse(movies[0]["is_liked"])
        self.assertIsNone(movies[0]["user_rating"])

    def test_local_movies_are_copies(self):
        movies = self.catalog.local_movies()
        movies[0]["cast"].append("Extra")
        movies[0]["title"] = "Changed"
        self.assertNotEqual(catalog.LOCAL_MOVIES[0]["title"], "Changed")
        self.assertNotIn("Extra", catalog.LOCAL_MOVIES[0]["cast"])

    def test_search_matches_title_director_and_cast(self):
        self.assertEqual([m["title"] for m in self.catalog.search_movies("batman")], ["The Batman"])
        nolan = {m["title"] for m in self.catalog.search_movies("nolan")}
        self.assertEqual(nolan, {"Oppenheimer", "Inception", "The Dark Knight"})
        self.assertEqual(
            [m["title"] for m in self.catalog.search_movies("zendaya")], ["Dune: Part Two"]
        )

    def test_search_applies_filters(self):
        movies = self.catalog.search_movies("", genre="sci", min_rating=8.0)
        self.assertEqual({m["title"] for m in movies}, {"Dune: Part Two", "Inception"})
        self.assertEqual([m["title"] for m in self.catalog.search_movies("", year=2008)], ["The Dark Knight"])

    def test_search_without_matches_returns_top_rated(self):
        movies = self.catalog.search_movies("no such movie")
        self.assertEqual(len(movies), 5)
        self.assertEqual(movies[0]["title"], "The Shawshank Redemption")

    def test_discover_sorts_by_rating(self):
        movies = self.catalog.discover_movies(genre="Action")
        self.assertEqual(movies[0]["title"], "The Dark Knight")
        self.assertEqual(len(movies), 4)

    def test_lookups(self):
        self.assertEqual(self.catalog.get_movie_by_id("7")["title"], "Inception")
        self.assertIsNone(self.catalog.get_movie_by_id("missing"))
        self.assertEqual(self.catalog.get_trending_movies(2)[0]["title"], "The Shawshank Redemption")
        self.assertEqual(len(self.catalog.get_top_rated_movies(3)), 3)
        self.assertEqual([m["title"] for m in self.catalog.get_movies_by_genre("Comedy")], ["Superbad"])
        self.assertEqual([m["title"] for m in self.catalog.get_movies_by_year(2024)], ["Dune: Part Two"])
        self.assertIn("Horror", self.catalog.get_available_genres())

    def test_available_years_descend(self):
        years = self.catalog.get_available_years()
        self.assertEqual(years[-1], 1900)
        self.assertGreater(years[0], years[1])

    def test_user_actions_need_a_user(self):
        with self.assertRaises(PermissionError):
            self.catalog.toggle_like("1")


class UserStateTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.db_path = Path(self.tmpdir.name) / "test.db"
        self.catalog = Catalog(user_id="u1", db_path=self.db_path)

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_rate_like_and_bookmark(self):
        self.catalog.rate_movie("7", 9)
        self.assertTrue(self.catalog.toggle_like("7"))
        self.assertTrue(self.catalog.toggle_bookmark("11"))

        self.assertEqual([m["title"] for m in self.catalog.get_rated_movies()], ["Inception"])
        self.assertEqual(self.catalog.get_rated_movies()[0]["user_rating"], 9)
        self.assertEqual([m["title"] for m in self.catalog.get_liked_movies()], ["Inception"])
        self.assertEqual([m["title"] for m in self.catalog.get_bookmarked_movies()], ["Superbad"])

        self.assertFalse(self.catalog.toggle_like("7"))
        self.assertEqual(self.catalog.get_liked_movies(), [])

    def test_rating_out_of_range(self):
        with self.assertRaises(ValueError):
            self.catalog.rate_movie("7", 11)

    def test_state_is_per_user(self):
        self.catalog.toggle_like("1")
        other = Catalog(user_id="u2", db_path=self.db_path)
        self.assertEqual(other.get_liked_movies(), [])


class RemoteCatalogTests(unittest.TestCase):
    def setUp(self):
        self.catalog = Catalog(api_key="key")
        patcher = mock.patch.object(tmdb_client, "get_genres", return_value=GENRES)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_converts_tmdb_results(self):
        with mock.patch.object(tmdb_client, "get_popular_movies", return_value=POPULAR):
            movies = self.catalog.get_all_movies()
        first, second = movies
        self.assertEqual(first["id"], "101")
        self.assertEqual(first["genre"], "Action")
        self.assertEqual(first["year"], 2021)
        self.assertEqual(first["rating"], 7.3)
        self.assertEqual(first["poster"], "https://image.tmdb.org/t/p/w500/poster.jpg")
        self.assertEqual(first["backdrop"], tmdb_client.FALLBACK_BACKDROP)
        self.assertEqual(second["genre"], catalog.UNKNOWN_GENRE)
        self.assertIsNone(second["year"])
        self.assertEqual(second["rating"], 0)

    def test_falls_back_to_local_on_tmdb_error(self):
        with mock.patch.object(tmdb_client, "get_popular_movies", side_effect=TMDBError("down")):
            movies = self.catalog.get_all_movies()
        self.assertEqual(len(movies), len(catalog.LOCAL_MOVIES))

    def test_search_falls_back_to_local(self):
        with mock.patch.object(tmdb_client, "search_movies", side_effect=TMDBError("down")):
            movies = self.catalog.search_movies("superbad")
        self.assertEqual([m["title"] for m in movies], ["Superbad"])

    def test_search_passes_filters(self):
        with mock.patch.object(tmdb_client, "search_movies", return_value={"results": []}) as search:
            self.catalog.search_movies("heat", genre="Action", year=1995)
        search.assert_called_once_with(
            "key", "en-US", "heat", 1, {"genre": "Action", "year": 1995, "min_rating": None}
        )

    def test_movie_details(self):
        details = {
            "id": 5,
            "title": "Detailed",
            "release_date": "1999-03-31",
            "genres": [{"id": 28, "name": "Action"}],
            "vote_average": 8.7,
            "runtime": 136,
            "credits": {
                "crew": [{"name": "Someone", "job": "Writer"}, {"name": "Lana", "job": "Director"}],
                "cast": [{"name": f"Actor {i}"} for i in range(8)],
            },
        }
        with mock.patch.object(tmdb_client, "get_movie_details", return_value=details):
            movie = self.catalog.get_movie_by_id("5")
        self.assertEqual(movie["director"], "Lana")
        self.assertEqual(len(movie["cast"]), 5)
        self.assertEqual(movie["runtime"], 136)

    def test_trending_is_limited(self):
        with mock.patch.object(tmdb_client, "get_trending_movies", return_value=POPULAR):
            self.assertEqual(len(self.catalog.get_trending_movies(1)), 1)

    def test_genre_listing_uses_genre_id(self):
        with mock.patch.object(tmdb_client, "get_movies_by_genre", return_value=POPULAR) as by_genre:
            movies = self.catalog.get_movies_by_genre("comedy")
        by_genre.assert_called_once_with("key", "en-US", 35)
        self.assertEqual(len(movies), 2)

    def test_available_genres_from_tmdb(self):
        self.assertEqual(self.catalog.get_available_genres(), ["Action", "Comedy"])


if __name__ == "__main__":
    unittest.main()
