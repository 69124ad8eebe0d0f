import mongomock
import pytest

from movies import create_app
from movies_repository import MovieRepository
from movies_store import MovieStore


SAMPLE_MOVIES = [
    {"title": "Inception", "genre": ["Sci-Fi", "Thriller"], "rating": 8.8, "addedBy": "nolan@x.com"},
    {"title": "The Dark Knight", "genre": ["Action", "Drama"], "rating": 9.0, "addedBy": "nolan@x.com"},
    {"title": "Paddington 2", "genre": "Comedy", "rating": 7.8, "addedBy": "bear@x.com"},
    {"title": "Whiplash", "genre": "Drama", "rating": 8.5, "addedBy": "bear@x.com", "watchlist": ["alice@x.com"]},
    {"title": "Cats", "genre": ["Musical", "Comedy"], "rating": 2.8, "addedBy": "mistake@x.com"},
    {"title": "Heat", "genre": ["Crime", "Drama"], "rating": 8.3, "addedBy": "mann@x.com"},
    {"title": "Untitled", "genre": "Drama", "addedBy": "mann@x.com"},
]


@pytest.fixture
def store():
    """A store backed by an in-memory MongoDB double."""
    return MovieStore(client=mongomock.MongoClient())


@pytest.fixture
def repository(store):
    return MovieRepository(store)


@pytest.fixture
def seeded(store):
    """Insert the sample movies and return their ids in insertion order."""
    return [store.insert_one(dict(movie)) for movie in SAMPLE_MOVIES]


@pytest.fixture
def app(repository):
    return create_app(repository, config={"TESTING": True})


@pytest.fixture
def client(app):
    return app.test_client()
