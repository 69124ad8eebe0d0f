import logging
import os
from functools import wraps

from dotenv import load_dotenv
from flask import Blueprint, Flask, current_app, jsonify, request
from flask_cors import CORS
from pymongo.errors import PyMongoError
from werkzeug.exceptions import InternalServerError

from movies_functions import (
    build_insert_payload,
    parse_csv_list,
    parse_rating,
    serialize_document,
    serialize_documents,
)
from movies_repository import BadRequestError, MovieError, MovieRepository
from movies_store import DEFAULT_MONGO_URI, MovieStore, build_mongo_uri

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
CORS_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]
INTERNAL_ERROR = "Internal server error"

movies_bp = Blueprint("movies", __name__)


def load_settings():
    """
    Read the service settings from the environment (and a ``.env`` file).

    Returns:
        dict: Flask config entries.
    """
    load_dotenv()
    mongo_uri = os.getenv("MONGO_URI") or build_mongo_uri(
        os.getenv("DB_USERNAME"),
        os.getenv("DB_PASSWORD"),
        os.getenv("MONGO_CLUSTER_HOST"),
        os.getenv("MONGO_APP_NAME", "Cluster0"),
    )
    return {
        "MONGO_URI": mongo_uri or DEFAULT_MONGO_URI,
        "MONGO_DB_NAME": os.getenv("MONGO_DB_NAME", "movie-db"),
        "MONGO_COLLECTION": os.getenv("MONGO_COLLECTION", "movies"),
        "MONGO_SERVER_API": os.getenv("MONGO_SERVER_API") or None,
        "MONGO_TIMEOUT_MS": int(os.getenv("MONGO_TIMEOUT_MS", 5000)),
        "CORS_ORIGINS": os.getenv("CORS_ORIGINS", "*"),
        "LOG_LEVEL": os.getenv("LOG_LEVEL", "INFO").upper(),
        "PORT": int(os.getenv("PORT", 5000)),
    }


def get_repository() -> MovieRepository:
    return current_app.extensions["movie_repository"]


def resolve_requester(payload: dict, key: str = "userId"):
    """
    Pick the acting user's identifier from a body, falling back to the query string.

    Args:
        payload (dict): Parsed JSON body.
        key (str): Field holding the identifier.

    Returns:
        str | None: Identifier, or None when absent, blank or not a string.
    """
    value = payload.get(key)
    if value is None:
        value = request.args.get(key)
    if not isinstance(value, str):
        return None
    return value.strip() or None


def handle_store_errors(message: str):
    """
    Turn store failures inside a view into a sanitized 500 response.

    Args:
        message (str): Client facing description of the failed operation.
    """

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            try:
                return view(*args, **kwargs)
            except PyMongoError:
                logger.exception("%s: %s %s", message, request.method, request.path)
                return jsonify({"message": message, "error": INTERNAL_ERROR}), 500

        return wrapper

    return decorator


@movies_bp.app_errorhandler(MovieError)
def handle_movie_error(error: MovieError):
    return jsonify({"message": error.message}), error.status_code


@movies_bp.app_errorhandler(InternalServerError)
def handle_internal_error(error: InternalServerError):
    return jsonify({"message": "Unexpected error", "error": INTERNAL_ERROR}), 500


@movies_bp.route("/", methods=["GET"])
@handle_store_errors("Error fetching movies")
def list_movies():
    return jsonify(serialize_documents(get_repository().list_all()))


@movies_bp.route("/movies", methods=["GET"])
@handle_store_errors("Error fetching all movies")
def filter_movies():
    """
    Handle GET requests for the filtered movie list.

    Query args ``genres`` (comma separated), ``minRating`` and ``maxRating``
    are optional and combine with AND.
    """
    genres = parse_csv_list(request.args.get("genres"))
    try:
        min_rating = parse_rating(request.args.get("minRating"))
        max_rating = parse_rating(request.args.get("maxRating"))
    except ValueError:
        raise BadRequestError("minRating and maxRating must be numbers")

    movies = get_repository().list_filtered(genres, min_rating, max_rating)
    return jsonify(serialize_documents(movies))


@movies_bp.route("/movies/featured", methods=["GET"])
@handle_store_errors("Error fetching featured movies")
def featured_movies():
    return jsonify(serialize_documents(get_repository().list_featured()))


@movies_bp.route("/movies/top-rated", methods=["GET"])
@handle_store_errors("Error fetching top rated movies")
def top_rated_movies():
    return jsonify(serialize_documents(get_repository().list_top_rated()))


@movies_bp.route("/movies/my-collection", methods=["GET"])
@handle_store_errors("Error fetching collection")
def my_collection():
    user_id = request.args.get("userId", "").strip()
    if not user_id:
        raise BadRequestError("userId is required")
    return jsonify(serialize_documents(get_repository().list_by_owner(user_id)))


@movies_bp.route("/movies/<movie_id>", methods=["GET"])
@handle_store_errors("Error fetching movie")
def get_movie(movie_id: str):
    """
    Handle GET requests for a single movie.

    Args:
        movie_id (str): Identifier from the path segment.

    Returns:
        Response: Movie document, or an error payload with 400/404.
    """
    return jsonify(serialize_document(get_repository().get_by_id(movie_id)))


@movies_bp.route("/movies/add", methods=["POST"])
@handle_store_errors("Error adding movie")
def add_movie():
    payload = build_insert_payload(request.get_json(silent=True))
    if payload is None:
        raise BadRequestError("Movie data must be a JSON object")

    movie_id = get_repository().insert(payload)
    return jsonify({"message": "Movie added", "movieId": str(movie_id)})


@movies_bp.route("/movies/update/<movie_id>", methods=["PUT"])
@handle_store_errors("Error updating movie")
def update_movie(movie_id: str):
    """
    Handle PUT requests that update a movie owned by the caller.

    The body carries ``userId`` plus the fields to replace.
    """
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        raise BadRequestError("Movie data must be a JSON object")
    user_id = resolve_requester(payload)
    if not user_id:
        raise BadRequestError("User email is required")

    get_repository().update(movie_id, payload, user_id)
    return jsonify({"message": "Movie updated"})


@movies_bp.route("/movies/delete/<movie_id>", methods=["DELETE"])
@handle_store_errors("Error deleting movie")
def delete_movie(movie_id: str):
    payload = request.get_json(silent=True)
    user_id = resolve_requester(payload if isinstance(payload, dict) else {})
    if not user_id:
        raise BadRequestError("User email is required")

    get_repository().delete(movie_id, user_id)
    return jsonify({"message": "Movie deleted"})


@movies_bp.route("/users", methods=["GET"])
@handle_store_errors("Error counting users")
def count_users():
    return jsonify([{"totalUsers": get_repository().count_users()}])


@movies_bp.route("/movies/<movie_id>/watchlist", methods=["PATCH"])
@handle_store_errors("Failed to update watchlist")
def toggle_watchlist(movie_id: str):
    """
    Handle PATCH requests that add or remove ``userEmail`` on a movie's watchlist.

    Args:
        movie_id (str): Identifier from the path segment.

    Returns:
        Response: Outcome message and the resulting watchlist.
    """
    payload = request.get_json(silent=True)
    user_email = resolve_requester(payload if isinstance(payload, dict) else {}, "userEmail")

    added, watchlist = get_repository().toggle_watchlist(movie_id, user_email)
    return jsonify({
        "message": "Added to watchlist" if added else "Removed from watchlist",
        "watchlist": watchlist,
    })


def create_app(repository: MovieRepository | None = None, config: dict | None = None):
    """
    Build the Flask application.

    Args:
        repository (MovieRepository | None): Repository to serve; one backed by
            MongoDB is created from the settings when omitted.
        config (dict | None): Overrides for the environment settings.

    Returns:
        Flask: Configured application.
    """
    app = Flask(__name__)
    app.json.sort_keys = False
    app.config.update(load_settings())
    if config:
        app.config.update(config)

    logging.basicConfig(level=app.config["LOG_LEVEL"], format=LOG_FORMAT)

    origins = parse_csv_list(app.config["CORS_ORIGINS"]) or ["*"]
    CORS(app, origins="*" if "*" in origins else origins, methods=CORS_METHODS)

    if repository is None:
        store = MovieStore(
            app.config["MONGO_URI"],
            app.config["MONGO_DB_NAME"],
            app.config["MONGO_COLLECTION"],
            server_api=app.config["MONGO_SERVER_API"],
            timeout_ms=app.config["MONGO_TIMEOUT_MS"],
        )
        store.connect()
        repository = MovieRepository(store)

    app.extensions["movie_repository"] = repository
    app.register_blueprint(movies_bp)
    return app


if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=app.config["PORT"], debug=True)
