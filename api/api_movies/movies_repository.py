import logging

from movies_functions import build_movie_filter, build_update_payload, to_object_id
from movies_store import MovieStore

logger = logging.getLogger(__name__)

FEATURED_LIMIT = 5
TOP_RATED_LIMIT = 5


class MovieError(Exception):
    """Client facing failure carrying the HTTP status it maps to."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BadRequestError(MovieError):
    status_code = 400


class ForbiddenError(MovieError):
    status_code = 403


class NotFoundError(MovieError):
    status_code = 404


class MovieRepository:
    """
    Movie queries and updates over a single collection.

    Args:
        store (MovieStore): Shared collection handle.
    """

    def __init__(self, store: MovieStore):
        self.store = store

    @staticmethod
    def _object_id(movie_id: str):
        object_id = to_object_id(movie_id)
        if object_id is None:
            raise BadRequestError("Invalid movie id")
        return object_id

    @staticmethod
    def _user(value: object, message: str):
        if not isinstance(value, str) or not value:
            raise BadRequestError(message)
        return value

    def list_all(self):
        return self.store.find()

    def list_filtered(self, genres: list[str] | None = None, min_rating: float | None = None, max_rating: float | None = None):
        """
        List movies matching every provided filter.

        Args:
            genres (list[str] | None): At least one of these must match ``genre``.
            min_rating (float | None): Inclusive lower bound on ``rating``.
            max_rating (float | None): Inclusive upper bound on ``rating``.

        Returns:
            list[dict]: Matching documents in store order.
        """
        return self.store.find(build_movie_filter(genres, min_rating, max_rating))

    def list_featured(self):
        return self.store.find(limit=FEATURED_LIMIT)

    def list_top_rated(self):
        return self.store.find(sort=[("rating", -1)], limit=TOP_RATED_LIMIT)

    def get_by_id(self, movie_id: str):
        movie = self.store.find_one({"_id": self._object_id(movie_id)})
        if not movie:
            raise NotFoundError("Movie not found")
        return movie

    def insert(self, document: dict):
        movie_id = self.store.insert_one(document)
        logger.info("Movie %s added by %s", movie_id, document.get("addedBy"))
        return movie_id

    def _get_owned(self, movie_id: str, requester_id: str):
        self._user(requester_id, "User email is required")
        movie = self.get_by_id(movie_id)
        if movie.get("addedBy") != requester_id:
            raise ForbiddenError("Not authorized")
        return movie

    def update(self, movie_id: str, patch: dict, requester_id: str):
        """
        Merge ``patch`` into a movie owned by ``requester_id``.

        ``addedBy``, ``userId`` and ``_id`` are never written. Fields are
        replaced one level deep, nested objects are not merged.

        Raises:
            BadRequestError: Malformed id, or nothing left to update.
            NotFoundError: No movie with this id.
            ForbiddenError: The requester did not add the movie.
        """
        movie = self._get_owned(movie_id, requester_id)
        changes = build_update_payload(patch)
        if not changes:
            raise BadRequestError("No fields to update")

        result = self.store.update_one(
            {"_id": movie["_id"], "addedBy": requester_id}, {"$set": changes}
        )
        if result.matched_count == 0:
            raise NotFoundError("Movie not found")
        logger.info("Movie %s updated by %s (%s)", movie["_id"], requester_id, ", ".join(sorted(changes)))

    def delete(self, movie_id: str, requester_id: str):
        movie = self._get_owned(movie_id, requester_id)
        result = self.store.delete_one({"_id": movie["_id"], "addedBy": requester_id})
        if result.deleted_count == 0:
            raise NotFoundError("Movie not found")
        logger.info("Movie %s deleted by %s", movie["_id"], requester_id)

    def list_by_owner(self, requester_id: str):
        return self.store.find({"addedBy": self._user(requester_id, "userId is required")})

    def toggle_watchlist(self, movie_id: str, user_email: str | None):
        """
        Add ``user_email`` to the movie's watchlist, or remove it when present.

        Both directions are single atomic updates, so concurrent toggles never
        leave the same user twice in the list.

        Args:
            movie_id (str): Movie identifier.
            user_email (str | None): User to toggle.

        Returns:
            tuple[bool, list]: Whether the user was added, and the new watchlist.
        """
        self._user(user_email, "userEmail is required")
        object_id = self._object_id(movie_id)

        movie = self.store.find_one_and_update(
            {"_id": object_id, "watchlist": user_email},
            {"$pull": {"watchlist": user_email}},
        )
        added = False
        if movie is None:
            # $addToSet fails on a null watchlist
            self.store.update_one({"_id": object_id, "watchlist": None}, {"$set": {"watchlist": []}})
            movie = self.store.find_one_and_update(
                {"_id": object_id}, {"$addToSet": {"watchlist": user_email}}
            )
            added = True
        if movie is None:
            raise NotFoundError("Movie not found")

        logger.info("Watchlist of %s: %s %s", object_id, "added" if added else "removed", user_email)
        return added, list(movie.get("watchlist") or [])

    def count_users(self):
        """Count distinct users who added a movie or keep one on a watchlist."""
        users = set()
        for field in ("addedBy", "watchlist"):
            for value in self.store.distinct(field):
                values = value if isinstance(value, list) else [value]
                users.update(str(entry) for entry in values if entry)
        return len(users)
