import logging
from urllib.parse import quote_plus

from pymongo import MongoClient, ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import PyMongoError
from pymongo.server_api import ServerApi

logger = logging.getLogger(__name__)

DEFAULT_MONGO_URI = "mongodb://localhost:27017"


def build_mongo_uri(username: str | None, password: str | None, host: str | None, app_name: str = "Cluster0"):
    """
    Build an Atlas style connection string from separate credentials.

    Args:
        username (str | None): Database user.
        password (str | None): Database password.
        host (str | None): Cluster host name.
        app_name (str): Value for the ``appName`` option.

    Returns:
        str | None: ``mongodb+srv`` URI, or None when a part is missing.
    """
    if not username or not password or not host:
        return None
    return (
        f"mongodb+srv://{quote_plus(username)}:{quote_plus(password)}@{host}/"
        f"?appName={quote_plus(app_name)}"
    )


class MovieStore:
    """
    Shared handle on the movies collection.

    The client is created once and reused by every request. ``connect`` is
    meant to be called at startup; when it was not called, or failed, the
    first use of ``collection`` builds the client lazily.
    """

    def __init__(
        self,
        uri: str = DEFAULT_MONGO_URI,
        database_name: str = "movie-db",
        collection_name: str = "movies",
        client: MongoClient | None = None,
        server_api: str | None = None,
        timeout_ms: int = 5000,
    ):
        self.uri = uri
        self.database_name = database_name
        self.collection_name = collection_name
        self.server_api = server_api
        self.timeout_ms = timeout_ms
        self._client = client
        self._collection = None

    def _build_client(self):
        options = {"serverSelectionTimeoutMS": self.timeout_ms}
        if self.server_api:
            options["server_api"] = ServerApi(self.server_api)
        return MongoClient(self.uri, **options)

    def _ensure_collection(self):
        if self._client is None:
            self._client = self._build_client()
        if self._collection is None:
            self._collection = self._client[self.database_name][self.collection_name]
        return self._collection

    def connect(self):
        """
        Establish the connection and ping the server.

        Returns:
            bool: True when the server answered, False otherwise.
        """
        try:
            self._ensure_collection()
            self._client.admin.command("ping")
        except PyMongoError as exc:
            logger.error("MongoDB connection error: %s", exc)
            return False
        logger.info("Connected to MongoDB (%s.%s)", self.database_name, self.collection_name)
        return True

    @property
    def collection(self) -> Collection:
        return self._ensure_collection()

    def find(self, filter_query: dict | None = None, sort: list | None = None, limit: int = 0):
        cursor = self.collection.find(filter_query or {})
        if sort:
            cursor = cursor.sort(sort)
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)

    def find_one(self, filter_query: dict):
        return self.collection.find_one(filter_query)

    def insert_one(self, document: dict):
        return self.collection.insert_one(document).inserted_id

    def update_one(self, filter_query: dict, update: dict):
        return self.collection.update_one(filter_query, update)

    def find_one_and_update(self, filter_query: dict, update: dict):
        """Apply ``update`` and return the document as it is afterwards."""
        return self.collection.find_one_and_update(
            filter_query, update, return_document=ReturnDocument.AFTER
        )

    def delete_one(self, filter_query: dict):
        return self.collection.delete_one(filter_query)

    def distinct(self, field: str):
        return self.collection.distinct(field)

    def close(self):
        if self._client is not None:
            self._client.close()
        self._client = None
        self._collection = None
