import math

from bson import ObjectId

PROTECTED_UPDATE_FIELDS = ("_id", "addedBy", "userId")


def parse_csv_list(raw_value: str | None):
    """
    Split a comma separated query value into its non-blank entries.

    Args:
        raw_value (str | None): Value such as ``"Drama, Comedy"``.

    Returns:
        list[str]: Trimmed entries, empty when nothing was given.
    """
    if not raw_value:
        return []
    entries = (entry.strip() for entry in str(raw_value).split(","))
    return [entry for entry in entries if entry]


def parse_rating(raw_value: object):
    """
    Parse a rating bound from the query string.

    Args:
        raw_value (Any): Raw query value.

    Returns:
        float | None: Parsed rating, or None when no value was given.

    Raises:
        ValueError: When a value is present but not numeric.
    """
    if raw_value is None:
        return None
    text = str(raw_value).strip()
    if not text:
        return None
    value = float(text)
    if math.isnan(value):
        raise ValueError(f"rating is not a number: {raw_value!r}")
    return value


def build_movie_filter(genres: list[str] | None = None, min_rating: float | None = None, max_rating: float | None = None):
    """
    Build the MongoDB filter for the movie list.

    Args:
        genres (list[str] | None): Genres of which at least one must match.
        min_rating (float | None): Inclusive lower rating bound.
        max_rating (float | None): Inclusive upper rating bound.

    Returns:
        dict: Filter combining every provided condition.
    """
    query = {}
    if genres:
        query["genre"] = {"$in": list(genres)}
    rating = {}
    if min_rating is not None:
        rating["$gte"] = min_rating
    if max_rating is not None:
        rating["$lte"] = max_rating
    if rating:
        query["rating"] = rating
    return query


def to_object_id(movie_id: object):
    """Return ``movie_id`` as an ObjectId, or None when it is malformed."""
    if isinstance(movie_id, ObjectId):
        return movie_id
    if not isinstance(movie_id, str) or not ObjectId.is_valid(movie_id):
        return None
    return ObjectId(movie_id)


def unique_in_order(values: list):
    """Drop repeated values, keeping the first occurrence of each."""
    seen = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


def normalize_watchlist(value: object):
    """
    Coerce a client supplied watchlist into a list of unique entries.

    Args:
        value (Any): Raw ``watchlist`` value from a request body.

    Returns:
        list: Entries in their first-seen order; empty for null or non-list values.
    """
    if not isinstance(value, list):
        return []
    return unique_in_order(value)


def build_insert_payload(data: dict | None):
    """
    Prepare an incoming JSON body for insertion.

    Args:
        data (dict | None): Submitted JSON body.

    Returns:
        dict | None: Document to insert, or None when the body is not an object.
    """
    if not isinstance(data, dict):
        return None

    payload = dict(data)
    payload.pop("_id", None)
    user_id = payload.pop("userId", None)
    if not payload.get("addedBy") and user_id:
        payload["addedBy"] = user_id
    if "watchlist" in payload:
        payload["watchlist"] = normalize_watchlist(payload["watchlist"])
    return payload


def build_update_payload(data: dict | None):
    """
    Strip the fields a client may never overwrite from an update body.

    Args:
        data (dict | None): Submitted JSON body.

    Returns:
        dict: Remaining fields for a shallow ``$set``.
    """
    if not isinstance(data, dict):
        return {}
    changes = {key: value for key, value in data.items() if key not in PROTECTED_UPDATE_FIELDS}
    if "watchlist" in changes:
        changes["watchlist"] = normalize_watchlist(changes["watchlist"])
    return changes


def serialize_document(doc: dict | None):
    """
    Convert a MongoDB document into an API-friendly dictionary.

    Args:
        doc (dict | None): MongoDB document.

    Returns:
        dict: Serializable representation with string identifiers.
    """
    if not doc:
        return {}
    serialized = dict(doc)
    if "_id" in serialized and not isinstance(serialized["_id"], str):
        serialized["_id"] = str(serialized["_id"])
    return serialized


def serialize_documents(docs: list[dict]):
    return [serialize_document(doc) for doc in docs]
