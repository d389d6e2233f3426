import logging
from pymongo import MongoClient
from reconciler_config import MONGO_DB, MONGO_COLLECTION
from media_helpers import IMAGE_MIMETYPES


def open_media_collection(mongo_uri, timeout=None):
    """Open a client for ``mongo_uri`` and return ``(client, collection)``."""
    client_kwargs = {}
    if timeout is not None:
        client_kwargs["serverSelectionTimeoutMS"] = int(timeout * 1000)
        client_kwargs["socketTimeoutMS"] = int(timeout * 1000)
    client = MongoClient(mongo_uri, **client_kwargs)
    logging.debug(f"Using collection {MONGO_DB}.{MONGO_COLLECTION}")
    return client, client[MONGO_DB][MONGO_COLLECTION]


def missing_dimensions_query():
    return {
        "$and": [
            {"$or": [{"mimetype": mimetype} for mimetype in IMAGE_MIMETYPES]},
            {"$or": [{"height": ""}, {"width": ""}]},
        ]
    }


def update_media(collection, key, fields):
    """Merge ``fields`` into the record whose key is ``key``."""
    response = collection.update_one({"key": key}, {"$set": fields})
    return response.matched_count, response.modified_count
