import io
from types import SimpleNamespace
import pytest
from PIL import Image


def _matches(doc, query):
    for field, expected in query.items():
        if field == "$and":
            if not all(_matches(doc, sub) for sub in expected):
                return False
        elif field == "$or":
            if not any(_matches(doc, sub) for sub in expected):
                return False
        elif doc.get(field) != expected:
            return False
    return True


class FakeMediaCollection:
    """In-memory stand-in for the media collection (equality, $and, $or, $set only)."""

    def __init__(self, docs=None):
        self.docs = [dict(d) for d in (docs or [])]
        self.update_calls = []

    def count_documents(self, query):
        return sum(1 for d in self.docs if _matches(d, query))

    def find(self, query):
        return iter([dict(d) for d in self.docs if _matches(d, query)])

    def update_one(self, filter, update):
        self.update_calls.append((filter, update))
        matched = modified = 0
        for doc in self.docs:
            if _matches(doc, filter):
                matched = 1
                changes = update.get("$set") or {}
                if any(doc.get(k) != v for k, v in changes.items()):
                    doc.update(changes)
                    modified = 1
                break
        return SimpleNamespace(matched_count=matched, modified_count=modified)

    def get(self, key):
        return next(d for d in self.docs if d["key"] == key)


@pytest.fixture
def make_collection():
    return FakeMediaCollection


@pytest.fixture
def png_bytes():
    buf = io.BytesIO()
    Image.new("RGB", (200, 100), color="red").save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def base_env(tmp_path):
    key_file = tmp_path / "key.pem"
    key_file.write_text("-----BEGIN KEY-----\n")
    return {
        "LOCAL_PORT": "27018",
        "MONGO_URI_DEV": "mongodb://dev:local_port/nikkei",
        "MONGO_URI_STAG": "mongodb://stag:local_port/nikkei",
        "MONGO_URI_PROD": "mongodb://prod:local_port/nikkei",
        "BUCKET_DEV_URL": "https://dev.example.com/",
        "BUCKET_STAG_URL": "https://stag.example.com/",
        "BUCKET_PROD_URL": "https://prod.example.com/",
        "HOST_DEV": "dev-host",
        "HOST_STAG": "stag-host",
        "HOST_PROD": "prod-host",
        "AWS_ACCESS_KEY_ID": "AKIA",
        "AWS_SECRET_ACCESS_KEY": "secret",
        "AWS_BUCKET_UPLOAD": "uploads",
        "AWS_PEM_FILE": str(key_file),
        "LINUX_USERNAME": "ubuntu",
    }
