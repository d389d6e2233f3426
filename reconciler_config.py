import os
import sys
import logging
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

# ======================
# Constants
# ======================

MONGO_DB = "nikkei"
MONGO_COLLECTION = "media"
REMOTE_DB_PORT = 27017
SSH_PORT = 22
LOCAL_PORT_PLACEHOLDER = "local_port"

ENVIRONMENTS = ["dev", "staging", "prod"]

# Environment name -> suffix used in the variable names
ENV_SUFFIXES = {
    "dev": "DEV",
    "staging": "STAG",
    "prod": "PROD",
}

REQUIRED_KEYS = ["LOCAL_PORT", "MONGO_URI_DEV", "MONGO_URI_STAG", "MONGO_URI_PROD"]

# ======================
# Logging
# ======================

def setup_logging(level):
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=numeric_level, stream=sys.stdout,
                        format='%(asctime)s %(levelname)s: %(message)s')
    logging.info(f"Log level set to: {level.upper()}")

# ======================
# Configuration
# ======================

@dataclass
class Target:
    name: str
    mongo_uri: str
    bucket_url: Optional[str] = None
    host: Optional[str] = None


@dataclass
class ReconcilerConfig:
    local_port: str
    mongo_uri_dev: str
    mongo_uri_stag: str
    mongo_uri_prod: str
    bucket_dev: Optional[str] = None
    bucket_stag: Optional[str] = None
    bucket_prod: Optional[str] = None
    host_dev: Optional[str] = None
    host_stag: Optional[str] = None
    host_prod: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    aws_bucket_upload: Optional[str] = None
    aws_region: Optional[str] = None
    aws_pem_file: Optional[str] = None
    linux_username: Optional[str] = None
    request_timeout: Optional[float] = None

    def __post_init__(self):
        # Connection strings carry a placeholder for the tunnel's local port
        for field in ["mongo_uri_dev", "mongo_uri_stag", "mongo_uri_prod"]:
            value = getattr(self, field)
            setattr(self, field, value.replace(LOCAL_PORT_PLACEHOLDER, str(self.local_port)))

    def target(self, name: str) -> Target:
        if name not in ENV_SUFFIXES:
            raise ValueError(f"Unknown environment: {name}")
        suffix = ENV_SUFFIXES[name].lower()
        return Target(
            name=name,
            mongo_uri=getattr(self, f"mongo_uri_{suffix}"),
            bucket_url=getattr(self, f"bucket_{suffix}"),
            host=getattr(self, f"host_{suffix}"),
        )


def _parse_timeout(raw):
    if raw is None or str(raw).strip() == "":
        return None
    try:
        return float(raw)
    except ValueError:
        logging.error(f"REQUEST_TIMEOUT must be a number of seconds, got: {raw}")
        sys.exit(5)


def load_config(env=None, env_file=None) -> ReconcilerConfig:
    """Build the configuration from the process environment.

    A ``.env`` file (or ``env_file``) is loaded first when ``env`` is not
    given. Any missing required key is fatal.
    """
    if env is None:
        load_dotenv(dotenv_path=env_file)
        env = os.environ

    missing = [key for key in REQUIRED_KEYS if not env.get(key)]
    if missing:
        logging.error(f"Missing required environment variables: {', '.join(missing)}")
        sys.exit(5)

    return ReconcilerConfig(
        local_port=env["LOCAL_PORT"],
        mongo_uri_dev=env["MONGO_URI_DEV"],
        mongo_uri_stag=env["MONGO_URI_STAG"],
        mongo_uri_prod=env["MONGO_URI_PROD"],
        bucket_dev=env.get("BUCKET_DEV_URL"),
        bucket_stag=env.get("BUCKET_STAG_URL"),
        bucket_prod=env.get("BUCKET_PROD_URL"),
        host_dev=env.get("HOST_DEV"),
        host_stag=env.get("HOST_STAG"),
        host_prod=env.get("HOST_PROD"),
        access_key_id=env.get("AWS_ACCESS_KEY_ID"),
        secret_access_key=env.get("AWS_SECRET_ACCESS_KEY"),
        aws_bucket_upload=env.get("AWS_BUCKET_UPLOAD"),
        aws_region=env.get("AWS_REGION"),
        aws_pem_file=env.get("AWS_PEM_FILE"),
        linux_username=env.get("LINUX_USERNAME"),
        request_timeout=_parse_timeout(env.get("REQUEST_TIMEOUT")),
    )


def require_settings(obj, *fields):
    """Exit if any of ``fields`` is unset on ``obj`` (a config or a Target)."""
    missing = [field for field in fields if not getattr(obj, field, None)]
    if missing:
        logging.error(f"Missing configuration for: {', '.join(missing)}")
        sys.exit(5)


def ensure_key_readable(path):
    """Exit unless the ssh private key at ``path`` can be opened and read."""
    try:
        with open(path, "rb") as f:
            f.read(1)
    except OSError as e:
        logging.error(f"Unable to read private key file {path}: {e}")
        sys.exit(5)
