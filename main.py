import sys
import logging
import argparse
from contextlib import nullcontext
from reconciler_config import (ENVIRONMENTS, load_config, ensure_key_readable, require_settings,
                               setup_logging)
from dimension_fixer import audit_image_sizes, fix_image_sizes
from media_store import open_media_collection
from s3_uploader import DEFAULT_UPLOAD_DIR, get_s3_client, upload_files
from ssh_tunnel import SSHTunnel

# Environment each flow targets when --env is not given
FLOW_DEFAULT_ENVS = {
    "audit": "staging",
    "fix": "prod",
    "upload": "staging",
}

# Settings each flow needs before anything is opened
FLOW_REQUIRED_SETTINGS = {
    "audit": ((), ("bucket_url",)),
    "fix": ((), ("bucket_url",)),
    "upload": (("access_key_id", "secret_access_key", "aws_bucket_upload"), ()),
}

# ======================
# Flows
# ======================

def run_audit(config, target, args, timeout=None):
    client, collection = open_media_collection(target.mongo_uri, timeout)
    try:
        return audit_image_sizes(collection, target.bucket_url, timeout=timeout)
    finally:
        client.close()


def run_fix(config, target, args, timeout=None):
    client, collection = open_media_collection(target.mongo_uri, timeout)
    try:
        return fix_image_sizes(collection, target.bucket_url, timeout=timeout)
    finally:
        client.close()


def run_upload(config, target, args, timeout=None):
    s3 = get_s3_client(config, timeout)
    client, collection = open_media_collection(target.mongo_uri, timeout)
    try:
        return upload_files(collection, s3, config.aws_bucket_upload, root=args.upload_dir, timeout=timeout)
    finally:
        client.close()


FLOWS = {
    "audit": run_audit,
    "fix": run_fix,
    "upload": run_upload,
}

# ======================
# CLI
# ======================

def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Media metadata reconciler")
    parser.add_argument("flow", choices=FLOWS.keys(), help="Flow to run")
    parser.add_argument("--env", choices=ENVIRONMENTS,
                        help="Target environment (audit/upload: staging, fix: prod)")
    parser.add_argument("--upload-dir", default=DEFAULT_UPLOAD_DIR, help="Root directory for the upload flow")
    parser.add_argument("--timeout", type=float, help="Timeout in seconds for probes, uploads and database calls")
    parser.add_argument("--env-file", help="Path to a .env file")
    parser.add_argument("--no-tunnel", action="store_true", help="Connect directly without an SSH tunnel")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging level")
    return parser.parse_args(argv)


def open_tunnel(config, target):
    require_settings(config, "linux_username", "aws_pem_file")
    require_settings(target, "host")
    ensure_key_readable(config.aws_pem_file)
    return SSHTunnel(config.linux_username, target.host, config.aws_pem_file, config.local_port)


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.log_level)

    config = load_config(env_file=args.env_file)
    env_name = args.env or FLOW_DEFAULT_ENVS[args.flow]
    target = config.target(env_name)
    timeout = args.timeout if args.timeout is not None else config.request_timeout

    config_fields, target_fields = FLOW_REQUIRED_SETTINGS[args.flow]
    require_settings(config, *config_fields)
    require_settings(target, *target_fields)

    logging.info(f"Running '{args.flow}' against {env_name}")
    tunnel = nullcontext() if args.no_tunnel else open_tunnel(config, target)
    with tunnel:
        summary = FLOWS[args.flow](config, target, args, timeout)

    summary.log()
    return summary


def cli():
    main(sys.argv[1:])


if __name__ == '__main__':
    cli()
