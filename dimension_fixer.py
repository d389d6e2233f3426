import logging
from media_helpers import IMAGE_EXTENSIONS, ItemResult, RunSummary, get_file_name, get_file_extension
from media_probe import get_http_session, probe_remote_image
from media_store import missing_dimensions_query, update_media


def _default_probe(timeout):
    session = get_http_session()
    return lambda url: probe_remote_image(url, timeout=timeout, session=session)


def _has_dimensions(result):
    return bool(result and result.get("height") and result.get("width"))

# ======================
# Audit (read only)
# ======================

def audit_image_sizes(collection, bucket_url, probe=None, timeout=None):
    """Probe every image record missing dimensions and log what was found.

    Nothing is written. A failure outside the per-record handling (count,
    cursor) stops the scan and is reported through ``summary.aborted``.
    """
    probe = probe or _default_probe(timeout)
    summary = RunSummary(flow="audit")
    query = missing_dimensions_query()

    try:
        summary.total = collection.count_documents(query)
        current = 0

        for media in collection.find(query):
            current += 1
            key = media.get("key") or ""
            logging.info(f"Processing {current}/{summary.total} - {key}")

            file_name = key
            try:
                url = bucket_url + key
                file_name = get_file_name(url)
                extension = get_file_extension(file_name)

                if extension not in IMAGE_EXTENSIONS:
                    logging.debug(f"Skipping {file_name}: unsupported extension {extension}")
                    summary.record(ItemResult(name=key, skipped=True, reason="unsupported extension"))
                    continue

                logging.info(f"Probing url {url}")
                result = probe(url)
                if not _has_dimensions(result):
                    logging.warning(f"[x] Result has no dimensions for {url}.")
                    summary.record(ItemResult(name=key, skipped=True, reason="no dimensions"))
                else:
                    logging.info(f"Key: {file_name} - Dimensions: height ({result['height']}) width ({result['width']})")
                    summary.record(ItemResult(name=key))
            except Exception as e:
                logging.warning(f"[x] Caught an error - {file_name}: {e}")
                summary.record(ItemResult(name=key, ok=False, reason=str(e)))

    except Exception as e:
        logging.error(f"[x] Found an error: {e}")
        summary.aborted = str(e)

    return summary

# ======================
# Fix
# ======================

def fix_image_sizes(collection, bucket_url, probe=None, timeout=None):
    """Probe every image record missing dimensions and write them back."""
    probe = probe or _default_probe(timeout)
    summary = RunSummary(flow="fix")
    query = missing_dimensions_query()

    summary.total = collection.count_documents(query)
    current = 0

    for media in collection.find(query):
        current += 1
        key = media.get("key") or ""
        logging.info(f"Processing {current}/{summary.total} - {key}")

        try:
            url = bucket_url + key
            file_name = get_file_name(url)
            extension = get_file_extension(file_name)

            if extension not in IMAGE_EXTENSIONS:
                summary.record(ItemResult(name=key, skipped=True, reason="unsupported extension"))
                continue

            result = probe(url)
            if not _has_dimensions(result):
                logging.warning(f"[x] Probing returned no dimensions for {url}.")
                summary.record(ItemResult(name=key, skipped=True, reason="no dimensions"))
                continue

            fields = {"height": str(result["height"]), "width": str(result["width"])}
            matched, modified = update_media(collection, key, fields)
            logging.info(f"Key: {file_name} - Found: {matched} - Modified: {modified}")
            summary.record(ItemResult(name=key, matched_count=matched, modified_count=modified, fields=fields))
        except Exception as e:
            logging.error(f"[x] Thrown error for key {key}: {e}")
            summary.record(ItemResult(name=key, ok=False, reason=str(e)))

    if summary.errors > 0:
        logging.info(f">>> Process finished with {summary.errors} errors.")

    return summary
