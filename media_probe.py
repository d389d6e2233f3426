import re
import logging
import subprocess
import requests
from requests.adapters import HTTPAdapter
from PIL import Image, ImageFile

PROBE_CHUNK_SIZE = 4096
PROBE_MAX_BYTES = 1024 * 1024
FFPROBE_ARGS = ["-v", "error", "-show_format", "-show_streams"]

WIDTH_RE = re.compile(r'width="?([0-9]*)"?')
HEIGHT_RE = re.compile(r'height="?([0-9]*)"?')
DURATION_RE = re.compile(r'duration="?(\d*\.\d*)"?')


class ImageProbeError(Exception):
    pass

# ======================
# HTTP
# ======================

def get_http_session():
    session = requests.Session()
    adapter = HTTPAdapter(pool_connections=1, pool_maxsize=1, max_retries=0)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session

# ======================
# Remote image probe
# ======================

def probe_remote_image(url, timeout=None, session=None):
    """Read just enough of a remote image to learn its pixel dimensions.

    Returns ``{"width": int, "height": int}``. Raises a
    ``requests.RequestException`` for transport or HTTP failures and
    ``ImageProbeError`` when the payload is not a recognisable image.
    """
    session = session or get_http_session()
    parser = ImageFile.Parser()
    received = 0

    # Only the header is read, so the decompression bomb limit does not apply
    max_pixels = Image.MAX_IMAGE_PIXELS
    Image.MAX_IMAGE_PIXELS = None
    try:
        with session.get(url, stream=True, timeout=timeout) as response:
            response.raise_for_status()
            for chunk in response.iter_content(chunk_size=PROBE_CHUNK_SIZE):
                if not chunk:
                    continue
                received += len(chunk)
                if received > PROBE_MAX_BYTES:
                    raise ImageProbeError(f"No image header within the first {PROBE_MAX_BYTES} bytes of {url}")
                try:
                    parser.feed(chunk)
                except Exception as e:
                    raise ImageProbeError(f"Invalid image data at {url}: {e}") from e
                if parser.image is not None:
                    width, height = parser.image.size
                    logging.debug(f"Probed {url}: {width}x{height}")
                    return {"width": width, "height": height}
    finally:
        Image.MAX_IMAGE_PIXELS = max_pixels

    raise ImageProbeError(f"Could not determine image dimensions for {url}")

# ======================
# ffprobe
# ======================

def parse_ffprobe_output(text):
    result = {"width": 0, "height": 0, "duration": None}

    width = WIDTH_RE.search(text)
    if width and width.group(1):
        result["width"] = int(width.group(1))

    height = HEIGHT_RE.search(text)
    if height and height.group(1):
        result["height"] = int(height.group(1))

    duration = DURATION_RE.search(text)
    if duration and duration.group(1):
        result["duration"] = duration.group(1)

    return result


def get_media_info(file_path, timeout=None):
    cmd = ["ffprobe", *FFPROBE_ARGS, file_path]
    logging.debug(f"Running: {' '.join(cmd)}")
    try:
        completed = subprocess.run(cmd, capture_output=True, text=True, check=True, timeout=timeout)
    except subprocess.CalledProcessError as e:
        logging.error(f"ffprobe failed for {file_path}: {e.stderr.strip() if e.stderr else e}")
        raise
    return parse_ffprobe_output(completed.stdout)
