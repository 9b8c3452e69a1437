"""
Image resolution for Word export.

Loads the bytes behind an image reference (remote URL, data URI or local
file), reads its natural pixel size with Pillow and scales it to the page
content width. Failures are logged and reported as ``None`` so the caller can
fall back to a placeholder.
"""
import base64
import binascii
import http.client
import io
import logging
import math
import urllib.error
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

MAX_CONTENT_WIDTH = 600  # px, roughly the A4 text width at 96 dpi
FALLBACK_SIZE = (600, 400)
DEFAULT_TIMEOUT = 10.0
USER_AGENT = 'Mozilla/5.0'


@dataclass(frozen=True)
class ExtractedImage:
    data: bytes
    width: int
    height: int


def fit_to_width(width: int, height: int, max_width: int = MAX_CONTENT_WIDTH) -> Tuple[int, int]:
    """Scale down to ``max_width`` keeping the aspect ratio; smaller images are untouched."""
    if width <= max_width:
        return width, height
    ratio = max_width / width
    # Halves round up
    return max_width, int(math.floor(height * ratio + 0.5))


def read_dimensions(data: bytes) -> Tuple[int, int]:
    """Natural (width, height) of an image, or the fallback size if it cannot be decoded."""
    try:
        with Image.open(io.BytesIO(data)) as im:
            return im.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        logger.warning(f"ImageResolver: could not decode image, using fallback size: {e}")
        return FALLBACK_SIZE


def _load_data_uri(src: str) -> bytes:
    header, sep, payload = src.partition(',')
    if not sep or ';base64' not in header:
        raise ValueError("Unsupported data URI format")
    return base64.b64decode(payload, validate=False)


def _load_remote(src: str, timeout: float) -> bytes:
    req = urllib.request.Request(src, headers={'User-Agent': USER_AGENT})
    with urllib.request.urlopen(req, timeout=timeout) as response:
        status = getattr(response, 'status', 200)
        if status < 200 or status >= 300:
            raise ValueError(f"HTTP {status}")
        return response.read()


def _load_local(src: str, base_dir: Path) -> bytes:
    """Read a file that must live under ``base_dir``."""
    root = Path(base_dir).resolve()
    path = (root / src).resolve()
    if root not in path.parents:
        raise ValueError(f"Local image outside {root}")
    return path.read_bytes()


def load_image_bytes(src: str, base_dir: Optional[Path] = None, timeout: float = DEFAULT_TIMEOUT) -> bytes:
    """
    Raw bytes of an image reference. Local paths are only read when a
    ``base_dir`` is given, and only from inside it.
    """
    if src.startswith('data:'):
        return _load_data_uri(src)
    if src.startswith(('http://', 'https://')):
        return _load_remote(src, timeout)
    if base_dir is None:
        raise ValueError("Local images need a base directory")
    return _load_local(src, base_dir)


def resolve_image(src: str, base_dir: Optional[Path] = None,
                  timeout: float = DEFAULT_TIMEOUT) -> Optional[ExtractedImage]:
    """
    Fetch an image reference and measure it.
    Returns None on any network, HTTP status, decoding or file error.
    """
    if not src:
        return None
    try:
        data = load_image_bytes(src, base_dir=base_dir, timeout=timeout)
    except (urllib.error.URLError, http.client.HTTPException, OSError, ValueError, binascii.Error) as e:
        logger.warning(f"ImageResolver: failed to load '{src[:80]}': {e}")
        return None

    if not data:
        logger.warning(f"ImageResolver: empty response for '{src[:80]}'")
        return None

    width, height = read_dimensions(data)
    logger.debug(f"ImageResolver: loaded {len(data)} bytes ({width}x{height}) from '{src[:80]}'")
    return ExtractedImage(data=data, width=width, height=height)
