import re

from nanoid import generate
from pydantic import AnyHttpUrl, TypeAdapter, ValidationError

URL_SAFE_CHARS = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
DEFAULT_LENGTH = 7
CACHE_KEY_PREFIX = "url:"

CUSTOM_CODE_PATTERN = re.compile(r"^[A-Za-z0-9_-]{3,20}$")

# No length cap: original_url is stored as TEXT
_http_url = TypeAdapter(AnyHttpUrl)


def generate_code(length: int = DEFAULT_LENGTH) -> str:
    """Draw a random short code of the given length from the URL-safe alphabet."""

    return generate(URL_SAFE_CHARS, length)


def sanitize_url(url: str) -> str:
    return url.strip()


def is_valid_url(url: str) -> bool:
    """Only absolute http/https URLs are accepted."""

    if not url or not isinstance(url, str):
        return False
    try:
        _http_url.validate_python(url)
    except ValidationError:
        return False
    return True


def is_valid_custom_code(code: str) -> bool:
    if not code or not isinstance(code, str):
        return False
    return CUSTOM_CODE_PATTERN.fullmatch(code) is not None


def cache_key(short_code: str) -> str:
    return f"{CACHE_KEY_PREFIX}{short_code}"
