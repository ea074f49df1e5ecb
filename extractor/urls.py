import re
import logging
from typing import Iterable, List, Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

logger = logging.getLogger(__name__)

DOMAIN_RE = re.compile(
    r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?(\.[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?)*\.[a-z]{2,}$"
)


def is_valid_domain(host: str) -> bool:
    """True for a dotted hostname with an alphabetic TLD (rejects IPs and localhost)."""
    if not host:
        return False
    return bool(DOMAIN_RE.match(host.lower()))


def normalize_url(raw: str) -> Optional[str]:
    """Trim, default the scheme to https:// and validate a target URL.

    Returns None when the value is not an http(s) URL with a public-looking domain.
    The host is lower-cased and any fragment dropped; path and query are kept.
    """
    if not raw:
        return None
    value = raw.strip()
    if not value:
        return None
    if "://" not in value:
        value = "https://" + value.lstrip("/")

    try:
        parts = urlsplit(value)
        port = parts.port
    except ValueError:
        return None

    if parts.scheme.lower() not in ("http", "https"):
        return None
    host = (parts.hostname or "").lower()
    if not is_valid_domain(host):
        return None
    if parts.username or parts.password:
        return None

    netloc = f"{host}:{port}" if port else host
    return urlunsplit((parts.scheme.lower(), netloc, parts.path, parts.query, ""))


def dedupe_key(url: str) -> str:
    parts = urlsplit(url)
    return urlunsplit(("", (parts.netloc or "").lower(), parts.path.rstrip("/"), parts.query, ""))


def normalize_urls(raw_urls: Iterable[str]) -> List[str]:
    """Normalize a batch of URLs, dropping invalid entries and duplicates (order kept)."""
    seen = set()
    urls: List[str] = []
    for raw in raw_urls:
        url = normalize_url(raw)
        if url is None:
            if raw and raw.strip():
                logger.warning("Discarding invalid URL", extra={"url": raw})
            continue
        key = dedupe_key(url)
        if key in seen:
            continue
        seen.add(key)
        urls.append(url)
    return urls


def split_url_list(text: str) -> List[str]:
    """Split a newline-separated URL field into raw entries."""
    return [line.strip() for line in (text or "").splitlines() if line.strip()]


def same_host(a: str, b: str) -> bool:
    host_a = (urlsplit(a).hostname or "").lower()
    host_b = (urlsplit(b).hostname or "").lower()
    if host_a.startswith("www."):
        host_a = host_a[4:]
    if host_b.startswith("www."):
        host_b = host_b[4:]
    return bool(host_a) and host_a == host_b


def site_root(url: str) -> str:
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, "/", "", ""))


def join_path(url: str, path: str) -> str:
    return urljoin(site_root(url), path)


def strip_fragment(url: str) -> str:
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, parts.query, ""))
