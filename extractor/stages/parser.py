"""Email address extraction from HTML and plain text."""

import html
import json
import re
from typing import Iterable, List
from urllib.parse import unquote

from bs4 import BeautifulSoup

EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}")

_OBFUSCATED = [
    (re.compile(r"\s*\[\s*at\s*\]\s*", re.I), "@"),
    (re.compile(r"\s*\(\s*at\s*\)\s*", re.I), "@"),
    (re.compile(r"\s*\{\s*at\s*\}\s*", re.I), "@"),
    (re.compile(r"\s*\[\s*dot\s*\]\s*", re.I), "."),
    (re.compile(r"\s*\(\s*dot\s*\)\s*", re.I), "."),
    (re.compile(r"\s*\{\s*dot\s*\}\s*", re.I), "."),
]

ASSET_SUFFIXES = (
    ".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg", ".ico", ".bmp",
    ".avif", ".heic", ".heif", ".tif", ".tiff", ".jfif", ".apng",
    ".css", ".js", ".json", ".map", ".woff", ".woff2", ".ttf", ".otf", ".eot",
    ".mp4", ".webm", ".mov", ".mp3", ".pdf",
)

PLACEHOLDER_DOMAINS = {
    "yourdomain.com", "your-domain.com", "your-email.com", "youremail.com",
    "domain.com", "placeholder.com", "test.com", "sample.com",
    "sentry.io", "wixpress.com", "sentry-next.wixpress.com", "localhost",
}

SYSTEM_MAILBOXES = {
    "noreply", "no-reply", "donotreply", "do-not-reply", "mailer-daemon",
    "postmaster", "abuse", "spam", "automated", "bounce", "bounces",
}

MIN_LENGTH = 6
MAX_LENGTH = 254

_LABEL_RE = re.compile(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$")
_JS_ESCAPE_RE = re.compile(r"\\u([0-9a-fA-F]{4})")
# "u003e" left over when an escape lost its backslash
_ESCAPE_RESIDUE_RE = re.compile(r"^(?:u00[0-9a-f]{2})+(?=[^@])", re.I)


def deobfuscate(text: str) -> str:
    for rx, repl in _OBFUSCATED:
        text = rx.sub(repl, text)
    return text


def unescape_js(text: str) -> str:
    """Decode `\\u003e`-style escapes left in inline JSON and scripts."""
    return _JS_ESCAPE_RE.sub(lambda m: chr(int(m.group(1), 16)), text)


def _trim_run_on(value: str) -> str:
    """Drop a capitalised word glued onto the address ("sales@acme.com.Phone")."""
    local, _, domain = value.rpartition("@")
    labels = domain.split(".")
    if local and len(labels) > 2 and labels[-1][:1].isupper() and labels[-1][1:].islower() and labels[-2].islower():
        return f"{local}@{'.'.join(labels[:-1])}"
    return value


def _clean(raw: str) -> str:
    value = unquote(raw or "").strip()
    value = value.strip(" \t\r\n\"'<>[](){},;:")
    value = value.rstrip(".")
    value = _ESCAPE_RESIDUE_RE.sub("", value)
    return _trim_run_on(value).lower()


def _domain_blocked(domain: str) -> bool:
    return any(domain == d or domain.endswith("." + d) for d in PLACEHOLDER_DOMAINS)


def is_valid_email(email: str) -> bool:
    """Reject matches that are clearly not a reachable business address."""
    if not (MIN_LENGTH <= len(email) <= MAX_LENGTH) or email.count("@") != 1:
        return False
    if email.endswith(ASSET_SUFFIXES):
        return False

    local, domain = email.split("@")
    if not local or local.startswith(".") or local.endswith(".") or ".." in local:
        return False

    labels = domain.split(".")
    if len(labels) < 2 or not all(_LABEL_RE.match(label) for label in labels):
        return False
    if not labels[-1].isalpha():
        return False

    if _domain_blocked(domain):
        return False
    if local in SYSTEM_MAILBOXES or local.startswith(("noreply", "no-reply", "donotreply")):
        return False
    return True


def _collect(values: Iterable[str], found: List[str], seen: set) -> None:
    for raw in values:
        for match in EMAIL_RE.findall(raw or ""):
            email = _clean(match)
            if email in seen or not is_valid_email(email):
                continue
            seen.add(email)
            found.append(email)


def _walk_json(obj) -> Iterable[str]:
    if isinstance(obj, str):
        if "@" in obj:
            yield obj
    elif isinstance(obj, dict):
        for value in obj.values():
            yield from _walk_json(value)
    elif isinstance(obj, list):
        for value in obj:
            yield from _walk_json(value)


def extract_emails(markup: str) -> List[str]:
    """Extract unique, lower-cased emails from an HTML document in discovery order.

    Looks at raw markup (covers scripts and comments), mailto links, data and
    title/alt attributes, meta tags, email inputs, JSON-LD, microdata and
    de-obfuscated visible text ("info [at] acme [dot] com").
    """
    if not markup:
        return []

    found: List[str] = []
    seen: set = set()
    text = unescape_js(html.unescape(markup))

    _collect([text], found, seen)

    soup = BeautifulSoup(markup, "html.parser")

    mailtos = []
    for a in soup.select("a[href]"):
        href = a.get("href", "")
        if href.lower().startswith("mailto:"):
            mailtos.append(href[7:].split("?")[0])
    _collect(mailtos, found, seen)

    attrs = []
    for el in soup.select("[data-email], [data-contact], [data-mail]"):
        attrs.extend(el.get(name, "") for name in ("data-email", "data-contact", "data-mail"))
    for el in soup.select("[title], [alt]"):
        attrs.extend((el.get("title", ""), el.get("alt", "")))
    for el in soup.find_all("meta"):
        attrs.append(el.get("content", ""))
    for el in soup.select('input[type="email"], input[name*="email"], input[id*="email"]'):
        attrs.extend((el.get("value", ""), el.get("placeholder", "")))
    for el in soup.select('[itemprop*="email"], [itemprop*="contact"], [itemprop*="mail"]'):
        attrs.append(el.get("content") or el.get_text(" "))
    _collect([a for a in attrs if isinstance(a, str)], found, seen)

    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        try:
            data = json.loads(script.string or "")
        except ValueError:
            continue
        _collect(_walk_json(data), found, seen)

    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    _collect([deobfuscate(soup.get_text(" "))], found, seen)

    return found


def merge_emails(existing: Iterable[str], new: Iterable[str]) -> List[str]:
    """Append unseen emails to `existing`, keeping discovery order."""
    merged = list(existing)
    seen = set(merged)
    for email in new:
        email = email.lower()
        if email not in seen:
            seen.add(email)
            merged.append(email)
    return merged
