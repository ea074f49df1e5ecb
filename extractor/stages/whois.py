"""WHOIS registrant lookup."""

import asyncio
import logging
from typing import List
from urllib.parse import urlsplit

import asyncwhois

from extractor.core.config import WHOIS_CACHE
from extractor.errors import StageError
from extractor.models.job import Step
from extractor.stages.base import StageContext, StageExecutor, StageOutcome, plural, retrying
from extractor.stages.parser import EMAIL_RE, is_valid_email

logger = logging.getLogger(__name__)

# Second-level suffixes under which registrations happen one label deeper
MULTI_LABEL_SUFFIXES = {
    "co.uk", "org.uk", "ac.uk", "gov.uk", "com.au", "net.au", "org.au",
    "co.nz", "co.jp", "co.za", "com.br", "com.mx", "co.in", "com.sg",
}

PRIVACY_DOMAINS = {
    "withheldforprivacy.com", "domainsbyproxy.com", "whoisguard.com", "whoisguard.org",
    "privacyprotect.org", "privacyprotect.com", "privacyprotect.net",
    "whoisprivacyprotect.com", "whoisprivacyprotect.org", "proxy-protection.com",
    "proxy-protection.org", "whoisproxy.com", "whoisproxy.org", "whoisprotect.com",
    "whoisprotect.org", "contactprivacy.com", "privacy-link.com",
    "namecheap.com", "godaddy.com", "enom.com", "tucows.com", "register.com",
}

ROLE_MAILBOXES = {
    "abuse", "noc", "postmaster", "hostmaster", "webmaster", "admin", "root",
    "registrar", "dns", "ns", "mx", "mail", "smtp", "whois", "privacy",
    "proxy", "protect", "withheld", "nobody", "domains", "domain-abuse",
}

NO_RECORD_MARKERS = ("no match", "not found", "no data found", "no entries found", "status: free")


def registrable_domain(url: str) -> str:
    """Reduce a URL or host to the domain a registry would hold a record for."""
    host = (urlsplit(url).hostname if "://" in url else url).lower().strip(".")
    labels = host.split(".")
    if len(labels) >= 3 and ".".join(labels[-2:]) in MULTI_LABEL_SUFFIXES:
        return ".".join(labels[-3:])
    return ".".join(labels[-2:])


def has_record(text: str) -> bool:
    lowered = (text or "").strip().lower()
    if not lowered:
        return False
    return not any(marker in lowered for marker in NO_RECORD_MARKERS)


def extract_whois_emails(text: str) -> List[str]:
    """Registrant contact emails from a WHOIS record, minus privacy proxies and role mailboxes."""
    found: List[str] = []
    for match in EMAIL_RE.findall(text or ""):
        email = match.lower().rstrip(".")
        if email in found or not is_valid_email(email):
            continue
        local, domain = email.split("@")
        if domain in PRIVACY_DOMAINS or any(domain.endswith("." + d) for d in PRIVACY_DOMAINS):
            continue
        if local in ROLE_MAILBOXES or any(word in local for word in ("privacy", "proxy", "protect", "whois")):
            continue
        found.append(email)
    return found


class WhoisClient:
    """Registrant lookups through asyncwhois, which follows registry and registrar referrals."""

    def __init__(self, timeout: float = 10.0, retries: int = 1, backoff_base: float = 0.25):
        self.timeout = timeout
        self.retries = retries
        self.backoff_base = backoff_base

    async def _query_once(self, domain: str) -> str:
        try:
            record, _ = await asyncwhois.aio_whois(
                domain,
                authoritative_only=True,
                ignore_not_found=True,
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise StageError(StageError.TIMEOUT, f"WHOIS for {domain} timed out", retryable=True) from e
        except OSError as e:
            raise StageError(StageError.UNREACHABLE, f"WHOIS for {domain}: {e}", retryable=True) from e
        return record or ""

    async def query(self, domain: str) -> str:
        async for attempt in retrying(self.retries, self.backoff_base):
            with attempt:
                record = await self._query_once(domain)
        return record

    async def lookup(self, domain: str) -> str:
        """Most specific WHOIS record for `domain`; empty when the registry has none."""
        cached = WHOIS_CACHE.get(domain)
        if cached is not None:
            return cached
        record = await self.query(domain)
        if not has_record(record):
            logger.info("No WHOIS record", extra={"domain": domain})
            record = ""
        WHOIS_CACHE[domain] = record
        return record


class WhoisLookupExecutor(StageExecutor):
    """Last resort: registrant contact emails from the domain's WHOIS record."""

    step = Step.WHOIS_LOOKUP

    def __init__(self, client: WhoisClient, timeout: float = 20.0):
        self.client = client
        self.timeout = timeout

    async def run(self, ctx: StageContext) -> StageOutcome:
        domain = registrable_domain(ctx.url)
        record = await self.client.lookup(domain)
        if not has_record(record):
            raise StageError(StageError.PARSE_FAILURE, f"No WHOIS record for {domain}")
        emails = extract_whois_emails(record)
        return StageOutcome(emails=emails, message=f"{plural(len(emails))} found in WHOIS record for {domain}")
