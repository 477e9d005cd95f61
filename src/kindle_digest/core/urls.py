"""URL canonicalization and content fingerprints used for deduplication."""

import hashlib
import re
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

TRACKING_PARAMS = frozenset({
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    "ref",
    "source",
    "fbclid",
    "gclid",
    "mc_cid",
    "mc_eid",
})

FINGERPRINT_CHARS = 5000
FINGERPRINT_LENGTH = 32


def canonicalize_url(url: str) -> str:
    """Normalize a URL into a stable dedup key.

    Tracking parameters are removed, the scheme becomes https, leading
    ``www.`` labels are dropped, the host is lower-cased and trailing slashes
    are stripped from non-root paths. Unparseable input is returned unchanged.
    """
    try:
        parts = urlsplit(url.strip())
        host = parts.hostname
        if not host:
            return url

        while host.startswith("www."):
            host = host[4:]

        netloc = f"[{host}]" if ":" in host else host
        if parts.port is not None:
            netloc = f"{netloc}:{parts.port}"
        if parts.username:
            credentials = parts.username
            if parts.password:
                credentials = f"{credentials}:{parts.password}"
            netloc = f"{credentials}@{netloc}"

        query = urlencode(
            [
                (key, value)
                for key, value in parse_qsl(parts.query, keep_blank_values=True)
                if key not in TRACKING_PARAMS
            ]
        )

        path = parts.path.rstrip("/") or "/"

        return urlunsplit(("https", netloc, path, query, parts.fragment))
    except (ValueError, AttributeError):
        return url


def compute_content_hash(content_text: str) -> str:
    """Fingerprint article text; case and whitespace differences collide."""
    normalized = re.sub(r"\s+", " ", content_text.lower()).strip()
    normalized = normalized[:FINGERPRINT_CHARS]
    digest = hashlib.sha256(normalized.encode("utf-8")).hexdigest()
    return digest[:FINGERPRINT_LENGTH]
