from typing import Optional
from urllib.parse import urljoin, urlparse


def resolve_url(base_url: str, reference: str) -> Optional[str]:
    """Resolve `reference` against `base_url`; None when it can't be resolved."""
    try:
        resolved = urljoin(base_url, reference.strip())
        parsed = urlparse(resolved)
        # Accessing port validates it
        parsed.port
    except ValueError:
        return None
    if not parsed.scheme or not parsed.netloc:
        return None
    return resolved


def strip_fragment(url: str) -> str:
    # Plain split: urldefrag raises on malformed netlocs like "http://[x"
    return url.split("#", 1)[0]


def hostname_of(url: str) -> Optional[str]:
    try:
        return urlparse(url).hostname
    except ValueError:
        return None


def is_same_domain(url1: str, url2: str) -> bool:
    """Exact hostname match (subdomains count as different domains)."""
    host1 = hostname_of(url1)
    host2 = hostname_of(url2)
    return host1 is not None and host1 == host2
