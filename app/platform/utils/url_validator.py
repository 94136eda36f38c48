import ipaddress
import re
import socket
from urllib.parse import urlparse
from typing import Optional, Tuple

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*://")

PRIVATE_NETWORK_ERROR = "Access to private/local networks is not allowed"

# Shorthand IPv4 forms the system resolver accepts: "127.1", "2130706433", "0x7f000001", "0177.0.0.1"
_IPV4_SHORTHAND_RE = re.compile(r"^(0x[0-9a-f]*|[0-9]+)(\.(0x[0-9a-f]*|[0-9]+)){0,3}$")


def normalize_url(url: str) -> Tuple[str, bool]:

    url = url.strip()

    if not _SCHEME_RE.match(url):
        normalized = f"https://{url}"
        return normalized, True

    return url, False


def _parse_ipv4_shorthand(host: str) -> Optional[ipaddress.IPv4Address]:
    """Rewrite a numeric shorthand host to dotted-quad the way inet_aton does. No DNS lookup."""
    if not _IPV4_SHORTHAND_RE.match(host):
        return None
    try:
        return ipaddress.IPv4Address(socket.inet_aton(host))
    except OSError:
        return None


def is_private_host(hostname: str) -> bool:
    """
    Lexical check for loopback, private, link-local and unique-local hosts.
    No DNS lookup is performed; only literal addresses and localhost names match.
    """
    host = hostname.strip("[]").lower().rstrip(".")

    if host == "localhost" or host.endswith(".localhost"):
        return True

    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        address = _parse_ipv4_shorthand(host)
        if address is None:
            return False

    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped:
        address = address.ipv4_mapped

    return (
        address.is_loopback
        or address.is_private
        or address.is_link_local
        or address.is_unspecified
    )


def validate_url(url: str) -> Tuple[bool, str, str]:
    if not url or not url.strip():
        return False, "", "URL cannot be empty"

    normalized_url, was_modified = normalize_url(url)

    try:
        parsed = urlparse(normalized_url)
        # Raises ValueError for malformed ports such as "host:abc"
        parsed.port

        if parsed.scheme.lower() not in ['http', 'https']:
            return False, normalized_url, "Only HTTP and HTTPS URLs are allowed"

        if not parsed.netloc or not parsed.hostname:
            return False, normalized_url, "Invalid URL format: missing domain"

        if is_private_host(parsed.hostname):
            return False, normalized_url, PRIVATE_NETWORK_ERROR

        return True, normalized_url, ""

    except ValueError:
        return False, normalized_url, "Invalid URL format"
