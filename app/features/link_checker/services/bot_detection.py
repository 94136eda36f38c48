"""
Bot protection heuristics.

Pure pattern matching over an HTML string: no I/O, no parsing state.
A positive signal means the fetched HTML probably does not represent the
page's real rendered content (challenge interstitial, CAPTCHA wall or a
client-side rendered shell).
"""
import re
from typing import List, NamedTuple

from app.features.link_checker.schemas.link_checker import ProtectionSignal, ProtectionWarning

MIN_BODY_LENGTH = 100
JS_SCRIPT_THRESHOLD = 5
JS_CONTENT_THRESHOLD = 500
SPA_LINK_THRESHOLD = 5

_LINK_TAG_RE = re.compile(r"<a[\s>]", re.IGNORECASE)
_SCRIPT_TAG_RE = re.compile(r"<script", re.IGNORECASE)
_DIV_TAG_RE = re.compile(r"<div[\s>]", re.IGNORECASE)
_BODY_RE = re.compile(r"<body[^>]*>(.*?)</body>", re.IGNORECASE | re.DOTALL)
_SCRIPT_BLOCK_RE = re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL)

CLOUDFLARE_PATTERNS = [
    re.compile(r"Checking your browser", re.IGNORECASE),
    re.compile(r"cf-browser-verification", re.IGNORECASE),
    re.compile(r"cf-challenge", re.IGNORECASE),
    re.compile(r"Ray ID:", re.IGNORECASE),
    re.compile(r"__cf_chl_", re.IGNORECASE),
    re.compile(r"challenge-platform", re.IGNORECASE),
    re.compile(r"cf-wrapper", re.IGNORECASE),
    re.compile(r"cf_clearance", re.IGNORECASE),
]

RECAPTCHA_PATTERNS = [
    re.compile(r"google\.com/recaptcha", re.IGNORECASE),
    re.compile(r"g-recaptcha", re.IGNORECASE),
    re.compile(r"grecaptcha", re.IGNORECASE),
]

SPA_SIGNATURES = [
    (re.compile(r"react", re.IGNORECASE), "React"),
    (re.compile(r"vue\.js", re.IGNORECASE), "Vue.js"),
    (re.compile(r"angular", re.IGNORECASE), "Angular"),
    (re.compile(r"next\.js", re.IGNORECASE), "Next.js"),
    (re.compile(r"gatsby", re.IGNORECASE), "Gatsby"),
]


def detect_bot_protection(html: str) -> ProtectionSignal:
    signal = ProtectionSignal()

    link_count = len(_LINK_TAG_RE.findall(html))
    script_count = len(_SCRIPT_TAG_RE.findall(html))
    div_count = len(_DIV_TAG_RE.findall(html))

    body_match = _BODY_RE.search(html)
    body_content = body_match.group(1).strip() if body_match else ""
    content_without_scripts = _SCRIPT_BLOCK_RE.sub("", html)

    if len(body_content) < MIN_BODY_LENGTH:
        signal.empty_body = True
        signal.details.append(f"Page has minimal or no body content ({len(body_content)} chars)")

    signal.details.append(
        f"Found {link_count} <a> tags, {script_count} <script> tags, {div_count} <div> tags"
    )

    for pattern in CLOUDFLARE_PATTERNS:
        if pattern.search(html):
            signal.cloudflare = True
            signal.details.append(f"Cloudflare protection detected (matched: {pattern.pattern})")
            break

    if any(pattern.search(html) for pattern in RECAPTCHA_PATTERNS):
        signal.recaptcha = True
        signal.details.append("reCAPTCHA detected on page")

    if script_count > JS_SCRIPT_THRESHOLD and len(content_without_scripts) < JS_CONTENT_THRESHOLD:
        signal.js_required = True
        signal.details.append(
            f"Page appears to be JavaScript-rendered ({script_count} scripts, "
            f"{len(content_without_scripts)} chars without scripts)"
        )

    if link_count < SPA_LINK_THRESHOLD:
        for pattern, name in SPA_SIGNATURES:
            if pattern.search(html):
                signal.js_required = True
                signal.details.append(f"{name} framework detected with minimal static HTML")
                break

    signal.detected = signal.cloudflare or signal.recaptcha or signal.js_required or signal.empty_body
    return signal


def protection_types(signal: ProtectionSignal) -> List[str]:
    types = []
    if signal.cloudflare:
        types.append("Cloudflare")
    if signal.recaptcha:
        types.append("reCAPTCHA")
    if signal.js_required:
        types.append("JavaScript-Required")
    if signal.empty_body:
        types.append("Empty-Content")
    return types


class ProtectedPage(NamedTuple):
    url: str
    link_count: int
    signal: ProtectionSignal


def needs_warning(link_count: int, signal: ProtectionSignal) -> bool:
    return link_count == 0 or signal.detected


def build_page_warning(html_size: int, link_count: int, signal: ProtectionSignal) -> ProtectionWarning:
    """Job-level warning for a single-page check."""
    details = list(signal.details)
    types = protection_types(signal)
    if link_count == 0:
        details.append(f"No links extracted from HTML ({html_size} bytes)")
        types.append("No-Links-Found")
        message = (
            "No links found on this page. This may indicate bot protection "
            "or JavaScript-rendered content."
        )
    else:
        message = "This page may be protected or require JavaScript to render content."

    return ProtectionWarning(type=types, message=message, details=details)


def build_crawl_warning(protected_pages: List[ProtectedPage]) -> ProtectionWarning:
    """Aggregate every flagged page of a crawl into one warning."""
    details = []
    types = []
    for page in protected_pages:
        details.append(f"Page: {page.url} ({page.link_count} links found)")
        details.extend(f"  - {detail}" for detail in page.signal.details)

        page_types = protection_types(page.signal)
        if page.link_count == 0:
            page_types.append("No-Links-Found")
        for kind in page_types:
            if kind not in types:
                types.append(kind)

    return ProtectionWarning(
        type=types,
        message=(
            f"{len(protected_pages)} page(s) showed signs of bot protection "
            "or JavaScript rendering during crawl."
        ),
        details=details,
        affected_pages=len(protected_pages),
    )
