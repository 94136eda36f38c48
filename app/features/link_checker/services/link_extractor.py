from typing import Dict, Iterable, List, Optional, Set, Tuple

from bs4 import BeautifulSoup
from bs4.element import Tag

from app.features.link_checker.schemas.link_checker import LinkCandidate, LinkCheckOptions, LinkType
from app.features.link_checker.utils.urls import resolve_url, strip_fragment

SKIPPED_HREF_PREFIXES = ("javascript:", "mailto:", "tel:")
SKIPPED_SRC_PREFIXES = ("data:", "javascript:")

RESOURCE_HINTS = {
    "stylesheet": LinkType.stylesheet,
    "preload": LinkType.preload,
    "prefetch": LinkType.prefetch,
    "dns-prefetch": LinkType.dns_prefetch,
    "preconnect": LinkType.preconnect,
}


class LinkExtractor:
    """
    Turns a page's HTML into typed link candidates.

    Hyperlinks, favicons, canonical, iframes, feeds and the manifest are always
    collected; media needs `check_images` and stylesheets/scripts/resource hints
    need `check_css_js`. Candidates are unique per (url, type) and keep the
    order in which they were first seen.
    """

    def __init__(self, html: str, base_url: str, options: Optional[LinkCheckOptions] = None):
        self.soup = BeautifulSoup(html or "", "html.parser")
        self.base_url = base_url
        self.options = options or LinkCheckOptions()
        self._links: Dict[Tuple[str, LinkType], LinkCandidate] = {}

    def extract(self) -> List[LinkCandidate]:
        self._extract_hyperlinks()
        self._extract_head_links()
        self._extract_iframes()
        if self.options.check_images:
            self._extract_media()
        if self.options.check_css_js:
            self._extract_scripts()
        return list(self._links.values())

    def _add(self, reference: Optional[str], link_type: LinkType, skip: Iterable[str] = ()) -> None:
        if not reference:
            return
        reference = reference.strip()
        if not reference or reference.lower().startswith(tuple(skip)):
            return
        url = resolve_url(self.base_url, reference)
        if url is None:
            return
        self._links.setdefault((url, link_type), LinkCandidate(url=url, type=link_type, source=self.base_url))

    @staticmethod
    def _rel_tokens(tag: Tag) -> Set[str]:
        rel = tag.get("rel") or []
        if isinstance(rel, str):
            rel = rel.split()
        return {token.lower() for token in rel}

    def _extract_hyperlinks(self) -> None:
        for anchor in self.soup.find_all("a", href=True):
            href = anchor["href"].strip()
            if href.lower().startswith(SKIPPED_HREF_PREFIXES):
                continue
            href = strip_fragment(href)
            # Pure fragment links point back at the page itself
            self._add(href or self.base_url, LinkType.hyperlink)

    def _extract_head_links(self) -> None:
        links = self.soup.find_all("link", href=True)

        for tag in links:
            rels = self._rel_tokens(tag)
            if "icon" in rels or "apple-touch-icon" in rels:
                self._add(tag["href"], LinkType.favicon)

        for tag in links:
            if "canonical" in self._rel_tokens(tag):
                self._add(tag["href"], LinkType.canonical)

        for tag in links:
            feed_type = (tag.get("type") or "").lower()
            if "alternate" in self._rel_tokens(tag) and ("rss" in feed_type or "atom" in feed_type):
                self._add(tag["href"], LinkType.feed)

        for tag in links:
            if "manifest" in self._rel_tokens(tag):
                self._add(tag["href"], LinkType.manifest)

    def _extract_iframes(self) -> None:
        for frame in self.soup.find_all("iframe", src=True):
            self._add(frame["src"], LinkType.iframe, skip=SKIPPED_SRC_PREFIXES)

    def _extract_media(self) -> None:
        for img in self.soup.find_all("img", src=True):
            self._add(img["src"], LinkType.image, skip=("data:",))

        for img in self.soup.find_all("img", srcset=True):
            for source in self._parse_srcset(img["srcset"]):
                self._add(source, LinkType.image_srcset, skip=("data:",))

        for name, link_type in (("video", LinkType.video), ("audio", LinkType.audio)):
            for element in self.soup.find_all(name):
                self._add(element.get("src"), link_type, skip=("data:",))
                for source in element.find_all("source", src=True):
                    self._add(source["src"], link_type, skip=("data:",))

    @staticmethod
    def _parse_srcset(srcset: str) -> List[str]:
        # "a.jpg 1x, b.jpg 2x" -> ["a.jpg", "b.jpg"]
        sources = []
        for entry in srcset.split(","):
            parts = entry.strip().split()
            if parts:
                sources.append(parts[0])
        return sources

    def _extract_scripts(self) -> None:
        links = self.soup.find_all("link", href=True)
        for rel, link_type in RESOURCE_HINTS.items():
            for tag in links:
                if rel in self._rel_tokens(tag):
                    self._add(tag["href"], link_type)

        for script in self.soup.find_all("script", src=True):
            self._add(script["src"], LinkType.script)


def extract_links(html: str, base_url: str, options: Optional[LinkCheckOptions] = None) -> List[LinkCandidate]:
    return LinkExtractor(html, base_url, options).extract()
