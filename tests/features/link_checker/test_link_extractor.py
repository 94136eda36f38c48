from app.features.link_checker.schemas.link_checker import LinkCheckOptions, LinkType
from app.features.link_checker.services.link_extractor import extract_links

BASE = "https://example.com/blog/post"

PAGE = """
<html>
<head>
  <link rel="icon" href="/favicon.ico">
  <link rel="shortcut icon" href="/favicon.ico">
  <link rel="apple-touch-icon" href="/touch.png">
  <link rel="canonical" href="https://example.com/blog/post">
  <link rel="alternate" type="application/rss+xml" href="/feed.xml">
  <link rel="alternate" type="application/atom+xml" href="/atom.xml">
  <link rel="alternate" hreflang="de" href="/de/post">
  <link rel="manifest" href="/site.webmanifest">
  <link rel="stylesheet" href="/css/site.css">
  <link rel="preload" href="/fonts/a.woff2" as="font">
  <link rel="prefetch" href="/next.html">
  <link rel="dns-prefetch" href="//cdn.example.net">
  <link rel="preconnect" href="https://fonts.gstatic.com">
  <script src="/js/app.js"></script>
  <script>console.log("inline")</script>
</head>
<body>
  <a href="/about">About</a>
  <a href="/about#team">Team</a>
  <a href="relative">Relative</a>
  <a href="#top">Top</a>
  <a href="https://other.org/page">Other</a>
  <a href="javascript:void(0)">JS</a>
  <a href="mailto:hi@example.com">Mail</a>
  <a href="tel:+123">Call</a>
  <a href="http://[broken">Broken</a>
  <iframe src="https://www.youtube.com/embed/x"></iframe>
  <iframe src="data:text/html,hello"></iframe>
  <img src="/img/a.png" srcset="/img/a-1x.png 1x, /img/a-2x.png 2x">
  <img src="data:image/png;base64,AAAA">
  <video src="/v/clip.mp4"><source src="/v/clip.webm"></video>
  <audio><source src="/a/song.mp3"></audio>
</body>
</html>
"""


def _pairs(links):
    return {(link.url, link.type) for link in links}


class TestLinkExtractor:
    def test_default_extraction(self):
        links = extract_links(PAGE, BASE, LinkCheckOptions())

        assert _pairs(links) == {
            ("https://example.com/about", LinkType.hyperlink),
            ("https://example.com/blog/relative", LinkType.hyperlink),
            ("https://example.com/blog/post", LinkType.hyperlink),
            ("https://other.org/page", LinkType.hyperlink),
            ("https://example.com/favicon.ico", LinkType.favicon),
            ("https://example.com/touch.png", LinkType.favicon),
            ("https://example.com/blog/post", LinkType.canonical),
            ("https://example.com/feed.xml", LinkType.feed),
            ("https://example.com/atom.xml", LinkType.feed),
            ("https://example.com/site.webmanifest", LinkType.manifest),
            ("https://www.youtube.com/embed/x", LinkType.iframe),
        }
        assert all(link.source == BASE for link in links)

    def test_fragments_are_stripped_and_deduplicated(self):
        links = extract_links(PAGE, BASE)
        about = [link for link in links if link.url == "https://example.com/about"]
        assert len(about) == 1

    def test_same_url_with_different_types_is_kept(self):
        links = extract_links(PAGE, BASE)
        types = {link.type for link in links if link.url == "https://example.com/blog/post"}
        assert types == {LinkType.hyperlink, LinkType.canonical}

    def test_check_images(self):
        links = extract_links(PAGE, BASE, LinkCheckOptions(check_images=True))
        pairs = _pairs(links)

        assert ("https://example.com/img/a.png", LinkType.image) in pairs
        assert ("https://example.com/img/a-1x.png", LinkType.image_srcset) in pairs
        assert ("https://example.com/img/a-2x.png", LinkType.image_srcset) in pairs
        assert ("https://example.com/v/clip.mp4", LinkType.video) in pairs
        assert ("https://example.com/v/clip.webm", LinkType.video) in pairs
        assert ("https://example.com/a/song.mp3", LinkType.audio) in pairs
        assert not any(url.startswith("data:") for url, _ in pairs)
        # CSS/JS stays off
        assert not any(t in (LinkType.stylesheet, LinkType.script) for _, t in pairs)

    def test_check_css_js(self):
        links = extract_links(PAGE, BASE, LinkCheckOptions(check_css_js=True))
        pairs = _pairs(links)

        assert ("https://example.com/css/site.css", LinkType.stylesheet) in pairs
        assert ("https://example.com/js/app.js", LinkType.script) in pairs
        assert ("https://example.com/fonts/a.woff2", LinkType.preload) in pairs
        assert ("https://example.com/next.html", LinkType.prefetch) in pairs
        assert ("https://cdn.example.net", LinkType.dns_prefetch) in pairs
        assert ("https://fonts.gstatic.com", LinkType.preconnect) in pairs
        assert not any(t == LinkType.image for _, t in pairs)

    def test_extraction_is_idempotent(self):
        options = LinkCheckOptions(check_images=True, check_css_js=True)
        first = extract_links(PAGE, BASE, options)
        second = extract_links(PAGE, BASE, options)
        assert _pairs(first) == _pairs(second)
        assert len(first) == len(_pairs(first))

    def test_unresolvable_reference_does_not_abort_extraction(self):
        html = '<a href="http://[broken">x</a><a href="/still-here">y</a>'
        links = extract_links(html, BASE)
        assert _pairs(links) == {("https://example.com/still-here", LinkType.hyperlink)}

    def test_empty_html(self):
        assert extract_links("", BASE) == []
