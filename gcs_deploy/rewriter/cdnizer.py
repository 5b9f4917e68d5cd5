"""
CDN URL rewriting for HTML and CSS text.

Rewrites references to known build files (``src=``/``href=`` attributes and
CSS ``url(...)``) so they point at a CDN base URL. A reference matches a file
when its path, ignoring leading "./" or "/" and an optional relative root,
equals the file name or ends with "/" + the file name. Query strings and
fragments are carried over.

URLs that already start with the CDN base, absolute URLs with a scheme,
protocol-relative URLs and in-page anchors are never touched, so running the
rewriter twice gives the same output as running it once.
"""

import re
from typing import Iterable, Optional

HTML_ATTR_RE = re.compile(
    r"""(?P<prefix>\b(?:src|href|data-src|poster)\s*=\s*)(?P<quote>["'])(?P<url>[^"']*)(?P=quote)""",
    re.IGNORECASE,
)
CSS_URL_RE = re.compile(
    r"""(?P<prefix>\burl\(\s*)(?P<quote>["']?)(?P<url>[^"')\s]+)(?P=quote)(?P<suffix>\s*\))""",
    re.IGNORECASE,
)
SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*:")
QUERY_SPLIT_RE = re.compile(r"^(?P<path>[^?#]*)(?P<rest>.*)$", re.DOTALL)


class Cdnizer:
    """
    Rewrites file references in text to a CDN base.

    Example:
        >>> cdnizer = Cdnizer("https://cdn.example.com/site", ["js/app.js"])
        >>> cdnizer.rewrite('<script src="/js/app.js?v=2"></script>')
        '<script src="https://cdn.example.com/site/js/app.js?v=2"></script>'
    """

    def __init__(
        self,
        cdn_base: str,
        files: Iterable[str],
        relative_root: Optional[str] = None,
    ) -> None:
        self.cdn_base = cdn_base
        self.base = cdn_base.rstrip("/")
        self.names = frozenset(files)
        self.relative_root = relative_root.strip("/") + "/" if relative_root else ""

    def _lookup(self, candidate: str) -> Optional[str]:
        if candidate in self.names:
            return candidate
        # Leftmost "/" first, so the longest known suffix wins
        for index, char in enumerate(candidate):
            if char == "/" and candidate[index + 1:] in self.names:
                return candidate[index + 1:]
        return None

    def rewrite_url(self, url: str) -> str:
        if (
            not url
            or url == self.base
            or url.startswith(self.base + "/")
            or url.startswith("//")
            or url.startswith("#")
            or SCHEME_RE.match(url)
        ):
            return url

        match = QUERY_SPLIT_RE.match(url)
        path, rest = match.group("path"), match.group("rest")

        candidate = path
        while candidate.startswith("./"):
            candidate = candidate[2:]
        candidate = candidate.lstrip("/")
        if self.relative_root and candidate.startswith(self.relative_root):
            candidate = candidate[len(self.relative_root):]

        name = self._lookup(candidate)
        if name is None:
            return url
        return f"{self.base}/{name}{rest}"

    def rewrite(self, content: str) -> str:
        def _attr(m: "re.Match") -> str:
            return f"{m.group('prefix')}{m.group('quote')}{self.rewrite_url(m.group('url'))}{m.group('quote')}"

        def _css(m: "re.Match") -> str:
            return (
                f"{m.group('prefix')}{m.group('quote')}{self.rewrite_url(m.group('url'))}"
                f"{m.group('quote')}{m.group('suffix')}"
            )

        return CSS_URL_RE.sub(_css, HTML_ATTR_RE.sub(_attr, content))
