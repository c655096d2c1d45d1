"""Turn raw model output into a single standalone HTML document."""
from __future__ import annotations

import re

from .errors import InvalidContentStructure

DOCTYPE = "<!DOCTYPE html>"

_FENCE_RE = re.compile(r"```(?:html)?\s*", re.IGNORECASE)
_DOCTYPE_RE = re.compile(r"<!DOCTYPE\s+html\s*>", re.IGNORECASE)
_HTML_OPEN_RE = re.compile(r"<html\b[^>]*>", re.IGNORECASE)
_HTML_CLOSE = "</html>"


def strip_fences(raw: str) -> str:
    """Remove markdown code fences wherever they occur."""
    return _FENCE_RE.sub("", raw)


def extract_html(raw: str) -> str:
    """Return the validated HTML document contained in ``raw``.

    Fences are dropped, anything before the doctype (or before ``<html>``,
    in which case a doctype is prepended) and anything after the last
    ``</html>`` is cut. Raises InvalidContentStructure when the opening or
    closing root tag is missing; never returns a partial document.

    Idempotent: ``extract_html(extract_html(x)) == extract_html(x)``.
    """
    cleaned = strip_fences(raw)

    doctype = _DOCTYPE_RE.search(cleaned)
    if doctype:
        cleaned = cleaned[doctype.start():]
    else:
        html_open = _HTML_OPEN_RE.search(cleaned)
        if html_open:
            cleaned = f"{DOCTYPE}\n{cleaned[html_open.start():]}"

    end = cleaned.lower().rfind(_HTML_CLOSE)
    if end != -1:
        cleaned = cleaned[: end + len(_HTML_CLOSE)]

    if not _HTML_OPEN_RE.search(cleaned) or end == -1:
        raise InvalidContentStructure("Invalid HTML structure: missing <html> or </html>")
    return cleaned.strip()


__all__ = ["extract_html", "strip_fences", "DOCTYPE"]
