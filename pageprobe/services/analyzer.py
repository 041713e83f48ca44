"""HTML analysis: title, HTML version, headings, meta tags, login forms, links.

Parsing is tolerant (BeautifulSoup on top of lxml), so malformed real-world
markup never fails the analysis.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")

XHTML_NAMESPACE = "http://www.w3.org/1999/xhtml"

_DOCTYPE_RE = re.compile(rb"<!DOCTYPE\s+([^>]*)>", re.IGNORECASE)
_XHTML_ROOT_RE = re.compile(
    rb"<html\b[^>]*\bxmlns\s*=\s*[\"']" + re.escape(XHTML_NAMESPACE.encode()),
    re.IGNORECASE,
)

# Checked in order; first substring match of the doctype's public identifier wins
_DOCTYPE_LABELS: tuple[tuple[str, str], ...] = (
    ("xhtml 1.1", "XHTML 1.1"),
    ("xhtml 1.0 strict", "XHTML 1.0 Strict"),
    ("xhtml 1.0 transitional", "XHTML 1.0 Transitional"),
    ("xhtml 1.0 frameset", "XHTML 1.0 Frameset"),
    ("xhtml basic", "XHTML Basic"),
    ("xhtml", "XHTML 1.0"),
    ("html 4.01 transitional", "HTML 4.01 Transitional"),
    ("html 4.01 frameset", "HTML 4.01 Frameset"),
    ("html 4.01", "HTML 4.01 Strict"),
    ("html 4.0", "HTML 4.0"),
    ("html 3.2", "HTML 3.2"),
    ("html 2.0", "HTML 2.0"),
)

_USERNAME_HINTS = ("email", "username", "user")
_LOGIN_HINTS = ("login", "signin", "auth")
_LOGIN_BUTTON_TEXTS = ("login", "log in", "signin", "sign in", "log on", "logon", "submit")


@dataclass(frozen=True)
class PageAnalysis:
    """Structural facts extracted from one HTML document.

    Args:
        title: Text of the first <title>, "" if absent
        html_version: Label inferred from the doctype
        heading_counts: Count per heading level, keys h1..h6
        meta_tags: name/property/http-equiv -> content, first occurrence wins
        has_login_form: A <form> contains a password input
        login_form_confidence: Weighted login-form score between 0.0 and 1.0
        links: Raw href values of anchors, in document order
        base_url: Base for resolving relative links (honors <base href>)
    """

    title: str = ""
    html_version: str = "Unknown"
    heading_counts: dict[str, int] = field(
        default_factory=lambda: dict.fromkeys(HEADING_TAGS, 0)
    )
    meta_tags: dict[str, str] = field(default_factory=dict)
    has_login_form: bool = False
    login_form_confidence: float = 0.0
    links: list[str] = field(default_factory=list)
    base_url: str = ""


def analyze_html(
    html: bytes | str,
    base_url: str = "",
    encoding: str | None = None,
) -> PageAnalysis:
    """Parse an HTML document into a PageAnalysis.

    Args:
        html: Raw document bytes (or already decoded text)
        base_url: URL the document was fetched from
        encoding: Charset declared by the response, if any

    Returns:
        PageAnalysis with every field populated best-effort
    """
    raw = html.encode("utf-8", errors="replace") if isinstance(html, str) else html
    if isinstance(html, str):
        soup = BeautifulSoup(html, "lxml")
    else:
        soup = BeautifulSoup(html, "lxml", from_encoding=encoding)

    confidence = login_form_confidence(soup)
    return PageAnalysis(
        title=extract_title(soup),
        html_version=detect_html_version(raw),
        heading_counts=count_headings(soup),
        meta_tags=extract_meta_tags(soup),
        has_login_form=has_login_form(soup),
        login_form_confidence=confidence,
        links=extract_links(soup),
        base_url=document_base(soup, base_url),
    )


def extract_title(soup: BeautifulSoup) -> str:
    """Return the stripped text of the first <title>, or ""."""
    title = soup.find("title")
    if title is None:
        return ""
    return " ".join(title.get_text().split())


def detect_html_version(raw: bytes) -> str:
    """Infer the HTML version from the document's doctype.

    ``<!DOCTYPE html>`` is HTML5. Legacy doctypes map to their public
    identifier's label. Without a doctype, an XHTML namespace on <html> is
    reported as "XHTML 1.0", anything else as "Unknown".
    """
    match = _DOCTYPE_RE.search(raw[:4096])
    if match is None:
        if _XHTML_ROOT_RE.search(raw[:4096]):
            return "XHTML 1.0"
        return "Unknown"

    declaration = match.group(1).decode("ascii", errors="ignore").strip()
    normalized = " ".join(declaration.lower().split())
    if normalized in ("html", 'html system "about:legacy-compat"'):
        return "HTML5"

    for needle, label in _DOCTYPE_LABELS:
        if needle in normalized:
            return label
    return "Unknown"


def count_headings(soup: BeautifulSoup) -> dict[str, int]:
    """Count heading elements per level; every level h1..h6 is present."""
    return {tag: len(soup.find_all(tag)) for tag in HEADING_TAGS}


def extract_meta_tags(soup: BeautifulSoup) -> dict[str, str]:
    """Collect meta tags keyed by name, property, http-equiv or "charset".

    Keys are lowercased; the first occurrence of a key wins.
    """
    meta_tags: dict[str, str] = {}
    for meta in soup.find_all("meta"):
        charset = meta.get("charset")
        if charset:
            meta_tags.setdefault("charset", charset.strip())

        content = meta.get("content")
        if content is None:
            continue
        for attr in ("name", "property", "http-equiv"):
            key = meta.get(attr)
            if key and key.strip():
                meta_tags.setdefault(key.strip().lower(), content.strip())
    return meta_tags


def has_login_form(soup: BeautifulSoup) -> bool:
    """Return True if any <form> contains a password input."""
    for form in soup.find_all("form"):
        if form.find("input", attrs={"type": _is_password_type}):
            return True
    return False


def login_form_confidence(soup: BeautifulSoup) -> float:
    """Score login-form indicators on the page, capped at 1.0."""
    score = 0.0
    passwords = soup.find_all("input", attrs={"type": _is_password_type})
    forms = soup.find_all("form")
    inputs = soup.find_all("input")

    if passwords:
        score += 0.8
    if any(_attr_contains(f, "action", _LOGIN_HINTS) for f in forms):
        score += 0.7
    if any(
        _attr_contains(f, "id", _LOGIN_HINTS) or _attr_contains(f, "class", _LOGIN_HINTS)
        for f in forms
    ):
        score += 0.6
    if any(_is_username_input(i) for i in inputs):
        score += 0.5
    if any(_is_login_button(b) for b in soup.find_all(["button", "input"])):
        score += 0.4
    if any(
        _attr_contains(i, "name", ("login", "signin"))
        or _attr_contains(i, "id", ("login", "signin"))
        for i in inputs
    ):
        score += 0.3
    if any(
        _attr_contains(i, "name", ("remember",)) or _attr_contains(i, "id", ("remember",))
        for i in inputs
    ) or any("remember" in label.get_text().lower() for label in soup.find_all("label")):
        score += 0.2
    if any(
        "forgot" in a.get_text().lower()
        or _attr_contains(a, "href", ("forgot", "reset"))
        for a in soup.find_all("a")
    ):
        score += 0.1

    for password in passwords:
        form = password.find_parent("form")
        if form is not None and any(
            _is_username_input(i) for i in form.find_all("input")
        ):
            score += 0.3
            break

    return round(min(score, 1.0), 2)


def extract_links(soup: BeautifulSoup) -> list[str]:
    """Return stripped, non-empty href values of <a> tags in document order."""
    links: list[str] = []
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if href:
            links.append(href)
    return links


def document_base(soup: BeautifulSoup, page_url: str) -> str:
    """Return the URL relative links resolve against.

    A ``<base href>`` in the document overrides the page URL; it may itself
    be relative to the page URL.
    """
    base = soup.find("base", href=True)
    if base is None or not page_url:
        return page_url
    href = base["href"].strip()
    if not href:
        return page_url
    try:
        return urljoin(page_url, href)
    except ValueError:
        return page_url


def _is_password_type(value: str | None) -> bool:
    return bool(value) and value.strip().lower() == "password"


def _attr_contains(tag: Tag, attr: str, needles: tuple[str, ...]) -> bool:
    value = tag.get(attr)
    if value is None:
        return False
    if isinstance(value, list):
        value = " ".join(value)
    value = value.lower()
    return any(needle in value for needle in needles)


def _is_username_input(tag: Tag) -> bool:
    if (tag.get("type") or "").lower() == "email":
        return True
    return _attr_contains(tag, "name", _USERNAME_HINTS) or _attr_contains(
        tag, "id", _USERNAME_HINTS
    )


def _is_login_button(tag: Tag) -> bool:
    if tag.name == "input" and (tag.get("type") or "").lower() not in ("submit", "button"):
        return False
    text = " ".join([tag.get_text(), tag.get("value") or ""]).lower()
    return any(needle in text for needle in _LOGIN_BUTTON_TEXTS)
