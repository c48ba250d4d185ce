"""Locate image references in pull request descriptions.

Scanning is two-phase: bounded patterns find candidate spans, then each span
is validated and its attributes extracted on its own, so one malformed image
never affects its neighbours.

Three tiers are recognised:
- Markdown images: ![alt](url) pointing at a .png/.jpg/.jpeg or an
  extension-less user-attachments URL
- HTML <img> tags with well-formed attributes in any order
- A loose <img ... src=...> fallback, only consulted when the first two
  tiers find nothing (recovers tags in code fences and odd markup)
"""

import html
import re
from dataclasses import dataclass
from enum import Enum

from bs4 import BeautifulSoup

from .logging import debug


class MatchExtractionError(Exception):
    """Raised when a matched span cannot be turned into a Candidate."""


class CandidateKind(Enum):
    """Syntax family of a discovered image reference."""

    MARKDOWN_IMAGE = "markdown image"
    HTML_IMG_TAG = "img tag"
    FALLBACK_IMG_TAG = "img tag (fallback)"

    @property
    def is_tag(self) -> bool:
        return self is not CandidateKind.MARKDOWN_IMAGE


@dataclass(frozen=True)
class Candidate:
    """An image reference found in the source text."""

    kind: CandidateKind
    full_span_text: str
    image_url: str
    alt_text: str
    has_existing_width: bool
    start: int
    end: int


MARKDOWN_IMAGE_PATTERN = re.compile(
    r"""
    !\[(?P<alt>[^\]\n]*)\]
    \(
    (?P<url>
        https?://[^\s()]*?
        (?:
            \.(?:png|jpe?g)
          | /user-attachments/assets/[^\s()?]+
        )
        (?:\?[^\s()]*)?
    )
    \)
    """,
    re.IGNORECASE | re.VERBOSE,
)

HTML_IMG_PATTERN = re.compile(
    r"""
    <img
    (?:\s+[^\s"'<>/=]+(?:\s*=\s*(?:"[^"]*"|'[^']*'|[^\s"'=<>`]+))?)*
    \s*/?>
    """,
    re.IGNORECASE | re.VERBOSE,
)

FALLBACK_IMG_PATTERN = re.compile(
    r"""<img\b[^>]*?(?<![\w-])src\s*=\s*(?P<quote>["']?)(?P<src>https?://[^"'\s>]+)(?P=quote)[^>]*>""",
    re.IGNORECASE,
)

# Attribute names follow whitespace, a closing quote or the tag's slash
_QUOTED_VALUE = re.compile(r""""[^"]*"|'[^']*'""")
_WIDTH_NAME = re.compile(r"""(?<=[\s"'/])width\s*=""", re.IGNORECASE)
_ALT_NAME = re.compile(r"""(?<=[\s"'/])alt\s*=""", re.IGNORECASE)
_ALT_VALUE = re.compile(
    r"""alt\s*=\s*(?:"(?P<dq>[^"]*)"|'(?P<sq>[^']*)'|(?P<bare>[^\s"'<>`/]+))""",
    re.IGNORECASE,
)
_HTTP_URL = re.compile(r"^https?://", re.IGNORECASE)

_FENCE_OPEN = re.compile(r"^[ \t]{0,3}(`{3,}|~{3,})", re.MULTILINE)

# decodeURI leaves escapes of these characters encoded
_RESERVED = frozenset(";/?:@&=+$,#")
_ESCAPE_RUN = re.compile(r"(?:%[0-9A-Fa-f]{2})+")
_STRAY_PERCENT = re.compile(r"%(?![0-9A-Fa-f]{2})")


def decode_uri(uri: str) -> str:
    """Decode percent-escapes in a URL without changing what it points at.

    Escapes are decoded as UTF-8, except escapes of reserved URL characters
    (``;/?:@&=+$,#``), which stay encoded.

    Raises:
        MatchExtractionError: If the URL holds a malformed escape sequence.
    """
    if _STRAY_PERCENT.search(uri):
        raise MatchExtractionError(f"malformed percent-escape in {uri!r}")

    def decode_run(match: re.Match) -> str:
        escapes = match.group(0)
        try:
            decoded = bytes.fromhex(escapes.replace("%", "")).decode("utf-8")
        except UnicodeDecodeError as e:
            raise MatchExtractionError(
                f"percent-escapes {escapes!r} are not valid UTF-8"
            ) from e

        pieces = []
        offset = 0
        for char in decoded:
            width = len(char.encode("utf-8"))
            if char in _RESERVED:
                pieces.append(escapes[offset * 3 : (offset + width) * 3])
            else:
                pieces.append(char)
            offset += width
        return "".join(pieces)

    return _ESCAPE_RUN.sub(decode_run, uri)


def _fenced_ranges(text: str) -> list[tuple[int, int]]:
    """Return (start, end) offsets of fenced code blocks.

    An unclosed fence runs to the end of the text.
    """
    ranges = []
    pos = 0
    while True:
        opening = _FENCE_OPEN.search(text, pos)
        if opening is None:
            return ranges

        fence = opening.group(1)
        line_end = text.find("\n", opening.end())
        if line_end == -1:
            ranges.append((opening.start(), len(text)))
            return ranges

        closing = re.compile(
            rf"^[ \t]{{0,3}}{re.escape(fence[0])}{{{len(fence)},}}[ \t]*$",
            re.MULTILINE,
        )
        close_match = closing.search(text, line_end + 1)
        end = close_match.end() if close_match else len(text)
        ranges.append((opening.start(), end))
        pos = end


def _inside(offset: int, ranges: list[tuple[int, int]]) -> bool:
    return any(start <= offset < end for start, end in ranges)


def _extract_markdown(match: re.Match) -> Candidate:
    return Candidate(
        kind=CandidateKind.MARKDOWN_IMAGE,
        full_span_text=match.group(0),
        image_url=decode_uri(match.group("url")),
        alt_text=match.group("alt"),
        has_existing_width=False,
        start=match.start(),
        end=match.end(),
    )


def _extract_html_tag(match: re.Match) -> Candidate | None:
    span = match.group(0)
    tag = BeautifulSoup(span, "html.parser").find("img")
    if tag is None:
        raise MatchExtractionError(f"could not parse {span!r}")

    src = tag.get("src")
    if src is None:
        raise MatchExtractionError("img tag has no src attribute")
    src = src.strip()
    if not _HTTP_URL.match(src):
        debug(f"  Ignoring non-http img src: {src!r}")
        return None

    return Candidate(
        kind=CandidateKind.HTML_IMG_TAG,
        full_span_text=span,
        image_url=decode_uri(src),
        alt_text=tag.get("alt") or "",
        has_existing_width=tag.has_attr("width"),
        start=match.start(),
        end=match.end(),
    )


def _mask_quoted(span: str) -> str:
    """Blank out quoted attribute values, keeping every offset in place."""
    return _QUOTED_VALUE.sub(
        lambda m: m.group(0)[0] + " " * (len(m.group(0)) - 2) + m.group(0)[-1], span
    )


def _extract_fallback_tag(match: re.Match) -> Candidate:
    span = match.group(0)
    # Names are looked up outside quoted values, so ?width=2000 in a src is ignored
    masked = _mask_quoted(span)

    alt_text = ""
    alt_name = _ALT_NAME.search(masked)
    if alt_name is not None:
        alt_match = _ALT_VALUE.match(span, alt_name.start())
        if alt_match is None:
            raise MatchExtractionError(f"malformed alt attribute in {span!r}")
        alt_text = next(v for v in alt_match.group("dq", "sq", "bare") if v is not None)

    return Candidate(
        kind=CandidateKind.FALLBACK_IMG_TAG,
        full_span_text=span,
        image_url=decode_uri(html.unescape(match.group("src"))),
        alt_text=html.unescape(alt_text),
        has_existing_width=bool(_WIDTH_NAME.search(masked)),
        start=match.start(),
        end=match.end(),
    )


def _scan(
    text: str,
    pattern: re.Pattern,
    extract,
    kind: CandidateKind,
    skip_ranges: list[tuple[int, int]],
    warnings: list[str] | None,
) -> list[Candidate]:
    """Run one tier over the text, extracting each span independently."""
    found = []
    for match in pattern.finditer(text):
        if _inside(match.start(), skip_ranges):
            debug(f"  Skipping {kind.value} inside code fence at {match.start()}")
            continue
        try:
            candidate = extract(match)
        except MatchExtractionError as e:
            message = f"Skipping {kind.value} at offset {match.start()}: {e}"
            debug(f"  {message}")
            if warnings is not None:
                warnings.append(message)
            continue
        if candidate is not None:
            found.append(candidate)
    return found


_PRIMARY_TIERS = (
    (MARKDOWN_IMAGE_PATTERN, _extract_markdown, CandidateKind.MARKDOWN_IMAGE),
    (HTML_IMG_PATTERN, _extract_html_tag, CandidateKind.HTML_IMG_TAG),
)


def find_candidates(text: str, warnings: list[str] | None = None) -> list[Candidate]:
    """Find image references in text, ordered by position.

    Args:
        text: The text to scan (e.g. a pull request description)
        warnings: Optional list that receives a message for every span that
            matched but could not be extracted

    Returns:
        Non-overlapping candidates in order of first occurrence
    """
    fenced = _fenced_ranges(text)

    candidates = []
    for pattern, extract, kind in _PRIMARY_TIERS:
        candidates += _scan(text, pattern, extract, kind, fenced, warnings)

    if not candidates:
        candidates = _scan(
            text,
            FALLBACK_IMG_PATTERN,
            _extract_fallback_tag,
            CandidateKind.FALLBACK_IMG_TAG,
            [],
            warnings,
        )
        if candidates:
            debug(f"  Fallback pattern found {len(candidates)} img tag(s)")

    # An <img> written inside Markdown alt text would otherwise be rewritten twice
    ordered = []
    last_end = 0
    for candidate in sorted(candidates, key=lambda c: c.start):
        if candidate.start < last_end:
            debug(f"  Dropping overlapping {candidate.kind.value} at {candidate.start}")
            continue
        ordered.append(candidate)
        last_end = candidate.end

    return ordered
