"""Decide which image references to rewrite and what to rewrite them to."""

import re
from dataclasses import dataclass

from .logging import warning
from .matcher import Candidate

DEFAULT_WIDTH = 300

_PLAIN_INTEGER = re.compile(r"\+?[0-9]+")


@dataclass(frozen=True)
class Decision:
    """A candidate paired with its replacement text (None means leave it alone)."""

    candidate: Candidate
    replacement_text: str | None = None

    @property
    def skipped(self) -> bool:
        return self.replacement_text is None


def resolve_width(value, default: int = DEFAULT_WIDTH) -> int:
    """Turn a configured width into a positive integer.

    Strings must be plain decimal integers. Absent, unparseable and
    non-positive values fall back to the default.
    No upper bound is applied.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return default

    width = None
    if isinstance(value, int) and not isinstance(value, bool):
        width = value
    elif isinstance(value, str) and _PLAIN_INTEGER.fullmatch(value.strip()):
        width = int(value.strip())

    if width is None or width <= 0:
        warning(f"Invalid width {value!r}, using {default}")
        return default
    return width


def canonical_img_tag(image_url: str, alt_text: str, width: int) -> str:
    """Build the <img> element every rewritten reference is replaced with."""
    # A bare double quote would end the attribute value early
    src = image_url.replace('"', "&quot;")
    alt = alt_text.replace('"', "&quot;")
    return f'<img width="{width}" src="{src}" alt="{alt}" />'


def decide(candidate: Candidate, target_width: int) -> Decision:
    """Decide whether a candidate is rewritten.

    Tags that already declare a width are left as the author wrote them.
    Everything else, including every Markdown image, is replaced by the
    canonical <img> element.

    Raises:
        ValueError: If target_width is not a positive integer.
    """
    if isinstance(target_width, bool) or not isinstance(target_width, int):
        raise ValueError(f"target width must be an integer, got {target_width!r}")
    if target_width <= 0:
        raise ValueError(f"target width must be positive, got {target_width}")

    if candidate.kind.is_tag and candidate.has_existing_width:
        return Decision(candidate)

    return Decision(
        candidate,
        canonical_img_tag(candidate.image_url, candidate.alt_text, target_width),
    )
