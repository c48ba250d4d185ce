"""Apply rewrite decisions to a pull request description."""

from dataclasses import dataclass, field

from .decider import DEFAULT_WIDTH, Decision, decide, resolve_width
from .logging import debug
from .matcher import MatchExtractionError, find_candidates


@dataclass
class RewriteResult:
    """Outcome of one rewrite run."""

    text: str
    changed: bool
    warnings: list[str] = field(default_factory=list)
    # Image references found, including ones left unchanged
    found: int = 0


def apply(
    text: str, decisions: list[Decision], warnings: list[str] | None = None
) -> RewriteResult:
    """Splice replacement text into the original at each candidate's offsets.

    Text between candidates is copied verbatim. Nothing is searched for
    again, so two candidates with identical markup each replace their own
    occurrence.

    Args:
        text: The original text the candidates were found in
        decisions: Decisions for candidates found in text
        warnings: Existing warnings to carry into the result

    Returns:
        RewriteResult with the new text
    """
    warnings = list(warnings or [])
    pieces = []
    cursor = 0

    for decision in sorted(decisions, key=lambda d: d.candidate.start):
        if decision.skipped:
            continue

        candidate = decision.candidate
        if candidate.start < cursor:
            warnings.append(
                f"Skipping {candidate.kind.value} at offset {candidate.start}: "
                "overlaps a previous replacement"
            )
            continue
        if text[candidate.start : candidate.end] != candidate.full_span_text:
            warnings.append(
                f"Skipping {candidate.kind.value} at offset {candidate.start}: "
                "span does not match the text"
            )
            continue

        pieces.append(text[cursor : candidate.start])
        pieces.append(decision.replacement_text)
        cursor = candidate.end

    pieces.append(text[cursor:])
    new_text = "".join(pieces)

    return RewriteResult(
        text=new_text,
        changed=new_text != text,
        warnings=warnings,
        found=len(decisions),
    )


def rewrite(text: str, target_width=DEFAULT_WIDTH) -> RewriteResult:
    """Constrain every image in text to target_width.

    Markdown images and <img> tags without a width become
    ``<img width=".." src=".." alt=".." />``. Tags that already have a width
    are left alone, so running this on its own output changes nothing.

    A reference that cannot be parsed is skipped and reported in
    ``RewriteResult.warnings``; it never aborts the rewrite.

    Args:
        text: Description text
        target_width: Width to apply; invalid values fall back to 300

    Returns:
        RewriteResult with the rewritten text

    Raises:
        TypeError: If text is not a string.
    """
    if not isinstance(text, str):
        raise TypeError(f"text must be a str, not {type(text).__name__}")

    width = resolve_width(target_width)
    warnings: list[str] = []

    candidates = find_candidates(text, warnings)
    debug(f"Found {len(candidates)} image reference(s)")

    decisions = []
    for candidate in candidates:
        try:
            decision = decide(candidate, width)
        except (MatchExtractionError, ValueError) as e:
            warnings.append(
                f"Skipping {candidate.kind.value} at offset {candidate.start}: {e}"
            )
            continue

        if decision.skipped:
            debug(f"  Keeping {candidate.image_url} (width already set)")
        else:
            debug(f"  Resizing {candidate.image_url} to {width}px")
        decisions.append(decision)

    result = apply(text, decisions, warnings)
    result.found = len(candidates)
    return result
