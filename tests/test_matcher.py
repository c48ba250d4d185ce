"""Tests for image reference matching."""

import pytest

from imgwidth.matcher import (
    CandidateKind,
    MatchExtractionError,
    _fenced_ranges,
    decode_uri,
    find_candidates,
)

ATTACHMENT_URL = (
    "https://github.com/user-attachments/assets/0c5b0873-7b1c-46af-a816-5b355b07840a"
)


class TestMarkdownImages:
    """Tests for ![alt](url) matching."""

    def test_matches_standard_syntax(self):
        """Matches a plain Markdown image."""
        text = "![Alt text](https://example.com/image.jpg)"
        candidates = find_candidates(text)

        assert len(candidates) == 1
        candidate = candidates[0]
        assert candidate.kind is CandidateKind.MARKDOWN_IMAGE
        assert candidate.image_url == "https://example.com/image.jpg"
        assert candidate.alt_text == "Alt text"
        assert candidate.full_span_text == text
        assert candidate.has_existing_width is False
        assert (candidate.start, candidate.end) == (0, len(text))

    def test_matches_query_parameters(self):
        """Keeps the query string as part of the URL."""
        text = "![Alt text](https://example.com/image.jpg?size=large&v=2)"
        candidates = find_candidates(text)

        assert len(candidates) == 1
        assert candidates[0].image_url == "https://example.com/image.jpg?size=large&v=2"

    def test_matches_user_attachments_url(self):
        """Matches attachment URLs that carry no file extension."""
        text = f"![Screenshot]({ATTACHMENT_URL})"
        candidates = find_candidates(text)

        assert len(candidates) == 1
        assert candidates[0].image_url == ATTACHMENT_URL

    def test_matches_attachments_on_other_hosts(self):
        """The attachment path convention is not tied to github.com."""
        text = "![x](https://ghe.example.com/user-attachments/assets/abc-123)"
        candidates = find_candidates(text)

        assert len(candidates) == 1
        assert candidates[0].image_url.endswith("/user-attachments/assets/abc-123")

    def test_extension_is_case_insensitive(self):
        """Matches .PNG as well as .png."""
        candidates = find_candidates("![a](https://example.com/SHOT.PNG)")
        assert len(candidates) == 1

    def test_empty_alt_text(self):
        """Empty alt text is allowed."""
        candidates = find_candidates("![](https://example.com/a.png)")
        assert candidates[0].alt_text == ""

    def test_ignores_links_without_bang(self):
        """A plain link is not an image."""
        assert find_candidates("[Alt text](https://example.com/image.jpg)") == []

    def test_ignores_unsupported_extension(self):
        """Only png/jpg/jpeg and attachment URLs are matched."""
        assert find_candidates("![a](https://example.com/anim.gif)") == []

    def test_ignores_relative_url(self):
        """Only http(s) URLs are matched."""
        assert find_candidates("![a](images/local.png)") == []

    def test_matches_multiple_images(self):
        """Finds every image, in order."""
        text = (
            "![First](https://example.com/first.jpg) and "
            "![Second](https://example.com/second.png)"
        )
        candidates = find_candidates(text)

        assert [c.image_url for c in candidates] == [
            "https://example.com/first.jpg",
            "https://example.com/second.png",
        ]
        assert [c.alt_text for c in candidates] == ["First", "Second"]

    def test_url_does_not_run_into_next_image(self):
        """A non-image link is not merged with a following image."""
        text = "![a](https://example.com/page) then ![b](https://example.com/b.png)"
        candidates = find_candidates(text)

        assert len(candidates) == 1
        assert candidates[0].alt_text == "b"
        assert candidates[0].image_url == "https://example.com/b.png"

    def test_percent_decodes_url(self):
        """Percent-escapes in the URL are decoded."""
        candidates = find_candidates("![a](https://example.com/my%20image.png)")
        assert candidates[0].image_url == "https://example.com/my image.png"

    def test_full_span_keeps_source_escapes(self):
        """The span is the literal source text, not the decoded URL."""
        text = "![a](https://example.com/my%20image.png)"
        assert find_candidates(text)[0].full_span_text == text


class TestHtmlImgTags:
    """Tests for <img> tag matching."""

    def test_matches_basic_tag(self):
        """Matches an <img> with src and alt."""
        text = '<img src="https://example.com/image.jpg" alt="Alt text">'
        candidates = find_candidates(text)

        assert len(candidates) == 1
        candidate = candidates[0]
        assert candidate.kind is CandidateKind.HTML_IMG_TAG
        assert candidate.image_url == "https://example.com/image.jpg"
        assert candidate.alt_text == "Alt text"
        assert candidate.has_existing_width is False

    def test_detects_existing_width(self):
        """Flags tags that already declare a width."""
        text = '<img width="500" src="https://example.com/image.jpg" alt="Alt text">'
        candidate = find_candidates(text)[0]

        assert candidate.has_existing_width is True
        assert candidate.image_url == "https://example.com/image.jpg"

    def test_data_width_is_not_width(self):
        """A data-width attribute does not count as a width."""
        text = '<img data-width="500" src="https://example.com/image.jpg">'
        assert find_candidates(text)[0].has_existing_width is False

    @pytest.mark.parametrize(
        "src",
        [
            "https://cdn.example.com/shot.png?width=2000",
            "https://cdn.example.com/shot.png?fit=crop&width=2000",
        ],
    )
    def test_width_in_src_query_is_not_width(self, src):
        """A width= inside the src value is not a width attribute."""
        text = f'<img src="{src}" alt="A">'
        candidate = find_candidates(text)[0]

        assert candidate.has_existing_width is False
        assert candidate.image_url == src

    def test_width_in_alt_is_not_width(self):
        """Attribute values never count as a width attribute."""
        text = '<img src="https://example.com/a.png" alt="max width=5">'
        assert find_candidates(text)[0].has_existing_width is False

    def test_matches_self_closing_tag(self):
        """Matches <img ... />."""
        text = '<img src="https://example.com/image.jpg" />'
        candidates = find_candidates(text)

        assert len(candidates) == 1
        assert candidates[0].alt_text == ""

    def test_src_not_first_attribute(self):
        """Attribute order does not matter."""
        text = f'<img width="1196" alt="Screenshot" src="{ATTACHMENT_URL}">'
        candidate = find_candidates(text)[0]

        assert candidate.image_url == ATTACHMENT_URL
        assert candidate.alt_text == "Screenshot"

    def test_tag_name_is_case_insensitive(self):
        """Matches <IMG SRC=...>."""
        text = '<IMG SRC="https://example.com/a.png" ALT="Upper">'
        candidate = find_candidates(text)[0]

        assert candidate.image_url == "https://example.com/a.png"
        assert candidate.alt_text == "Upper"

    def test_single_quoted_attributes(self):
        """Single-quoted attribute values are parsed."""
        text = "<img alt='A' src='https://example.com/a.png'>"
        candidate = find_candidates(text)[0]

        assert candidate.kind is CandidateKind.HTML_IMG_TAG
        assert candidate.image_url == "https://example.com/a.png"
        assert candidate.alt_text == "A"

    def test_decodes_entities_in_src(self):
        """HTML character references in attribute values are decoded."""
        text = '<img src="https://example.com/a.png?x=1&amp;y=2">'
        assert find_candidates(text)[0].image_url == "https://example.com/a.png?x=1&y=2"

    def test_ignores_other_tags(self):
        """Only <img> elements are matched."""
        assert find_candidates('<div src="https://example.com/image.jpg"></div>') == []

    def test_ignores_non_http_src(self):
        """Relative and data: sources are left alone."""
        assert find_candidates('<img src="/local.png" alt="x">') == []

    def test_missing_src_is_a_warning(self):
        """A tag without src is reported, not raised."""
        warnings = []
        candidates = find_candidates('<img alt="no source">', warnings)

        assert candidates == []
        assert len(warnings) == 1
        assert "no src" in warnings[0]

    def test_real_world_description(self):
        """Matches the tag GitHub inserts for pasted screenshots."""
        text = (
            "This is test image to resize.\n\n"
            '<img width="1196" alt="Screenshot 2025-03-23 at 2 03 33 PM" '
            f'src="{ATTACHMENT_URL}" />```'
        )
        candidates = find_candidates(text)

        assert len(candidates) == 1
        assert candidates[0].kind is CandidateKind.HTML_IMG_TAG
        assert candidates[0].image_url == ATTACHMENT_URL
        assert candidates[0].alt_text == "Screenshot 2025-03-23 at 2 03 33 PM"
        assert candidates[0].has_existing_width is True


class TestMixedContent:
    """Tests for descriptions with several kinds of markup."""

    def test_orders_by_position(self):
        """Markdown and HTML candidates are merged in source order."""
        text = (
            '<img src="https://example.com/1.png">\n'
            "![two](https://example.com/2.png)\n"
            '<img src="https://example.com/3.png">'
        )
        candidates = find_candidates(text)

        assert [c.image_url[-5:] for c in candidates] == ["1.png", "2.png", "3.png"]
        assert [c.kind for c in candidates] == [
            CandidateKind.HTML_IMG_TAG,
            CandidateKind.MARKDOWN_IMAGE,
            CandidateKind.HTML_IMG_TAG,
        ]

    def test_drops_overlapping_candidates(self):
        """An <img> inside Markdown alt text is not matched separately."""
        text = '![<img src="https://example.com/a.png">](https://example.com/b.png)'
        candidates = find_candidates(text)

        assert len(candidates) == 1
        assert candidates[0].kind is CandidateKind.MARKDOWN_IMAGE
        assert candidates[0].image_url == "https://example.com/b.png"

    def test_no_images(self):
        """Plain text yields no candidates and no warnings."""
        warnings = []
        assert find_candidates("Just a description.\n\n- item", warnings) == []
        assert warnings == []

    def test_malformed_candidate_does_not_hide_others(self):
        """A bad escape skips that image only."""
        warnings = []
        text = "![bad](https://example.com/100%.png) ![good](https://example.com/ok.png)"
        candidates = find_candidates(text, warnings)

        assert [c.alt_text for c in candidates] == ["good"]
        assert len(warnings) == 1
        assert "offset 0" in warnings[0]


class TestFallbackTier:
    """Tests for the loose <img> fallback."""

    def test_matches_tag_in_code_fence(self):
        """Tags in fenced code are only found by the fallback."""
        text = '```\n<img src="https://example.com/image.jpg" alt="Code block">\n```'
        candidates = find_candidates(text)

        assert len(candidates) == 1
        assert candidates[0].kind is CandidateKind.FALLBACK_IMG_TAG
        assert candidates[0].image_url == "https://example.com/image.jpg"
        assert candidates[0].alt_text == "Code block"

    def test_matches_complex_attachment_url(self):
        """Extension-less URLs are recovered too."""
        text = f'~~~\n<img src="{ATTACHMENT_URL}" alt="Complex">\n~~~'
        candidates = find_candidates(text)

        assert candidates[0].image_url == ATTACHMENT_URL

    def test_not_used_when_primary_tiers_match(self):
        """Fenced tags are left alone when other images were found."""
        text = (
            "![a](https://example.com/a.png)\n"
            '```\n<img src="https://example.com/b.png">\n```'
        )
        candidates = find_candidates(text)

        assert len(candidates) == 1
        assert candidates[0].kind is CandidateKind.MARKDOWN_IMAGE

    def test_detects_existing_width(self):
        """The width rule applies to fallback matches as well."""
        text = '```\n<img width="80" src="https://example.com/a.png">\n```'
        assert find_candidates(text)[0].has_existing_width is True

    @pytest.mark.parametrize(
        "tag",
        [
            '<img src="https://cdn.example.com/shot.png?width=2000" alt="A">',
            "<img src=https://cdn.example.com/shot.png?fit=crop&width=2000 alt=A>",
            '<img src="https://example.com/a.png" alt="max width=5">',
        ],
    )
    def test_width_inside_values_is_not_width(self, tag):
        """Only an attribute named width counts, not width= inside a value."""
        text = f"```\n{tag}\n```"
        candidate = find_candidates(text)[0]

        assert candidate.kind is CandidateKind.FALLBACK_IMG_TAG
        assert candidate.has_existing_width is False

    def test_alt_inside_src_is_not_alt(self):
        """An alt= in the src query string is not the alt attribute."""
        text = '```\n<img src="https://example.com/a.png?alt=x" alt="Real">\n```'
        assert find_candidates(text)[0].alt_text == "Real"

    def test_unquoted_alt(self):
        """Unquoted alt values are accepted."""
        text = '```\n<img src="https://example.com/a.png" alt=logo>\n```'
        assert find_candidates(text)[0].alt_text == "logo"

    def test_malformed_alt_is_a_warning(self):
        """An unterminated alt value is reported and skipped."""
        warnings = []
        text = '```\n<img src="https://example.com/a.png" alt="broken>\n```'
        candidates = find_candidates(text, warnings)

        assert candidates == []
        assert len(warnings) == 1
        assert "alt" in warnings[0]


class TestFencedRanges:
    """Tests for code fence detection."""

    def test_backtick_fence(self):
        """Finds a closed backtick fence."""
        text = "before\n```\ncode\n```\nafter"
        assert _fenced_ranges(text) == [(7, 19)]

    def test_unclosed_fence_runs_to_end(self):
        """An unclosed fence covers the rest of the text."""
        text = "before\n~~~\ncode"
        assert _fenced_ranges(text) == [(7, len(text))]

    def test_backticks_mid_line_are_not_a_fence(self):
        """Fences must start a line."""
        assert _fenced_ranges('<img src="x" />```') == []


class TestDecodeUri:
    """Tests for decode_uri()."""

    def test_decodes_utf8(self):
        """Decodes multi-byte sequences."""
        assert decode_uri("https://example.com/caf%C3%A9.png") == (
            "https://example.com/café.png"
        )

    def test_keeps_reserved_escapes(self):
        """Escapes of reserved characters stay encoded."""
        url = "https://example.com/a%2Fb.png?q=x%26y"
        assert decode_uri(url) == url

    def test_mixed_run(self):
        """Reserved and unreserved escapes in one run are handled separately."""
        assert decode_uri("a%20%2F%41") == "a %2FA"

    def test_no_escapes(self):
        """Plain URLs are returned as-is."""
        assert decode_uri("https://example.com/a.png") == "https://example.com/a.png"

    def test_stray_percent_raises(self):
        """A % not followed by two hex digits is malformed."""
        with pytest.raises(MatchExtractionError):
            decode_uri("https://example.com/100%.png")

    def test_invalid_utf8_raises(self):
        """Truncated UTF-8 sequences are malformed."""
        with pytest.raises(MatchExtractionError):
            decode_uri("https://example.com/%E0%A4.png")
