from __future__ import annotations

from note_overlay.rendering import render_note_html


def test_markup_is_escaped() -> None:
    rendered = render_note_html("<script>alert(1)</script>")
    assert "<script>" not in rendered
    assert "&lt;script&gt;alert(1)&lt;/script&gt;" == rendered


def test_no_raw_angle_brackets_outside_generated_anchors() -> None:
    samples = [
        '<img src=x onerror="alert(1)">',
        "a < b > c",
        "<a href='javascript:alert(1)'>click</a>",
        "</div><div style='position:fixed'>",
    ]
    for text in samples:
        rendered = render_note_html(text)
        assert "<" not in rendered and ">" not in rendered, rendered


def test_bare_url_becomes_anchor_and_newlines_become_breaks() -> None:
    rendered = render_note_html("docs: https://example.com/a?b=1 <ok>\nnext line")
    assert rendered == (
        'docs: <a href="https://example.com/a?b=1" target="_blank" rel="noopener noreferrer">'
        "https://example.com/a?b=1</a> &lt;ok&gt;<br>next line"
    )


def test_url_with_ampersand_stays_escaped_inside_anchor() -> None:
    rendered = render_note_html("ftp://host/x?a=1&b=2")
    assert 'href="ftp://host/x?a=1&amp;b=2"' in rendered
    assert ">ftp://host/x?a=1&amp;b=2</a>" in rendered


def test_quote_cannot_break_out_of_href() -> None:
    rendered = render_note_html('http://evil.test/"onmouseover="alert(1)')
    assert '"onmouseover' not in rendered
    assert rendered.count('"') == 6  # href, target and rel attribute quotes only


def test_trailing_punctuation_is_not_linked() -> None:
    rendered = render_note_html("see http://example.com.")
    assert ">http://example.com</a>." in rendered


def test_text_without_urls_is_plain() -> None:
    assert render_note_html("just words\r\nmore") == "just words<br>more"
    assert render_note_html("") == ""
