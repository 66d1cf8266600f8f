"""Tests for newsletter HTML cleaning and text helpers."""

import pytest

from newsreader.core.content import (
    CleaningRule,
    ContentCleaner,
    clean_newsletter_content,
    extract_preview_text,
    generate_preview_text,
    html_to_text,
    process_html,
    sanitize_html,
    truncate_text,
    word_count,
)


def rule_ids(result):
    return [item.rule_id for item in result.removed_items]


class TestCleanNewsletterContent:
    def test_empty(self):
        result = clean_newsletter_content("")
        assert result.cleaned_content == ""
        assert result.removed_items == []

    def test_style_and_script_blocks(self):
        html = "<style>p { color: red; }</style><p>Hi</p><script>track()</script>"
        result = clean_newsletter_content(html)
        assert result.cleaned_content == "<p>Hi</p>"
        assert "remove-style-blocks" in rule_ids(result)
        assert "remove-script-blocks" in rule_ids(result)

    def test_leading_css(self):
        result = clean_newsletter_content("body { color: red; }\n<p>Hi</p>")
        assert result.cleaned_content == "<p>Hi</p>"

    def test_leading_plain_text_is_kept(self):
        result = clean_newsletter_content("Hello there <p>Hi</p>")
        assert result.cleaned_content == "Hello there <p>Hi</p>"

    def test_tracking_pixels(self):
        html = '<p>Text</p><img src="t.gif" width="1" height="1"><img src="a.png" width="600">'
        result = clean_newsletter_content(html)
        assert result.cleaned_content == '<p>Text</p><img src="a.png" width="600">'
        assert rule_ids(result) == ["remove-tracking-pixels"]

    def test_ms_conditional_comments(self):
        html = "<!--[if mso]><table><tr><td>Outlook</td></tr></table><![endif]--><p>Body</p>"
        assert clean_newsletter_content(html).cleaned_content == "<p>Body</p>"

    def test_ad_and_footer_containers(self):
        html = (
            '<div class="sponsor-box">Buy now</div>'
            "<p>Keep</p>"
            '<div id="footer">Unsubscribe here</div>'
        )
        assert clean_newsletter_content(html).cleaned_content == "<p>Keep</p>"

    def test_inline_styles(self):
        html = '<p style="color: red">Hi</p>'
        assert clean_newsletter_content(html).cleaned_content == "<p>Hi</p>"

    def test_nested_empty_elements(self):
        result = clean_newsletter_content("<div><p> </p></div><p>x</p>")
        assert result.cleaned_content == "<p>x</p>"
        removed = {item.rule_id: item.matches for item in result.removed_items}
        assert removed["remove-empty-elements"] == 2

    def test_substack_app_links(self):
        html = '<a href="https://substack.com/app-link/post?id=1">Open app</a><p>Story</p>'
        assert clean_newsletter_content(html).cleaned_content == "<p>Story</p>"

    def test_invalid_markup_does_not_raise(self):
        result = clean_newsletter_content("<div><p>unclosed <b>tags")
        assert "unclosed" in result.cleaned_content

    def test_custom_rules(self):
        cleaner = ContentCleaner(
            [
                CleaningRule("drop-hr", "Remove rules", r"<hr\s*/?>"),
                CleaningRule("off", "Disabled", r"<p>", enabled=False),
            ]
        )
        result = cleaner.clean("<p>a</p><hr/><p>b</p>")
        assert result.cleaned_content == "<p>a</p><p>b</p>"
        assert rule_ids(result) == ["drop-hr"]


def test_process_html():
    html = '<p></p><style>x{}</style><p>Keep</p></div><div class="gmail_quote">Quoted'
    assert process_html(html) == '<p>Keep</p>\nQuoted'
    assert process_html(None) == ""


def test_html_to_text():
    html = "<p>Hello <b>world</b></p><script>x()</script>\n\n<style>p{}</style>"
    assert html_to_text(html) == "Hello world"
    assert html_to_text("") == ""


def test_word_count():
    assert word_count("<p>one two three</p>") == 3
    assert word_count(None) == 0


@pytest.mark.parametrize(
    "text,max_length,expected",
    [
        ("abcdefghij", 5, "abcde..."),
        ("short", 20, "short"),
        ("", 5, ""),
    ],
)
def test_truncate_text(text, max_length, expected):
    assert truncate_text(text, max_length) == expected


def test_generate_preview_text():
    assert generate_preview_text("<p>Short body</p>") == "Short body"
    long_html = "<p>" + "a" * 300 + "</p>"
    assert generate_preview_text(long_html, 200) == "a" * 200 + "..."


def test_extract_preview_text():
    html = '<div class="preview">This is the hidden preheader</div><p>Body</p>'
    cleaned, preview = extract_preview_text(html)
    assert cleaned == "<p>Body</p>"
    assert preview == "This is the hidden preheader"


def test_extract_preview_text_ignores_short_snippets():
    html = '<div style="display:none">&nbsp;hi</div><p>Body</p>'
    cleaned, preview = extract_preview_text(html)
    assert cleaned == "<p>Body</p>"
    assert preview is None


class TestSanitizeHtml:
    def test_empty(self):
        assert sanitize_html(None) == ""
        assert sanitize_html("") == ""

    def test_event_handlers_removed(self):
        cleaned = sanitize_html('<img src="https://x.test/a.png" onerror="alert(1)"><p onclick="x()">Hi</p>')
        assert "onerror" not in cleaned
        assert "onclick" not in cleaned
        assert 'src="https://x.test/a.png"' in cleaned
        assert "<p>Hi</p>" in cleaned

    def test_javascript_links_removed(self):
        cleaned = sanitize_html('<a href="javascript:alert(1)">go</a> <a href="https://x.test">ok</a>')
        assert "javascript:" not in cleaned
        assert '<a href="https://x.test">ok</a>' in cleaned

    def test_script_bodies_dropped(self):
        cleaned = sanitize_html("<p>Before</p><script>steal(document.cookie)</script><p>After</p>")
        assert "steal" not in cleaned
        assert "<script" not in cleaned
        assert cleaned == "<p>Before</p><p>After</p>"

    def test_unknown_tags_keep_their_text(self):
        assert sanitize_html("<section>Intro</section><p>Body</p>") == "Intro<p>Body</p>"
