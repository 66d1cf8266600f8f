"""Newsletter HTML cleaning and text extraction utilities."""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple, Union

import bleach
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

Replacement = Union[str, Callable[[re.Match], str]]


@dataclass
class CleaningRule:
    """A single regex rewrite applied to newsletter HTML."""

    id: str
    description: str
    pattern: str
    replacement: Replacement = ""
    flags: int = re.IGNORECASE
    enabled: bool = True

    def __post_init__(self) -> None:
        self.regex = re.compile(self.pattern, self.flags)


@dataclass
class RemovedItem:
    rule_id: str
    description: str
    matches: int


@dataclass
class CleaningResult:
    cleaned_content: str
    removed_items: List[RemovedItem] = field(default_factory=list)


class ContentCleaner:
    """Strips tracking, advertising and email-client noise from newsletters."""

    # Order matters: pixels are matched on inline styles before styles are removed
    CLEANING_RULES = [
        CleaningRule(
            "remove-leading-css",
            "Remove any raw CSS before the first HTML tag",
            r"^[^<{}]*\{[^<]*\}[^<]*?(?=<[a-z])",
        ),
        CleaningRule(
            "remove-style-blocks",
            "Remove all style blocks",
            r"<style[^>]*>[\s\S]*?</style>",
        ),
        CleaningRule(
            "remove-xml-namespaces",
            "Remove XML namespaces and processing instructions",
            r"<\?xml[^>]*\?>|<!\[if[^\]]*\]>|<!\[endif\]>",
        ),
        CleaningRule(
            "remove-ms-conditional-comments",
            "Remove Microsoft conditional comments",
            r"<!--\s*\[if[^>]*>.*?<!\[endif\]-->",
            flags=re.IGNORECASE | re.DOTALL,
        ),
        CleaningRule(
            "remove-script-blocks",
            "Remove scripts along with their bodies",
            r"<script\b[^>]*>[\s\S]*?</script>",
        ),
        CleaningRule(
            "remove-email-client-elements",
            "Remove email client specific elements",
            r"</?(?:o:p|o:office|meta|link|iframe|noscript|object|embed|applet|frame|frameset|\w+:\w+)\b[^>]*>",
        ),
        CleaningRule(
            "remove-substack-app-links",
            "Remove Substack app links and social media icons",
            r"<a[^>]*\b(?:href=[\"']https?://substack\.com/app-link/[^\"']*[\"']|class=[\"'][^\"']*\b(?:app-link|share-icon|like-button|comment-button|share-button)\b[^\"']*[\"'])[^>]*>.*?</a>",
            flags=re.IGNORECASE | re.DOTALL,
        ),
        CleaningRule(
            "remove-read-in-app",
            "Remove READ IN APP buttons",
            r"<a[^>]*\bclass=[\"'][^\"']*\bread-in-app\b[^>]*>.*?</a>",
            flags=re.IGNORECASE | re.DOTALL,
        ),
        CleaningRule(
            "remove-tracking-pixels",
            "Remove tracking pixels and beacons",
            r"<img[^>]*(?:width=[\"']?1[\"']?(?=[\s/>])|height=[\"']?1[\"']?(?=[\s/>])|style=[\"'][^\"']*display\s*:\s*none[^\"']*[\"'])[^>]*>",
        ),
        CleaningRule(
            "remove-ad-containers",
            "Remove common ad containers",
            r"<div[^>]*(?:class|id)=[\"'][^\"']*\b(?:ad|ads|advertisement|banner|sponsor|promo)\b[^\"']*[\"'][^>]*>.*?</div>",
            flags=re.IGNORECASE | re.DOTALL,
        ),
        CleaningRule(
            "remove-footer-promos",
            "Remove newsletter footers and social media promos",
            r"<div[^>]*(?:class|id)=[\"'][^\"']*\b(?:footer|unsubscribe|social|follow|connect|share)\b[^\"']*[\"'][^>]*>.*?</div>",
            flags=re.IGNORECASE | re.DOTALL,
        ),
        CleaningRule(
            "remove-inline-styles",
            "Remove inline styles",
            r"\s+style=[\"'][^\"']*[\"']",
        ),
        CleaningRule(
            "remove-empty-elements",
            "Remove empty elements",
            r"<(p|div|span|td|th|tr|table|a|strong|em|b|i|u|li|ul|ol|h[1-6])\b[^>]*>\s*</\1>",
        ),
        CleaningRule(
            "collapse-blank-lines",
            "Collapse runs of blank lines",
            r"\n\s*\n\s*\n+",
            replacement="\n\n",
        ),
    ]

    def __init__(self, rules: Optional[List[CleaningRule]] = None):
        self.rules = [rule for rule in (rules or self.CLEANING_RULES) if rule.enabled]

    def clean(self, html: str) -> CleaningResult:
        """Apply every enabled rule in order.

        Args:
            html: Raw newsletter HTML

        Returns:
            CleaningResult with the cleaned markup and the rules that fired
        """
        if not html:
            return CleaningResult(cleaned_content="")

        content = html
        removed: List[RemovedItem] = []
        for rule in self.rules:
            total = 0
            # Nested empty elements only disappear after repeated passes
            for _ in range(5 if rule.id == "remove-empty-elements" else 1):
                content, count = rule.regex.subn(rule.replacement, content)
                total += count
                if not count:
                    break
            if total:
                removed.append(RemovedItem(rule.id, rule.description, total))

        cleaned = content.strip()
        logger.debug(
            f"Cleaned newsletter content: {len(html)} -> {len(cleaned)} chars, "
            f"{len(removed)} rules applied"
        )
        return CleaningResult(cleaned_content=cleaned, removed_items=removed)


_default_cleaner = ContentCleaner()


def clean_newsletter_content(html: str) -> CleaningResult:
    return _default_cleaner.clean(html)


_EMPTY_TAG = re.compile(r"<(\w+)[^>]*>\s*</\1>")
_STYLE_BLOCK = re.compile(r"<style[^>]*>[\s\S]*?</style>", re.IGNORECASE)
_SCRIPT_BLOCK = re.compile(r"<script\b[^>]*>[\s\S]*?</script>", re.IGNORECASE)
_GMAIL_QUOTE = re.compile(r'</div><div class="gmail_quote">')


def process_html(html: Optional[str]) -> str:
    """Light cleanup applied before serving stored HTML to the reader."""
    if not html:
        return ""
    html = _EMPTY_TAG.sub("", html)
    html = _STYLE_BLOCK.sub("", html)
    html = _SCRIPT_BLOCK.sub("", html)
    html = _GMAIL_QUOTE.sub("\n", html)
    return html.strip()


def html_to_text(html: Optional[str]) -> str:
    """Convert newsletter HTML to whitespace-collapsed plain text."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "head", "title"]):
        tag.decompose()
    text = soup.get_text(" ")
    return re.sub(r"\s+", " ", text).strip()


def word_count(html: Optional[str]) -> int:
    text = html_to_text(html)
    return len(text.split()) if text else 0


def truncate_text(text: str, max_length: int = 20) -> str:
    if not text or len(text) <= max_length:
        return text
    return f"{text[:max_length].strip()}..."


def generate_preview_text(html: Optional[str], max_length: int = 200) -> str:
    """First ``max_length`` characters of the text, with ``...`` if cut."""
    text = html_to_text(html)
    if len(text) <= max_length:
        return text
    return text[:max_length].strip() + "..."


_PREVIEW_DIV = re.compile(
    r"<div[^>]*(?:class\s*=\s*[\"'][^\"']*preview[^\"']*[\"']|style\s*=\s*[\"'][^\"']*display\s*:\s*none[^\"']*[\"'])[^>]*>([\s\S]*?)</div>",
    re.IGNORECASE,
)


def extract_preview_text(html: Optional[str]) -> Tuple[str, Optional[str]]:
    """Remove hidden preheader divs and return the first meaningful one.

    Returns:
        Tuple of (html without preview divs, preview text or None)
    """
    if not html:
        return html or "", None

    preview_text = None
    for match in _PREVIEW_DIV.finditer(html):
        text = re.sub(r"&[^;\s]+;", " ", match.group(1))
        text = re.sub(r"<[^>]+>", " ", text)
        text = re.sub(r"\s+", " ", text).strip()
        if preview_text is None and len(text) > 10:
            preview_text = text

    return _PREVIEW_DIV.sub("", html), preview_text


SAFE_TAGS = frozenset(
    [
        "p", "br", "hr", "strong", "em", "b", "i", "u", "s", "sub", "sup",
        "h1", "h2", "h3", "h4", "h5", "h6", "blockquote", "pre", "code",
        "ul", "ol", "li", "dl", "dt", "dd", "a", "img", "figure", "figcaption",
        "table", "thead", "tbody", "tfoot", "tr", "td", "th", "caption",
        "div", "span", "center", "font",
    ]
)

SAFE_ATTRIBUTES = {
    "*": ["class", "title", "dir", "lang"],
    "a": ["href", "title", "rel", "target"],
    "img": ["src", "alt", "width", "height", "border", "align", "title"],
    "table": ["border", "cellpadding", "cellspacing", "width", "align", "bgcolor"],
    "td": ["colspan", "rowspan", "width", "height", "align", "valign", "bgcolor"],
    "th": ["colspan", "rowspan", "width", "height", "align", "valign", "bgcolor"],
    "tr": ["align", "valign", "bgcolor"],
    "div": ["align"],
    "p": ["align"],
    "font": ["color", "face", "size"],
}

_html_sanitizer = bleach.Cleaner(
    tags=SAFE_TAGS,
    attributes=SAFE_ATTRIBUTES,
    protocols=frozenset(["http", "https", "mailto"]),
    strip=True,
    strip_comments=True,
)


def sanitize_html(html: Optional[str]) -> str:
    """Allowlist-sanitize stored HTML before it is rendered in the reader.

    Event-handler attributes, scripts and non-http(s)/mailto URLs are dropped.
    """
    if not html:
        return ""
    # strip=True keeps the text of dropped tags, so remove script and style bodies first
    html = _SCRIPT_BLOCK.sub("", _STYLE_BLOCK.sub("", html))
    return _html_sanitizer.clean(html)
