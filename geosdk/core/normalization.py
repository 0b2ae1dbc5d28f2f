"""Text normalization shared by postcode, house-number and address search."""
import re
import unicodedata
from typing import List, Optional

# Arabic-Indic (U+0660..U+0669) and Persian/Extended Arabic-Indic (U+06F0..U+06F9) digits
_DIGIT_TRANSLATION = {
    **{0x0660 + i: str(i) for i in range(10)},
    **{0x06F0 + i: str(i) for i in range(10)},
}

_ARABIC_BLOCK_RE = re.compile(r"[\u0600-\u06FF]")

# Straight, curly and Arabic-keyboard quote characters
_QUOTES_RE = re.compile(r"[\"'`‘’“”«»]")

# Whitespace, ASCII comma and Arabic comma
_TOKEN_SPLIT_RE = re.compile(r"[\s,،]+")

MIN_TOKEN_LENGTH = 2
MAX_SEARCH_TERMS = 5

# Decorations on region labels that users usually leave out
REGION_PREFIXES = ("منطقة ",)
REGION_SUFFIXES = (" region", " province")


def to_western_digits(text: str) -> str:
    """
    Convert Arabic-Indic and Persian digits to ASCII digits.

    Example: "١٣٨٤٧" and "۱۳۸۴۷" both become "13847".
    """
    if not text:
        return ""
    return text.translate(_DIGIT_TRANSLATION)


def normalize_code(raw: Optional[str]) -> str:
    """Normalize a postcode or house number for exact comparison."""
    if raw is None:
        return ""
    return to_western_digits(str(raw)).strip()


def is_arabic(text: str) -> bool:
    """True if any character falls in the Arabic Unicode block."""
    return bool(_ARABIC_BLOCK_RE.search(text or ""))


def clean_query(text: str) -> str:
    """
    Prepare free text for address search: digits to ASCII, quotes removed,
    whitespace collapsed.

    Args:
        text: Raw query text

    Returns:
        Cleaned query text (may be empty)
    """
    if not text:
        return ""
    text = unicodedata.normalize("NFC", text)
    text = to_western_digits(text)
    text = _QUOTES_RE.sub("", text)
    return re.sub(r"\s+", " ", text).strip()


def tokenize(text: str) -> List[str]:
    """Split on whitespace and (Arabic) commas, dropping empty pieces."""
    return [token for token in _TOKEN_SPLIT_RE.split(text or "") if token]


def search_terms(text: str) -> List[str]:
    """
    Tokens used for the substring relevance gate.

    Tokens shorter than two characters are discarded and at most five are kept.
    """
    return [t for t in tokenize(text) if len(t) >= MIN_TOKEN_LENGTH][:MAX_SEARCH_TERMS]


def fold_case(text: str) -> str:
    """Case-fold for comparison; a no-op for Arabic script."""
    return (text or "").upper()


def strip_region_decorations(label: str) -> str:
    """
    Reduce a region label to its distinctive part for matching against free text.

    "منطقة الرياض" -> "الرياض", "Riyadh Region" -> "riyadh"
    """
    label = (label or "").strip()
    for prefix in REGION_PREFIXES:
        if label.startswith(prefix):
            label = label[len(prefix):]
    lowered = label.lower()
    for suffix in REGION_SUFFIXES:
        if lowered.endswith(suffix):
            lowered = lowered[: -len(suffix)]
    return lowered.strip()
