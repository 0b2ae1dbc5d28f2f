"""Tests for text normalization."""
from geosdk.core.normalization import (
    clean_query,
    fold_case,
    is_arabic,
    normalize_code,
    search_terms,
    strip_region_decorations,
    to_western_digits,
    tokenize,
)


def test_to_western_digits():
    """Arabic-Indic and Persian digits become ASCII."""
    assert to_western_digits("١٣٨٤٧") == "13847"
    assert to_western_digits("۱۳۸۴۷") == "13847"
    assert to_western_digits("13847") == "13847"
    assert to_western_digits("شارع ٥") == "شارع 5"
    assert to_western_digits("") == ""


def test_normalize_code():
    assert normalize_code("  ١٢٣٤ ") == "1234"
    assert normalize_code(None) == ""
    assert normalize_code(12211) == "12211"


def test_is_arabic():
    assert is_arabic("طريق الملك فهد")
    assert is_arabic("1234 طريق")
    assert not is_arabic("King Fahd Road")
    assert not is_arabic("")


def test_clean_query():
    """Quotes removed, digits normalized, whitespace collapsed."""
    assert clean_query('  "King   Fahd"  Road ') == "King Fahd Road"
    assert clean_query("«طريق» الملك   فهد ١٢") == "طريق الملك فهد 12"
    assert clean_query("O'Hara") == "OHara"
    assert clean_query("") == ""
    assert clean_query("   ") == ""


def test_tokenize_splits_on_commas():
    assert tokenize("طريق الملك فهد، حي العليا") == ["طريق", "الملك", "فهد", "حي", "العليا"]
    assert tokenize("King Fahd Road,Riyadh") == ["King", "Fahd", "Road", "Riyadh"]
    assert tokenize("") == []


def test_search_terms_drop_short_and_cap():
    """Single-character tokens are dropped and at most five terms kept."""
    assert search_terms("a bb c dd") == ["bb", "dd"]
    assert search_terms("one two three four five six seven") == ["one", "two", "three", "four", "five"]
    assert search_terms("a b") == []


def test_fold_case():
    assert fold_case("King Fahd") == "KING FAHD"
    assert fold_case("طريق") == "طريق"


def test_strip_region_decorations():
    assert strip_region_decorations("منطقة الرياض") == "الرياض"
    assert strip_region_decorations("Riyadh Region") == "riyadh"
    assert strip_region_decorations("Eastern Province") == "eastern"
    assert strip_region_decorations("المنطقة الشرقية") == "المنطقة الشرقية"
