"""Label and value normalization for registry detail pages."""
import re

_STRIPPED_PUNCTUATION = re.compile(r"[/\-:.]")
_WHITESPACE = re.compile(r"\s+")

# Croatian letters with diacritics, applied after lower-casing
_TRANSLITERATIONS = (
    ("č", "c"),
    ("ć", "c"),
    ("š", "s"),
    ("đ", "dj"),
    ("ž", "z"),
)


def normalize_key(label: str) -> str:
    """
    Turn a field label or section title into a record key.

    "Datum početka obavljanja:" -> "datum_pocetka_obavljanja"
    "Obrt - sjedište" -> "obrt_sjediste"
    """
    key = label.lower().strip()
    key = _STRIPPED_PUNCTUATION.sub("", key)
    key = _WHITESPACE.sub("_", key)
    for letter, replacement in _TRANSLITERATIONS:
        key = key.replace(letter, replacement)
    return key


def normalize_value(value: str) -> str:
    """Trim a cell value; the registry renders empty fields as a lone dash."""
    value = value.strip()
    return "" if value == "-" else value


def text_before_separator(value: str, separator: str = " - ") -> str:
    """Keep the leading code of "47.11 - Trgovina na malo ..." style values."""
    index = value.find(separator)
    if index == -1:
        return value.strip()
    return value[:index].strip()
