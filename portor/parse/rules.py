"""Declarative section rules for the registry detail page."""
from dataclasses import dataclass, field
from typing import Callable, Union

from selectolax.parser import HTMLParser

from portor.errors import MalformedDocumentError
from portor.fetch.endpoints import BASE_URL
from portor.parse.keys import normalize_key, text_before_separator

ValueTransform = Callable[[str], str]


@dataclass(frozen=True)
class CellPrefixField:
    """Computed field read from the first non-label detail cell containing ``marker``."""

    key: str
    marker: str
    cell_selector: str = ".detalj td"
    separator: str = " - "

    def resolve(self, tree: HTMLParser) -> str:
        for cell in tree.css(self.cell_selector):
            if "label" in (cell.attributes.get("class") or "").split():
                continue
            text = cell.text()
            if self.marker in text:
                return text_before_separator(text, self.separator)
        raise MalformedDocumentError(f"no cell containing {self.marker!r} for {self.key}")


@dataclass(frozen=True)
class LinkTargetField:
    """Computed field built from a fixed origin and a relative anchor target."""

    key: str
    selector: str
    origin: str = BASE_URL

    def resolve(self, tree: HTMLParser) -> str:
        node = tree.css_first(self.selector)
        href = node.attributes.get("href") if node is not None else None
        if not href:
            raise MalformedDocumentError(f"no link matching {self.selector!r} for {self.key}")
        return f"{self.origin}/{href}"


ComputedField = Union[CellPrefixField, LinkTargetField]


@dataclass(frozen=True)
class ScalarRule:
    """Section rendered as one label/value mapping."""

    title: str
    output_key: str
    transforms: dict[str, ValueTransform] = field(default_factory=dict)
    computed: tuple[ComputedField, ...] = ()
    required: bool = False


@dataclass(frozen=True)
class GroupRule:
    """Section rendered as a repeating group of ``arity`` fields per item."""

    title: str
    output_key: str
    arity: int
    transforms: dict[str, ValueTransform] = field(default_factory=dict)
    required: bool = False


ExtractionRule = Union[ScalarRule, GroupRule]

BUSINESS_KEY = "obrt"
OWNER_KEY = "vlasnik"
ACTIVITIES_KEY = "djelatnosti"

DETAIL_RULES: tuple[ExtractionRule, ...] = (
    ScalarRule(
        title="obrt - sjedište",
        output_key=BUSINESS_KEY,
        computed=(
            CellPrefixField(key="pretezita_djelatnost", marker="pretežita"),
            LinkTargetField(key="url_izvatka", selector='a[href^="izvadak.htm"]'),
        ),
        required=True,
    ),
    GroupRule(
        title="djelatnosti sjedišta",
        output_key=ACTIVITIES_KEY,
        arity=4,
        transforms={"djelatnost": text_before_separator},
    ),
    ScalarRule(title="vlasnik", output_key=OWNER_KEY),
)


def rules_by_title(rules: tuple[ExtractionRule, ...] = DETAIL_RULES) -> dict[str, ExtractionRule]:
    """Index rules by normalized title so case and diacritics do not matter."""
    return {normalize_key(rule.title): rule for rule in rules}
