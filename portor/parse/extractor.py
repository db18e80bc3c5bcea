"""Extract a normalized sole proprietorship record from a detail page."""
import logging
from typing import Any

from selectolax.parser import HTMLParser, Node

from portor.errors import MalformedDocumentError, RecordNotFoundError
from portor.parse.keys import normalize_key, normalize_value
from portor.parse.models import TenantDetail
from portor.parse.rules import (
    ACTIVITIES_KEY,
    BUSINESS_KEY,
    DETAIL_RULES,
    OWNER_KEY,
    ExtractionRule,
    GroupRule,
    ScalarRule,
    rules_by_title,
)

logger = logging.getLogger(__name__)

ERROR_MARKER_SELECTOR = "#errorContent"
SECTION_TITLE_SELECTOR = ".detaljiParagraphTitle"


def extract_label_value_pairs(container: Node) -> list[tuple[str, str]]:
    """
    Flatten the rows of a section into (label, raw value) pairs.
    Only rows with an even number of cells take part; cells are consumed two
    at a time. Pairs with an empty label or value are dropped.
    """
    cells: list[Node] = []
    for row in container.css("tr"):
        row_cells = list(row.iter())
        if len(row_cells) % 2 == 0:
            cells.extend(row_cells)

    pairs = []
    for i in range(0, len(cells), 2):
        label = cells[i].text().strip()
        value = cells[i + 1].text().strip()
        if label and value:
            pairs.append((label, value))
    return pairs


def _field_value(rule: ExtractionRule, key: str, raw_value: str) -> str:
    value = normalize_value(raw_value)
    transform = rule.transforms.get(key)
    if value and transform:
        return transform(value)
    return value


def build_scalar(rule: ScalarRule, pairs: list[tuple[str, str]], tree: HTMLParser) -> dict[str, str]:
    """Build one mapping; later duplicate keys overwrite earlier ones."""
    section: dict[str, str] = {}
    for label, raw_value in pairs:
        key = normalize_key(label)
        section[key] = _field_value(rule, key, raw_value)
    for computed in rule.computed:
        section[computed.key] = computed.resolve(tree)
    return section


def build_group(rule: GroupRule, pairs: list[tuple[str, str]]) -> list[dict[str, str]]:
    """Slice pairs into consecutive groups of ``rule.arity`` fields."""
    if len(pairs) % rule.arity:
        raise MalformedDocumentError(
            f"section {rule.title!r} has {len(pairs)} fields, not a multiple of {rule.arity}"
        )
    items = []
    for start in range(0, len(pairs), rule.arity):
        item = {}
        for label, raw_value in pairs[start:start + rule.arity]:
            key = normalize_key(label)
            item[key] = _field_value(rule, key, raw_value)
        items.append(item)
    return items


def extract_sections(
    tree: HTMLParser,
    rules: tuple[ExtractionRule, ...] = DETAIL_RULES,
) -> dict[str, Any]:
    """Apply the rule table to every titled section of the document."""
    indexed = rules_by_title(rules)
    sections: dict[str, Any] = {}

    for title_node in tree.css(SECTION_TITLE_SELECTOR):
        rule = indexed.get(normalize_key(title_node.text()))
        if rule is None or title_node.parent is None:
            continue

        pairs = extract_label_value_pairs(title_node.parent)
        if isinstance(rule, GroupRule):
            sections[rule.output_key] = build_group(rule, pairs)
        else:
            sections[rule.output_key] = build_scalar(rule, pairs, tree)

    for rule in rules:
        if rule.required and rule.output_key not in sections:
            raise MalformedDocumentError(f"required section {rule.title!r} not found")

    return sections


def extract_tenant(html_content: str) -> TenantDetail:
    """
    Parse a registry detail page into a TenantDetail.
    Raises RecordNotFoundError when the page carries the registry's error
    marker, MalformedDocumentError when the layout does not match the rules.
    """
    if not html_content:
        raise MalformedDocumentError("empty detail page")

    tree = HTMLParser(html_content)
    if tree.css_first(ERROR_MARKER_SELECTOR) is not None:
        raise RecordNotFoundError("sole proprietorship does not exist")

    sections = extract_sections(tree)
    logger.debug(f"Extracted sections: {sorted(sections)}")

    return TenantDetail(
        business=sections[BUSINESS_KEY],
        owner=sections.get(OWNER_KEY),
        activities=sections.get(ACTIVITIES_KEY),
    )
