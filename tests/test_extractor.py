"""Tests for detail page extraction."""
from pathlib import Path

import pytest
from selectolax.parser import HTMLParser

from portor.errors import MalformedDocumentError, RecordNotFoundError
from portor.parse.extractor import build_group, extract_label_value_pairs, extract_sections, extract_tenant
from portor.parse.rules import GroupRule, ScalarRule

DETAIL_HTML = (Path(__file__).parent / "fixtures" / "detail.html").read_text(encoding="utf-8")


def test_extract_tenant_business_fields():
    """Business section fields land at the top level with normalized keys."""
    tenant = extract_tenant(DETAIL_HTML)

    assert tenant.business["naziv_obrta"] == "Example Trade"
    assert tenant.business["mbo"] == "12345678"
    assert tenant.business["datum_pocetka_obavljanja"] == "01.02.2010"
    # Lone dash means empty
    assert tenant.business["email"] == ""
    # Empty values are dropped entirely
    assert "web_adresa" not in tenant.business


def test_extract_tenant_computed_fields():
    """Primary activity code and excerpt URL are derived from elsewhere in the page."""
    tenant = extract_tenant(DETAIL_HTML)

    assert tenant.business["pretezita_djelatnost"] == "47.11"
    assert tenant.business["url_izvatka"] == "https://pretrazivac-obrta.gov.hr/izvadak.htm?id=987"


def test_extract_tenant_activities():
    """Activities are sliced into groups of four with the code-only transform applied."""
    tenant = extract_tenant(DETAIL_HTML)

    assert tenant.activities == [
        {
            "djelatnost": "47.11",
            "datum_pocetka": "01.02.2010",
            "datum_prestanka": "",
            "nacin_obavljanja": "Stalno",
        },
        {
            "djelatnost": "56.10",
            "datum_pocetka": "01.01.2015",
            "datum_prestanka": "31.12.2019",
            "nacin_obavljanja": "Sezonski",
        },
    ]


def test_extract_tenant_owner_and_record_shape():
    """Owner and activities are attached under their own keys; other sections are ignored."""
    record = extract_tenant(DETAIL_HTML).as_record()

    assert record["vlasnik"] == {
        "ime_i_prezime": "Ivan Horvat",
        "oib": "12345678901",
        "adresa": "Ilica 1, Zagreb",
    }
    assert len(record["djelatnosti"]) == 2
    assert record["naziv_obrta"] == "Example Trade"
    assert "naziv_pogona" not in record
    assert "pogoni" not in record


def test_error_marker_wins_over_content():
    """A page with the error marker is a missing record even if sections are present."""
    html = DETAIL_HTML.replace('<div class="detalj">', '<div id="errorContent">Obrt ne postoji</div><div class="detalj">')
    with pytest.raises(RecordNotFoundError):
        extract_tenant(html)


def test_missing_business_section():
    """Without the business section the layout is considered changed."""
    html = """
    <div class="detalj"><div>
      <div class="detaljiParagraphTitle">Vlasnik</div>
      <table><tr><td>OIB:</td><td>12345678901</td></tr></table>
    </div></div>
    """
    with pytest.raises(MalformedDocumentError):
        extract_tenant(html)


def test_missing_excerpt_link():
    """A computed field without its source fails extraction."""
    html = DETAIL_HTML.replace('href="izvadak.htm?id=987"', 'href="#"')
    with pytest.raises(MalformedDocumentError):
        extract_tenant(html)


def test_empty_document():
    """Empty input is malformed."""
    with pytest.raises(MalformedDocumentError):
        extract_tenant("")


def test_title_match_ignores_case_and_diacritics():
    """Titles differing only by case or diacritics select the same rule."""
    html = DETAIL_HTML.replace("Djelatnosti sjedišta", "DJELATNOSTI SJEDISTA").replace(
        "Obrt - sjedište", "OBRT - SJEDIŠTE"
    )
    tenant = extract_tenant(html)

    assert tenant.business["naziv_obrta"] == "Example Trade"
    assert len(tenant.activities) == 2


def test_odd_rows_are_skipped():
    """Rows with an odd number of cells do not shift label/value pairing."""
    tree = HTMLParser("""
    <table>
      <tr><td>Naziv:</td><td>A</td></tr>
      <tr><td colspan="2">Napomena</td></tr>
      <tr><td>Adresa:</td><td>B</td><td>Grad:</td><td>C</td></tr>
    </table>
    """)
    pairs = extract_label_value_pairs(tree.body)

    assert pairs == [("Naziv:", "A"), ("Adresa:", "B"), ("Grad:", "C")]


def test_duplicate_keys_overwrite():
    """Later duplicate labels win in a scalar section."""
    html = """
    <div class="detalj"><div>
      <div class="detaljiParagraphTitle">Vlasnik</div>
      <table>
        <tr><td>Adresa:</td><td>Stara 1</td></tr>
        <tr><td>Adresa:</td><td>Nova 2</td></tr>
      </table>
    </div></div>
    """
    sections = extract_sections(HTMLParser(html), rules=(ScalarRule(title="vlasnik", output_key="vlasnik"),))

    assert sections == {"vlasnik": {"adresa": "Nova 2"}}


def test_group_of_twelve_pairs():
    """Twelve pairs at arity four give three items of four keys each."""
    rule = GroupRule(title="djelatnosti", output_key="djelatnosti", arity=4)
    pairs = [(f"Polje {n % 4}:", f"v{n}") for n in range(12)]
    items = build_group(rule, pairs)

    assert len(items) == 3
    assert all(len(item) == 4 for item in items)
    assert items[2]["polje_3"] == "v11"


def test_group_with_incomplete_item():
    """A pair count that is not a multiple of the arity fails extraction."""
    rule = GroupRule(title="djelatnosti", output_key="djelatnosti", arity=4)
    pairs = [(f"Polje {n}:", "x") for n in range(6)]
    with pytest.raises(MalformedDocumentError):
        build_group(rule, pairs)
