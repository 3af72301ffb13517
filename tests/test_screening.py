import pytest

from screening import (
    ScreeningConsolidator,
    normalize_name,
    consolidate_screening_list,
    target_company_name,
    linked_entity_options,
    filter_by_linked_entity,
    screening_rows_for_csv,
)


@pytest.mark.parametrize("raw, key", [
    ("UNITED KENNING RENTAL GROUP LIMITED", "UNITED KENNING RENTAL GROUP LTD"),
    ("United Kenning Rental Group Ltd.", "UNITED KENNING RENTAL GROUP LTD"),
    ("Acme Plc.", "ACME PLC"),
    ("Smith & Sons LLP", "SMITH SONS LLP"),
    ("The Widget Company Limited", "THE WIDGET CO LTD"),
    ("Khan, Haroon", "HAROON KHAN"),
    ("KHAN HAROON", "HAROON KHAN"),
    ("Mr John Smith", "JOHN SMITH"),
    ("SMITH, John", "JOHN SMITH"),
    ("Dr. Jane   Doe", "DOE JANE"),
    ("", ""),
    (None, ""),
])
def test_normalize_name(raw, key):
    assert normalize_name(raw) == key


def test_company_suffix_variants_share_a_key():
    assert normalize_name("A LTD") == normalize_name("A Ltd") == normalize_name("A Limited")


def test_identical_records_are_idempotent():
    once = ScreeningConsolidator()
    once.add("Jane Doe", role="Director", linked_entity="Target Ltd")

    twice = ScreeningConsolidator()
    twice.add("Jane Doe", role="Director", linked_entity="Target Ltd")
    twice.add("Jane Doe", role="Director", linked_entity="Target Ltd")

    assert len(twice) == len(once) == 1
    entry = twice.entries()[0]
    assert entry.roles == ["Director"]
    assert entry.linked_entities == ["Target Ltd"]


def test_company_roles_accumulate_in_order():
    c = ScreeningConsolidator()
    c.add("A LTD", role="Parent", is_company=True)
    c.add("A Ltd", role="Ultimate Parent", is_company=True)

    entries = c.entries()
    assert len(entries) == 1
    assert entries[0].name == "A LTD"
    assert entries[0].roles == ["Parent", "Ultimate Parent"]


def test_formal_name_replaces_display_name():
    c = ScreeningConsolidator()
    c.add("John Smith", role="UBO")
    c.add("SMITH, John", role="Director")

    assert c.entries()[0].name == "SMITH, John"


def test_name_with_details_replaces_bare_name():
    c = ScreeningConsolidator()
    c.add("Mr John Smith", role="UBO")
    c.add("John Smith", role="Director", nationality="British")

    entry = c.entries()[0]
    assert entry.name == "John Smith"
    assert entry.nationality == "British"


def test_details_are_first_writer_wins():
    c = ScreeningConsolidator()
    c.add("Jane Doe", nationality="British", dob="1980-05")
    c.add("Doe, Jane", nationality="French", dob="1990-01")

    entry = c.entries()[0]
    assert entry.nationality == "British"
    assert entry.dob == "1980-05"
    # formality preference still applies
    assert entry.name == "Doe, Jane"


def test_company_flag_and_number_merge():
    c = ScreeningConsolidator()
    c.add("Beta Holdings Ltd", role="Shareholder")
    c.add("BETA HOLDINGS LIMITED", is_company=True, company_number="01234567")
    c.add("Beta Holdings Ltd", company_number="99999999")

    entry = c.entries()[0]
    assert entry.is_company is True
    assert entry.company_number == "01234567"


def test_blank_names_are_ignored():
    c = ScreeningConsolidator()
    assert c.add("   ", role="Director") is None
    assert c.add(None) is None
    assert len(c) == 0


def test_entries_sorted_companies_first_then_alphabetical():
    c = ScreeningConsolidator()
    c.add("zeta person")
    c.add("Zulu Ltd", is_company=True)
    c.add("Émile Durand")
    c.add("alpha Ltd", is_company=True)
    c.add("Brian Adams")

    assert [e.name for e in c.entries()] == [
        "alpha Ltd",
        "Zulu Ltd",
        "Brian Adams",
        "Émile Durand",
        "zeta person",
    ]


def test_consolidate_screening_list(sample_item):
    entries = consolidate_screening_list(sample_item["screening_list"], "X Ltd")
    by_name = {e.name: e for e in entries}

    # Individuals from the ownership chain are skipped
    assert "Bob" not in by_name
    assert [e.name for e in entries] == ["X Ltd", "Y LIMITED", "Smith, John"]

    parent = by_name["Y LIMITED"]
    assert parent.is_company
    assert parent.roles == ["Parent"]
    assert parent.company_number == "00000002"
    assert parent.linked_entities == ["X Ltd"]

    john = by_name["Smith, John"]
    assert john.roles == ["Director", "UBO"]
    assert john.nationality == "British"
    assert john.dob == "1970-01"
    assert not john.is_company

    target = by_name["X Ltd"]
    assert target.roles == ["Target"]
    assert target.linked_entities == ["N/A"]


def test_consolidate_tolerates_missing_and_malformed_sources():
    assert consolidate_screening_list(None, "T") == []
    entries = consolidate_screening_list({"ubos": "nope", "trusts": [None, {"name": "Family Trust", "role": "Trust"}]}, "T")
    assert [e.name for e in entries] == ["Family Trust"]


def test_target_company_name():
    assert target_company_name({"input_name": "Input Ltd", "profile": {"company_name": "Profile Ltd"}}) == "Input Ltd"
    assert target_company_name({"input_name": "  ", "profile": {"company_name": "Profile Ltd"}}) == "Profile Ltd"
    assert target_company_name({}) == "Target Company"


def test_linked_entity_filter(sample_item):
    entries = consolidate_screening_list(sample_item["screening_list"], "X Ltd")

    assert linked_entity_options(entries) == ["N/A", "X Ltd"]
    assert [e.name for e in filter_by_linked_entity(entries, "N/A")] == ["X Ltd"]
    assert len(filter_by_linked_entity(entries, "")) == len(entries)
    assert filter_by_linked_entity(entries, "Nobody") == []


def test_screening_rows_for_csv(sample_item):
    entries = consolidate_screening_list(sample_item["screening_list"], "X Ltd")
    rows = screening_rows_for_csv(entries)

    assert rows[2] == ["Smith, John", "Individual", "Director; UBO", "British", "1970-01", "", "X Ltd"]
    assert rows[1][1] == "Company"


def test_non_string_names_do_not_break_consolidation():
    entries = consolidate_screening_list({
        "ubos": [{"name": 12345, "role": "UBO"}],
        "governance_and_control": [
            {"name": {"forename": "A"}, "role": "Director"},
            {"name": ["B"], "role": "Secretary"},
            {"name": "Jane Doe", "role": "Director"},
        ],
    }, "T")

    assert [e.name for e in entries] == ["12345", "Jane Doe"]


@pytest.mark.parametrize("raw", [{"forename": "A"}, ["A"], True])
def test_normalize_name_ignores_non_text(raw):
    assert normalize_name(raw) == ""
