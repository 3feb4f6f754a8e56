"""test_normalization.py — Property extraction and record normalization.

Run from shared_layer directory:
    python3 -m pytest test_normalization.py -v
"""

from __future__ import annotations

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), "python"))

from kpiboard_shared.normalizer import KPI_FIELDS, FieldSpec, normalize_kpi, normalize_project, resolve_field
from kpiboard_shared.properties import _READERS, PropertyKind, extract, kind_default, people_ids
from kpiboard_shared.records import KpiRef

K = PropertyKind


# ---------------------------------------------------------------------------
# Notion-shaped builders
# ---------------------------------------------------------------------------


def _runs(text):
    return [{"type": "text", "plain_text": text, "text": {"content": text}}]


def title(text):
    return {"type": "title", "title": _runs(text)}


def rich_text(text):
    return {"type": "rich_text", "rich_text": _runs(text)}


def select(name):
    return {"type": "select", "select": {"name": name} if name is not None else None}


def multi_select(*names):
    return {"type": "multi_select", "multi_select": [{"name": n} for n in names]}


def number(value):
    return {"type": "number", "number": value}


def date(start):
    return {"type": "date", "date": {"start": start, "end": None}}


def relation(*ids):
    return {"type": "relation", "relation": [{"id": i} for i in ids]}


def people(*persons):
    return {"type": "people", "people": list(persons)}


def page(props, **meta):
    record = {"object": "page", "id": meta.pop("id", "page-1"), "properties": props}
    record.update(meta)
    return record


# ---------------------------------------------------------------------------
# extract
# ---------------------------------------------------------------------------


def test_title_concatenates_runs():
    record = page({"Name": {"type": "title", "title": _runs("Grow ") + _runs("revenue")}})
    assert extract(record, "Name", K.TITLE) == "Grow revenue"


def test_text_falls_back_to_text_content():
    record = page({"Goal": {"type": "rich_text", "rich_text": [{"text": {"content": "Ship v2"}}]}})
    assert extract(record, "Goal", K.RICH_TEXT) == "Ship v2"


def test_select_multi_select_and_status():
    record = page({
        "Division": select("Sales"),
        "Country": multi_select("KR", "US"),
        "Stage": {"type": "status", "status": {"name": "Done"}},
    })
    assert extract(record, "Division", K.SELECT) == "Sales"
    assert extract(record, "Country", K.MULTI_SELECT) == ["KR", "US"]
    assert extract(record, "Stage", K.STATUS) == "Done"


def test_date_returns_start_only():
    record = page({"Deadline": {"type": "date", "date": {"start": "2026-03-01", "end": "2026-03-31"}}})
    assert extract(record, "Deadline", K.DATE) == "2026-03-01"


def test_people_fall_back_to_id():
    record = page({"Owner": people({"id": "u-1", "name": "Kim"}, {"id": "u-2"})})
    assert extract(record, "Owner", K.PEOPLE) == ["Kim", "u-2"]


def test_relation_ids():
    record = page({"KPI": relation("kpi-1", "kpi-2")})
    assert extract(record, "KPI", K.RELATION) == ["kpi-1", "kpi-2"]


def test_rollup_number_and_array():
    record = page({
        "갯수": {"type": "rollup", "rollup": {"type": "number", "number": 4}},
        "Items": {"type": "rollup", "rollup": {"type": "array", "array": [{}, {}]}},
    })
    assert extract(record, "갯수", K.ROLLUP) == 4
    assert extract(record, "Items", K.ROLLUP) == 2


def test_untagged_property_read_by_key():
    record = page({"Progress": {"number": 12}})
    assert extract(record, "Progress", K.NUMBER) == 12


@pytest.mark.parametrize("kind", list(PropertyKind))
def test_missing_property_yields_kind_default(kind):
    assert extract(page({}), "Nope", kind) == kind_default(kind)


@pytest.mark.parametrize(
    "prop, kind, expected",
    [
        (rich_text("12"), K.NUMBER, 0),
        ({"type": "number", "number": "12"}, K.NUMBER, 0),
        ({"type": "number", "number": True}, K.NUMBER, 0),
        ({"type": "number", "number": float("nan")}, K.NUMBER, 0),
        ({"type": "select", "select": None}, K.SELECT, ""),
        ({"type": "select", "select": "Sales"}, K.SELECT, ""),
        ({"type": "title", "title": None}, K.TITLE, ""),
        ({"type": "title", "title": [None, 5, {"plain_text": 3}]}, K.TITLE, ""),
        ({"type": "multi_select", "multi_select": {"name": "KR"}}, K.MULTI_SELECT, []),
        ({"type": "date", "date": None}, K.DATE, None),
        ({"type": "date", "date": {"start": 20260301}}, K.DATE, None),
        ({"type": "url", "url": 42}, K.URL, None),
        ({"type": "relation", "relation": [{"id": None}, "x"]}, K.RELATION, []),
        ("not a dict", K.RICH_TEXT, ""),
        (None, K.PEOPLE, []),
    ],
)
def test_malformed_values_never_raise(prop, kind, expected):
    assert extract(page({"P": prop}), "P", kind) == expected


def test_non_dict_records_never_raise():
    assert extract(None, "Name", K.TITLE) == ""
    assert extract({"properties": []}, "Name", K.NUMBER) == 0


def test_explicit_default():
    assert extract(page({}), "Progress", K.NUMBER, default=None) is None


# ---------------------------------------------------------------------------
# normalize_project / normalize_kpi
# ---------------------------------------------------------------------------


def test_empty_project_has_every_default():
    project = normalize_project({"properties": {}})
    assert project.id == ""
    assert project.name == ""
    assert project.code == ""
    assert project.kpi == KpiRef()
    assert project.kpi_detail == ""
    assert project.division == ""
    assert project.countries == []
    assert project.country == ""
    assert project.status == ""
    assert project.progress == 0
    assert project.deadline is None
    assert project.owner == ""
    assert project.goal == ""
    assert project.link == ""
    assert project.content_summary is None


def test_empty_kpi_defaults():
    kpi = normalize_kpi({})
    assert kpi.name == "Unknown"
    assert kpi.count == 0
    assert kpi.related_project_ids == []


def test_full_project():
    raw = page(
        {
            "Name": title("Onboarding revamp"),
            "Code": rich_text("P-7"),
            "KPI": select("Growth"),
            "KPI_Detail": rich_text("Activation"),
            "Division": select("Product"),
            "Country": multi_select("KR", "JP"),
            "Status": select("In progress"),
            "Progress": number(42.6),
            "Deadline": date("2026-06-30"),
            "Owner": people({"id": "u-1", "name": "Kim"}, {"id": "u-2", "name": "Lee"}),
            "Goal": rich_text("Double activation"),
        },
        id="proj-1",
        url="https://www.notion.so/proj-1",
        created_time="2026-01-02T03:04:00.000Z",
        last_edited_time="2026-02-02T03:04:00.000Z",
        last_edited_by={"object": "user", "id": "u-9"},
    )
    project = normalize_project(raw)
    assert project.id == "proj-1"
    assert project.name == "Onboarding revamp"
    assert project.code == "P-7"
    assert project.kpi == KpiRef.named("Growth")
    assert project.kpi_detail == "Activation"
    assert project.countries == ["KR", "JP"]
    assert project.country == "KR, JP"
    assert project.progress == 43
    assert project.deadline == "2026-06-30"
    assert project.owner == "Kim, Lee"
    assert project.link == "https://www.notion.so/proj-1"
    assert project.last_edited_by == "u-9"
    assert project.created_time == "2026-01-02T03:04:00.000Z"


def test_earlier_alias_wins():
    raw = page({"Name": title("Upper"), "name": title("lower")})
    assert normalize_project(raw).name == "Upper"
    assert normalize_kpi(raw).name == "Upper"


def test_empty_alias_falls_through_to_next():
    raw = page({"Name": title(""), "name": title("lower")})
    assert normalize_project(raw).name == "lower"


def test_zero_number_is_a_value():
    raw = page({"Count": number(0), "count": number(9)})
    assert normalize_kpi(raw).count == 0


def test_kpi_relation_variant():
    raw = page({"KPI 1": relation("kpi-1"), "KPI": select("Ignored")})
    project = normalize_project(raw)
    assert project.kpi.is_relation
    assert project.kpi.relation_id == "kpi-1"


def test_empty_relation_falls_back_to_select():
    raw = page({"KPI 1": relation(), "kpi": select("Retention")})
    assert normalize_project(raw).kpi == KpiRef.named("Retention")


def test_country_as_rich_text_is_split():
    raw = page({"Country": rich_text("KR, US ,")})
    assert normalize_project(raw).countries == ["KR", "US"]


def test_kpi_detail_as_select_and_owner_as_text():
    raw = page({"KPI_Detail": select("Onboarding"), "Owner": rich_text("Park")})
    project = normalize_project(raw)
    assert project.kpi_detail == "Onboarding"
    assert project.owner == "Park"


def test_link_property_used_without_page_url():
    raw = page({"Link": {"type": "url", "url": "https://example.com/p"}})
    assert normalize_project(raw).link == "https://example.com/p"


def test_localized_aliases():
    raw = page({
        "이름": title("매출"),
        "갯수": {"type": "rollup", "rollup": {"type": "number", "number": 3}},
        "프로젝트": relation("p-1", "p-2"),
    }, id="kpi-1")
    kpi = normalize_kpi(raw)
    assert kpi.name == "매출"
    assert kpi.count == 3
    assert kpi.related_project_ids == ["p-1", "p-2"]


def test_negative_count_clamped():
    assert normalize_kpi(page({"Count": number(-3)})).count == 0


def test_field_tables_are_data():
    spec = FieldSpec((("Legacy Name", K.RICH_TEXT),) + KPI_FIELDS["name"].aliases, default="Unknown")
    props = {"Legacy Name": rich_text("Old"), "Name": title("New")}
    assert resolve_field(props, spec) == "Old"


def test_default_lists_are_not_shared():
    first = normalize_project({})
    first.countries.append("KR")
    assert normalize_project({}).countries == []


def test_project_to_dict_shape():
    project = normalize_project(page({"KPI": relation("kpi-1"), "Country": multi_select("KR")}))
    data = project.to_dict(kpi_name="Growth")
    assert data["kpi"] == "Growth"
    assert data["kpiId"] == "kpi-1"
    assert data["country"] == "KR"
    assert data["deadline"] is None
    assert "contentSummary" not in data


def test_every_kind_has_a_reader():
    assert set(_READERS) == set(PropertyKind)


def test_owner_ids_kept_alongside_names():
    raw = page({"Owner": people({"id": "u-1", "name": "Kim"}, {"id": "u-2", "name": "Lee"})})
    project = normalize_project(raw)
    assert project.owner == "Kim, Lee"
    assert project.owner_ids == ["u-1", "u-2"]


def test_text_owner_has_no_ids():
    project = normalize_project(page({"Owner": rich_text("Park")}))
    assert project.owner == "Park"
    assert project.owner_ids == []
    assert project.to_dict()["ownerIds"] == []


def test_people_ids_ignores_other_types():
    assert people_ids(rich_text("u-1")) == []
    assert people_ids(None) == []
    assert people_ids({"people": [{"id": "u-3"}, {"name": "no id"}]}) == ["u-3"]
