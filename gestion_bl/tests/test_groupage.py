from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from gestion_bl.app.db.models.core_types import GroupStatus, NoteStatus
from gestion_bl.services.articles import create_article
from gestion_bl.services.delivery_notes import get_delivery_note
from gestion_bl.services.errors import BusinessRuleError, ConflictError, DataUnavailable, NotFoundError
from gestion_bl.services.groupage import (
    create_group,
    get_group,
    get_group_details,
    group_note_ids,
    list_groups,
    mark_group_processed,
)
from gestion_bl.services.statistics import dashboard_counters, get_statistics


def test_create_group_links_notes_and_sets_totals(db_session, make_note):
    n1 = make_note("BL-1", [("Widget", 3, "10.000"), ("Gadget", 1, "5.000")])
    n2 = make_note("BL-2", [("Widget", 2, "10.000")])

    group = create_group(db_session, name="Janvier", note_ids=[n1.id, n2.id])

    assert group.status == GroupStatus.pending
    assert group.note_count == 2
    assert group.total_amount == Decimal("55.000")
    assert group_note_ids(db_session, group.id) == sorted([n1.id, n2.id])
    assert get_delivery_note(db_session, n1.id).status == NoteStatus.grouped
    assert get_delivery_note(db_session, n2.id).status == NoteStatus.grouped


def test_group_details_roll_up_member_lines(db_session, make_note):
    n1 = make_note("BL-1", [("Widget", 3, "10.000"), ("Gadget", 1, "5.000")])
    n2 = make_note("BL-2", [("Widget", 2, "10.000")])
    make_note("BL-HORS", [("Widget", 100, "10.000")])
    group = create_group(db_session, name="Janvier", note_ids=[n1.id, n2.id])

    report = get_group_details(db_session, group.id)

    assert report.group_id == group.id
    assert [r.designation for r in report.rows] == ["Gadget", "Widget"]
    widget = report.rows[1]
    assert widget.total_quantity == 5
    assert widget.total_amount == Decimal("50.000")
    assert widget.average_unit_price == Decimal("10.000")
    assert widget.note_count == 2
    assert report.totals.total_amount == group.total_amount
    assert report.totals.average_unit_price is None


def test_group_details_use_catalog_link(db_session, make_note):
    souris = create_article(db_session, designation="Souris sans fil", unit_price="29.990")
    n1 = make_note("BL-1", [("Souris sans fil", 2, "29.990")], article_ids={"Souris sans fil": souris.id})
    n2 = make_note("BL-2", [("souris sans fil ", 1, "25.000")])
    group = create_group(db_session, name="Souris", note_ids=[n1.id, n2.id])

    report = get_group_details(db_session, group.id)

    # Même libellé nettoyé, mais une seule des deux lignes est liée au catalogue
    assert len(report.rows) == 2
    assert {r.article_id for r in report.rows} == {souris.id, None}


def test_unknown_group_gives_empty_report(db_session):
    report = get_group_details(db_session, 12345)

    assert report.rows == []
    assert report.totals.article_count == 0
    assert report.totals.total_amount == Decimal("0")


def test_group_requires_name_and_notes(db_session, make_note):
    note = make_note("BL-1", [("A", 1, "1")])
    with pytest.raises(BusinessRuleError):
        create_group(db_session, name="  ", note_ids=[note.id])
    with pytest.raises(BusinessRuleError):
        create_group(db_session, name="Vide", note_ids=[])


def test_group_with_missing_note_is_refused(db_session, make_note):
    note = make_note("BL-1", [("A", 1, "1")])
    with pytest.raises(NotFoundError):
        create_group(db_session, name="G", note_ids=[note.id, 999])
    assert get_delivery_note(db_session, note.id).status == NoteStatus.pending
    assert list_groups(db_session) == []


def test_note_cannot_join_two_groups(db_session, make_note):
    n1 = make_note("BL-1", [("A", 1, "1")])
    n2 = make_note("BL-2", [("B", 1, "1")])
    create_group(db_session, name="Premier", note_ids=[n1.id])

    with pytest.raises(ConflictError, match="BL-1"):
        create_group(db_session, name="Second", note_ids=[n1.id, n2.id])
    assert get_delivery_note(db_session, n2.id).status == NoteStatus.pending


def test_mark_group_processed(db_session, make_note):
    n1 = make_note("BL-1", [("A", 1, "1")])
    group = create_group(db_session, name="G", note_ids=[n1.id])

    processed = mark_group_processed(db_session, group.id)

    assert processed.status == GroupStatus.processed
    assert get_delivery_note(db_session, n1.id).status == NoteStatus.processed
    # Deuxième appel sans effet
    assert mark_group_processed(db_session, group.id).status == GroupStatus.processed
    with pytest.raises(NotFoundError):
        get_group(db_session, 999)


def test_statistics_cover_every_note(db_session, make_note):
    make_note("BL-1", [("Widget", 3, "10.000"), ("Widget", 2, "10.000")])
    make_note("BL-2", [("Gadget", 5, "15.000")])

    report = get_statistics(db_session)

    assert [r.designation for r in report.rows] == ["Gadget", "Widget"]
    assert report.most_profitable.total_amount == Decimal("75.000")
    assert report.totals.note_count_total == 2

    counters = dashboard_counters(db_session)
    assert counters["total_notes"] == 2
    assert counters["total_groups"] == 0
    assert counters["total_value"] == Decimal("125.000")


def test_database_failure_surfaces_as_data_unavailable(db_session, monkeypatch):
    def _down(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("down"))

    monkeypatch.setattr(Session, "execute", _down)

    with pytest.raises(DataUnavailable):
        get_group_details(db_session, 1)
    with pytest.raises(DataUnavailable):
        get_statistics(db_session)
