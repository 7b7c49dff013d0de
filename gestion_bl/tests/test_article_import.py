import io
from decimal import Decimal

import pandas as pd
import pytest
from sqlalchemy import func, select

from gestion_bl.app.db.models.models_v1 import Article
from gestion_bl.services.article_import import (
    Accepted,
    Rejected,
    is_header_row,
    parse_price,
    read_spreadsheet,
    validate_row,
    validate_rows,
)
from gestion_bl.services.articles import create_article, import_articles
from gestion_bl.services.errors import BusinessRuleError, ImportRejected


def test_header_is_skipped_and_errors_are_collected():
    rows = [["Header", "Price"], ["Pen", "1,500"], ["", "2.000"], ["Notebook", "abc"]]

    result = validate_rows(rows)

    assert len(result.accepted) == 1
    assert result.accepted[0].designation == "Pen"
    assert result.accepted[0].unit_price == Decimal("1.5")
    assert len(result.rejected) == 2
    assert result.errors == [
        "Ligne 3: Désignation manquante",
        "Ligne 4: Prix invalide (abc)",
    ]
    assert not result.ok


def test_accepted_plus_rejected_equals_non_blank_rows():
    rows = [
        ["Désignation", "Prix", "Code", "Description"],
        ["Pen", "1,500"],
        [None, None],
        ["", ""],
        ["Crayon"],
        ["Gomme", ""],
        ["Règle", "-1"],
        ["Cahier", 2.25, "PAP-01", "Grand format"],
        ["", "3"],
    ]

    result = validate_rows(rows)

    non_blank = 5  # Pen, Gomme, Règle, Cahier, ["", "3"]
    assert len(result.accepted) + len(result.rejected) == non_blank
    assert result.skipped == 3
    assert [a.designation for a in result.accepted] == ["Pen", "Cahier"]
    assert {r.row_number for r in result.rejected} == {6, 7, 9}


def test_missing_price_message_names_the_designation():
    result = validate_row(["Gomme", None], 5)
    assert isinstance(result, Rejected)
    assert result.message == "Ligne 5: Prix manquant pour 'Gomme'"


def test_optional_code_and_description():
    result = validate_row(["Cahier", "2.250", " PAP-01 ", "Grand format"], 2)
    assert isinstance(result, Accepted)
    assert result.article.code == "PAP-01"
    assert result.article.description == "Grand format"

    bare = validate_row(["Cahier", "2.250"], 3)
    assert bare.article.code is None
    assert bare.article.description is None


def test_first_row_without_header_words_is_data():
    result = validate_rows([["Stylo", "0,750"], ["Agrafeuse", "12"]])
    assert [a.designation for a in result.accepted] == ["Stylo", "Agrafeuse"]


def test_header_words_only_detected_on_first_row():
    result = validate_rows([["Stylo", "1"], ["Designation", "Prix"]])
    assert len(result.accepted) == 1
    assert result.errors == ["Ligne 2: Prix invalide (Prix)"]


@pytest.mark.parametrize("row", [["DÉSIGNATION", "PRIX"], ["designation", "x"], [" price "]])
def test_header_vocabulary_is_case_insensitive(row):
    assert is_header_row(row)


@pytest.mark.parametrize(
    "raw, expected",
    [("1,500", Decimal("1.500")), ("12", Decimal("12.000")), (2.25, Decimal("2.250")), (3, Decimal("3.000"))],
)
def test_parse_price(raw, expected):
    assert parse_price(raw) == expected


@pytest.mark.parametrize("raw", ["abc", "-1", "1.2.3", "", "NaN", float("inf")])
def test_parse_price_rejects(raw):
    with pytest.raises(ValueError):
        parse_price(raw)


def test_import_all_or_nothing(db_session):
    rows = [["Pen", "1,500"], ["Notebook", "abc"]]

    with pytest.raises(ImportRejected) as exc:
        import_articles(db_session, rows)

    assert exc.value.messages == ["Ligne 2: Prix invalide (abc)"]
    assert db_session.scalar(select(func.count()).select_from(Article)) == 0


def test_import_inserts_valid_batch(db_session):
    created = import_articles(db_session, [["Désignation", "Prix"], ["Pen", "1,500"], ["Cahier", "2.25", "PAP-01"]])

    assert [a.designation for a in created] == ["Pen", "Cahier"]
    assert db_session.scalar(select(func.count()).select_from(Article)) == 2
    cahier = db_session.scalar(select(Article).where(Article.code == "PAP-01"))
    assert cahier.unit_price == Decimal("2.250")


def test_import_without_any_article_is_refused(db_session):
    with pytest.raises(BusinessRuleError):
        import_articles(db_session, [["Désignation", "Prix"], [None, None]])


def test_read_spreadsheet_xlsx_round_trip():
    buffer = io.BytesIO()
    pd.DataFrame([["Désignation", "Prix"], ["Pen", "1,500"], ["Cahier", 2.25]]).to_excel(
        buffer, header=False, index=False
    )

    rows = read_spreadsheet(buffer.getvalue(), "articles.xlsx")
    result = validate_rows(rows)

    assert rows[0] == ["Désignation", "Prix"]
    assert [a.designation for a in result.accepted] == ["Pen", "Cahier"]
    assert result.accepted[1].unit_price == Decimal("2.250")


def test_read_spreadsheet_csv_with_semicolons():
    content = "designation;prix\nPen;1,500\nCahier;2.25\n".encode("utf-8")

    rows = read_spreadsheet(content, "articles.csv")
    result = validate_rows(rows)

    assert [a.unit_price for a in result.accepted] == [Decimal("1.500"), Decimal("2.250")]


def test_read_spreadsheet_rejects_garbage():
    with pytest.raises(BusinessRuleError):
        read_spreadsheet(b"not an excel file", "articles.xlsx")


def test_code_repeated_in_file_is_rejected(db_session):
    rows = [["Pen", "1", "C1"], ["Cahier", "2", "C1"], ["Gomme", "abc"]]

    with pytest.raises(ImportRejected) as exc:
        import_articles(db_session, rows)

    assert exc.value.messages == [
        "Ligne 2: Code en double (C1, déjà en ligne 1)",
        "Ligne 3: Prix invalide (abc)",
    ]
    assert db_session.scalar(select(func.count()).select_from(Article)) == 0


def test_code_already_in_catalog_is_rejected(db_session):
    create_article(db_session, designation="Stylo", unit_price="1", code="C1")

    with pytest.raises(ImportRejected) as exc:
        import_articles(db_session, [["Pen", "1", "C2"], ["Cahier", "2", "C1"]])

    assert exc.value.messages == ["Ligne 2: Code article déjà utilisé (C1)"]
    assert db_session.scalar(select(func.count()).select_from(Article)) == 1


def test_single_cell_row_in_xlsx_is_skipped():
    buffer = io.BytesIO()
    pd.DataFrame([["Pen", "1,500", "C1", "desc"], ["Remarque"]]).to_excel(buffer, header=False, index=False)

    rows = read_spreadsheet(buffer.getvalue(), "articles.xlsx")
    result = validate_rows(rows)

    assert rows[1] == ["Remarque"]
    assert result.ok
    assert result.skipped == 1
    assert [a.designation for a in result.accepted] == ["Pen"]


def test_short_csv_row_is_skipped():
    rows = read_spreadsheet("Pen;1.500;C1\nRemarque\n".encode("utf-8"), "articles.csv")
    result = validate_rows(rows)

    assert result.ok
    assert [a.code for a in result.accepted] == ["C1"]
