import io

import pandas as pd
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

API = "/v1"


def _xlsx(rows):
    buffer = io.BytesIO()
    pd.DataFrame(rows).to_excel(buffer, header=False, index=False)
    return buffer.getvalue()


def _create_note(client, number, lines, supplier="Tech Solutions"):
    r = client.post(
        f"{API}/delivery-notes",
        json={
            "note_number": number,
            "supplier": supplier,
            "note_date": "2024-01-15",
            "lines": [{"designation": d, "quantity": q, "unit_price": p} for d, q, p in lines],
        },
    )
    assert r.status_code == 201, r.text
    return r.json()


def test_health(client):
    r = client.get(f"{API}/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_article_crud(client):
    r = client.post(f"{API}/articles", json={"designation": "Clavier USB", "unit_price": "45.5", "code": "INF-010"})
    assert r.status_code == 201
    article = r.json()
    assert article["unit_price"] == "45.500"

    dup = client.post(f"{API}/articles", json={"designation": "Autre", "unit_price": "1", "code": "INF-010"})
    assert dup.status_code == 409

    r = client.put(f"{API}/articles/{article['id']}", json={"unit_price": "50"})
    assert r.status_code == 200
    assert r.json()["unit_price"] == "50.000"
    assert r.json()["designation"] == "Clavier USB"

    assert client.delete(f"{API}/articles/{article['id']}").status_code == 204
    assert client.get(f"{API}/articles/{article['id']}").status_code == 404


def test_article_search(client):
    for name in ("Souris sans fil", "Souris Logitech", "Clavier"):
        client.post(f"{API}/articles", json={"designation": name, "unit_price": "10"})

    r = client.get(f"{API}/articles/search", params={"q": "souris"})

    assert r.status_code == 200
    assert {a["designation"] for a in r.json()} == {"Souris sans fil", "Souris Logitech"}
    assert len(client.get(f"{API}/articles/search", params={"q": "", "limit": 2}).json()) == 2


def test_import_rejected_lists_every_error(client):
    content = _xlsx([["Designation", "Prix"], ["Pen", "1,500"], ["", "2.000"], ["Notebook", "abc"]])

    r = client.post(
        f"{API}/articles/import",
        files={"file": ("articles.xlsx", content, "application/octet-stream")},
    )

    assert r.status_code == 422
    assert r.json()["detail"]["errors"] == [
        "Ligne 3: Désignation manquante",
        "Ligne 4: Prix invalide (abc)",
    ]
    assert client.get(f"{API}/articles").json() == []


def test_import_valid_file(client):
    content = _xlsx([["Designation", "Prix"], ["Pen", "1,500"], ["Cahier", 2.25]])

    r = client.post(
        f"{API}/articles/import",
        files={"file": ("articles.xlsx", content, "application/octet-stream")},
    )

    assert r.status_code == 201
    assert r.json()["inserted"] == 2
    assert [a["unit_price"] for a in r.json()["articles"]] == ["1.500", "2.250"]

    r = client.delete(f"{API}/articles")
    assert r.json() == {"deleted": 2}


def test_import_wrong_extension(client):
    r = client.post(f"{API}/articles/import", files={"file": ("articles.txt", b"x", "text/plain")})
    assert r.status_code == 400


def test_delivery_note_lifecycle(client):
    note = _create_note(client, "BL-001", [("Widget", 3, "10"), ("Gadget", 2, "1.5")])

    assert note["status"] == "En attente"
    assert note["total_amount"] == "33.000"
    assert [ln["amount"] for ln in note["lines"]] == ["30.000", "3.000"]

    r = client.get(f"{API}/delivery-notes", params={"q": "bl-0"})
    assert [n["note_number"] for n in r.json()] == ["BL-001"]

    bad = client.post(
        f"{API}/delivery-notes",
        json={"note_number": "BL-002", "supplier": "X", "note_date": "2024-01-15", "lines": []},
    )
    assert bad.status_code == 400

    assert client.delete(f"{API}/delivery-notes/{note['id']}").status_code == 204
    assert client.get(f"{API}/delivery-notes/{note['id']}").status_code == 404


def test_qr_intake(client):
    payload = (
        '{"numero_bl": "BL-QR-1", "fournisseur": "Tech", "date_bl": "2024-01-18",'
        ' "lignes": [{"designation": "Souris", "quantite": 2, "prix_unitaire": "29.990"}]}'
    )

    r = client.post(f"{API}/qr/delivery-notes", json={"payload": payload})

    assert r.status_code == 201
    assert r.json()["total_amount"] == "59.980"
    assert r.json()["qr_payload"] == payload
    assert client.post(f"{API}/qr/delivery-notes", json={"payload": "pas du json"}).status_code == 400


def test_group_flow(client):
    n1 = _create_note(client, "BL-1", [("Widget", 3, "10"), ("Gadget", 1, "5")])
    n2 = _create_note(client, "BL-2", [("Widget", 2, "10")])

    r = client.post(f"{API}/groups", json={"name": "Janvier", "note_ids": [n1["id"], n2["id"]]})
    assert r.status_code == 201
    group = r.json()
    assert group["total_amount"] == "55.000"
    assert group["note_count"] == 2

    assert client.delete(f"{API}/delivery-notes/{n1['id']}").status_code == 409
    again = client.post(f"{API}/groups", json={"name": "Bis", "note_ids": [n1["id"]]})
    assert again.status_code == 409

    details = client.get(f"{API}/groups/{group['id']}").json()
    assert details["note_ids"] == sorted([n1["id"], n2["id"]])
    assert [r["designation"] for r in details["rows"]] == ["Gadget", "Widget"]
    assert details["rows"][1]["total_amount"] == "50.000"
    assert details["rows"][1]["average_unit_price"] == "10.000"
    assert details["totals"]["average_unit_price"] is None

    pdf = client.get(f"{API}/groups/{group['id']}/export.pdf")
    assert pdf.status_code == 200
    assert pdf.content.startswith(b"%PDF")

    processed = client.post(f"{API}/groups/{group['id']}/process").json()
    assert processed["status"] == "Traité"


def test_unknown_group(client):
    assert client.get(f"{API}/groups/999").status_code == 404

    r = client.get(f"{API}/groups/999/articles")
    assert r.status_code == 200
    assert r.json()["rows"] == []
    assert r.json()["totals"]["total_amount"] == "0.000"


def test_statistics(client):
    _create_note(client, "BL-1", [("Widget", 3, "10"), ("Widget", 2, "10")])
    _create_note(client, "BL-2", [("Gadget", 5, "15")])

    r = client.get(f"{API}/statistics", params={"top": 1})

    assert r.status_code == 200
    body = r.json()
    assert [row["designation"] for row in body["rows"]] == ["Gadget", "Widget"]
    assert body["rows"][1]["total_amount"] == "50.000"
    assert body["most_profitable"]["designation"] == "Gadget"
    assert [row["designation"] for row in body["top"]] == ["Gadget"]
    assert body["totals"]["total_amount"] == "125.000"

    dashboard = client.get(f"{API}/dashboard").json()
    assert dashboard["total_notes"] == 2
    assert dashboard["total_value"] == "125.000"

    export = client.get(f"{API}/statistics/export.xlsx")
    assert export.status_code == 200
    df = pd.read_excel(io.BytesIO(export.content))
    assert list(df["Désignation"]) == ["Gadget", "Widget"]


def test_empty_statistics(client):
    body = client.get(f"{API}/statistics").json()
    assert body["rows"] == []
    assert body["most_profitable"] is None
    assert body["most_ordered"] is None


def test_database_down_returns_503(client, monkeypatch):
    def _down(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("down"))

    monkeypatch.setattr(Session, "execute", _down)

    r = client.get(f"{API}/statistics")

    assert r.status_code == 503
    assert "réessayer" in r.json()["detail"]


def test_import_duplicate_code_is_a_row_error(client):
    client.post(f"{API}/articles", json={"designation": "Stylo", "unit_price": "1", "code": "C1"})
    content = _xlsx([["Pen", "1", "C2"], ["Cahier", "2", "C1"], ["Gomme", "3", "C2"]])

    r = client.post(
        f"{API}/articles/import",
        files={"file": ("articles.xlsx", content, "application/octet-stream")},
    )

    assert r.status_code == 422
    assert r.json()["detail"]["errors"] == [
        "Ligne 2: Code article déjà utilisé (C1)",
        "Ligne 3: Code en double (C2, déjà en ligne 1)",
    ]
    assert len(client.get(f"{API}/articles").json()) == 1


def test_search_limit_must_be_positive(client):
    assert client.get(f"{API}/articles/search", params={"q": "x", "limit": 0}).status_code == 422
    assert client.get(f"{API}/articles/search", params={"q": "x", "limit": -1}).status_code == 422
    assert client.get(f"{API}/articles/search", params={"q": "x", "limit": 101}).status_code == 422
