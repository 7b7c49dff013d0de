from __future__ import annotations

import io

import pandas as pd
from fpdf import FPDF

from gestion_bl.app.db.models.models_v1 import NoteGroup
from gestion_bl.services.aggregation import ArticleSummary, GroupReport, StatisticsReport
from gestion_bl.services.formatting import CURRENCY, format_amount

PDF_PLACEHOLDER = "-"


def _latin1(text: str) -> str:
    # Polices PDF de base : latin-1 uniquement
    return text.encode("latin-1", "replace").decode("latin-1")


def summary_records(rows: list[ArticleSummary]) -> list[dict]:
    return [
        {
            "Désignation": r.designation,
            "Quantité totale": r.total_quantity,
            "Prix unitaire moyen": format_amount(r.average_unit_price),
            "Montant total": format_amount(r.total_amount),
            "Nombre de BL": r.note_count,
        }
        for r in rows
    ]


def _to_excel(df: pd.DataFrame, sheet_name: str) -> bytes:
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=sheet_name, index=False)
    return buffer.getvalue()


def group_report_excel(report: GroupReport) -> bytes:
    records = summary_records(report.rows)
    records.append(
        {
            "Désignation": "TOTAL",
            "Quantité totale": report.totals.total_quantity,
            "Prix unitaire moyen": format_amount(report.totals.average_unit_price),
            "Montant total": format_amount(report.totals.total_amount),
            "Nombre de BL": report.totals.note_count_total,
        }
    )
    return _to_excel(pd.DataFrame.from_records(records), "Groupe")


def statistics_excel(report: StatisticsReport) -> bytes:
    df = pd.DataFrame.from_records(
        summary_records(report.rows),
        columns=["Désignation", "Quantité totale", "Prix unitaire moyen", "Montant total", "Nombre de BL"],
    )
    return _to_excel(df, "Statistiques")


def group_report_pdf(group: NoteGroup, report: GroupReport) -> bytes:
    pdf = FPDF()
    pdf.add_page()
    pdf.set_font("Helvetica", "B", 16)
    pdf.cell(190, 10, _latin1(f"Détails du groupe : {group.name}"), ln=True, align="C")
    pdf.ln(4)

    pdf.set_font("Helvetica", size=11)
    pdf.cell(190, 8, _latin1(f"Date de création : {group.creation_date.isoformat()}"), ln=True)
    pdf.cell(190, 8, _latin1(f"BL groupés : {group.note_count}"), ln=True)
    pdf.cell(190, 8, _latin1(f"Articles différents : {report.totals.article_count}"), ln=True)
    pdf.ln(4)

    widths = (80, 30, 40, 40)
    pdf.set_font("Helvetica", "B", 10)
    for w, title in zip(widths, ("Désignation", "Quantité", "Prix moyen", "Montant")):
        pdf.cell(w, 8, _latin1(title), border=1, align="C")
    pdf.ln()

    pdf.set_font("Helvetica", size=10)
    for r in report.rows:
        pdf.cell(widths[0], 8, _latin1(r.designation[:45]), border=1)
        pdf.cell(widths[1], 8, str(r.total_quantity), border=1, align="R")
        pdf.cell(widths[2], 8, format_amount(r.average_unit_price), border=1, align="R")
        pdf.cell(widths[3], 8, format_amount(r.total_amount), border=1, align="R")
        pdf.ln()

    pdf.set_font("Helvetica", "B", 10)
    pdf.cell(widths[0], 8, "TOTAL", border=1)
    pdf.cell(widths[1], 8, str(report.totals.total_quantity), border=1, align="R")
    pdf.cell(widths[2], 8, PDF_PLACEHOLDER, border=1, align="C")
    pdf.cell(widths[3], 8, f"{format_amount(report.totals.total_amount)} {CURRENCY}", border=1, align="R")
    pdf.ln()

    return bytes(pdf.output())
