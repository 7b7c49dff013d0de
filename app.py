import os

import pandas as pd
import plotly.graph_objects as go
import requests
import streamlit as st

API_URL = os.getenv("GESTION_BL_API_URL", "http://127.0.0.1:8000/v1")
COLORS = ["#3B82F6", "#10B981", "#8B5CF6", "#F59E0B", "#EF4444"]
LABEL_MAX = 15

# --- CONFIGURATION ---
st.set_page_config(page_title="GESTION BL - STATISTIQUES", layout="wide", page_icon="📦")

st.markdown("""
    <style>
    .stMetric {
        background-color: #f8fafc;
        padding: 15px;
        border-radius: 10px;
        border-left: 5px solid #3B82F6;
    }
    h1 {
        color: #1d4ed8;
    }
    </style>
    """, unsafe_allow_html=True)


# --- ACCÈS API ---
def api_get(path, **params):
    try:
        response = requests.get(f"{API_URL}{path}", params=params, timeout=10)
    except requests.RequestException:
        st.error("Impossible de joindre le serveur, veuillez réessayer.")
        st.stop()
    if response.status_code == 503:
        st.error("Données momentanément indisponibles, veuillez réessayer.")
        st.stop()
    response.raise_for_status()
    return response.json()


def api_download(path):
    """Contenu d'un export, ou None (message affiché) si le serveur ne répond pas."""
    try:
        response = requests.get(f"{API_URL}{path}", timeout=30)
        response.raise_for_status()
    except requests.RequestException:
        st.error("Export momentanément indisponible, veuillez réessayer.")
        return None
    return response.content


def short_label(designation):
    return designation if len(designation) <= LABEL_MAX else designation[:LABEL_MAX] + "..."


def rows_frame(rows):
    return pd.DataFrame(
        [
            {
                "Désignation": r["designation"],
                "Quantité totale": r["total_quantity"],
                "Montant total (TND)": r["total_amount"],
                "Nombre de BL": r["note_count"],
                "Prix moyen (TND)": r["average_unit_price"],
            }
            for r in rows
        ]
    )


# --- EN-TÊTE ---
st.title("📊 Statistiques et Analytics")
st.write("Quantités et montants des articles dans vos bons d'entrée")

with st.sidebar:
    st.header("⚙️ PARAMÈTRES")
    top_n = st.slider("Articles dans la répartition", 1, 10, 5)
    strict = st.checkbox("Regrouper par désignation brute", value=False)
    st.divider()
    st.header("📥 EXPORT")
    # Export généré à la demande, pas à chaque rafraîchissement
    if st.button("📄 Préparer l'export Excel", key="export_stats"):
        xlsx = api_download("/statistics/export.xlsx")
        if xlsx:
            st.download_button(
                label="⬇️ Télécharger statistiques.xlsx",
                data=xlsx,
                file_name="statistiques.xlsx",
                mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            )

dashboard = api_get("/dashboard")
stats = api_get("/statistics", top=top_n, strict=strict)
totals = stats["totals"]

# --- RÉSUMÉ ---
c1, c2, c3, c4 = st.columns(4)
c1.metric("ARTICLES UNIQUES", totals["article_count"])
c2.metric("QUANTITÉ TOTALE", totals["total_quantity"])
c3.metric("MONTANT TOTAL", f"{totals['total_amount']} TND")
c4.metric("BL TRAITÉS", totals["note_count_total"])

d1, d2, d3 = st.columns(3)
d1.metric("ARTICLES AU CATALOGUE", dashboard["total_articles"])
d2.metric("GROUPES", dashboard["total_groups"])
d3.metric("VALEUR DES BL", f"{dashboard['total_value']} TND")

if stats["most_profitable"]:
    i1, i2 = st.columns(2)
    i1.success(f"💰 Article le plus rentable : **{stats['most_profitable']['designation']}**")
    i2.info(f"📦 Article le plus commandé : **{stats['most_ordered']['designation']}**")

# --- GRAPHIQUES ---
if stats["rows"]:
    g1, g2 = st.columns(2)

    bar = go.Figure(
        go.Bar(
            x=[short_label(r["designation"]) for r in stats["rows"]],
            y=[r["total_quantity"] for r in stats["rows"]],
            marker_color=COLORS[0],
        )
    )
    bar.update_layout(title="Quantités par article", height=350, xaxis_tickangle=-45)
    g1.plotly_chart(bar, use_container_width=True)

    pie = go.Figure(
        go.Pie(
            labels=[r["designation"] for r in stats["top"]],
            values=[float(r["total_amount"]) for r in stats["top"]],
            marker=dict(colors=COLORS),
        )
    )
    pie.update_layout(title="Répartition des montants", height=350)
    g2.plotly_chart(pie, use_container_width=True)

    st.markdown("### 📋 Détail par article")
    st.dataframe(rows_frame(stats["rows"]), use_container_width=True, hide_index=True)
else:
    st.info("Aucune ligne de BL enregistrée pour le moment.")

# --- GROUPES ---
st.divider()
st.markdown("### 🗂️ Détails d'un groupe")
groups = api_get("/groups")
if groups:
    labels = {f"{g['name']} ({g['note_count']} BL)": g["id"] for g in groups}
    choice = st.selectbox("Groupe", list(labels))
    group_id = labels[choice]
    details = api_get(f"/groups/{group_id}", strict=strict)

    st.write(f"**Montant total :** {details['totals']['total_amount']} TND")
    st.dataframe(rows_frame(details["rows"]), use_container_width=True, hide_index=True)
    if st.button("📄 Préparer le rapport PDF", key="export_group_pdf"):
        pdf = api_download(f"/groups/{group_id}/export.pdf")
        if pdf:
            st.download_button(
                label="⬇️ Télécharger le rapport PDF",
                data=pdf,
                file_name=f"groupe_{group_id}.pdf",
                mime="application/pdf",
            )
else:
    st.info("Aucun groupe créé.")
