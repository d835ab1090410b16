"""Rendu PDF des factures (reportlab)."""

import io
from datetime import datetime, timezone
from typing import Dict, List, Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfgen import canvas

from config import parse_iso

MARGIN = 40
LINE_HEIGHT = 14
FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
HEADER_BG = colors.HexColor("#1E40AF")
ROW_ALT_BG = colors.HexColor("#EFF6FF")
MUTED = colors.HexColor("#6B7280")

STATUT_LABELS = {
    "brouillon": "Brouillon",
    "envoyee": "Envoyée",
    "payee": "Payée",
    "en_retard": "En retard",
}


def _format_date(value) -> str:
    dt = parse_iso(value)
    return dt.strftime("%d/%m/%Y") if dt else "-"


def _format_amount(value, devise: str = "EUR") -> str:
    symbol = "€" if devise == "EUR" else devise
    amount = f"{float(value or 0):,.2f}".replace(",", " ").replace(".", ",")
    return f"{amount} {symbol}"


def _truncate(text: str, max_width: float, font_name: str, font_size: float) -> str:
    if pdfmetrics.stringWidth(text, font_name, font_size) <= max_width:
        return text
    while text and pdfmetrics.stringWidth(text + "…", font_name, font_size) > max_width:
        text = text[:-1]
    return text + "…"


def render_facture_pdf(
    facture: Dict,
    agence: Dict,
    client: Optional[Dict],
    devise: str = "EUR"
) -> bytes:
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4)
    width, height = A4
    table_width = width - 2 * MARGIN

    columns = [
        {"key": "designation", "label": "Désignation", "width": table_width - 270, "align": "left"},
        {"key": "quantite", "label": "Qté", "width": 60, "align": "right"},
        {"key": "prixUnitaire", "label": "Prix unitaire HT", "width": 105, "align": "right"},
        {"key": "montant", "label": "Montant HT", "width": 105, "align": "right"},
    ]

    def draw_footer():
        pdf.setFont(FONT, 8)
        pdf.setFillColor(MUTED)
        generated = datetime.now(timezone.utc).strftime("%d/%m/%Y %H:%M")
        pdf.drawString(MARGIN, MARGIN - 15, f"Généré le {generated}")
        pdf.drawRightString(width - MARGIN, MARGIN - 15, f"Page {pdf.getPageNumber()}")
        pdf.setFillColor(colors.black)

    def start_page() -> float:
        y = height - MARGIN
        pdf.setFont(FONT_BOLD, 18)
        pdf.drawString(MARGIN, y - 10, agence.get("nom", ""))
        pdf.setFont(FONT_BOLD, 14)
        pdf.drawRightString(width - MARGIN, y - 10, f"FACTURE {facture.get('numero', '')}")
        y -= 30
        pdf.setFont(FONT, 9)
        pdf.setFillColor(MUTED)
        for line in (agence.get("adresse", ""), agence.get("email", ""), agence.get("telephone", "")):
            if line:
                pdf.drawString(MARGIN, y, line)
                y -= 12
        if agence.get("siret"):
            pdf.drawString(MARGIN, y, f"SIRET: {agence['siret']}")
            y -= 12
        pdf.setFillColor(colors.black)
        return y - 10

    def draw_table_header(y: float) -> float:
        pdf.setFillColor(HEADER_BG)
        pdf.rect(MARGIN, y - 6, table_width, 18, stroke=0, fill=1)
        pdf.setFillColor(colors.white)
        pdf.setFont(FONT_BOLD, 9)
        x = MARGIN
        for col in columns:
            if col["align"] == "right":
                pdf.drawRightString(x + col["width"] - 4, y, col["label"])
            else:
                pdf.drawString(x + 4, y, col["label"])
            x += col["width"]
        pdf.setFillColor(colors.black)
        return y - 20

    def ensure_space(y: float, needed: float) -> float:
        if y - needed < MARGIN + 20:
            draw_footer()
            pdf.showPage()
            return draw_table_header(start_page())
        return y

    y = start_page()

    # Bloc client + dates
    pdf.setFont(FONT_BOLD, 10)
    pdf.drawString(MARGIN, y, "Facturé à")
    pdf.drawString(width / 2, y, "Informations")
    y -= LINE_HEIGHT
    pdf.setFont(FONT, 9)
    client_lines: List[str] = []
    if client:
        nom = " ".join(p for p in [client.get("prenom"), client.get("nom")] if p)
        client_lines = [l for l in [client.get("entreprise"), nom, client.get("adresse"), client.get("email")] if l]
    else:
        client_lines = ["Client supprimé"]
    info_lines = [
        f"Date d'émission: {_format_date(facture.get('dateEmission'))}",
        f"Date d'échéance: {_format_date(facture.get('dateEcheance'))}",
        f"Statut: {STATUT_LABELS.get(facture.get('statut'), facture.get('statut', ''))}",
    ]
    for i in range(max(len(client_lines), len(info_lines))):
        if i < len(client_lines):
            pdf.drawString(MARGIN, y, client_lines[i])
        if i < len(info_lines):
            pdf.drawString(width / 2, y, info_lines[i])
        y -= 12
    y -= 16

    y = draw_table_header(y)

    pdf.setFont(FONT, 9)
    for index, art in enumerate(facture.get("articles") or []):
        y = ensure_space(y, LINE_HEIGHT + 4)
        if index % 2 == 1:
            pdf.setFillColor(ROW_ALT_BG)
            pdf.rect(MARGIN, y - 4, table_width, LINE_HEIGHT + 2, stroke=0, fill=1)
            pdf.setFillColor(colors.black)
        values = {
            "designation": _truncate(str(art.get("designation", "")), columns[0]["width"] - 8, FONT, 9),
            "quantite": f"{art.get('quantite', 0):g}",
            "prixUnitaire": _format_amount(art.get("prixUnitaire"), devise),
            "montant": _format_amount(art.get("montant"), devise),
        }
        pdf.setFont(FONT, 9)
        x = MARGIN
        for col in columns:
            if col["align"] == "right":
                pdf.drawRightString(x + col["width"] - 4, y, values[col["key"]])
            else:
                pdf.drawString(x + 4, y, values[col["key"]])
            x += col["width"]
        y -= LINE_HEIGHT + 2

    # Totaux
    y = ensure_space(y, 70)
    y -= 10
    label_x = width - MARGIN - 200
    totals = [
        ("Total HT", facture.get("montantHT")),
        (f"TVA ({facture.get('tauxTVA', 20):g} %)", (facture.get("montantTTC") or 0) - (facture.get("montantHT") or 0)),
        ("Total TTC", facture.get("montantTTC")),
    ]
    for i, (label, value) in enumerate(totals):
        font = FONT_BOLD if i == len(totals) - 1 else FONT
        pdf.setFont(font, 10)
        pdf.drawString(label_x, y, label)
        pdf.drawRightString(width - MARGIN, y, _format_amount(value, devise))
        y -= LINE_HEIGHT

    if facture.get("notes"):
        y = ensure_space(y, 40)
        y -= 10
        pdf.setFont(FONT_BOLD, 9)
        pdf.drawString(MARGIN, y, "Notes")
        pdf.setFont(FONT, 9)
        y -= 12
        pdf.drawString(MARGIN, y, _truncate(facture["notes"], table_width, FONT, 9))

    draw_footer()
    pdf.showPage()
    pdf.save()
    return buffer.getvalue()
