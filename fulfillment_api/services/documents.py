from __future__ import annotations

import io
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pandas as pd
from fastapi import HTTPException, status
from fastapi.responses import StreamingResponse
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape, letter
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

EXPORT_FORMATS = ("csv", "xlsx", "pdf")

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

_GRID_STYLE = [
    ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
    ("TEXTCOLOR", (0, 0), (-1, 0), colors.black),
    ("ALIGN", (0, 0), (-1, -1), "LEFT"),
    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
    ("FONTSIZE", (0, 0), (-1, -1), 8),
    ("BOTTOMPADDING", (0, 0), (-1, 0), 6),
    ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
]


def _attachment(filename: str) -> Dict[str, str]:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


def _table_pdf(df: pd.DataFrame, title: str) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer, pagesize=landscape(letter), leftMargin=18, rightMargin=18, topMargin=18, bottomMargin=18
    )
    styles = getSampleStyleSheet()
    stamp = datetime.now(tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    data = [list(df.columns)] + df.astype(str).values.tolist()
    table = Table(data, repeatRows=1)
    table.setStyle(TableStyle(_GRID_STYLE))
    doc.build([Paragraph(f"{title} ({stamp})", styles["Title"]), table])
    return buffer.getvalue()


# PUBLIC_INTERFACE
def export_dataframe(df: pd.DataFrame, filename_base: str, export_format: str) -> StreamingResponse:
    """
    Convert a DataFrame to the requested format and return a StreamingResponse.

    Supported formats:
      - csv: text/csv
      - xlsx: spreadsheet written with the openpyxl engine
      - pdf: application/pdf (simple tabular rendering)
    """
    export_format = (export_format or "csv").lower()
    if export_format not in EXPORT_FORMATS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid value(s) for 'format': {export_format}. Valid values are: {', '.join(EXPORT_FORMATS)}",
        )

    if export_format == "xlsx":
        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            df.to_excel(writer, index=False, sheet_name="Report")
        buffer.seek(0)
        return StreamingResponse(buffer, media_type=XLSX_MEDIA_TYPE, headers=_attachment(f"{filename_base}.xlsx"))

    if export_format == "pdf":
        title = filename_base.replace("_", " ").title()
        pdf = io.BytesIO(_table_pdf(df, title))
        return StreamingResponse(pdf, media_type="application/pdf", headers=_attachment(f"{filename_base}.pdf"))

    text = io.StringIO()
    df.to_csv(text, index=False)
    text.seek(0)
    return StreamingResponse(text, media_type="text/csv", headers=_attachment(f"{filename_base}.csv"))


def _fmt_money(value: Optional[Any]) -> str:
    return "-" if value is None else f"{float(value):,.2f}"


# PUBLIC_INTERFACE
def render_invoice_pdf(invoice_id: str, order: Any, company_name: str, issued_at: datetime) -> bytes:
    """Render an invoice for `order` (items, venue, price breakdown) to PDF bytes."""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, leftMargin=36, rightMargin=36, topMargin=36, bottomMargin=36)
    styles = getSampleStyleSheet()
    elements: List[Any] = [
        Paragraph(f"Invoice {invoice_id}", styles["Title"]),
        Paragraph(f"Issued: {issued_at.strftime('%Y-%m-%d')}", styles["Normal"]),
        Paragraph(f"Billed to: {company_name}", styles["Normal"]),
        Paragraph(f"Order: {order.order_id}", styles["Normal"]),
        Paragraph(
            f"Event: {order.venue_name}, {order.event_start_date:%Y-%m-%d} to {order.event_end_date:%Y-%m-%d}",
            styles["Normal"],
        ),
        Spacer(1, 12),
    ]

    rows = [["Item", "Qty", "Volume (m³)", "Weight (kg)"]]
    for item in order.items:
        rows.append([item.asset_name, str(item.quantity), f"{float(item.total_volume):.3f}", f"{float(item.total_weight):.2f}"])
    items_table = Table(rows, repeatRows=1)
    items_table.setStyle(TableStyle(_GRID_STYLE))
    elements.extend([items_table, Spacer(1, 12)])

    pricing = order.pricing
    margin = (pricing.margin or {}) if pricing else {}
    summary = [
        ["Logistics", _fmt_money(pricing.logistics_sub_total if pricing else None)],
        [f"Service fee ({margin.get('percent', 0)}%)", _fmt_money(margin.get("amount"))],
        ["Total", _fmt_money(pricing.final_total if pricing else None)],
    ]
    summary_table = Table(summary, colWidths=[300, 120])
    summary_table.setStyle(
        TableStyle(
            [
                ("ALIGN", (1, 0), (1, -1), "RIGHT"),
                ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
                ("LINEABOVE", (0, -1), (-1, -1), 0.5, colors.black),
            ]
        )
    )
    elements.append(summary_table)
    doc.build(elements)
    return buffer.getvalue()
