from __future__ import annotations

import io
from datetime import datetime, timezone
from typing import Any, Dict, List, Sequence

import pandas as pd
from fastapi.responses import StreamingResponse

EXPORT_FORMATS = ("csv", "xlsx", "pdf")


def _attachment(filename: str) -> Dict[str, str]:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


def _to_pdf(df: pd.DataFrame, title: str) -> io.BytesIO:
    """Render a simple landscape table with reportlab."""
    from reportlab.lib import colors
    from reportlab.lib.pagesizes import A4, landscape
    from reportlab.lib.styles import getSampleStyleSheet
    from reportlab.platypus import Paragraph, SimpleDocTemplate, Table, TableStyle

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer, pagesize=landscape(A4), leftMargin=18, rightMargin=18, topMargin=18, bottomMargin=18
    )
    styles = getSampleStyleSheet()
    stamp = datetime.now(tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    elements: list = [Paragraph(f"{title} ({stamp})", styles["Title"])]

    data = [list(df.columns)] + df.fillna("").astype(str).values.tolist()
    table = Table(data, repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.black),
                ("ALIGN", (0, 0), (-1, -1), "LEFT"),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 7),
                ("BOTTOMPADDING", (0, 0), (-1, 0), 6),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
            ]
        )
    )
    elements.append(table)
    doc.build(elements)
    buffer.seek(0)
    return buffer


# PUBLIC_INTERFACE
def export_rows(
    rows: Sequence[Dict[str, Any]],
    columns: List[str],
    filename_base: str,
    export_format: str,
) -> StreamingResponse:
    """
    Convert rows to the requested format and return a StreamingResponse.

    Supported formats:
      - csv: text/csv (default for anything unrecognised)
      - xlsx: application/vnd.openxmlformats-officedocument.spreadsheetml.sheet
      - pdf: application/pdf (simple tabular rendering)
    """
    df = pd.DataFrame(list(rows), columns=columns)
    export_format = (export_format or "csv").lower()

    if export_format in ("xlsx", "excel"):
        buffer = io.BytesIO()
        # Excel cannot store tz-aware datetimes
        for col in df.columns:
            if isinstance(df[col].dtype, pd.DatetimeTZDtype):
                df[col] = df[col].dt.tz_localize(None)
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            df.to_excel(writer, index=False, sheet_name="Informe")
        buffer.seek(0)
        return StreamingResponse(
            buffer,
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            headers=_attachment(f"{filename_base}.xlsx"),
        )

    if export_format == "pdf":
        title = filename_base.replace("_", " ").title()
        return StreamingResponse(
            _to_pdf(df, title), media_type="application/pdf", headers=_attachment(f"{filename_base}.pdf")
        )

    buffer = io.StringIO()
    df.to_csv(buffer, index=False)
    buffer.seek(0)
    return StreamingResponse(buffer, media_type="text/csv", headers=_attachment(f"{filename_base}.csv"))
