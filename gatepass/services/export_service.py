import io
from datetime import date
from typing import Iterable, Optional

import openpyxl
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from gatepass.models.visitor import Visitor, utcnow

EXPORT_COLUMNS = ["Visitor ID", "Name", "Email", "Mobile", "Purpose", "To Meet", "Status", "Requested At"]


def export_file_name(from_date: Optional[date], to_date: Optional[date]) -> str:
    start = from_date.isoformat() if from_date else "all"
    end = to_date.isoformat() if to_date else "all"
    return f"Visitors_{start}_to_{end}_{utcnow().date().isoformat()}.xlsx"


def _row(visitor: Visitor) -> list:
    return [
        visitor.visitor_code or str(visitor.id),
        visitor.name,
        visitor.email or "-",
        visitor.mobile,
        visitor.purpose,
        visitor.to_meet or visitor.other_person or "-",
        visitor.status.value,
        visitor.created_at.strftime("%d/%m/%Y, %H:%M:%S") if visitor.created_at else "",
    ]


def auto_fit_columns(ws, min_width=12):
    for column in ws.columns:
        max_length = max((len(str(cell.value)) for cell in column if cell.value), default=0)
        ws.column_dimensions[get_column_letter(column[0].column)].width = min(max(max_length + 2, min_width), 50)


def build_visitors_xlsx(visitors: Iterable[Visitor]) -> io.BytesIO:
    """Workbook with a single "Visitors" sheet, one row per record."""
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Visitors"

    ws.append(EXPORT_COLUMNS)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    ws.freeze_panes = "A2"

    for visitor in visitors:
        ws.append(_row(visitor))

    auto_fit_columns(ws)

    output = io.BytesIO()
    wb.save(output)
    output.seek(0)
    return output
