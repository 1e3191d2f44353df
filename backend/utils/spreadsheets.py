from io import BytesIO
from typing import Iterable, List, Sequence

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

HEADER_FONT = Font(bold=True, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="4F81BD", end_color="4F81BD", fill_type="solid")


def build_workbook(title: str, headers: Sequence[str], rows: Iterable[Sequence]) -> BytesIO:
    """Single-sheet workbook with a styled header row, returned as an in-memory file."""
    wb = Workbook()
    ws = wb.active
    ws.title = title[:31]

    ws.append(list(headers))
    for cell in ws[1]:
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = Alignment(horizontal="center")

    for row in rows:
        ws.append(list(row))

    for index, header in enumerate(headers, start=1):
        width = max([len(str(header))] + [len(str(cell.value or "")) for cell in ws[get_column_letter(index)]])
        ws.column_dimensions[get_column_letter(index)].width = width + 2

    output = BytesIO()
    wb.save(output)
    output.seek(0)
    return output


def read_rows(contents: bytes, required: Sequence[str]) -> List[dict]:
    """
    Read the first sheet of an .xlsx upload into dicts keyed by the header row.

    Headers are matched case-insensitively with spaces turned into underscores,
    so "Base Sell Price" maps to ``base_sell_price``. Cells are read as text
    and empty cells become None. Raises ValueError when a required column is
    missing.
    """
    df = pd.read_excel(BytesIO(contents), dtype=str)
    df.columns = [str(column).strip().lower().replace(" ", "_") for column in df.columns]
    missing = [column for column in required if column not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {', '.join(missing)}")

    rows = []
    for record in df.to_dict(orient="records"):
        rows.append({key: (None if pd.isna(value) else value) for key, value in record.items()})
    return rows
