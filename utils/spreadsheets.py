import re
import logging
import zipfile
from datetime import datetime
from io import BytesIO, StringIO
from typing import Any, Dict, List, Optional

import pandas as pd

from utils.datetime_utils import US_TZ

logger = logging.getLogger(__name__)

TEMPLATE_HEADER_ERROR = 'Invalid template. Column headers must match the template exactly.'
EMPTY_SHEET_ERROR = 'The first worksheet is empty.'

XLSX_MIME = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

_UNSAFE_FILENAME_CHARS = re.compile(r'[/\\:*?"<>|]')


class SpreadsheetError(ValueError):
    """Raised when an uploaded workbook cannot be used."""


def _cell(value):
    if value is None:
        return ''
    if isinstance(value, float) and pd.isna(value):
        return ''
    return value


def read_sheet_rows(file) -> List[List[Any]]:
    """
    Read the first worksheet of an .xlsx upload as a list of rows.

    Args:
        file: path, bytes buffer or Streamlit UploadedFile

    Returns:
        list: rows as lists of cell values ('' for blank cells)

    Raises:
        SpreadsheetError: when the workbook cannot be read or the sheet is empty
    """
    try:
        df = pd.read_excel(file, sheet_name=0, header=None, dtype=object, engine='openpyxl')
    except (ValueError, OSError, KeyError, zipfile.BadZipFile) as e:
        logger.error(f"❌ Failed to read workbook: {str(e)}")
        raise SpreadsheetError(f"Failed to read workbook: {str(e)}") from e

    df = df.dropna(how='all')
    if df.empty:
        raise SpreadsheetError(EMPTY_SHEET_ERROR)

    return [[_cell(v) for v in row] for row in df.itertuples(index=False, name=None)]


def _normalized_header(row) -> List[str]:
    cells = [str(c).strip().lower() for c in row]
    while cells and cells[-1] == '':
        cells.pop()
    return cells


def validate_template_header(rows, expected):
    """Reject a sheet whose header row is not exactly the template's header."""
    if not rows:
        raise SpreadsheetError(EMPTY_SHEET_ERROR)
    if _normalized_header(rows[0]) != [h.strip().lower() for h in expected]:
        raise SpreadsheetError(TEMPLATE_HEADER_ERROR)


def rows_to_records(rows) -> List[Dict[str, Any]]:
    """Turn header + data rows into dicts keyed by the header text."""
    if not rows:
        return []
    header = [str(c).strip() for c in rows[0]]
    records = []
    for row in rows[1:]:
        padded = list(row) + [''] * (len(header) - len(row))
        records.append({h: padded[i] for i, h in enumerate(header) if h})
    return records


def _write_sheet(writer, df, sheet_name, preamble=None):
    workbook = writer.book
    startrow = len(preamble) + 1 if preamble else 0

    df = df.fillna('')
    df.to_excel(writer, index=False, sheet_name=sheet_name, startrow=startrow)
    worksheet = writer.sheets[sheet_name]

    header_format = workbook.add_format({
        'bold': True,
        'font_color': 'white',
        'bg_color': '#0066cc',
        'align': 'center',
        'valign': 'top',
        'border': 1
    })
    label_format = workbook.add_format({'bold': True, 'align': 'left'})

    # Metadata rows sit above the table, followed by one blank row
    for r, meta in enumerate(preamble or []):
        for c, value in enumerate(meta):
            worksheet.write(r, c, value, label_format if c == 0 else None)

    for col_num, value in enumerate(df.columns.values):
        worksheet.write(startrow, col_num, value, header_format)
        values = [len(str(v)) for v in df.iloc[:, col_num].tolist()] if len(df) else []
        width = min(max([len(str(value))] + values) + 2, 60)
        worksheet.set_column(col_num, col_num, width)

    worksheet.freeze_panes(startrow + 1, 0)


def build_workbook(sheets: Dict[str, pd.DataFrame], preambles: Optional[Dict[str, List[List[Any]]]] = None) -> bytes:
    """
    Write one or more DataFrames to an .xlsx payload.

    Args:
        sheets: sheet name -> DataFrame, in tab order
        preambles: optional sheet name -> metadata rows written above the table

    Returns:
        bytes: the workbook, ready for st.download_button
    """
    buffer = BytesIO()
    writer = pd.ExcelWriter(
        buffer,
        engine='xlsxwriter',
        engine_kwargs={'options': {'nan_inf_to_errors': True}}
    )
    for sheet_name, df in sheets.items():
        _write_sheet(writer, df, sheet_name, (preambles or {}).get(sheet_name))
    writer.close()
    return buffer.getvalue()


def rows_to_workbook(header, rows, sheet_name, preamble=None) -> bytes:
    df = pd.DataFrame(rows, columns=header)
    return build_workbook({sheet_name: df}, {sheet_name: preamble} if preamble else None)


def template_workbook(header, sample_rows=None, sheet_name='Template') -> bytes:
    """Blank import template: the header row plus optional example rows."""
    return rows_to_workbook(header, sample_rows or [], sheet_name)


def safe_filename_part(value) -> str:
    return _UNSAFE_FILENAME_CHARS.sub('-', str(value or ''))


def csv_bytes(df) -> bytes:
    """DataFrame as CSV under a "Data as of" line, for a download button"""
    output = StringIO()

    current_time_us = datetime.now(US_TZ)
    date_str = f"Data as of {current_time_us.strftime('%Y-%m-%d %H:%M:%S')} (New York)"
    output.write(date_str + '\n\n')

    df.to_csv(output, index=False)
    return output.getvalue().encode('utf-8')
