"""테이블 엑셀 내보내기 (표시 중인 행 기준)."""
import datetime
import io

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Border, Side, Alignment

from constants import NEW_ROW_ID


def export_filename(prefix, today=None):
    today = today or datetime.date.today()
    return f"{prefix}_{today.strftime('%Y-%m-%d')}.xlsx"


def build_workbook(rows, columns, sheet_title='목록'):
    """
    rows: 엔티티 dict 목록, columns: [(필드명, 헤더, 포맷함수|None), ...]
    추가 중인 새 행은 내보내지 않는다.
    """
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title[:31]

    header_fill = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
    header_font = Font(bold=True, color="FFFFFF")
    border = Border(
        left=Side(style='thin'),
        right=Side(style='thin'),
        top=Side(style='thin'),
        bottom=Side(style='thin')
    )
    center_alignment = Alignment(horizontal='center', vertical='center')

    for col_idx, column in enumerate(columns, start=1):
        cell = ws.cell(row=1, column=col_idx, value=column[1])
        cell.fill = header_fill
        cell.font = header_font
        cell.border = border
        cell.alignment = center_alignment

    row_idx = 2
    for row in rows:
        if row.get('id') == NEW_ROW_ID:
            continue
        for col_idx, column in enumerate(columns, start=1):
            field, formatter = column[0], (column[2] if len(column) > 2 else None)
            value = row.get(field)
            if formatter is not None:
                value = formatter(value)
            elif isinstance(value, (list, dict)):
                value = str(value)
            ws.cell(row=row_idx, column=col_idx, value=value).border = border
        row_idx += 1

    for col_idx, column in enumerate(columns, start=1):
        width = max(10, len(str(column[1])) * 2 + 4)
        ws.column_dimensions[ws.cell(row=1, column=col_idx).column_letter].width = width

    return wb


def export_to_excel(rows, columns, sheet_title='목록'):
    """워크북을 메모리 버퍼로 저장해 반환 (send_file 용)"""
    buffer = io.BytesIO()
    build_workbook(rows, columns, sheet_title).save(buffer)
    buffer.seek(0)
    return buffer
