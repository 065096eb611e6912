import datetime

from openpyxl import load_workbook

from constants import NEW_ROW_ID
from services.business_number import format_business_number
from services.table_export import build_workbook, export_filename, export_to_excel


def test_export_filename():
    assert export_filename('companies', datetime.date(2025, 1, 31)) == 'companies_2025-01-31.xlsx'


def test_build_workbook_skips_draft_and_formats_values():
    rows = [
        {'id': NEW_ROW_ID, 'name': '작성 중'},
        {'id': '1', 'name': '인광이에스', 'business_number': '1234567895'},
    ]
    columns = [('name', '이름'), ('business_number', '사업자등록번호', format_business_number)]

    ws = build_workbook(rows, columns, sheet_title='회사').active

    assert ws.title == '회사'
    assert [cell.value for cell in ws[1]] == ['이름', '사업자등록번호']
    assert ws[1][0].font.bold
    assert [cell.value for cell in ws[2]] == ['인광이에스', '123-45-67895']
    assert ws.max_row == 2


def test_export_to_excel_round_trips_through_openpyxl():
    buffer = export_to_excel([{'id': '1', 'name': 'A', 'attachments': ['a.pdf']}],
                             [('name', '이름'), ('attachments', '첨부')])
    ws = load_workbook(buffer).active
    assert ws['A2'].value == 'A'
    assert ws['B2'].value == "['a.pdf']"
