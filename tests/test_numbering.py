from types import SimpleNamespace

from models import Order, Employee
from services.crud_actions import create_crud_actions, now_kst
from services.numbering import assign_order_number, assign_employee_number

ADMIN = SimpleNamespace(role='ADMIN')


def test_order_number_skips_non_numeric_suffixes(app):
    orders = create_crud_actions(Order, user_loader=lambda: ADMIN, before_create=assign_order_number)
    orders.create({'order_number': '2025-010', 'contract_name': 'a', 'contract_date': '2025-01-01'})
    orders.create({'order_number': '2025-0x1', 'contract_name': 'b', 'contract_date': '2025-01-01'})

    created = orders.create({'contract_name': 'c', 'contract_date': '2025-05-05'})['data']
    assert created['order_number'] == '2025-011'


def test_order_without_dated_contract_uses_current_year(app):
    orders = create_crud_actions(Order, user_loader=lambda: ADMIN, before_create=assign_order_number)
    created = orders.create({'contract_name': '미정', 'contract_date': '미정'})['data']
    assert created['order_number'] == f'{now_kst().year}-001'


def test_employee_numbers_count_up_within_hire_year(app):
    employees = create_crud_actions(Employee, user_loader=lambda: ADMIN, before_create=assign_employee_number)
    first = employees.create({'name': 'a', 'hire_date': '2023-01-02', 'company_id': '1'})['data']
    second = employees.create({'name': 'b', 'hire_date': '2023-07-01', 'company_id': '1'})['data']
    assert (first['employee_number'], second['employee_number']) == ('2023001', '2023002')
