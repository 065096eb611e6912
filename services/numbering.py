"""
자동 채번 (수주번호, 사번).

번호를 비워 둔 채 생성하면 create 직전에 채운다.
- 수주번호: 계약연도-일련번호 (2025-001, 2025-002, ...)
- 사번: 입사연도 + 일련번호 (2025001, 2025002, ...)
연도는 날짜 필드 앞 4자리, 날짜가 없거나 형식이 다르면 올해(KST).
"""
import logging

from models import Order, Employee
from services.crud_actions import now_kst

logger = logging.getLogger(__name__)

SEQUENCE_WIDTH = 3


def _year_of(date_text):
    text = str(date_text or '').strip()
    if len(text) >= 4 and text[:4].isdigit():
        return text[:4]
    return str(now_kst().year)


def next_sequence_number(db, column, prefix, width=SEQUENCE_WIDTH):
    """prefix로 시작하는 기존 번호 중 가장 큰 일련번호 + 1"""
    highest = 0
    for (value,) in db.query(column).filter(column.like(f'{prefix}%')).all():
        suffix = (value or '')[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return f'{prefix}{highest + 1:0{width}d}'


def assign_order_number(db, order):
    if (order.order_number or '').strip():
        return
    order.order_number = next_sequence_number(db, Order.order_number, f'{_year_of(order.contract_date)}-')
    logger.info(f"[Numbering] 수주번호 자동 생성: {order.order_number}")


def assign_employee_number(db, employee):
    if (employee.employee_number or '').strip():
        return
    employee.employee_number = next_sequence_number(db, Employee.employee_number, _year_of(employee.hire_date))
    logger.info(f"[Numbering] 사번 자동 생성: {employee.employee_number}")


def fill_billing_customer(db, billing):
    """청구의 고객을 비워 두면 수주의 고객으로 채운다."""
    if billing.customer_id is not None or billing.order_id is None:
        return
    order = db.query(Order).filter(Order.id == billing.order_id).first()
    if order is None:
        raise ValueError(f'수주를 찾을 수 없습니다: {billing.order_id}')
    billing.customer_id = order.customer_id


# 테이블별 create 직전 처리
BEFORE_CREATE = {
    'orders': assign_order_number,
    'employees': assign_employee_number,
    'billings': fill_billing_customer,
}

