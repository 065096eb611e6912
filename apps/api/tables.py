"""
테이블 CRUD API (회사/부서/직급/사원/고객/수주/청구).

모든 테이블이 create_crud_actions 로 만든 같은 액션을 쓰고,
오류 dict 의 kind 로 HTTP 상태 코드를 정한다.
- 테이블이 속한 모듈 권한이 없으면 403 (module_required)
- 쓰기 라우트는 WRITE_RATE_LIMIT 한도 적용
"""
from flask import Blueprint, request, jsonify, send_file, current_app, abort

from constants import (
    TABLE_CONFIGS, COLUMN_LABELS, CONTRACT_TYPE, CONTRACT_STATUS,
    BILLING_TYPE, INVOICE_STATUS, EMPLOYMENT_STATUS,
)
from models import Company, Department, Position, Employee, Customer, Order, Billing
from apps.auth import login_required, module_required
from services.business_number import extract_numbers, format_business_number, validate_business_number
from services.crud_actions import create_crud_actions
from services.errors import (
    TableError, classify_error, VALIDATION, AUTHORIZATION, CONFLICT, NOT_FOUND, TRANSIENT
)
from services.numbering import BEFORE_CREATE
from services.order_tree import materialize, summarize_tree
from services.pending_row import find_missing_fields
from services.rate_limit import limiter, write_limit
from services.table_export import export_filename, export_to_excel

tables_bp = Blueprint('tables', __name__, url_prefix='/api')

TABLE_MODELS = {
    'companies': Company,
    'departments': Department,
    'positions': Position,
    'employees': Employee,
    'customers': Customer,
    'orders': Order,
    'billings': Billing,
}

STATUS_BY_KIND = {
    VALIDATION: 400,
    AUTHORIZATION: 403,
    NOT_FOUND: 404,
    CONFLICT: 409,
    TRANSIENT: 500,
}

# 자동 채번 컬럼 (편집 대상은 아니지만 내보내기에 포함)
AUTO_NUMBER_COLUMNS = {
    'orders': ['order_number'],
    'employees': ['employee_number'],
}

_actions_cache = {}


def get_actions(table):
    """테이블 이름 → CRUD 액션 (없는 테이블이면 404)"""
    model = TABLE_MODELS.get(table)
    if model is None:
        abort(404)
    if table not in _actions_cache:
        _actions_cache[table] = create_crud_actions(model, before_create=BEFORE_CREATE.get(table))
    return _actions_cache[table]


def _fail(message, kind):
    return jsonify({'success': False, 'message': message, 'kind': kind}), STATUS_BY_KIND.get(kind, 500)


def _fail_from_result(result):
    kind = result.get('kind') or classify_error(result.get('error'))
    return _fail(result.get('error'), kind)


def _validate_payload(table, payload, creating):
    """입력 검증. 문제가 없으면 None, 있으면 오류 메시지."""
    if creating:
        missing = find_missing_fields(payload, TABLE_CONFIGS[table]['required_fields'])
        if missing:
            return f"필수 입력 항목을 확인해주세요: {', '.join(missing)}"
    if payload.get('business_number'):
        digits = extract_numbers(str(payload['business_number']))
        if not validate_business_number(digits):
            return '유효하지 않은 사업자등록번호입니다.'
        payload['business_number'] = digits
    return None


@tables_bp.route('/<table>', methods=['GET'])
@login_required
@module_required()
def api_table_list(table):
    """목록 조회 (?order_by=&ascending=true|false, 기본값은 테이블 설정)"""
    actions = get_actions(table)
    config = TABLE_CONFIGS[table]
    order_by = request.args.get('order_by') or config['order_by']
    ascending_arg = request.args.get('ascending')
    ascending = config['ascending'] if ascending_arg is None else ascending_arg.lower() == 'true'
    try:
        rows = actions.list(order_by, ascending)
    except TableError as e:
        current_app.logger.error(f"{table} 목록 조회 오류: {e.message}")
        return _fail(e.message, e.kind)
    return jsonify({'success': True, 'rows': rows})


@tables_bp.route('/<table>/<entity_id>', methods=['GET'])
@login_required
@module_required()
def api_table_get(table, entity_id):
    actions = get_actions(table)
    try:
        row = actions.get_by_id(entity_id)
    except TableError as e:
        return _fail(e.message, e.kind)
    return jsonify({'success': True, 'row': row})


@tables_bp.route('/<table>', methods=['POST'])
@limiter.limit(write_limit)
@login_required
@module_required()
def api_table_create(table):
    """생성 (새 행 저장)"""
    actions = get_actions(table)
    payload = request.get_json(silent=True) or {}
    error = _validate_payload(table, payload, creating=True)
    if error:
        return _fail(error, VALIDATION)

    result = actions.create(payload)
    if result.get('error'):
        current_app.logger.warning(f"{table} 생성 실패: {result['error']}")
        return _fail_from_result(result)
    return jsonify({'success': True, 'data': result['data']}), 201


@tables_bp.route('/<table>/<entity_id>', methods=['PUT'])
@limiter.limit(write_limit)
@login_required
@module_required()
def api_table_update(table, entity_id):
    """필드 수정 (셀 편집)"""
    actions = get_actions(table)
    payload = request.get_json(silent=True) or {}
    if not payload:
        return _fail('수정할 항목이 없습니다.', VALIDATION)
    error = _validate_payload(table, payload, creating=False)
    if error:
        return _fail(error, VALIDATION)

    result = actions.update(entity_id, payload)
    if result.get('error'):
        current_app.logger.warning(f"{table} #{entity_id} 수정 실패: {result['error']}")
        return _fail_from_result(result)
    return jsonify({'success': True})


@tables_bp.route('/<table>/<entity_id>', methods=['DELETE'])
@limiter.limit(write_limit)
@login_required
@module_required()
def api_table_delete(table, entity_id):
    actions = get_actions(table)
    result = actions.delete(entity_id)
    if result.get('error'):
        current_app.logger.warning(f"{table} #{entity_id} 삭제 실패: {result['error']}")
        return _fail_from_result(result)
    return jsonify({'success': True})


@tables_bp.route('/<table>/reorder', methods=['POST'])
@limiter.limit(write_limit)
@login_required
@module_required()
def api_table_reorder(table):
    """드래그앤드롭 순서 저장. body: {'items': [{'id', 'sort_order'}, ...]}"""
    actions = get_actions(table)
    if actions.reorder is None:
        return _fail('순서를 변경할 수 없는 테이블입니다.', VALIDATION)
    payload = request.get_json(silent=True) or {}
    items = payload.get('items')
    if not isinstance(items, list) or not items:
        return _fail('items가 필요합니다.', VALIDATION)

    result = actions.reorder(items)
    if result.get('error'):
        return _fail_from_result(result)
    return jsonify({'success': True})


@tables_bp.route('/<table>/check-business-number', methods=['GET'])
@login_required
@module_required()
def api_check_business_number(table):
    """사업자등록번호 유효성 + 중복 여부 (?number=&exclude_id=)"""
    actions = get_actions(table)
    if 'business_number' not in actions.model.__table__.columns:
        abort(404)
    number = extract_numbers(request.args.get('number', ''))
    if not validate_business_number(number):
        return jsonify({'success': True, 'valid': False, 'isDuplicate': False})
    result = actions.check_duplicate('business_number', number, request.args.get('exclude_id'))
    return jsonify({'success': True, 'valid': True, 'isDuplicate': result['isDuplicate']})


@tables_bp.route('/billings/check-billing-number', methods=['GET'])
@login_required
@module_required('billings')
def api_check_billing_number():
    """청구번호 중복 여부 (?number=&exclude_id=)"""
    number = request.args.get('number', '').strip()
    if not number:
        return _fail('청구번호를 입력해주세요.', VALIDATION)
    result = get_actions('billings').check_duplicate('billing_number', number, request.args.get('exclude_id'))
    return jsonify({'success': True, 'isDuplicate': result['isDuplicate']})


@tables_bp.route('/orders/tree', methods=['GET'])
@login_required
@module_required('orders')
def api_orders_tree():
    """계약 목록을 원계약/변경계약 트리로 변환해 반환 (총액, 계약구분 라벨 포함)"""
    actions = get_actions('orders')
    try:
        rows = actions.list('contract_date', False)
    except TableError as e:
        current_app.logger.error(f"계약 트리 조회 오류: {e.message}")
        return _fail(e.message, e.kind)
    return jsonify({'success': True, 'orders': summarize_tree(materialize(rows))})


def _export_columns(table):
    formatters = {
        'business_number': format_business_number,
        'contract_type': lambda value: CONTRACT_TYPE.get(value, value),
        'contract_status': lambda value: CONTRACT_STATUS.get(value, value),
        'billing_type': lambda value: BILLING_TYPE.get(value, value),
        'invoice_status': lambda value: INVOICE_STATUS.get(value, value),
        'employment_status': lambda value: EMPLOYMENT_STATUS.get(value, value),
    }
    fields = ['id'] + AUTO_NUMBER_COLUMNS.get(table, []) + TABLE_CONFIGS[table]['editable_columns'] + ['created_at']
    return [(field, COLUMN_LABELS.get(field, field), formatters.get(field)) for field in fields]


@tables_bp.route('/<table>/export', methods=['GET'])
@login_required
@module_required()
def api_table_export(table):
    """현재 목록 엑셀 다운로드"""
    actions = get_actions(table)
    config = TABLE_CONFIGS[table]
    try:
        rows = actions.list(config['order_by'], config['ascending'])
    except TableError as e:
        return _fail(e.message, e.kind)

    buffer = export_to_excel(rows, _export_columns(table), sheet_title=config['label'])
    return send_file(
        buffer,
        as_attachment=True,
        download_name=export_filename(table),
        mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    )
