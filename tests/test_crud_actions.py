import asyncio
import threading
from types import SimpleNamespace

import pytest

from models import Company, Order
from services.crud_actions import create_crud_actions, AsyncCrudBackend, coerce_id
from services.errors import AuthorizationError, NotFoundError

ADMIN = SimpleNamespace(role='ADMIN')
STAFF = SimpleNamespace(role='STAFF')


@pytest.fixture
def companies(app):
    return create_crud_actions(Company, user_loader=lambda: ADMIN)


def test_coerce_id():
    assert coerce_id('12') == 12
    assert coerce_id(' 3 ') == 3
    assert coerce_id('new-row-temp-id') is None
    assert coerce_id(True) is None


def test_create_returns_entity_with_string_id(companies):
    result = companies.create({'name': '인광이에스', 'business_number': '1234567895',
                               'id': '999', 'created_at': 'ignored'})
    assert result['success']
    data = result['data']
    assert isinstance(data['id'], str) and data['id'] != '999'
    assert data['business_number'] == '1234567895'
    assert data['created_at'] is not None


def test_duplicate_unique_value_is_conflict(companies):
    companies.create({'name': 'A', 'business_number': '1234567895'})
    result = companies.create({'name': 'B', 'business_number': '1234567895'})
    assert result['kind'] == 'conflict'
    assert '중복' in result['error']


def test_unknown_field_is_validation_error(companies):
    result = companies.create({'name': 'A', 'nickname': 'x'})
    assert result['kind'] == 'validation'


def test_list_orders_by_column(companies):
    companies.create({'name': 'B', 'sort_order': 2})
    companies.create({'name': 'A', 'sort_order': 1})
    rows = companies.list('sort_order', True)
    assert [row['name'] for row in rows] == ['A', 'B']
    rows = companies.list('sort_order', False)
    assert [row['name'] for row in rows] == ['B', 'A']


def test_update_and_get_by_id(companies):
    created = companies.create({'name': 'old'})['data']
    assert companies.update(created['id'], {'name': 'new'}) == {'success': True}
    assert companies.get_by_id(created['id'])['name'] == 'new'


def test_missing_entity(companies):
    assert companies.update('404', {'name': 'x'})['kind'] == 'not_found'
    assert companies.delete('404')['kind'] == 'not_found'
    with pytest.raises(NotFoundError):
        companies.get_by_id('404')


def test_delete(companies):
    created = companies.create({'name': 'x'})['data']
    assert companies.delete(created['id']) == {'success': True}
    assert companies.list('sort_order', True) == []


def test_reorder_stops_at_first_failure(companies):
    a = companies.create({'name': 'A'})['data']
    b = companies.create({'name': 'B'})['data']

    result = companies.reorder([
        {'id': b['id'], 'sort_order': 0},
        {'id': '404', 'sort_order': 1},
        {'id': a['id'], 'sort_order': 2},
    ])

    assert result['kind'] == 'not_found'
    assert companies.get_by_id(b['id'])['sort_order'] == 0
    assert companies.get_by_id(a['id'])['sort_order'] == 0


def test_reorder_only_for_sortable_models(app):
    orders = create_crud_actions(Order, user_loader=lambda: ADMIN)
    assert orders.reorder is None
    assert AsyncCrudBackend(orders).reorder is None


def test_writes_require_admin(app):
    actions = create_crud_actions(Company, user_loader=lambda: STAFF)
    result = actions.create({'name': 'x'})
    assert result == {'error': '권한이 없습니다', 'kind': 'authorization'}
    assert actions.list('sort_order', True) == []


def test_reads_require_login(app):
    actions = create_crud_actions(Company, user_loader=lambda: None)
    with pytest.raises(AuthorizationError):
        actions.list('sort_order', True)
    assert actions.create({'name': 'x'})['error'] == '인증이 필요합니다'

    public = create_crud_actions(Company, skip_auth_for_read=True, user_loader=lambda: None)
    assert public.list('sort_order', True) == []


def test_amount_strings_are_coerced(app):
    orders = create_crud_actions(Order, user_loader=lambda: ADMIN)
    result = orders.create({'order_number': 'A-1', 'contract_name': '본공사',
                            'contract_date': '2025-01-31', 'contract_amount': '1,500,000'})
    assert result['data']['contract_amount'] == 1500000

    bad = orders.update(result['data']['id'], {'contract_amount': '천원'})
    assert bad['kind'] == 'validation'


def test_check_duplicate_excludes_self(companies):
    created = companies.create({'name': 'A', 'business_number': '1234567895'})['data']
    assert companies.check_duplicate('business_number', '1234567895') == {'isDuplicate': True}
    assert companies.check_duplicate('business_number', '1234567895', created['id']) == {'isDuplicate': False}


def test_async_backend_wraps_actions(companies, run):
    backend = AsyncCrudBackend(companies)
    created = run(backend.create({'name': 'A'}))['data']
    assert run(backend.update(created['id'], {'name': 'B'})) == {'success': True}
    rows = run(backend.list('sort_order', True))
    assert rows[0]['name'] == 'B'


def test_async_backend_runs_blocking_calls_concurrently(run):
    # 두 삭제가 동시에 진행 중이어야 barrier 를 통과한다
    barrier = threading.Barrier(2, timeout=5)

    def blocking_delete(entity_id):
        barrier.wait()
        return {'success': True}

    actions = SimpleNamespace(reorder=None, delete=blocking_delete)
    backend = AsyncCrudBackend(actions)

    async def scenario():
        return await asyncio.gather(backend.delete('1'), backend.delete('2'))

    assert run(scenario()) == [{'success': True}, {'success': True}]
