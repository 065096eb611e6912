import io

from openpyxl import load_workbook

from services.rate_limit import limiter


def _create(client, table, payload):
    r = client.post(f"/api/{table}", json=payload)
    assert r.status_code == 201, r.get_json()
    return r.get_json()['data']


def test_list_requires_login(client):
    r = client.get("/api/companies")
    assert r.status_code == 401


def test_unknown_table_returns_404(login):
    r = login.get("/api/unknown")
    assert r.status_code == 404


def test_create_and_list_companies(login):
    _create(login, 'companies', {'name': 'B', 'sort_order': 2})
    _create(login, 'companies', {'name': 'A', 'sort_order': 1})

    r = login.get("/api/companies")
    assert r.status_code == 200
    data = r.get_json()
    assert data['success'] is True
    assert [row['name'] for row in data['rows']] == ['A', 'B']


def test_create_missing_required_field_returns_400(login):
    r = login.post("/api/companies", json={'name': ''})
    assert r.status_code == 400
    data = r.get_json()
    assert data['success'] is False
    assert data['kind'] == 'validation'
    assert 'name' in data['message']


def test_create_rejects_bad_business_number(login):
    r = login.post("/api/companies", json={'name': 'A', 'business_number': '123-45-67890'})
    assert r.status_code == 400


def test_business_number_is_stored_as_digits(login):
    row = _create(login, 'companies', {'name': 'A', 'business_number': '123-45-67895'})
    assert row['business_number'] == '1234567895'


def test_duplicate_business_number_returns_409(login):
    _create(login, 'companies', {'name': 'A', 'business_number': '1234567895'})
    r = login.post("/api/companies", json={'name': 'B', 'business_number': '1234567895'})
    assert r.status_code == 409
    assert r.get_json()['kind'] == 'conflict'


def test_get_update_delete(login):
    row = _create(login, 'departments', {'name': '공무팀'})

    r = login.put(f"/api/departments/{row['id']}", json={'name': '공사팀'})
    assert r.status_code == 200

    r = login.get(f"/api/departments/{row['id']}")
    assert r.get_json()['row']['name'] == '공사팀'

    r = login.delete(f"/api/departments/{row['id']}")
    assert r.status_code == 200
    assert login.get(f"/api/departments/{row['id']}").status_code == 404


def test_update_without_fields_returns_400(login):
    row = _create(login, 'positions', {'name': '대리'})
    r = login.put(f"/api/positions/{row['id']}", json={})
    assert r.status_code == 400


def test_delete_missing_returns_404(login):
    r = login.delete("/api/companies/404")
    assert r.status_code == 404


def test_viewer_cannot_write(viewer_login, grant_module):
    grant_module('viewer', 'admin')

    r = viewer_login.post("/api/companies", json={'name': 'A'})
    assert r.status_code == 403
    assert r.get_json()['message'] == '권한이 없습니다'

    r = viewer_login.get("/api/companies")
    assert r.status_code == 200


def test_reorder(login):
    a = _create(login, 'positions', {'name': '사원'})
    b = _create(login, 'positions', {'name': '대리'})

    r = login.post("/api/positions/reorder", json={'items': [
        {'id': b['id'], 'sort_order': 0},
        {'id': a['id'], 'sort_order': 1},
    ]})
    assert r.status_code == 200

    rows = login.get("/api/positions").get_json()['rows']
    assert [row['name'] for row in rows] == ['대리', '사원']


def test_reorder_not_supported_for_orders(login):
    r = login.post("/api/orders/reorder", json={'items': [{'id': '1', 'sort_order': 0}]})
    assert r.status_code == 400


def test_check_business_number(login):
    row = _create(login, 'companies', {'name': 'A', 'business_number': '1234567895'})

    r = login.get("/api/companies/check-business-number?number=123-45-67895")
    assert r.get_json() == {'success': True, 'valid': True, 'isDuplicate': True}

    r = login.get(f"/api/companies/check-business-number?number=1234567895&exclude_id={row['id']}")
    assert r.get_json()['isDuplicate'] is False

    r = login.get("/api/companies/check-business-number?number=1234567890")
    assert r.get_json()['valid'] is False

    assert login.get("/api/departments/check-business-number?number=1").status_code == 404


def test_orders_tree(login):
    parent = _create(login, 'orders', {
        'order_number': 'A-1', 'contract_name': '본공사', 'contract_date': '2025-01-10',
        'contract_amount': 100,
    })
    _create(login, 'orders', {
        'order_number': 'A-1-1', 'contract_name': '1차 변경', 'contract_date': '2025-02-10',
        'contract_type': 'change', 'contract_amount': 50, 'parent_order_id': parent['id'],
    })

    r = login.get("/api/orders/tree")
    assert r.status_code == 200
    orders = r.get_json()['orders']
    assert len(orders) == 1
    assert orders[0]['total_amount'] == 150
    assert orders[0]['contract_type_label'] == '신규 + 변경 (1)'
    assert [child['order_number'] for child in orders[0]['children']] == ['A-1', 'A-1-1']


def test_export(login):
    _create(login, 'companies', {'name': '인광이에스', 'business_number': '1234567895'})

    r = login.get("/api/companies/export")
    assert r.status_code == 200
    assert 'companies_' in r.headers['Content-Disposition']

    ws = load_workbook(io.BytesIO(r.data)).active
    assert ws['A1'].value == 'ID'
    assert ws['C2'].value == '123-45-67895'


def test_viewer_without_module_access_is_forbidden(viewer_login, grant_module):
    r = viewer_login.get("/api/orders")
    assert r.status_code == 403
    assert r.get_json()['kind'] == 'authorization'
    assert viewer_login.get("/api/orders/tree").status_code == 403

    grant_module('viewer', 'inkwang-es')
    assert viewer_login.get("/api/orders").status_code == 200
    assert viewer_login.get("/api/companies").status_code == 403


def test_order_number_is_generated_per_contract_year(login):
    first = _create(login, 'orders', {'contract_name': '본공사', 'contract_date': '2025-01-10'})
    second = _create(login, 'orders', {'order_number': '', 'contract_name': '추가공사',
                                       'contract_date': '2025-03-02'})
    other_year = _create(login, 'orders', {'contract_name': '신규', 'contract_date': '2026-01-05'})
    manual = _create(login, 'orders', {'order_number': 'M-1', 'contract_name': '수기',
                                       'contract_date': '2025-04-01'})

    assert first['order_number'] == '2025-001'
    assert second['order_number'] == '2025-002'
    assert other_year['order_number'] == '2026-001'
    assert manual['order_number'] == 'M-1'


def test_create_employee_with_references(login):
    company = _create(login, 'companies', {'name': '인광이에스'})
    department = _create(login, 'departments', {'name': '공무팀'})

    employee = _create(login, 'employees', {
        'name': '홍길동', 'hire_date': '2024-03-02',
        'company_id': company['id'], 'department_id': department['id'], 'position_id': '',
    })

    assert employee['employee_number'] == '2024001'
    assert employee['company_id'] == company['id']
    assert employee['department_id'] == department['id']
    assert employee['position_id'] is None
    assert employee['employment_status'] == 'active'


def test_employee_requires_company(login):
    r = login.post("/api/employees", json={'name': '홍길동', 'hire_date': '2024-03-02'})
    assert r.status_code == 400
    assert 'company_id' in r.get_json()['message']


def test_billing_takes_customer_from_order(login):
    customer = _create(login, 'customers', {'name': '발주처A', 'customer_type': '발주처'})
    order = _create(login, 'orders', {'contract_name': '본공사', 'contract_date': '2025-01-10',
                                      'customer_id': customer['id']})

    billing = _create(login, 'billings', {
        'order_id': order['id'], 'billing_date': '2025-02-01', 'billing_type': 'contract',
        'billing_amount': '1,000,000', 'expected_payment_date': '2025-03-01', 'billing_number': 'B-1',
    })

    assert billing['customer_id'] == customer['id']
    assert billing['billing_amount'] == 1000000
    assert billing['invoice_status'] == 'not_issued'


def test_billing_for_missing_order_is_validation_error(login):
    r = login.post("/api/billings", json={
        'order_id': '404', 'billing_date': '2025-02-01', 'billing_type': 'final',
        'expected_payment_date': '2025-03-01',
    })
    assert r.status_code == 400


def test_check_billing_number(login):
    order = _create(login, 'orders', {'contract_name': '본공사', 'contract_date': '2025-01-10'})
    billing = _create(login, 'billings', {
        'order_id': order['id'], 'billing_date': '2025-02-01', 'billing_type': 'interim',
        'expected_payment_date': '2025-03-01', 'billing_number': 'B-7',
    })

    r = login.get("/api/billings/check-billing-number?number=B-7")
    assert r.get_json() == {'success': True, 'isDuplicate': True}

    r = login.get(f"/api/billings/check-billing-number?number=B-7&exclude_id={billing['id']}")
    assert r.get_json()['isDuplicate'] is False

    assert login.get("/api/billings/check-billing-number").status_code == 400


def test_write_routes_are_rate_limited(app, login):
    previous = app.config.get('WRITE_RATE_LIMIT')
    app.config['WRITE_RATE_LIMIT'] = '2 per minute'
    limiter.reset()
    limiter.enabled = True
    try:
        assert login.post("/api/departments", json={'name': 'A'}).status_code == 201
        assert login.post("/api/departments", json={'name': 'B'}).status_code == 201
        r = login.post("/api/departments", json={'name': 'C'})
        assert r.status_code == 429
        assert r.get_json()['success'] is False

        # 조회는 쓰기 한도와 무관
        assert login.get("/api/departments").status_code == 200
    finally:
        limiter.enabled = False
        limiter.reset()
        app.config['WRITE_RATE_LIMIT'] = previous
