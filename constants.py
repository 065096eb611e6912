# Constants for the application

# 새 행 임시 ID (모든 테이블 공통, 서버 id는 정수 문자열이라 겹치지 않음)
NEW_ROW_ID = 'new-row-temp-id'

# DB가 채우는 필드 (새 행 저장 시 제거)
SERVER_MANAGED_FIELDS = ('id', 'created_at', 'updated_at')

# 계약 구분
CONTRACT_TYPE = {
    'new': '신규',
    'change': '변경',
}

# 계약 상태
CONTRACT_STATUS = {
    'quotation': '견적',
    'contract': '계약',
    'in_progress': '진행',
    'completed': '완료',
}

CUSTOMER_TYPES = ('발주처', '검증업체', '외상매입처', '기타')
CUSTOMER_STATUS = ('거래중', '중단')

# 청구 구분 / 세금계산서 발행 상태
BILLING_TYPE = {
    'contract': '계약금',
    'interim': '중도금',
    'final': '잔금',
}

INVOICE_STATUS = {
    'issued': '발행',
    'not_issued': '미발행',
}

# 재직 상태
EMPLOYMENT_STATUS = {
    'active': '재직',
    'inactive': '퇴사',
}

# 사용자 역할
ROLES = {
    'ADMIN': '관리자',
    'MANAGER': '매니저',
    'STAFF': '직원',
    'VIEWER': '뷰어'
}

# 모듈(메뉴) 구성. 관리자 외 사용자는 user_module_access 로 허용된 모듈의 테이블만 사용
MODULES = {
    'admin': {
        'name': '관리자',
        'tables': ('companies', 'departments', 'positions', 'employees'),
    },
    'inkwang-es': {
        'name': '인광이에스',
        'tables': ('customers', 'orders', 'billings'),
    },
}

# 모바일 판정 기준 (px 미만이면 탭 한 번으로 편집)
MOBILE_BREAKPOINT = 768

# 사업자등록번호 중복 검사 디바운스 (초)
DUPLICATE_CHECK_DEBOUNCE = 0.5

# 알림 메시지
MESSAGES = {
    'required_fields': '필수 입력 항목을 확인해주세요.',
    'create_success': '새로운 항목이 추가되었습니다.',
    'update_success': '정보가 성공적으로 수정되었습니다.',
    'draft_in_progress': '현재 추가 중인 행을 먼저 저장하거나 취소해주세요.',
    'draft_not_deletable': '추가 중인 행은 먼저 저장하거나 취소해주세요.',
    'commit_in_progress': '저장이 진행 중입니다. 잠시 후 다시 시도해주세요.',
    'permission_denied': '권한이 없습니다',
    'auth_required': '인증이 필요합니다',
    'transient_failure': '일시적인 오류로 처리하지 못했습니다. 다시 시도해주세요.',
    'unknown_error': '알 수 없는 오류가 발생했습니다',
    'no_selection': '삭제할 항목을 선택해주세요.',
    'module_denied': '접근 권한이 없는 메뉴입니다.',
}

# 테이블별 편집 설정 (기본값, 필수 필드, 편집 가능한 컬럼 순서)
TABLE_CONFIGS = {
    'companies': {
        'label': '회사',
        'default_values': {'name': '', 'business_number': '', 'sort_order': 0},
        'required_fields': ['name'],
        'editable_columns': ['name', 'business_number'],
        'order_by': 'sort_order',
        'ascending': True,
        'reorderable': True,
    },
    'departments': {
        'label': '부서',
        'default_values': {'name': '', 'sort_order': 0},
        'required_fields': ['name'],
        'editable_columns': ['name'],
        'order_by': 'sort_order',
        'ascending': True,
        'reorderable': True,
    },
    'positions': {
        'label': '직급',
        'default_values': {'name': '', 'sort_order': 0},
        'required_fields': ['name'],
        'editable_columns': ['name'],
        'order_by': 'sort_order',
        'ascending': True,
        'reorderable': True,
    },
    'employees': {
        'label': '사원',
        'default_values': {'employee_number': '', 'name': '', 'email': '', 'employment_status': 'active',
                           'hire_date': '', 'company_id': '', 'department_id': '', 'position_id': ''},
        'required_fields': ['name', 'company_id', 'hire_date'],
        'editable_columns': ['name', 'email', 'employment_status', 'hire_date',
                             'company_id', 'department_id', 'position_id'],
        'order_by': 'created_at',
        'ascending': False,
        'reorderable': False,
    },
    'customers': {
        'label': '고객',
        'default_values': {'name': '', 'customer_type': '발주처', 'status': '거래중',
                           'business_number': '', 'manager_name': '', 'phone': '', 'notes': ''},
        'required_fields': ['name', 'customer_type'],
        'editable_columns': ['name', 'customer_type', 'status', 'business_number',
                             'manager_name', 'phone', 'notes'],
        'order_by': 'created_at',
        'ascending': False,
        'reorderable': False,
    },
    'orders': {
        'label': '수주',
        'default_values': {'order_number': '', 'contract_name': '', 'contract_type': 'new',
                           'contract_status': 'quotation', 'contract_date': '',
                           'contract_amount': 0, 'notes': ''},
        'required_fields': ['contract_name', 'contract_date'],
        'editable_columns': ['contract_name', 'contract_type', 'contract_status',
                             'contract_date', 'contract_amount', 'manager_name', 'notes'],
        'order_by': 'contract_date',
        'ascending': False,
        'reorderable': False,
    },
    'billings': {
        'label': '청구',
        'default_values': {'billing_number': '', 'order_id': '', 'billing_date': '', 'billing_type': 'contract',
                           'billing_amount': 0, 'expected_payment_date': '',
                           'invoice_status': 'not_issued', 'notes': ''},
        'required_fields': ['order_id', 'billing_date', 'billing_type', 'expected_payment_date'],
        'editable_columns': ['billing_number', 'billing_date', 'billing_type', 'billing_amount',
                             'expected_payment_date', 'invoice_status', 'notes'],
        'order_by': 'billing_date',
        'ascending': False,
        'reorderable': False,
    },
}

# 엑셀 내보내기 헤더
COLUMN_LABELS = {
    'id': 'ID',
    'name': '이름',
    'business_number': '사업자등록번호',
    'sort_order': '순서',
    'customer_type': '구분',
    'status': '상태',
    'manager_name': '담당자',
    'phone': '연락처',
    'notes': '비고',
    'order_number': '수주번호',
    'contract_name': '계약명',
    'contract_type': '계약구분',
    'contract_status': '계약상태',
    'contract_date': '계약일',
    'contract_amount': '계약금액',
    'employee_number': '사번',
    'email': '이메일',
    'employment_status': '재직상태',
    'hire_date': '입사일',
    'company_id': '회사',
    'department_id': '부서',
    'position_id': '직급',
    'billing_number': '청구번호',
    'billing_date': '청구일',
    'billing_type': '청구구분',
    'billing_amount': '청구금액',
    'expected_payment_date': '입금예정일',
    'invoice_status': '계산서',
    'created_at': '등록일시',
    'updated_at': '수정일시',
}
