"""
사용자별 모듈(메뉴) 접근 권한.

관리자는 모든 모듈, 그 외 사용자는 user_module_access 에서 허용(is_enabled)된 모듈만 사용한다.
"""
import logging

from sqlalchemy.exc import SQLAlchemyError

from constants import MODULES
from db import get_db
from models import User, UserModuleAccess
from services.crud_actions import coerce_id, now_kst
from services.errors import VALIDATION, NOT_FOUND, TRANSIENT

logger = logging.getLogger(__name__)


def module_for_table(table):
    """테이블이 속한 모듈 코드 (모르는 테이블이면 None)"""
    for code, module in MODULES.items():
        if table in module['tables']:
            return code
    return None


def _enabled_codes(user_id):
    db = get_db()
    rows = db.query(UserModuleAccess).filter(
        UserModuleAccess.user_id == user_id,
        UserModuleAccess.is_enabled.is_(True),
    ).all()
    return {row.module_code for row in rows}


def has_module_access(user, module_code):
    if user is None or module_code not in MODULES:
        return False
    if user.role == 'ADMIN':
        return True
    return module_code in _enabled_codes(user.id)


def accessible_modules(user):
    """사용자가 쓸 수 있는 모듈 코드 목록 (MODULES 순서)"""
    if user is None:
        return []
    if user.role == 'ADMIN':
        return list(MODULES)
    enabled = _enabled_codes(user.id)
    return [code for code in MODULES if code in enabled]


def list_user_module_access(user_id):
    """모듈별 허용 여부 (관리자 화면용). 사용자가 없으면 None."""
    db = get_db()
    row_id = coerce_id(user_id)
    user = db.query(User).filter(User.id == row_id).first() if row_id is not None else None
    if user is None:
        return None
    enabled = set(accessible_modules(user))
    return [
        {'code': code, 'name': module['name'], 'tables': list(module['tables']), 'is_enabled': code in enabled}
        for code, module in MODULES.items()
    ]


def set_module_access(user_id, module_code, is_enabled):
    """모듈 접근 허용/해제. {'success': True} 또는 {'error', 'kind'}"""
    if module_code not in MODULES:
        return {'error': f'알 수 없는 모듈입니다: {module_code}', 'kind': NOT_FOUND}
    if not isinstance(is_enabled, bool):
        return {'error': 'is_enabled 는 true/false 여야 합니다.', 'kind': VALIDATION}

    db = get_db()
    row_id = coerce_id(user_id)
    user = db.query(User).filter(User.id == row_id).first() if row_id is not None else None
    if user is None:
        return {'error': f'사용자를 찾을 수 없습니다: {user_id}', 'kind': NOT_FOUND}

    try:
        access = db.query(UserModuleAccess).filter_by(user_id=user.id, module_code=module_code).first()
        if access is None:
            access = UserModuleAccess(user_id=user.id, module_code=module_code, created_at=now_kst())
            db.add(access)
        access.is_enabled = is_enabled
        access.updated_at = now_kst()
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[ModuleAccess] 권한 변경 실패 user={user_id} module={module_code}: {e}")
        return {'error': f'권한 변경 실패: {e}', 'kind': TRANSIENT}

    logger.info(f"[ModuleAccess] user={user.id} module={module_code} enabled={is_enabled}")
    return {'success': True}
