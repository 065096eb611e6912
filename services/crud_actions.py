"""
제네릭 CRUD 액션 팩토리 (SQLAlchemy).

테이블 화면이 쓰는 좁은 백엔드 인터페이스를 모델별로 만들어 준다.
- list / get_by_id: 실패 시 예외 (호출 측에서 그대로 노출)
- create / update / delete / reorder: 예외 대신 {'success': True, ...} 또는 {'error': message, 'kind': 종류}
- 쓰기는 기본적으로 관리자만 허용 (권한 오류도 같은 error 문자열 채널로 보고)
"""
import asyncio
import datetime
import logging
from types import SimpleNamespace

import pytz
from sqlalchemy import Integer, BigInteger, Boolean
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from constants import SERVER_MANAGED_FIELDS, MESSAGES
from db import get_db, db_session
from models import ID_LIKE_COLUMNS
from services.errors import (
    AuthorizationError, NotFoundError, TransientBackendError,
    VALIDATION, AUTHORIZATION, CONFLICT, TRANSIENT, NOT_FOUND,
)

logger = logging.getLogger(__name__)

KST = pytz.timezone('Asia/Seoul')


def now_kst():
    return datetime.datetime.now(KST).replace(tzinfo=None)


def _session_user():
    from apps.auth import get_current_user
    return get_current_user()


def coerce_id(value):
    """엔티티 id(문자열) → DB 정수 id. 변환 불가면 None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip()
    return int(text) if text.isdigit() else None


def _coerce_value(column, value):
    """폼/셀에서 들어온 문자열 값을 컬럼 타입에 맞춘다."""
    if column.name in ID_LIKE_COLUMNS:
        if value in (None, ''):
            return None
        coerced = coerce_id(value)
        if coerced is None:
            raise ValueError(f"'{column.name}' 값이 올바르지 않습니다: {value}")
        return coerced
    if isinstance(column.type, (Integer, BigInteger)) and not isinstance(value, bool):
        if value in (None, ''):
            return None if column.nullable else 0
        if isinstance(value, str):
            value = value.replace(',', '').strip()
        try:
            return int(float(value))
        except (TypeError, ValueError):
            raise ValueError(f"'{column.name}'에는 숫자를 입력해주세요: {value}")
    if isinstance(column.type, Boolean) and isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'y', 'yes', 'on')
    if value == '' and column.nullable:
        return None
    return value


def create_crud_actions(model, require_admin_for_write=True, skip_auth_for_read=False,
                        user_loader=None, before_create=None):
    """
    모델별 CRUD 액션 생성.
    before_create(db, obj): 저장 직전 호출 (자동 채번 등). ValueError 는 검증 오류로 보고.

    @example
        company_actions = create_crud_actions(Company)
        company_actions.create({'name': '인광이에스'})
    """
    load_user = user_loader or _session_user
    table_name = model.__tablename__
    columns = {c.name: c for c in model.__table__.columns}

    def _error(kind, message):
        return {'error': message, 'kind': kind}

    def check_permission(write=False):
        if not write and skip_auth_for_read:
            return None
        user = load_user()
        if not user:
            return MESSAGES['auth_required']
        if write and require_admin_for_write and user.role != 'ADMIN':
            return MESSAGES['permission_denied']
        return None

    def _apply(obj, data):
        for field, value in data.items():
            if field in SERVER_MANAGED_FIELDS:
                continue
            column = columns.get(field)
            if column is None:
                raise ValueError(f"알 수 없는 필드: {field}")
            setattr(obj, field, _coerce_value(column, value))

    def list_rows(order_by='created_at', ascending=False):
        """목록 조회"""
        error = check_permission()
        if error:
            raise AuthorizationError(error)
        db = get_db()
        column = getattr(model, order_by, None)
        if column is None:
            raise TransientBackendError(f'조회 실패: 정렬 컬럼 없음 ({order_by})')
        try:
            query = db.query(model).order_by(column.asc() if ascending else column.desc(), model.id.asc())
            return [row.to_dict() for row in query.all()]
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"[CrudActions] {table_name} 조회 실패: {e}")
            raise TransientBackendError(f'조회 실패: {e}')

    def get_by_id(entity_id):
        """ID로 단일 조회"""
        error = check_permission()
        if error:
            raise AuthorizationError(error)
        db = get_db()
        row_id = coerce_id(entity_id)
        row = db.query(model).filter(model.id == row_id).first() if row_id is not None else None
        if row is None:
            raise NotFoundError(f'조회 실패: 항목을 찾을 수 없습니다 ({entity_id})')
        return row.to_dict()

    def create(data):
        """생성"""
        error = check_permission(write=True)
        if error:
            return _error(AUTHORIZATION, error)
        db = get_db()
        try:
            obj = model()
            _apply(obj, data or {})
            if before_create is not None:
                before_create(db, obj)
            now = now_kst()
            if 'created_at' in columns:
                obj.created_at = now
            if 'updated_at' in columns:
                obj.updated_at = now
            db.add(obj)
            db.commit()
            db.refresh(obj)
            logger.info(f"[CrudActions] Created {table_name}: {obj.id}")
            return {'success': True, 'data': obj.to_dict()}
        except ValueError as e:
            db.rollback()
            return _error(VALIDATION, f'생성 실패: {e}')
        except IntegrityError as e:
            db.rollback()
            logger.error(f"[CrudActions] Create failed for {table_name}: {e.orig}")
            return _error(CONFLICT, f'생성 실패: 중복되었거나 필수 값이 없습니다 ({e.orig})')
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"[CrudActions] Create exception for {table_name}: {e}")
            return _error(TRANSIENT, f'생성 실패: {e}')

    def update(entity_id, data):
        """수정"""
        error = check_permission(write=True)
        if error:
            return _error(AUTHORIZATION, error)
        db = get_db()
        row_id = coerce_id(entity_id)
        obj = db.query(model).filter(model.id == row_id).first() if row_id is not None else None
        if obj is None:
            return _error(NOT_FOUND, f'수정 실패: 항목을 찾을 수 없습니다 ({entity_id})')
        try:
            _apply(obj, data or {})
            if 'updated_at' in columns:
                obj.updated_at = now_kst()
            db.commit()
            return {'success': True}
        except ValueError as e:
            db.rollback()
            return _error(VALIDATION, f'수정 실패: {e}')
        except IntegrityError as e:
            db.rollback()
            logger.error(f"[CrudActions] Update failed for {table_name} #{entity_id}: {e.orig}")
            return _error(CONFLICT, f'수정 실패: 중복된 값입니다 ({e.orig})')
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"[CrudActions] Update exception for {table_name} #{entity_id}: {e}")
            return _error(TRANSIENT, f'수정 실패: {e}')

    def delete(entity_id):
        """삭제"""
        error = check_permission(write=True)
        if error:
            return _error(AUTHORIZATION, error)
        db = get_db()
        row_id = coerce_id(entity_id)
        obj = db.query(model).filter(model.id == row_id).first() if row_id is not None else None
        if obj is None:
            return _error(NOT_FOUND, f'삭제 실패: 항목을 찾을 수 없습니다 ({entity_id})')
        try:
            db.delete(obj)
            db.commit()
            return {'success': True}
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"[CrudActions] Delete failed for {table_name} #{entity_id}: {e}")
            return _error(TRANSIENT, f'삭제 실패: {e}')

    def reorder(items):
        """배치 순서 변경 (항목별 순차 갱신, 첫 실패에서 중단)"""
        error = check_permission(write=True)
        if error:
            return _error(AUTHORIZATION, error)
        db = get_db()
        for item in items or []:
            row_id = coerce_id(item.get('id'))
            obj = db.query(model).filter(model.id == row_id).first() if row_id is not None else None
            if obj is None:
                return _error(NOT_FOUND, f"순서 변경 실패: 항목을 찾을 수 없습니다 ({item.get('id')})")
            try:
                obj.sort_order = int(item.get('sort_order') or 0)
                if 'updated_at' in columns:
                    obj.updated_at = now_kst()
                db.commit()
            except (SQLAlchemyError, TypeError, ValueError) as e:
                db.rollback()
                logger.error(f"[CrudActions] Reorder failed for {table_name}: {e}")
                return _error(TRANSIENT, f'순서 변경 실패: {e}')
        return {'success': True}

    def check_duplicate(field, value, exclude_id=None):
        """고유 필드 중복 여부 (수정 시 자기 자신 제외)"""
        db = get_db()
        query = db.query(model).filter(getattr(model, field) == value)
        exclude = coerce_id(exclude_id)
        if exclude is not None:
            query = query.filter(model.id != exclude)
        return {'isDuplicate': query.first() is not None}

    return SimpleNamespace(
        table_name=table_name,
        model=model,
        list=list_rows,
        get_by_id=get_by_id,
        create=create,
        update=update,
        delete=delete,
        reorder=reorder if 'sort_order' in columns else None,
        check_duplicate=check_duplicate,
    )


class AsyncCrudBackend:
    """
    동기 CRUD 액션을 엔진이 await 할 수 있는 코루틴 인터페이스로 감싼다.
    DB 호출은 워커 스레드에서 실행하므로 이벤트 루프를 막지 않고, 일괄 삭제도 동시에 진행된다.
    """

    def __init__(self, actions):
        self.actions = actions
        if actions.reorder is None:
            self.reorder = None

    async def _run(self, fn, *args):
        def call():
            try:
                return fn(*args)
            finally:
                # 스레드별 scoped 세션 정리
                db_session.remove()
        return await asyncio.to_thread(call)

    async def list(self, order_by='created_at', ascending=False):
        return await self._run(self.actions.list, order_by, ascending)

    async def get_by_id(self, entity_id):
        return await self._run(self.actions.get_by_id, entity_id)

    async def create(self, data):
        return await self._run(self.actions.create, data)

    async def update(self, entity_id, data):
        return await self._run(self.actions.update, entity_id, data)

    async def delete(self, entity_id):
        return await self._run(self.actions.delete, entity_id)

    async def reorder(self, items):
        return await self._run(self.actions.reorder, items)

    async def check_duplicate(self, field, value, exclude_id=None):
        return await self._run(self.actions.check_duplicate, field, value, exclude_id)
