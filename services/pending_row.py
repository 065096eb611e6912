"""
새 행(임시 ID 행) 추가/저장/취소 컨트롤러.

상태: EMPTY → COMPOSING → (COMMITTING → EMPTY | COMPOSING), COMPOSING → EMPTY (취소)
- 새 행은 저장소 전체에서 동시에 1개만 존재
- 저장(commit)은 한 번에 하나만 진행, 진행 중 재호출은 거절
- Escape 키 리스너는 새 행이 있는 동안만 등록
"""
import logging

from constants import NEW_ROW_ID, SERVER_MANAGED_FIELDS, MESSAGES
from services.errors import (
    ValidationError, TransientBackendError, error_from_result, user_message, BUSY
)
from services.keyboard import KeyListenerRegistry
from services.notifications import Notifier

logger = logging.getLogger(__name__)

EMPTY = 'empty'
COMPOSING = 'composing'
COMMITTING = 'committing'


def is_blank(value):
    """필수 필드 판정용 빈 값 (None, 빈 문자열, 공백 문자열)"""
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def find_missing_fields(row, required_fields):
    return [name for name in required_fields if is_blank(row.get(name))]


class PendingRowController:

    def __init__(self, store, notifier=None, key_listeners=None,
                 required_fields_message=None, create_success_message=None):
        self.store = store
        self.notifier = notifier or Notifier()
        self.key_listeners = key_listeners if key_listeners is not None else KeyListenerRegistry()
        self.required_fields_message = required_fields_message or MESSAGES['required_fields']
        self.create_success_message = create_success_message or MESSAGES['create_success']
        self._committing = False
        self._draft_token = 0
        self._remove_escape_listener = None

    @property
    def row(self):
        return self.store.pending

    @property
    def state(self):
        if self.store.pending is None:
            return EMPTY
        return COMMITTING if self._committing else COMPOSING

    @property
    def is_saving(self):
        return self._committing

    def begin(self, defaults=None):
        """새 행 추가 시작. 이미 추가 중이면 경고만 남기고 False."""
        if self.store.pending is not None:
            self.notifier.warning('진행 중인 작업이 있습니다', MESSAGES['draft_in_progress'])
            return False

        row = dict(defaults or {})
        row['id'] = NEW_ROW_ID
        self._draft_token += 1
        self.store.set_pending(row)
        self._remove_escape_listener = self.key_listeners.add(self._on_key)
        return True

    def set_field(self, name, value):
        """새 행 필드 수정. 새 행이 없으면 무시."""
        row = self.store.pending
        if row is None:
            return False
        if name == 'id':
            return False
        updated = dict(row)
        updated[name] = value
        self.store.set_pending(updated)
        return True

    def cancel(self):
        """새 행 폐기 (무조건)"""
        self.store.clear_pending()
        self._detach_listener()

    async def commit(self, required_fields, create_fn):
        """
        필수 필드 검증 후 create_fn 호출.
        create_fn 결과는 {'data': entity} 또는 {'error': message} 모두 허용.
        """
        row = self.store.pending
        if row is None:
            return ValidationError('추가 중인 행이 없습니다.').to_result()

        if self._committing:
            self.notifier.warning('저장 중', MESSAGES['commit_in_progress'])
            return {'error': MESSAGES['commit_in_progress'], 'kind': BUSY}

        missing = find_missing_fields(row, required_fields)
        if missing:
            self.notifier.error('필수 정보 누락', self.required_fields_message)
            result = ValidationError(self.required_fields_message, field=missing[0]).to_result()
            result['missing_fields'] = missing
            return result

        payload = {k: v for k, v in row.items() if k not in SERVER_MANAGED_FIELDS}

        token = self._draft_token
        self._committing = True
        try:
            try:
                result = await create_fn(payload)
            except Exception as e:
                logger.exception('[PendingRow] create 호출 실패')
                result = {'error': str(e) or MESSAGES['unknown_error'], 'exception': True}
        finally:
            self._committing = False

        result = result or {}
        if result.get('error'):
            if result.get('exception'):
                error = TransientBackendError(result['error'])
            else:
                error = error_from_result(result)
            # 새 행은 수정할 수 있도록 그대로 둔다
            self.notifier.error('저장 실패', user_message(error), detail=error.message)
            return error.to_result()

        created = result.get('data')
        if created:
            self.store.prepend(created)
        # 저장 중 취소 후 새로 시작한 행은 건드리지 않는다
        if self._draft_token == token:
            self.cancel()
        self.notifier.success('저장 완료', self.create_success_message)
        return {'success': True, 'data': created}

    def _on_key(self, event):
        if event.key == 'Escape':
            self.cancel()

    def _detach_listener(self):
        if self._remove_escape_listener is not None:
            self._remove_escape_listener()
            self._remove_escape_listener = None
