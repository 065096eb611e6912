"""
낙관적 업데이트 엔진.

수정/삭제를 서버 확인 전에 저장소에 먼저 반영하고, 실패 시 되돌린다.

롤백 규칙 (필드 단위 last-write-wins)
- 같은 엔티티의 update 호출은 발행 순서대로 백엔드에 전달 (id별 asyncio.Lock, FIFO)
- (id, field)마다 진행 중인 쓰기 목록(chain)을 유지
- 실패한 쓰기가 chain의 마지막이면 직전 값으로 복원
- 뒤에 더 최신 쓰기가 있으면 화면은 그대로 두고 직전 값을 다음 쓰기에 넘긴다
- replace()로 새 스냅샷이 들어온 뒤에는 화면 복원을 하지 않는다
"""
import asyncio
import logging

from constants import NEW_ROW_ID, SERVER_MANAGED_FIELDS, MESSAGES
from services.errors import (
    ValidationError, TransientBackendError, error_from_result, user_message
)
from services.notifications import Notifier

logger = logging.getLogger(__name__)


class _FieldWrite:
    """(id, field) 하나에 대한 진행 중 쓰기"""
    __slots__ = ('value', 'prior', 'generation')

    def __init__(self, value, prior, generation):
        self.value = value
        self.prior = prior
        self.generation = generation


async def _call_backend(fn, *args):
    """백엔드 호출. 예외도 {'error': ...} 결과로 바꿔 호출 지점에서 처리한다."""
    try:
        result = await fn(*args)
    except Exception as e:
        logger.exception(f'[Optimistic] 백엔드 호출 실패: {getattr(fn, "__name__", fn)}')
        return TransientBackendError(str(e) or MESSAGES['unknown_error'])
    result = result or {}
    if result.get('error'):
        return error_from_result(result)
    return None


def _failed_positions(removed, failed_ids):
    """삭제 성공 행을 뺀 목록 기준으로 실패 행의 위치를 다시 계산"""
    succeeded_positions = [idx for idx, row in removed if row.get('id') not in failed_ids]
    return [
        (idx - sum(1 for pos in succeeded_positions if pos < idx), row)
        for idx, row in removed if row.get('id') in failed_ids
    ]


class OptimisticMutationEngine:

    def __init__(self, store, backend, pending=None, notifier=None, update_success_message=None):
        self.store = store
        self.backend = backend
        self.pending = pending
        self.notifier = notifier or Notifier()
        self.update_success_message = update_success_message or MESSAGES['update_success']
        self._chains = {}
        self._locks = {}
        self._lock_users = {}

    @property
    def can_reorder(self):
        return getattr(self.backend, 'reorder', None) is not None

    def in_flight(self, entity_id=None):
        """진행 중인 필드 쓰기 수 (entity_id 지정 시 해당 엔티티만)"""
        return sum(len(chain) for (eid, _), chain in self._chains.items()
                   if entity_id is None or eid == entity_id)

    # ===== 수정 =====

    async def update(self, entity_id, changes):
        """필드 수정: 즉시 반영 → 백엔드 update → 실패 시 해당 쓰기만 롤백"""
        changes = dict(changes or {})

        # 새 행은 네트워크 없이 초안만 수정
        if entity_id == NEW_ROW_ID:
            if self.pending is None or self.pending.row is None:
                return ValidationError('추가 중인 행이 없습니다.').to_result()
            for name, value in changes.items():
                self.pending.set_field(name, value)
            return {'success': True, 'draft': True}

        if not changes:
            return {'success': True}

        managed = [name for name in changes if name in SERVER_MANAGED_FIELDS]
        if managed:
            return ValidationError(f'수정할 수 없는 필드입니다: {", ".join(managed)}',
                                   field=managed[0]).to_result()

        prior = self.store.read_fields(entity_id, changes)
        if prior is None:
            return ValidationError(f'대상을 찾을 수 없습니다: {entity_id}').to_result()

        generation = self.store.generation
        writes = []
        for name, value in changes.items():
            write = _FieldWrite(value, prior[name], generation)
            self._chains.setdefault((entity_id, name), []).append(write)
            writes.append((name, write))
        self.store.apply_changes(entity_id, changes)

        lock = self._entity_lock(entity_id)
        try:
            async with lock:
                error = await _call_backend(self.backend.update, entity_id, changes)
                for name, write in writes:
                    self._settle(entity_id, name, write, failed=error is not None)
        finally:
            self._release_lock(entity_id)

        if error is not None:
            self.notifier.error('수정 실패', user_message(error), detail=error.message)
            return error.to_result()

        self.notifier.success('수정 완료', self.update_success_message)
        return {'success': True}

    def _settle(self, entity_id, name, write, failed):
        key = (entity_id, name)
        chain = self._chains.get(key) or []
        if write not in chain:
            return
        idx = chain.index(write)
        if failed:
            if idx == len(chain) - 1:
                if write.generation == self.store.generation:
                    self.store.apply_changes(entity_id, {name: write.prior})
            else:
                chain[idx + 1].prior = write.prior
        chain.pop(idx)
        if not chain:
            del self._chains[key]

    def _entity_lock(self, entity_id):
        lock = self._locks.get(entity_id)
        if lock is None:
            lock = self._locks[entity_id] = asyncio.Lock()
        self._lock_users[entity_id] = self._lock_users.get(entity_id, 0) + 1
        return lock

    def _release_lock(self, entity_id):
        users = self._lock_users.get(entity_id, 0) - 1
        if users <= 0:
            self._lock_users.pop(entity_id, None)
            self._locks.pop(entity_id, None)
        else:
            self._lock_users[entity_id] = users

    # ===== 삭제 =====

    async def delete_many(self, ids):
        """
        선택 행 일괄 삭제.
        임시 ID는 거절, 나머지는 즉시 화면에서 제거 후 동시에 삭제 요청.
        일부 실패는 성공 건을 되돌리지 않고, 실패 건만 원래 자리로 되돌린다.
        (대기 중 replace()가 있었다면 새 스냅샷을 그대로 둔다)
        """
        ids = list(ids or [])
        rejected = [entity_id for entity_id in ids if entity_id == NEW_ROW_ID]
        if rejected:
            self.notifier.warning('임시 데이터는 삭제할 수 없습니다', MESSAGES['draft_not_deletable'])

        real_ids = []
        for entity_id in ids:
            if entity_id != NEW_ROW_ID and entity_id not in real_ids:
                real_ids.append(entity_id)

        result = {
            'succeeded': [],
            'failed': [],
            'rejected': rejected,
            'errors': {},
            'needs_refresh': False,
        }
        if not real_ids:
            if not rejected:
                self.notifier.error('선택 오류', MESSAGES['no_selection'])
            return result

        generation = self.store.generation
        removed = self.store.remove_many(real_ids)

        outcomes = await asyncio.gather(
            *(_call_backend(self.backend.delete, entity_id) for entity_id in real_ids)
        )
        for entity_id, error in zip(real_ids, outcomes):
            if error is None:
                result['succeeded'].append(entity_id)
            else:
                result['failed'].append(entity_id)
                result['errors'][entity_id] = error.message

        succeeded, failed = len(result['succeeded']), len(result['failed'])
        if failed:
            if self.store.generation == generation:
                self.store.restore(_failed_positions(removed, set(result['failed'])))
            else:
                result['needs_refresh'] = True
            self.notifier.error('일부 삭제 실패', f'{succeeded}개 삭제 성공, {failed}개 실패')
        else:
            self.notifier.success('삭제 완료', f'{succeeded}개 항목이 삭제되었습니다.')
        result['summary'] = f'{succeeded} succeeded, {failed} failed'
        return result

    # ===== 순서 변경 =====

    async def reorder(self, entities):
        """
        드래그앤드롭 순서 변경. sort_order가 없으면 목록 위치를 사용.
        백엔드는 항목별로 순차 갱신하며 첫 실패에서 중단한다.
        """
        if not self.can_reorder:
            return {'success': True, 'skipped': True}

        items = []
        for position, entity in enumerate(entities or []):
            if entity.get('id') == NEW_ROW_ID:
                continue
            sort_order = entity.get('sort_order')
            items.append({
                'id': entity['id'],
                'sort_order': position if sort_order is None else sort_order,
            })
        if not items:
            return {'success': True}

        error = await _call_backend(self.backend.reorder, items)
        if error is not None:
            self.notifier.error('순서 변경 실패', user_message(error), detail=error.message)
            return error.to_result()

        for item in items:
            self.store.apply_changes(item['id'], {'sort_order': item['sort_order']})
        self.store.reorder([item['id'] for item in items])
        return {'success': True}
