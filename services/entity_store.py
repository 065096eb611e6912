"""
테이블 화면 1개 분량의 엔티티 저장소.

서버에서 받은 확정 목록(confirmed)과 추가 중인 새 행(pending)을 보관한다.
정렬/필터는 하지 않으며 서버 순서를 그대로 유지한다.
쓰기는 PendingRowController 와 OptimisticMutationEngine 만 수행한다.
"""
import copy

from constants import NEW_ROW_ID


class EntityStore:

    def __init__(self, snapshot=None):
        self._rows = []
        self._pending = None
        # replace() 호출 횟수, 낙관적 롤백이 새 스냅샷을 덮어쓰지 않도록 비교용
        self.generation = 0
        if snapshot:
            self.replace(snapshot)

    # ===== 조회 =====

    def replace(self, snapshot):
        """서버 스냅샷으로 확정 목록 전체 교체 (병합 없음, 마지막 호출 우선)"""
        rows = [dict(row) for row in (snapshot or [])]
        seen = set()
        for row in rows:
            row_id = row.get('id')
            if row_id is None:
                raise ValueError('id가 없는 행은 저장할 수 없습니다.')
            if row_id == NEW_ROW_ID:
                raise ValueError(f'서버 행에 임시 ID({NEW_ROW_ID})를 사용할 수 없습니다.')
            if row_id in seen:
                raise ValueError(f'중복된 id: {row_id}')
            seen.add(row_id)
        self._rows = rows
        self.generation += 1

    def displayed(self):
        """표시용 목록: 새 행이 있으면 맨 앞에 붙인다."""
        if self._pending is not None:
            return [self._pending] + list(self._rows)
        return list(self._rows)

    def confirmed(self):
        return list(self._rows)

    @property
    def pending(self):
        return self._pending

    def get(self, entity_id):
        if self._pending is not None and entity_id == NEW_ROW_ID:
            return self._pending
        for row in self._rows:
            if row.get('id') == entity_id:
                return row
        return None

    def contains(self, entity_id):
        return any(row.get('id') == entity_id for row in self._rows)

    def __len__(self):
        return len(self._rows)

    def __iter__(self):
        return iter(self.displayed())

    # ===== 쓰기 (엔진 전용) =====

    def set_pending(self, row):
        self._pending = row

    def clear_pending(self):
        self._pending = None

    def prepend(self, entity):
        """생성 확정된 엔티티를 맨 앞에 추가. 같은 id가 있으면 교체 후 맨 앞으로."""
        entity = dict(entity)
        entity_id = entity.get('id')
        self._rows = [row for row in self._rows if row.get('id') != entity_id]
        self._rows.insert(0, entity)

    def read_fields(self, entity_id, fields):
        """지정 필드의 현재 값 (롤백용 사본). 엔티티가 없으면 None."""
        row = self.get(entity_id)
        if row is None:
            return None
        return {name: copy.deepcopy(row.get(name)) for name in fields}

    def apply_changes(self, entity_id, changes):
        """엔티티 필드 덮어쓰기. 대상이 없으면 False."""
        for idx, row in enumerate(self._rows):
            if row.get('id') == entity_id:
                updated = dict(row)
                updated.update(changes)
                self._rows[idx] = updated
                return True
        return False

    def reorder(self, ids):
        """ids 순서대로 재배치 (목록에 없는 행은 기존 순서로 뒤에 둔다)"""
        position = {entity_id: idx for idx, entity_id in enumerate(ids)}
        head = sorted((row for row in self._rows if row.get('id') in position),
                      key=lambda row: position[row.get('id')])
        tail = [row for row in self._rows if row.get('id') not in position]
        self._rows = head + tail

    def remove_many(self, ids):
        """id 목록에 해당하는 행을 제거하고 [(원래 위치, 행), ...] 을 반환"""
        targets = set(ids)
        removed = [(idx, row) for idx, row in enumerate(self._rows) if row.get('id') in targets]
        self._rows = [row for row in self._rows if row.get('id') not in targets]
        return removed

    def restore(self, removed):
        """remove_many 로 뺀 행 일부를 원래 위치 근처에 되돌린다 (이미 있는 id는 건너뜀)"""
        for idx, row in sorted(removed, key=lambda item: item[0]):
            if self.contains(row.get('id')):
                continue
            self._rows.insert(min(idx, len(self._rows)), row)
