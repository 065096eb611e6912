"""
CRUD 테이블 화면 컨트롤러.

화면 하나가 소유하는 상태(저장소, 새 행, 낙관적 엔진, 필터/정렬, 편집 셀 순서)를 묶는다.
- 새 행 추가/저장/취소 (Escape 키로 취소)
- 기존 행 수정/삭제 (낙관적 업데이트)
- 필터/정렬 (저장소는 서버 순서 그대로, 여기서 파생)
- 드래그앤드롭 순서 변경
"""
import logging

from constants import NEW_ROW_ID, TABLE_CONFIGS
from services.cell_edit import CellEditSession, FieldOrder
from services.entity_store import EntityStore
from services.keyboard import KeyListenerRegistry
from services.notifications import Notifier
from services.optimistic import OptimisticMutationEngine
from services.pending_row import PendingRowController

logger = logging.getLogger(__name__)


def _sort_key(value):
    return '' if value is None else str(value)


class CrudTable:

    def __init__(self, backend, default_values=None, required_fields=None,
                 editable_columns=None, order_by='created_at', ascending=False,
                 notifier=None, key_listeners=None, label=None):
        self.backend = backend
        self.default_values = dict(default_values or {})
        self.required_fields = list(required_fields or [])
        self.order_by = order_by
        self.ascending = ascending
        self.label = label
        self.notifier = notifier or Notifier()
        self.key_listeners = key_listeners if key_listeners is not None else KeyListenerRegistry()

        self.store = EntityStore()
        self.pending = PendingRowController(self.store, self.notifier, self.key_listeners)
        self.engine = OptimisticMutationEngine(self.store, backend, self.pending, self.notifier)
        self.field_order = FieldOrder(editable_columns or [])

        self.editing_row_id = None
        self.custom_filters = {}
        self.custom_sort = None

    @classmethod
    def for_table(cls, table_name, backend, **kwargs):
        """constants.TABLE_CONFIGS 설정으로 생성"""
        config = TABLE_CONFIGS[table_name]
        return cls(
            backend,
            default_values=config['default_values'],
            required_fields=config['required_fields'],
            editable_columns=config['editable_columns'],
            order_by=config['order_by'],
            ascending=config['ascending'],
            label=config['label'],
            **kwargs
        )

    # ===== 데이터 =====

    def load(self, snapshot):
        """서버 스냅샷 반영 (화면 진입/새로고침)"""
        self.store.replace(snapshot)

    async def refresh(self):
        """백엔드 목록 재조회. 조회 오류는 호출 측으로 그대로 전달."""
        try:
            rows = await self.backend.list(self.order_by, self.ascending)
        except Exception as e:
            logger.error(f"[CrudTable] {self.label or ''} 목록 조회 실패: {e}")
            raise
        self.store.replace(rows)
        return rows

    @property
    def new_row(self):
        return self.pending.row

    @property
    def is_saving(self):
        return self.pending.is_saving

    @property
    def can_reorder(self):
        return self.engine.can_reorder

    # ===== 새 행 =====

    def add_row(self):
        if self.pending.begin(self.default_values):
            self.editing_row_id = NEW_ROW_ID
            return True
        return False

    def update_new_row(self, field, value):
        return self.pending.set_field(field, value)

    async def save_new_row(self):
        result = await self.pending.commit(self.required_fields, self.backend.create)
        if result.get('success'):
            self.editing_row_id = None
        return result

    def cancel_new_row(self):
        self.pending.cancel()
        self.editing_row_id = None

    # ===== 기존 행 =====

    async def save(self, entity_id, field, value):
        """셀 저장 (새 행이면 초안만 수정)"""
        return await self.engine.update(entity_id, {field: value})

    async def delete_rows(self, ids):
        return await self.engine.delete_many(ids)

    async def reorder(self, rows):
        return await self.engine.reorder(rows)

    # ===== 필터/정렬 =====

    def set_filter(self, column, values):
        if values:
            self.custom_filters[column] = [str(v) for v in values]
        else:
            self.custom_filters.pop(column, None)

    def set_sort(self, column, direction='asc'):
        if not column:
            self.custom_sort = None
            return
        if direction not in ('asc', 'desc'):
            raise ValueError(f'정렬 방향은 asc/desc 중 하나여야 합니다: {direction}')
        self.custom_sort = {'column': column, 'direction': direction}

    def filtered_data(self):
        rows = self.store.confirmed()
        for column, values in self.custom_filters.items():
            rows = [row for row in rows if str(row.get(column)) in values]
        return rows

    def sorted_data(self):
        rows = self.filtered_data()
        if not self.custom_sort:
            return rows
        column = self.custom_sort['column']
        return sorted(rows, key=lambda row: _sort_key(row.get(column)),
                      reverse=self.custom_sort['direction'] == 'desc')

    def table_data(self):
        """새 행을 포함한 최종 표시 데이터"""
        rows = self.sorted_data()
        if self.pending.row is not None:
            return [self.pending.row] + rows
        return rows

    # ===== 셀 편집 =====

    def cell(self, row_id, column_id, kind='text', options=None, format_display=None):
        """편집 셀 세션 생성 (Tab 이동 순서는 현재 표시 순서 기준)"""
        row = self.store.get(row_id)
        if row is None:
            raise KeyError(row_id)
        self.field_order.set_rows([r.get('id') for r in self.table_data()])
        return CellEditSession(
            row_id, column_id, row.get(column_id), self.save,
            kind=kind, options=options, field_order=self.field_order,
            format_display=format_display,
        )
