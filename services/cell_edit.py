"""
셀 단위 인라인 편집 상태 머신.

VIEWING → EDITING → (SAVING → VIEWING) | VIEWING (취소)
- 진입: 데스크톱 더블클릭, 모바일(뷰포트 폭 768 미만) 싱글 탭
- Enter: 저장 (notes는 Ctrl/Meta+Enter), Escape: 되돌리고 종료
- Tab/Shift+Tab: 변경 시 저장 후 FieldOrder 기준 다음/이전 편집 셀로 이동
- 저장 실패 시 마지막 확정 값으로 되돌림
"""
import datetime
import logging
import re

from constants import MOBILE_BREAKPOINT, MESSAGES
from services.errors import ValidationError, BUSY
from services.keyboard import KeyEvent

logger = logging.getLogger(__name__)

VIEWING = 'viewing'
EDITING = 'editing'
SAVING = 'saving'

CELL_KINDS = ('text', 'date', 'select', 'combobox', 'notes')

DATE_MIN_YEAR = 1900
DATE_MAX_YEAR = 2100


def is_touch_viewport(viewport_width):
    return viewport_width is not None and viewport_width < MOBILE_BREAKPOINT


# ============================================
# 날짜 입력
# ============================================

def format_date_input(raw, previous=''):
    """
    입력 중 날짜 포맷팅 (yyyy-mm-dd 자동 하이픈).
    숫자 8자리를 넘으면 이전 값을 유지한다.
    """
    digits = re.sub(r'\D', '', raw or '')
    if len(digits) > 8:
        return previous
    if len(digits) >= 5:
        formatted = f'{digits[:4]}-{digits[4:6]}'
        if len(digits) > 6:
            formatted += f'-{digits[6:8]}'
        return formatted
    if len(digits) == 4:
        return f'{digits}-'
    return digits


def validate_date(value):
    """빈 값은 허용, 그 외에는 실제 존재하는 yyyy-mm-dd 인지 확인"""
    if not value:
        return True
    digits = re.sub(r'-', '', value)
    if len(digits) != 8 or not digits.isdigit():
        return False
    year, month, day = int(digits[:4]), int(digits[4:6]), int(digits[6:8])
    if not (1 <= month <= 12 and 1 <= day <= 31):
        return False
    if not (DATE_MIN_YEAR <= year <= DATE_MAX_YEAR):
        return False
    try:
        datetime.date(year, month, day)
    except ValueError:
        return False
    return True


# ============================================
# 편집 셀 순서 (Tab 이동)
# ============================================

class FieldOrder:
    """행 순서 × 편집 가능한 컬럼 순서. Tab 이동은 이 목록의 인덱스로만 계산한다."""

    def __init__(self, columns, row_ids=None):
        self.columns = list(columns)
        self.row_ids = list(row_ids or [])

    def set_rows(self, row_ids):
        self.row_ids = list(row_ids)

    def is_editable(self, column_id):
        return column_id in self.columns

    def _positions(self):
        return [(row_id, column) for row_id in self.row_ids for column in self.columns]

    def neighbor(self, row_id, column_id, backwards=False):
        """다음(또는 이전) 편집 셀 (row_id, column_id). 없으면 None."""
        positions = self._positions()
        try:
            idx = positions.index((row_id, column_id))
        except ValueError:
            return None
        idx += -1 if backwards else 1
        if 0 <= idx < len(positions):
            return positions[idx]
        return None


# ============================================
# 편집 세션
# ============================================

class CellEditSession:

    def __init__(self, row_id, column_id, value, on_update, kind='text',
                 options=None, field_order=None, format_display=None):
        if kind not in CELL_KINDS:
            raise ValueError(f'지원하지 않는 셀 종류: {kind}')
        self.row_id = row_id
        self.column_id = column_id
        self.kind = kind
        self.on_update = on_update
        self.options = list(options or [])
        self.field_order = field_order
        self.format_display = format_display
        self.committed = '' if value is None else value
        self.value = self.committed
        self.state = VIEWING
        self.last_error = None

    # ----- 상태 -----

    @property
    def dirty(self):
        return self.value != self.committed

    @property
    def is_editing(self):
        return self.state == EDITING

    @property
    def is_saving(self):
        return self.state == SAVING

    @property
    def display_value(self):
        if self.kind in ('select', 'combobox'):
            for option in self.options:
                if option.get('id') == self.value:
                    return option.get('name')
        if self.value in (None, ''):
            return '-'
        if self.format_display:
            try:
                return self.format_display(self.value)
            except Exception:
                logger.exception('[CellEdit] formatDisplay 오류')
                return self.value
        return self.value

    # ----- 진입/입력 -----

    def double_click(self):
        return self._enter()

    def tap(self, viewport_width):
        """모바일에서만 탭으로 편집 진입"""
        if is_touch_viewport(viewport_width):
            return self._enter()
        return False

    def _enter(self):
        if self.state != VIEWING:
            return False
        self.state = EDITING
        self.last_error = None
        return True

    def input(self, raw):
        """입력값 변경 (저장 중에는 입력 불가)"""
        if self.state != EDITING:
            return False
        if self.kind == 'date':
            self.value = format_date_input(raw, self.value)
        else:
            self.value = raw
        return True

    def sync(self, value):
        """서버 값이 바뀌면 보기 상태에서만 반영"""
        value = '' if value is None else value
        self.committed = value
        if self.state == VIEWING:
            self.value = value

    def search(self, query):
        """콤보박스 옵션 검색 (대소문자 무시, 부분 일치)"""
        if not query:
            return list(self.options)
        needle = query.strip().lower()
        return [option for option in self.options if needle in str(option.get('name', '')).lower()]

    async def choose(self, option_id):
        """select/combobox: 옵션 선택 즉시 저장"""
        if self.kind not in ('select', 'combobox'):
            raise ValueError('옵션 선택은 select/combobox 셀에서만 가능합니다.')
        if self.state == VIEWING:
            self._enter()
        if not self.input(option_id):
            return {'error': MESSAGES['commit_in_progress'], 'kind': BUSY}
        return await self.commit()

    def cancel(self):
        if self.state == SAVING:
            return False
        self.value = self.committed
        self.state = VIEWING
        return True

    # ----- 키 처리 -----

    async def key_down(self, event):
        """
        키 입력 처리. 결과 dict:
        {'action': 'commit'|'cancel'|'navigate'|'none', 'result': ..., 'focus': (row_id, column_id)|None}
        """
        if isinstance(event, str):
            event = KeyEvent(event)
        if self.state != EDITING:
            return {'action': 'none'}

        if event.key == 'Escape':
            self.cancel()
            return {'action': 'cancel'}

        if event.key == 'Enter':
            if self.kind == 'notes' and not event.modified:
                return {'action': 'none'}
            result = await self.commit()
            return {'action': 'commit', 'result': result}

        if event.key == 'Tab':
            focus = None
            if self.field_order is not None:
                focus = self.field_order.neighbor(self.row_id, self.column_id, backwards=event.shift)
            result = await self.commit() if self.dirty else self._leave()
            return {'action': 'navigate', 'result': result, 'focus': focus}

        return {'action': 'none'}

    def _leave(self):
        self.state = VIEWING
        return {'success': True, 'unchanged': True}

    # ----- 저장 -----

    async def blur(self):
        if self.state != EDITING:
            return {'action': 'none'}
        return await self.commit()

    async def commit(self):
        if self.state == SAVING:
            return {'error': MESSAGES['commit_in_progress'], 'kind': BUSY}
        if not self.dirty:
            return self._leave()

        if self.kind == 'date' and not validate_date(self.value):
            # 잘못된 날짜는 제출하지 않고 확정 값으로 복원
            error = ValidationError('올바른 날짜 형식이 아닙니다 (예: 2025-01-31)', field=self.column_id)
            self.value = self.committed
            self.state = VIEWING
            self.last_error = error.message
            return error.to_result()

        submitted = self.value
        self.state = SAVING
        try:
            result = await self.on_update(self.row_id, self.column_id, submitted)
        except Exception as e:
            logger.exception(f'[CellEdit] {self.column_id} 저장 실패')
            result = {'error': str(e) or MESSAGES['unknown_error']}

        result = result or {}
        if result.get('error'):
            self.value = self.committed
            self.state = VIEWING
            self.last_error = result['error']
            return result

        self.committed = submitted
        self.value = submitted
        self.state = VIEWING
        return {'success': True}
