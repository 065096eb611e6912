"""
사업자등록번호 입력.

형식: xxx-xx-xxxxx (숫자 10자리)
- 숫자만 보관, 최대 10자리
- 체크섬 검증 후 중복 검사 (디바운스 0.5초)
- 잘못된/중복 번호는 표시만 하고 되돌리지 않는다 (저장은 막음)
"""
import asyncio
import logging
import re

from constants import DUPLICATE_CHECK_DEBOUNCE
from services.errors import ValidationError

logger = logging.getLogger(__name__)

CHECK_KEYS = (1, 3, 7, 1, 3, 7, 1, 3, 5)
BUSINESS_NUMBER_LENGTH = 10

IDLE = 'idle'
CHECKING = 'checking'
VALID = 'valid'
INVALID = 'invalid'
DUPLICATE = 'duplicate'


def extract_numbers(value):
    return re.sub(r'\D', '', value or '')


def format_business_number(number):
    """10자리면 xxx-xx-xxxxx, 아니면 입력 그대로 (빈 값은 '-')"""
    if not number:
        return '-'
    cleaned = extract_numbers(number)
    if len(cleaned) != BUSINESS_NUMBER_LENGTH:
        return number
    return f'{cleaned[:3]}-{cleaned[3:5]}-{cleaned[5:]}'


def validate_business_number(number):
    """가중치 체크섬 검증 (앞 9자리 × 1,3,7,1,3,7,1,3,5)"""
    if not number:
        return False
    cleaned = extract_numbers(number)
    if len(cleaned) != BUSINESS_NUMBER_LENGTH:
        return False
    total = sum(int(digit) * key for digit, key in zip(cleaned[:9], CHECK_KEYS))
    check_digit = (10 - (total % 10)) % 10
    return check_digit == int(cleaned[9])


class BusinessNumberInput:
    """입력 인스턴스마다 디바운스 작업을 소유하고, 값이 바뀌거나 닫힐 때 취소한다."""

    def __init__(self, value='', on_duplicate_check=None, exclude_id=None,
                 on_save=None, debounce=DUPLICATE_CHECK_DEBOUNCE):
        self.committed = extract_numbers(value)
        self.value = self.committed
        self.on_duplicate_check = on_duplicate_check
        self.exclude_id = exclude_id
        self.on_save = on_save
        self.debounce = debounce
        self.status = IDLE
        self.is_saving = False
        self._check_task = None
        self._evaluate()

    @property
    def display_value(self):
        return format_business_number(self.value) if self.value else ''

    @property
    def message(self):
        if not self.value or len(self.value) < BUSINESS_NUMBER_LENGTH:
            return None
        if self.status == INVALID:
            return '유효하지 않은 사업자등록번호입니다 (체크섬 오류)'
        if self.status == DUPLICATE:
            return '이미 등록된 사업자등록번호입니다'
        return None

    def input(self, raw):
        """숫자/하이픈만 받아 숫자만 저장. 10자리를 넘으면 무시."""
        sanitized = re.sub(r'[^\d-]', '', raw or '')
        numbers = extract_numbers(sanitized)
        if len(numbers) > BUSINESS_NUMBER_LENGTH:
            return False
        self.value = numbers
        self._evaluate()
        return True

    def _evaluate(self):
        self._cancel_check()
        if not self.value or len(self.value) < BUSINESS_NUMBER_LENGTH:
            self.status = IDLE
            return
        if not validate_business_number(self.value):
            self.status = INVALID
            return
        if self.on_duplicate_check is None:
            self.status = VALID
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # 이벤트 루프 밖(초기 생성 등)에서는 중복 검사를 예약할 수 없음
            self.status = VALID
            return
        self.status = CHECKING
        self._check_task = asyncio.ensure_future(self._debounced_check(self.value))

    async def _debounced_check(self, number):
        await asyncio.sleep(self.debounce)
        try:
            result = await self.on_duplicate_check(number, self.exclude_id)
        except Exception:
            logger.exception('[BusinessNumberInput] 중복 검사 오류')
            result = None
        # 검사 중 값이 바뀌었으면 결과 폐기
        if self.value != number:
            return
        if result and (result.get('isDuplicate') or result.get('is_duplicate')):
            self.status = DUPLICATE
        else:
            # 검사 실패 시 기본적으로 valid
            self.status = VALID

    def _cancel_check(self):
        if self._check_task is not None and not self._check_task.done():
            self._check_task.cancel()
        self._check_task = None

    async def wait_for_check(self):
        task = self._check_task
        if task is None:
            return self.status
        try:
            await task
        except asyncio.CancelledError:
            pass
        return self.status

    def escape(self):
        """입력 취소: 확정 값으로 복원"""
        self.value = self.committed
        self._evaluate()

    def sync(self, value):
        """외부 값 반영 (빈 값으로는 덮어쓰지 않음, 타이핑 중 보호)"""
        numbers = extract_numbers(value)
        self.committed = numbers
        if numbers and numbers != self.value:
            self.value = numbers
            self._evaluate()

    def close(self):
        self._cancel_check()

    async def save(self):
        """값이 바뀌었고 유효할 때만 on_save 호출"""
        if self.on_save is None or self.value == self.committed:
            return {'success': True, 'unchanged': True}
        if self.value:
            if self.status == CHECKING:
                await self.wait_for_check()
            if len(self.value) != BUSINESS_NUMBER_LENGTH or self.status == INVALID:
                return ValidationError('올바른 사업자등록번호 형식이 아닙니다 (예: 123-45-67890)',
                                       field='business_number').to_result()
            if self.status == DUPLICATE:
                return ValidationError(self.message, field='business_number').to_result()

        self.is_saving = True
        try:
            result = await self.on_save(self.value)
        except Exception as e:
            logger.exception('[BusinessNumberInput] 저장 실패')
            result = {'error': str(e)}
        finally:
            self.is_saving = False
        result = result or {}
        if not result.get('error'):
            self.committed = self.value
        return result
