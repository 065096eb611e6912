"""테이블 편집 오류 분류 (검증/권한/충돌/일시 장애)."""
from constants import MESSAGES

VALIDATION = 'validation'
AUTHORIZATION = 'authorization'
CONFLICT = 'conflict'
TRANSIENT = 'transient'
BUSY = 'busy'
NOT_FOUND = 'not_found'

# 백엔드 오류 문자열에서 종류를 판별하는 키워드
_AUTHORIZATION_MARKERS = ('권한', '인증', 'permission', 'unauthorized', 'forbidden')
_CONFLICT_MARKERS = ('중복', '이미 등록', 'duplicate', 'unique', 'already exists')


class TableError(Exception):
    """테이블 편집 오류 기본 클래스"""
    kind = TRANSIENT

    def __init__(self, message, field=None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_result(self):
        result = {'error': self.message, 'kind': self.kind}
        if self.field:
            result['field'] = self.field
        return result


class ValidationError(TableError):
    """제출 전 로컬 검증 실패 (필수 필드 누락, 날짜/사업자번호 형식 오류)"""
    kind = VALIDATION


class AuthorizationError(TableError):
    kind = AUTHORIZATION


class ConflictError(TableError):
    """고유키 중복 등 (백엔드 메시지 그대로 노출)"""
    kind = CONFLICT


class TransientBackendError(TableError):
    kind = TRANSIENT


class NotFoundError(TableError):
    kind = NOT_FOUND


def classify_error(message):
    """백엔드 오류 문자열 → 오류 종류"""
    text = (message or '').lower()
    if any(marker in text for marker in _AUTHORIZATION_MARKERS):
        return AUTHORIZATION
    if any(marker in text for marker in _CONFLICT_MARKERS):
        return CONFLICT
    return TRANSIENT


def error_from_message(message):
    """백엔드 오류 문자열을 TableError 인스턴스로 변환"""
    kind = classify_error(message)
    if kind == AUTHORIZATION:
        return AuthorizationError(message)
    if kind == CONFLICT:
        return ConflictError(message)
    return TransientBackendError(message or MESSAGES['unknown_error'])


def user_message(error):
    """사용자에게 보여줄 문구. 충돌/검증은 원문, 권한/일시 장애는 일반 문구."""
    if isinstance(error, (ConflictError, ValidationError)):
        return error.message
    if isinstance(error, AuthorizationError):
        return MESSAGES['permission_denied']
    return MESSAGES['transient_failure']



_KIND_CLASSES = {
    VALIDATION: ValidationError,
    AUTHORIZATION: AuthorizationError,
    CONFLICT: ConflictError,
    TRANSIENT: TransientBackendError,
    NOT_FOUND: NotFoundError,
}


def error_from_result(result):
    """백엔드 결과 {'error': message, 'kind'?: ...} → TableError (kind가 없으면 문구로 판별)"""
    message = result.get('error')
    error_class = _KIND_CLASSES.get(result.get('kind'))
    if error_class is None:
        return error_from_message(message)
    return error_class(message or MESSAGES['unknown_error'])
