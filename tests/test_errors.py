from constants import MESSAGES
from services.errors import (
    classify_error, error_from_message, error_from_result, user_message,
    ConflictError, ValidationError, NotFoundError, TransientBackendError,
)
from services.keyboard import KeyListenerRegistry, KeyEvent
from services.notifications import Notifier


def test_classify_error():
    assert classify_error('권한이 없습니다') == 'authorization'
    assert classify_error('Unauthorized') == 'authorization'
    assert classify_error('duplicate key value violates unique constraint') == 'conflict'
    assert classify_error('이미 등록된 사업자등록번호입니다') == 'conflict'
    assert classify_error('connection refused') == 'transient'
    assert classify_error(None) == 'transient'


def test_error_from_result_prefers_explicit_kind():
    assert isinstance(error_from_result({'error': 'x', 'kind': 'not_found'}), NotFoundError)
    assert isinstance(error_from_result({'error': '중복'}), ConflictError)
    assert isinstance(error_from_message('timeout'), TransientBackendError)


def test_user_message():
    assert user_message(ConflictError('이미 등록된 번호')) == '이미 등록된 번호'
    assert user_message(ValidationError('필수')) == '필수'
    assert user_message(error_from_message('인증이 필요합니다')) == MESSAGES['permission_denied']
    assert user_message(TransientBackendError('socket closed')) == MESSAGES['transient_failure']


def test_to_result_includes_field():
    assert ValidationError('bad', field='name').to_result() == {
        'error': 'bad', 'kind': 'validation', 'field': 'name'
    }


def test_notifier_sink_and_history():
    received = []
    notifier = Notifier(sink=received.append)
    notifier.success('저장 완료', 'ok')
    notifier.error('저장 실패', 'no', detail='trace')
    assert [n.category for n in notifier.history] == ['success', 'error']
    assert received[-1].detail == 'trace'
    notifier.clear()
    assert notifier.last is None


def test_key_listener_can_remove_itself_during_dispatch():
    registry = KeyListenerRegistry()
    seen = []

    def once(event):
        seen.append(event.key)
        remove()

    remove = registry.add(once)
    registry.add(lambda event: seen.append('other'))
    registry.dispatch('Escape')
    registry.dispatch(KeyEvent('Enter', meta=True))

    assert seen == ['Escape', 'other', 'other']
    assert len(registry) == 1
