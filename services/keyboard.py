"""키 입력 이벤트와 화면(document) 단위 키 리스너 등록부."""
from dataclasses import dataclass


@dataclass(frozen=True)
class KeyEvent:
    key: str
    shift: bool = False
    ctrl: bool = False
    meta: bool = False

    @property
    def modified(self):
        return self.ctrl or self.meta


class KeyListenerRegistry:
    """
    document.addEventListener('keydown') 대응.
    등록 해제 함수를 돌려주므로 리스너 소유자가 수명을 관리한다.
    """

    def __init__(self):
        self._listeners = []

    def add(self, listener):
        self._listeners.append(listener)

        def remove():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return remove

    def dispatch(self, event):
        if isinstance(event, str):
            event = KeyEvent(event)
        # 리스너가 실행 중 자신을 해제할 수 있으므로 사본 순회
        for listener in list(self._listeners):
            listener(event)

    def __len__(self):
        return len(self._listeners)
