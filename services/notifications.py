"""테이블 화면 알림 (토스트) 수집기. 카테고리는 flash와 동일하게 success/error/warning."""
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class Notification:
    category: str
    title: str
    description: str = ''
    detail: Optional[str] = None


@dataclass
class Notifier:
    """화면 단위 알림 큐. sink가 있으면 알림마다 호출 (소켓 전송 등)."""
    sink: Optional[Callable[[Notification], None]] = None
    history: List[Notification] = field(default_factory=list)

    def notify(self, category, title, description='', detail=None):
        note = Notification(category, title, description, detail)
        self.history.append(note)
        if category == 'error':
            logger.warning(f"[{title}] {description}" + (f" ({detail})" if detail else ''))
        if self.sink is not None:
            self.sink(note)
        return note

    def success(self, title, description=''):
        return self.notify('success', title, description)

    def error(self, title, description='', detail=None):
        return self.notify('error', title, description, detail)

    def warning(self, title, description=''):
        return self.notify('warning', title, description)

    @property
    def last(self):
        return self.history[-1] if self.history else None

    def clear(self):
        self.history.clear()
