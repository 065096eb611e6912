"""Pytest fixtures."""
import asyncio
import os
import pytest
from werkzeug.security import generate_password_hash

# 1. Set environment variable for test database BEFORE importing app/db
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["AUTO_INIT_DB"] = "0"

from app import app as flask_app, limiter
from db import db_session, Base, engine
from models import User
from services.module_access import set_module_access


@pytest.fixture
def app():
    """Flask app with TESTING config and in-memory DB."""
    flask_app.config["TESTING"] = True
    limiter.enabled = False

    # Create tables
    Base.metadata.create_all(bind=engine)

    yield flask_app

    # Cleanup
    db_session.remove()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(app):
    """Test client."""
    return app.test_client()


def _create_user(username, password, role):
    user = User(
        username=username,
        password=generate_password_hash(password),
        role=role,
        name=f"{username} user"
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def login(client):
    """Login helper. Creates admin user and logs in."""
    _create_user("admin", "admin", "ADMIN")
    client.post("/login", json={"username": "admin", "password": "admin"})
    return client


@pytest.fixture
def viewer_login(client):
    """읽기 전용 사용자로 로그인"""
    _create_user("viewer", "viewer", "VIEWER")
    client.post("/login", json={"username": "viewer", "password": "viewer"})
    return client


@pytest.fixture
def grant_module():
    """사용자에게 모듈 접근 허용"""
    def grant(username, module_code, enabled=True):
        user = db_session.query(User).filter_by(username=username).first()
        result = set_module_access(user.id, module_code, enabled)
        assert result == {'success': True}, result
        return user
    return grant


class FakeBackend:
    """
    엔진 테스트용 백엔드. 호출을 기록하고,
    fail 에 등록된 (operation, id) 는 오류를 돌려주며 gates 에 등록된 Event 가 set 될 때까지 대기한다.
    """

    def __init__(self, rows=None, with_reorder=True):
        self.rows = {row['id']: dict(row) for row in (rows or [])}
        self.calls = []
        self.fail = {}
        self.gates = {}
        self.next_id = 100
        if not with_reorder:
            self.reorder = None

    async def _gate(self, key):
        gate = self.gates.get(key)
        if gate is not None:
            await gate.wait()

    def _failure(self, key):
        message = self.fail.get(key)
        # 리스트면 호출마다 하나씩 소비 (None 은 성공)
        if isinstance(message, list):
            message = message.pop(0) if message else None
        if message is None:
            return None
        if isinstance(message, Exception):
            raise message
        return {'error': message}

    async def list(self, order_by='created_at', ascending=False):
        self.calls.append(('list', order_by, ascending))
        return [dict(row) for row in self.rows.values()]

    async def create(self, data):
        self.calls.append(('create', dict(data)))
        await self._gate(('create', None))
        failure = self._failure(('create', None))
        if failure:
            return failure
        self.next_id += 1
        row = dict(data, id=str(self.next_id))
        self.rows[row['id']] = row
        return {'success': True, 'data': row}

    async def update(self, entity_id, data):
        self.calls.append(('update', entity_id, dict(data)))
        await self._gate(('update', entity_id))
        failure = self._failure(('update', entity_id))
        if failure:
            return failure
        self.rows.setdefault(entity_id, {'id': entity_id}).update(data)
        return {'success': True}

    async def delete(self, entity_id):
        self.calls.append(('delete', entity_id))
        await self._gate(('delete', entity_id))
        failure = self._failure(('delete', entity_id))
        if failure:
            return failure
        self.rows.pop(entity_id, None)
        return {'success': True}

    async def reorder(self, items):
        self.calls.append(('reorder', [dict(item) for item in items]))
        failure = self._failure(('reorder', None))
        if failure:
            return failure
        return {'success': True}

    async def check_duplicate(self, field, value, exclude_id=None):
        self.calls.append(('check_duplicate', field, value, exclude_id))
        return {'isDuplicate': any(
            row.get(field) == value and row['id'] != exclude_id for row in self.rows.values()
        )}


@pytest.fixture
def make_backend():
    return FakeBackend


@pytest.fixture
def backend():
    return FakeBackend(rows=[
        {'id': '1', 'name': '인광이에스', 'sort_order': 0},
        {'id': '2', 'name': '인광산업', 'sort_order': 1},
        {'id': '3', 'name': '인광건설', 'sort_order': 2},
    ])


@pytest.fixture
def run():
    """코루틴 실행 헬퍼 (async 플러그인 없이 asyncio.run 사용)"""
    return asyncio.run
