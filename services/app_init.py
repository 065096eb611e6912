"""WSGI 기동 시 DB 자동 초기화 (테이블 생성 + 기본 관리자 계정)."""
import logging
import os

from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import generate_password_hash

from db import init_db, get_db
from models import User

logger = logging.getLogger(__name__)


def ensure_admin_user():
    """admin 계정이 없으면 생성. 생성했으면 True."""
    db_session = get_db()
    try:
        admin = db_session.query(User).filter_by(username='admin').first()
        if admin:
            logger.info("[AUTO-INIT] Admin user exists.")
            return False
        logger.info("[AUTO-INIT] Creating default admin user...")
        db_session.add(User(
            username='admin',
            password=generate_password_hash(os.environ.get('ADMIN_INITIAL_PASSWORD', 'admin1234')),
            name='관리자',
            role='ADMIN',
            is_active=True
        ))
        db_session.commit()
        return True
    except SQLAlchemyError as e:
        logger.error(f"[AUTO-INIT] Failed to create admin user: {e}")
        db_session.rollback()
        return False


def run_auto_init(app):
    """DB 테이블 및 admin 사용자 확인/생성. WSGI 서버(gunicorn 등)에서 app import 시 호출."""
    try:
        with app.app_context():
            logger.info("[AUTO-INIT] Checking database tables...")
            init_db()
            logger.info("[AUTO-INIT] Tables checked/created successfully.")
            ensure_admin_user()
    except SQLAlchemyError as e:
        logger.error(f"[AUTO-INIT] Database initialization failed: {e}")


def auto_init_enabled(environ=None):
    """WSGI import 시 자동 초기화 여부 (AUTO_INIT_DB=1 이고 run.py 기동이 아닐 때)"""
    environ = os.environ if environ is None else environ
    if environ.get('ERP_SKIP_AUTO_INIT') == '1':
        return False
    return environ.get('AUTO_INIT_DB', '1') == '1'
