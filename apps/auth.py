import logging
from datetime import datetime
from functools import wraps

from flask import Blueprint, request, session, jsonify, abort
from werkzeug.security import check_password_hash

from db import get_db
from models import User, SecurityLog
from constants import ROLES, MESSAGES
from services.module_access import module_for_table, has_module_access

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)


def log_access(action, user_id=None):
    """보안 로그 기록 (실패해도 요청은 계속 진행)"""
    db = get_db()
    try:
        db.add(SecurityLog(user_id=user_id, message=action))
        db.commit()
    except Exception as e:
        logger.error(f"[LOG ERROR] Failed to log access: {e}")
        db.rollback()


def get_user_by_username(username):
    """Retrieve user by username"""
    db = get_db()
    return db.query(User).filter(User.username == username).first()


def get_user_by_id(user_id):
    """Retrieve user by ID"""
    if user_id is None:
        return None
    db = get_db()
    return db.query(User).filter(User.id == user_id).first()


def get_current_user():
    """세션의 로그인 사용자 (요청 컨텍스트 밖이면 None)"""
    try:
        user_id = session.get('user_id')
    except RuntimeError:
        return None
    user = get_user_by_id(user_id)
    if user is None or not user.is_active:
        return None
    return user


def update_last_login(user_id):
    """Update the last login timestamp for a user"""
    db = get_db()
    try:
        user = db.query(User).filter(User.id == user_id).first()
        if user:
            user.last_login = datetime.now()
            db.commit()
    except Exception as e:
        logger.error(f"마지막 로그인 시각 갱신 실패: {e}")
        db.rollback()


def login_required(f):
    """Decorator to require login for API routes"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if 'user_id' not in session:
            return jsonify({'success': False, 'message': '로그인이 필요합니다.'}), 401
        return f(*args, **kwargs)
    return decorated_function


def admin_required(f):
    """Decorator to require ADMIN role for API routes"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = get_current_user()
        if user is None:
            session.clear()
            return jsonify({'success': False, 'message': '로그인이 필요합니다.'}), 401
        if user.role != 'ADMIN':
            log_access(f"권한 없는 접근 시도: {request.path}", user.id)
            return jsonify({'success': False, 'message': MESSAGES['permission_denied'], 'kind': 'authorization'}), 403
        return f(*args, **kwargs)
    return decorated_function


def module_required(table=None):
    """
    테이블이 속한 모듈 접근 권한 확인 (login_required 안쪽에 적용).
    table 을 생략하면 라우트의 table 인자를 사용, 모르는 테이블은 404.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            module_code = module_for_table(kwargs.get('table', table))
            if module_code is None:
                abort(404)
            user = get_current_user()
            if user is None:
                session.clear()
                return jsonify({'success': False, 'message': '로그인이 필요합니다.'}), 401
            if not has_module_access(user, module_code):
                log_access(f"권한 없는 접근 시도: {request.path}", user.id)
                return jsonify({'success': False, 'message': MESSAGES['module_denied'], 'kind': 'authorization'}), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator


@auth_bp.route('/login', methods=['GET', 'POST'])
def login():
    if request.method == 'GET':
        if 'user_id' in session:
            return jsonify({'success': True, 'username': session.get('username'), 'role': session.get('role')})
        return jsonify({'success': False, 'message': '아이디와 비밀번호로 로그인해주세요.'})

    payload = request.get_json(silent=True) or request.form
    username = (payload.get('username') or '').strip()
    password = payload.get('password') or ''

    if not username or not password:
        return jsonify({'success': False, 'message': '아이디와 비밀번호를 모두 입력해주세요.'}), 400

    user = get_user_by_username(username)

    if not user:
        log_access(f"로그인 실패: 사용자 {username} (계정 없음)")
        return jsonify({'success': False, 'message': '아이디 또는 비밀번호가 일치하지 않습니다.'}), 401

    if not user.is_active:
        log_access(f"로그인 실패: 비활성화된 계정 {username} (ID: {user.id})", user.id)
        return jsonify({'success': False, 'message': '비활성화된 계정입니다. 관리자에게 문의하세요.'}), 403

    if not check_password_hash(user.password, password):
        log_access(f"로그인 실패: 사용자 {username} (ID: {user.id}) (비밀번호 오류)", user.id)
        return jsonify({'success': False, 'message': '아이디 또는 비밀번호가 일치하지 않습니다.'}), 401

    session['user_id'] = user.id
    session['username'] = user.username
    session['role'] = user.role

    update_last_login(user.id)
    log_access(f"로그인 성공: 사용자 {user.username} (ID: {user.id})", user.id)

    return jsonify({
        'success': True,
        'message': f'{user.name}님, 환영합니다!',
        'user': user.to_dict(),
        'role_label': ROLES.get(user.role, user.role),
    })


@auth_bp.route('/logout', methods=['GET', 'POST'])
def logout():
    if 'user_id' in session:
        user_id = session['user_id']
        username = session.get('username', 'Unknown')
        session.clear()
        log_access(f"로그아웃: 사용자 {username} (ID: {user_id})", user_id)
    return jsonify({'success': True, 'message': '로그아웃되었습니다.'})
