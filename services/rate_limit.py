"""
Rate limiter 설정 (Flask-Limiter, REDIS_URL 이 있으면 Redis 저장소 사용).

limiter 는 모듈 전역으로 만들고 init_limiter(app)에서 앱에 연결한다.
블루프린트는 import 시점에 limiter.limit(write_limit) 으로 쓰기 라우트 한도를 건다.
"""
import hashlib
import os
from flask import request, session, current_app
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

DEFAULT_LIMITS = ["5000 per day", "1200 per hour"]

# 테이블 쓰기(생성/수정/삭제/순서 변경) 한도
DEFAULT_WRITE_LIMIT = "120 per minute"


def parse_default_limits(raw):
    """'5000 per day,1200 per hour' → 리스트 (비어 있으면 기본값)"""
    limits = [x.strip() for x in (raw or '').split(',') if x.strip()]
    return limits or list(DEFAULT_LIMITS)


def rate_limit_key():
    """로그인 사용자 → 세션쿠키 해시 → X-Forwarded-For → X-Real-IP → Remote Addr 순으로 bucket 결정"""
    uid = session.get('user_id')
    if uid:
        return f"user:{uid}"
    cookie_name = current_app.config.get('SESSION_COOKIE_NAME', 'session')
    raw_cookie = request.cookies.get(cookie_name, '').strip()
    if raw_cookie:
        cookie_hash = hashlib.sha1(raw_cookie.encode('utf-8')).hexdigest()[:16]
        return f"sess:{cookie_hash}"
    xff = request.headers.get('X-Forwarded-For', '')
    if xff:
        client_ip = xff.split(',')[0].strip()
        if client_ip:
            return client_ip
    x_real_ip = request.headers.get('X-Real-IP', '').strip()
    if x_real_ip:
        return x_real_ip
    return get_remote_address()


def write_limit():
    """요청 시점의 쓰기 한도 (app.config['WRITE_RATE_LIMIT'])"""
    return current_app.config.get('WRITE_RATE_LIMIT') or DEFAULT_WRITE_LIMIT


limiter = Limiter(
    rate_limit_key,
    storage_uri=os.environ.get('REDIS_URL') or "memory://",
    default_limits=parse_default_limits(os.environ.get('FLASK_DEFAULT_RATE_LIMITS')),
)


def init_limiter(app):
    """앱에 limiter 연결 후 반환."""
    app.config.setdefault('WRITE_RATE_LIMIT', os.environ.get('WRITE_RATE_LIMIT') or DEFAULT_WRITE_LIMIT)
    limiter.init_app(app)
    return limiter
