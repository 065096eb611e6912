import os
import traceback

from flask import Flask, jsonify, session
from flask_compress import Compress
from werkzeug.middleware.proxy_fix import ProxyFix

from db import close_db
from constants import TABLE_CONFIGS, MODULES

# Initialize Flask app
app = Flask(__name__)

# Gzip Compression (JSON 응답 크기 절감)
Compress(app)

# Secret Key from environment variable (CRITICAL: Never hardcode in production!)
app.secret_key = os.environ.get('SECRET_KEY')
if not app.secret_key:
    if os.environ.get('FLASK_ENV') == 'production':
        raise ValueError("SECRET_KEY environment variable must be set in production!")
    app.secret_key = 'dev-secret-key-CHANGE-IN-PRODUCTION'
    app.logger.warning("Using development secret key. Set SECRET_KEY environment variable for production!")

app.config['SESSION_COOKIE_NAME'] = os.environ.get('SESSION_COOKIE_NAME', 'session_erp')

# Fix for Railway/Load Balancer (HTTPS redirect loop)
app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

# Rate Limiter (REDIS_URL 이 있으면 Redis, 없으면 메모리)
from services.rate_limit import init_limiter
limiter = init_limiter(app)

# Import Apps Blueprints
from apps.auth import auth_bp, login_required, get_current_user
from services.module_access import accessible_modules
app.register_blueprint(auth_bp)

# API Tables Blueprint (회사/부서/직급/사원/고객/수주/청구 CRUD)
from apps.api.tables import tables_bp
app.register_blueprint(tables_bp)

# 모듈 접근 권한 API
from apps.api.module_access import module_access_bp
app.register_blueprint(module_access_bp)

# 데이터베이스 연결 설정
app.teardown_appcontext(close_db)


# Error handler with production safety
@app.errorhandler(500)
def internal_error(error):
    app.logger.error(f"Internal Server Error: {str(error)}\n{traceback.format_exc()}")
    if app.debug or os.environ.get('FLASK_ENV') != 'production':
        return jsonify({'success': False, 'message': f'500 Error: {str(error)}'}), 500
    return jsonify({'success': False, 'message': '서버 오류가 발생했습니다.'}), 500


@app.errorhandler(404)
def not_found(error):
    return jsonify({'success': False, 'message': '요청한 항목을 찾을 수 없습니다.'}), 404


@app.errorhandler(429)
def rate_limited(error):
    return jsonify({'success': False, 'message': '요청이 너무 많습니다. 잠시 후 다시 시도해주세요.'}), 429


@app.route('/')
@login_required
def index():
    """사용 가능한 테이블 목록 (허용된 모듈의 테이블만)"""
    allowed = set()
    for code in accessible_modules(get_current_user()):
        allowed.update(MODULES[code]['tables'])
    return jsonify({
        'success': True,
        'user': session.get('username'),
        'tables': [
            {'name': name, 'label': config['label'], 'reorderable': config['reorderable']}
            for name, config in TABLE_CONFIGS.items() if name in allowed
        ],
    })


# Production: Auto-initialize Database Tables
# WSGI 서버(gunicorn 등)가 app 을 import 할 때 실행, run.py 는 ERP_SKIP_AUTO_INIT=1 을 설정하고 자체 기동 절차를 따른다.
from services.app_init import auto_init_enabled, run_auto_init
if auto_init_enabled():
    run_auto_init(app)
