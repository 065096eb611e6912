"""모듈(메뉴) 접근 권한 API. 목록은 로그인 사용자, 변경은 관리자 전용."""
from flask import Blueprint, request, jsonify, current_app

from constants import MODULES
from apps.auth import login_required, admin_required, get_current_user
from services.module_access import accessible_modules, list_user_module_access, set_module_access
from services.rate_limit import limiter, write_limit

module_access_bp = Blueprint('module_access', __name__, url_prefix='/api/module-access')

STATUS_BY_KIND = {'validation': 400, 'not_found': 404, 'transient': 500}


@module_access_bp.route('/modules', methods=['GET'])
@login_required
def api_my_modules():
    """현재 사용자가 쓸 수 있는 모듈 목록"""
    codes = accessible_modules(get_current_user())
    return jsonify({
        'success': True,
        'modules': [
            {'code': code, 'name': MODULES[code]['name'], 'tables': list(MODULES[code]['tables'])}
            for code in codes
        ],
    })


@module_access_bp.route('/users/<user_id>', methods=['GET'])
@login_required
@admin_required
def api_user_module_access(user_id):
    access = list_user_module_access(user_id)
    if access is None:
        return jsonify({'success': False, 'message': '사용자를 찾을 수 없습니다.'}), 404
    return jsonify({'success': True, 'modules': access})


@module_access_bp.route('/users/<user_id>/<module_code>', methods=['PUT'])
@limiter.limit(write_limit)
@login_required
@admin_required
def api_toggle_module_access(user_id, module_code):
    """body: {'is_enabled': true|false}"""
    payload = request.get_json(silent=True) or {}
    result = set_module_access(user_id, module_code, payload.get('is_enabled'))
    if result.get('error'):
        current_app.logger.warning(f"모듈 권한 변경 실패: {result['error']}")
        return jsonify({'success': False, 'message': result['error'], 'kind': result['kind']}), \
            STATUS_BY_KIND.get(result['kind'], 500)
    return jsonify({'success': True})
