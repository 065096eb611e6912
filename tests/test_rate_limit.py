from flask import session

from services.rate_limit import parse_default_limits, rate_limit_key, write_limit, DEFAULT_WRITE_LIMIT


def test_parse_default_limits():
    assert parse_default_limits('100 per day, 10 per hour') == ['100 per day', '10 per hour']
    assert parse_default_limits('') == ['5000 per day', '1200 per hour']
    assert parse_default_limits(None) == ['5000 per day', '1200 per hour']


def test_key_prefers_logged_in_user(app):
    with app.test_request_context('/', headers={'X-Forwarded-For': '1.2.3.4'}):
        session['user_id'] = 7
        assert rate_limit_key() == 'user:7'


def test_key_falls_back_to_session_cookie_then_forwarded_ip(app):
    cookie = f"{app.config['SESSION_COOKIE_NAME']}=abc"
    with app.test_request_context('/', headers={'Cookie': cookie, 'X-Forwarded-For': '1.2.3.4'}):
        assert rate_limit_key().startswith('sess:')

    with app.test_request_context('/', headers={'X-Forwarded-For': '1.2.3.4, 10.0.0.1'}):
        assert rate_limit_key() == '1.2.3.4'

    with app.test_request_context('/', headers={'X-Real-IP': '5.6.7.8'}):
        assert rate_limit_key() == '5.6.7.8'

    with app.test_request_context('/', environ_base={'REMOTE_ADDR': '9.9.9.9'}):
        assert rate_limit_key() == '9.9.9.9'


def test_write_limit_reads_app_config(app):
    previous = app.config.get('WRITE_RATE_LIMIT')
    try:
        app.config['WRITE_RATE_LIMIT'] = '3 per minute'
        with app.test_request_context('/'):
            assert write_limit() == '3 per minute'

        app.config['WRITE_RATE_LIMIT'] = None
        with app.test_request_context('/'):
            assert write_limit() == DEFAULT_WRITE_LIMIT
    finally:
        app.config['WRITE_RATE_LIMIT'] = previous
