"""서버 기동 스크립트. python run.py 로 실행."""
import logging
import os
import sys


def main():
    """서버 기동 및 초기화 수행."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler('app_startup.log', encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ]
    )
    logger = logging.getLogger('ERP_Startup')

    # app import 시 자동 초기화는 건너뛰고 아래 절차(리로더 자식에서만)로 초기화
    os.environ['ERP_SKIP_AUTO_INIT'] = '1'
    from app import app
    from services.app_init import ensure_admin_user
    from db import init_db

    _use_reloader = (os.environ.get('FLASK_USE_RELOADER', '1') == '1')
    _is_reloader_child = (os.environ.get('WERKZEUG_RUN_MAIN') == 'true')
    _should_run_startup_tasks = (not _use_reloader) or _is_reloader_child

    if _should_run_startup_tasks:
        logger.info("[START] 애플리케이션 시작 중...")
        init_db()
        with app.app_context():
            ensure_admin_user()
        logger.info("[OK] 데이터베이스 초기화 완료")
    else:
        logger.info("[SKIP] 리로더 부모 프로세스에서는 시작 초기화를 건너뜁니다.")

    try:
        app.run(
            host='0.0.0.0',
            port=int(os.environ.get('PORT', 5000)),
            debug=os.environ.get('FLASK_DEBUG', '1') == '1',
            use_reloader=_use_reloader,
        )
    except KeyboardInterrupt:
        logger.info("[STOP] 사용자에 의해 서버가 중단되었습니다.")
    finally:
        if _should_run_startup_tasks:
            logger.info("[END] 시스템을 종료합니다.")


if __name__ == '__main__':
    main()
