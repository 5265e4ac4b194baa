import logging

import click
from flask import Flask
from flask_jwt_extended import JWTManager
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

import models  # noqa: F401  注册模型，供 create_all 使用
from common.db import db
from common.errors import Conflict, Internal, StorageError
from common.response import fail
from routes.blob_routes import blob_bp
from routes.file_routes import file_bp
from routes.folder_routes import folder_bp
from routes.share_routes import share_bp
from routes.stats_routes import stats_bp
from routes.trash_routes import trash_bp
from services.dedup import get_content_store
from services.stats_service import StatsService

logger = logging.getLogger(__name__)


def _configure_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s [%(name)s] %(message)s')
    app.logger.setLevel(level)


def _register_error_handlers(app):
    @app.errorhandler(StorageError)
    def handle_storage_error(e):
        if e.http_status >= 500:
            logger.error("internal storage error: %s", e.msg)
        return fail(e.msg, e.code, e.http_status)

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(e):
        logger.warning("integrity error: %s", e.orig)
        err = Conflict("Conflicting concurrent update, please retry")
        return fail(err.msg, err.code, err.http_status)

    @app.errorhandler(SQLAlchemyError)
    def handle_db_error(e):
        logger.exception("database error")
        err = Internal("Database error")
        return fail(err.msg, err.code, err.http_status)


def _register_commands(app):
    @app.cli.command('cleanup-orphans')
    @click.option('--grace', type=int, default=None, help='Keep blobs younger than this many seconds.')
    def cleanup_orphans(grace):
        """删除没有任何内容记录引用的孤立 blob"""
        if grace is None:
            grace = app.config['ORPHAN_GRACE_SECONDS']
        cleaned = get_content_store().cleanup_orphaned_blobs(grace_seconds=grace)
        click.echo(f"removed {cleaned} orphaned blob(s)")

    @app.cli.command('set-limits')
    @click.argument('user_id')
    @click.option('--storage', type=int, default=None, help='Storage limit in bytes.')
    @click.option('--rate', type=int, default=None, help='Requests allowed per window.')
    def set_limits(user_id, storage, rate):
        """修改用户配额"""
        quota = StatsService.set_limits(user_id, storage_limit=storage, rate_limit=rate)
        click.echo(f"{user_id}: {quota}")


def create_app(config_object='config.Config'):
    app = Flask(__name__)
    app.config.from_object(config_object)
    _configure_logging(app)

    db.init_app(app)
    JWTManager(app)

    app.register_blueprint(file_bp, url_prefix='/files')
    app.register_blueprint(folder_bp, url_prefix='/folders')
    app.register_blueprint(trash_bp, url_prefix='/trash')
    app.register_blueprint(share_bp, url_prefix='/share')
    app.register_blueprint(stats_bp, url_prefix='/storage')
    if app.config.get('STORAGE_BACKEND', 'local') != 's3':
        app.register_blueprint(blob_bp, url_prefix='/blob')

    _register_error_handlers(app)
    _register_commands(app)

    with app.app_context():
        db.create_all()

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(host='0.0.0.0', port=5000, debug=True)
