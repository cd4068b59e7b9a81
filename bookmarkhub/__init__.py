import logging

import click
from flask import Flask

from bookmarkhub.api import api_bp
from bookmarkhub.auth import auth_bp
from bookmarkhub.config import Config
from bookmarkhub.extensions import db, login_manager, migrate
from bookmarkhub.jobs.scheduler import start_scheduler
from bookmarkhub.schema_migrations import add_missing_columns


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.logger.setLevel(app.config["LOG_LEVEL"])
    logging.getLogger("bookmarkhub").setLevel(app.config["LOG_LEVEL"])

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    app.register_blueprint(auth_bp)
    app.register_blueprint(api_bp)

    @app.cli.command("init-db")
    def init_db_command():
        db.create_all()
        added = add_missing_columns()
        print(f"Initialized BookmarkHub database ({len(added)} columns added).")

    @app.cli.command("enhance-logos")
    @click.option("--username", required=True)
    @click.option("--limit", type=int, default=50)
    @click.option("--only-missing", is_flag=True, default=False)
    def enhance_logos_command(username, limit, only_missing):
        from bookmarkhub.models import User
        from bookmarkhub.services.enhance import bulk_enhance

        user = User.query.filter_by(username=username).first()
        if not user:
            raise click.ClickException(f"unknown user {username!r}")
        result = bulk_enhance(
            user.id,
            limit=limit,
            only_missing=only_missing,
            delay=app.config["ENHANCE_DELAY_SECONDS"],
            probe_timeout=app.config["FAVICON_PROBE_TIMEOUT"],
            fetch_timeout=app.config["CONTENT_FETCH_TIMEOUT"],
        )
        summary = result["summary"]
        print(
            f"{result['message']} "
            f"(unchanged={summary['unchanged']}, failed={summary['failed']})"
        )

    with app.app_context():
        db.create_all()
        add_missing_columns()

    start_scheduler(app)
    return app
