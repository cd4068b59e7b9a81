import logging
import os
from datetime import timedelta

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy import or_

from bookmarkhub.extensions import db
from bookmarkhub.models import Bookmark, utcnow
from bookmarkhub.services.favicon import resolve_favicon
from bookmarkhub.services.link_checks import check_link, record_link_check

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()

SWEEP_BATCH_SIZE = 50
STALE_LINK_AGE = timedelta(days=7)


def run_favicon_backfill(app, batch_size=SWEEP_BATCH_SIZE):
    with app.app_context():
        bookmarks = (
            Bookmark.query.filter(
                or_(Bookmark.favicon.is_(None), Bookmark.favicon == "")
            )
            .order_by(Bookmark.created_at.desc())
            .limit(batch_size)
            .all()
        )
        filled = 0
        for bookmark in bookmarks:
            try:
                result = resolve_favicon(
                    bookmark.url,
                    probe_timeout=app.config["FAVICON_PROBE_TIMEOUT"],
                    fetch_timeout=app.config["CONTENT_FETCH_TIMEOUT"],
                    max_bytes=app.config["CONTENT_MAX_BYTES"],
                )
            except Exception as exc:
                logger.warning(
                    "Favicon backfill failed for bookmark %s: %s", bookmark.id, exc
                )
                continue
            if result is None:
                continue
            bookmark.favicon = result.url
            bookmark.favicon_source = result.source
            filled += 1
        db.session.commit()
        if bookmarks:
            logger.info("Favicon backfill filled %s of %s", filled, len(bookmarks))
        return filled


def run_stale_link_sweep(app, batch_size=SWEEP_BATCH_SIZE):
    with app.app_context():
        stale_before = utcnow() - STALE_LINK_AGE
        bookmarks = (
            Bookmark.query.filter(
                (Bookmark.last_checked_at.is_(None))
                | (Bookmark.last_checked_at < stale_before)
            )
            .order_by(
                Bookmark.last_checked_at.is_not(None), Bookmark.last_checked_at.asc()
            )
            .limit(batch_size)
            .all()
        )
        for bookmark in bookmarks:
            result = check_link(
                bookmark.url, timeout=app.config["CONTENT_FETCH_TIMEOUT"]
            )
            record_link_check(bookmark, result)
        db.session.commit()
        return len(bookmarks)


def run_maintenance_sweep(app):
    run_favicon_backfill(app)
    run_stale_link_sweep(app)


def start_scheduler(app):
    if not app.config.get("SCHEDULER_ENABLED", True):
        return
    if os.environ.get("WERKZEUG_RUN_MAIN") == "false":
        return

    interval_minutes = app.config["FAVICON_SWEEP_INTERVAL_MINUTES"]
    if not scheduler.get_jobs():
        scheduler.add_job(
            run_maintenance_sweep,
            "interval",
            minutes=interval_minutes,
            kwargs={"app": app},
            id="maintenance_sweep",
            replace_existing=True,
            max_instances=1,
        )
        scheduler.start()
