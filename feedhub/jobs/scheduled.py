import logging

logger = logging.getLogger(__name__)


def _feed_sync_job(app):
    with app.app_context():
        logger.info("[Job] Feed sync")
        from feedhub.pipeline.sync import FeedSyncService, SyncInProgressError
        from feedhub.services.registry import get_services
        service = FeedSyncService(get_services(), app.config)
        try:
            result = service.sync_all_active_feeds()
        except SyncInProgressError:
            logger.warning("[Job] Feed sync skipped: another sync is running")
            return
        logger.info(
            f"[Job] Feed sync: {result.total_articles} new articles "
            f"from {result.feeds_processed} feeds ({len(result.errors)} errors)"
        )


def _upsert_job(scheduler, **kwargs):
    scheduler.add_job(replace_existing=True, **kwargs)


def register_jobs(scheduler, app):
    """Register all scheduled jobs."""
    minute = app.config.get('SYNC_CRON_MINUTE', 0)

    # Hourly feed sync
    _upsert_job(
        scheduler,
        id='feed_sync',
        func=_feed_sync_job,
        trigger='cron',
        minute=minute,
        args=[app],
        coalesce=True,
        max_instances=1,
    )

    logger.info(f"Scheduled jobs registered: feed_sync (hourly at :{minute:02d})")
