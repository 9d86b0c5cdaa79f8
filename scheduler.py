import logging

from apscheduler.schedulers.background import BackgroundScheduler

from circulation import overdue_loans

logger = logging.getLogger(__name__)

scheduler = None


def report_overdue_loans(app):
    with app.app_context():
        overdue = overdue_loans()
        if overdue:
            logger.warning(f"{len(overdue)} overdue loans: {', '.join(str(l.loan_id) for l in overdue)}")
        else:
            logger.debug("Overdue check completed: no overdue loans")
        return overdue


def start_scheduler(app):
    global scheduler
    if scheduler is not None and scheduler.running:
        return scheduler
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        report_overdue_loans,
        'interval',
        hours=app.config['OVERDUE_CHECK_INTERVAL_HOURS'],
        args=[app],
        id='report_overdue_loans',
        replace_existing=True,
    )
    scheduler.start()
    logger.debug("Background scheduler started")
    return scheduler


def shutdown_scheduler():
    global scheduler
    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.debug("Background scheduler stopped")
    scheduler = None
