import os

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from tasks.capital_snapshot_tasks import take_monthly_capital_snapshots

SCHEDULER_TIMEZONE = os.getenv("APP_TIMEZONE", "UTC")

scheduler = BackgroundScheduler()

# Last day of every month, just before midnight
scheduler.add_job(
    take_monthly_capital_snapshots,
    CronTrigger(day="last", hour=23, minute=55, timezone=SCHEDULER_TIMEZONE),
    id="capital_snapshot_job",
)
