import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from core.config import settings
from core.exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)

SCHEDULED_JOB_ID = "process_pending_records"


class BatchScheduler:
    """Runs the processing job on a fixed interval"""
    
    def __init__(self, service, interval_minutes: int = None):
        self.service = service
        self.interval_minutes = interval_minutes or settings.SCHEDULER_INTERVAL_MINUTES
        self.scheduler = AsyncIOScheduler()

    async def run_batch_job(self):
        """Job to run the record processing pipeline"""
        logger.info("Scheduler: starting record processing job")
        try:
            result = await self.service.run_processing_job(triggered_by="scheduler")
        except StoreUnavailableError as e:
            logger.error(f"Scheduler: metadata store unavailable - {e}")
            return None
        
        if result.successful:
            logger.info(
                f"Scheduler: execution {result.execution_id} finished "
                f"({result.exit_code}, {result.write_count} written)"
            )
        else:
            logger.error(f"Scheduler: job did not complete - {result.message}")
        return result

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self.run_batch_job,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=SCHEDULED_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info(f"Batch scheduler started (every {self.interval_minutes} minutes)")

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown()
        logger.info("Batch scheduler stopped")
