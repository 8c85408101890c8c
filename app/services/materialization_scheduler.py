"""Periodic materialization across all owners."""
import asyncio
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from app.config import Settings, settings as default_settings
from app.models.repeating_rule import RepeatingRule
from app.services.errors import PersistenceFailure
from app.services.materializer import Materializer
from app.utils.logger import get_logger
from app.utils.metrics import metrics_collector

logger = get_logger(__name__)


class MaterializationScheduler:
    """Runs a materialization pass for every owner that has due rules."""

    def __init__(self, engine: Engine, settings: Optional[Settings] = None):
        self.engine = engine
        self.settings = settings or default_settings

    def owners_with_due_rules(self, reference_date: date) -> List[str]:
        statement = (
            select(RepeatingRule.user_id)
            .where(RepeatingRule.active == True)  # noqa: E712
            .where(RepeatingRule.paused == False)  # noqa: E712
            .where(RepeatingRule.deleted_at.is_(None))
            .where(RepeatingRule.next_occurrence <= reference_date)
            .distinct()
        )
        with Session(self.engine) as session:
            return list(session.exec(statement).all())

    def run_once(self, reference_date: Optional[date] = None) -> Dict[str, List[str]]:
        """
        Materialize due occurrences for all owners.

        Each owner gets its own session; any failure for one owner is logged
        and the pass moves on to the next.

        Returns:
            Mapping of owner id to the task ids created for that owner
        """
        reference_date = reference_date or date.today()
        results: Dict[str, List[str]] = {}

        for owner_id in self.owners_with_due_rules(reference_date):
            with Session(self.engine) as session:
                try:
                    results[owner_id] = Materializer(session, self.settings).spawn_due(owner_id, reference_date)
                except PersistenceFailure as e:
                    logger.error("Materialization failed for owner", owner_id=owner_id, details=e.details)
                except Exception:
                    metrics_collector.materialization_error()
                    logger.exception("Unexpected materialization error for owner", owner_id=owner_id)

        logger.info(
            "Scheduled materialization finished",
            reference_date=reference_date,
            owners=len(results),
            spawned=sum(len(ids) for ids in results.values()),
        )
        return results

    async def run_forever(self):
        """Run a pass every MATERIALIZE_INTERVAL_SECONDS until cancelled."""
        logger.info("Starting materialization scheduler", interval=self.settings.MATERIALIZE_INTERVAL_SECONDS)

        while True:
            try:
                await asyncio.to_thread(self.run_once)
            except Exception as e:
                metrics_collector.materialization_error()
                logger.exception("Materialization scheduler pass failed", error=str(e))
            await asyncio.sleep(self.settings.MATERIALIZE_INTERVAL_SECONDS)
