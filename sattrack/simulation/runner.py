import logging
import time
from typing import Callable, List, Optional, Tuple

from sattrack.config import settings
from sattrack.pipeline.results import CycleReport, ValidationSummary
from sattrack.pipeline.tracker import TrackingOrchestrator
from sattrack.validation.validator import SatelliteValidator

logger = logging.getLogger(__name__)


def run_cycle(
    orchestrator: TrackingOrchestrator,
    validator: Optional[SatelliteValidator] = None,
) -> Tuple[CycleReport, Optional[ValidationSummary]]:
    """
    One update cycle, followed by a validation pass when a validator is given.
    """
    report = orchestrator.update_cycle()
    summary = validator.run_validation() if validator is not None else None
    return report, summary


def run_periodic(
    orchestrator: TrackingOrchestrator,
    validator: Optional[SatelliteValidator] = None,
    interval: Optional[float] = None,
    cycles: Optional[int] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> List[Tuple[CycleReport, Optional[ValidationSummary]]]:
    """
    Single periodic driver: one cycle every `interval` seconds.
    cycles=None runs until interrupted. A failing cycle is logged and the
    driver carries on with the next one.
    """
    interval = settings.resolve_update_interval(interval)
    history = []
    n = 0

    while cycles is None or n < cycles:
        started = time.monotonic()
        try:
            history.append(run_cycle(orchestrator, validator))
        except Exception:
            logger.exception("Update cycle %d failed", n + 1)
        n += 1

        if cycles is not None and n >= cycles:
            break
        elapsed = time.monotonic() - started
        sleep(max(0.0, interval - elapsed))

    return history
