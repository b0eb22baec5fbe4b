# sattrack/main.py
import json
import logging
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from sattrack.cli import run_cli
from sattrack.config import settings
from sattrack.data.space_weather import NOAASpaceWeatherProvider
from sattrack.data.storage import MemoryStorage
from sattrack.data.tle_fetcher import ElementSetProvider
from sattrack.pipeline.integrity import DataIntegrityTracker
from sattrack.pipeline.results import Position
from sattrack.pipeline.tracker import TrackingOrchestrator
from sattrack.simulation.runner import run_periodic
from sattrack.validation.validator import ReferenceEphemerisProvider, SatelliteValidator
from sattrack.visualization.plots import plot_ground_positions, plot_validation_errors

# --- Setup logger ------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-7s  %(message)s",
    datefmt="%H:%M:%S"
)
log = logging.getLogger("main")


def save_json(obj: Any, name_prefix: str) -> str:
    ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    out_dir = Path(settings.OUTPUT_DIR)
    out_dir.mkdir(parents=True, exist_ok=True)
    filename = out_dir / f"{name_prefix}_{ts}.json"
    with open(filename, "w") as f:
        json.dump(obj, f, indent=2, default=lambda o: o.isoformat() if isinstance(o, datetime) else repr(o))
    return str(filename)


def load_references(path=None):
    """
    Reference ephemerides for validation, from SATTRACK_REFERENCE_EPHEMERIS
    unless a path is given. Missing or unreadable files leave the table empty.
    """
    path = settings.REFERENCE_EPHEMERIS_PATH if path is None else path
    if not path:
        log.info("No reference ephemeris configured; validation will have no input")
        return ReferenceEphemerisProvider()
    try:
        return ReferenceEphemerisProvider.from_json(path)
    except (OSError, ValueError) as e:
        log.warning("Reference ephemeris %s unusable: %s", path, e)
        return ReferenceEphemerisProvider()


def build_pipeline(norad_ids, references=None):
    storage = MemoryStorage()
    integrity = DataIntegrityTracker()
    orchestrator = TrackingOrchestrator(
        storage=storage,
        element_sets=ElementSetProvider(),
        space_weather=NOAASpaceWeatherProvider(),
        integrity=integrity,
        norad_ids=norad_ids,
    )
    if references is None:
        references = load_references()
    validator = SatelliteValidator(storage, references, integrity)
    return orchestrator, validator


def main():
    settings.validate_settings()
    norad_ids, cycles, interval, reference_path = run_cli()
    log.info("Starting tracking: %d objects, %d cycle(s)", len(norad_ids), cycles)

    orchestrator, validator = build_pipeline(norad_ids, load_references(reference_path))

    try:
        history = run_periodic(orchestrator, validator, interval=interval, cycles=cycles)
    except KeyboardInterrupt:
        log.info("Interrupted; writing what was collected")
        history = []

    storage = orchestrator.storage
    latest = [p for p in (storage.get_latest_position(i) for i in norad_ids) if p is not None]
    positions = [orchestrator.get_satellite_position(i) for i in norad_ids]

    out = {
        "cycles": [asdict(report) for report, _ in history],
        "positions": [p.to_dict() if isinstance(p, Position) else asdict(p) for p in positions],
        "validation": [v.to_dict() for v in storage.get_validation_results()],
        "stats": storage.get_system_stats(),
        "integrity": orchestrator.integrity.status(),
    }
    path = save_json(out, "tracking")
    log.info("Saved summary: %s", path)

    if latest:
        plot_ground_positions(latest)
    results = storage.get_validation_results()
    if results:
        plot_validation_errors(results)


if __name__ == "__main__":
    main()
