import logging
import os

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

from sattrack.config.settings import OUTPUT_DIR, VALIDATION_THRESHOLD_M

logger = logging.getLogger(__name__)


def plot_validation_errors(results, output_dir=OUTPUT_DIR):
    """
    Bar chart of the latest validation error per satellite, with the
    sub-threshold line.
    """
    os.makedirs(output_dir, exist_ok=True)

    latest = {}
    for r in sorted(results, key=lambda r: r.timestamp):
        latest[r.norad_id] = r.error_distance

    ids = list(latest.keys())
    errors = [latest[i] for i in ids]
    colors = ["tab:green" if e < VALIDATION_THRESHOLD_M else "tab:red" for e in errors]

    plt.figure(figsize=(8, 5))
    plt.bar(ids, errors, color=colors)
    plt.axhline(VALIDATION_THRESHOLD_M, linestyle="--", color="gray")
    plt.xticks(rotation=45, ha="right")
    plt.ylabel("3-D Error (m)")
    plt.title("Validation Error by Satellite")

    save_path = os.path.join(output_dir, "validation_errors.png")
    plt.tight_layout()
    plt.savefig(save_path)
    plt.close()

    logger.info("Saved: %s", save_path)
    return save_path


def plot_ground_positions(positions, output_dir=OUTPUT_DIR):
    """
    Scatter of the latest geodetic position per satellite, sized by accuracy.
    `positions` is an iterable of PositionRecord.
    """
    os.makedirs(output_dir, exist_ok=True)

    plt.figure(figsize=(10, 5))
    for p in positions:
        size = max(10.0, min(200.0, (p.accuracy_estimate or 0.0) / 10.0))
        plt.scatter(p.longitude, p.latitude, s=size)
        plt.annotate(p.norad_id, (p.longitude, p.latitude), fontsize=8)

    plt.xlim(-180, 180)
    plt.ylim(-90, 90)
    plt.xlabel("Longitude (deg)")
    plt.ylabel("Latitude (deg)")
    plt.title("Tracked Satellite Positions")
    plt.grid(True, alpha=0.3)

    save_path = os.path.join(output_dir, "ground_positions.png")
    plt.tight_layout()
    plt.savefig(save_path)
    plt.close()

    logger.info("Saved: %s", save_path)
    return save_path
