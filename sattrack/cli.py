# sattrack/cli.py
from sattrack.config import settings
from sattrack.config.settings import DEFAULT_NORAD_IDS


def _ask(prompt, cast, default=None, min_val=None, max_val=None, error="Invalid input."):
    """
    Prompt until `cast(answer)` succeeds within [min_val, max_val].
    An empty answer gives the default; EOF (non-interactive run) always does.
    """
    while True:
        try:
            answer = input(prompt).strip()
        except EOFError:
            return cast(default) if default is not None else None
        if not answer and default is not None:
            return cast(default)
        try:
            val = cast(answer)
        except (ValueError, TypeError):
            print(error)
            continue
        if (min_val is not None and val < min_val) or (max_val is not None and val > max_val):
            print(error)
            continue
        return val


def get_float(prompt, default=None, min_val=None):
    return _ask(prompt, float, default, min_val, error="Please enter a valid number.")


def get_int(prompt, default=None, min_val=None, max_val=None):
    return _ask(prompt, int, default, min_val, max_val, error="Invalid integer input.")


def parse_norad_ids(text):
    """Comma/space separated catalog numbers -> list of digit strings."""
    ids = [t.strip() for t in text.replace(",", " ").split()]
    bad = [t for t in ids if not t.isdigit()]
    if bad:
        raise ValueError(f"not NORAD catalog numbers: {', '.join(bad)}")
    return ids


def ask_norad_ids(default=DEFAULT_NORAD_IDS):
    while True:
        try:
            user = input(f"NORAD IDs to track [default {','.join(default)}]: ")
        except EOFError:
            return list(default)
        if user.strip() == "":
            return list(default)
        try:
            return parse_norad_ids(user)
        except ValueError as e:
            print(e)


def run_cli():
    print("======================================")
    print("   SATELLITE TRACKING PIPELINE (CLI)   ")
    print("======================================")

    if not settings.has_space_track_credentials():
        print("SPACETRACK_USERNAME/SPACETRACK_PASSWORD not set: CelesTrak only.")

    norad_ids = ask_norad_ids()
    cycles = get_int("Number of update cycles [default 1]: ", default=1, min_val=1)
    default_interval = settings.resolve_update_interval()
    interval = get_float(
        f"Seconds between cycles [default {int(default_interval)}]: ",
        default=default_interval,
        min_val=1.0,
    )
    reference_path = _ask(
        f"Reference ephemeris JSON [default {settings.REFERENCE_EPHEMERIS_PATH or 'none'}]: ",
        str,
        default=settings.REFERENCE_EPHEMERIS_PATH,
    )

    print("\nCLI input complete.")
    print(f"-> Tracking: {', '.join(norad_ids)}")
    print(f"-> {cycles} cycle(s), every {int(interval)} s")
    print(f"-> Reference ephemeris: {reference_path or 'none (validation skipped)'}")

    return norad_ids, cycles, float(interval), reference_path
