from __future__ import annotations

import re
from pathlib import Path
from typing import List

from viscosity_analyzer.errors import MalformedFilenameError
from viscosity_analyzer.models.frames import TrialMetadata


# Trial naming schema. Two families of names are in use:
#   25C_07-11-16_hum_la012_trial003.txt     (hemolymph, larva id 012)
#   10C_02-10-17_dry_water_trial001.txt     (reference fluid)
TRIAL_NAME_PATTERN = re.compile(
    r"^(?P<temperature>\d+(?:\.\d+)?)C"
    r"_(?P<date>\d{2}-\d{2}-\d{2})"
    r"_(?P<humidity>hum|dry)"
    r"_(?:(?P<larva>la)(?P<identifier>\d+)|(?P<fluid>[A-Za-z]+))"
    r"_trial(?P<trial_number>[A-Za-z0-9]+)$",
    re.IGNORECASE,
)

_HUMIDITY = {"hum": "Yes", "dry": "No"}

# Files labelled "17C" were run at 17.5 C.
_TEMPERATURE_ALIASES = {"17": "17.5"}

TRIAL_FILE_SUFFIX = ".txt"


def parse_trial_filename(filename: str) -> TrialMetadata:
    """
    Parse trial metadata from a file name (with or without the .txt suffix).

    Raises
    ------
    MalformedFilenameError
        The name does not follow the trial naming schema.
    """
    name = Path(filename).name
    trial_name = name[: -len(TRIAL_FILE_SUFFIX)] if name.lower().endswith(TRIAL_FILE_SUFFIX) else name

    m = TRIAL_NAME_PATTERN.match(trial_name)
    if not m:
        raise MalformedFilenameError(
            f"file name {name!r} does not match '<T>C_<dd-dd-dd>_<hum|dry>_<la<id>|fluid>_trial<n>'"
        )

    temperature = m.group("temperature")
    temperature = _TEMPERATURE_ALIASES.get(temperature, temperature)

    if m.group("larva"):
        fluid = "hemolymph"
        identifier: str | int = m.group("identifier")
    else:
        fluid = m.group("fluid")
        identifier = 0

    return TrialMetadata(
        filename=name,
        trial_name=trial_name,
        temperature=temperature,
        date=m.group("date"),
        humidity=_HUMIDITY[m.group("humidity").lower()],
        fluid_tested=fluid,
        identifier=identifier,
        trial_number=m.group("trial_number"),
    )


def discover_trial_files(selected_dir: str | Path) -> List[Path]:
    """
    List the trial files of a folder (*.txt, non-recursive), sorted by name.

    Name checking is left to the reader so that one badly named file is reported as a
    failed trial instead of hiding the whole folder.
    """
    p = Path(selected_dir).expanduser().resolve()
    if not p.exists():
        raise FileNotFoundError(f"Folder not found: {p}")
    if not p.is_dir():
        raise NotADirectoryError(f"Not a directory: {p}")
    return sorted(
        (f for f in p.iterdir() if f.is_file() and f.suffix.lower() == TRIAL_FILE_SUFFIX),
        key=lambda f: f.name,
    )


def plot_directory(selected_dir: str | Path) -> Path:
    """Folder for trial figures (``<folder>/plots``), created if missing."""
    out = Path(selected_dir).expanduser().resolve() / "plots"
    out.mkdir(parents=True, exist_ok=True)
    return out
