from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple, Union

import pandas as pd


@dataclass(frozen=True)
class RawSample:
    """
    One instrument reading, as written by the viscometer (one line of the export).

    Notes
    - viscosity_code is the value the instrument displayed; the analysis recalibrates
      viscosity from torque_pct and does not use it.
    - out_of_range is True when the line carried the leading '?' marker (reading outside
      the spindle range, typical while the motor starts and stops).
    """
    speed_rpm: float
    torque_pct: float
    viscosity_code: float
    out_of_range: bool = False


@dataclass(frozen=True)
class TrialMetadata:
    """
    Trial identification fields taken from the file name.

    The analysis treats every field as opaque and copies it into the trial summary.
    identifier is the larva id for hemolymph trials and 0 otherwise.
    source keeps the caller-supplied object the fields were taken from (in-memory trials only).
    """
    filename: str
    trial_name: str
    temperature: str
    date: str
    humidity: str
    fluid_tested: str
    identifier: Union[str, int]
    trial_number: str
    source: Any = field(default=None, compare=False, repr=False)

    @classmethod
    def unnamed(cls, trial_name: str) -> TrialMetadata:
        """Placeholder metadata for in-memory trials that have no source file."""
        return cls(
            filename=trial_name,
            trial_name=trial_name,
            temperature="",
            date="",
            humidity="",
            fluid_tested="",
            identifier=0,
            trial_number="",
        )

    @classmethod
    def coerce(cls, value: Any, default_name: str) -> TrialMetadata:
        """Metadata for an in-memory trial.

        A TrialMetadata is returned as is. A mapping fills the fields it names (other keys
        are ignored). Anything else, None included, gives placeholder metadata named
        ``default_name``. The original object is kept on ``source``.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            name = value.get("trial_name") or default_name
            names = {f.name for f in dataclasses.fields(cls)} - {"trial_name", "source"}
            updates = {k: value[k] for k in names if k in value}
            return dataclasses.replace(cls.unnamed(str(name)), source=value, **updates)
        return dataclasses.replace(cls.unnamed(default_name), source=value)


@dataclass(frozen=True)
class TrialRecording:
    """
    In-memory representation of one trial file after line parsing.

    Notes
    - samples keep file order (time order); the sample spacing is 1/sample_rate_hz.
    - samples may already be cropped to the configured end time.
    """
    metadata: TrialMetadata
    samples: Tuple[RawSample, ...]
    source_path: Optional[Path] = None
    warnings: Tuple[str, ...] = ()

    @property
    def n_samples(self) -> int:
        return int(len(self.samples))

    @property
    def trial_id(self) -> str:
        return self.metadata.trial_name

    def samples_frame(self) -> pd.DataFrame:
        """Samples as a DataFrame with one row per reading."""
        return pd.DataFrame(
            {
                "speed_rpm": [s.speed_rpm for s in self.samples],
                "torque_pct": [s.torque_pct for s in self.samples],
                "viscosity_code": [s.viscosity_code for s in self.samples],
                "out_of_range": [s.out_of_range for s in self.samples],
            },
            columns=["speed_rpm", "torque_pct", "viscosity_code", "out_of_range"],
        )
