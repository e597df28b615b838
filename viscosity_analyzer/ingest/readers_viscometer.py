from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Pattern, Tuple

from viscosity_analyzer.errors import MalformedRecordError
from viscosity_analyzer.ingest.discovery import parse_trial_filename
from viscosity_analyzer.models.frames import RawSample, TrialRecording
from viscosity_analyzer.models.profile import AnalysisProfile


_NUM = r"(?P<value>[-+]?(?:\d+(?:\.\d*)?|\.\d+))"


@dataclass(frozen=True)
class ViscometerLineFormat:
    """
    Line format of the viscometer text export.

    Each reading is one line carrying three labelled fields, e.g.

        rpm 060 mPas 02.56 % 50.0

    Each field is located by its own label, so the order of the fields in the line
    does not matter. A leading '?' marks a reading outside the spindle range; it is
    stripped and reported through RawSample.out_of_range.
    """
    speed: Pattern[str] = re.compile(r"rpm\s*" + _NUM, re.IGNORECASE)
    viscosity: Pattern[str] = re.compile(r"mPas\s*" + _NUM, re.IGNORECASE)
    torque: Pattern[str] = re.compile(r"%\s*" + _NUM)
    out_of_range_marker: str = "?"

    def fields(self) -> Dict[str, Pattern[str]]:
        return {"speed": self.speed, "viscosity": self.viscosity, "torque": self.torque}

    def parse_line(self, line: str, line_no: Optional[int] = None, path: Optional[Path] = None) -> RawSample:
        """Parse one non-empty line into a RawSample.

        Raises
        ------
        MalformedRecordError
            A field is missing or not numeric.
        """
        s = line.strip()
        out_of_range = self.out_of_range_marker in s
        if out_of_range:
            s = s.replace(self.out_of_range_marker, "").strip()

        values: Dict[str, float] = {}
        for name, pat in self.fields().items():
            m = pat.search(s)
            if not m:
                raise MalformedRecordError(
                    f"missing or non-numeric '{name}' field in {line.strip()!r}", path=path, line_no=line_no
                )
            values[name] = float(m.group("value"))

        return RawSample(
            speed_rpm=values["speed"],
            torque_pct=values["torque"],
            viscosity_code=values["viscosity"],
            out_of_range=out_of_range,
        )


DEFAULT_LINE_FORMAT = ViscometerLineFormat()


def parse_lines(
    lines,
    *,
    line_format: ViscometerLineFormat = DEFAULT_LINE_FORMAT,
    max_samples: Optional[int] = None,
    path: Optional[Path] = None,
) -> Tuple[RawSample, ...]:
    """Parse an iterable of text lines. Blank lines are skipped; any other bad line is fatal."""
    samples: List[RawSample] = []
    for line_no, line in enumerate(lines, start=1):
        if max_samples is not None and len(samples) >= max_samples:
            break
        if not line.strip():
            continue
        samples.append(line_format.parse_line(line, line_no=line_no, path=path))
    return tuple(samples)


def read_viscometer_file(
    path: str | Path,
    *,
    max_samples: Optional[int] = None,
    line_format: ViscometerLineFormat = DEFAULT_LINE_FORMAT,
) -> Tuple[RawSample, ...]:
    """
    Read every reading of one viscometer export.

    Parameters
    ----------
    path:
        Text file, one reading per line.
    max_samples:
        Crop the recording to its first ``max_samples`` readings (end-time crop).

    Raises
    ------
    MalformedRecordError
        A line cannot be parsed, or the file holds no reading at all.
    """
    fp = Path(path).expanduser()
    if max_samples is not None and max_samples <= 0:
        raise ValueError(f"max_samples must be > 0, got {max_samples}")

    with open(fp, "r", errors="replace") as f:
        samples = parse_lines(f, line_format=line_format, max_samples=max_samples, path=fp)

    if not samples:
        raise MalformedRecordError("file contains no readings", path=fp)
    return samples


@dataclass
class ViscometerReader:
    """
    Reader for one trial file: metadata from the file name, readings from the content.

    Contract:
      - File name MUST match the trial naming schema (MalformedFilenameError otherwise).
      - Every non-blank line MUST parse (MalformedRecordError otherwise).
      - Readings are cropped to profile.max_samples.
    """
    profile: AnalysisProfile = field(default_factory=AnalysisProfile)
    line_format: ViscometerLineFormat = DEFAULT_LINE_FORMAT

    def read(self, file_path: str | Path) -> TrialRecording:
        fp = Path(file_path).expanduser().resolve()
        metadata = parse_trial_filename(fp.name)
        samples = read_viscometer_file(fp, max_samples=self.profile.max_samples, line_format=self.line_format)

        warnings: List[str] = []
        n_oor = sum(1 for s in samples if s.out_of_range)
        if n_oor:
            warnings.append(f"{n_oor} out-of-range reading(s) ('?' marker)")
        if self.profile.max_samples is not None and len(samples) == self.profile.max_samples:
            warnings.append(f"reached end-time crop: {self.profile.max_samples} samples ({self.profile.end_time_min:g} min)")

        return TrialRecording(
            metadata=metadata,
            samples=samples,
            source_path=fp,
            warnings=tuple(warnings),
        )
