"""Recover burn points and machine parameters from an engraving script.

Works on scripts written by :mod:`wood_engraver.gcode.generator` as well as
hand-edited ones.  Nothing here raises for bad input: unparseable lines are
logged at DEBUG and skipped, and every parameter that cannot be found keeps
the caller-supplied fallback.

Detection rules:

- ``Bed Size: <w>x<h>mm``, ``Resolution: <s>mm`` and ``Engraving Z: <z>mm``
  comment markers give bed size, step size and plunge depth.
- Temperature: a first ``M104``/``M109`` at the preheat marker (170 C on the
  reference machine profile) means the real target follows; the first value
  above the marker after a preheat wins.  Without a preheat the first
  non-zero value wins.
- Dwell: the first ``G4 S<seconds>``.
- Points: ``G0``/``G1`` lines carry sticky X/Y; a line whose Z is negative
  or within 0.1 mm of the plunge depth burns at the current X/Y.
  Points are deduplicated by exact (0.1 mm) coordinate.
- Suggested step size: mode of the rounded distances between each of the
  first 100 points and its next 9 neighbours (ties go to the smaller
  distance).
"""

from __future__ import annotations

import logging
import math
import re
from collections import Counter
from dataclasses import dataclass, field, replace
from typing import Sequence

from wood_engraver.configs.loader import ScriptParameters
from wood_engraver.errors import MalformedScriptError
from wood_engraver.gcode.generator import DEFAULT_FILE_NAME, SCRIPT_EXTENSION
from wood_engraver.points import Point, PointSource, round_tenth

logger = logging.getLogger(__name__)

DEFAULT_PREHEAT_TEMPERATURE = 170.0
# Z within this distance of the plunge depth counts as a plunge
DEPTH_TOLERANCE_MM = 0.1
STEP_SAMPLE_POINTS = 100
STEP_SAMPLE_NEIGHBOURS = 10
STEP_MIN_DISTANCE = 0.1
STEP_MAX_DISTANCE = 50.0

_NUMBER = r"(-?\d+(?:\.\d+)?)"
_BED_SIZE_RE = re.compile(r"Bed Size:\s*" + _NUMBER + r"\s*[x\u00d7]\s*" + _NUMBER + r"\s*mm")
_RESOLUTION_RE = re.compile(r"Resolution:\s*(\d+(?:\.\d*)?)\s*mm")
_DEPTH_RE = re.compile(r"Engraving Z:\s*([-+]?\d*\.?\d+)\s*mm")
_WORD_RE = re.compile(r"([A-Za-z])(.*)")


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GCodeLine:
    """One tokenized command line.

    ``command`` is the normalized first word (``G00`` -> ``G0``); ``words``
    maps each further letter to its value, or None for a bare letter
    (``G28 X Y``).  A repeated letter keeps its first value.
    """

    command: str
    words: dict[str, float | None] = field(default_factory=dict)

    def get(self, letter: str) -> float | None:
        return self.words.get(letter)

    def has(self, letter: str) -> bool:
        return self.words.get(letter) is not None


def _normalize_command(word: str) -> str:
    letter, number = word[0].upper(), word[1:]
    try:
        value = float(number)
    except ValueError as exc:
        raise MalformedScriptError(f"bad command word {word!r}") from exc
    if value.is_integer():
        return f"{letter}{int(value)}"
    return f"{letter}{value:g}"


def tokenize_line(line: str) -> GCodeLine | None:
    """Split a script line into command and letter/value words.

    Parameters
    ----------
    line : str
        Raw line; anything after ``;`` is a comment.

    Returns
    -------
    GCodeLine | None
        None for blank and comment-only lines.

    Raises
    ------
    MalformedScriptError
        If a word is not a letter followed by an optional number.
    """
    code = line.split(";", 1)[0].strip()
    if not code:
        return None

    tokens = code.split()
    first = _WORD_RE.fullmatch(tokens[0])
    if first is None or not first.group(2):
        raise MalformedScriptError(f"bad command word {tokens[0]!r}")
    command = _normalize_command(tokens[0])

    words: dict[str, float | None] = {}
    for token in tokens[1:]:
        match = _WORD_RE.fullmatch(token)
        if match is None:
            raise MalformedScriptError(f"bad word {token!r} in {code!r}")
        letter = match.group(1).upper()
        raw = match.group(2)
        if raw:
            try:
                value: float | None = float(raw)
            except ValueError as exc:
                raise MalformedScriptError(
                    f"bad value {token!r} in {code!r}"
                ) from exc
            if not math.isfinite(value):
                raise MalformedScriptError(f"non-finite value {token!r}")
        else:
            value = None
        words.setdefault(letter, value)

    return GCodeLine(command=command, words=words)


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ImportedScript:
    """Best-effort result of :func:`parse_gcode`.

    Parameters
    ----------
    points : list[Point]
        Unique burn points in file order (bed space).
    parameters : ScriptParameters
        Detected parameters, fallbacks where nothing was found.
    suggested_step_size : float
        Most common spacing between nearby points; the declared step size
        when too few points exist.
    file_name : str
        Script name without the ``.gcode`` extension.
    skipped_lines : int
        Lines the tokenizer rejected.
    """

    points: list[Point]
    parameters: ScriptParameters
    suggested_step_size: float
    file_name: str
    skipped_lines: int = 0


# ---------------------------------------------------------------------------
# Detection passes
# ---------------------------------------------------------------------------


def _scan_markers(lines: Sequence[str], params: ScriptParameters) -> ScriptParameters:
    """Bed size, resolution and plunge depth from comment markers."""
    for line in lines:
        if "Bed Size:" in line:
            match = _BED_SIZE_RE.search(line)
            if match:
                width, height = float(match.group(1)), float(match.group(2))
                if width > 0 and height > 0:
                    params = replace(params, bed_width=width, bed_height=height)
        if "Resolution:" in line:
            match = _RESOLUTION_RE.search(line)
            if match and float(match.group(1)) > 0:
                params = replace(params, step_size=float(match.group(1)))
        if "Engraving Z:" in line:
            match = _DEPTH_RE.search(line)
            if match:
                params = replace(params, depth_z=float(match.group(1)))
    return params


def _detect_temperature(
    commands: Sequence[GCodeLine], preheat: float,
) -> float | None:
    found_preheat = False
    first_nonzero: float | None = None
    for cmd in commands:
        if cmd.command not in ("M104", "M109") or not cmd.has("S"):
            continue
        temp = cmd.get("S")
        if temp == preheat:
            found_preheat = True
        elif found_preheat and temp > preheat:
            return temp
        elif not found_preheat and temp > 0 and first_nonzero is None:
            first_nonzero = temp
    return first_nonzero


def _detect_dwell(commands: Sequence[GCodeLine]) -> float | None:
    for cmd in commands:
        if cmd.command == "G4" and cmd.has("S"):
            return cmd.get("S")
    return None


def _extract_points(
    commands: Sequence[GCodeLine], depth_z: float, source: PointSource,
) -> list[Point]:
    x: float | None = None
    y: float | None = None
    seen: set[tuple[float, float]] = set()
    points: list[Point] = []
    for cmd in commands:
        if cmd.command not in ("G0", "G1"):
            continue
        if cmd.has("X"):
            x = cmd.get("X")
        if cmd.has("Y"):
            y = cmd.get("Y")
        if x is None or y is None or not cmd.has("Z"):
            continue
        z = cmd.get("Z")
        if z < 0 or abs(z - depth_z) < DEPTH_TOLERANCE_MM:
            point = Point(x, y, source)
            if point.key not in seen:
                seen.add(point.key)
                points.append(point)
    return points


def suggest_step_size(points: Sequence[Point], fallback: float) -> float:
    """Mode of rounded distances between nearby points in file order.

    Only distances in ``(0.1, 50)`` mm count; *fallback* is returned when
    there are none.
    """
    n = len(points)
    distances: list[float] = []
    for i in range(min(STEP_SAMPLE_POINTS, n - 1)):
        for j in range(i + 1, min(i + STEP_SAMPLE_NEIGHBOURS, n)):
            d = points[i].distance_to(points[j])
            if STEP_MIN_DISTANCE < d < STEP_MAX_DISTANCE:
                distances.append(round_tenth(d))
    if not distances:
        return fallback

    counts = Counter(distances)
    best = max(counts.values())
    return min(d for d, c in counts.items() if c == best)


def script_name(file_name: str | None) -> str:
    """Strip the script extension; ``engraving`` when nothing usable remains."""
    if not file_name:
        return DEFAULT_FILE_NAME
    match = re.match(r"(.+)" + re.escape(SCRIPT_EXTENSION), file_name)
    return match.group(1) if match else DEFAULT_FILE_NAME


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_gcode(
    text: str,
    file_name: str | None,
    defaults: ScriptParameters,
    *,
    preheat_temperature: float = DEFAULT_PREHEAT_TEMPERATURE,
    source: PointSource = PointSource.MANUAL,
) -> ImportedScript:
    """Parse an engraving script.

    Parameters
    ----------
    text : str
        Script contents.
    file_name : str | None
        Original file name (``sign.gcode`` -> ``sign``).
    defaults : ScriptParameters
        Fallbacks for every parameter the script does not reveal.
    preheat_temperature : float
        Preheat marker of the machine profile.
    source : PointSource
        Tag given to imported points.

    Returns
    -------
    ImportedScript
        Best-effort points and parameters.  Never raises for bad content.
    """
    lines = text.splitlines()
    params = _scan_markers(lines, defaults)

    commands: list[GCodeLine] = []
    skipped = 0
    for lineno, line in enumerate(lines, start=1):
        try:
            cmd = tokenize_line(line)
        except MalformedScriptError as exc:
            skipped += 1
            logger.debug("Skipping line %d: %s", lineno, exc)
            continue
        if cmd is not None:
            commands.append(cmd)

    temperature = _detect_temperature(commands, preheat_temperature)
    if temperature is None:
        logger.warning(
            "No heating command found; using temperature %s",
            defaults.temperature,
        )
    else:
        params = replace(params, temperature=temperature)

    dwell = _detect_dwell(commands)
    if dwell is not None:
        params = replace(params, dwell_time=dwell)

    points = _extract_points(commands, params.depth_z, source)
    suggested = (
        suggest_step_size(points, params.step_size)
        if len(points) > 1
        else params.step_size
    )
    name = script_name(file_name)

    logger.info(
        "Imported %s: %d points, bed %gx%g mm, %g C, dwell %g s, "
        "depth %g mm, step %g mm (suggested %g mm)",
        name, len(points), params.bed_width, params.bed_height,
        params.temperature, params.dwell_time, params.depth_z,
        params.step_size, suggested,
    )
    if skipped:
        logger.warning("Skipped %d malformed line(s)", skipped)

    return ImportedScript(
        points=points,
        parameters=params,
        suggested_step_size=suggested,
        file_name=name,
        skipped_lines=skipped,
    )
