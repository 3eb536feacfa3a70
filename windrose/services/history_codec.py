"""Encoding and decoding of bulk wind history payloads.

Two payload formats are supported.

Simple::

    {"format": "simple", "when": T, "records": [dir, speed, dt, dir, speed, dt, ...]}

``dt`` is the number of ms since the previous record (or since ``when`` for
the first record).

Delta::

    {"format": "delta", "when": T, "step": S, "numarcs": A, "bands": [...],
     "records": [v, v, {"when": d}, v, ...]}

Each integer ``v`` is added to a bucket cursor that starts at 0 ("arc 0,
band 0"); the cursor value is ``band * numarcs + arc`` and any negative value
means calm. Every integer record advances the clock by ``step`` ms, and a
``{"when": d}`` record shifts the clock by ``d`` ms without emitting a
reading. Decoded readings sit at their bucket's representative direction and
speed, so the format is lossy by design.
"""
import math
from typing import Any, Iterable, List, Mapping, Optional, Sequence

import numpy as np
from attrs import define

from windrose.config import HISTORY_STEP_MS
from windrose.exceptions import HistoryFormatError
from windrose.models.reading import Reading
from windrose.services.bucket_model import CALM_BUCKET, band_for, classify, split_bucket

FORMAT_SIMPLE = "simple"
FORMAT_DELTA = "delta"


@define
class HistoryRequest:
    """A request for the reading history held by a log."""

    when: Optional[int] = None  # only readings newer than this
    numarcs: Optional[int] = None
    bands: Optional[List[float]] = None
    id: Any = None
    nonce: Any = None
    format: Optional[str] = None

    @property
    def wants_delta(self) -> bool:
        """Whether the requester supplied enough geometry for the delta format."""
        return bool(self.numarcs and self.numarcs > 0 and self.bands)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "HistoryRequest":
        """Create a request from a decoded message."""
        if not isinstance(data, Mapping):
            raise HistoryFormatError("History request must be an object")
        numarcs = data.get("numarcs")
        if numarcs is not None and not _is_number(numarcs):
            raise HistoryFormatError(f"numarcs must be a number, got {numarcs!r}")
        bands = data.get("bands")
        if bands is not None:
            if not isinstance(bands, list) or not all(_is_number(b) for b in bands):
                raise HistoryFormatError(f"bands must be a list of numbers, got {bands!r}")
        when = data.get("when")
        if when is not None and not _is_number(when):
            raise HistoryFormatError(f"when must be a number, got {when!r}")
        return cls(
            when=when,
            numarcs=int(numarcs) if numarcs is not None else None,
            bands=list(bands) if bands is not None else None,
            id=data.get("id"),
            nonce=data.get("nonce"),
            format=data.get("format"),
        )


def encode_simple(readings: Iterable[Reading], since: Optional[int] = None) -> dict:
    """
    Encode readings in the simple format.

    Args:
        readings: Readings ordered by time
        since: If set, only readings newer than this timestamp are encoded

    Returns:
        Simple-format payload; "when" is None if nothing was encoded
    """
    records: List[float] = []
    start = None
    last = None
    for reading in readings:
        if since and reading.when <= since:
            continue
        if last is None:
            start = last = reading.when
        records.extend((reading.direction, reading.speed, reading.when - last))
        last = reading.when

    return {"format": FORMAT_SIMPLE, "when": start, "records": records}


def encode_delta(
    readings: Iterable[Reading],
    numarcs: int,
    bands: Sequence[float],
    step: int = HISTORY_STEP_MS,
    since: Optional[int] = None,
) -> dict:
    """
    Encode readings in the delta format.

    The encoder keeps a guessed clock that advances by ``step`` per record.
    Whenever a reading's actual time, quantized to ``step``, differs from the
    guess, a {"when": d} correction is emitted before the reading and the
    guess is resynchronized. Regularly sampled logs therefore cost one small
    integer per reading.

    Args:
        readings: Readings ordered by time
        numarcs: Number of arcs the decoder uses
        bands: Band boundaries the decoder uses
        step: Nominal ms between readings
        since: If set, only readings newer than this timestamp are encoded

    Returns:
        Delta-format payload
    """
    if numarcs <= 0 or not bands:
        raise ValueError("Delta encoding needs numarcs > 0 and at least one band")
    arc_width = 360 / numarcs

    records: List[Any] = []
    first = None
    start = None  # time the guessed clock was last resynchronized
    guess = None
    last = 0
    for reading in readings:
        if since and reading.when <= since:
            continue
        if first is None:
            first = start = guess = reading.when

        actual_steps = _round_half_up((reading.when - start) / step)
        guessed_steps = _round_half_up((guess - start) / step)
        if actual_steps != guessed_steps:
            records.append({"when": reading.when - guess})
            start = guess = reading.when

        target = classify(reading.direction, reading.speed, bands, numarcs, arc_width)
        records.append(target - last)
        last = target
        guess += step

    return {
        "format": FORMAT_DELTA,
        "when": first,
        "step": step,
        "numarcs": numarcs,
        "bands": list(bands),
        "records": records,
    }


def build_history_response(
    readings: Iterable[Reading],
    request: HistoryRequest,
    step: int = HISTORY_STEP_MS,
) -> dict:
    """
    Answer a history request.

    The delta format is used when the request carries numarcs and bands,
    the simple format otherwise. Request id and nonce are echoed back.
    """
    if request.wants_delta:
        msg = encode_delta(readings, request.numarcs, request.bands, step=step, since=request.when)
    else:
        msg = encode_simple(readings, since=request.when)
    if request.id is not None:
        msg["id"] = request.id
    if request.nonce is not None:
        msg["nonce"] = request.nonce
    return msg


def decode_payload(
    payload: Mapping[str, Any],
    numarcs: int,
    bands: Sequence[float],
    arc_width: Optional[float] = None,
) -> List[Reading]:
    """
    Decode a history payload into readings.

    The whole payload is validated and decoded before anything is returned,
    so a malformed payload fails here rather than halfway through loading.

    Args:
        payload: Simple or delta payload
        numarcs: Number of arcs of the receiving rose
        bands: Band boundaries of the receiving rose
        arc_width: Arc width in degrees (defaults to 360 / numarcs)

    Returns:
        Readings in payload order

    Raises:
        HistoryFormatError: if the payload is malformed or its geometry
            does not match the receiving rose
    """
    if not isinstance(payload, Mapping):
        raise HistoryFormatError("History payload must be an object")

    fmt = payload.get("format")
    if fmt not in (FORMAT_SIMPLE, FORMAT_DELTA):
        raise HistoryFormatError(f"Unknown history format: {fmt!r}")

    records = payload.get("records")
    if not isinstance(records, list):
        raise HistoryFormatError("History payload has no records list")

    when = payload.get("when")
    if not records:
        return []
    if not _is_number(when):
        raise HistoryFormatError(f"History payload has no start time: {when!r}")

    if fmt == FORMAT_SIMPLE:
        return _decode_simple(when, records)
    return _decode_delta(payload, when, records, numarcs, bands, arc_width or 360 / numarcs)


def band_histogram(readings: Iterable[Reading], bands: Sequence[float]) -> List[int]:
    """
    Count readings per speed band.

    Index 0 counts calm readings, index b + 1 counts band b.
    """
    indices = [0 if r.speed <= 0 else band_for(r.speed, bands) + 1 for r in readings]
    if not indices:
        return []
    return np.bincount(indices).tolist()


def _decode_simple(start: float, records: List[Any]) -> List[Reading]:
    """Decode flat (dir, speed, dt) triples."""
    if len(records) % 3:
        raise HistoryFormatError(
            f"Simple records must be triples, got {len(records)} values"
        )
    if not all(_is_number(v) for v in records):
        raise HistoryFormatError("Simple records must all be numbers")

    readings = []
    when = start
    for i in range(0, len(records), 3):
        direction, speed, delta = records[i:i + 3]
        when += delta
        readings.append(Reading(direction=direction, speed=speed, when=when))
    return readings


def _decode_delta(
    payload: Mapping[str, Any],
    start: float,
    records: List[Any],
    numarcs: int,
    bands: Sequence[float],
    arc_width: float,
) -> List[Reading]:
    """Decode bucket deltas and clock adjustments."""
    step = payload.get("step")
    if not _is_number(step):
        raise HistoryFormatError(f"Delta payload has no step: {step!r}")

    declared_arcs = payload.get("numarcs")
    if declared_arcs is not None and declared_arcs != numarcs:
        raise HistoryFormatError(
            f"Payload was encoded for {declared_arcs} arcs, rose has {numarcs}"
        )
    declared_bands = payload.get("bands")
    if declared_bands is not None and (
        not isinstance(declared_bands, list)
        or not all(_is_number(b) for b in declared_bands)
    ):
        raise HistoryFormatError(f"bands must be a list of numbers, got {declared_bands!r}")
    if declared_bands is not None and declared_bands != list(bands):
        raise HistoryFormatError(
            f"Payload was encoded for bands {declared_bands}, rose has {list(bands)}"
        )

    readings = []
    target = 0
    when = start
    for i, value in enumerate(records):
        if isinstance(value, Mapping):
            adjust = value.get("when")
            if not _is_number(adjust):
                raise HistoryFormatError(f"Record {i} is not a valid time adjustment: {value!r}")
            when += adjust
            continue

        if not _is_number(value) or value != int(value):
            raise HistoryFormatError(f"Record {i} is not an integer: {value!r}")
        target += int(value)

        if target <= CALM_BUCKET:
            direction, speed = 0.0, 0.0
        else:
            arc, band = split_bucket(target, numarcs)
            if band >= len(bands):
                raise HistoryFormatError(
                    f"Record {i} decodes to band {band}, only {len(bands)} bands configured"
                )
            direction = arc * arc_width
            low = 0 if band == 0 else bands[band - 1]
            speed = (low + bands[band]) / 2

        readings.append(Reading(direction=direction, speed=speed, when=when))
        when += step
    return readings


def _is_number(value: Any) -> bool:
    """Check for a finite real number, excluding booleans."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _round_half_up(value: float) -> int:
    """Round with halves going up, matching the decoder's arc rounding."""
    return math.floor(value + 0.5)
