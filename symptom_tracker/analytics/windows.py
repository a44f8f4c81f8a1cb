# -*- coding: utf-8 -*-
"""Window-based cause/effect scoring.

A cause event (a meal, a low-sleep day) is scored against effect events
(symptom instances, flare starts) over a fixed set of post-event windows. Each
window gets a chi-square score over a 2x2 table and a coarse df=1 p-value.
All timestamps are epoch milliseconds.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from ..timeutil import HOUR_MS

MINUTE_MS = 60 * 1000


@dataclass(frozen=True)
class WindowRange:
    label: str
    start_ms: int
    end_ms: int


@dataclass(frozen=True)
class TimeRange:
    start: int
    end: int

    def to_dict(self) -> dict:
        return {"start": self.start, "end": self.end}


@dataclass
class WindowScore:
    window: str
    score: float
    sample_size: int
    p_value: float

    def to_dict(self) -> dict:
        return {
            "window": self.window,
            "score": self.score,
            "sample_size": self.sample_size,
            "p_value": self.p_value,
        }


WINDOW_SET: List[WindowRange] = [
    WindowRange("15m", 0, 15 * MINUTE_MS),
    WindowRange("30m", 0, 30 * MINUTE_MS),
    WindowRange("1h", 0, HOUR_MS),
    WindowRange("2-4h", 2 * HOUR_MS, 4 * HOUR_MS),
    WindowRange("6-12h", 6 * HOUR_MS, 12 * HOUR_MS),
    WindowRange("24h", 0, 24 * HOUR_MS),
    WindowRange("48h", 0, 48 * HOUR_MS),
    WindowRange("72h", 0, 72 * HOUR_MS),
]

_WINDOWS_BY_LABEL = {w.label: w for w in WINDOW_SET}


def window_by_label(label: str) -> WindowRange:
    try:
        return _WINDOWS_BY_LABEL[label]
    except KeyError as exc:
        raise ValueError(f"Unknown window label: {label}") from exc


def chi_square(a: float, b: float, c: float, d: float) -> float:
    """Pearson chi-square for the table [[a, b], [c, d]]; zero-expectation cells are skipped."""
    total = a + b + c + d
    if total == 0:
        return 0.0
    row1 = a + b
    row2 = c + d
    col1 = a + c
    col2 = b + d
    cells = (
        (a, row1 * col1 / total),
        (b, row1 * col2 / total),
        (c, row2 * col1 / total),
        (d, row2 * col2 / total),
    )
    return float(sum((o - e) * (o - e) / e for o, e in cells if e > 0))


def chi_square_to_p_value(score: float) -> float:
    if score >= 10.828:
        return 0.001
    if score >= 6.635:
        return 0.01
    if score >= 3.841:
        return 0.05
    if score >= 2.706:
        return 0.10
    if score >= 1.0:
        return 0.20
    return 0.30


def within_window(cause_ts: int, effect_ts: int, window: WindowRange) -> bool:
    diff = effect_ts - cause_ts
    return window.start_ms <= diff <= window.end_ms


def compute_consistency(
    cause_events: Sequence[int],
    effect_events: Sequence[int],
    window: WindowRange,
) -> float:
    """Share of cause events followed by at least one effect inside ``window``."""
    if not cause_events:
        return 0.0
    hits = sum(
        1 for cause in cause_events if any(within_window(cause, eff, window) for eff in effect_events)
    )
    return hits / len(cause_events)


def compute_pair_with_data(
    cause_events: Iterable[int],
    effect_events: Iterable[int],
    time_range: TimeRange,
    windows: Optional[Sequence[WindowRange]] = None,
) -> List[WindowScore]:
    windows = list(windows) if windows is not None else WINDOW_SET
    causes = [t for t in cause_events if time_range.start <= t <= time_range.end]
    effects = [t for t in effect_events if time_range.start <= t <= time_range.end]

    scores: List[WindowScore] = []
    for window in windows:
        with_effect = 0
        without_effect = 0
        for cause in causes:
            if any(within_window(cause, eff, window) for eff in effects):
                with_effect += 1
            else:
                without_effect += 1

        matched = sum(1 for eff in effects if any(within_window(c, eff, window) for c in causes))
        baseline_with_effect = len(effects) - matched
        # No exposure-time denominator exists for the baseline row, so the
        # unexposed "no effect" cell mirrors the exposed one.
        baseline_without_effect = without_effect

        score = chi_square(with_effect, without_effect, baseline_with_effect, baseline_without_effect)
        scores.append(
            WindowScore(
                window=window.label,
                score=score,
                sample_size=len(causes),
                p_value=chi_square_to_p_value(score),
            )
        )
    return scores


def best_window(scores: Sequence[WindowScore]) -> Optional[WindowScore]:
    best: Optional[WindowScore] = None
    for cur in scores:
        if (
            best is None
            or cur.score > best.score
            or (cur.score == best.score and cur.sample_size > best.sample_size)
        ):
            best = cur
    return best
