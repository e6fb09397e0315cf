#!/usr/bin/env python3

import argparse
import math
import statistics
import time
from typing import Callable, Dict, List, Tuple

from slidematch import matcher
from slidematch.models import BoundingBox
from slidematch.samples import SamplePair, make_sample_pair

EntryPoint = Callable[[bytes, bytes], BoundingBox]

# name -> (entry point, whether it takes the transparent-border piece)
ENTRY_POINTS: Dict[str, Tuple[EntryPoint, bool]] = {
    "slide_match": (matcher.slide_match, True),
    "simple_slide_match": (matcher.simple_slide_match, False),
    "improved_slide_match": (matcher.improved_slide_match, True),
    "improved_simple_slide_match": (matcher.improved_simple_slide_match, False),
}
HIT_TOLERANCE_PX = 2


def _percentile(sorted_vals: List[float], p: float) -> float:
    if not sorted_vals:
        return 0.0
    k = (len(sorted_vals) - 1) * (p / 100.0)
    f = math.floor(k)
    c = math.ceil(k)
    if f == c:
        return sorted_vals[int(k)]
    return sorted_vals[f] * (c - k) + sorted_vals[c] * (k - f)


def _format_ms(value_s: float) -> str:
    return f"{value_s * 1000.0:.2f} ms"


def _is_hit(bbox: BoundingBox, expected: BoundingBox) -> bool:
    return (
        abs(bbox.x1 - expected.x1) <= HIT_TOLERANCE_PX
        and abs(bbox.y1 - expected.y1) <= HIT_TOLERANCE_PX
    )


def _build_cases(count: int, size: Tuple[int, int]) -> List[SamplePair]:
    return [make_sample_pair(seed=seed, size=size) for seed in range(count)]


def _run_benchmark(
    cases: List[SamplePair],
    iterations: int,
    repeats: int,
    warmup: int,
) -> Tuple[Dict[str, List[float]], Dict[str, int]]:
    timings: Dict[str, List[float]] = {name: [] for name in ENTRY_POINTS}
    hits: Dict[str, int] = {name: 0 for name in ENTRY_POINTS}

    def _run_cases(record: bool) -> None:
        for case in cases:
            for name, (entry, uses_border) in ENTRY_POINTS.items():
                piece = case.piece_png if uses_border else case.opaque_piece_png
                start = time.perf_counter()
                entry(piece, case.background_png)
                if record:
                    timings[name].append(time.perf_counter() - start)

    for _ in range(warmup):
        _run_cases(record=False)

    for _ in range(repeats):
        for _ in range(iterations):
            _run_cases(record=True)

    for case in cases:
        for name, (entry, uses_border) in ENTRY_POINTS.items():
            piece = case.piece_png if uses_border else case.opaque_piece_png
            if _is_hit(entry(piece, case.background_png), case.expected):
                hits[name] += 1

    return timings, hits


def _summarize(label: str, values: List[float]) -> str:
    sorted_vals = sorted(values)
    return (
        f"{label}: median {_format_ms(statistics.median(sorted_vals))}, "
        f"mean {_format_ms(statistics.mean(sorted_vals))}, "
        f"p95 {_format_ms(_percentile(sorted_vals, 95))}, "
        f"min {_format_ms(sorted_vals[0])}, "
        f"max {_format_ms(sorted_vals[-1])}"
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Benchmark matcher runtime.")
    parser.add_argument(
        "--iterations",
        type=int,
        default=5,
        help="Iterations per repeat (per case).",
    )
    parser.add_argument(
        "--repeats",
        type=int,
        default=3,
        help="Repeat count for the iteration loop.",
    )
    parser.add_argument(
        "--warmup",
        type=int,
        default=1,
        help="Warmup passes before timing.",
    )
    parser.add_argument(
        "--cases",
        type=int,
        default=5,
        help="Number of generated sample pairs.",
    )
    parser.add_argument(
        "--size",
        type=int,
        nargs=2,
        default=[260, 160],
        metavar=("WIDTH", "HEIGHT"),
        help="Background size of the generated samples.",
    )
    args = parser.parse_args()

    cases = _build_cases(args.cases, (args.size[0], args.size[1]))
    timings, hits = _run_benchmark(
        cases=cases,
        iterations=args.iterations,
        repeats=args.repeats,
        warmup=args.warmup,
    )

    total_runs = sum(len(v) for v in timings.values())
    print(
        f"Runs: {total_runs} | cases: {len(cases)} | "
        f"iterations: {args.iterations} | repeats: {args.repeats} | "
        f"warmup: {args.warmup}"
    )

    combined: List[float] = []
    for name, values in timings.items():
        if not values:
            continue
        combined.extend(values)
        print(_summarize(name, values))
        print(f"  accuracy: {hits[name]}/{len(cases)} within {HIT_TOLERANCE_PX}px")

    if combined:
        print(_summarize("overall", combined))


if __name__ == "__main__":
    main()
