import json
import runpy
import sys

import pytest

from slidematch import bench_matcher, cli
from slidematch.samples import make_sample_pair


@pytest.mark.e2e
@pytest.mark.parametrize(
    "flags,use_opaque,target",
    [
        ([], False, (6, 6)),
        (["--simple"], True, (0, 0)),
        (["--improved"], False, (6, 6)),
        (["--improved", "--simple", "-c", "0.5"], True, (0, 0)),
    ],
)
def test_cli_prints_bbox(sample_pair, sample_files, capsys, flags, use_opaque, target):
    piece_path, opaque_path, background_path = sample_files
    piece = opaque_path if use_opaque else piece_path

    assert cli.main([str(piece), str(background_path)] + flags) == 0
    payload = json.loads(capsys.readouterr().out)
    assert (payload["target_x"], payload["target_y"]) == target
    assert abs(payload["x1"] - sample_pair.expected.x1) <= 2
    assert abs(payload["y1"] - sample_pair.expected.y1) <= 2


@pytest.mark.e2e
def test_cli_reports_errors(sample_files, tmp_path, capsys):
    piece_path, _, _ = sample_files
    assert cli.main([str(piece_path), str(tmp_path / "missing.png")]) == 1
    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err.startswith("Error: Failed to load background image")


@pytest.mark.e2e
def test_cli_rejects_bad_confidence(sample_files, capsys):
    piece_path, _, background_path = sample_files
    argv = [str(piece_path), str(background_path), "--improved", "-c", "2"]
    assert cli.main(argv) == 1
    assert "Confidence threshold" in capsys.readouterr().err


@pytest.mark.unit
def test_percentile():
    assert bench_matcher._percentile([1.0, 2.0, 3.0, 4.0], 50) == pytest.approx(2.5)
    assert bench_matcher._percentile([5.0], 95) == 5.0
    assert bench_matcher._percentile([], 50) == 0.0


@pytest.mark.e2e
def test_benchmark_single_case():
    cases = [make_sample_pair(seed=0)]
    timings, hits = bench_matcher._run_benchmark(
        cases, iterations=1, repeats=1, warmup=0
    )

    assert set(timings) == set(bench_matcher.ENTRY_POINTS)
    assert all(len(values) == 1 for values in timings.values())
    assert hits == {name: 1 for name in bench_matcher.ENTRY_POINTS}


@pytest.mark.e2e
def test_cli_runs_as_module(sample_files, monkeypatch, capsys):
    piece_path, _, background_path = sample_files
    monkeypatch.setattr(
        sys, "argv", ["slidematch.cli", str(piece_path), str(background_path)]
    )
    with pytest.raises(SystemExit) as excinfo:
        runpy.run_module("slidematch.cli", run_name="__main__")
    assert excinfo.value.code == 0
    assert set(json.loads(capsys.readouterr().out)) == {
        "target_x",
        "target_y",
        "x1",
        "y1",
        "x2",
        "y2",
    }
