"""
Smoke tests for the command-line interface.
"""

import json
import sys

import cli


def run_cli(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["cli.py", *argv])
    return cli.main()


def test_sunpath_prints_window(monkeypatch, capsys):
    assert run_cli(monkeypatch, "sunpath", "--lat", "35.68", "--lon", "139.77", "--date", "2025-12-21") == 0
    out = capsys.readouterr().out
    assert "08:00" in out
    assert "16:00" in out
    assert "17:00" not in out


def test_massing_to_file(monkeypatch, tmp_path):
    output = tmp_path / "massing.json"
    code = run_cli(monkeypatch, "massing", "--usage", "office", "--floors", "3", "--area", "300",
                   "--height", "11", "-o", str(output))
    assert code == 0
    data = json.loads(output.read_text(encoding="utf-8"))
    assert len(data["floors"]) == 3
    assert data["shape"] == "rectangle"


def test_check_rejects_invalid_building(monkeypatch):
    code = run_cli(monkeypatch, "check", "--lat", "35.68", "--lon", "139.77", "--zone", "residential_1",
                   "--far", "200", "--usage", "office", "--floors", "0", "--area", "300")
    assert code == 1


def test_batch(monkeypatch, tmp_path):
    scenarios = tmp_path / "scenarios.csv"
    scenarios.write_text(
        "name,lat,lon,zone,far,usage,structure,floors,area,height,units\n"
        "House A,35.68,139.77,low_rise_exclusive_residential_1,100,residential_single,timber_frame,2,80,6,\n"
        "Bad Row,35.68,139.77,residential_1,200,spaceship,,3,100,9,\n",
        encoding="utf-8"
    )
    out_dir = tmp_path / "results"
    assert run_cli(monkeypatch, "batch", "-i", str(scenarios), "-o", str(out_dir)) == 0
    data = json.loads((out_dir / "house_a.json").read_text(encoding="utf-8"))
    assert data["status"] == "not_applicable"
