"""Tests for the command line entry point."""

import os

import pytest

import main


class TestParser:
    def test_command_required(self):
        with pytest.raises(SystemExit):
            main.create_parser().parse_args([])

    def test_run_defaults(self):
        args = main.create_parser().parse_args(["run"])
        assert args.protocol == "step"
        assert args.dt == 0.001
        assert args.substeps == 20
        assert args.storage_format == "excel"

    def test_realtime_sources_exclusive(self):
        with pytest.raises(SystemExit):
            main.create_parser().parse_args(["realtime", "--normalized", "0.3", "--adc", "100"])


class TestMain:
    def test_run(self, tmp_path, capsys):
        code = main.main(
            [
                "run",
                "--protocol",
                "flash",
                "--intensity",
                "2000",
                "--duration",
                "0.5",
                "--storage-format",
                "csv",
                "--output-dir",
                str(tmp_path),
            ]
        )
        assert code == 0
        assert "Final Current (pA)" in capsys.readouterr().out
        assert any(name.endswith("_metadata.json") for name in os.listdir(tmp_path))

    def test_missing_stimulus_file(self, tmp_path):
        code = main.main(["run", "--stimulus-file", str(tmp_path / "absent.csv"), "--output-dir", str(tmp_path)])
        assert code == 1

    def test_bad_timing(self, tmp_path):
        code = main.main(["run", "--substeps", "10", "--output-dir", str(tmp_path)])
        assert code == 1

    def test_realtime(self, capsys):
        code = main.main(["realtime", "--adc", "4095", "--ticks", "2"])
        lines = capsys.readouterr().out.strip().splitlines()
        assert code == 0
        assert lines[0] == "t,I,J_rod,J_cone,combined"
        assert len(lines) == 3
        assert lines[1].startswith("0.020,1e+04,")

    def test_curve(self, capsys):
        code = main.main(["curve", "--start", "1", "--stop", "100", "--points-per-decade", "1"])
        out = capsys.readouterr().out
        assert code == 0
        assert "rod: half saturation" in out
        assert "cone: half saturation" in out
