"""
Tests verifying every CLI flag is parsed and wired through to behavior.
"""

import unittest.mock
from pathlib import Path

import pytest

from clusterdf.__main__ import _run_pipeline, main
from clusterdf.cli import parse_args
from clusterdf.columns import format_cols, parse_cols
from clusterdf.errors import IoError
from clusterdf.pipeline import Report
from clusterdf.schema import ClusterMetaTable, DeviceId, DuplicatePaths, MountRecord, Stats


def test_defaults():
    args = parse_args([])
    assert args.path is None
    assert args.all is False
    assert args.inodes is False
    assert args.cols == "default"
    assert args.sort is None
    assert args.filter == ""
    assert args.units == "SI"
    assert args.csv is False
    assert args.csv_separator == ","
    assert args.json is False
    assert args.remote_stats is True
    assert args.color == "auto"
    assert args.ascii is False
    assert args.list_cols is False
    assert args.show_duplicates is False
    assert args.host_root == Path("/")


def test_all_flags_set():
    args = parse_args([
        "/mnt/lustre",
        "--all",
        "--inodes",
        "--cols", "+dev",
        "--sort", "used-asc",
        "--filter", "size>1G",
        "--units", "binary",
        "--csv",
        "--csv-separator", ";",
        "--json",
        "--remote-stats", "no",
        "--color", "yes",
        "--ascii",
        "--list-cols",
        "--show-duplicates",
        "--host-root", "/mnt/host",
    ])
    assert args.path == "/mnt/lustre"
    assert args.all is True
    assert args.inodes is True
    assert args.cols == "+dev"
    assert args.sort == "used-asc"
    assert args.filter == "size>1G"
    assert args.units == "binary"
    assert args.csv is True
    assert args.csv_separator == ";"
    assert args.json is True
    assert args.remote_stats is False
    assert args.color == "yes"
    assert args.ascii is True
    assert args.list_cols is True
    assert args.show_duplicates is True
    assert args.host_root == Path("/mnt/host")


def test_short_flags():
    args = parse_args(["-a", "-i", "-c", "fs", "-s", "size", "-f", "remote=no", "-u", "bytes", "-j"])
    assert (args.all, args.inodes, args.json) == (True, True, True)
    assert (args.cols, args.sort, args.filter, args.units) == ("fs", "size", "remote=no", "bytes")


@pytest.mark.parametrize("argv", [
    ["--units", "furlongs"],
    ["--remote-stats", "maybe"],
    ["--color", "sometimes"],
    ["--csv-separator", ";;"],
])
def test_bad_values_exit_2(argv):
    with pytest.raises(SystemExit) as e:
        parse_args(argv)
    assert e.value.code == 2


def test_version(capsys):
    with pytest.raises(SystemExit) as e:
        parse_args(["--version"])
    assert e.value.code == 0
    assert capsys.readouterr().out.startswith("clusterdf ")


def test_args_reach_pipeline():
    """Flags are parsed and passed through __main__._run_pipeline to pipeline.run."""
    args = parse_args(["/data", "-a", "-c", "+dev", "-s", "used", "-f", "remote=no", "--remote-stats", "no"])
    with unittest.mock.patch("clusterdf.__main__.run") as mock_run:
        _run_pipeline(Path("/host"), args)
    mock_run.assert_called_once()
    kwargs = mock_run.call_args.kwargs
    assert mock_run.call_args.args == (Path("/host"),)
    assert kwargs["path"] == "/data"
    assert kwargs["show_all"] is True
    assert format_cols(kwargs["cols"]) == "fs+used+use+free+size+mount+dev"
    assert str(kwargs["sorting"]) == "used-asc"
    assert kwargs["filter_expr"] == "remote=no"
    assert kwargs["remote_stats"] is False


def test_default_sort_left_to_pipeline():
    args = parse_args([])
    with unittest.mock.patch("clusterdf.__main__.run") as mock_run:
        _run_pipeline(Path("/"), args)
    assert mock_run.call_args.kwargs["sorting"] is None


def _report(records):
    return Report(records=records, cols=[], meta=ClusterMetaTable(), duplicates=DuplicatePaths())


def test_main_bad_column(capsys):
    assert main(["-c", "fs+nope"]) == 1
    err = capsys.readouterr().err
    assert err.startswith("clusterdf: 'nope' can't be parsed as a column")


def test_main_io_error(capsys):
    with unittest.mock.patch("clusterdf.__main__.run", side_effect=IoError("'/x' is not on any known mount")):
        assert main(["/x"]) == 1
    assert "not on any known mount" in capsys.readouterr().err


def test_main_empty_hint(capsys):
    with unittest.mock.patch("clusterdf.__main__.run", return_value=_report([])):
        assert main([]) == 0
    assert capsys.readouterr().out == "no mount to display - try\n    clusterdf -a\n"


def test_main_json_when_empty(capsys):
    with unittest.mock.patch("clusterdf.__main__.run", return_value=_report([])):
        assert main(["--json"]) == 0
    assert capsys.readouterr().out.strip() == "[]"


def test_main_list_cols(capsys):
    assert main(["--list-cols", "--ascii"]) == 0
    out = capsys.readouterr().out
    assert "stripe_count" in out
    assert "component_index" in out


def test_main_show_duplicates(capsys):
    record = MountRecord(
        device_id=DeviceId(major=8, minor=2),
        filesystem_name="/dev/sda2",
        filesystem_type="xfs",
        mount_point="/home",
        stats=Stats(bsize=4096, blocks=10, bfree=5, bavail=5),
    )
    report = _report([record])
    report.cols = parse_cols("mount")
    report.duplicates.add("/dev/sda2", "/srv")
    with unittest.mock.patch("clusterdf.__main__.run", return_value=report):
        assert main(["--show-duplicates", "--color", "no"]) == 0
    out = capsys.readouterr().out
    assert "/dev/sda2 also mounted on:\n    /srv" in out


def test_sort_help_names_both_defaults(capsys):
    with pytest.raises(SystemExit):
        parse_args(["--help"])
    out = "".join(capsys.readouterr().out.split())
    assert "size-desc,ortopologyorderintheclusterview" in out
