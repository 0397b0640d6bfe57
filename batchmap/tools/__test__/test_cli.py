import pytest

from batchmap import __version__
from batchmap.tools.main import main


def test_main_without_arguments_prints_help(capsys):
    assert main([]) == 1
    assert "usage: batchmap" in capsys.readouterr().err


def test_main_version(capsys):
    assert main(["--version"]) == 0
    assert capsys.readouterr().out.strip() == f"batchmap version {__version__}"


def test_pick_batch_size_command(capsys):
    assert main(["pick-batch-size", "--n-markers", "10", "--size", "5", "--overlap", "1", "--around", "1"]) == 0
    assert capsys.readouterr().out.strip() == "6"


def test_batches_command_lists_one_based_ranges(capsys):
    assert main(["batches", "--n-markers", "100"]) == 0
    lines = capsys.readouterr().out.strip().splitlines()
    assert lines[0] == "batch\tfirst\tlast\tn_markers"
    assert lines[1:] == ["1\t1\t50\t50", "2\t35\t84\t50", "3\t69\t100\t32"]


def test_batches_command_without_batches(capsys):
    with pytest.warns(UserWarning):
        assert main(["batches", "--n-markers", "20"]) == 1
    assert "No batch of size 50" in capsys.readouterr().err


def test_invalid_parameters_return_error(caplog):
    assert main(["pick-batch-size", "--n-markers", "10", "--size", "3", "--overlap", "2", "--around", "0"]) == 1
    assert "No valid batch size" in caplog.text


def test_argument_types_are_validated():
    with pytest.raises(SystemExit):
        main(["batches", "--n-markers", "0"])
    with pytest.raises(SystemExit):
        main(["batches", "--n-markers", "10", "--overlap", "-1"])
