import importlib.util
from pathlib import Path

import pytest

TOOLS = Path(__file__).resolve().parents[1] / "tools"


def load_tool(name):
    loc = importlib.util.spec_from_file_location(name, TOOLS / f"{name}.py")
    mod = importlib.util.module_from_spec(loc)
    loc.loader.exec_module(mod)
    return mod


@pytest.fixture(scope="module")
def replayer():
    return load_tool("simple_click_replayer")


def test_replayer_defaults(replayer):
    ns = replayer.parse_args([])
    assert ns.repeat is None
    assert ns.speed == 1.0
    assert not ns.infinite


def test_replayer_accepts_zero_repeats(replayer):
    assert replayer.parse_args(["--repeat", "0"]).repeat == 0


@pytest.mark.parametrize(
    "argv",
    [
        ["--repeat", "-1"],
        ["--repeat", "many"],
        ["--speed", "0"],
        ["--speed", "-2"],
        ["--speed", "nan"],
    ],
)
def test_replayer_rejects_bad_numbers(replayer, argv, capsys):
    with pytest.raises(SystemExit) as ei:
        replayer.parse_args(argv)
    assert ei.value.code == 2
    assert "error" in capsys.readouterr().err
