"""
Test suite for the command line entry point.
"""

import pytest
from loguru import logger

from arraysafety.cli import build_parser, main


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    # keep config discovery away from the project tree
    monkeypatch.chdir(tmp_path)
    yield
    logger.remove()
    logger.disable("arraysafety")


def run(basic_test_file, method, *extra):
    return main([str(basic_test_file), "BasicTest", method, *extra])


class TestMain:
    """Test exit status and printed verdicts."""

    def test_safe_method(self, basic_test_file, capsys):
        assert run(basic_test_file, "foo", "0", "10") == 0
        out = capsys.readouterr().out
        assert out.splitlines() == [
            "BasicTest.foo: 02: Safe",
            "BasicTest.foo: 10: Safe",
            "BasicTest.foo: 11: Safe",
        ]

    def test_unsafe_method(self, basic_test_file, capsys):
        assert run(basic_test_file, "bar", "0", "10") == 0
        out = capsys.readouterr().out
        assert "BasicTest.bar: 10: Potentially Unsafe" in out
        assert "BasicTest.bar: 11: Potentially Unsafe" in out

    def test_reports_written(self, basic_test_file, tmp_path):
        out_dir = tmp_path / "reports"
        assert run(basic_test_file, "foo2", "0", "10", "--output-dir", str(out_dir), "--trace") == 0
        assert sorted(p.name for p in out_dir.iterdir()) == [
            "BasicTest.foo2.fulloutput.txt",
            "Output_BasicTest_foo2.txt",
            "Output_BasicTest_points_to_analysis_foo2.txt",
        ]
        assert "05: Potentially Unsafe" in (out_dir / "Output_BasicTest_foo2.txt").read_text()

    def test_print_ir(self, basic_test_file, capsys):
        assert run(basic_test_file, "foo", "0", "10", "--print-ir") == 0
        out = capsys.readouterr().out
        assert "08: if i >= 2 goto 14" in out
        assert "Program-point: 8 -> {9, 14}" in out
        assert "True branch: (8, 14)" in out

    def test_config_file_supplies_window_and_output(self, basic_test_file, tmp_path, capsys):
        out_dir = tmp_path / "from-config"
        config = tmp_path / "settings.toml"
        config.write_text(
            f'lower_bound = 0\nupper_bound = 10\noutput_dir = "{out_dir.as_posix()}"\n'
        )
        assert run(basic_test_file, "bar", "--config", str(config)) == 0
        assert "Potentially Unsafe" in capsys.readouterr().out
        assert (out_dir / "Output_BasicTest_bar.txt").exists()

    def test_discovered_config(self, basic_test_file, tmp_path):
        (tmp_path / "arraysafety.toml").write_text("lower_bound = 5\nupper_bound = 1\n")
        assert run(basic_test_file, "foo") == 1

    def test_missing_method(self, basic_test_file, capsys):
        assert run(basic_test_file, "baz", "0", "10") == 1
        assert "method not found" in capsys.readouterr().err

    def test_missing_source(self, tmp_path):
        assert main([str(tmp_path / "Nope.java"), "Nope", "m"]) == 1


class TestArguments:
    """Test argument parsing."""

    def test_bounds_must_come_together(self, basic_test_file):
        with pytest.raises(SystemExit) as exc:
            run(basic_test_file, "foo", "0")
        assert exc.value.code == 2

    def test_defaults(self):
        args = build_parser().parse_args(["A.java", "A", "m"])
        assert args.lower is None and args.upper is None
        assert not args.trace and args.output_dir is None
