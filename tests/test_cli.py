# SPDX-License-Identifier: MIT
"""Tests for fbgen CLI."""

from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path

import pytest

from fbgen import __version__, _reset_cli_vars
from fbgen.cli import main, parse_variables, setup_logging

MODEL = {
    "name": "cli",
    "targets": [
        {
            "name": "tool",
            "kind": "utility",
            "custom_commands": [
                {"outputs": ["out.txt"], "command_lines": ["echo hi > out.txt"]}
            ],
        },
        {"name": "docs", "kind": "utility", "depends": ["tool"]},
    ],
}


@pytest.fixture
def model_file(tmp_path: Path) -> Path:
    path = tmp_path / "model.json"
    path.write_text(json.dumps(MODEL))
    return path


@pytest.fixture(autouse=True)
def clean_vars(monkeypatch):
    """Keep variables exported by a command from leaking into other tests."""
    monkeypatch.setenv("FBGEN_VARS", "{}")
    _reset_cli_vars()
    yield
    _reset_cli_vars()


class TestParseVariables:
    def test_variables_and_rest(self) -> None:
        variables, remaining = parse_variables(["A=1", "target", "-x=2", "=3"])
        assert variables == {"A": "1"}
        assert remaining == ["target", "-x=2", "=3"]

    def test_value_with_equals(self) -> None:
        variables, _ = parse_variables(["FLAGS=-DX=1"])
        assert variables == {"FLAGS": "-DX=1"}


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_setup_logging_normal(self) -> None:
        """Test normal logging setup."""
        setup_logging(verbose=False, debug=False)

    def test_setup_logging_verbose(self) -> None:
        setup_logging(verbose=True, debug=False)

    def test_setup_logging_debug(self) -> None:
        setup_logging(verbose=False, debug=True)


class TestMain:
    """Tests for CLI commands run in-process."""

    def test_generate(self, tmp_path: Path, model_file: Path, capsys) -> None:
        build = tmp_path / "build"
        assert main(["generate", str(model_file), "-B", str(build)]) == 0
        assert (build / "fbuild.bff").exists()
        assert (build / "fbgen_config.json").exists()
        assert "Generated" in capsys.readouterr().out

    def test_generate_with_mermaid(self, tmp_path: Path, model_file: Path) -> None:
        build = tmp_path / "build"
        diagram = tmp_path / "graph.mmd"
        args = ["generate", str(model_file), "-B", str(build), "--mermaid", str(diagram)]
        assert main(args) == 0
        assert "tool --> docs" in diagram.read_text()

    def test_generate_variables(self, tmp_path: Path, model_file: Path) -> None:
        """Test that KEY=value pairs reach the settings."""
        build = tmp_path / "build"
        args = ["generate", str(model_file), "-B", str(build), "FBGEN_BUILD_FILE=x.bff"]
        assert main(args) == 0
        assert (build / "x.bff").exists()
        cache = json.loads((build / "fbgen_config.json").read_text())
        assert cache["settings"]["build_file"] == "x.bff"

    def test_generate_variables_before_options(
        self, tmp_path: Path, model_file: Path
    ) -> None:
        build = tmp_path / "build"
        args = ["generate", str(model_file), "FBGEN_BUILD_FILE=y.bff", "-B", str(build)]
        assert main(args) == 0
        assert (build / "y.bff").exists()

    def test_unknown_option_rejected(self, tmp_path: Path, model_file: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["order", str(model_file), "-B", str(tmp_path), "--bogus"])
        assert exc_info.value.code == 2

    def test_generate_rejects_extra_arguments(
        self, tmp_path: Path, model_file: Path
    ) -> None:
        assert main(["generate", str(model_file), "stray"]) == 1

    def test_order(self, tmp_path: Path, model_file: Path, capsys) -> None:
        build = tmp_path / "build"
        assert main(["order", str(model_file), "-B", str(build)]) == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines == ["tool", "docs: tool", "noop", "all: tool docs"]

    def test_graph_to_stdout(self, tmp_path: Path, model_file: Path, capsys) -> None:
        assert main(["graph", str(model_file), "-B", str(tmp_path)]) == 0
        out = capsys.readouterr().out
        assert out.startswith("---\ntitle: cli Dependencies\n")
        assert "  tool --> docs\n" in out

    def test_graph_to_file(self, tmp_path: Path, model_file: Path) -> None:
        output = tmp_path / "deps.mmd"
        args = ["graph", str(model_file), "-B", str(tmp_path), "-o", str(output)]
        assert main(args) == 0
        assert "flowchart LR" in output.read_text()

    def test_missing_model(self, tmp_path: Path) -> None:
        """Test that errors become exit status 1."""
        assert main(["generate", str(tmp_path / "missing.json")]) == 1

    def test_strict_fails_on_unknown_dependency(self, tmp_path: Path) -> None:
        path = tmp_path / "model.json"
        path.write_text(
            json.dumps({"targets": [{"name": "a", "kind": "utility", "depends": ["x"]}]})
        )
        args = ["generate", str(path), "-B", str(tmp_path / "build"), "--strict"]
        assert main(args) == 1

    def test_no_command(self) -> None:
        assert main([]) == 1


class TestCLISubprocess:
    """Tests for the CLI as a program."""

    def test_fbgen_help(self) -> None:
        """Test fbgen --help."""
        result = subprocess.run(
            [sys.executable, "-m", "fbgen.cli", "--help"],
            capture_output=True,
            text=True,
        )
        assert result.returncode == 0
        assert "fbgen" in result.stdout
        assert "generate" in result.stdout
        assert "order" in result.stdout
        assert "graph" in result.stdout

    def test_fbgen_version(self) -> None:
        """Test fbgen --version."""
        result = subprocess.run(
            [sys.executable, "-m", "fbgen.cli", "--version"],
            capture_output=True,
            text=True,
        )
        assert result.returncode == 0
        assert __version__ in result.stdout
