"""Unit tests for shellmark.cli."""

import os
import sys
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from shellmark import __version__
from shellmark.cli import _build_options, _format_output, build_parser, entrypoint, main
from shellmark.models import RunnerConfig


@pytest.fixture(autouse=True)
def isolated_config(shellmark_config_paths):
    return shellmark_config_paths


def _cli_patches(**overrides):
    controller = MagicMock()
    controller.render_statistics.return_value = "Pattern Match Statistics:\n"
    defaults = dict(
        load_config=MagicMock(return_value=RunnerConfig()),
        run_commands=AsyncMock(return_value=controller),
    )
    defaults.update(overrides)
    return patch.multiple("shellmark.cli", **defaults)


class TestBuildOptions:
    def test_defaults_come_from_config(self):
        args = build_parser().parse_args(["echo a"])
        options = _build_options(args, RunnerConfig(prompt_command="date"))

        assert options.use_shell_integration is True
        assert options.enable_vte_checks is True
        assert options.auto_close_terminal is False
        assert options.prompt_command == "date"

    def test_flags_override_config(self):
        args = build_parser().parse_args(
            ["--no-shell-integration", "--no-vte", "--auto-close", "--prompt-command", "", "ls"]
        )
        options = _build_options(args, RunnerConfig())

        assert options.use_shell_integration is False
        assert options.enable_vte_checks is False
        assert options.auto_close_terminal is True
        assert options.prompt_command == ""


class TestMain:
    def test_returns_zero_on_success(self):
        with _cli_patches():
            assert main(["echo a"]) == 0

    def test_passes_commands_in_order(self):
        mock_run = AsyncMock(return_value=MagicMock())
        with _cli_patches(run_commands=mock_run):
            main(["echo a", "echo b"])

        assert mock_run.call_args[0][0] == ["echo a", "echo b"]

    def test_iterations_flag_updates_config(self):
        mock_run = AsyncMock(return_value=MagicMock())
        with _cli_patches(run_commands=mock_run):
            main(["--iterations", "7", "echo a"])

        assert mock_run.call_args[0][2].benchmark_iterations == 7

    def test_rejects_zero_iterations(self):
        with _cli_patches():
            with pytest.raises(SystemExit) as exc_info:
                main(["--iterations", "0", "echo a"])
        assert exc_info.value.code == 2

    def test_stats_flag_prints_report(self, capsys):
        with _cli_patches():
            main(["--stats", "echo a"])

        assert "Pattern Match Statistics:" in capsys.readouterr().out

    def test_error_returns_one(self, capsys):
        with _cli_patches(run_commands=AsyncMock(side_effect=RuntimeError("no shell"))):
            assert main(["echo a"]) == 1

        assert "Error: no shell" in capsys.readouterr().err

    def test_version_flag(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_entrypoint_exits_with_main_status(self):
        with patch("shellmark.cli.main", return_value=0):
            with patch.object(sys, "argv", ["shellmark", "echo a"]):
                with pytest.raises(SystemExit) as exc_info:
                    entrypoint()
        assert exc_info.value.code == 0


class TestFormatOutput:
    @patch.dict("os.environ", {"NO_COLOR": "1"}, clear=False)
    def test_plain_when_no_color(self):
        assert _format_output("Match found (Pattern 2): \"a\"") == "Match found (Pattern 2): \"a\""

    @patch.dict("os.environ", {"TERM": "xterm-256color"}, clear=True)
    def test_colors_match_header_on_tty(self):
        with patch("shellmark.cli.sys.stdout") as stdout:
            stdout.isatty.return_value = True
            text = _format_output("Match found (Pattern 2): \"a\"")
        assert text.startswith("\x1b[")

    @patch.dict("os.environ", {"TERM": "xterm-256color"}, clear=True)
    def test_only_header_line_is_colored(self):
        with patch("shellmark.cli.sys.stdout") as stdout:
            stdout.isatty.return_value = True
            text = _format_output('Match found (Pattern 2): "a"\n\nFrom:\n"raw"')
        assert text.endswith('\x1b[0m\n\nFrom:\n"raw"')


@pytest.mark.skipif(
    sys.platform == "win32" or not os.path.exists("/bin/sh"), reason="requires a POSIX /bin/sh"
)
class TestMainLive:
    def test_runs_command_through_local_host(self, capsys, monkeypatch):
        monkeypatch.setenv("SHELLMARK_SHELL", "/bin/sh")
        monkeypatch.delenv("NO_COLOR", raising=False)

        status = main(
            ["--no-vte", "--iterations", "1", "--prompt-command", "true", "--stats", "echo hi"]
        )

        out = capsys.readouterr().out
        assert status == 0
        assert 'Match found (Pattern 2): "hi\\n"' in out
        assert "Pattern 2 (VSCE):       1" in out
