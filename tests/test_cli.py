"""Tests for the command-line entry point and logging setup."""

import logging
import signal
from unittest.mock import MagicMock, patch

import pytest
import yaml

from mcp_local_server import cli
from mcp_local_server.config import ConfigLoadError, ServerConfig
from mcp_local_server.log import PACKAGE_LOGGER, configure_logging
from mcp_local_server.plugins.registry import RegistryError


@pytest.fixture(autouse=True)
def restore_package_logger():
    """Undo configure_logging so later tests can still capture logs."""
    yield
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def no_signals():
    with patch.object(cli, "install_signal_handlers") as installer:
        yield installer


class TestParser:
    """Tests for argument parsing."""

    def test_defaults(self):
        """Nothing is overridden without flags."""
        args = cli.build_parser().parse_args([])

        assert args.config is None
        assert args.transport is None
        assert args.port is None
        assert args.log_level is None

    def test_all_flags(self):
        """Every flag is parsed to its destination."""
        args = cli.build_parser().parse_args(
            [
                "-c",
                "server.yaml",
                "-t",
                "http",
                "--host",
                "0.0.0.0",
                "-p",
                "9001",
                "--path",
                "/rpc",
                "--log-level",
                "debug",
                "--log-file",
                "out.log",
            ]
        )

        assert str(args.config) == "server.yaml"
        assert args.transport == "http"
        assert args.host == "0.0.0.0"
        assert args.port == 9001
        assert args.path == "/rpc"
        assert args.log_level == "DEBUG"
        assert args.log_file == "out.log"

    def test_rejects_unknown_transport(self):
        """Transport choices are enforced by argparse."""
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["--transport", "websocket"])

    def test_version_flag(self, capsys):
        """--version prints the package version and exits."""
        with pytest.raises(SystemExit) as exc_info:
            cli.build_parser().parse_args(["--version"])

        assert exc_info.value.code == 0
        assert "mcp-local-server 1.0.0" in capsys.readouterr().out


class TestApplyOverrides:
    """Tests for layering flags over the configuration."""

    def test_flags_override_config(self):
        """Given flags replace configured values."""
        args = cli.build_parser().parse_args(["-t", "http", "-p", "0", "--path", "/x"])

        config = cli.apply_overrides(ServerConfig(), args)

        assert config.transport == "http"
        assert config.http.port == 0
        assert config.http.path == "/x"
        assert config.http.host == "localhost"

    def test_invalid_override_rejected(self):
        """The merged configuration is validated."""
        args = cli.build_parser().parse_args(["--path", "no-slash"])

        with pytest.raises(ConfigLoadError):
            cli.apply_overrides(ServerConfig(), args)


class TestBuildRegistry:
    """Tests for the default plugin set."""

    def test_contains_builtin_and_web_tools(self):
        """Built-in and web analyzer tools are all registered."""
        registry = cli.build_registry()
        assert {"echo", "misezan", "delay_response", "web_analyzer"} <= set(registry.tool_names())
        registry.close()


class TestInstallSignalHandlers:
    """Tests for signal routing."""

    def test_handler_runs_stop_on_helper_thread(self):
        """The installed handler calls stop off the signalled thread."""
        stop = MagicMock()
        previous = {s: signal.getsignal(s) for s in (signal.SIGINT, signal.SIGTERM)}

        try:
            cli.install_signal_handlers(stop)
            handler = signal.getsignal(signal.SIGTERM)
            with patch.object(cli.threading, "Thread") as thread_cls:
                handler(signal.SIGTERM, None)
        finally:
            for signum, old in previous.items():
                signal.signal(signum, old)

        thread_cls.assert_called_once_with(target=stop, name="shutdown", daemon=True)
        thread_cls.return_value.start.assert_called_once()


class TestMain:
    """Tests for the main entry point."""

    def test_missing_config_file(self, tmp_path, capsys):
        """An unreadable config path exits with status 1."""
        assert cli.main(["--config", str(tmp_path / "absent.yaml")]) == 1
        assert "Config file not found" in capsys.readouterr().err

    def test_invalid_port_from_flags(self, capsys):
        """Validation errors from flags exit with status 1."""
        assert cli.main(["--port", "70000"]) == 1
        assert "out of range" in capsys.readouterr().err

    def test_runs_stdio_transport(self, tmp_path, no_signals):
        """The stdio transport is served and the server closed afterwards."""
        path = tmp_path / "server.yaml"
        path.write_text(yaml.dump({"version": "1.0", "transport": "stdio"}), encoding="utf-8")

        with patch.object(cli, "StdioServer") as stdio_cls:
            assert cli.main(["--config", str(path), "--log-level", "ERROR"]) == 0

        stdio_cls.return_value.serve.assert_called_once()
        no_signals.assert_called_once_with(stdio_cls.return_value.stop)

    def test_runs_http_transport(self, no_signals):
        """The HTTP listener is bound, served and stopped."""
        with patch.object(cli, "StreamableHttpServer") as http_cls:
            assert cli.main(["-t", "http", "-p", "0", "--log-level", "ERROR"]) == 0

        http = http_cls.return_value
        http.bind.assert_called_once()
        http.serve_forever.assert_called_once()
        http.stop.assert_called()
        config = http_cls.call_args.args[1]
        assert config.port == 0

    def test_http_bind_failure(self, no_signals):
        """A port that cannot be bound exits with status 1."""
        with patch.object(cli, "StreamableHttpServer") as http_cls:
            http_cls.return_value.bind.side_effect = OSError("Address already in use")
            assert cli.main(["-t", "http", "--log-level", "ERROR"]) == 1

        http_cls.return_value.serve_forever.assert_not_called()
        no_signals.assert_not_called()

    def test_plugin_error(self, no_signals):
        """A registry conflict exits with status 1."""
        with patch.object(cli, "build_registry", side_effect=RegistryError("duplicate tool")):
            assert cli.main(["--log-level", "ERROR"]) == 1

    def test_unwritable_log_file(self, tmp_path, capsys):
        """A log file that cannot be opened exits with status 1."""
        log_file = tmp_path / "missing-dir" / "server.log"

        assert cli.main(["--log-file", str(log_file)]) == 1
        assert "Error opening log file" in capsys.readouterr().err


class TestConfigureLogging:
    """Tests for diagnostic log setup."""

    def test_writes_to_file(self, tmp_path):
        """Records reach the log file in the [MCP] format."""
        log_file = tmp_path / "server.log"
        configure_logging(logging.INFO, log_file)

        logging.getLogger("mcp_local_server.test").info("hello file")
        for handler in logging.getLogger(PACKAGE_LOGGER).handlers:
            handler.flush()

        content = log_file.read_text(encoding="utf-8")
        assert "[MCP] INFO mcp_local_server.test: hello file" in content

    def test_reconfigure_replaces_handlers(self):
        """Calling twice does not duplicate handlers."""
        configure_logging(logging.INFO)
        configure_logging(logging.DEBUG)

        package_logger = logging.getLogger(PACKAGE_LOGGER)
        assert len(package_logger.handlers) == 1
        assert package_logger.level == logging.DEBUG
        assert package_logger.propagate is False
