"""
tests/unit/test_logger.py - DeployLogger tests
"""

from io import StringIO

from rich.console import Console

from flowdeploy.logger import DeployLogger


def _logger(tmp_path, **kwargs):
    console = Console(file=StringIO(), width=120)
    return DeployLogger(tmp_path / "logs", "shop", "deploy", terminal=console, **kwargs), console


class TestDeployLogger:
    def test_log_path_layout(self, tmp_path):
        logger, _ = _logger(tmp_path)
        logger.close()

        relative = logger.log_path.relative_to(tmp_path / "logs")
        assert relative.parts[0] == "shop"
        assert relative.name.endswith("_deploy.log")

    def test_stream_output_is_ansi_stripped(self, tmp_path):
        with _logger(tmp_path)[0] as logger:
            logger.log_output("\x1b[32mCompiled\x1b[0m\nDone")

        text = logger.log_path.read_text()
        assert "  [build] Compiled\n" in text
        assert "  [build] Done\n" in text
        assert "\x1b[" not in text

    def test_footer_reflects_errors(self, tmp_path):
        logger, console = _logger(tmp_path)
        logger.step("Building")
        logger.log_error("Build failed", context="Deployment: dep-1")
        logger.close()

        text = logger.log_path.read_text()
        assert "ERROR OCCURRED" in text
        assert "Context: Deployment: dep-1" in text
        assert "Status: FAILED" in text
        assert "Build failed" in console.file.getvalue()

    def test_unhandled_exception_is_recorded(self, tmp_path):
        logger, _ = _logger(tmp_path)
        try:
            with logger:
                raise RuntimeError("boom")
        except RuntimeError:
            pass

        assert "boom" in logger.log_path.read_text()
        assert logger.log_file is None
