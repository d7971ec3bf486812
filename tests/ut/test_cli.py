"""CLI 测试"""

from __future__ import annotations

from click.testing import CliRunner

from gitbridge import __version__
from gitbridge.cli import main
from gitbridge.core.exceptions import ProviderUnconfiguredError
from gitbridge.core.models import CommitInfo
from gitbridge.utils.logger import reset_logging


class FakePipeline:
    runs: list = []
    error: Exception | None = None

    def __init__(self, config) -> None:
        self.config = config

    def run(self, ctx, url, dest, clone_config=None):
        FakePipeline.runs.append((self.config, url, dest, clone_config))
        if FakePipeline.error is not None:
            raise FakePipeline.error
        return CommitInfo(hash="abc123", reference="refs/heads/main")


class TestCli:
    def setup_method(self) -> None:
        FakePipeline.runs = []
        FakePipeline.error = None

    def teardown_method(self) -> None:
        import gitbridge.core.config as cfgmod

        cfgmod._current = None
        reset_logging()

    def test_version(self) -> None:
        result = CliRunner().invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_checkout(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setattr("gitbridge.cli.CheckoutPipeline", FakePipeline)
        dest = str(tmp_path / "out")
        result = CliRunner().invoke(main, [
            "checkout", "https://h/r", "--dest", dest, "--auto-login",
            "--config", str(tmp_path / "missing.yml"), "--branch", "dev",
        ])
        assert result.exit_code == 0, result.output
        assert "refs/heads/main@sha1:abc123" in result.output
        cfg, url, used_dest, clone_cfg = FakePipeline.runs[0]
        assert cfg.auto_login is True
        assert url == "https://h/r"
        assert used_dest == dest
        assert clone_cfg.branch == "dev"
        assert clone_cfg.shallow_clone is True

    def test_temp_dir_created(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setattr("gitbridge.cli.CheckoutPipeline", FakePipeline)
        monkeypatch.setattr("gitbridge.cli.tempfile.mkdtemp", lambda prefix: str(tmp_path / prefix))
        result = CliRunner().invoke(main, ["checkout", "https://h/r", "--config", str(tmp_path / "x.yml")])
        assert result.exit_code == 0, result.output
        assert FakePipeline.runs[0][2] == str(tmp_path / "gitbridge-gitrepo-")
        assert FakePipeline.runs[0][0].auto_login is False

    def test_error_reported(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setattr("gitbridge.cli.CheckoutPipeline", FakePipeline)
        FakePipeline.error = ProviderUnconfiguredError("未开启自动登录", stage="login")
        result = CliRunner().invoke(main, [
            "checkout", "https://h/r", "--dest", str(tmp_path), "--config", str(tmp_path / "x.yml"),
        ])
        assert result.exit_code == 1
        assert "PROVIDER_UNCONFIGURED" in result.output
