from typing import List
from unittest.mock import patch

import pytest

from wpstack.helpers.fs import CommandFailed
from wpstack.pipeline import Step
from wpstack.runner import run

from .conftest import answers

PROMPTS = ["example.com", "", "", "a@b.com", ""]
SECRETS = ["db-secret-pw", "admin-secret-pw"]


def recording_step(name: str, called: List[str]) -> Step:
    return Step(name, lambda: called.append(name))


@pytest.fixture
def dry_run(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WPSTACK_DRY_RUN", "true")


def test_success(dry_run: None, capsys: pytest.CaptureFixture[str]):
    called: List[str] = []
    steps = [recording_step("System update", called), recording_step("Nginx installation", called)]

    with patch("wpstack.runner.build_steps", return_value=steps) as mock_build_steps:
        assert run([], answers(PROMPTS), answers(SECRETS)) == 0

    config = mock_build_steps.call_args.args[0]
    assert config.db_name == "wordpressdb"
    assert config.db_user == "wpuser"
    assert called == ["System update", "Nginx installation"]
    out = capsys.readouterr().out
    assert "* Nginx installation" in out
    assert "Setup complete! Visit https://example.com" in out
    assert "Login as adminuser" in out


def test_failing_step(
    dry_run: None,
    caplog: pytest.LogCaptureFixture,
    capsys: pytest.CaptureFixture[str],
):
    called: List[str] = []

    def broken_install():
        called.append("Nginx installation")
        raise CommandFailed('apt-get satisfy "nginx"', 100, b"", b"E: Unable to locate package nginx")

    steps = [
        recording_step("System update", called),
        Step("Nginx installation", broken_install),
        recording_step("MariaDB installation", called),
        recording_step("PHP installation", called),
    ]

    with patch("wpstack.runner.build_steps", return_value=steps):
        assert run([], answers(PROMPTS), answers(SECRETS)) == 1

    assert called == ["System update", "Nginx installation"]
    assert "Error: Nginx installation failed. Exiting." in caplog.text
    assert "Unable to locate package nginx" in caplog.text
    assert "Setup complete" not in capsys.readouterr().out


def test_failing_non_idempotent_step(dry_run: None, caplog: pytest.LogCaptureFixture):
    def broken():
        raise Exception("mirror went away")

    with patch(
        "wpstack.runner.build_steps",
        return_value=[Step("System update", broken, idempotent=False)],
    ):
        assert run([], answers(PROMPTS), answers(SECRETS)) == 1

    assert "System update isn't idempotent" in caplog.text


def test_validation_error(dry_run: None, caplog: pytest.LogCaptureFixture):
    with patch("wpstack.runner.build_steps") as mock_build_steps:
        assert run([], answers(["", "", "", "a@b.com", ""]), answers(SECRETS)) == 1

    mock_build_steps.assert_not_called()
    assert "Error: domain is required. Exiting." in caplog.text


def test_needs_root(caplog: pytest.LogCaptureFixture):
    with patch("wpstack.runner.os.geteuid", return_value=1000), patch(
        "wpstack.runner.collect"
    ) as mock_collect:
        assert run([], answers(PROMPTS), answers(SECRETS)) == 1

    mock_collect.assert_not_called()
    assert "This needs to be run as root" in caplog.text


def test_bad_settings(
    dry_run: None, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
):
    monkeypatch.setenv("WPSTACK_CONFIG", "/does/not/exist.yaml")

    with patch("wpstack.runner.collect") as mock_collect:
        assert run([], answers(PROMPTS), answers(SECRETS)) == 1

    mock_collect.assert_not_called()
    assert "Can't find settings file" in caplog.text


def test_passwords_never_logged(
    dry_run: None,
    caplog: pytest.LogCaptureFixture,
    capsys: pytest.CaptureFixture[str],
):
    def broken():
        raise Exception("boom")

    with patch(
        "wpstack.runner.build_steps", return_value=[Step("Database creation", broken)]
    ):
        run([], answers(PROMPTS), answers(SECRETS))

    captured = capsys.readouterr()
    for secret in SECRETS:
        assert secret not in caplog.text
        assert secret not in captured.out
        assert secret not in captured.err
