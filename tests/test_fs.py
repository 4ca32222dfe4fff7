import os
import re
import stat
from pathlib import Path

import pytest

from wpstack.helpers.fs import (
    CommandFailed,
    MissingCommandException,
    delete,
    download,
    hash_data,
    insert_or_replace,
    link,
    make_directory,
    run_command,
    run_with_marker,
    set_file_contents,
)


def test_set_file_contents(tmp_path: Path):
    fname = tmp_path.joinpath("foo.conf")

    assert set_file_contents(fname, "one\n")
    assert fname.read_text() == "one\n"
    assert not set_file_contents(fname, "one\n")
    assert set_file_contents(fname, "two\n")
    assert fname.read_text() == "two\n"


def test_set_file_contents_mode(tmp_path: Path):
    fname = tmp_path.joinpath("secret.sql")

    assert set_file_contents(fname, "password\n", mode="600")
    assert stat.S_IMODE(os.stat(fname).st_mode) == 0o600

    os.chmod(fname, 0o644)
    assert set_file_contents(fname, "password\n", mode="600")
    assert stat.S_IMODE(os.stat(fname).st_mode) == 0o600


def test_set_file_contents_logs_diff(tmp_path: Path, caplog: pytest.LogCaptureFixture):
    caplog.set_level("INFO")
    fname = tmp_path.joinpath("foo.conf")
    fname.write_text("old value\n")

    set_file_contents(fname, "new value\n")

    assert "+new value" in caplog.text


def test_set_file_contents_secret_has_no_diff(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
):
    caplog.set_level("INFO")
    fname = tmp_path.joinpath("wp-config.php")
    fname.write_text("define( 'DB_PASSWORD', 'old-secret' );\n")

    set_file_contents(fname, "define( 'DB_PASSWORD', 'new-secret' );\n", secret=True)

    assert f"File {fname} was different" in caplog.text
    assert "old-secret" not in caplog.text
    assert "new-secret" not in caplog.text


def test_set_file_contents_dry_run(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    monkeypatch.setenv("WPSTACK_DRY_RUN", "true")
    fname = tmp_path.joinpath("foo.conf")

    assert set_file_contents(fname, "contents\n", mode="600")
    assert not fname.exists()


def test_insert_or_replace_pattern(tmp_path: Path):
    fname = tmp_path.joinpath("php.ini")
    fname.write_text("[PHP]\nmemory_limit = 128M\nmax_execution_time = 30\n")
    pattern = re.compile(r"^memory_limit\s*=.*$", re.MULTILINE)

    assert insert_or_replace(fname, pattern, "memory_limit = 256M")
    assert fname.read_text() == "[PHP]\nmemory_limit = 256M\nmax_execution_time = 30\n"
    assert not insert_or_replace(fname, pattern, "memory_limit = 256M")


def test_insert_or_replace_appends(tmp_path: Path):
    fname = tmp_path.joinpath("php.ini")
    fname.write_text("[PHP]")

    assert insert_or_replace(fname, "post_max_size = 8M", "post_max_size = 64M")
    assert fname.read_text() == "[PHP]\npost_max_size = 64M\n"


def test_make_directory(tmp_path: Path):
    path = tmp_path.joinpath("a", "b")

    assert make_directory(path, mode="700")
    assert path.is_dir()
    assert stat.S_IMODE(os.stat(path).st_mode) == 0o700
    assert not make_directory(path, mode="700")


def test_link_and_delete(tmp_path: Path):
    source = tmp_path.joinpath("sites-available-example.com")
    source.write_text("server {}\n")
    other = tmp_path.joinpath("other")
    other.write_text("")
    target = tmp_path.joinpath("enabled")

    assert link(target, source)
    assert os.readlink(target) == str(source)
    assert not link(target, source)

    # wrong link gets replaced
    assert link(target, other)
    assert os.readlink(target) == str(other)

    assert delete(target)
    assert not os.path.lexists(target)
    assert not delete(target)


def test_run_command():
    assert run_command("echo hello") == "hello\n"


def test_run_command_input():
    assert run_command("cat", input="from stdin") == "from stdin"


def test_run_command_directory(tmp_path: Path):
    assert run_command("pwd", directory=tmp_path).strip() == str(tmp_path.resolve())


def test_run_command_failure():
    with pytest.raises(CommandFailed) as excinfo:
        run_command("echo broken >&2; exit 3")

    assert excinfo.value.returncode == 3
    assert excinfo.value.stderr == b"broken\n"
    assert str(excinfo.value) == "'echo broken >&2; exit 3' exited with 3: broken"


def test_run_command_allowed_exit_codes():
    assert run_command("echo ok; exit 1", allowed_exit_codes=[0, 1]) == "ok\n"


def test_run_command_missing():
    with pytest.raises(MissingCommandException):
        run_command("definitely-not-a-real-command-wpstack")


def test_run_command_dry_run(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
):
    caplog.set_level("INFO")
    monkeypatch.setenv("WPSTACK_DRY_RUN", "true")

    assert run_command("exit 3") == ""
    assert "Would have run: exit 3" in caplog.text
    assert run_command("echo hello", dry_run_safe=True) == "hello\n"


def test_run_with_marker(tmp_path: Path):
    marker = tmp_path.joinpath("marker")
    output = tmp_path.joinpath("output")
    command = f"echo ran >> {output}"

    assert run_with_marker(marker, command)
    assert not run_with_marker(marker, command)
    assert output.read_text() == "ran\n"
    assert marker.read_text() == command


def test_run_with_marker_dep_changed(tmp_path: Path):
    marker = tmp_path.joinpath("marker")
    dep = tmp_path.joinpath("setup.sql")
    output = tmp_path.joinpath("output")
    command = f"echo ran >> {output}"
    dep.write_text("one")

    assert run_with_marker(marker, command, deps=[dep])
    newer = os.stat(marker).st_mtime + 10
    os.utime(dep, (newer, newer))

    assert run_with_marker(marker, command, deps=[dep])
    assert output.read_text() == "ran\nran\n"


def test_download_existing_file_with_matching_hash(tmp_path: Path):
    fname = tmp_path.joinpath("wordpress.tar.gz")
    fname.write_bytes(b"release")

    assert not download(
        "https://example.com/wordpress.tar.gz",
        fname,
        hash_data(b"release", "sha1"),
        algorithm="sha1",
    )


def test_hash_data():
    assert (
        hash_data(b"", "sha1") == "da39a3ee5e6b4b0d3255bfef95601890afd80709"
    )
