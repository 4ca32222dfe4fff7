import grp
import hashlib
import logging
import os
import pwd
import re
import select
import stat
import subprocess
from datetime import datetime, timedelta
from difflib import unified_diff
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import jinja2
from typing_extensions import TypedDict

from wpstack import Pathy, dry_run_safe_read, is_dry_run

from .config import jinja_env


class TemplateError(Exception):
    pass


class MissingCommandException(Exception):
    pass


class CommandFailed(Exception):
    def __init__(self, cmd: str, returncode: int, stdout: bytes, stderr: bytes):
        self.cmd = cmd
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(f"'{cmd}' exited with {returncode}")

    def __str__(self) -> str:
        message = super().__str__()
        output = self.stderr.decode("utf-8", errors="replace").strip()
        if output == "":
            output = self.stdout.decode("utf-8", errors="replace").strip()
        if output != "":
            message += ": " + output.splitlines()[-1]
        return message


def hash_data(data: bytes, algorithm: str = "sha256") -> str:
    m = hashlib.new(algorithm)
    m.update(data)
    return m.hexdigest()


def _write(fname: Pathy, contents: Union[str, bytes], mode: Optional[int]) -> None:
    raw = contents.encode("utf-8") if isinstance(contents, str) else contents
    if mode is None:
        mode = 0o644
    # New files get their mode at creation, so secrets are never world-readable
    fd = os.open(fname, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    with os.fdopen(fd, "wb") as f:
        f.write(raw)


def set_file_contents(
    fname: Pathy,
    contents: Union[str, bytes],
    ignore_changes: bool = False,
    owner: Optional[str] = None,
    group: Optional[str] = None,
    mode: Union[str, int, None] = None,
    secret: bool = False,
) -> bool:
    needs_update = False

    if type(contents) == bytes:
        try:
            contents = contents.decode("utf-8")
        except UnicodeDecodeError:
            pass

    raw_mode = int(mode, 8) if isinstance(mode, str) else mode

    if not os.path.exists(fname):
        needs_update = True
        logging.info("File %s was missing" % fname)
    elif not ignore_changes:
        if isinstance(contents, str):
            data = open(fname, "rb").read().decode("utf-8").splitlines(True)
            diff = list(unified_diff(data, contents.splitlines(True)))
            if len(diff) > 0:
                if secret:
                    logging.info("File %s was different" % fname)
                else:
                    diff = "".join(diff)
                    logging.info("File %s was different. Diff is: \n%s" % (fname, diff))
                needs_update = True
        else:
            data = open(fname, "rb").read()
            if hash_data(data) != hash_data(contents):
                logging.info("File %s was different" % fname)
                needs_update = True

    if needs_update and not is_dry_run():
        _write(fname, contents, raw_mode)

    if raw_mode is not None:
        needs_update = set_mode(fname, raw_mode) or needs_update
    needs_update = set_owner(fname, owner, group) or needs_update

    return needs_update


def render_template(template: str, **kwargs: object) -> str:
    try:
        return jinja_env().get_template(template).render(**kwargs)
    except jinja2.TemplateNotFound as e:
        raise TemplateError(f"No such template {template}") from e
    except jinja2.UndefinedError as e:
        raise TemplateError(f"Missing value while rendering {template}: {e}") from e


class RenderedConfig(TypedDict):
    path: str
    contents: str


def render_config(fname: Pathy, template: str, **kwargs: object) -> RenderedConfig:
    return {"path": str(fname), "contents": render_template(template, **kwargs)}


def write_config(
    rendered: RenderedConfig,
    owner: Optional[str] = None,
    group: Optional[str] = None,
    mode: Union[str, int, None] = None,
    secret: bool = False,
) -> bool:
    return set_file_contents(
        rendered["path"],
        rendered["contents"],
        owner=owner,
        group=group,
        mode=mode,
        secret=secret,
    )


def set_file_contents_from_template(
    fname: Pathy, template: str, ignore_changes: bool = False, **kwargs: object
) -> bool:
    return set_file_contents(
        fname,
        render_template(template, **kwargs),
        ignore_changes=ignore_changes,
    )


def set_mode(path: Pathy, mode: Union[str, int]) -> bool:
    if isinstance(mode, str):
        raw_mode = int(mode, 8)
    else:
        raw_mode = mode

    dry_run = is_dry_run()

    try:
        existing = stat.S_IMODE(os.lstat(path).st_mode)
    except FileNotFoundError:
        if dry_run:
            logging.info(f"Missing {path}, but would have set mode to {oct(raw_mode)}")
            return True
        else:
            raise
    if existing != raw_mode:
        logging.info("chmod %s %s" % (oct(raw_mode), path))
        if not dry_run:
            os.chmod(path, raw_mode)
        return True
    else:
        return False


def set_owner(
    path: Pathy, owner: Optional[str] = None, group: Optional[str] = None
) -> bool:
    if owner is None and group is None:
        return False
    try:
        st = os.stat(path)
    except FileNotFoundError:
        if is_dry_run():
            logging.info(
                f"Can't find {path}, but would have set owner {owner} and group {group}"
            )
            return True
        else:
            raise
    if owner is not None:
        owner_id = pwd.getpwnam(owner).pw_uid
    else:
        owner_id = st.st_uid
    if group is not None:
        group_id = grp.getgrnam(group).gr_gid
    else:
        group_id = st.st_gid

    if st.st_uid != owner_id or st.st_gid != group_id:
        logging.info("chown %s:%s %s" % (owner, group, path))
        if not is_dry_run():
            os.chown(path, owner_id, group_id)
        return True
    else:
        return False


def make_directory(
    path: Pathy,
    mode: Union[str, int, None] = None,
    owner: Optional[str] = None,
    group: Optional[str] = None,
) -> bool:
    ret = False
    if not os.path.exists(path):
        logging.info("Make directory %s" % path)
        if not is_dry_run():
            os.makedirs(path)
        ret = True
    if mode is not None:
        ret = set_mode(path, mode) or ret
    if owner is not None or group is not None:
        ret = set_owner(path, owner, group) or ret
    return ret


def insert_or_replace(
    fname: Pathy, matcher: Union[re.Pattern[str], str], line: str
) -> bool:
    existing = dry_run_safe_read(fname, "")
    if isinstance(matcher, re.Pattern):
        results = matcher.search(existing)
        if results is not None:
            return set_file_contents(
                fname, existing[: results.start()] + line + existing[results.end() :]
            )
    elif matcher in existing:
        return set_file_contents(fname, existing.replace(matcher, line))
    if existing != "" and not existing.endswith("\n"):
        existing += "\n"
    return set_file_contents(fname, existing + line + "\n")


def sha_file(fname: Pathy, algorithm: str = "sha256") -> str:
    return hash_data(open(fname, "rb").read(), algorithm)


def has_sha(fname: Pathy, sha: str, algorithm: str = "sha256") -> bool:
    if os.path.exists(fname):
        existing_sha = sha_file(fname, algorithm)
        if existing_sha == sha:
            return True

    return False


def download(
    url: str,
    fname: Pathy,
    sha: str,
    mode: Union[int, str, None] = None,
    algorithm: str = "sha256",
) -> bool:
    exists = has_sha(fname, sha, algorithm)
    if not exists:
        from .debian import apt_install

        apt_install(["curl", "ca-certificates"])
        run_command("curl --fail -Lo %s %s" % (fname, url))
        if not is_dry_run():
            existing_sha = sha_file(fname, algorithm)
            if existing_sha != sha:
                delete(fname)
                raise Exception(
                    f"Bad {algorithm} for {url}: wanted {sha}, got {existing_sha}"
                )

    if mode is not None:
        set_mode(fname, mode)

    return not exists


class Unpacked(TypedDict):
    changed: bool
    dir_name: Pathy


def download_and_unpack(
    url: str,
    hash: str,
    name: Optional[str] = None,
    dir_name: Optional[Pathy] = None,
    compressed_root: Pathy = "/opt",
    algorithm: str = "sha256",
) -> Unpacked:
    if name is None:
        name = url.split("/")[-1]
    compressed_path = "%s/%s" % (compressed_root, name)
    if dir_name is None:
        dir_name = "%s/%s" % (
            compressed_root,
            name.replace(".tar.gz", "").replace(".tgz", ""),
        )
    changed = download(url, compressed_path, hash, algorithm=algorithm)

    make_directory(dir_name)
    marker_name = Path(compressed_path + ".unpacked")
    if changed or not marker_name.exists():
        from .debian import apt_install

        if compressed_path.endswith("tar.gz") or compressed_path.endswith(".tgz"):
            apt_install(["tar"])
            run_command("tar --directory=%s -zxf %s" % (dir_name, compressed_path))
        else:
            raise Exception(f"Don't know how to unpack {compressed_path}")

        set_file_contents(marker_name, hash)

        changed = True

    return {"changed": changed, "dir_name": dir_name}


def link(target: Pathy, source: Pathy) -> bool:
    if os.path.lexists(target) and (
        not os.path.exists(target) or not os.path.samefile(source, target)
    ):
        logging.info("Unlink %s" % target)
        if not is_dry_run():
            os.remove(target)
    if not os.path.lexists(target):
        logging.info("Link %s to %s" % (target, source))
        if not is_dry_run():
            os.symlink(source, target)
        return True
    else:
        return False


def last_modified(fname: Pathy) -> float:
    try:
        return os.stat(fname).st_mtime
    except FileNotFoundError:
        return float(0)


def delete(fname: Pathy, quiet: bool = False) -> bool:
    if os.path.lexists(fname):
        if not quiet:
            logging.info("Deleting %s", fname)
        if not is_dry_run():
            os.remove(fname)
        return True
    else:
        return False


def run_with_marker(
    fname: Pathy,
    command: str,
    deps: Sequence[Pathy] = [],
    max_age: Optional[timedelta] = None,
    force_build: bool = False,
    directory: Optional[Pathy] = None,
    run_if_command_changed: bool = True,
    input: Optional[str] = None,
) -> bool:
    changed = not os.path.exists(fname) or force_build
    target_modified = last_modified(fname)
    if max_age is not None:
        age = datetime.now() - datetime.fromtimestamp(target_modified)
        if age > max_age:
            changed = True
    for dep in deps:
        dep_modified = last_modified(dep)
        if dep_modified > target_modified:
            logging.info("%s is younger than %s" % (dep, fname))
            changed = True
            break

    if run_if_command_changed and not changed:
        old_command = open(fname).read()
        changed = old_command != command

    if changed:
        run_command(command, directory=directory, input=input)
        if not is_dry_run():
            open(fname, "w").write(command)

    return changed


def non_breaking_communicate(proc: subprocess.Popen[bytes]) -> Tuple[bytes, bytes]:
    assert proc.stdout is not None
    assert proc.stderr is not None
    working = select.select([proc.stdout, proc.stderr], [], [], 10)[0]
    stdout = b""
    stderr = b""
    if proc.stdout in working:
        stdout = proc.stdout.read() or b""
    if proc.stderr in working:
        stderr = proc.stderr.read() or b""
    return (stdout, stderr)


def run_command_raw(
    cmd: str,
    directory: Optional[Pathy] = None,
    input: Optional[bytes] = None,
    allowed_exit_codes: List[int] = [0],
    dry_run_safe: bool = False,
) -> bytes:
    run_for_real = dry_run_safe or not is_dry_run()
    display = cmd.strip()
    while display.find("  ") != -1:
        display = display.replace("  ", " ")

    if not run_for_real:
        if directory is not None:
            logging.info("Would have run in %s: %s" % (directory, display))
        else:
            logging.info("Would have run: %s" % display)
        return b""

    if directory is not None:
        logging.info("Run in %s: %s" % (directory, display))
    else:
        logging.info("Run: %s" % display)
    process = subprocess.Popen(
        cmd,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        stdin=subprocess.PIPE,
        shell=True,
        cwd=directory,
    )
    assert process.stdout is not None
    os.set_blocking(process.stdout.fileno(), False)
    assert process.stderr is not None
    os.set_blocking(process.stderr.fileno(), False)
    stdout = b""
    stderr = b""
    DUMP_COMMAND = os.environ.get("DUMP_COMMAND", "false").lower() == "true"
    assert process.stdin is not None
    if input is not None:
        process.stdin.write(input)
    process.stdin.close()

    def get_output() -> bool:
        nonlocal stdout, stderr
        (new_stdout, new_stderr) = non_breaking_communicate(process)
        stdout += new_stdout
        if DUMP_COMMAND and new_stdout != b"":
            print(new_stdout.decode("utf-8", errors="replace"), end="")
        stderr += new_stderr
        if DUMP_COMMAND and new_stderr != b"":
            print(new_stderr.decode("utf-8", errors="replace"), end="")
        return new_stdout != b"" or new_stderr != b""

    while True:
        get_output()
        returncode = process.poll()
        if returncode is None:
            continue
        while get_output():
            pass
        if returncode not in allowed_exit_codes:
            if b": not found" in stderr or returncode == 127:
                raise MissingCommandException(display)
            raise CommandFailed(display, returncode, stdout, stderr)
        return stdout


def run_command(
    cmd: str,
    directory: Optional[Pathy] = None,
    input: Union[str, bytes, None] = None,
    allowed_exit_codes: List[int] = [0],
    dry_run_safe: bool = False,
) -> str:
    if input is None or isinstance(input, bytes):
        real_input = input
    else:
        real_input = input.encode("utf-8")
    return run_command_raw(
        cmd, directory, real_input, allowed_exit_codes, dry_run_safe
    ).decode("utf-8")
