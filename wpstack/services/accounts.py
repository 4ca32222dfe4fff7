import logging
import re

from wpstack import dry_run_safe_read

from ..helpers.fs import set_file_contents
from ..helpers.systemd import systemd_set
from ..helpers.users import add_user_to_group, adduser, set_password
from ..inputs import ProvisioningConfig

SSHD_CONFIG = "/etc/ssh/sshd_config"

_permit_root_login = re.compile(r"^#?\s*PermitRootLogin\s+.*$", re.MULTILINE)
_match_block = re.compile(r"^\s*Match\s", re.IGNORECASE)


def create_admin(config: ProvisioningConfig) -> None:
    adduser(config.admin_user, disabled_password=True)
    logging.info("Setting password for %s" % config.admin_user)
    set_password(config.admin_user, config.admin_password)
    add_user_to_group(config.admin_user, "sudo")


def disable_root_login(existing: str) -> str:
    wanted = "PermitRootLogin no\n"
    lines = []
    found = False
    in_match = False
    for line in existing.splitlines(True):
        if not in_match and _match_block.match(line):
            # everything from the first Match onwards only applies to that Match
            in_match = True
            if not found:
                lines.append(wanted)
                found = True
        if in_match or _permit_root_login.match(line) is None:
            lines.append(line)
        elif not found:
            lines.append(wanted)
            found = True
        elif not line.lstrip().startswith("#"):
            # sshd uses the first value it sees, so later ones are just confusing
            continue
        else:
            lines.append(line)
    if not found:
        if len(lines) > 0 and not lines[-1].endswith("\n"):
            lines[-1] += "\n"
        lines.append(wanted)
    return "".join(lines)


def disable_root_ssh() -> None:
    existing = dry_run_safe_read(SSHD_CONFIG, "")
    changed = set_file_contents(SSHD_CONFIG, disable_root_login(existing))
    systemd_set("ssh", restart=changed)
