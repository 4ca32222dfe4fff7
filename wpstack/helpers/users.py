from typing import Dict, List

from .fs import run_command


def users() -> List[str]:
    raw_users = run_command("getent passwd | cut -d: -f1", dry_run_safe=True)
    return sorted(raw_users.strip().split("\n"))


def adduser(name: str, disabled_password: bool = False) -> bool:
    if name not in users():
        extra = ""
        if disabled_password:
            extra += '--disabled-password --gecos ""'
        run_command(f"adduser {extra} {name}")
        return True
    else:
        return False


def set_password(name: str, password: str) -> None:
    # via stdin, so it never shows up in a process listing or the logs
    run_command("chpasswd", input=f"{name}:{password}\n")


def groups() -> Dict[str, List[str]]:
    raw_groups = run_command("getent group", dry_run_safe=True)

    ret: Dict[str, List[str]] = {}
    for line in raw_groups.split("\n"):
        if line == "":
            continue
        bits = line.split(":")
        if len(bits) < 4:
            raise Exception((line, bits))
        ret[bits[0]] = [member for member in bits[3].split(",") if member != ""]

    return ret


def add_user_to_group(user: str, group: str) -> bool:
    existing_groups = groups()
    existing_group = existing_groups.get(group, [])
    if user not in existing_group:
        run_command("usermod -aG %s %s" % (group, user))
        return True
    else:
        return False
