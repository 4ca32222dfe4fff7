import re
from typing import List

from ..helpers.config import php_fpm_service, php_version, settings
from ..helpers.debian import add_ppa, apt_install
from ..helpers.fs import insert_or_replace
from ..helpers.systemd import systemd_set

PPA = "ondrej/php"

EXTENSIONS = [
    "fpm",
    "mysql",
    "curl",
    "gd",
    "mbstring",
    "xml",
    "zip",
    "intl",
    "imap",
    "snmp",
]


def packages() -> List[str]:
    version = php_version()
    return [f"php{version}"] + [f"php{version}-{ext}" for ext in EXTENSIONS]


def php_ini() -> str:
    return f"/etc/php/{php_version()}/fpm/php.ini"


def install() -> None:
    apt_install(["software-properties-common"])
    add_ppa(PPA)
    apt_install(packages())
    systemd_set(php_fpm_service(), enabled=True, running=True)


def optimize() -> None:
    changes = False
    for key, value in settings()["php_ini"].items():
        changes = (
            insert_or_replace(
                php_ini(),
                re.compile(rf"^;?\s*{re.escape(key)}\s*=.*$", re.MULTILINE),
                f"{key} = {value}",
            )
            or changes
        )
    systemd_set(php_fpm_service(), restart=changes)
