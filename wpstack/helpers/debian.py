import logging
import os
import re
from datetime import timedelta
from glob import glob
from typing import Dict, List, Optional, Union

from debian.debian_support import version_compare

from .config import state_dir
from .fs import make_directory, run_command, run_with_marker

host_arch: Optional[str] = None

_version_pattern = re.compile(r"Version: (\S+)")


def apt_sources() -> List[str]:
    return (
        glob("/etc/apt/sources.list.d/*")
        + glob("/etc/apt/trusted.gpg.d/*")
        + ["/etc/apt/sources.list"]
    )


def apt_update(force: bool = False):
    make_directory(state_dir())
    run_with_marker(
        state_dir().joinpath("apt-update"),
        "apt-get update --allow-releaseinfo-change",
        deps=apt_sources(),
        force_build=force,
    )


def apt_upgrade(max_age: timedelta = timedelta(days=1)) -> bool:
    apt_update(force=True)
    os.environ["DEBIAN_FRONTEND"] = "noninteractive"
    return run_with_marker(
        state_dir().joinpath("apt-upgrade"),
        "apt-get upgrade --yes -o DPkg::Options::=--force-confdef -o DPkg::Options::=--force-confold",
        max_age=max_age,
    )


def get_host_arch() -> str:
    global host_arch
    if host_arch is None:
        host_arch = (
            run_command("dpkg --print-architecture", dry_run_safe=True).strip()
            or "amd64"
        )
    return host_arch


def apt_is_installed(package: str, wanted_version: Optional[str] = None) -> bool:
    paths = [
        f"/var/lib/dpkg/info/{package}.list",
        f"/var/lib/dpkg/info/{package}:{get_host_arch()}.list",
    ]
    for path in paths:
        if not os.path.exists(path):
            continue
        if wanted_version is None:  # existance is enough
            return True
        status = run_command(f"dpkg-query --status {package}", dry_run_safe=True)
        version_pattern_match = _version_pattern.search(status)
        if version_pattern_match is None:
            raise Exception(
                f"Failure to match version pattern in '{status}' for {package}"
            )
        version = version_pattern_match.group(1)
        if version_compare(version, wanted_version) >= 0:
            return True

    return False


# List is just "any version", Dict is a "name => min version" requirement
def apt_install(
    packages: Union[List[str], Dict[str, Optional[str]]],
    always_install: bool = False,
) -> bool:
    if isinstance(packages, list):
        packages = dict([(p, None) for p in packages])
    if always_install:
        to_install = packages
    else:
        to_install: Dict[str, Optional[str]] = {}
        for package in packages.keys():
            wanted_version = packages[package]
            if not apt_is_installed(package, wanted_version):
                to_install[package] = wanted_version

        if to_install == {}:
            return False

    apt_update()
    # Confdef is to fix https://unix.stackexchange.com/a/416816/73838
    os.environ["DEBIAN_FRONTEND"] = "noninteractive"
    cmd = (
        'apt-get satisfy "%s" --yes -o DPkg::Options::=--force-confdef'
        % ", ".join(
            [
                name if version is None else f"{name} (>= {version})"
                for (name, version) in to_install.items()
            ]
        )
    )
    run_command(cmd)
    return True


def ppa_source_exists(ppa: str) -> bool:
    # add-apt-repository names the file "<owner>-ubuntu-<name>-<codename>.list" (or .sources)
    owner, name = ppa.split("/", 1)
    return len(glob(f"/etc/apt/sources.list.d/{owner}-ubuntu-{name}-*")) > 0


def add_ppa(ppa: str) -> bool:
    if ppa_source_exists(ppa):
        return False
    apt_install(["software-properties-common"])
    logging.info("Adding PPA %s" % ppa)
    run_command(f"add-apt-repository --yes ppa:{ppa}")
    apt_update(force=True)
    return True
