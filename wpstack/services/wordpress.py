import logging
import os
import re
from pathlib import Path
from typing import Dict, Optional

import requests

from ..helpers.config import settings, state_dir
from ..helpers.fs import (
    RenderedConfig,
    delete,
    download_and_unpack,
    make_directory,
    render_config,
    run_command,
    set_mode,
    write_config,
)
from ..inputs import ProvisioningConfig

SALT_KEYS = [
    "AUTH_KEY",
    "SECURE_AUTH_KEY",
    "LOGGED_IN_KEY",
    "NONCE_KEY",
    "AUTH_SALT",
    "SECURE_AUTH_SALT",
    "LOGGED_IN_SALT",
    "NONCE_SALT",
]

_define_pattern = re.compile(r"define\(\s*'([A-Z_]+)'\s*,\s*'([^']*)'\s*\);")
_sha1_pattern = re.compile(r"^[0-9a-f]{40}$")


class SaltError(Exception):
    pass


def webroot() -> Path:
    return Path(settings()["webroot"])


def wp_config_path() -> Path:
    return webroot().joinpath("wp-config.php")


def parse_salts(text: str) -> Dict[str, str]:
    """Pull the eight keys/salts out of PHP `define()` lines.

    Used both on the secret-key service response and on an existing
    wp-config.php. The values go into single-quoted PHP strings unescaped, so
    anything that isn't exactly the expected keys with plain values is rejected.
    """
    found: Dict[str, str] = {}
    for key, value in _define_pattern.findall(text):
        if key not in SALT_KEYS:
            continue
        if key in found:
            raise SaltError(f"{key} defined more than once")
        found[key] = value

    missing = [key for key in SALT_KEYS if key not in found]
    if len(missing) > 0:
        raise SaltError(f"Missing {missing}")
    for key in SALT_KEYS:
        value = found[key]
        if value.strip() == "":
            raise SaltError(f"{key} is empty")
        if "\\" in value or "\n" in value:
            raise SaltError(f"{key} has characters that can't go in a PHP string")

    return dict([(key, found[key]) for key in SALT_KEYS])


def fetch_salts() -> Dict[str, str]:
    local = settings()
    logging.info("Fetching new keys and salts from %s" % local["salt_url"])
    response = requests.get(local["salt_url"], timeout=local["http_timeout"])
    response.raise_for_status()
    # only the keys, never the values
    salts = parse_salts(response.text)
    logging.info("Got %s" % ", ".join(salts.keys()))
    return salts


def existing_salts(path: Path) -> Optional[Dict[str, str]]:
    if not path.exists():
        return None
    try:
        return parse_salts(path.open().read())
    except SaltError as e:
        logging.info("Not reusing salts from %s: %s" % (path, e))
        return None


def render_wp_config(config: ProvisioningConfig, salts: Dict[str, str]) -> RenderedConfig:
    return render_config(
        wp_config_path(),
        "wp-config.php.j2",
        DB_NAME=config.db_name,
        DB_USER=config.db_user,
        DB_PASSWORD=config.db_password,
        SALTS=salts,
    )


def configure(config: ProvisioningConfig) -> None:
    path = wp_config_path()
    salts = existing_salts(path)
    if salts is None:
        salts = fetch_salts()
    write_config(
        render_wp_config(config, salts),
        owner="www-data",
        group="www-data",
        mode="640",
        secret=True,
    )


def fetch_checksum(url: str) -> str:
    response = requests.get(url + ".sha1", timeout=settings()["http_timeout"])
    response.raise_for_status()
    checksum = response.text.strip().lower()
    if not _sha1_pattern.match(checksum):
        raise Exception(f"Bad checksum from {url}.sha1: '{checksum[:80]}'")
    return checksum


def download_release() -> None:
    root = webroot()
    if root.joinpath("wp-settings.php").exists():
        logging.info("WordPress already installed in %s" % root)
    else:
        url = settings()["wordpress_url"]
        make_directory(state_dir(), mode="700")
        release = download_and_unpack(
            url,
            fetch_checksum(url),
            name="wordpress.tar.gz",
            dir_name=state_dir().joinpath("wordpress-release"),
            compressed_root=state_dir(),
            algorithm="sha1",
        )
        make_directory(root)
        run_command(f"cp -R {release['dir_name']}/wordpress/. {root}/")
        run_command(f"chown -R www-data:www-data {root}")

    delete(root.joinpath("index.nginx-debian.html"))


def harden_permissions() -> None:
    changes = 0
    for dirpath, dirnames, filenames in os.walk(webroot()):
        if set_mode(dirpath, "750"):
            changes += 1
        for filename in filenames:
            path = os.path.join(dirpath, filename)
            if os.path.islink(path):
                continue
            if set_mode(path, "640"):
                changes += 1
    logging.info("Changed permissions on %d paths under %s" % (changes, webroot()))
