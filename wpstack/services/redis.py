from ..helpers.config import php_fpm_service, php_version
from ..helpers.debian import apt_install
from ..helpers.systemd import systemd_set


def install() -> None:
    apt_install(["redis-server"])
    extension_changes = apt_install([f"php{php_version()}-redis"])
    systemd_set("redis-server", enabled=True, running=True)
    systemd_set(php_fpm_service(), restart=extension_changes)
