from pathlib import Path

from ..helpers.config import php_fpm_socket, settings
from ..helpers.debian import apt_install
from ..helpers.fs import (
    RenderedConfig,
    delete,
    link,
    make_directory,
    render_config,
    run_command,
    write_config,
)
from ..helpers.systemd import systemd_set
from ..inputs import ProvisioningConfig


def install() -> None:
    apt_install(["nginx"])
    systemd_set("nginx", enabled=True, running=True)


def site_path(domain: str) -> Path:
    return Path(settings()["nginx_sites_available"]).joinpath(domain)


def render_site(config: ProvisioningConfig) -> RenderedConfig:
    local = settings()
    return render_config(
        site_path(config.domain),
        "nginx-site.conf.j2",
        DOMAIN=config.domain,
        WEBROOT=local["webroot"],
        PHP_SOCKET=php_fpm_socket(),
        CACHE_ZONE=local["cache_zone"],
        CACHE_PATH=local["cache_path"],
        CACHE_SIZE=local["cache_size"],
        CACHE_INACTIVE=local["cache_inactive"],
    )


def configure_site(config: ProvisioningConfig) -> None:
    local = settings()
    enabled = Path(local["nginx_sites_enabled"])
    site = render_site(config)

    nginx_changes = make_directory(local["cache_path"], owner="www-data")
    nginx_changes = write_config(site) or nginx_changes
    nginx_changes = link(enabled.joinpath(config.domain), site["path"]) or nginx_changes
    nginx_changes = delete(enabled.joinpath("default")) or nginx_changes

    if nginx_changes:
        run_command("nginx -t")
        systemd_set("nginx", reloaded=True)
