import logging
from pathlib import Path

from wpstack import dry_run_safe_read

from ..helpers.config import settings
from ..helpers.debian import apt_install
from ..helpers.fs import run_command
from ..inputs import ProvisioningConfig
from .nginx import site_path

LIVE_PATH = Path("/etc/letsencrypt/live")


# Are we in a test config where we should just not get the cert
def get_dummy_certs() -> bool:
    return bool(settings()["dummy_certs"])


def certbot_command(config: ProvisioningConfig) -> str:
    domains = " ".join([f"-d {hostname}" for hostname in config.hostnames])
    return f"certbot --nginx {domains} \
        --non-interactive --agree-tos --email {config.email} --redirect"


def reinstall_command(config: ProvisioningConfig) -> str:
    return f"certbot install --nginx --cert-name {config.domain} \
        --non-interactive --redirect"


def install(config: ProvisioningConfig) -> None:
    apt_install(["certbot", "python3-certbot-nginx"])

    fullchain_path = LIVE_PATH.joinpath(config.domain, "fullchain.pem")
    if get_dummy_certs():
        logging.info("Skipping certbot for %s as dummy_certs is set" % config.domain)
    elif not fullchain_path.exists():
        run_command(certbot_command(config))
    elif "ssl_certificate" not in dry_run_safe_read(site_path(config.domain), ""):
        # "Nginx configuration" put the plain template back over certbot's edits
        logging.info("Reinstalling the certificate for %s into nginx" % config.domain)
        run_command(reinstall_command(config))
    else:
        # certbot.timer from the package does the renewals
        logging.info("Already have a certificate for %s" % config.domain)
