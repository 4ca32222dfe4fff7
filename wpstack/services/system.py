from wpstack import is_dry_run

from ..helpers.debian import apt_install, apt_upgrade
from ..helpers.fs import MissingCommandException, run_command
from ..helpers.systemd import systemd_set

# Ports rather than the "Nginx Full" app profile, as Nginx isn't installed yet
FIREWALL_RULES = ["OpenSSH", "80/tcp", "443/tcp"]


def update() -> None:
    apt_upgrade()


def ufw_query(args: str) -> str:
    try:
        return run_command(f"ufw {args}", dry_run_safe=True)
    except MissingCommandException:
        # dry runs on a host where ufw hasn't been installed yet
        if is_dry_run():
            return ""
        raise


def firewall() -> None:
    apt_install(["ufw"])
    existing = ufw_query("show added").splitlines()
    for rule in FIREWALL_RULES:
        if f"ufw allow {rule}" in existing:
            continue
        run_command(f"ufw allow {rule}")
    if "Status: active" not in ufw_query("status"):
        run_command("ufw --force enable")


def fail2ban() -> None:
    apt_install(["fail2ban"])
    systemd_set("fail2ban", enabled=True, running=True)


def unattended_upgrades() -> None:
    apt_install(["unattended-upgrades"])
