import logging
from typing import Dict, Optional

from .fs import CommandFailed, run_command


def journal(name: str) -> None:
    res = run_command("journalctl -u %s --no-pager -n 50" % name, dry_run_safe=True)
    print(res)


def systemd_status(name: str) -> Dict[str, str]:
    raw = run_command("systemctl show %s --no-page" % name, dry_run_safe=True)
    return dict([line.split("=", 1) for line in raw.splitlines() if "=" in line])


def systemd_set(
    name: str,
    enabled: Optional[bool] = None,
    running: Optional[bool] = None,
    restart: Optional[bool] = None,
    reloaded: Optional[bool] = None,
) -> None:
    status = systemd_status(name)
    unitFileState = status.get("UnitFileState")
    if unitFileState == "masked":
        logging.info("Unmasking %s" % name)
        run_command("systemctl unmask %s" % name)
    if enabled is not None:
        if enabled:
            if unitFileState not in ["enabled", "enabled-runtime"]:
                logging.info("%s is currently %s" % (name, unitFileState))
                run_command("systemctl enable %s" % name)
        else:
            if unitFileState is not None and unitFileState != "disabled":
                logging.info("%s is currently %s" % (name, unitFileState))
                run_command("systemctl disable %s" % name)
    started = False
    if running is not None:
        sub_state = status.get("SubState")
        if running:
            if sub_state not in ["running", "auto-restart", "start"]:
                logging.info("running: %s %s" % (name, sub_state))
                try:
                    run_command("systemctl start %s" % name)
                except CommandFailed:
                    journal(name)
                    raise
                started = True
        else:
            if sub_state not in ["dead"]:
                logging.info("running: %s %s" % (name, sub_state))
                try:
                    run_command("systemctl stop %s" % name)
                except CommandFailed:
                    journal(name)
                    raise
    if restart is True and not started:
        try:
            run_command("systemctl restart %s" % name)
        except CommandFailed:
            journal(name)
            raise

    if reloaded is True and not started:
        run_command("systemctl reload %s" % name)
