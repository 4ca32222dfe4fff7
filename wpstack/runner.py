import argparse
import getpass
import logging
import os
import sys
from typing import List

from wpstack import is_dry_run

from .helpers.config import ConfigError, settings
from .inputs import Prompt, ValidationError, collect
from .pipeline import Pipeline, StepError
from .stack import build_steps


def run(
    args: List[str], prompt: Prompt = input, secret: Prompt = getpass.getpass
) -> int:
    logging.basicConfig()
    logging.root.setLevel(logging.INFO)

    parser = argparse.ArgumentParser(
        prog="wpstack",
        description="Set up Nginx, MariaDB, PHP, TLS and WordPress on this host. "
        "Everything is asked for interactively.",
    )
    parser.parse_args(args)

    if is_dry_run():
        logging.info("Dry run, so nothing will be changed")
    elif os.geteuid() != 0:
        logging.error("This needs to be run as root e.g. sudo wpstack")
        return 1

    try:
        settings()
    except ConfigError as e:
        logging.error("Error: %s. Exiting." % e)
        return 1

    try:
        config = collect(prompt, secret)
    except ValidationError as e:
        logging.error("Error: %s. Exiting." % e)
        return 1

    steps = build_steps(config)
    print("Running:")
    for step in steps:
        print(f"* {step.name}")
    print("")

    try:
        Pipeline(steps).execute()
    except StepError as e:
        logging.error("Error: %s failed. Exiting." % e.step_name)
        logging.error("Caused by %s: %s" % (type(e.cause).__name__, e.cause))
        if not e.step.idempotent:
            logging.warning(
                "%s isn't idempotent, so check the host before running again"
                % e.step_name
            )
        return 1

    print(
        f"Setup complete! Visit https://{config.domain} to finish WordPress installation."
    )
    print(
        f"Login as {config.admin_user} for future access. "
        "Install plugins like Redis Object Cache for further optimization."
    )
    return 0


def main() -> None:
    sys.exit(run(sys.argv[1:]))
