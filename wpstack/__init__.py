"""wpstack turns a fresh Ubuntu host into a WordPress server. It's a single-host
sibling of the usual LEMP install scripts, but every step is idempotent so you can
re-run it against a half-provisioned box and it'll only touch what's different.

What you get: Nginx with a FastCGI cache, MariaDB, PHP-FPM (from the ondrej/php PPA),
Let's Encrypt via certbot, Redis, ufw, Fail2Ban, a non-root sudo user, and
unattended upgrades.

Usage
-----

1. Point your domain at the server.
2. `pip install wpstack` on it.
3. Run `sudo wpstack` (or `sudo python -m wpstack`) and answer the prompts.

Steps run in order and the first failure stops everything with
`Error: <step> failed. Exiting.` and exit status 1. Nothing is rolled back, but
as the steps are idempotent, fixing the problem and running again is the normal
way forward.

Environment
---

* `WPSTACK_DRY_RUN=true` - log what would be changed, but don't change anything.
* `WPSTACK_CONFIG` - path to a YAML file of settings overrides (defaults to
  `wpstack.yaml` in the current directory, if it exists). See
  `wpstack.helpers.config.DEFAULT_SETTINGS` for the keys.
* `DUMP_COMMAND=true` - echo the output of every command as it runs.
"""

import os
import pathlib
from typing import Union

Pathy = Union[str, pathlib.Path]

DRY_RUN_ENV = "WPSTACK_DRY_RUN"


def is_dry_run() -> bool:
    return os.environ.get(DRY_RUN_ENV, "false").lower() == "true"


def dry_run_safe_read(fname: Pathy, default: str) -> str:
    try:
        return open(fname).read()
    except FileNotFoundError:
        if is_dry_run():
            return default
        raise
