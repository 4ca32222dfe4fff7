from functools import partial
from typing import List

from .inputs import ProvisioningConfig
from .pipeline import Step
from .services import accounts, certs, mariadb, nginx, php, redis, system, wordpress


def build_steps(config: ProvisioningConfig) -> List[Step]:
    return [
        # what an upgrade does depends on the day it runs
        Step("System update", system.update, idempotent=False),
        Step("Firewall setup", system.firewall),
        Step("Fail2Ban installation", system.fail2ban),
        Step("New user creation", partial(accounts.create_admin, config)),
        Step("Root SSH disable", accounts.disable_root_ssh),
        Step("Nginx installation", nginx.install),
        Step("MariaDB installation", mariadb.install),
        Step("PHP installation", php.install),
        Step("PHP optimization", php.optimize),
        Step("Database creation", partial(mariadb.create_database, config)),
        Step("WordPress download", wordpress.download_release),
        Step("wp-config setup", partial(wordpress.configure, config)),
        Step("Nginx configuration", partial(nginx.configure_site, config)),
        Step("SSL installation", partial(certs.install, config)),
        Step("Redis installation", redis.install),
        Step("File permissions hardening", wordpress.harden_permissions),
        Step("Unattended upgrades", system.unattended_upgrades),
    ]
