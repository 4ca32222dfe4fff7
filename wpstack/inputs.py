import getpass
import re
from dataclasses import dataclass, field
from typing import Callable, Optional

DEFAULT_DB_NAME = "wordpressdb"
DEFAULT_DB_USER = "wpuser"
DEFAULT_ADMIN_USER = "adminuser"

_sql_identifier = re.compile(r"^[A-Za-z0-9_]+$")
_unix_username = re.compile(r"^[a-z_][a-z0-9_-]*$")
# goes on the certbot command line unquoted
_email = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+$")

Prompt = Callable[[str], str]


class ValidationError(Exception):
    pass


@dataclass(frozen=True)
class ProvisioningConfig:
    domain: str
    db_name: str
    db_user: str
    db_password: str = field(repr=False)
    email: str
    admin_user: str
    admin_password: str = field(repr=False)

    def __post_init__(self) -> None:
        for name in [
            "domain",
            "db_name",
            "db_user",
            "db_password",
            "email",
            "admin_user",
            "admin_password",
        ]:
            if getattr(self, name) == "":
                raise ValidationError(f"{name} is required")
        if re.search(r"[\s/]", self.domain):
            raise ValidationError(f"'{self.domain}' doesn't look like a domain name")
        for name in ["db_name", "db_user"]:
            if not _sql_identifier.match(getattr(self, name)):
                raise ValidationError(
                    f"{name} can only contain letters, digits and underscores"
                )
        # ends up inside single-quoted SQL and PHP literals unescaped
        if "'" in self.db_password or "\\" in self.db_password:
            raise ValidationError("db_password can't contain ' or \\")
        if not _unix_username.match(self.admin_user):
            raise ValidationError(f"'{self.admin_user}' isn't a valid username")
        if not _email.match(self.email):
            raise ValidationError(f"'{self.email}' isn't an email address")

    @property
    def hostnames(self):
        return [self.domain, f"www.{self.domain}"]


def ask(prompt: Prompt, question: str, default: Optional[str] = None) -> str:
    answer = prompt(question).strip()
    if answer == "" and default is not None:
        return default
    return answer


def collect(
    prompt: Prompt = input, secret: Prompt = getpass.getpass
) -> ProvisioningConfig:
    domain = ask(prompt, "Enter your domain name (e.g., example.com): ")
    db_name = ask(
        prompt,
        f"Enter WordPress database name (default: {DEFAULT_DB_NAME}): ",
        DEFAULT_DB_NAME,
    )
    db_user = ask(
        prompt,
        f"Enter WordPress database user (default: {DEFAULT_DB_USER}): ",
        DEFAULT_DB_USER,
    )
    db_password = secret("Enter WordPress database password: ")
    email = ask(prompt, "Enter email for Let's Encrypt SSL: ")
    admin_user = ask(
        prompt,
        f"Enter a new sudo username for security (default: {DEFAULT_ADMIN_USER}): ",
        DEFAULT_ADMIN_USER,
    )
    admin_password = secret("Enter password for new sudo user: ")

    return ProvisioningConfig(
        domain=domain,
        db_name=db_name,
        db_user=db_user,
        db_password=db_password,
        email=email,
        admin_user=admin_user,
        admin_password=admin_password,
    )
