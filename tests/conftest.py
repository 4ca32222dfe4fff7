from pathlib import Path
from typing import Callable, Iterable, Optional

import pytest
import yaml

from wpstack.helpers.config import (
    CONFIG_ENV,
    _clear_config,  # pyright: ignore[reportPrivateUsage]
)
from wpstack.inputs import ProvisioningConfig


def set_config_data(config_path: Path, data: object) -> None:
    config_path.write_text(yaml.dump(data))


def use_settings(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, data: object
) -> None:
    config_path = tmp_path.joinpath("settings.yaml")
    set_config_data(config_path, data)
    monkeypatch.setenv(CONFIG_ENV, config_path.as_posix())
    _clear_config()


def answers(values: Iterable[str]) -> Callable[[str], str]:
    remaining = list(values)

    def prompt(_question: str) -> str:
        return remaining.pop(0)

    return prompt


def make_config(
    domain: str = "example.com",
    db_name: str = "wordpressdb",
    db_user: str = "wpuser",
    db_password: str = "db-secret-pw",
    email: str = "a@b.com",
    admin_user: str = "adminuser",
    admin_password: Optional[str] = "admin-secret-pw",
) -> ProvisioningConfig:
    return ProvisioningConfig(
        domain=domain,
        db_name=db_name,
        db_user=db_user,
        db_password=db_password,
        email=email,
        admin_user=admin_user,
        admin_password=admin_password or "",
    )


@pytest.fixture(autouse=True)
def clear_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    # No stray wpstack.yaml or templates folder from wherever pytest was started
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv(CONFIG_ENV, raising=False)
    monkeypatch.delenv("WPSTACK_DRY_RUN", raising=False)
    _clear_config()
