import logging
import os
import pathlib
from typing import Any, Dict, Iterator, Optional, cast

import jinja2
import yaml
from frozendict import deepfreeze, frozendict
from mergedeep import merge

CONFIG_ENV = "WPSTACK_CONFIG"
CONFIG_NAME = "wpstack.yaml"

DEFAULT_SETTINGS: Dict[str, object] = {
    "php_version": "8.3",
    "webroot": "/var/www/html",
    "nginx_sites_available": "/etc/nginx/sites-available",
    "nginx_sites_enabled": "/etc/nginx/sites-enabled",
    "cache_zone": "wordpress",
    "cache_path": "/etc/nginx/cache",
    "cache_size": "100m",
    "cache_inactive": "60m",
    "php_ini": {
        "memory_limit": "256M",
        "upload_max_filesize": "64M",
        "post_max_size": "64M",
    },
    "wordpress_url": "https://wordpress.org/latest.tar.gz",
    "salt_url": "https://api.wordpress.org/secret-key/1.1/salt/",
    "http_timeout": 30,
    "state_dir": "/opt/wpstack",
    "dummy_certs": False,
}

Settings = frozendict[str, Any]


class ConfigError(Exception):
    pass


_settings: Optional[Settings] = None
_jinja_env: Optional[jinja2.Environment] = None


def config_file_path() -> pathlib.Path:
    return pathlib.Path(os.environ.get(CONFIG_ENV, CONFIG_NAME))


def load_settings(path: Optional[pathlib.Path] = None) -> Settings:
    if path is None:
        path = config_file_path()
    overrides: Dict[str, object] = {}
    if path.exists():
        logging.info("Loading settings from %s" % path)
        try:
            loaded = yaml.safe_load(path.open())
        except yaml.YAMLError as e:
            raise ConfigError(f"Can't parse {path}: {e}") from e
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError(f"{path} should be a mapping, not {type(loaded).__name__}")
        unknown = sorted(set(loaded.keys()) - set(DEFAULT_SETTINGS.keys()))
        if len(unknown) > 0:
            raise ConfigError(f"Unknown settings in {path}: {unknown}")
        overrides = cast(Dict[str, object], loaded)
    elif CONFIG_ENV in os.environ:
        raise ConfigError(f"Can't find settings file {path}")

    ret: Dict[str, object] = merge({}, DEFAULT_SETTINGS, overrides)
    return deepfreeze(ret)


def settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def php_version() -> str:
    return str(settings()["php_version"])


def php_fpm_service() -> str:
    return f"php{php_version()}-fpm"


def php_fpm_socket() -> str:
    return f"/run/php/php{php_version()}-fpm.sock"


def state_dir() -> pathlib.Path:
    return pathlib.Path(settings()["state_dir"])


def walk(path: pathlib.Path) -> Iterator[pathlib.Path]:
    for p in pathlib.Path(path).iterdir():
        if p.is_dir():
            yield from walk(p)
            continue
        yield p.resolve()


def template_paths():
    # Later entries win, so a local "templates" folder overrides the packaged ones
    return [
        pathlib.Path(__file__).parent.parent.joinpath("templates"),
        pathlib.Path("templates"),
    ]


def jinja_env() -> jinja2.Environment:
    global _jinja_env
    if _jinja_env is None:
        templates: Dict[str, str] = {}
        for template_path in template_paths():
            if not template_path.exists():
                continue
            for path in walk(template_path):
                templates[path.name] = path.open("r").read()
        _jinja_env = jinja2.Environment(
            loader=jinja2.DictLoader(templates),
            undefined=jinja2.StrictUndefined,
            keep_trailing_newline=True,
        )
    return _jinja_env


# Only for tests
def _clear_config() -> None:  # pyright: ignore[reportUnusedFunction]
    global _settings, _jinja_env
    _settings = None
    _jinja_env = None
