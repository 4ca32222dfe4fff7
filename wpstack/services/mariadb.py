from ..helpers.config import state_dir
from ..helpers.debian import apt_install
from ..helpers.fs import (
    make_directory,
    render_template,
    run_with_marker,
    set_file_contents,
    set_file_contents_from_template,
)
from ..helpers.systemd import systemd_set
from ..inputs import ProvisioningConfig

# secure_mariadb.sql works on mysql.global_priv, which is new in 10.4
MARIADB_VERSION = "1:10.4"


def install() -> None:
    apt_install({"mariadb-server": MARIADB_VERSION})
    systemd_set("mariadb", enabled=True, running=True)

    # root stays on unix_socket auth, so this is the scripted half of mysql_secure_installation
    make_directory(state_dir(), mode="700")
    secure_sql = state_dir().joinpath("secure_mariadb.sql")
    set_file_contents_from_template(secure_sql, "secure_mariadb.sql.j2")
    run_with_marker(
        state_dir().joinpath("secure_mariadb.marker"),
        f"mysql --user=root < {secure_sql}",
        deps=[secure_sql],
    )


def create_database(config: ProvisioningConfig) -> None:
    make_directory(state_dir(), mode="700")
    setup_sql = state_dir().joinpath("setup_db.sql")
    set_file_contents(
        setup_sql,
        render_template(
            "setup_db.sql.j2",
            DB_NAME=config.db_name,
            DB_USER=config.db_user,
            DB_PASSWORD=config.db_password,
        ),
        mode="600",
        secret=True,
    )
    run_with_marker(
        state_dir().joinpath("setup_db.marker"),
        f"mysql --user=root < {setup_sql}",
        deps=[setup_sql],
    )
