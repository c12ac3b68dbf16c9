##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""Utils relating to mychembl provisioning"""

import hashlib
import logging
import os
from typing import Dict, List, Tuple

import psycopg2
import yaml
from psycopg2 import sql

import mychembl.utils


LOG = logging.getLogger("mychembl")

# Constants for main mychembl provisioning configuration values.
SERVICE_MANAGERS = ["service", "systemctl"]
CONFIG_DIR = os.path.abspath("./mychembl_provision/")
MYCHEMBL_PROVISION_CONFIG = "mychembl_provision.yaml"
READONLY_PRIVILEGES = ["SELECT"]
WRITE_PRIVILEGES = ["INSERT", "UPDATE", "DELETE", "TRUNCATE"]


def valid_port(port: int) -> bool:
    """
    Validates whether a given integer is a valid network port number.

    Args:
        port: The port number to validate.

    Returns:
        True if the port is valid, False otherwise.
    """
    if 0 < port < 65536:
        return True
    return False


def valid_version(version: int) -> bool:
    """
    Validates a ChEMBL release number. Releases are positive integers.

    Args:
        version: The release number to validate.

    Returns:
        True if the version is valid, False otherwise.
    """
    return isinstance(version, int) and not isinstance(version, bool) and version > 0


class InstallConfig:
    """
    A class for parsing and interacting with the `install` section of the
    provisioning configuration.

    The install section names the ChEMBL release being provisioned and the local
    directories the provisioning sequence works in.

    Attributes:
        VERSION (int): Default ChEMBL release.
        DATABASE (str): Default database name template.
        WORK_DIR (str): Default directory that archives and scripts are downloaded into.
        LOAD_MANIFEST (str): Default name of the load manifest file.

        version (int): The ChEMBL release.
        database (str): The database name template (formatted with `version`).
        config_dir (str): Absolute path to the provisioning configuration directory.
        work_dir (str): Absolute path to the download/extraction directory.
        manifest (str): Name of the load manifest file.
    """

    VERSION: int = 19
    DATABASE: str = "chembl_{version}"
    WORK_DIR: str = os.path.join(CONFIG_DIR, "work")
    LOAD_MANIFEST: str = "load_manifest.yaml"

    def __init__(self, data: Dict):
        """
        Initializes an `InstallConfig` instance, using defaults for any missing value.

        Args:
            data: A dictionary with any of the keys `version`, `database`,
                `config_dir`, `work_dir` and `manifest`.
        """
        self.version: int = data["version"] if "version" in data else self.VERSION
        self.database: str = data["database"] if "database" in data else self.DATABASE
        self.config_dir: str = os.path.abspath(data["config_dir"]) if "config_dir" in data else CONFIG_DIR
        self.work_dir: str = os.path.abspath(data["work_dir"]) if "work_dir" in data else self.WORK_DIR
        self.manifest: str = data["manifest"] if "manifest" in data else self.LOAD_MANIFEST

    def __eq__(self, other: "InstallConfig") -> bool:
        variables = ("version", "database", "config_dir", "work_dir", "manifest")
        return all(getattr(self, attr) == getattr(other, attr) for attr in variables)

    def __repr__(self) -> str:
        config_dict = {
            "version": self.version,
            "database": self.database,
            "config_dir": self.config_dir,
            "work_dir": self.work_dir,
            "manifest": self.manifest,
        }
        return f"InstallConfig({config_dict!r})"

    def get_version(self) -> int:
        """Returns the ChEMBL release number."""
        return self.version

    def get_database_name(self) -> str:
        """
        Returns the name of the database for this release.

        Example:
            ```python
            >>> InstallConfig({"version": 33}).get_database_name()
            'chembl_33'
            ```
        """
        return self.database.format(version=self.version)

    def get_config_dir(self) -> str:
        """Returns the provisioning configuration directory."""
        return self.config_dir

    def get_work_dir(self) -> str:
        """Returns the directory that archives and scripts are downloaded into."""
        return self.work_dir

    def get_manifest_path(self) -> str:
        """Returns the full path to the load manifest file."""
        return os.path.join(self.config_dir, self.manifest)


class RemoteConfig:
    """
    A class for parsing and interacting with the `remote` section of the provisioning
    configuration: where the archives and SQL scripts are fetched from.

    Every URL and name may contain a `{version}` placeholder.

    Attributes:
        models_url (str): URL of the target prediction models archive.
        dump_url (str): URL of the PostgreSQL dump archive.
        dump_dir (str): Name of the directory the dump archive extracts to.
        dump_file (str): Name of the SQL dump inside `dump_dir`.
        scripts (List[str]): URLs of the SQL scripts applied after the extension is enabled.
        timeout (float): Network timeout in seconds, or `None` to wait indefinitely.
    """

    MODELS_URL: str = "https://ftp.ebi.ac.uk/pub/databases/chembl/target_predictions/chembl_{version}_models.tar.gz"
    DUMP_URL: str = (
        "https://ftp.ebi.ac.uk/pub/databases/chembl/ChEMBLdb/releases/chembl_{version}/chembl_{version}_postgresql.tar.gz"
    )
    DUMP_DIR: str = "chembl_{version}_postgresql"
    DUMP_FILE: str = "chembl_{version}.pgdump.sql"
    SCRIPTS: List[str] = [
        "https://raw.githubusercontent.com/chembl/mychembl/master/indexes.sql",
        "https://raw.githubusercontent.com/chembl/mychembl_webapp/master/sql/webapp.sql",
    ]

    def __init__(self, data: Dict, version: int):
        """
        Initializes a `RemoteConfig` instance.

        Args:
            data: A dictionary with any of the keys `models_url`, `dump_url`,
                `dump_dir`, `dump_file`, `scripts` and `timeout`.
            version: The ChEMBL release used to format the templates.
        """
        self.version: int = version
        self.models_url: str = data["models_url"] if "models_url" in data else self.MODELS_URL
        self.dump_url: str = data["dump_url"] if "dump_url" in data else self.DUMP_URL
        self.dump_dir: str = data["dump_dir"] if "dump_dir" in data else self.DUMP_DIR
        self.dump_file: str = data["dump_file"] if "dump_file" in data else self.DUMP_FILE
        self.scripts: List[str] = data["scripts"] if "scripts" in data else list(self.SCRIPTS)
        self.timeout: float = data.get("timeout")

    def _format(self, template: str) -> str:
        return template.format(version=self.version)

    def get_models_url(self) -> str:
        """Returns the URL of the target prediction models archive."""
        return self._format(self.models_url)

    def get_dump_url(self) -> str:
        """Returns the URL of the PostgreSQL dump archive."""
        return self._format(self.dump_url)

    def get_archive_urls(self) -> List[str]:
        """Returns the archive URLs in the order they are fetched: models first, then the dump."""
        return [self.get_models_url(), self.get_dump_url()]

    def get_dump_dir(self) -> str:
        """Returns the name of the directory that the dump archive extracts to."""
        return self._format(self.dump_dir)

    def get_dump_file(self) -> str:
        """Returns the path of the SQL dump relative to the work directory."""
        return os.path.join(self.get_dump_dir(), self._format(self.dump_file))

    def get_script_urls(self) -> List[str]:
        """Returns the URLs of the SQL scripts to apply, in order."""
        return [self._format(script) for script in self.scripts]

    def get_timeout(self) -> float:
        """Returns the network timeout, `None` meaning no timeout."""
        return self.timeout


class ServiceFormatConfig:
    """
    This class parses the command templates for a service manager (`service`, `systemctl`).

    Attributes:
        SUDO_COMMAND (str): Default template to run a command with elevated privileges.
        INSTALL_COMMAND (str): Default template to copy a file into place.
        RESTART_COMMAND (str): Default command that restarts PostgreSQL.
    """

    SUDO_COMMAND: str = "sudo -S {command}"
    INSTALL_COMMAND: str = "cp {source} {dest}"
    RESTART_COMMAND: str = "service postgresql restart"

    def __init__(self, data: Dict):
        self.sudo: str = data["sudo_command"] if "sudo_command" in data else self.SUDO_COMMAND
        self.install: str = data["install_command"] if "install_command" in data else self.INSTALL_COMMAND
        self.restart: str = data["restart_command"] if "restart_command" in data else self.RESTART_COMMAND

    def __eq__(self, other: "ServiceFormatConfig") -> bool:
        variables = ("sudo", "install", "restart")
        return all(getattr(self, attr) == getattr(other, attr) for attr in variables)

    def get_sudo_command(self, command: str, password_on_stdin: bool = True) -> str:
        """
        Wraps `command` in the elevated-privilege template.

        Without a password to feed on stdin the `-S` flag is dropped so `sudo` prompts on
        the terminal (or relies on NOPASSWD) instead of reading an empty stdin.

        Example:
            ```python
            >>> ServiceFormatConfig({}).get_sudo_command("service postgresql restart")
            'sudo -S service postgresql restart'
            >>> ServiceFormatConfig({}).get_sudo_command("service postgresql restart", password_on_stdin=False)
            'sudo service postgresql restart'
            ```
        """
        template = self.sudo
        if not password_on_stdin:
            template = " ".join(part for part in template.split(" ") if part != "-S")
        return template.format(command=command)

    def get_install_command(self, source: str, dest: str) -> str:
        """Returns the command that copies `source` over `dest`."""
        return self.install.format(source=source, dest=dest)

    def get_restart_command(self) -> str:
        """Returns the command that restarts the PostgreSQL service."""
        return self.restart


class SystemConfig:
    """
    A class for parsing and interacting with the `system` section of the provisioning
    configuration: which service manager to use and which system configuration files
    get overwritten.

    Attributes:
        format (str): The service manager (one of `SERVICE_MANAGERS`).
        postgres_version (str): Installed PostgreSQL version, used in configuration paths.
        sudo_pass_file (str): Name of the file holding the `sudo` password.
        config_files (List[Dict[str, str]]): `url`/`dest` pairs of configuration files to install.
        overrides (Dict[str, str]): Settings forced into the fetched `postgresql.conf`.
    """

    FORMAT: str = "service"
    POSTGRES_VERSION: str = "9.1"
    SUDO_PASS_FILE: str = "sudo.pass"
    CONFIG_FILES: List[Dict[str, str]] = [
        {
            "url": "https://raw.githubusercontent.com/chembl/mychembl/master/configuration/mychembl_postgresql.conf",
            "dest": "/etc/postgresql/{postgres_version}/main/postgresql.conf",
        },
        {
            "url": "https://raw.githubusercontent.com/chembl/mychembl/master/configuration/mychembl_pg_hba.conf",
            "dest": "/etc/postgresql/{postgres_version}/main/pg_hba.conf",
        },
        {
            "url": "https://raw.githubusercontent.com/chembl/mychembl/master/configuration/mychembl_sysctl.conf",
            "dest": "/etc/sysctl.conf",
        },
    ]

    def __init__(self, data: Dict, config_dir: str):
        self.config_dir: str = config_dir
        self.format: str = data["format"] if "format" in data else self.FORMAT
        self.postgres_version: str = str(data["postgres_version"]) if "postgres_version" in data else self.POSTGRES_VERSION
        self.sudo_pass_file: str = data["sudo_pass_file"] if "sudo_pass_file" in data else self.SUDO_PASS_FILE
        self.config_files: List[Dict[str, str]] = (
            data["config_files"] if "config_files" in data else [dict(entry) for entry in self.CONFIG_FILES]
        )
        self.overrides: Dict[str, str] = data.get("overrides") or {}

    def get_format(self) -> str:
        """Returns the service manager name."""
        return self.format

    def get_postgres_version(self) -> str:
        """Returns the installed PostgreSQL version."""
        return self.postgres_version

    def get_sudo_pass_file_path(self) -> str:
        """Returns the full path to the `sudo` password file."""
        return os.path.join(self.config_dir, self.sudo_pass_file)

    def get_sudo_password(self) -> str:
        """
        Reads the `sudo` password.

        Returns:
            The password, or `None` if no password file exists.
        """
        pass_file = self.get_sudo_pass_file_path()
        if not os.path.exists(pass_file):
            return None
        with open(pass_file, "r") as f:  # pylint: disable=C0103
            return f.read().strip()

    def get_config_files(self) -> List[Tuple[str, str]]:
        """
        Returns the configuration files to install as `(url, destination)` pairs,
        with `{postgres_version}` substituted in the destinations.
        """
        return [
            (entry["url"], entry["dest"].format(postgres_version=self.postgres_version)) for entry in self.config_files
        ]

    def get_overrides(self) -> Dict[str, str]:
        """Returns the settings forced into `postgresql.conf`."""
        return self.overrides


class DatabaseConfig:
    """
    A class for parsing and interacting with the `database` section of the provisioning
    configuration: how to reach PostgreSQL and the client command templates.

    Attributes:
        host (str): Server host, or `None` for the local socket.
        port (int): Server port.
        owner (str): Role that owns the ChEMBL database.
        extension (str): Chemistry extension to enable.
        maintenance_db (str): Database to connect to when creating the ChEMBL database.
        load_command (str): Template that bulk-loads the dump.
        script_command (str): Template that applies an SQL script.
    """

    PORT: int = 5432
    OWNER: str = "chembl"
    EXTENSION: str = "rdkit"
    MAINTENANCE_DB: str = "postgres"
    LOAD_COMMAND: str = "psql {connection} --username={owner} -v ON_ERROR_STOP=1 -d {database} -f {dump}"
    SCRIPT_COMMAND: str = "psql {connection} --username={owner} -d {database} -a -f {script}"

    def __init__(self, data: Dict):
        self.host: str = data.get("host")
        self.port: int = data["port"] if "port" in data else self.PORT
        self.owner: str = data["owner"] if "owner" in data else self.OWNER
        self.extension: str = data["extension"] if "extension" in data else self.EXTENSION
        self.maintenance_db: str = data["maintenance_db"] if "maintenance_db" in data else self.MAINTENANCE_DB
        self.load_command: str = data["load_command"] if "load_command" in data else self.LOAD_COMMAND
        self.script_command: str = data["script_command"] if "script_command" in data else self.SCRIPT_COMMAND

    def get_connection_kwargs(self, database: str, user: str = None, password: str = None) -> Dict:
        """
        Builds keyword arguments for `psycopg2.connect`.

        Args:
            database: The database to connect to.
            user: The role to connect as. Defaults to the database owner.
            password: The role's password, if any.

        Returns:
            A dict of connection parameters; unset parameters are left out so libpq
            falls back to its own defaults (local socket, peer authentication).
        """
        kwargs = {"dbname": database, "user": user if user is not None else self.owner, "port": self.port}
        if self.host is not None:
            kwargs["host"] = self.host
        if password is not None:
            kwargs["password"] = password
        return kwargs

    def connect(self, database: str, user: str = None, password: str = None):
        """Open a `psycopg2` connection to `database`."""
        return psycopg2.connect(**self.get_connection_kwargs(database, user=user, password=password))

    def get_psql_connection(self) -> str:
        """Returns the host/port flags for `psql`."""
        flags = f"-p {self.port}"
        if self.host is not None:
            flags = f"-h {self.host} {flags}"
        return flags

    def get_load_command(self, database: str, dump: str) -> str:
        """Returns the command that bulk-loads `dump` into `database`."""
        return self.load_command.format(
            connection=self.get_psql_connection(), owner=self.owner, database=database, dump=dump
        )

    def get_script_command(self, database: str, script: str) -> str:
        """Returns the command that applies `script` to `database` as the owner."""
        return self.script_command.format(
            connection=self.get_psql_connection(), owner=self.owner, database=database, script=script
        )


class ReadonlyConfig:
    """
    A class for the `readonly` section of the provisioning configuration, pointing
    at the files that hold the read-only roles.

    Attributes:
        user (str): Name of the default read-only role.
        user_file (str): Name of the read-only users file.
        pass_file (str): Name of the file holding the default role's password.
    """

    USER: str = "mychembl"
    USERS_FILE: str = "readonly.users"
    PASSWORD_FILE: str = "readonly.pass"

    def __init__(self, data: Dict, config_dir: str):
        self.config_dir: str = config_dir
        self.user: str = data["user"] if "user" in data else self.USER
        self.user_file: str = data["user_file"] if "user_file" in data else self.USERS_FILE
        self.pass_file: str = data["pass_file"] if "pass_file" in data else self.PASSWORD_FILE

    def get_user(self) -> str:
        """Returns the name of the default read-only role."""
        return self.user

    def get_user_file_path(self) -> str:
        """Returns the full path to the read-only users file."""
        return os.path.join(self.config_dir, self.user_file)

    def get_pass_file_path(self) -> str:
        """Returns the full path to the read-only password file."""
        return os.path.join(self.config_dir, self.pass_file)

    def get_password(self) -> str:
        """
        Reads the default read-only role's password.

        Returns:
            The password, or `None` if no password file exists.
        """
        pass_file = self.get_pass_file_path()
        if not os.path.exists(pass_file):
            return None
        with open(pass_file, "r") as f:  # pylint: disable=C0103
            return f.read().strip()


class ProvisionConfig:  # pylint: disable=R0903
    """
    Aggregates every section of a provisioning configuration.

    Attributes:
        install (InstallConfig): Release and local directories.
        remote (RemoteConfig): Remote archives and scripts.
        system (SystemConfig): Service manager and system configuration files.
        service_format (ServiceFormatConfig): Command templates for the service manager in use.
        database (DatabaseConfig): Connection details and client commands.
        readonly (ReadonlyConfig): Read-only role files.
    """

    def __init__(self, data: Dict):
        self.install: InstallConfig = InstallConfig(data.get("install") or {})
        config_dir = self.install.get_config_dir()
        self.remote: RemoteConfig = RemoteConfig(data.get("remote") or {}, self.install.get_version())
        self.system: SystemConfig = SystemConfig(data.get("system") or {}, config_dir)
        self.service_format: ServiceFormatConfig = ServiceFormatConfig(data.get(self.system.get_format()) or {})
        self.database: DatabaseConfig = DatabaseConfig(data.get("database") or {})
        self.readonly: ReadonlyConfig = ReadonlyConfig(data.get("readonly") or {}, config_dir)

    def __str__(self) -> str:
        return (
            f"ProvisionConfig:\n"
            f"  Release: {self.install.get_version()}\n"
            f"  Database: {self.install.get_database_name()}\n"
            f"  Work Dir: {self.install.get_work_dir()}\n"
            f"  Service Manager: {self.system.get_format()}\n"
            f"  PostgreSQL: {self.system.get_postgres_version()}"
        )


class PostgresConf:
    """
    `PostgresConf` provides an interface for parsing and editing a `postgresql.conf`
    file while keeping its comments and the order of its entries intact.

    Lines look like `key = value  # comment`; the `=` is optional. Commented-out
    settings stay comments.

    Attributes:
        filename (str): The path to the configuration file.
        changed (bool): Whether any value has been modified.
        entry_order (List[str]): Keys in the order they appear in the file.
        entries (Dict[str, str]): Configuration keys and their values.
        comments (Dict[str, str]): Comment/blank lines preceding each entry.
        inline_comments (Dict[str, str]): Trailing `# ...` text on each entry line.
        trailing_comments (str): Comment/blank lines after the last entry.
    """

    def __init__(self, filename: str):
        self.filename: str = filename
        self.changed: bool = False
        self.entry_order: List[str] = []
        self.entries: Dict[str, str] = {}
        self.comments: Dict[str, str] = {}
        self.inline_comments: Dict[str, str] = {}
        self.trailing_comments: str = ""
        self.parse()

    def parse(self):
        """
        Parses the configuration file and populates the configuration data.

        Example:
            A file containing
            ```
            # connections
            port = 5432   # default
            max_connections = 100
            ```

            is parsed as
            ```python
            >>> conf = PostgresConf("postgresql.conf")
            >>> conf.entries
            {'port': '5432', 'max_connections': '100'}
            >>> conf.inline_comments
            {'port': '   # default', 'max_connections': ''}
            ```
        """
        self.entry_order = []
        self.entries = {}
        self.comments = {}
        self.inline_comments = {}
        with open(self.filename, "r") as f:  # pylint: disable=C0103
            file_lines = f.read().split("\n")
        comments = ""
        for line in file_lines:
            stripped = line.strip()
            if len(stripped) == 0 or stripped[0] == "#":
                comments += line + "\n"
                continue
            setting, inline = self._split_inline_comment(stripped)
            if "=" in setting:
                key, value = setting.split("=", 1)
            else:
                key, _, value = setting.partition(" ")
            key = key.strip()
            if key not in self.entries:
                self.entry_order.append(key)
            self.entries[key] = value.strip()
            # A repeated key keeps the comments of every occurrence; the last value wins
            self.comments[key] = self.comments.get(key, "") + comments
            self.inline_comments[key] = inline
            comments = ""
        self.trailing_comments = comments[:-1]

    @staticmethod
    def _split_inline_comment(line: str) -> Tuple[str, str]:
        """Split `line` at the first `#` that is not inside single quotes."""
        in_quotes = False
        for index, char in enumerate(line):
            if char == "'":
                in_quotes = not in_quotes
            elif char == "#" and not in_quotes:
                setting = line[:index]
                return setting.rstrip(), line[len(setting.rstrip()) :]
        return line, ""

    def write(self):
        """Writes the entries, in their original order and with their comments, back to `filename`."""
        with open(self.filename, "w") as f:  # pylint: disable=C0103
            for entry in self.entry_order:
                f.write(self.comments[entry])
                f.write(f"{entry} = {self.entries[entry]}{self.inline_comments[entry]}\n")
            f.write(self.trailing_comments)

    def get_config_value(self, key: str) -> str:
        """Returns the value of `key`, or `None` if the file does not set it."""
        if key in self.entries:
            return self.entries[key]
        return None

    def set_config_value(self, key: str, value: str) -> bool:
        """
        Sets `key` to `value`. Keys the file does not set yet are appended at the end.

        Returns:
            True if the stored value changed, False if it already had that value.
        """
        value = str(value)
        if self.entries.get(key) == value:
            return False
        if key not in self.entries:
            self.entry_order.append(key)
            self.comments[key] = ""
            self.inline_comments[key] = ""
        self.entries[key] = value
        self.changed = True
        return True

    def changes_made(self) -> bool:
        """Returns whether any value has been modified since parsing."""
        return self.changed

    def get_port(self) -> str:
        """Returns the configured port."""
        return self.get_config_value("port")

    def set_port(self, port: int) -> bool:
        """
        Validates and sets the port.

        Returns:
            True if the port is valid and was changed, False otherwise.
        """
        if port is None:
            return False
        if not valid_port(port):
            LOG.error("Invalid port given.")
            return False
        if not self.set_config_value("port", port):
            return False
        LOG.info(f"Port in postgresql.conf set to {port}")
        return True


class ReadonlyUsers:
    """
    `ReadonlyUsers` provides an interface for the file listing the read-only database
    roles, and for applying them to a PostgreSQL database.

    Passwords are stored in PostgreSQL's md5 form (`"md5" + md5(password + role)`),
    which `CREATE ROLE ... PASSWORD` accepts as an already-hashed password.

    Attributes:
        filename (str): The path to the users file.
        users (Dict[str, User]): Roles keyed by name.
    """

    class User:
        """
        An embedded class that represents one read-only role.

        Attributes:
            status (str): "on" (can log in) or "off".
            hash_password (str): Password in PostgreSQL md5 form.
            schemas (List[str]): Schemas whose tables the role is granted access to.
            privileges (List[str]): Table privileges granted.
        """

        def __init__(  # pylint: disable=R0913
            self,
            name: str = None,
            status: str = "on",
            schemas: List[str] = None,
            privileges: List[str] = None,
            password: str = None,
        ):
            self.name: str = name
            self.status: str = status
            self.schemas: List[str] = schemas if schemas is not None else ["public"]
            self.privileges: List[str] = privileges if privileges is not None else list(READONLY_PRIVILEGES)
            self.hash_password: str = None
            if password is not None:
                self.set_password(password)

        def parse_dict(self, dictionary: Dict):
            """Updates the role from a dict as stored in the users file."""
            self.status = dictionary["status"]
            self.schemas = dictionary["schemas"]
            self.privileges = dictionary["privileges"]
            self.hash_password = dictionary["hash_password"]

        def get_user_dict(self) -> Dict:
            """Returns the role as stored in the users file."""
            return {
                "status": self.status,
                "hash_password": self.hash_password,
                "schemas": self.schemas,
                "privileges": self.privileges,
            }

        def __repr__(self) -> str:
            return str(self.get_user_dict())

        def __str__(self) -> str:
            return self.__repr__()

        def set_password(self, password: str):
            """
            Hashes `password` into PostgreSQL's md5 form.

            Example:
                ```python
                >>> user = ReadonlyUsers.User(name="mychembl")
                >>> user.set_password("read")
                >>> user.hash_password.startswith("md5")
                True
                ```
            """
            digest = hashlib.md5(bytes(password + self.name, "utf-8")).hexdigest()  # nosec B324
            self.hash_password = f"md5{digest}"

    def __init__(self, filename: str):
        self.filename: str = filename
        self.users: Dict[str, ReadonlyUsers.User] = {}
        if os.path.exists(self.filename):
            self.parse()

    def parse(self):
        """Parses the users file and populates the `users` dictionary."""
        with open(self.filename, "r") as f:  # pylint: disable=C0103
            data = yaml.load(f, yaml.Loader) or {}
        self.users = {}
        for name, user_data in data.items():
            new_user = self.User(name=name)
            new_user.parse_dict(user_data)
            self.users[name] = new_user

    def write(self):
        """Writes the current `users` dictionary back to the users file."""
        data = {name: user.get_user_dict() for name, user in self.users.items()}
        with open(self.filename, "w") as f:  # pylint: disable=C0103
            yaml.dump(data, f, yaml.Dumper)

    def add_user(self, user: str, password: str, schemas: List[str] = None, status: str = "on") -> bool:
        """
        Adds a new read-only role.

        Returns:
            True if the role was added, False if it already exists.
        """
        if user in self.users:
            return False
        self.users[user] = self.User(name=user, status=status, schemas=schemas, password=password)
        return True

    def set_password(self, user: str, password: str) -> bool:
        """
        Sets the password for an existing role.

        Returns:
            True if the password was updated, False if the role does not exist.
        """
        if user not in self.users:
            return False
        self.users[user].set_password(password)
        return True

    def remove_user(self, user: str) -> bool:
        """
        Removes a role from the file.

        Returns:
            True if the role was removed, False if it does not exist.
        """
        if user in self.users:
            del self.users[user]
            return True
        return False

    def apply_to_postgres(self, connection):
        """
        Creates every role in `self.users` that does not exist yet and grants it its
        privileges on all tables of its schemas. `CREATE` on those schemas is revoked from
        `PUBLIC`, which holds it by default before PostgreSQL 15, so the roles cannot
        add tables of their own.

        Args:
            connection: An open `psycopg2` connection to the ChEMBL database, as its owner.

        Raises:
            psycopg2.Error: If a role cannot be created or granted its privileges.
        """
        with connection.cursor() as cursor:
            cursor.execute("SELECT rolname FROM pg_roles")
            current_users = {row[0] for row in cursor.fetchall()}
            for name, data in self.users.items():
                if name not in current_users:
                    login = sql.SQL("LOGIN") if data.status == "on" else sql.SQL("NOLOGIN")
                    cursor.execute(
                        sql.SQL("CREATE USER {} WITH {} PASSWORD {}").format(
                            sql.Identifier(name), login, sql.Literal(data.hash_password)
                        )
                    )
                    LOG.info(f"Created read-only role {name}")
                for schema in data.schemas:
                    cursor.execute(
                        sql.SQL("GRANT USAGE ON SCHEMA {} TO {}").format(sql.Identifier(schema), sql.Identifier(name))
                    )
                    cursor.execute(sql.SQL("REVOKE CREATE ON SCHEMA {} FROM PUBLIC").format(sql.Identifier(schema)))
                    cursor.execute(
                        sql.SQL("GRANT {} ON ALL TABLES IN SCHEMA {} TO {}").format(
                            sql.SQL(", ").join(sql.SQL(privilege) for privilege in data.privileges),
                            sql.Identifier(schema),
                            sql.Identifier(name),
                        )
                    )
        connection.commit()


class AppYaml:
    """
    `AppYaml` provides a structured way to read and write the provisioning
    configuration file (`app.yaml`).

    Attributes:
        default_filename (str): The default path of the `app.yaml` file.
        data (Dict): The parsed configuration.
    """

    default_filename: str = os.path.join(CONFIG_DIR, "app.yaml")

    def __init__(self, filename: str = default_filename):
        """
        Initializes the `AppYaml` object and loads the configuration file.

        Args:
            filename: The path to the `app.yaml` file. If the file does not exist,
                the default file path (`default_filename`) is used.
        """
        self.data: Dict = {}
        if not os.path.exists(filename):
            filename = self.default_filename
        LOG.debug(f"Reading configuration from {filename}")
        self.read(filename)

    def update_data(self, new_data: Dict):
        """Merges `new_data` into the top level of the configuration."""
        self.data.update(new_data)

    def set_value(self, section: str, key: str, value):
        """Sets `key` inside `section`, creating the section if needed."""
        if not isinstance(self.data.get(section), dict):
            self.data[section] = {}
        self.data[section][key] = value

    def get_data(self) -> Dict:
        """Returns the current configuration data."""
        return self.data

    def read(self, filename: str = default_filename):
        """Reads `filename` into `data`; a missing file yields an empty configuration."""
        try:
            self.data = mychembl.utils.load_yaml(filename) or {}
        except FileNotFoundError:
            self.data = {}

    def write(self, filename: str = default_filename):
        """Writes `data` to `filename`."""
        with open(filename, "w") as f:  # pylint: disable=C0103
            yaml.dump(self.data, f, yaml.Dumper)
