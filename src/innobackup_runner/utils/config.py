"""
config handling for dynaconf
"""
import configparser
import os
import sys
from dataclasses import dataclass
from importlib.resources import files
from pathlib import Path
from typing import Optional

from dynaconf import Dynaconf, Validator
from loguru import logger

from .converters import parse_memory
from .datatypes import RetentionPolicy
from .errors import ConfigurationError


@dataclass(frozen=True)
class ConnectionSettings:
    """
    Credentials and connection options shared by the engine and the probes.
    """
    user: Optional[str] = None
    password: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
    socket: Optional[str] = None


@dataclass(frozen=True)
class EngineSettings:
    binary: Path = Path('/usr/bin/innobackupex')
    defaults_file: Path = Path('/etc/mysql/my.cnf')
    defaults_group: Optional[str] = None
    use_memory: str = '1024M'
    mysql: Path = Path('/usr/bin/mysql')
    mysqladmin: Path = Path('/usr/bin/mysqladmin')
    check_service: bool = True


@dataclass(frozen=True)
class RunConfig:
    """
    Everything one invocation needs. Built once, never mutated.
    """
    backup_dir: Path
    policy: RetentionPolicy
    engine: EngineSettings
    connection: ConnectionSettings


def parse_config(config_folder: Path) -> Dynaconf:
    """
    Parse config with dynaconf. Creates the default config on first use.
    :param config_folder: folder holding default.toml and config.toml
    :return: Dynaconf settings
    """
    default_config = config_folder / 'default.toml'
    if not os.path.isfile(default_config):
        try:
            config_folder.mkdir(parents=True, exist_ok=True)
            with open(default_config, 'w', encoding='utf-8') as f:
                f.write(files('innobackup_runner.data').joinpath('default.toml').read_text())
        except Exception as e:
            logger.critical(f'Failed to create default config {default_config}. '
                            'Consider creating the folder writeable for this user '
                            f'or choose a different path. Error: {e}')
            sys.exit(1)

    settings = Dynaconf(
        envvar_prefix='INNOBACKUP',
        settings_files=['default.toml', 'config.toml'],
        root_path=str(config_folder),
        merge_enabled=True,
        validators=[
            Validator('backup.full_lifetime', cast=int, default=604800),
            Validator('backup.keep', cast=int, default=1),
            Validator('engine.use_memory', default='1024M'),
            Validator('engine.check_service', cast=bool, default=True),
        ]
    )
    return settings


def read_auth_file(auth_file: Path) -> ConnectionSettings:
    """
    Read user and password from the [client] section of a MySQL option file.
    e.g. /etc/mysql/debian.cnf
    :param auth_file: path of the option file
    :return: connection settings with user/password set
    """
    parser = configparser.ConfigParser(allow_no_value=True, strict=False,
                                       interpolation=None)
    try:
        with open(auth_file, encoding='utf-8') as f:
            parser.read_file(f)
    except (OSError, configparser.Error) as e:
        raise ConfigurationError(f'Cannot read auth file {auth_file}: {e}') from e
    if not parser.has_option('client', 'user'):
        raise ConfigurationError(f'No [client] user in auth file {auth_file}')
    return ConnectionSettings(
        user=parser.get('client', 'user'),
        password=parser.get('client', 'password', fallback=None),
    )


def _optional(settings: Dynaconf, key: str, cast=None):
    value = settings.get(key, default=None)
    if value is None or value == '':
        return None
    try:
        return cast(value) if cast else value
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f'Invalid value for {key}: {value!r}') from e


def load_config(settings: Dynaconf) -> RunConfig:
    """
    Validate the settings and freeze them into a RunConfig.
    :param settings: parsed dynaconf settings
    :return: immutable run config
    """
    backup_dir = _optional(settings, 'backup.dir', Path)
    if not backup_dir:
        raise ConfigurationError('backup.dir is required.')

    full_lifetime = _optional(settings, 'backup.full_lifetime', int)
    keep = _optional(settings, 'backup.keep', int)
    if full_lifetime is None or full_lifetime <= 0:
        raise ConfigurationError(
            f'backup.full_lifetime must be a positive number of seconds, got {full_lifetime}')
    if keep is None or keep < 0:
        raise ConfigurationError(f'backup.keep must be >= 0, got {keep}')

    try:
        use_memory = parse_memory(settings.get('engine.use_memory', default='1024M'))
    except ValueError as e:
        raise ConfigurationError(str(e)) from e

    engine = EngineSettings(
        binary=_optional(settings, 'engine.binary', Path) or EngineSettings.binary,
        defaults_file=(_optional(settings, 'engine.defaults_file', Path)
                       or EngineSettings.defaults_file),
        defaults_group=_optional(settings, 'engine.defaults_group', str),
        use_memory=use_memory,
        mysql=_optional(settings, 'engine.mysql', Path) or EngineSettings.mysql,
        mysqladmin=_optional(settings, 'engine.mysqladmin', Path) or EngineSettings.mysqladmin,
        check_service=bool(settings.get('engine.check_service', default=True)),
    )

    auth_file = _optional(settings, 'mysql.auth_file', Path)
    if auth_file:
        credentials = read_auth_file(auth_file)
    else:
        user = _optional(settings, 'mysql.user', str)
        if not user:
            raise ConfigurationError('mysql.user is required when mysql.auth_file is not set.')
        credentials = ConnectionSettings(user=user,
                                         password=_optional(settings, 'mysql.password', str))
    connection = ConnectionSettings(
        user=credentials.user,
        password=credentials.password,
        host=_optional(settings, 'mysql.host', str),
        port=_optional(settings, 'mysql.port', int),
        socket=_optional(settings, 'mysql.socket', str),
    )
    return RunConfig(
        backup_dir=backup_dir,
        policy=RetentionPolicy(full_lifetime=full_lifetime, keep=keep),
        engine=engine,
        connection=connection,
    )
