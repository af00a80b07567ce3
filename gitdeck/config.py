"""Configuration: argument parser and config file loader.

Layout of the config directory:

    config.toml             workspace, data_dir
    remotes/<name>.toml     one file per remote, named after the remote
"""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import Any

try:
    import tomllib
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from gitdeck.errors import ConfigError
from gitdeck.models import AppConfig, OwnerConfig, RemoteAPIConfig, RemoteConfig, RemoteType

logger = logging.getLogger(__name__)

CONFIG_ENV = "GITDECK_CONFIG"
CONFIG_FILE = "config.toml"
REMOTES_DIR = "remotes"


def create_argument_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser with all gitdeck commands."""
    # Lazy import to avoid circular dependency with __init__.py
    from gitdeck import __version__

    parser = argparse.ArgumentParser(
        prog="gitdeck",
        description="Navigate, create and sync git repositories in a workspace",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  cd $(%(prog)s home)                          # Most used repository
  cd $(%(prog)s home github acme/widget)       # Clone if missing
  cd $(%(prog)s home https://github.com/acme/widget/tree/main)
  %(prog)s sync                                # Current repository
  %(prog)s sync -r github                      # Every synced repo of a remote
        """
    )

    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--verbose', action='store_true',
                        help='Verbose output')
    parser.add_argument('--config', type=str, default=None,
                        help=f'Config directory (default: ${CONFIG_ENV} or ~/.config/gitdeck)')

    commands = parser.add_subparsers(dest='command', metavar='COMMAND')
    commands.required = True

    home = commands.add_parser('home', help='Print a repository path, creating the repository if needed')
    home.add_argument('head', nargs='?', default='', help='Remote, keyword, URL or SSH endpoint')
    home.add_argument('query', nargs='?', default='', help='owner/name, owner/ or keyword')
    home.add_argument('-s', '--search', action='store_true',
                      help='Select interactively rather than fuzzy match')
    home.add_argument('-t', '--thin', action='store_true',
                      help='Clone with a depth of 1')
    home.add_argument('-f', '--force-no-cache', action='store_true',
                      help='Ignore cached remote API answers')
    home.add_argument('--remote-list', action='store_true',
                      help='List owner repositories from the remote API')
    home.add_argument('--exclude-local', action='store_true',
                      help='With --remote-list, hide repositories already indexed')

    sync = commands.add_parser('sync', help='Sync the current repository, or many repositories')
    sync.add_argument('head', nargs='?', default='', help='Remote or keyword')
    sync.add_argument('query', nargs='?', default='', help='owner/, owner/name or keyword')
    sync.add_argument('-r', '--recursive', action='store_true',
                      help='Sync many repositories even inside one')
    sync.add_argument('-f', '--force', action='store_true',
                      help='Ignore the sync flag of repositories')
    sync.add_argument('-y', '--yes', action='store_true',
                      help='Do not ask for confirmation')

    attach = commands.add_parser('attach', help='Attach the current directory to a repository')
    attach.add_argument('head', help='Remote')
    attach.add_argument('query', help='owner/name')

    commands.add_parser('detach', help='Detach the current directory from its repository')

    remove = commands.add_parser('remove', help='Remove a repository and its directory')
    remove.add_argument('head', help='Remote, keyword, URL or SSH endpoint')
    remove.add_argument('query', nargs='?', default='', help='owner/name or keyword')

    for name, what in (('branches', 'local branches'), ('tags', 'tags')):
        listing = commands.add_parser(name, help=f'List {what} of the current repository')
        listing.add_argument('--json', dest='json_output', action='store_true',
                             help='Output as JSON')

    return parser


def config_dir_path(config_dir: str | Path | None = None) -> Path:
    if config_dir:
        return Path(config_dir).expanduser()
    env = os.environ.get(CONFIG_ENV)
    if env:
        return Path(env).expanduser()
    return Path.home() / ".config" / "gitdeck"


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with open(path, 'rb') as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"failed to parse {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"failed to read {path}: {e}") from e


def _table(data: dict[str, Any], key: str, where: str) -> dict[str, Any] | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ConfigError(f"{where}: {key!r} must be a table")
    return value


def _typed(data: dict[str, Any], key: str, kind: type | tuple[type, ...], default: Any, where: str) -> Any:
    value = data.get(key, default)
    if value is None:
        return None
    # bool is an int subclass
    if not isinstance(value, kind) or (isinstance(value, bool) and kind is not bool):
        raise ConfigError(f"{where}: {key!r} has invalid value {value!r}")
    return value


def parse_owner_config(data: dict[str, Any] | None, where: str) -> OwnerConfig:
    if not data:
        return OwnerConfig()
    return OwnerConfig(
        sync=_typed(data, 'sync', bool, None, where),
        pin=_typed(data, 'pin', bool, None, where),
        ssh=_typed(data, 'ssh', bool, None, where),
        user=_typed(data, 'user', str, "", where),
        email=_typed(data, 'email', str, "", where),
    )


def parse_api_config(data: dict[str, Any], where: str) -> RemoteAPIConfig:
    raw_type = data.get('type', "")
    try:
        api_type = RemoteType(raw_type)
    except ValueError:
        raise ConfigError(f"{where}: unknown api type {raw_type!r}") from None

    list_limit = _typed(data, 'list_limit', int, 100, where)
    cache_hours = _typed(data, 'cache_hours', int, 24, where)
    if cache_hours < 0:
        raise ConfigError(f"{where}: 'cache_hours' cannot be negative")
    return RemoteAPIConfig(
        type=api_type,
        token=os.path.expandvars(_typed(data, 'token', str, "", where)),
        timeout=float(_typed(data, 'timeout', (int, float), 5.0, where)),
        cache_hours=cache_hours,
        list_limit=list_limit if list_limit > 0 else 100,
        host=_typed(data, 'host', str, "", where),
        url=_typed(data, 'url', str, "", where),
    )


def parse_remote_config(name: str, data: dict[str, Any], where: str = "") -> RemoteConfig:
    """Build a RemoteConfig from one parsed remote file."""
    where = where or name
    api = _table(data, 'api', where)
    owners = _table(data, 'owners', where) or {}
    return RemoteConfig(
        name=name,
        clone=_typed(data, 'clone', str, "", where),
        icon=_typed(data, 'icon', str, "", where),
        api=parse_api_config(api, f"{where} [api]") if api is not None else None,
        default=parse_owner_config(_table(data, 'default', where), f"{where} [default]"),
        owners={
            owner: parse_owner_config(_table(owners, owner, where), f"{where} [owners.{owner}]")
            for owner in owners
        },
    )


def load_config(config_dir: str | Path | None = None) -> AppConfig:
    """Load config.toml and remotes/*.toml. Missing files yield defaults."""
    root = config_dir_path(config_dir)
    config = AppConfig()

    main_file = root / CONFIG_FILE
    updates: dict[str, Any] = {}
    if main_file.is_file():
        data = _read_toml(main_file)
        workspace = _typed(data, 'workspace', str, None, str(main_file))
        data_dir = _typed(data, 'data_dir', str, None, str(main_file))
        if workspace:
            updates['workspace'] = Path(workspace).expanduser()
        if data_dir:
            updates['data_dir'] = Path(data_dir).expanduser()
    else:
        logger.debug("No config file at %s, using defaults", main_file)

    remotes = []
    remotes_dir = root / REMOTES_DIR
    if remotes_dir.is_dir():
        for path in sorted(remotes_dir.glob("*.toml")):
            remotes.append(parse_remote_config(path.stem, _read_toml(path), str(path)))
    updates['remotes'] = remotes

    return config.with_updates(**updates)
