"""Configuration management for parceltiler.

Settings are loaded with Dynaconf from several locations in order of
increasing priority:

1. Global settings (/etc/parceltiler/)
2. User settings (~/.config/parceltiler/)
3. Current directory settings (./)
4. Environment variable specified file (PARCELTILER_SETTINGS_FILE_FOR_DYNACONF)

Individual keys can be overridden with ``PARCELTILER_<KEY>`` environment
variables, e.g. ``PARCELTILER_GRID_SIZE=0.05``.

Attributes
----------
USER_DIR : pathlib.Path
    Path to user configuration directory.
GLOB_DIR : pathlib.Path
    Path to global configuration directory.
CURR_DIR : pathlib.Path
    Path to current working directory.
DEFAULTS : dict
    Values used when no settings file provides a key.
settings : Dynaconf
    The Dynaconf settings object with loaded configuration.
"""
import os
import pathlib

from dynaconf import Dynaconf

USER_DIR = pathlib.Path("~/.config/parceltiler").expanduser()
GLOB_DIR = pathlib.Path("/etc/parceltiler/")
CURR_DIR = pathlib.Path("./").absolute()
settings_files = [
    GLOB_DIR / "settings.toml",
    GLOB_DIR / ".secrets.toml",
    USER_DIR / "settings.toml",
    USER_DIR / ".secrets.toml",
    CURR_DIR / "settings.toml",
    CURR_DIR / ".secrets.toml"
    ]
extra_file = os.getenv("PARCELTILER_SETTINGS_FILE_FOR_DYNACONF")
if extra_file:
    settings_files.append(pathlib.Path(extra_file).absolute())

DEFAULTS = {
    "output_dir": "../public/parcels",
    "grid_size": 0.01,
    "properties": ["APN", "StreetNumb", "StreetName", "StreetType",
                   "StreetDir", "City", "ZipCode"],
    "index_name": "parcel-index.json",
    "grid_cell_warning": 1_000_000,
}

settings = Dynaconf(
    merge_enabled=True,
    envvar_prefix="PARCELTILER",
    settings_files=settings_files,
    environments=True,
    load_dotenv=True,
)


def get(key):
    """Return a setting, falling back to the built-in default.

    Parameters
    ----------
    key : str
        Lower-case setting name, e.g. ``"grid_size"``.
    """
    return settings.get(key, DEFAULTS.get(key))


def change_env(new_env):
    """Change the active Dynaconf environment.

    Parameters
    ----------
    new_env : str
        The environment name to switch to (e.g., 'development', 'production').
    """
    settings.setenv(new_env)
    settings.reload()
