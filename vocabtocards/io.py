"""
Utils for io
"""
import os
from typing import Optional

import yaml


# =========
# Constants
# =========
_CONF_DIRNAME = "conf"
_DATA_DIRNAME = "data"


# ==========
# Exceptions
# ==========
class NoConfFileError(Exception):
    """Raise when a configuration file cannot be found"""

    pass


# ====
# Core
# ====
def get_lib_path():
    """Path to current library"""
    return os.path.join(
        os.path.dirname(os.path.abspath(__file__)),
        "..",
    )


def get_data_path():
    """Path to data folder"""
    return os.path.join(
        get_lib_path(),
        _DATA_DIRNAME,
    )


def get_conf_path():
    """Path to conf folder"""
    return os.path.join(
        get_lib_path(),
        _CONF_DIRNAME,
    )


def get_conf(filename: str, conf_dirpath: Optional[str] = None) -> dict:
    """Load a yaml file from the conf folder

    Args:
        filename (str): name of the file, e.g. "importer.yaml"
        conf_dirpath (Optional[str]): folder to look into. Defaults to the
            repository's conf folder.

    Returns:
        dict: the parsed configuration. Empty dict for an empty file.
    """
    if conf_dirpath is None:
        conf_dirpath = get_conf_path()
    filepath = os.path.join(conf_dirpath, filename)
    if not os.path.isfile(filepath):
        raise NoConfFileError(f"No file at {filepath}")
    with open(filepath, "r", encoding="utf-8") as f:
        conf = yaml.safe_load(f)
    if conf is None:
        conf = dict()
    return conf
