"""Config file and project path helpers."""

from pathlib import Path

import yaml


def load_config(config_path: str | Path = "config.yaml") -> dict:
    """Read the run settings YAML.

    The file has three sections: ``data`` (record source, table, output
    directory), ``filters`` (express flag and route) and ``evaluation``
    (read by :meth:`buspred.config.EvaluationConfig.from_dict`).

    Args:
        config_path: Path to the YAML file

    Returns:
        Configuration dictionary (empty for an empty file)
    """
    with open(config_path) as f:
        config = yaml.safe_load(f)
    return config or {}


def get_project_root() -> Path:
    """Directory holding config.yaml (three levels above this file)."""
    return Path(__file__).resolve().parents[3]
