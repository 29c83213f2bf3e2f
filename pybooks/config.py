from pathlib import Path

import yaml

from . import paths

CONFIG_FILE = Path("config.yml")

DEFAULTS = {
    "title": "",
    "homepage_contents": "index",
    "contents": [],
    "output_filename": "book",
    "extra_args": ["--number-sections", "--top-level-division=chapter"],
}


class ConfigNotFoundError(FileNotFoundError):
    """Raised when the current directory holds no pyBooks project."""


def load_config():
    if not CONFIG_FILE.exists():
        raise ConfigNotFoundError(
            f"Couldn't find `{CONFIG_FILE}`. Is there a valid project in"
            f" {Path.cwd()}?"
        )
    cfg = yaml.safe_load(CONFIG_FILE.read_text(encoding="utf-8"))
    if cfg is None:
        cfg = {}
    return cfg


def config(project="default", key=None):
    """Return the settings for ``project``, or only the one named ``key``.

    The ``default`` project falls back to the top-level settings, so a
    ``config.yml`` without a ``projects`` section describes one project.
    """
    cfg = load_config()
    projects = cfg.get("projects", {})
    if project in projects:
        settings = projects[project] or {}
    elif project == "default":
        settings = {k: v for k, v in cfg.items() if k != "projects"}
    else:
        raise KeyError(f"Project '{project}' is not defined in {CONFIG_FILE}")
    merged = {**DEFAULTS, **settings}
    if key is None:
        return merged
    return merged[key]


def inputs(project="default"):
    """Return the Markdown files of ``project``, homepage first."""
    settings = config(project)
    names = [settings["homepage_contents"]] + list(settings["contents"])
    return [paths.CONTENTS_DIR / f"{name}.md" for name in names]
