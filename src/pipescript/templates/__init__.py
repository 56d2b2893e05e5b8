"""Pipeline templates and project layouts kept in the pipescript home."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import List

from pipescript.errors import TemplateError

LOGGER = logging.getLogger(__name__)

TEMPLATE_SUFFIX = ".kts"
LAYOUT_SCRIPT = "layout.kts"


class TemplateStore:
    """Saved ``pipeline.kts`` files under ``<home>/<name>.kts``."""

    def __init__(self, home: str | Path) -> None:
        self.home = Path(home).expanduser()

    def path_for(self, name: str) -> Path:
        cleaned = name.strip()
        if not cleaned or Path(cleaned).name != cleaned:
            raise TemplateError(f"invalid template name \"{name}\"")
        return self.home / f"{cleaned}{TEMPLATE_SUFFIX}"

    def list(self) -> List[str]:
        if not self.home.is_dir():
            return []
        return sorted(
            entry.stem
            for entry in self.home.iterdir()
            if entry.is_file() and entry.suffix == TEMPLATE_SUFFIX
        )

    def init(self, template: str, destination: str | Path) -> Path:
        """Copy a template to ``destination`` (usually ``./pipeline.kts``)."""

        source = self.path_for(template)
        if not source.is_file():
            raise TemplateError(f"template \"{template}\" not found in {self.home}")
        target = Path(destination)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, target)
        LOGGER.info("Initialized %s from template %s", target, template)
        return target

    def add(self, name: str, source: str | Path) -> Path:
        """Save ``source`` as template ``name``, replacing an existing one."""

        script = Path(source)
        if not script.is_file():
            raise TemplateError(f"{script} not found")
        target = self.path_for(name)
        self.home.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(script, target)
        LOGGER.info("Saved %s as template %s", script, name)
        return target

    def remove(self, name: str) -> None:
        target = self.path_for(name)
        try:
            target.unlink()
        except FileNotFoundError as exc:
            raise TemplateError(f"template \"{name}\" not found in {self.home}") from exc
        LOGGER.info("Removed template %s", name)

    def layout_script(self, name: str) -> Path:
        script = self.home / "layout" / name / LAYOUT_SCRIPT
        if not script.is_file():
            raise TemplateError(f"layout \"{name}\" not found, expected {script}")
        return script


__all__ = ["LAYOUT_SCRIPT", "TEMPLATE_SUFFIX", "TemplateStore"]
