"""Static prompt fragments (markdown) read from disk once and reused across runs."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

from app.core.logging import get_logger


logger = get_logger(__name__)

DEFAULT_TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


class TemplateNotFound(LookupError):
    pass


class TemplateProvider:
    """Read-only template source with load-on-first-use caching.

    One provider is created alongside the application and handed to each
    pipeline, so the cache lives as long as the app and no longer.
    """

    def __init__(self, root: Optional[Union[str, Path]] = None):
        self.root = Path(root) if root else DEFAULT_TEMPLATES_DIR
        self._cache: dict[str, str] = {}

    def get(self, name: str) -> str:
        if name not in self._cache:
            path = self.root / f"{name}.md"
            if not path.is_file():
                raise TemplateNotFound(f"template '{name}' not found in {self.root}")
            self._cache[name] = path.read_text(encoding="utf-8").strip()
            logger.debug(f"Loaded template {name} ({len(self._cache[name])} chars)")
        return self._cache[name]

    def section_before(self, name: str, heading: str) -> str:
        """The part of a template that precedes ``heading`` (whole text if absent)."""
        return self.get(name).split(heading, 1)[0].strip()
