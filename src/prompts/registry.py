"""
Prompt Template Registry

Judge prompts live outside the code as Jinja2 templates, keyed by name,
locale and version, so a scoring-policy change is a new template file
rather than a code change.

Layout:
    templates/
    └── judge/
        ├── ja/v1.j2    (default rubric)
        └── en/v1.j2

Usage:
    from src.prompts import PromptRegistry

    registry = PromptRegistry()
    template = registry.get("judge", locale="ja", version="v1")
    prompt = template.render(input_text="...", output_text="...", eval_aspect="...", pred="...")
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from jinja2 import Environment, FileSystemLoader, StrictUndefined, Template, TemplateNotFound

from utils.exceptions import TemplateNotFoundError

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"
TEMPLATE_SUFFIX = ".j2"

DEFAULT_LOCALE = "ja"
DEFAULT_VERSION = "v1"


@dataclass(frozen=True)
class PromptTemplate:
    """A loaded, versioned prompt template."""

    name: str
    locale: str
    version: str
    template: Template

    @property
    def key(self) -> str:
        return f"{self.name}/{self.locale}/{self.version}"

    def render(self, **values: Any) -> str:
        """Substitute values verbatim. Missing placeholders raise."""
        return self.template.render(**values)


class PromptRegistry:
    """Loads and caches prompt templates from a directory tree."""

    def __init__(self, templates_dir: Optional[Path] = None):
        self.templates_dir = Path(templates_dir or TEMPLATE_DIR)
        # Plain-text prompts: no HTML escaping, undefined placeholders are errors
        self._env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            autoescape=False,
            undefined=StrictUndefined,
        )
        self._cache: Dict[Tuple[str, str, str], PromptTemplate] = {}

    def get(
        self,
        name: str,
        locale: str = DEFAULT_LOCALE,
        version: str = DEFAULT_VERSION,
    ) -> PromptTemplate:
        """
        Load a template by key.

        Raises:
            TemplateNotFoundError: If no template exists for the key.
        """
        cache_key = (name, locale, version)
        if cache_key in self._cache:
            return self._cache[cache_key]

        path = f"{name}/{locale}/{version}{TEMPLATE_SUFFIX}"
        try:
            template = self._env.get_template(path)
        except TemplateNotFound as e:
            available = ", ".join(self.available(name)) or "none"
            raise TemplateNotFoundError(
                f"No prompt template '{name}/{locale}/{version}' "
                f"in {self.templates_dir} (available: {available})"
            ) from e

        prompt = PromptTemplate(name=name, locale=locale, version=version, template=template)
        self._cache[cache_key] = prompt
        logger.debug(f"Loaded prompt template {prompt.key}")
        return prompt

    def available(self, name: Optional[str] = None) -> List[str]:
        """List template keys (name/locale/version), optionally for one name."""
        if not self.templates_dir.exists():
            return []

        keys = []
        for path in self.templates_dir.rglob(f"*{TEMPLATE_SUFFIX}"):
            rel = path.relative_to(self.templates_dir).with_suffix("")
            if len(rel.parts) != 3:
                continue
            if name is None or rel.parts[0] == name:
                keys.append("/".join(rel.parts))
        return sorted(keys)
