# File: seagen/templates.py
"""
Seagen - Template Engine
=========================
Thin Jinja2 adapter: ``render(template_text, context) -> str``.

Template lookup for a layer named ``entity``:
    1. ``<project>/<custom_template_path>/entity.rs.j2`` (when enabled)
    2. Built-in ``seagen/codegen_templates/entity.rs.j2``
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from jinja2 import (
    BaseLoader,
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateNotFound,
    select_autoescape,
)

from seagen.errors import TemplateNotFoundError
from seagen.utils import to_camel_case, to_kebab_case, to_pascal_case, to_snake_case, write_file

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("seagen.templates")

BUILTIN_TEMPLATE_DIR: Path = Path(__file__).parent / "codegen_templates"
TEMPLATE_SUFFIX: str = ".rs.j2"


def template_file_name(layer_id: str) -> str:
    return f"{layer_id}{TEMPLATE_SUFFIX}"


class TemplateEngine:
    """
    Renders layer templates. One instance per generation run.

    ``custom_dir`` is consulted first when given; built-in templates fill in
    whatever it does not provide.
    """

    def __init__(self, custom_dir: Optional[Path] = None) -> None:
        loaders: List[BaseLoader] = []
        if custom_dir is not None:
            if custom_dir.is_dir():
                logger.info("Custom templates enabled: %s", custom_dir)
                loaders.append(FileSystemLoader(str(custom_dir)))
            else:
                logger.warning("Custom template directory not found: %s", custom_dir)
        loaders.append(FileSystemLoader(str(BUILTIN_TEMPLATE_DIR)))

        self.custom_dir: Optional[Path] = custom_dir
        self.env: Environment = Environment(
            loader=ChoiceLoader(loaders),
            autoescape=select_autoescape([]),
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
        )
        self.env.filters["pascal_case"] = to_pascal_case
        self.env.filters["snake_case"] = to_snake_case
        self.env.filters["camel_case"] = to_camel_case
        self.env.filters["kebab_case"] = to_kebab_case

    def load_template(self, layer_id: str) -> str:
        """Source text of the effective template for *layer_id*."""
        name: str = template_file_name(layer_id)
        try:
            source, filename, _ = self.env.loader.get_source(self.env, name)  # type: ignore[union-attr]
        except TemplateNotFound as exc:
            raise TemplateNotFoundError(name) from exc
        logger.debug("Loaded template %s from %s", name, filename)
        return source

    def render(self, template_text: str, context: Mapping[str, Any]) -> str:
        """Render template text with *context*. Pure: no I/O, no shared state."""
        return self.env.from_string(template_text).render(**dict(context))

    def render_layer(self, layer_id: str, context: Mapping[str, Any]) -> str:
        try:
            template = self.env.get_template(template_file_name(layer_id))
        except TemplateNotFound as exc:
            raise TemplateNotFoundError(template_file_name(layer_id)) from exc
        return template.render(**dict(context))


def builtin_templates() -> Dict[str, str]:
    """Built-in template sources keyed by file name (for ``--init-templates``)."""
    return {
        p.name: p.read_text(encoding="utf-8")
        for p in sorted(BUILTIN_TEMPLATE_DIR.glob(f"*{TEMPLATE_SUFFIX}"))
    }


def init_templates(target_dir: Path) -> List[str]:
    """
    Copy built-in templates into *target_dir* for editing. Existing files are
    never overwritten. Returns the names written.
    """
    written: List[str] = []
    for name, source in builtin_templates().items():
        target: Path = target_dir / name
        if target.exists():
            logger.info("Template %s already exists; left as is", target)
            continue
        write_file(target, source)
        written.append(name)
    return written


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "BUILTIN_TEMPLATE_DIR",
    "TEMPLATE_SUFFIX",
    "template_file_name",
    "TemplateEngine",
    "builtin_templates",
    "init_templates",
]

logger.debug("seagen.templates loaded — %d public symbols.", len(__all__))
