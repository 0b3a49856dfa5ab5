# File: seagen/errors.py
"""Exception types raised by seagen."""

from __future__ import annotations

from typing import List


class SeagenError(Exception):
    """Base class for all seagen errors."""


class ConfigError(SeagenError):
    """The input file is missing, unparseable or fails validation."""


class TemplateNotFoundError(SeagenError):
    """Neither a custom nor a built-in template exists for a layer."""

    def __init__(self, template_name: str) -> None:
        super().__init__(f"Template not found: {template_name}")
        self.template_name: str = template_name


__all__: List[str] = ["SeagenError", "ConfigError", "TemplateNotFoundError"]
