"""Manifest template loading and rendering."""

from .engine import (
    Completion,
    ManifestEngine,
    ManifestTemplate,
    RenderError,
    RenderErrorKind,
    available_templates,
    builtin_template,
    find_template,
    load_template,
    render,
    supported_shells,
)

__all__ = [
    "Completion",
    "ManifestEngine",
    "ManifestTemplate",
    "RenderError",
    "RenderErrorKind",
    "available_templates",
    "builtin_template",
    "find_template",
    "load_template",
    "render",
    "supported_shells",
]
