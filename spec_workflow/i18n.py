"""User-facing message lookup.

Catalogs live in ``locales/<lang>.yaml`` as nested mappings and are loaded once
per process. Keys are dotted paths (``tasks.list.success``); ``{{name}}``
placeholders are filled from keyword arguments.
"""
from __future__ import annotations

import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Optional

import yaml

from spec_workflow import config

logger = logging.getLogger("spec_workflow.i18n")

_LOCALES_DIR = Path(__file__).parent / "locales"
_FALLBACK_LANG = "en"
_LANG_PATTERN = re.compile(r"^[a-z]{2}(?:-[A-Za-z]{2,4})?$")
_PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*(\w+)\s*\}\}")

Formatter = Callable[..., str]


@lru_cache(maxsize=None)
def load_catalog(lang: str) -> dict[str, Any]:
    if not _LANG_PATTERN.match(lang or ""):
        return {}
    path = _LOCALES_DIR / f"{lang}.yaml"
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    try:
        data = yaml.safe_load(raw) or {}
    except yaml.YAMLError as exc:
        logger.error(f"Invalid message catalog {path}: {exc}")
        return {}
    return data if isinstance(data, dict) else {}


def available_languages() -> list[str]:
    return sorted(path.stem for path in _LOCALES_DIR.glob("*.yaml"))


def _navigate(catalog: dict[str, Any], key: str) -> Optional[str]:
    node: Any = catalog
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node if isinstance(node, str) else None


def _interpolate(template: str, params: dict[str, Any]) -> str:
    if not params:
        return template

    def _replace(match: re.Match) -> str:
        name = match.group(1)
        if name not in params:
            return match.group(0)
        return str(params[name])

    return _PLACEHOLDER_PATTERN.sub(_replace, template)


def translate(key: str, lang: Optional[str] = None, **params: Any) -> str:
    """Look up ``key`` for ``lang``, falling back to English, then to the key itself."""
    lang = lang or config.DEFAULT_LANG
    template = _navigate(load_catalog(lang), key)
    if template is None and lang != _FALLBACK_LANG:
        template = _navigate(load_catalog(_FALLBACK_LANG), key)
    if template is None:
        logger.debug(f"Missing message key {key!r} for {lang}")
        return key
    return _interpolate(template, params)
