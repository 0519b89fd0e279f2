"""Tool catalog for display labels and interrupt presets.

Provides:
1. Tool metadata (group label, running/complete header labels) per tool kind
2. Interrupt question and options per tool kind
3. Fallbacks used when a tool kind has no interrupt preset

Usage:
    from scenario_studio.config.tool_catalog import get_tool_catalog

    catalog = get_tool_catalog()
    catalog.get_label("web_search")          # "웹 검색"
    catalog.get_interrupt_question("ppt_setup")
    catalog.get_interrupt_options("ppt_setup")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from scenario_studio.runtime.types import InterruptOption, interrupt_option_from_dict

logger = logging.getLogger(__name__)

_CONFIG_PATH = Path(__file__).parent / "tool_catalog.yaml"

# Cache for the default catalog
_catalog_cache: Optional["ToolCatalog"] = None

# Fallback question when neither the step nor the catalog supplies one
FALLBACK_INTERRUPT_QUESTION = "옵션을 선택해 주세요."

# Fallback options (data source selection) when nothing else applies
FALLBACK_INTERRUPT_OPTIONS: Tuple[InterruptOption, ...] = (
    InterruptOption(id="erp", label="사내 ERP 시스템", icon="🔌", recommended=True),
    InterruptOption(id="upload", label="수동 데이터 업로드", icon="📤"),
    InterruptOption(id="sample", label="샘플 데이터 사용", icon="📋"),
)

# Label used for a render group none of whose steps map to a known tool
FALLBACK_GROUP_LABEL = "작업"


@dataclass(frozen=True)
class ToolMetadata:
    """Display metadata for one tool kind."""

    kind: str
    label: str
    label_running: str = ""
    label_complete: str = ""


class ToolCatalog:
    """Lookup table of tool metadata and interrupt presets.

    Build one from a parsed mapping with ``ToolCatalog.from_dict`` or use
    ``get_tool_catalog()`` for the bundled catalog.
    """

    def __init__(
        self,
        tools: Optional[Dict[str, ToolMetadata]] = None,
        interrupt_questions: Optional[Dict[str, str]] = None,
        interrupt_options: Optional[Dict[str, Tuple[InterruptOption, ...]]] = None,
        default_question: str = FALLBACK_INTERRUPT_QUESTION,
        default_options: Tuple[InterruptOption, ...] = FALLBACK_INTERRUPT_OPTIONS,
    ):
        self._tools: Dict[str, ToolMetadata] = dict(tools or {})
        self._questions: Dict[str, str] = dict(interrupt_questions or {})
        self._options: Dict[str, Tuple[InterruptOption, ...]] = dict(interrupt_options or {})
        self.default_question = default_question
        self.default_options = default_options

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolCatalog":
        """Build a catalog from the tool_catalog.yaml structure."""
        tools: Dict[str, ToolMetadata] = {}
        for kind, meta in (data.get("tools") or {}).items():
            meta = meta or {}
            tools[kind] = ToolMetadata(
                kind=kind,
                label=meta.get("label", kind),
                label_running=meta.get("label_running", ""),
                label_complete=meta.get("label_complete", ""),
            )

        questions: Dict[str, str] = {}
        options: Dict[str, Tuple[InterruptOption, ...]] = {}
        for kind, preset in (data.get("interrupts") or {}).items():
            preset = preset or {}
            if preset.get("question"):
                questions[kind] = preset["question"]
            if preset.get("options"):
                options[kind] = tuple(interrupt_option_from_dict(o) for o in preset["options"])

        default = data.get("default_interrupt") or {}
        default_options = tuple(
            interrupt_option_from_dict(o) for o in default.get("options") or ()
        ) or FALLBACK_INTERRUPT_OPTIONS

        return cls(
            tools=tools,
            interrupt_questions=questions,
            interrupt_options=options,
            default_question=default.get("question") or FALLBACK_INTERRUPT_QUESTION,
            default_options=default_options,
        )

    def has_tool(self, kind: Optional[str]) -> bool:
        """Check whether a tool kind is known to the catalog."""
        return kind is not None and kind in self._tools

    def get_metadata(self, kind: Optional[str]) -> Optional[ToolMetadata]:
        """Get metadata for a tool kind, or None when unknown."""
        if kind is None:
            return None
        return self._tools.get(kind)

    def get_label(self, kind: Optional[str]) -> Optional[str]:
        """Get the short display label for a tool kind, or None when unknown."""
        meta = self.get_metadata(kind)
        return meta.label if meta else None

    def get_interrupt_question(self, kind: Optional[str]) -> str:
        """Get the interrupt question for a tool kind, falling back to the default."""
        if kind is not None and kind in self._questions:
            return self._questions[kind]
        return self.default_question

    def get_interrupt_options(self, kind: Optional[str]) -> Tuple[InterruptOption, ...]:
        """Get the interrupt options for a tool kind, falling back to the defaults."""
        if kind is not None and kind in self._options:
            return self._options[kind]
        return self.default_options

    def tool_kinds(self) -> Tuple[str, ...]:
        """Return every known tool kind in catalog order."""
        return tuple(self._tools.keys())


def _load_catalog_data(config_path: Path) -> Dict[str, Any]:
    """Load the raw catalog mapping from YAML."""
    with config_path.open(encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def get_tool_catalog() -> ToolCatalog:
    """Get the bundled tool catalog, loading and caching it on first use.

    Returns:
        The bundled ToolCatalog. If the YAML file is missing or unreadable,
        an empty catalog with the in-code fallbacks is returned and the
        failure is logged.
    """
    global _catalog_cache
    if _catalog_cache is not None:
        return _catalog_cache

    try:
        _catalog_cache = ToolCatalog.from_dict(_load_catalog_data(_CONFIG_PATH))
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Failed to load tool catalog %s: %s. Using fallbacks.", _CONFIG_PATH, e)
        _catalog_cache = ToolCatalog()

    return _catalog_cache


def reset_catalog_cache() -> None:
    """Reset cached catalog (for testing)."""
    global _catalog_cache
    _catalog_cache = None
