"""
stackeval Configuration Management
===================================

Centralized configuration for the stackeval memory-dump annotator using
Python dataclasses and TOML-based persistence.

Every heuristic threshold the annotator applies (unbounded symbol span,
stack-local distance, sentinel fill values) lives here so that a dump from
a different firmware family can be tuned without touching code.

References:
    - PEP 681 -- Data Class Transforms (2022).
    - TOML v1.0.0 Specification. https://toml.io/en/v1.0.0
"""

from __future__ import annotations

import sys
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib


# ---------------------------------------------------------------------------
# Default configuration file path relative to the project root
# ---------------------------------------------------------------------------
_DEFAULT_CONFIG_PATH: Path = Path(__file__).resolve().parent.parent / "stackeval.toml"


# ============================ Section Configs ==============================


@dataclass(frozen=False, slots=True)
class GlobalConfig:
    """Global settings: logging verbosity, log destination and colour."""

    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_json: bool = False
    color: bool = True


@dataclass(frozen=False, slots=True)
class DecoderConfig:
    """Dump-text decoding parameters.

    ``word_width`` and ``byte_order`` override the values read from the
    binary's ELF header when set.
    """

    grammar: str = "standard"
    verify_round_trip: bool = True
    word_width: Optional[int] = None
    byte_order: Optional[str] = None


@dataclass(frozen=False, slots=True)
class AnnotateConfig:
    """Word classification and rendering heuristics."""

    max_unbounded_symbol_span: int = 0x10000
    stack_local_threshold: int = 0x1000
    sentinel_values: list[int] = field(
        default_factory=lambda: [0xEEEEEEEE, 0xDEADBEEF]
    )
    window_alignment: int = 16


@dataclass(frozen=False, slots=True)
class SymbolsConfig:
    """Which ELF symbols are indexed.

    Some firmware images export symbols at addresses that show up
    constantly in memory (0, 0xeeeeeeee); those are excluded by prefix or
    by exact name.
    """

    kinds: list[str] = field(default_factory=lambda: ["FUNC", "OBJECT"])
    exclude_prefixes: list[str] = field(default_factory=lambda: ["_vx_offset"])
    exclude_names: list[str] = field(default_factory=lambda: ["cpuPwrIntEnterHook"])


# =========================== Master Config =================================


@dataclass(frozen=False, slots=True)
class StackEvalConfig:
    """Every section of the configuration.

    Usage:
        >>> config = StackEvalConfig.load()                 # shipped stackeval.toml
        >>> config = StackEvalConfig.load("target.toml")    # another file
        >>> hex(config.annotate.stack_local_threshold)
        '0x1000'
    """

    global_settings: GlobalConfig = field(default_factory=GlobalConfig)
    decoder: DecoderConfig = field(default_factory=DecoderConfig)
    annotate: AnnotateConfig = field(default_factory=AnnotateConfig)
    symbols: SymbolsConfig = field(default_factory=SymbolsConfig)

    @classmethod
    def load(cls, path: str | Path | None = None) -> StackEvalConfig:
        """Read a TOML file; absent sections and keys keep their defaults.

        Without *path* the ``stackeval.toml`` next to the packages is used
        if it exists.  Unknown sections and keys are ignored.

        Raises:
            FileNotFoundError: An explicitly given *path* does not exist.
        """
        config_path = _DEFAULT_CONFIG_PATH if path is None else Path(path)
        if not config_path.is_file():
            if path is None:
                return cls()
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        raw = tomllib.loads(config_path.read_text(encoding="utf-8"))
        return cls(**{
            attr: _section(section_cls, raw.get(table) or {})
            for table, (attr, section_cls) in _TABLES.items()
        })

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# TOML table -> (StackEvalConfig attribute, section dataclass)
_TABLES: dict[str, tuple[str, type]] = {
    "global": ("global_settings", GlobalConfig),
    "decoder": ("decoder", DecoderConfig),
    "annotate": ("annotate", AnnotateConfig),
    "symbols": ("symbols", SymbolsConfig),
}


def _section(section_cls: type, values: dict[str, Any]) -> Any:
    known = {f.name for f in fields(section_cls)}
    return section_cls(**{k: v for k, v in values.items() if k in known})


_cached: Optional[StackEvalConfig] = None


def get_config(path: str | Path | None = None) -> StackEvalConfig:
    """Shared configuration, loaded on first use or whenever *path* is given."""
    global _cached
    if _cached is None or path is not None:
        _cached = StackEvalConfig.load(path)
    return _cached
