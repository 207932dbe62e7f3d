"""Analysis configuration loaded from an optional JSON file."""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Tuple

DECODE_ERROR_POLICIES = ("fail", "skip-method")


@dataclass(frozen=True)
class AnalysisConfig:
    """Settings shared by the scanner, the engine and the CLI.

    ``on_decode_error`` decides what happens when a single method body fails
    to decode: ``"fail"`` aborts the scan, ``"skip-method"`` drops the method
    from its class and keeps going.
    """

    disabled_rules: Tuple[str, ...] = ()
    on_decode_error: str = "fail"
    skip_platform_references: bool = True

    def __post_init__(self) -> None:
        if self.on_decode_error not in DECODE_ERROR_POLICIES:
            raise ValueError(
                f"on_decode_error must be one of {', '.join(DECODE_ERROR_POLICIES)}, "
                f"got {self.on_decode_error!r}"
            )

    @classmethod
    def load(cls, path: Optional[Path]) -> "AnalysisConfig":
        """Load a configuration file, falling back to defaults when absent."""

        if path is None or not path.exists():
            return cls()

        data = json.loads(path.read_text("utf-8"))
        if not isinstance(data, Mapping):
            raise ValueError(f"configuration file {path} must contain a JSON object")
        return cls.from_json(data)

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "AnalysisConfig":
        disabled = data.get("disabled_rules") or ()
        if isinstance(disabled, str):
            disabled = (disabled,)
        if not isinstance(disabled, (list, tuple)) or not all(
            isinstance(rule, str) for rule in disabled
        ):
            raise ValueError(f"disabled_rules must be a list of rule ids, got {disabled!r}")

        skip_platform = data.get("skip_platform_references", True)
        if not isinstance(skip_platform, bool):
            raise ValueError(
                f"skip_platform_references must be true or false, got {skip_platform!r}"
            )

        return cls(
            disabled_rules=tuple(rule.upper() for rule in disabled),
            on_decode_error=str(data.get("on_decode_error", "fail")),
            skip_platform_references=skip_platform,
        )

    def with_overrides(
        self,
        *,
        disabled_rules: Optional[Iterable[str]] = None,
        on_decode_error: Optional[str] = None,
    ) -> "AnalysisConfig":
        config = self
        if disabled_rules:
            merged = list(config.disabled_rules)
            for rule in disabled_rules:
                if rule.upper() not in merged:
                    merged.append(rule.upper())
            config = replace(config, disabled_rules=tuple(merged))
        if on_decode_error is not None:
            config = replace(config, on_decode_error=on_decode_error)
        return config

    def is_enabled(self, rule_id: str) -> bool:
        return rule_id.upper() not in self.disabled_rules
