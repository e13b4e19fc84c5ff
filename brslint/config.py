"""
Lint configuration: ``bslint.json`` loading and the resolved lint context.

The file format::

    {
      "rules": { "assign-all-paths": "error", "unused-variable": "off", ... },
      "globals": ["myGlobalHelper"],
      "ignores": ["components/vendor/*.brs"],
      "checkUsage": true
    }

Rules given in the file are merged over DEFAULT_RULES.  A rule set to
``off`` suppresses its diagnostics.  Ignore patterns are globs; patterns
not starting with ``**/`` get it prefixed so they match anywhere.
"""

import os
import json
import logging
from fnmatch import fnmatch
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from brslint.brs_ast import Range
from brslint.diagnostics import CODE_TO_RULE, Diagnostic, FixData, Severity
from brslint.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "bslint.json"

RuleSeverity = Literal["error", "warn", "info", "off"]

DEFAULT_RULES: Dict[str, str] = {
    "uninitialized-variable": "error",
    "unsafe-iterators": "error",
    "assign-all-paths": "error",
    "unsafe-path-loop": "error",
    "case-sensitivity": "warn",
    "unused-variable": "warn",
    "unreachable-code": "info",
    "consistent-return": "error",
    "unused-code": "warn",
}


class LintConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    rules: Dict[str, RuleSeverity] = Field(default_factory=dict)
    globals: List[str] = Field(default_factory=list)
    ignores: List[str] = Field(default_factory=list)
    check_usage: bool = Field(default=False, alias="checkUsage")
    fix: bool = False


# ═══════════════════════════════════════════════════════════════════════
#  Loading
# ═══════════════════════════════════════════════════════════════════════

def find_config(root_dir: str) -> Optional[str]:
    """Return the path of ``bslint.json`` in ``root_dir``, if there is one."""
    candidate = os.path.join(root_dir, CONFIG_FILENAME)
    return candidate if os.path.isfile(candidate) else None


def load_config(path: str) -> LintConfig:
    """Read and validate a configuration file.  Raises ConfigError."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ConfigError(f"Configuration file '{path}' not found")
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid bslint configuration file '{path}': {e}")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Cannot read configuration file '{path}': {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"Invalid bslint configuration file '{path}': expected a JSON object")
    try:
        config = LintConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid bslint configuration file '{path}': {e}")

    unknown = sorted(set(config.rules) - set(DEFAULT_RULES))
    if unknown:
        logger.warning("Unknown rule(s) in %s ignored: %s", path, ", ".join(unknown))
    logger.info("Loaded configuration from %s", path)
    return config


def resolve_config(root_dir: str, config_path: Optional[str] = None,
                   rules: Optional[Dict[str, str]] = None) -> LintConfig:
    """Explicit file, else ``<root>/bslint.json``, else defaults; ``rules`` win last."""
    if config_path:
        config = load_config(config_path)
    else:
        found = find_config(root_dir)
        config = load_config(found) if found else LintConfig()
    if rules:
        try:
            merged = LintConfig.model_validate({**config.model_dump(by_alias=True),
                                                "rules": {**config.rules, **rules}})
        except ValidationError as e:
            raise ConfigError(f"Invalid rule override: {e}")
        config = merged
    return config


# ═══════════════════════════════════════════════════════════════════════
#  Resolved context
# ═══════════════════════════════════════════════════════════════════════

class LintContext:
    """Read-only view of a configuration, consumed by the analyzers."""

    def __init__(self, config: Optional[LintConfig] = None):
        self.config = config or LintConfig()
        self.rules: Dict[str, str] = {**DEFAULT_RULES, **self.config.rules}
        self.globals: List[str] = [g.lower() for g in self.config.globals]
        self._ignore_patterns = [
            p if p.startswith("**/") else "**/" + p for p in self.config.ignores
        ]

    def severity(self, rule: str) -> Optional[Severity]:
        """Severity of ``rule``, or None when the rule is off."""
        value = self.rules.get(rule, "off")
        if value == "off":
            return None
        return Severity(value)

    def is_enabled(self, rule: str) -> bool:
        return self.severity(rule) is not None

    @property
    def loops_as_branches(self) -> bool:
        return self.is_enabled("unsafe-path-loop")

    @property
    def check_usage(self) -> bool:
        return self.config.check_usage

    def create_diagnostic(self, code: str, message: str, range: Range, file: str,
                          data: Optional[FixData] = None,
                          tags: Optional[List[str]] = None) -> Optional[Diagnostic]:
        """Diagnostic for ``code`` at its rule's severity, or None when the rule is off."""
        severity = self.severity(CODE_TO_RULE[code])
        if severity is None:
            return None
        return Diagnostic(severity, code, message, range, file, data, list(tags or []))

    def ignores(self, path: str) -> bool:
        norm = path.replace("\\", "/")
        if not norm.startswith("/"):
            norm = "/" + norm
        return any(fnmatch(norm, pattern) for pattern in self._ignore_patterns)
