"""
Diagnostics: the findings every analyzer reports.

A Diagnostic is ``(severity, code, message, range, file, data)``.  ``data``
is a small tagged payload carrying exactly what the matching fix needs;
today only the case-mismatch diagnostic has one (CasingFixData).
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union
from dataclasses import dataclass, field

from brslint.brs_ast import Range


class Severity(str, Enum):
    ERROR = "error"
    WARN = "warn"
    INFO = "info"


# ═══════════════════════════════════════════════════════════════════════
#  Codes
# ═══════════════════════════════════════════════════════════════════════

class VarLintError:
    UNINITIALIZED_VAR = "LINT1001"
    UNSAFE_ITERATOR_VAR = "LINT1002"
    UNSAFE_INITIALIZATION = "LINT1003"
    CASE_MISMATCH = "LINT1004"
    UNUSED_VARIABLE = "LINT1005"


class ReturnLintError:
    UNREACHABLE_CODE = "LINT2001"
    RETURN_VALUE_UNEXPECTED = "LINT2002"
    UNSAFE_RETURN_VALUE = "LINT2004"
    RETURN_VALUE_MISSING = "LINT2006"


class UnusedCode:
    UNUSED_COMPONENT = "LINT4001"
    UNUSED_SCRIPT = "LINT4002"


# Diagnostic code → rule (config key) controlling its severity
CODE_TO_RULE: Dict[str, str] = {
    VarLintError.UNINITIALIZED_VAR: "uninitialized-variable",
    VarLintError.UNSAFE_ITERATOR_VAR: "unsafe-iterators",
    VarLintError.UNSAFE_INITIALIZATION: "assign-all-paths",
    VarLintError.CASE_MISMATCH: "case-sensitivity",
    VarLintError.UNUSED_VARIABLE: "unused-variable",
    ReturnLintError.UNREACHABLE_CODE: "unreachable-code",
    ReturnLintError.RETURN_VALUE_UNEXPECTED: "consistent-return",
    ReturnLintError.UNSAFE_RETURN_VALUE: "consistent-return",
    ReturnLintError.RETURN_VALUE_MISSING: "consistent-return",
    UnusedCode.UNUSED_COMPONENT: "unused-code",
    UnusedCode.UNUSED_SCRIPT: "unused-code",
}


# ═══════════════════════════════════════════════════════════════════════
#  Fix payloads
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CasingFixData:
    """Rename the occurrence at ``range`` to the original spelling ``name``."""
    name: str
    range: Range
    kind: str = "casing"


FixData = Union[CasingFixData]


@dataclass(frozen=True)
class TextEdit:
    range: Range
    text: str


@dataclass
class Diagnostic:
    severity: Severity
    code: str
    message: str
    range: Range
    file: str                       # pkg path of the originating file
    data: Optional[FixData] = None
    tags: List[str] = field(default_factory=list)

    @property
    def rule(self) -> Optional[str]:
        return CODE_TO_RULE.get(self.code)

    def sort_key(self):
        return (self.file, self.range.start.line, self.range.start.character, self.code)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "severity": self.severity.value,
            "code": self.code,
            "message": self.message,
            "file": self.file,
            "line": self.range.start.line + 1,
            "column": self.range.start.character + 1,
            "range": str(self.range),
        }

    def format(self) -> str:
        """One-line, compiler-style rendering (1-indexed line:column)."""
        return (f"{self.file}:{self.range.start.line + 1}:{self.range.start.character + 1} "
                f"{self.severity.value} {self.code}: {self.message}")


def fixes_for(diagnostic: Diagnostic) -> List[TextEdit]:
    """Text edits that resolve ``diagnostic``, if it carries fix data."""
    data = diagnostic.data
    if isinstance(data, CasingFixData):
        return [TextEdit(data.range, data.name)]
    return []
