"""
Exceptions raised by brslint.

Only two conditions abort a whole run: a bad configuration (ConfigError,
raised before any analysis starts) and a project without an entry script
(MissingEntryPointError, raised by the usage graph).  BrsSyntaxError is
raised per file by the front end and handled by the workspace index,
which logs it and skips the file.
"""

from typing import Optional


class BrsLintError(Exception):
    """Base class for all brslint errors."""


class ConfigError(BrsLintError):
    """Missing, unreadable or invalid configuration."""


class MissingEntryPointError(BrsLintError):
    """The usage graph has no ``source/main.brs`` / ``source/main.bs`` root."""

    def __init__(self, message: str = "No `main.brs` found: cannot check usage without an entry point"):
        super().__init__(message)


class BrsSyntaxError(BrsLintError):
    """A BrightScript file could not be parsed."""

    def __init__(self, path: str, message: str, line: Optional[int] = None, column: Optional[int] = None):
        self.path = path
        self.line = line          # 1-indexed, as reported by the parser
        self.column = column
        location = f"{path}:{line}:{column}" if line is not None else path
        super().__init__(f"{location}: {message}")
