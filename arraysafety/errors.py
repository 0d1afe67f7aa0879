"""Exception hierarchy for the array-safety analysis."""

from __future__ import annotations


class ArraySafetyError(Exception):
    """Base class for every error raised by this package."""


class InvalidAbstractStateError(ArraySafetyError, ValueError):
    """
    An abstract element was built or combined in a way no analysis run can
    produce (foreign allocation site, empty alias set, mismatched variable
    sets in a join).  Indicates a driver/domain construction bug.
    """


class ConfigError(ArraySafetyError, ValueError):
    """Invalid analysis configuration."""


class SourceParseError(ArraySafetyError):
    """The Java source could not be parsed or lowered."""


class MethodNotFoundError(ArraySafetyError, LookupError):
    """The requested class or method does not exist in the source."""


class ReportError(ArraySafetyError, OSError):
    """A result file could not be written."""
