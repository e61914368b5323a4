"""
Exception types raised by pycovariates.

All of them derive from ``ValueError`` so callers that already guard data
shaping with ``except ValueError`` keep working.
"""


class CovariateError(ValueError):
    """Base class for input-shape problems detected by pycovariates."""


class MalformedEventError(CovariateError):
    """An event record lacks a sample or biomarker identifier."""


class MissingKeyError(CovariateError):
    """The join key is absent from one of the tables being joined."""


class DuplicateKeyError(CovariateError):
    """A table being joined has repeated sample identifiers."""

    def __init__(self, message: str, duplicates: list | None = None):
        super().__init__(message)
        self.duplicates = list(duplicates or [])


class ColumnCollisionError(CovariateError):
    """The same covariate column name exists in both joined tables."""


class FormulaError(CovariateError):
    """Base class for formula template and assembly problems."""


class FormulaSyntaxError(FormulaError):
    """A formula template string could not be parsed."""


class PlaceholderNotFoundError(FormulaError):
    """Biomarker terms were supplied but the template has no placeholder."""


class EmptyTermListError(FormulaError):
    """No biomarker terms were supplied and the policy forbids it."""
