"""Custom exceptions for GrowthCanvas."""


class GrowthCanvasError(Exception):
    """Base exception for GrowthCanvas operations."""


class PersistenceError(GrowthCanvasError):
    """A save, load or section fetch could not be completed."""


class UnauthorizedError(PersistenceError):
    """The persistence backend rejected the current credentials."""


class NoDataSourceError(GrowthCanvasError):
    """A chart was projected while the document holds no table widgets."""


class FormulaParseError(GrowthCanvasError):
    """A formula could not be tokenized or parsed."""
