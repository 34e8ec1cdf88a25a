"""Project-specific exceptions."""


class LinRegError(Exception):
    """Base exception for the project."""


class InvalidConfigError(LinRegError):
    """Raised when fit configuration is missing or invalid."""


class DatasetError(LinRegError):
    """Raised when a tabular source cannot be read or selected."""


class EmptyDatasetError(LinRegError):
    """Raised when fitting is attempted on a dataset with no rows."""


class DimensionMismatchError(LinRegError):
    """Raised when row or feature vector lengths disagree."""


class PersistenceError(LinRegError):
    """Raised when a stored model is missing, malformed, or of unexpected shape."""
