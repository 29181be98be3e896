"""Exception hierarchy for dwellmap."""


class DwellmapError(Exception):
    """Base class for all dwellmap errors."""


class ConfigError(DwellmapError):
    """Raised when a configuration file or value is invalid."""


class PersistenceError(DwellmapError):
    """Raised when the store cannot be written to (or read from) disk."""


class StoreFormatError(DwellmapError):
    """Raised when a persisted snapshot does not have the expected shape."""


class SymbolResolutionError(DwellmapError):
    """Raised by a symbol resolver that could not produce symbols for a file."""
