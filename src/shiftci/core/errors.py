"""
ShiftCI ERRORS
--------------
Exceptions raised for programmer or environment faults.

Data anomalies (odd pipeline text, unknown features, key collisions,
failed structural validation) are never raised; they are reported inside
the returned results instead.
"""


class ShiftCIError(Exception):
    """Base class for all ShiftCI exceptions."""


class ConfigError(ShiftCIError):
    """A configuration value has the wrong shape."""


class KnowledgeBaseError(ShiftCIError):
    """The bundled knowledge base data file is missing or corrupt."""


class InputTooLargeError(ShiftCIError):
    """The pipeline source exceeds the configured size cap."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"Input is {size} bytes; limit is {limit} bytes")
        self.size = size
        self.limit = limit
