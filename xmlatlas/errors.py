"""Error types for xmlatlas."""


class AtlasError(Exception):
    """Base error for all xmlatlas failures."""


class ParseError(AtlasError):
    """A document is not well-formed XML."""

    def __init__(self, message: str, line: int | None = None, column: int | None = None):
        super().__init__(message)
        self.message = message
        self.line = line
        self.column = column

    def __str__(self) -> str:
        if self.line is None:
            return self.message
        return f"{self.message} (line {self.line}, column {self.column})"


class DocumentReadError(AtlasError):
    """A document could not be read from disk."""


class ConfigError(AtlasError):
    """Configuration file is malformed."""
