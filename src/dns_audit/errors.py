class ParseError(ValueError):
    """Raised when a zone file, cache file, or domain spec list is malformed."""


class ConfigError(ValueError):
    """Raised when the audit cannot be set up from the given settings."""
