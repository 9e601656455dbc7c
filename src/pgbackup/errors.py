"""Exceptions raised by the backup object factories."""


class NotFoundError(RuntimeError):
    """Named object lookup matched no catalog row."""


class UnsupportedOperationError(NotImplementedError):
    """Factory or object kind used in a mode it does not implement."""


class ConfigError(Exception):
    """Exception raised for bad or missing configuration"""
