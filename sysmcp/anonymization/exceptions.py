class MappingStoreError(Exception):
    """Base exception for mapping persistence errors."""


class MappingNotFoundError(MappingStoreError):
    """Raised when the mapping file does not exist."""


class MalformedMappingError(MappingStoreError):
    """Raised when the mapping file is not valid JSON or has the wrong shape."""
