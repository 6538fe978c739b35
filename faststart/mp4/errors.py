class FastStartError(Exception):
    pass


class MalformedTableError(FastStartError):
    """An offset table whose fields cannot be read from the moov bytes."""


class IncompleteBoxError(FastStartError):
    """The input ended before a box's declared size could be read."""
