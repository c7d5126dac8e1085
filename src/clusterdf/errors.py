"""Error taxonomy. Everything raised to the entry point derives from ClusterDfError."""


class ClusterDfError(Exception):
    """Base class for user-facing failures."""


class IoError(ClusterDfError):
    """Mount table or path metadata could not be read."""


class ParseColumnError(ClusterDfError, ValueError):
    """A column token matches no column name or alias."""

    def __init__(self, raw: str) -> None:
        self.raw = raw
        super().__init__(
            f"{raw!r} can't be parsed as a column; use 'clusterdf --list-cols' to see all column names"
        )


class ParseSortingError(ClusterDfError, ValueError):
    pass


class ParseUnitsError(ClusterDfError, ValueError):
    pass


class FilterError(ClusterDfError, ValueError):
    """Bad filter expression. The message is shown to the user as is."""
