from __future__ import annotations


class ToolSyncError(Exception):
    pass


class BackendUnavailable(ToolSyncError):
    """A directory or config-store call failed or timed out."""


class MalformedConfig(ToolSyncError):
    """A tool document is present but does not have the expected shape."""


class SinkError(ToolSyncError):
    """The tool sink rejected an upsert or remove."""


class VersionFetchFailure(ToolSyncError):
    pass
