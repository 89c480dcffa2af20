"""Error kinds shared by the paperhub services.

Every service raises a subclass of PaperhubError. Nothing in this package
retries: the first failure of a chain is raised to the immediate caller.
"""


class PaperhubError(Exception):
    """Base exception for paperhub errors."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class NotFoundError(PaperhubError):
    """A branch, tree, revision, changed-file entry or artifact is missing."""

    status_code = 404


class RevisionNotFoundError(NotFoundError):
    """Raised when a revision id is not in the history of a tracked path."""

    def __init__(self, path: str, revision_id: str | None = None):
        self.path = path
        self.revision_id = revision_id
        if revision_id:
            message = f"Revision {revision_id} not found for '{path}'"
        else:
            message = f"No revisions found for '{path}'"
        super().__init__(message)


class ChangedFileNotFoundError(NotFoundError):
    """Raised when a comparison does not list the tracked path as changed."""

    def __init__(self, path: str, revision_id: str):
        self.path = path
        self.revision_id = revision_id
        super().__init__(f"'{path}' is not among the files changed in {revision_id}")


class MissingArtifactError(NotFoundError):
    """Raised when a render artifact is absent after the stage that builds it ran.

    Callers can suggest re-running the conversion.
    """

    def __init__(self, artifact: str):
        self.artifact = artifact
        super().__init__(f"Render artifact not found: {artifact}")


class RemoteAPIError(PaperhubError):
    """Network or auth failure against a remote service."""

    status_code = 502


class CacheError(PaperhubError):
    """The cache service is unavailable or refused a write."""

    status_code = 503


class ToolchainError(PaperhubError):
    """An external tool exited with a nonzero status or could not be run."""

    def __init__(self, tool: str, returncode: int | None, diagnostics: str = ""):
        self.tool = tool
        self.returncode = returncode
        self.diagnostics = diagnostics
        if returncode is None:
            message = f"{tool} could not be started: {diagnostics}"
        else:
            message = f"{tool} exited with status {returncode}: {diagnostics}"
        super().__init__(message)


class FilesystemError(PaperhubError):
    """Local file I/O failed."""
