from __future__ import annotations


class GitMirrorError(RuntimeError):
    """Base error. `diagnostic` carries the underlying tool's raw output, if any."""

    def __init__(self, message: str, *, diagnostic: str | None = None) -> None:
        super().__init__(message)
        self.diagnostic = diagnostic

    def __str__(self) -> str:
        message = super().__str__()
        if self.diagnostic:
            return f"{message}\n{self.diagnostic.strip()}"
        return message


class GitCommandFailed(GitMirrorError):
    def __init__(self, args: list[str], returncode: int, stderr: str) -> None:
        super().__init__(
            f"git {' '.join(args)} exited with code {returncode}",
            diagnostic=stderr,
        )
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = stderr


class NotARepository(GitMirrorError):
    pass


class NoRemoteConfigured(GitMirrorError):
    pass


class BranchNotFound(GitMirrorError):
    pass


class RemoteUnavailable(GitMirrorError):
    pass


class CheckoutFailed(GitMirrorError):
    pass


class ReleaseNotFound(GitMirrorError):
    pass


class _PathError(GitMirrorError):
    def __init__(self, path: str, message: str, *, diagnostic: str | None = None) -> None:
        super().__init__(message, diagnostic=diagnostic)
        self.path = path


class CopyFailed(_PathError):
    def __init__(self, path: str, reason: str) -> None:
        super().__init__(path, f"Copy failed for {path}: {reason}")
        self.reason = reason


class DownloadFailed(_PathError):
    def __init__(self, path: str, reason: str) -> None:
        super().__init__(path, f"Download failed for {path}: {reason}")
        self.reason = reason


class TimestampParseFailed(_PathError):
    def __init__(self, path: str, raw: str) -> None:
        super().__init__(path, f"Cannot parse commit timestamp {raw!r} for {path or '<unknown>'}")
        self.raw = raw


class DestinationFileExists(_PathError):
    def __init__(self, path: str) -> None:
        super().__init__(path, f"Destination already exists: {path}. Pass --overwrite to replace it.")
