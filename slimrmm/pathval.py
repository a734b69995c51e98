"""Path validation guarding file access against traversal and sensitive locations."""

from __future__ import annotations

import os
import sys
from collections.abc import Sequence


class PathValidationError(Exception):
    """Base error for a path that may not be accessed."""

    default_message = "path validation failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)


class PathTraversalError(PathValidationError):
    default_message = "path traversal detected"


class ForbiddenPathError(PathValidationError):
    default_message = "access to path is forbidden"


class PathNotAllowedError(PathValidationError):
    default_message = "path is not in allowed list"


class SymlinkTraversalError(PathValidationError):
    default_message = "symlink resolves outside allowed paths"


ALLOWED_PATHS: tuple[str, ...] = ("/",)

ALLOWED_PATHS_WINDOWS: tuple[str, ...] = ("C:\\", "D:\\", "E:\\", "F:\\")

FORBIDDEN_PATHS: tuple[str, ...] = (
    # Authentication files
    "/etc/shadow",
    "/etc/gshadow",
    "/etc/passwd",
    "/etc/group",
    "/etc/sudoers",
    "/etc/sudoers.d",
    "/etc/crypttab",
    # SSH keys and config
    "/etc/ssh/ssh_host",
    "/root/.ssh",
    # The agent's own directories
    "/var/lib/slimrmm",
    "/var/lib/rmm",
    "/opt/slimrmm",
    "/etc/slimrmm",
    # Container secrets
    "/var/run/secrets",
    "/run/secrets",
    # Process environments
    "/proc/1/environ",
    "/proc/self/environ",
    # System security
    "/boot",
    "/sys/firmware",
)

FORBIDDEN_PATTERNS: tuple[str, ...] = (
    ".ssh",
    ".gnupg",
    ".env",
    ".pem",
    ".key",
    ".p12",
    ".pfx",
    "id_rsa",
    "id_ed25519",
    "id_ecdsa",
    "id_dsa",
    "known_hosts",
    "authorized_keys",
    "shadow",
    "gshadow",
    "passwd",
    ".proxmox_token",
)

FORBIDDEN_PATHS_WINDOWS: tuple[str, ...] = (
    "C:\\Windows\\System32\\config",
    "C:\\Windows\\System32\\SAM",
    "C:\\ProgramData\\SlimRMM",
    "C:\\Windows\\System32\\drivers\\etc",
    "C:\\Users\\*\\.ssh",
    "C:\\Users\\*\\.gnupg",
)

FORBIDDEN_PATTERNS_WINDOWS: tuple[str, ...] = (
    ".ssh",
    ".gnupg",
    ".env",
    ".pem",
    ".key",
    ".p12",
    ".pfx",
    "id_rsa",
    "id_ed25519",
    "id_ecdsa",
    "id_dsa",
    "known_hosts",
    "authorized_keys",
)


def _clean(path: str) -> str:
    cleaned = os.path.normpath(path) if path else "."
    if os.sep == "/" and cleaned.startswith("//"):
        cleaned = cleaned[1:]
    return cleaned


class Validator:
    """Checks paths against allowed prefixes, forbidden prefixes and name patterns."""

    def __init__(
        self,
        allowed_paths: Sequence[str],
        forbidden_paths: Sequence[str],
        forbidden_patterns: Sequence[str],
    ):
        self.allowed_paths = tuple(allowed_paths)
        self.forbidden_paths = tuple(forbidden_paths)
        self.forbidden_patterns = tuple(forbidden_patterns)

    @classmethod
    def for_current_os(cls) -> "Validator":
        """Return a validator with the lists suited to the running system."""
        if sys.platform == "win32":
            return cls(ALLOWED_PATHS_WINDOWS, FORBIDDEN_PATHS_WINDOWS, FORBIDDEN_PATTERNS_WINDOWS)
        return cls(ALLOWED_PATHS, FORBIDDEN_PATHS, FORBIDDEN_PATTERNS)

    def validate(self, path: str) -> str:
        """Return the cleaned path, or raise a PathValidationError if it is unsafe."""
        clean_path = _clean(path)

        if ".." in path:
            try:
                clean_path = os.path.abspath(clean_path)
            except OSError as exc:
                raise PathTraversalError() from exc

        if any(clean_path.startswith(forbidden) for forbidden in self.forbidden_paths):
            raise ForbiddenPathError()

        path_lower = clean_path.lower()
        if any(pattern.lower() in path_lower for pattern in self.forbidden_patterns):
            raise ForbiddenPathError()

        if not any(clean_path.startswith(allowed) for allowed in self.allowed_paths):
            raise PathNotAllowedError()

        return clean_path

    def validate_with_symlink_resolution(self, path: str) -> str:
        """Validate the path and, if it is a symlink, the path it resolves to.

        Returns the resolved target for symlinks and the cleaned path otherwise.
        A path that does not exist yet is accepted.
        """
        clean_path = self.validate(path)

        try:
            is_link = os.path.islink(path) if os.path.lexists(path) else None
        except OSError:
            raise
        if is_link is None:
            return clean_path

        if is_link:
            resolved = os.path.realpath(path, strict=True)
            try:
                return self.validate(resolved)
            except PathValidationError as exc:
                raise SymlinkTraversalError() from exc

        return clean_path


def is_path_safe(path: str) -> bool:
    """Return True if the default validator for this system accepts the path."""
    try:
        Validator.for_current_os().validate(path)
    except PathValidationError:
        return False
    return True


def sanitize_path(path: str) -> str:
    """Clean a path and make it absolute where possible."""
    cleaned = _clean(path)
    try:
        return os.path.abspath(cleaned)
    except OSError:
        return cleaned