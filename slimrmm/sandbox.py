"""Command whitelisting and dangerous pattern blocking for remote execution."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from types import MappingProxyType


class SandboxError(Exception):
    """Base error for command validation; carries the validation result."""

    default_message = "command validation failed"

    def __init__(self, message: str | None = None, result: "ValidationResult | None" = None):
        super().__init__(message or self.default_message)
        self.result = result


class CommandNotAllowedError(SandboxError):
    default_message = "command not in whitelist"


class EmptyCommandError(SandboxError):
    default_message = "empty command"


class CommandBlockedError(SandboxError):
    default_message = "command blocked for security reasons"


class DangerousPatternError(SandboxError):
    default_message = "dangerous command pattern detected"


class SensitiveCommandError(SandboxError):
    default_message = "sensitive command requires server authorization"


@dataclass
class ValidationResult:
    """Outcome of validating a command."""

    is_allowed: bool = False
    is_sensitive: bool = False
    block_reason: str = ""
    sanitized_command: str = ""
    requires_auth_token: bool = False


BLOCKED_COMMANDS: tuple[str, ...] = (
    "rm -rf /",
    "rm -rf /*",
    "rm -fr /",
    "rm -fr /*",
    "mkfs",
    "mkfs.ext4",
    "mkfs.ext3",
    "mkfs.xfs",
    "mkfs.btrfs",
    "dd if=/dev/zero",
    "dd if=/dev/random",
    "dd if=/dev/urandom",
    ":(){:|:&};:",  # fork bomb
    "chmod -R 777 /",
    "chmod 777 /",
    "chown -R",
    "shutdown",
    "reboot",
    "init 0",
    "init 6",
    "halt",
    "poweroff",
    "telinit 0",
    "telinit 6",
    "systemctl halt",
    "systemctl poweroff",
    "systemctl reboot",
)

_BLOCKED_SET = frozenset(BLOCKED_COMMANDS)

_DANGEROUS_SOURCES: tuple[str, ...] = (
    # Disk and device manipulation
    r">\s*/dev/sd[a-z]",
    r"dd\s+if=.*of=/dev/",
    r"dd\s+of=/dev/",
    # Download and execute
    r"wget\s+.*\|\s*sh",
    r"wget\s+.*\|\s*bash",
    r"curl\s+.*\|\s*sh",
    r"curl\s+.*\|\s*bash",
    r"curl\s+.*\|\s*sudo",
    r"wget\s+.*\|\s*sudo",
    # Command substitution with network tools
    r"\$\(\s*curl",
    r"\$\(\s*wget",
    r"`\s*curl",
    r"`\s*wget",
    # Eval with variables
    r"eval\s+\$",
    r"eval\s+\"\$",
    r"eval\s+'\$",
    # Base64 decode and execute
    r"base64\s+-d.*\|\s*sh",
    r"base64\s+-d.*\|\s*bash",
    r"base64\s+--decode.*\|\s*sh",
    r"base64\s+--decode.*\|\s*bash",
    # Reverse shells
    r"nc\s+-e",
    r"nc\s+.*-e\s+/bin",
    r"ncat\s+-e",
    r"netcat\s+-e",
    r"/dev/tcp/",
    r"/dev/udp/",
    # Interpreter code execution
    r"python\s+.*-c\s+.*exec",
    r"python3\s+.*-c\s+.*exec",
    r"perl\s+.*-e",
    r"ruby\s+.*-e",
    r"php\s+.*-r",
    r"node\s+.*-e",
    # Sensitive file overwrites
    r">\s*/etc/passwd",
    r">\s*/etc/shadow",
    r">\s*/etc/sudoers",
    r">\s*/etc/hosts",
    r">\s*/etc/resolv.conf",
    r">\s*/etc/ssh/",
    # Crontab manipulation
    r"crontab\s+-r",
    r"rm\s+.*crontab",
    # SSH key manipulation
    r">\s*.*\.ssh/authorized_keys",
    r">\s*.*\.ssh/id_rsa",
    # Recursive destructive operations at root
    r"rm\s+-[rf]{2,}\s+/\s*$",
    r"rm\s+-[rf]{2,}\s+/\*",
    r"find\s+/\s+-.*-delete",
    r"find\s+/\s+-.*-exec\s+rm",
    # Privilege escalation
    r"chmod\s+[0-7]*[4-7][0-7][0-7]\s+/",
    r"chmod\s+u\+s",
    r"chmod\s+g\+s",
    # Environment manipulation
    r"export\s+LD_PRELOAD=",
    r"export\s+PATH=.*:",
)

DANGEROUS_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(source, re.ASCII) for source in _DANGEROUS_SOURCES
)

SENSITIVE_COMMANDS: frozenset[str] = frozenset(
    {
        # File operations
        "rm", "rmdir", "mv", "cp", "chmod", "chown", "dd",
        # Process control
        "kill", "pkill", "killall",
        # Package management
        "apt", "apt-get", "dnf", "yum", "rpm", "dpkg", "pacman", "brew",
        "snap", "flatpak", "pip", "pip3", "npm", "gem", "cargo", "go",
        "composer", "choco", "winget", "scoop",
        # Service control
        "systemctl", "service", "launchctl", "sc",
        # User management
        "useradd", "userdel", "usermod", "groupadd", "groupdel", "passwd",
        # Network configuration
        "iptables", "ip6tables", "ufw", "firewalld", "nft",
        # Privilege escalation
        "sudo", "su", "doas",
        # Disk operations
        "mount", "umount", "fdisk", "parted", "lvm", "cryptsetup",
        # Containers
        "docker", "podman", "kubectl",
    }
)

WHITELIST: MappingProxyType[str, tuple[str, ...]] = MappingProxyType(
    {
        "system_info": (
            "uname", "hostname", "whoami", "id", "uptime", "date", "cal",
            "lsb_release", "cat /etc/os-release", "sw_vers", "ver",
            "hostnamectl", "timedatectl",
        ),
        "hardware_info": (
            "lscpu", "lspci", "lsusb", "lsblk", "df", "free", "top", "htop",
            "vmstat", "iostat", "sar", "system_profiler", "lshw", "dmidecode",
            "inxi", "nproc", "lsmem", "numactl",
        ),
        "network": (
            "ip", "ifconfig", "netstat", "ss", "ping", "traceroute", "tracepath",
            "dig", "nslookup", "host", "curl", "wget", "arp", "route",
            "networksetup", "iwconfig", "ethtool", "mtr", "whois",
        ),
        "process": (
            "ps", "pgrep", "pidof", "kill", "pkill", "nice", "renice",
            "jobs", "bg", "fg", "nohup", "disown",
        ),
        "file_read": (
            "ls", "cat", "head", "tail", "less", "more", "file", "stat",
            "find", "locate", "which", "whereis", "wc", "diff", "md5sum",
            "sha256sum", "sha1sum", "readlink", "realpath", "basename",
            "dirname", "tree", "du", "pwd",
        ),
        "file_write": (
            "touch", "mkdir", "cp", "mv", "rm", "chmod", "chown",
            "ln", "install", "rsync",
        ),
        "archive": (
            "tar", "gzip", "gunzip", "zip", "unzip", "bzip2", "xz",
            "7z", "rar", "unrar", "zcat", "zless",
        ),
        "package_debian": (
            "apt", "apt-get", "apt-cache", "dpkg", "dpkg-query",
            "aptitude", "snap",
        ),
        "package_rhel": ("yum", "dnf", "rpm", "yum-config-manager"),
        "package_arch": ("pacman", "yay", "paru"),
        "package_macos": ("brew", "softwareupdate", "mas"),
        "package_windows": ("choco", "winget", "scoop"),
        "service": (
            "systemctl", "service", "launchctl", "sc", "journalctl",
            "chkconfig", "update-rc.d",
        ),
        "text_processing": (
            "grep", "awk", "sed", "sort", "uniq", "cut", "tr",
            "tee", "xargs", "column", "fmt", "expand", "unexpand",
            "paste", "join", "comm", "split", "csplit",
        ),
        "misc": (
            "echo", "printf", "env", "printenv", "set", "export",
            "source", "test", "expr", "bc", "true", "false",
            "sleep", "timeout", "watch", "yes", "seq",
        ),
    }
)

_FLAT_WHITELIST: frozenset[str] = frozenset(
    entry.split()[0] for commands in WHITELIST.values() for entry in commands if entry.split()
)

_ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*[a-zA-Z]")


def _base_name(path: str) -> str:
    separators = os.sep + (os.altsep or "")
    stripped = path.rstrip(separators)
    if not stripped:
        return os.sep
    return os.path.basename(stripped)


def _base_command(command: str) -> str | None:
    parts = command.split()
    if not parts:
        return None
    return _base_name(parts[0])


def _normalize(command: str) -> str:
    return " ".join(command.split())


def is_allowed(command: str) -> bool:
    """Return True if the command's executable is whitelisted."""
    base = _base_command(command.strip())
    return base is not None and base in _FLAT_WHITELIST


def is_blocked(command: str) -> tuple[bool, str]:
    """Return whether the command is blocked, with the reason."""
    command = command.strip()
    if not command:
        return False, ""

    normalized = _normalize(command)
    if normalized in _BLOCKED_SET:
        return True, "command is explicitly blocked"

    for blocked in BLOCKED_COMMANDS:
        if normalized.startswith(blocked):
            return True, "command matches blocked prefix: " + blocked

    for pattern in DANGEROUS_PATTERNS:
        if pattern.search(command):
            return True, "dangerous pattern detected: " + pattern.pattern

    return False, ""


def is_sensitive(command: str) -> bool:
    """Return True if the command's executable needs server authorization."""
    base = _base_command(command.strip())
    return base is not None and base in SENSITIVE_COMMANDS


def validate_command(command: str) -> ValidationResult:
    """Validate a command, raising a SandboxError subclass if it is refused."""
    result = ValidationResult(sanitized_command=command.strip())

    if not command.strip():
        raise EmptyCommandError(result=result)

    blocked, reason = is_blocked(command)
    if blocked:
        result.block_reason = reason
        raise CommandBlockedError(result=result)

    if not is_allowed(command):
        raise CommandNotAllowedError(result=result)

    if is_sensitive(command):
        result.is_sensitive = True
        result.requires_auth_token = True

    result.is_allowed = True
    return result


def validate_command_with_auth(command: str, auth_token: str) -> ValidationResult:
    """Validate a command; sensitive commands also need an authorization token."""
    result = validate_command(command)
    if result.is_sensitive and result.requires_auth_token and not auth_token:
        raise SensitiveCommandError(result=result)
    return result


def get_allowed_commands() -> list[str]:
    """Return all whitelisted executables, sorted."""
    return sorted(_FLAT_WHITELIST)


def get_commands_by_category(category: str) -> list[str]:
    """Return the whitelist entries of a category, or an empty list."""
    return list(WHITELIST.get(category, ()))


def get_sensitive_commands() -> list[str]:
    """Return all sensitive executables, sorted."""
    return sorted(SENSITIVE_COMMANDS)


def sanitize_command(command: str) -> str:
    """Strip null bytes, ANSI escape sequences and surrounding whitespace."""
    command = command.replace("\x00", "")
    command = _ANSI_ESCAPE.sub("", command)
    return command.strip()