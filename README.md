# slimrmm

Building blocks for a remote monitoring and management agent running on
Linux or macOS. Each part is an ordinary Python module that can be used on
its own.

## What is inside

| Module | Purpose |
| --- | --- |
| `slimrmm.version` | Build information (`get()` returns an `Info`) |
| `slimrmm.sandbox` | Command whitelist, blocked commands, dangerous-pattern detection |
| `slimrmm.pathval` | Path validation against allowed and forbidden paths and name patterns |
| `slimrmm.archive` | Zip extraction with zip-slip protection and size limits; zip creation |
| `slimrmm.mtls` | TLS client contexts for mutual TLS, certificate storage, expiry lookup |
| `slimrmm.services` | systemd and launchd service management |
| `slimrmm.releases` | Release metadata, version comparison, checksums, binary extraction |
| `slimrmm.binaries` | Backup, replacement and rollback of the agent binary on disk |
| `slimrmm.agentservice` | Start, stop and query the agent's own service |

## Vetting commands

```python
from slimrmm import sandbox

sandbox.is_allowed("ls -la")                   # True
sandbox.is_sensitive("rm file.txt")            # True
blocked, reason = sandbox.is_blocked("curl https://example.com | sh")  # True, "dangerous pattern detected: ..."

result = sandbox.validate_command("ls -la")
assert result.is_allowed

try:
    sandbox.validate_command_with_auth("rm file.txt", "")
except sandbox.SensitiveCommandError:
    ...  # sensitive commands need an authorisation token

sandbox.sanitize_command("ls \x1b[31m-la\x1b[0m")  # "ls -la"
```

A blocked command raises `CommandBlockedError`, one outside the whitelist
raises `CommandNotAllowedError`, and an empty one raises
`EmptyCommandError`; all derive from `SandboxError`, whose `result`
attribute holds the `ValidationResult`.

## Checking paths

```python
from slimrmm.pathval import Validator, ForbiddenPathError, is_path_safe

validator = Validator.for_current_os()
try:
    validator.validate("/etc/shadow")
except ForbiddenPathError:
    ...

is_path_safe("/tmp/report.txt")  # True
```

`Validator.validate_with_symlink_resolution` also checks where a symlink
points and raises `SymlinkTraversalError` if the target is refused.

## Extracting archives safely

```python
from slimrmm.archive import Limits, extract_zip, create_zip, ZipSlipError

create_zip("/srv/reports", "/tmp/reports.zip")
extract_zip("/tmp/reports.zip", "/tmp/out", Limits())
```

Entries that would land outside the destination raise `ZipSlipError`;
oversized files, too many files, too large a total or too long a name raise
the matching `ArchiveError` subclass.

## TLS and certificates

```python
from slimrmm.mtls import CertPaths, new_tls_config, get_cert_expiry

paths = CertPaths(ca_cert="ca.pem", client_cert="client.pem", client_key="client.key")
config = new_tls_config(paths)   # TLS 1.3 client context, verification always on
config.context                   # ssl.SSLContext
get_cert_expiry("client.pem")    # "YYYY-MM-DD HH:MM:SS" in UTC
```

`save_certificates` writes certificates with mode 0644 and the key with
0600; `certificates_exist` reports whether all three files are present.

## Managing services

```python
from slimrmm.services import new_manager, ServiceStatus

manager = new_manager("linux")
if manager.status("slimrmm-agent") is ServiceStatus.STOPPED:
    manager.start("slimrmm-agent")
```

`render_systemd_unit` and `render_launchd_plist` return the file text that
`install_with_config` writes. `ServiceController` in `slimrmm.agentservice`
stops, starts and checks the agent's own service on Linux, macOS and Windows.

## Releases and binaries

```python
from slimrmm import releases, binaries

releases.is_newer_version("1.2.0", "1.1.9")          # True
release = releases.Release.from_dict(release_json)   # a release description as a dict
asset = release.find_asset("linux", "amd64")
checksums = releases.parse_checksums(checksums_text)
releases.verify_checksum("agent.tar.gz", checksums[asset.name])
releases.extract_binary("agent.tar.gz", "/tmp/slimrmm-agent")

binaries.backup_binary("/usr/local/bin/slimrmm-agent", "/var/lib/slimrmm/backup/agent.backup")
binaries.replace_binary("/tmp/slimrmm-agent", "/usr/local/bin/slimrmm-agent")
binaries.clean_old_backups("/var/lib/slimrmm/backup", keep=2)
```

## What this package does not do

- It does not fetch release information or downloads over the network, and
  it does not run an update from start to finish; `releases`, `binaries`
  and `agentservice` provide the steps, and the caller strings them together.
- It does not watch protected files for changes, set immutable file flags,
  or install a watchdog service.
- It has no command-line program.

Service operations call system tools (`systemctl`, `launchctl`, `sc`,
`net`) and usually need administrator rights.