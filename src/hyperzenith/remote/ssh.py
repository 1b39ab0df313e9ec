"""
SSH command construction for the remote build host.

Remote work goes through the system ``ssh`` and ``rsync`` clients. Key
authentication is passed with ``-i``; password authentication runs the
client under ``sshpass -e`` with the password in the SSHPASS environment
variable, so it never appears on a command line.
"""

import asyncio
import os
import shlex
from pathlib import Path
from typing import Dict, List, Optional

from ..models.build import RemoteTarget
from ..models.config import EngineConfig
from ..system.commands import build_launch_spec, resolve_launcher
from ..validation import ProcessSpawnError, ValidationError


def validate_remote_target(target: RemoteTarget) -> None:
    """
    Raises:
        ValidationError: If the target cannot be connected to as given
    """
    if not target.hostname:
        raise ValidationError("Remote host must not be empty", field_name="host", value=target.host)
    if not target.user:
        raise ValidationError("Remote user must not be empty", field_name="user", value=target.user)
    if not target.remote_project_path:
        raise ValidationError(
            "Remote project path must not be empty",
            field_name="remote_project_path",
            value=target.remote_project_path,
        )
    if not (target.credential.has_key or target.credential.has_password):
        raise ValidationError("Remote target needs an SSH key path or a password", field_name="credential")


def ssh_options(target: RemoteTarget, connect_timeout: int) -> List[str]:
    """Client options shared by ssh and rsync's remote shell."""
    options = [
        "-p", str(target.port),
        "-o", f"ConnectTimeout={connect_timeout}",
        "-o", "StrictHostKeyChecking=no",
        "-o", "ServerAliveInterval=15",
        "-o", "ServerAliveCountMax=4",
    ]
    if target.credential.has_key:
        options.extend([
            "-i", os.path.expanduser(target.credential.key_path),
            "-o", "IdentitiesOnly=yes",
            "-o", "BatchMode=yes",
        ])
    else:
        options.extend([
            "-o", "PreferredAuthentications=password,keyboard-interactive",
            "-o", "PubkeyAuthentication=no",
        ])
    return options


def uses_password(target: RemoteTarget) -> bool:
    # A key always wins over a password.
    return not target.credential.has_key and target.credential.has_password


def auth_prefix(target: RemoteTarget) -> List[str]:
    """Command prefix that feeds the password, if password auth is used."""
    return ["sshpass", "-e"] if uses_password(target) else []


def auth_env(target: RemoteTarget) -> Dict[str, str]:
    """Environment overrides carrying the password for sshpass."""
    if uses_password(target):
        return {"SSHPASS": target.credential.password}
    return {}


def ssh_argv(target: RemoteTarget, remote_command: str, connect_timeout: int) -> List[str]:
    """Full argv that runs ``remote_command`` on the target."""
    return [
        *auth_prefix(target),
        "ssh",
        *ssh_options(target, connect_timeout),
        target.destination,
        remote_command,
    ]


def remote_shell(target: RemoteTarget, connect_timeout: int) -> str:
    """The ``-e`` argument for rsync."""
    return " ".join(shlex.quote(part) for part in ["ssh", *ssh_options(target, connect_timeout)])


def login_shell_command(script: str) -> str:
    """Run ``script`` in a login shell, so Homebrew and Node toolchains are on PATH."""
    return f"bash -lc {shlex.quote(script)}"


async def spawn_client(
    argv: List[str],
    cwd: Path,
    config: EngineConfig,
    env_overrides: Optional[Dict[str, str]] = None,
    capture_output: bool = True,
) -> asyncio.subprocess.Process:
    """
    Start an ssh or rsync client through the configured launcher.

    Output is merged into one pipe when ``capture_output`` is set and
    discarded otherwise.

    Raises:
        ProcessSpawnError: If the launcher or the client cannot be started
    """
    spec = build_launch_spec(argv, cwd, resolve_launcher(config.launcher), env_overrides)
    output = asyncio.subprocess.PIPE if capture_output else asyncio.subprocess.DEVNULL
    kwargs = {}
    if os.name == "posix":
        kwargs["start_new_session"] = True
    try:
        return await asyncio.create_subprocess_exec(
            *spec.argv,
            cwd=str(spec.cwd),
            env=spec.env,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=output,
            stderr=asyncio.subprocess.STDOUT if capture_output else asyncio.subprocess.DEVNULL,
            limit=config.read_buffer_limit,
            **kwargs,
        )
    except OSError as e:
        raise ProcessSpawnError(f"Failed to start '{argv[0]}': {e}") from e
