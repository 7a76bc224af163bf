"""
Sandbox Context
---------------
Descriptor of an isolated execution environment plus path containment.

Rules:
- Paths are resolved against the sandbox root, never against the host cwd
- Anything resolving outside the root is rejected before the tool runs
- Symlinks inside the root are rejected (they can point anywhere)
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional
import logging
import os

from core.errors import SandboxPathError
from .policy import ToolPolicy

logger = logging.getLogger("toolgate.security.sandbox")


class WorkspaceAccess(str, Enum):
    READ_WRITE = "rw"
    READ_ONLY = "ro"


@dataclass
class BrowserSettings:
    """Browser-control settings forwarded to the browser tool collaborator."""
    control_url: Optional[str] = None
    allow_host_control: bool = False
    allowed_control_urls: List[str] = field(default_factory=list)
    allowed_control_hosts: List[str] = field(default_factory=list)
    allowed_control_ports: List[int] = field(default_factory=list)


@dataclass
class SandboxContext:
    """Resolved sandbox for one session (built by the sandbox collaborator)."""
    enabled: bool
    workspace_dir: str
    container_name: Optional[str] = None
    container_workdir: Optional[str] = None
    workspace_access: WorkspaceAccess = WorkspaceAccess.READ_WRITE
    tools: Optional[ToolPolicy] = None
    browser: BrowserSettings = field(default_factory=BrowserSettings)
    env: Dict[str, str] = field(default_factory=dict)

    @property
    def allows_workspace_writes(self) -> bool:
        return WorkspaceAccess(self.workspace_access) != WorkspaceAccess.READ_ONLY


def _expand_path(file_path: str) -> str:
    expanded = file_path.strip()
    if expanded.startswith("@"):
        # Some models prefix paths with '@' (mention syntax)
        expanded = expanded[1:]
    return os.path.expanduser(expanded)


def resolve_sandbox_path(file_path: str, cwd: str, root: str) -> Path:
    """
    Resolve file_path against cwd and ensure it stays under root.

    Returns the resolved absolute path; raises SandboxPathError otherwise.
    """
    root_path = Path(os.path.normpath(os.path.abspath(root)))
    base = _expand_path(file_path)
    if not os.path.isabs(base):
        base = os.path.join(cwd, base)
    resolved = Path(os.path.normpath(os.path.abspath(base)))

    try:
        resolved.relative_to(root_path)
    except ValueError:
        raise SandboxPathError(
            f"Path escapes sandbox root ({root_path}): {file_path}",
            details={"path": file_path, "root": str(root_path)},
        )
    return resolved


def _assert_no_symlink(relative: Path, root: Path, original: str) -> None:
    current = root
    for part in relative.parts:
        current = current / part
        try:
            if current.is_symlink():
                raise SandboxPathError(
                    f"Symlink not allowed in sandbox path: {original}",
                    details={"path": original, "symlink": str(current)},
                )
        except OSError:
            # Component does not exist yet (e.g. a file about to be written)
            return
        if not current.exists():
            return


def assert_sandbox_path(file_path: str, cwd: str, root: str) -> Path:
    """Containment check run before a sandboxed file tool executes."""
    try:
        resolved = resolve_sandbox_path(file_path, cwd=cwd, root=root)
        root_path = Path(os.path.normpath(os.path.abspath(root)))
        _assert_no_symlink(resolved.relative_to(root_path), root_path, file_path)
    except SandboxPathError:
        logger.warning(f"Sandbox path rejected: {file_path}", extra={"path": file_path})
        raise
    return resolved
