"""Sandbox management services.

This package runs one job in one container:
- workspace.py: Per-job directories bind-mounted into the sandbox
- demux.py: Splitting the attach stream into stdout and stderr
- controller.py: Container lifecycle from create to forced removal
"""

from .workspace import WorkspaceManager
from .demux import FrameDemultiplexer
from .controller import SandboxController

__all__ = [
    "WorkspaceManager",
    "FrameDemultiplexer",
    "SandboxController",
]
