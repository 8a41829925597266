"""Per-job workspace directories.

Each job gets a fresh directory named by its job id under the workspace
root. The directory is bind-mounted into the sandbox and removed when the
job ends.
"""

import os
import shutil
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional, Union

import structlog

from ...config import settings
from ...models.errors import WorkspaceError

logger = structlog.get_logger(__name__)

INPUT_FILE_NAME = "input.txt"


class WorkspaceManager:
    """Creates, fills and destroys job workspaces."""

    def __init__(
        self,
        root: Union[str, Path, None] = None,
        host_root: Union[str, Path, None] = None,
    ):
        self._root = Path(root or settings.workspace_root)
        host_root = host_root if host_root is not None else settings.workspace_host_root
        self._host_root: Optional[Path] = Path(host_root) if host_root else None

    def path_for(self, job_id: str) -> Path:
        """Workspace path of a job, derived from its id."""
        return self._root / job_id

    def create(self, job_id: str) -> Path:
        """Create the job directory.

        Raises:
            WorkspaceError: if the directory exists or cannot be created
        """
        path = self.path_for(job_id)
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            path.mkdir()
            # The sandbox may run as a different uid; the directory is private
            # to this job so world-writable is fine.
            os.chmod(path, 0o777)
        except OSError as e:
            logger.error(
                "Failed to create workspace", job_id=job_id[:12], path=str(path), error=str(e)
            )
            raise WorkspaceError(f"Failed to create workspace: {e}") from e

        logger.info("Created workspace", job_id=job_id[:12], path=str(path))
        return path

    def write(self, path: Path, filename: str, content: str) -> Path:
        """Write a text file into a workspace.

        Raises:
            WorkspaceError: if the file cannot be written
        """
        # Only plain names; never let a filename escape the workspace
        file_path = Path(path) / Path(filename).name
        try:
            file_path.write_text(content, encoding="utf-8")
            os.chmod(file_path, 0o666)
        except OSError as e:
            logger.error("Failed to write workspace file", path=str(file_path), error=str(e))
            raise WorkspaceError(f"Failed to write {file_path.name}: {e}") from e

        logger.debug("Wrote workspace file", path=str(file_path), size=len(content))
        return file_path

    def destroy(self, path: Path) -> bool:
        """Remove a workspace and everything in it.

        Idempotent: a missing or partially removed directory is not an error.
        Never raises.

        Returns:
            True if the directory is gone afterwards, False otherwise
        """
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            # Already gone, or entries vanished while walking the tree
            shutil.rmtree(path, ignore_errors=True)
        except Exception as e:
            logger.warning("Failed to destroy workspace", path=str(path), error=str(e))
            return False

        logger.debug("Destroyed workspace", path=str(path))
        return not Path(path).exists()

    def host_path(self, path: Path) -> str:
        """Path the engine must bind-mount for a workspace.

        When the service runs in a container beside the engine, its view of
        the workspace root differs from the engine host's view.
        """
        if self._host_root is None:
            return str(Path(path).resolve())
        return str(self._host_root / Path(path).relative_to(self._root))

    @asynccontextmanager
    async def workspace(self, job_id: str) -> AsyncIterator[Path]:
        """Scope a workspace to a block; it is destroyed on every exit path."""
        path = self.create(job_id)
        try:
            yield path
        finally:
            self.destroy(path)
