"""
ShiftCI FILE SYSTEM MANAGER
---------------------------
Handles all physical I/O operations:
- BOM-tolerant reads
- Atomic file writes (tmp file + os.replace)
- Workspace containment checks (no path traversal)
"""

import os
import logging
from pathlib import Path

logger = logging.getLogger("shiftci.io")


class FileSystemManager:
    """
    Abstraction layer for local file system operations.
    """

    def __init__(self, workspace_root: Path, app_name: str = "ShiftCI"):
        self.workspace = Path(workspace_root).resolve()
        self.app_name = app_name

    def ensure_dir(self, path: Path) -> Path:
        """Creates an output directory if missing."""
        if not path.exists():
            try:
                path.mkdir(parents=True, exist_ok=True)
                logger.info(f"Created directory: {path}")
            except OSError as e:
                raise IOError(f"Directory creation failed: {e}")
        return path

    def resolve_inside(self, relative_path: str) -> Path:
        """
        Resolves a path against the workspace.
        Raises PermissionError when it escapes the workspace.
        """
        target = (self.workspace / relative_path).resolve()
        if target != self.workspace and self.workspace not in target.parents:
            raise PermissionError(f"Path escapes workspace: {relative_path}")
        return target

    def read_text(self, path: Path) -> str:
        """Reads text file with BOM handling."""
        return path.read_text(encoding='utf-8-sig', errors='replace')

    def atomic_write(self, target_path: Path, content: str) -> None:
        """
        Atomically writes content to file.
        Uses .shiftci.tmp + os.replace.
        """
        temp_file = target_path.with_name(target_path.name + '.shiftci.tmp')
        try:
            with open(temp_file, 'w', encoding='utf-8') as f:
                f.write(content)
                f.flush()
            os.replace(temp_file, target_path)
        except OSError as e:
            if temp_file.exists():
                temp_file.unlink()
            raise IOError(f"Atomic write failed: {e}")
