"""File store adapter over a generated project tree.

All paths are relative to the project root. Writes are confined to the root.
"""

import logging
import os

logger = logging.getLogger(__name__)


class Workspace:
    """Read/write access to the files of one generated project."""

    def __init__(self, root):
        self.root = os.path.realpath(root)

    def _resolve(self, relative_path):
        full_path = os.path.join(self.root, relative_path)
        resolved = os.path.realpath(full_path)
        if not resolved.startswith(self.root + os.sep):
            raise ValueError(f"Path escapes project directory: {relative_path}")
        return resolved

    def exists(self, relative_path):
        if not relative_path:
            return False
        return os.path.isfile(self._resolve(relative_path))

    def read_file(self, relative_path):
        with open(self._resolve(relative_path), encoding="utf-8") as f:
            return f.read()

    def write_file(self, relative_path, content):
        """Write content, creating parent dirs as needed. Returns relative_path."""
        resolved = self._resolve(relative_path)
        os.makedirs(os.path.dirname(resolved), exist_ok=True)
        with open(resolved, "w", encoding="utf-8") as f:
            f.write(content)
        logger.debug("[Workspace] wrote %s (%d chars)", relative_path, len(content))
        return relative_path

    def list_files(self, subdir="", suffix=""):
        """Relative paths of files under subdir, sorted, optionally filtered by suffix."""
        base = self._resolve(subdir) if subdir else self.root
        found = []
        for dirpath, _, filenames in os.walk(base):
            for name in filenames:
                if suffix and not name.endswith(suffix):
                    continue
                rel = os.path.relpath(os.path.join(dirpath, name), self.root)
                found.append(rel.replace(os.sep, "/"))
        return sorted(found)
