import os
from dataclasses import dataclass
from typing import Iterator, List

from .constants import OCTET_STREAM
from .logger import logger


@dataclass(frozen=True)
class FileDescriptor:
    """A regular file found under a model directory.

    ``relative_path`` always starts with the base name of the walked root so
    the platform can rebuild the original folder name.
    """

    name: str
    size: int
    mime_type: str
    relative_path: str
    local_path: str

    def to_payload(self) -> dict:
        return {
            "name": self.name,
            "size": self.size,
            "type": self.mime_type,
            "webkitRelativePath": self.relative_path,
        }


def _walk(current: str) -> Iterator[str]:
    with os.scandir(current) as entries:
        for entry in entries:
            if entry.is_symlink():
                logger.warning("Skipping symbolic link %s", entry.path)
                continue
            if entry.is_dir(follow_symlinks=False):
                yield from _walk(entry.path)
            elif entry.is_file(follow_symlinks=False):
                yield entry.path
            # sockets, fifos and devices are neither and are dropped


def get_files_in_directory(dir_path: str) -> List[FileDescriptor]:
    """Recursively lists every regular file under ``dir_path``.

    Symbolic links are skipped. Order follows the filesystem and must not be
    relied upon.

    Raises:
        FileNotFoundError: ``dir_path`` does not exist.
        NotADirectoryError: ``dir_path`` is not a directory.
    """
    root = os.path.abspath(dir_path)
    if not os.path.exists(root):
        raise FileNotFoundError(f"No such directory: '{dir_path}'")
    if not os.path.isdir(root):
        raise NotADirectoryError(f"Not a directory: '{dir_path}'")
    root_name = os.path.basename(root)

    files = []
    for path in _walk(root):
        relative = os.path.relpath(path, root).replace(os.sep, "/")
        files.append(
            FileDescriptor(
                name=os.path.basename(path),
                size=os.path.getsize(path),
                mime_type=OCTET_STREAM,
                relative_path=f"{root_name}/{relative}",
                local_path=path,
            )
        )
    return files
