import os
import shutil
import stat
from pathlib import Path

from node_buildpack.logging import get_logger

logger = get_logger(__name__)


def remove_path(path: Path) -> bool:
    """Delete a file or directory tree. Missing paths are not an error."""
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.is_dir():
        shutil.rmtree(path)
    else:
        return False

    logger.debug({"event": "path_removed", "path": str(path)})
    return True


def copy_tree(src: Path, dst: Path) -> None:
    """Replace dst with a full copy of src, keeping symlinks as links."""
    remove_path(dst)
    dst.parent.mkdir(parents=True, exist_ok=True)
    shutil.copytree(src, dst, symlinks=True)
    logger.debug({"event": "tree_copied", "source": str(src), "destination": str(dst)})


def make_executable(path: Path) -> None:
    mode = path.stat().st_mode
    os.chmod(path, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


def make_bin_executable(bin_dir: Path) -> None:
    if not bin_dir.is_dir():
        return
    for item in bin_dir.iterdir():
        if item.is_file():
            make_executable(item)
