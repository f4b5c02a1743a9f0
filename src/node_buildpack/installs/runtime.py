"""Runtime archive installation."""

from abc import ABC, abstractmethod
from pathlib import Path

from node_buildpack.errors import DownloadError
from node_buildpack.logging import get_logger
from node_buildpack.types import ResolvedVersion, Tool
from node_buildpack.utils.fetching import archive_format, download_url, extract_archive
from node_buildpack.utils.fs import make_bin_executable

logger = get_logger(__name__)


class RuntimeInstaller(ABC):
    """Places a resolved release into a directory of the build tree."""

    @abstractmethod
    async def install(self, tool: Tool, resolved: ResolvedVersion, dest: Path, tmp_dir: Path) -> Path:
        """Install the release into dest and return dest."""


class ArchiveInstaller(RuntimeInstaller):
    """Downloads the release archive and unpacks it without its top directory."""

    async def install(self, tool: Tool, resolved: ResolvedVersion, dest: Path, tmp_dir: Path) -> Path:
        tmp_dir.mkdir(parents=True, exist_ok=True)
        suffix = archive_format(Path(resolved.location)) or ".tar.gz"
        if suffix not in (".tar.gz", ".tgz", ".zip"):
            suffix = ".tar.gz"
        archive_path = tmp_dir / f"{tool.value}-{resolved.version}{suffix}"

        await download_url(resolved.location, archive_path)

        if not archive_path.exists() or archive_path.stat().st_size == 0:
            raise DownloadError(
                f"Unable to download {tool.value}: archive is missing or empty",
                details={"url": resolved.location},
            )

        extract_archive(archive_path, dest, tmp_dir)
        make_bin_executable(dest / "bin")

        logger.info({
            "event": "runtime_installed",
            "tool": tool.value,
            "version": resolved.version,
            "path": str(dest),
        })
        return dest
