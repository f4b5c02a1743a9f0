import shutil
import tarfile
import zipfile
from pathlib import Path

import aiohttp

from node_buildpack.errors import DownloadError
from node_buildpack.logging import get_logger

logger = get_logger(__name__)

CHUNK_SIZE = 8192
DOWNLOAD_TIMEOUT = 300


def archive_format(archive_path: Path) -> str:
    return (
        "".join(archive_path.suffixes[-2:])
        if len(archive_path.suffixes) > 1
        else archive_path.suffix
    )


async def download_url(url: str, dest: Path) -> None:
    """Stream a URL to a local file."""
    logger.debug({"event": "download_started", "url": url, "dest": str(dest)})
    try:
        timeout = aiohttp.ClientTimeout(total=DOWNLOAD_TIMEOUT)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(url) as response:
                if response.status != 200:
                    raise DownloadError(
                        f"Download failed with status {response.status}",
                        details={"url": url, "status": response.status},
                    )

                with open(dest, "wb") as f:
                    while chunk := await response.content.read(CHUNK_SIZE):
                        f.write(chunk)

    except aiohttp.ClientError as e:
        if dest.exists():
            dest.unlink()
        raise DownloadError(f"Failed to download {url}: {e}", details={"url": url}) from e
    except DownloadError:
        if dest.exists():
            dest.unlink()
        raise

    logger.info({"event": "download_complete", "url": url, "size": dest.stat().st_size})


def _strip_top_level(extracted: Path, dest_dir: Path) -> None:
    """Move the contents of a single top-level archive directory into dest_dir."""
    entries = list(extracted.iterdir())
    root = entries[0] if len(entries) == 1 and entries[0].is_dir() else extracted
    for item in root.iterdir():
        shutil.move(str(item), str(dest_dir / item.name))


def extract_archive(archive_path: Path, dest_dir: Path, staging_dir: Path) -> Path:
    """Unpack an archive into dest_dir, dropping its top-level directory."""
    format = archive_format(archive_path)

    archive_handlers = {
        ".zip": zipfile.ZipFile,
        ".tar.gz": tarfile.open,
        ".tgz": tarfile.open,
    }

    handler = archive_handlers.get(format)
    logger.debug({"event": "extract_archive", "archive": str(archive_path), "format": format})

    if not handler:
        raise DownloadError(f"Unsupported archive format: {format}")

    staging = staging_dir / f"{archive_path.name}.extract"
    if staging.exists():
        shutil.rmtree(staging)
    staging.mkdir(parents=True)

    try:
        with handler(archive_path) as archive:
            if isinstance(archive, tarfile.TarFile):
                # rejects members that would land outside staging
                archive.extractall(staging, filter="data")
            else:
                archive.extractall(staging)
    except (tarfile.TarError, zipfile.BadZipFile, OSError) as e:
        raise DownloadError(
            f"Failed to extract from {archive_path.name}",
            details={"archive": str(archive_path), "error": str(e)},
        ) from e

    if dest_dir.exists():
        shutil.rmtree(dest_dir)
    dest_dir.mkdir(parents=True)
    _strip_top_level(staging, dest_dir)
    shutil.rmtree(staging)

    logger.info({
        "event": "archive_extracted",
        "archive": str(archive_path),
        "extracted_to": str(dest_dir),
    })

    return dest_dir
