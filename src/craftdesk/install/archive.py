"""
Craft archive extraction.
"""

import logging
import zipfile
from pathlib import Path

from craftdesk.exceptions import ExtractionError

logger = logging.getLogger(__name__)


def extract_zip(archive_path: Path, dest: Path) -> list[Path]:
    """Extract a zip archive, overwriting existing files.

    Args:
        archive_path: The archive.
        dest: Directory to extract into.

    Returns:
        Paths of the extracted files.

    Raises:
        ExtractionError: If the archive is corrupt or a member escapes dest.
    """
    dest = Path(dest)
    root = dest.resolve()

    try:
        with zipfile.ZipFile(archive_path) as archive:
            for member in archive.infolist():
                target = (root / member.filename).resolve()
                if target != root and not target.is_relative_to(root):
                    raise ExtractionError(
                        f"Archive member escapes target directory: {member.filename}"
                    )

            archive.extractall(dest)
            names = [member.filename for member in archive.infolist() if not member.is_dir()]
    except zipfile.BadZipFile as e:
        raise ExtractionError(f"Failed to extract archive: {e}") from e
    except OSError as e:
        raise ExtractionError(f"Failed to extract archive: {e}") from e

    logger.debug(f"Extracted {len(names)} files to {dest}")
    return [dest / name for name in names]
