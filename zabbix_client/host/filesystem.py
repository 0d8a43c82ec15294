"""Directory listing and metadata file reading for the local TYPO3 tree."""

import logging
from pathlib import Path
from typing import Optional

from zabbix_client.host.php_literal import PhpParseError, read_em_conf

logger = logging.getLogger("zabbix_client.host.filesystem")


class FilesystemDirectoryLister:
    """Lists immediate subdirectories. Missing or unreadable paths give []."""

    def list_dirs(self, path: Path) -> list[str]:
        try:
            entries = list(Path(path).iterdir())
        except OSError as e:
            logger.debug(f"Cannot list {path}: {e}")
            return []

        names = []
        for entry in entries:
            if entry.name.startswith("."):
                continue
            try:
                if entry.is_dir():
                    names.append(entry.name)
            except OSError:
                continue
        return sorted(names)


def read_extension_version(metadata_path: Path, ext_key: str) -> Optional[str]:
    """
    Read the version declared in an extension's ext_emconf.php.

    Returns None when the file is missing, unreadable, unparsable, or holds
    no usable version. The file is parsed, never executed.
    """
    try:
        text = Path(metadata_path).read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        return None
    except OSError as e:
        logger.debug(f"Cannot read {metadata_path}: {e}")
        return None

    try:
        em_conf = read_em_conf(text, ext_key)
    except PhpParseError as e:
        logger.warning(f"Unparsable metadata in {metadata_path}: {e}")
        return None

    if not em_conf:
        return None

    version = em_conf.get("version")
    if isinstance(version, bool) or not isinstance(version, (str, int, float)):
        return None
    version = str(version).strip()
    return version or None
