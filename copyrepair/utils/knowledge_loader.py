"""
Knowledge Loader - reads rulebook documentation sections from disk.

Each ``*.md`` / ``*.txt`` file in the knowledge directory becomes one section
keyed by its file stem (``SW_LEXICON_AND_BANS.md`` -> ``SW_LEXICON_AND_BANS``).
The returned mapping is read-only and keeps file-name order.
"""
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Union

from ..exceptions import KnowledgeLoadError

logger = logging.getLogger(__name__)

KNOWLEDGE_SUFFIXES = (".md", ".txt")


def load_knowledge_base(directory: Union[str, Path]) -> Mapping[str, str]:
    """
    Load every knowledge section found under ``directory``.

    Args:
        directory: Folder holding one file per section (searched recursively)

    Returns:
        Read-only mapping section name -> section text

    Raises:
        KnowledgeLoadError: If the directory does not exist or a file is unreadable
    """
    root = Path(directory)
    if not root.is_dir():
        raise KnowledgeLoadError(f"Knowledge directory not found: {root}")

    sections: dict[str, str] = {}
    for path in sorted(root.rglob("*")):
        if not path.is_file() or path.suffix.lower() not in KNOWLEDGE_SUFFIXES:
            continue
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise KnowledgeLoadError(f"Cannot read knowledge file {path}: {e}") from e

        if path.stem in sections:
            logger.warning(f"Duplicate knowledge section '{path.stem}' in {path}, keeping the first")
            continue
        sections[path.stem] = text.strip()

    logger.info(f"Loaded {len(sections)} knowledge sections from {root}")
    return MappingProxyType(sections)
