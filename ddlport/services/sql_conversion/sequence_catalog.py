"""Sequence definitions found anywhere in a batch, keyed by their target name."""
from typing import Dict, Iterable, Optional

from ddlport.utils.file_utils import read_file_content
from ddlport.utils.logger import setup_logger
from .nodes import ObjectKey, SequenceNode
from .parser import TsqlDdlParser
from .utils.identifier_utils import sequence_target_name

logger = setup_logger('SequenceCatalog')


class SequenceCatalog:
    def __init__(self, suffix: str = '_seq'):
        self.suffix = suffix
        self._sequences: Dict[ObjectKey, SequenceNode] = {}

    def __len__(self) -> int:
        return len(self._sequences)

    def add(self, node: SequenceNode) -> None:
        key = sequence_target_name(node.name, self.suffix).key
        if key in self._sequences:
            logger.debug(f"Sequence {node.name.display()} defined more than once; keeping the first definition")
            return
        self._sequences[key] = node

    def lookup(self, key: ObjectKey) -> Optional[SequenceNode]:
        return self._sequences.get(key)

    @classmethod
    def from_files(cls, paths: Iterable[str], parser: Optional[TsqlDdlParser] = None,
                   suffix: str = '_seq') -> 'SequenceCatalog':
        """Parse *paths* and collect every CREATE SEQUENCE they contain.

        Unreadable files and statements that fail to parse are skipped; the
        sequences they would have defined fall back to inferred declarations.
        """
        catalog = cls(suffix)
        parser = parser or TsqlDdlParser()
        for path in paths:
            try:
                content = read_file_content(path)
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Could not read sequence file {path}: {e}")
                continue
            if not content:
                continue
            for node in parser.parse(content).nodes:
                if isinstance(node, SequenceNode):
                    catalog.add(node)
        logger.info(f"Sequence catalog holds {len(catalog)} definition(s)")
        return catalog
