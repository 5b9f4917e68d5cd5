"""Include/exclude filtering of the candidate file set."""

from typing import Any, List, Optional, Sequence

from gcs_deploy.catalog import UPLOAD_IGNORES, FileEntry
from gcs_deploy.catalog import is_ignored as _matches_ignore
from gcs_deploy.utils.logging import get_logger
from gcs_deploy.utils.rules import Rule, compile_rule

logger = get_logger(__name__)


class FileFilter:
    """
    Decides which catalog entries get uploaded.

    Example:
        >>> f = FileFilter(include=r"\\.js$", exclude="vendor")
        >>> [e.name for e in f.filter_files(entries)]
        ['a.js']
    """

    def __init__(
        self,
        include: Any = None,
        exclude: Any = None,
        ignores: Sequence[str] = UPLOAD_IGNORES,
    ) -> None:
        self.include: Optional[Rule] = compile_rule(include) if include is not None else None
        self.exclude: Optional[Rule] = compile_rule(exclude) if exclude is not None else None
        self.ignores = list(ignores)

    def is_permitted(self, name: str) -> bool:
        is_include = self.include.matches(name) if self.include else True
        is_exclude = self.exclude.matches(name) if self.exclude else False
        return is_include and not is_exclude

    def is_ignored(self, name: str) -> bool:
        return _matches_ignore(name, self.ignores)

    def filter_files(self, files: Sequence[FileEntry]) -> List[FileEntry]:
        permitted = [f for f in files if self.is_permitted(f.name) and not self.is_ignored(f.name)]
        logger.info(f"{len(permitted)}/{len(files)} files permitted for upload")
        return permitted
