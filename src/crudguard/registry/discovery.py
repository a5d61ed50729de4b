"""
Schema discovery over configured model directories.

Candidate files are only ever read as text: nothing found on disk is
imported or executed. A candidate is accepted when the name it declares
resolves through the registry, so discovery can never expose more than
resolve() would.

A candidate file holds one model, is named after the model class and
declares its namespace near the top:

    # blog/models/Post.py
    __crud_namespace__ = "blog.models"
"""

import re
from collections.abc import Callable, Iterator
from pathlib import Path

from crudguard.config import CrudConfig
from crudguard.core.types import ModelDescriptor
from crudguard.logging import get_logger

logger = get_logger(__name__)

NAMESPACE_PATTERN = re.compile(
    r"""^\s*__crud_namespace__\s*=\s*["']([A-Za-z0-9_.\\]+)["']"""
)
MAX_HEADER_LINES = 20
CANDIDATE_SUFFIX = ".py"

# Requested names: any run of separators, or anything outside [A-Za-z0-9_.]
_UNSAFE_REQUEST = re.compile(r"[/\\.]{2,}|[^A-Za-z0-9_.]")
_UNSAFE_FILE_CHARS = re.compile(r"[^A-Za-z0-9_]")


def canonical_directory(path: Path | str) -> Path | None:
    """Resolve symlinks and '..' in a configured directory; None if unusable."""
    try:
        resolved = Path(path).resolve(strict=True)
    except (OSError, RuntimeError):
        return None
    return resolved if resolved.is_dir() else None


def read_namespace(file: Path) -> str | None:
    """
    Find the namespace declaration in the head of a candidate file.

    Blank lines are skipped; at most MAX_HEADER_LINES non-blank lines are
    read.
    """
    try:
        with file.open(encoding="utf-8", errors="replace") as handle:
            seen = 0
            for line in handle:
                if not line.strip():
                    continue
                match = NAMESPACE_PATTERN.match(line)
                if match:
                    return match.group(1).replace("\\", ".")
                seen += 1
                if seen >= MAX_HEADER_LINES:
                    break
    except OSError:
        return None
    return None


class SchemaScanner:
    """
    Scans model_paths for candidate model definitions.

    Args:
        config: Configuration holding the model paths
        resolve: Registry lookup; raises for names that are not exposable
    """

    def __init__(
        self,
        config: CrudConfig,
        resolve: Callable[[str], ModelDescriptor],
    ) -> None:
        self.config = config
        self._resolve = resolve

    def scan(self, name: str | None = None) -> list[ModelDescriptor]:
        """
        Discover exposable models, optionally only the one named `name`.

        Never raises for a bad candidate: failures skip that file.
        """
        if name is not None and (not name or _UNSAFE_REQUEST.search(name)):
            logger.debug("Rejected schema lookup name", requested=name)
            return []

        descriptors: list[ModelDescriptor] = []
        for directory in self.config.model_paths:
            root = canonical_directory(directory)
            if root is None:
                logger.debug("Skipping unusable model path", path=str(directory))
                continue

            for file in self._candidate_files(root, name):
                descriptor = self.parse_model_file(file)
                if descriptor is not None:
                    descriptors.append(descriptor)
        return descriptors

    def _candidate_files(self, root: Path, name: str | None) -> Iterator[Path]:
        if name is None:
            yield from sorted(root.glob(f"*{CANDIDATE_SUFFIX}"))
            return

        # Only the last segment names a file, reduced to identifier characters
        class_name = _UNSAFE_FILE_CHARS.sub("", name.split(".")[-1])
        if not class_name:
            return

        candidate = (root / f"{class_name}{CANDIDATE_SUFFIX}").resolve()
        if not candidate.is_relative_to(root):
            return
        if candidate.is_file():
            yield candidate

    def parse_model_file(self, file: Path) -> ModelDescriptor | None:
        """
        Build the descriptor for one candidate file.

        Returns None when the file is outside every configured directory,
        carries no namespace declaration, or does not name an exposable model.
        """
        try:
            canonical = file.resolve(strict=True)
        except (OSError, RuntimeError):
            return None
        if not canonical.is_file() or not self._within_model_paths(canonical):
            logger.debug("Skipping file outside model paths", file=str(file))
            return None

        namespace = read_namespace(canonical)
        if namespace is None:
            logger.debug("Skipping file without namespace declaration", file=str(file))
            return None

        full_name = f"{namespace}.{file.stem}"
        try:
            return self._resolve(full_name)
        except Exception as e:
            # Unresolvable candidates are skipped
            logger.debug(
                "Skipping candidate model",
                file=str(file),
                candidate=full_name,
                error=type(e).__name__,
            )
            return None

    def _within_model_paths(self, file: Path) -> bool:
        for directory in self.config.model_paths:
            root = canonical_directory(directory)
            if root is not None and file.is_relative_to(root):
                return True
        return False
