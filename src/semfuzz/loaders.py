"""Document loaders for building a corpus from the filesystem.

``TextLoader`` reads a single text or Markdown file; ``DocumentFolder``
walks a directory and loads every matching file. Both produce ``Document``
objects ready for ``DocumentDatabase.extend`` or ``FuzzySearchIndex.extend``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Iterator

from .types import Document

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = (".txt", ".md", ".markdown", ".rst")


class LoaderError(Exception):
    """Exception raised for document loading errors."""

    pass


class BaseLoader(ABC):
    """Abstract base class for document loaders."""

    @abstractmethod
    def load(self, path: str | Path) -> list[Document]:
        """Load documents from a path.

        Raises:
            LoaderError: If the path cannot be loaded
        """
        pass

    def lazy_load(self, path: str | Path) -> Iterator[Document]:
        """Lazily load documents from a path.

        Default implementation just wraps load().
        """
        yield from self.load(path)

    def load_many(self, paths: Iterable[str | Path]) -> list[Document]:
        """Load documents from multiple paths."""
        documents = []
        for path in paths:
            documents.extend(self.load(path))
        return documents


class TextLoader(BaseLoader):
    """Load a plain text or Markdown file as one document.

    The document id is the file path; metadata records ``source``,
    ``filename`` and ``extension``.

    Example:
        >>> loader = TextLoader()
        >>> docs = loader.load("notes.txt")
        >>> docs[0].metadata["filename"]
        'notes.txt'
    """

    def __init__(self, encoding: str = "utf-8", errors: str = "strict"):
        """Initialize text loader.

        Args:
            encoding: Text encoding (default: utf-8)
            errors: How to handle encoding errors ('strict', 'ignore', 'replace')
        """
        self.encoding = encoding
        self.errors = errors

    def load(self, path: str | Path) -> list[Document]:
        """Load a text file as a single document.

        Args:
            path: Path to text file

        Returns:
            List containing one Document

        Raises:
            LoaderError: If the file does not exist or cannot be read
        """
        path = Path(path)
        if not path.exists():
            raise LoaderError(f"File not found: {path}")
        if not path.is_file():
            raise LoaderError(f"Not a file: {path}")

        try:
            text = path.read_text(encoding=self.encoding, errors=self.errors)
        except UnicodeDecodeError as e:
            raise LoaderError(f"Failed to decode {path}: {e}") from e
        except OSError as e:
            raise LoaderError(f"Failed to read {path}: {e}") from e

        return [
            Document(
                text=text,
                id=str(path),
                metadata={
                    "source": str(path),
                    "filename": path.name,
                    "extension": path.suffix.lower(),
                },
            )
        ]


class DocumentFolder:
    """All matching text documents under a directory.

    The folder is validated when created and re-read every time it is
    iterated, so the same instance can feed several indices.

    Example:
        >>> documents = DocumentFolder("./documents")
        >>> await database.extend(documents)
        >>> fuzzy.extend(documents)
    """

    def __init__(
        self,
        path: str | Path,
        glob: str = "**/*",
        extensions: Iterable[str] | None = DEFAULT_EXTENSIONS,
        exclude: list[str] | None = None,
        loader: BaseLoader | None = None,
    ):
        """Initialize the folder.

        Args:
            path: Directory to read
            glob: Glob pattern for matching files (default: all files, recursive)
            extensions: File extensions to load, or None for every matching file
            exclude: Glob patterns of files to skip
            loader: Loader used for each file (default: TextLoader())

        Raises:
            LoaderError: If the path does not exist or is not a directory
        """
        path = Path(path)
        if not path.exists():
            raise LoaderError(f"Directory not found: {path}")
        if not path.is_dir():
            raise LoaderError(f"Not a directory: {path}")

        self.path = path
        self.glob_pattern = glob
        self.extensions = (
            None if extensions is None else {ext.lower() for ext in extensions}
        )
        self.exclude = exclude or []
        self.loader = loader or TextLoader()

    def files(self) -> list[Path]:
        """Matching files, sorted for consistent ordering."""
        files = [f for f in self.path.glob(self.glob_pattern) if f.is_file()]

        for exclude_pattern in self.exclude:
            excluded = set(self.path.glob(exclude_pattern))
            files = [f for f in files if f not in excluded]

        if self.extensions is not None:
            files = [f for f in files if f.suffix.lower() in self.extensions]

        files.sort()
        return files

    def lazy_load(self) -> Iterator[Document]:
        """Lazily load documents, one file at a time.

        Yields:
            Document objects
        """
        for file_path in self.files():
            try:
                yield from self.loader.lazy_load(file_path)
            except LoaderError:
                raise
            except Exception as e:
                raise LoaderError(f"Failed to load {file_path}: {e}") from e

    def load(self) -> list[Document]:
        """Load all matching documents."""
        documents = list(self.lazy_load())
        logger.debug("Loaded %d documents from %s", len(documents), self.path)
        return documents

    def __iter__(self) -> Iterator[Document]:
        return self.lazy_load()

    def __repr__(self) -> str:
        return f"DocumentFolder(path={str(self.path)!r}, glob={self.glob_pattern!r})"
