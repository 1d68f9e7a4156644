"""
Atomic writer for generated artifacts.

Ensures an interrupted write never leaves a truncated artifact in the
storage directory.
"""

from __future__ import annotations

import tempfile
from collections.abc import Callable
from pathlib import Path

from .definitions import CPP_FILE_EXTENSION, HEAD_FILE_EXTENSION, PROTO_FILE_EXTENSION


class ArtifactWriteError(Exception):
    """Raised when generated content fails its structural check before being written."""

    pass


class ArtifactWriter:
    """Handles atomic artifact writes with validation.

    Uses a two-phase commit approach:
    1. Write to a temporary file in the same directory
    2. Validate the content
    3. Atomically replace the target file
    """

    def __init__(
        self,
        validate_cpp: Callable[[str], None] | None = None,
        validate_proto: Callable[[str], None] | None = None,
    ):
        self._validate_cpp = validate_cpp or self._default_validate_cpp
        self._validate_proto = validate_proto or self._default_validate_proto

    def write(self, path: Path, content: str, validate: bool = True) -> None:
        """Write content to file atomically.

        Args:
            path: Target file path
            content: Content to write
            validate: Whether to validate before finalizing

        Raises:
            ArtifactWriteError: If validation fails
            OSError: If file operations fail
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        # Same directory ensures an atomic rename on the same filesystem
        temp_fd, temp_path_str = tempfile.mkstemp(
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            text=True,
        )
        temp_path = Path(temp_path_str)

        try:
            with open(temp_fd, "w", encoding="utf-8", newline="\n") as f:
                f.write(content)

            if validate:
                self._validate_content(content, path.suffix)

            temp_path.replace(path)

        except Exception:
            if temp_path.exists():
                try:
                    temp_path.unlink()
                except OSError:
                    pass  # Best effort cleanup
            raise

    def _validate_content(self, content: str, suffix: str) -> None:
        if suffix in (HEAD_FILE_EXTENSION, CPP_FILE_EXTENSION):
            self._validate_cpp(content)
        elif suffix == PROTO_FILE_EXTENSION:
            self._validate_proto(content)

    def _default_validate_cpp(self, content: str) -> None:
        """Default C++ validation.

        Raises:
            ArtifactWriteError: If the braces are unbalanced
        """
        _check_balanced_braces(content, "C++")

    def _default_validate_proto(self, content: str) -> None:
        """Default protobuf schema validation.

        Raises:
            ArtifactWriteError: If the syntax declaration is missing or the braces are unbalanced
        """
        if 'syntax = "proto3";' not in content:
            raise ArtifactWriteError("Generated schema is missing its syntax declaration")
        _check_balanced_braces(content, "schema")


def _check_balanced_braces(content: str, what: str) -> None:
    open_braces = content.count("{")
    close_braces = content.count("}")
    if open_braces != close_braces:
        raise ArtifactWriteError(f"Generated {what} code has unbalanced braces: {open_braces} open, {close_braces} close")
