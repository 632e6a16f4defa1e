# SPDX-License-Identifier: MIT
"""Path and hashing helpers shared by the generation pass.

Paths are handled as forward-slash strings: the build file is consumed by
an external executor, so the text that ends up in it must not depend on
the host's path flavour.
"""

from __future__ import annotations

import hashlib
import posixpath
from pathlib import Path


class PathTools:
    """Normalize paths and place them relative to the build directory.

    Attributes:
        working_dir: Directory the executor runs in (the build directory).
    """

    def __init__(self, working_dir: Path | str = ".") -> None:
        self.working_dir = self.normalize(working_dir)

    @staticmethod
    def normalize(path: Path | str) -> str:
        """Return a normalized, forward-slash form of a path."""
        text = str(path).replace("\\", "/")
        if not text:
            return ""
        return posixpath.normpath(text)

    @staticmethod
    def is_absolute(path: Path | str) -> bool:
        """Check whether a path is absolute (POSIX or Windows drive form)."""
        text = str(path).replace("\\", "/")
        if text.startswith("/"):
            return True
        return len(text) > 2 and text[1] == ":" and text[2] == "/"

    def to_build_path(self, path: Path | str) -> str:
        """Convert a path to the form written to the build file.

        Absolute paths inside the working directory become relative to it;
        everything else is only normalized.
        """
        norm = self.normalize(path)
        if not norm or not self.is_absolute(norm):
            return norm
        if not self.is_absolute(self.working_dir):
            return norm
        if norm == self.working_dir:
            return "."
        prefix = self.working_dir.rstrip("/") + "/"
        if norm.startswith(prefix):
            return norm[len(prefix):]
        return norm

    def join(self, *parts: Path | str) -> str:
        """Join path parts and normalize the result."""
        return self.normalize(posixpath.join(*(str(p) for p in parts)))


class Hasher:
    """Content hashing used for step names.

    Attributes:
        algorithm: hashlib algorithm name.
        width: Number of hex characters kept by short().
    """

    def __init__(self, algorithm: str = "sha256", width: int = 7) -> None:
        self.algorithm = algorithm
        self.width = width

    def digest(self, data: bytes) -> str:
        """Return the full hex digest of data."""
        return hashlib.new(self.algorithm, data).hexdigest()

    def short(self, text: str) -> str:
        """Return the fixed-width hex prefix of the digest of text."""
        return self.digest(text.encode("utf-8"))[: self.width]


def split_executable_and_flags(command: str) -> tuple[str, str]:
    """Split a command line into its program and the remaining arguments.

    The program may be quoted with single or double quotes; quotes are
    removed from the program; the argument text keeps its quoting.

    Args:
        command: Full command line.

    Returns:
        Tuple of (program, arguments).
    """
    text = command.lstrip()
    program: list[str] = []
    quote: str | None = None
    index = 0
    while index < len(text):
        char = text[index]
        if quote:
            if char == quote:
                quote = None
            else:
                program.append(char)
        elif char in ("'", '"'):
            quote = char
        elif char.isspace():
            break
        else:
            program.append(char)
        index += 1
    return "".join(program), text[index:].lstrip()
