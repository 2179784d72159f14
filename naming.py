"""File naming rules and fallback counters for saved photos."""

import os
import re
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

EXTENSION = ".jpg"
THUMBNAIL_DIR = "Thumbnails"
THUMBNAIL_PREFIX = "T_"
FALLBACK_STEM = "untitled"

# Longest file name most filesystems accept, in bytes
MAX_NAME_BYTES = 255

# Characters not allowed in Windows filenames
_RESERVED_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_RESERVED_NAMES = {
    "CON", "PRN", "AUX", "NUL",
    *(f"COM{i}" for i in range(1, 10)),
    *(f"LPT{i}" for i in range(1, 10)),
}


class Category(Enum):
    NORMAL = "normal"
    DUPLICATE = "duplicate"
    INVALID_NAME = "invalid_name"
    INVALID_PATH_CHARS = "invalid_path_chars"


class ArtifactKind(Enum):
    FULL = "full"
    THUMBNAIL = "thumbnail"


# Folder under the search root for each fallback category
FALLBACK_DIRS = {
    Category.INVALID_PATH_CHARS: "InvalidPathCharacters",
    Category.INVALID_NAME: "InvalidNames",
    Category.DUPLICATE: "DuplicateNames",
}


@dataclass(frozen=True)
class SaveOutcome:
    category: Category
    path: str
    counter: Optional[int] = None


class CounterRegistry:
    """Fallback counters shared by every save in the process.

    There is one counter per (fallback category, artifact kind), each with
    its own lock, so unrelated categories never wait on each other.
    """

    def __init__(self):
        self._counts = {}
        self._locks = {}
        for category in FALLBACK_DIRS:
            for kind in ArtifactKind:
                self._counts[(category, kind)] = 0
                self._locks[(category, kind)] = threading.Lock()

    def reserve(self, category: Category, kind: ArtifactKind,
                taken: Optional[Callable[[int], bool]] = None) -> int:
        """Reserve the next counter value for *category* and *kind*.

        Values for which ``taken(value)`` is true are skipped. The returned
        value is never handed out again by this registry.
        """
        key = self._key(category, kind)
        with self._locks[key]:
            value = self._counts[key]
            if taken is not None:
                while taken(value):
                    value += 1
            self._counts[key] = value + 1
            return value

    def peek(self, category: Category, kind: ArtifactKind) -> int:
        key = self._key(category, kind)
        with self._locks[key]:
            return self._counts[key]

    def reset(self) -> None:
        for key, lock in self._locks.items():
            with lock:
                self._counts[key] = 0

    @staticmethod
    def _key(category, kind):
        if category not in FALLBACK_DIRS:
            raise ValueError(f"No counter for category {category.value!r}")
        return category, kind


# --- Classification ---

def is_invalid_name(title: str) -> bool:
    """Return True if *title* cannot be turned into a file name at all."""
    if not title.strip().strip("."):
        return True
    # Nothing left once the reserved characters are gone
    if not _RESERVED_CHARS.sub("", title).strip().strip("."):
        return True
    if title.strip().split(".")[0].upper() in _RESERVED_NAMES:
        return True
    try:
        name = os.fsencode(THUMBNAIL_PREFIX + title + EXTENSION)
    except UnicodeError:
        return True
    return len(name) > MAX_NAME_BYTES


def has_invalid_path_chars(title: str) -> bool:
    return _RESERVED_CHARS.search(title) is not None


def natural_path(root: str, kind: ArtifactKind, title: str) -> str:
    if kind is ArtifactKind.THUMBNAIL:
        return os.path.join(root, THUMBNAIL_DIR,
                            f"{THUMBNAIL_PREFIX}{title}{EXTENSION}")
    return os.path.join(root, f"{title}{EXTENSION}")


def fallback_path(root: str, kind: ArtifactKind, category: Category,
                  counter: int) -> str:
    folder = os.path.join(root, FALLBACK_DIRS[category])
    if kind is ArtifactKind.THUMBNAIL:
        return os.path.join(folder, THUMBNAIL_DIR,
                            f"{THUMBNAIL_PREFIX}{FALLBACK_STEM}{counter}{EXTENSION}")
    return os.path.join(folder, f"{FALLBACK_STEM}{counter}{EXTENSION}")


def reserve_fallback(root: str, kind: ArtifactKind, category: Category,
                     counters: CounterRegistry) -> SaveOutcome:
    """Reserve an unused ``untitled{N}`` destination in *category*'s folder."""
    counter = counters.reserve(
        category, kind,
        taken=lambda n: os.path.exists(fallback_path(root, kind, category, n)),
    )
    return SaveOutcome(category, fallback_path(root, kind, category, counter), counter)


def classify(kind: ArtifactKind, root: str, title: str,
             counters: CounterRegistry) -> SaveOutcome:
    """Decide where the *kind* artifact of a photo titled *title* goes.

    Checks run in order: unusable name, reserved path characters, existing
    file at the natural destination. Only the fallback categories consume a
    counter value.
    """
    if is_invalid_name(title):
        category = Category.INVALID_NAME
    elif has_invalid_path_chars(title):
        category = Category.INVALID_PATH_CHARS
    else:
        path = natural_path(root, kind, title)
        if not os.path.exists(path):
            return SaveOutcome(Category.NORMAL, path)
        category = Category.DUPLICATE
    return reserve_fallback(root, kind, category, counters)
