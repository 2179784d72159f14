"""Writes downloaded photos and their thumbnails into a search folder tree."""

import os
from io import BytesIO

from PIL import Image

from naming import (
    FALLBACK_DIRS, THUMBNAIL_DIR, ArtifactKind, Category, CounterRegistry,
    SaveOutcome, classify, reserve_fallback,
)

THUMBNAIL_WIDTH = 200
OUTPUT_FORMAT = "JPEG"


class PersistenceError(Exception):
    """Raised when a photo could not be decoded or written to disk."""
    pass


# --- Folder tree ---

def tree_paths(root):
    """Return the eight directories that make up a search folder tree."""
    paths = [root, os.path.join(root, THUMBNAIL_DIR)]
    for folder in FALLBACK_DIRS.values():
        paths.append(os.path.join(root, folder))
        paths.append(os.path.join(root, folder, THUMBNAIL_DIR))
    return paths


def ensure_tree(root):
    """Create the folder tree for *root* unless the root already exists.

    An existing root is taken to mean the whole tree exists.

    Returns:
        True if the tree was created, False if it was already there.
    """
    if os.path.isdir(root):
        return False
    for path in tree_paths(root):
        os.makedirs(path, exist_ok=True)
    return True


# --- Image helpers ---

def decode_image(data):
    """Decode raw image bytes into a fully loaded Pillow image."""
    try:
        with Image.open(BytesIO(data)) as image:
            decoded = image.copy()
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise PersistenceError(f"Could not decode image: {e}") from e
    return decoded


def thumbnail_size(width, height):
    """Size of a thumbnail THUMBNAIL_WIDTH wide with the original aspect ratio."""
    new_height = round(THUMBNAIL_WIDTH * height / width)
    return THUMBNAIL_WIDTH, max(1, new_height)


def make_thumbnail(image):
    return image.resize(thumbnail_size(*image.size), Image.LANCZOS)


def load_preview(data, size):
    """Decode *data* into a copy no larger than *size*, for on-screen display."""
    with Image.open(BytesIO(data)) as image:
        preview = image.copy()
    preview.thumbnail(size, Image.LANCZOS)
    return preview


class ImagePersister:
    """Saves one artifact (full image or thumbnail) of a selected photo."""

    def __init__(self, counters: CounterRegistry, quality: int = 90):
        self.counters = counters
        self.quality = quality

    def save(self, kind: ArtifactKind, data: bytes, title: str,
             root: str) -> SaveOutcome:
        """Decode *data*, classify *title* and write the file.

        Args:
            kind: Which artifact to produce.
            data: Raw image bytes as downloaded.
            title: Photo title, used as the file name when it is usable.
            root: Search folder; must already be provisioned.

        Returns:
            The SaveOutcome describing where the file was written.

        Raises:
            PersistenceError: The bytes could not be decoded or the file
                could not be written.
        """
        image = decode_image(data)
        if kind is ArtifactKind.THUMBNAIL:
            image = make_thumbnail(image)
        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")

        outcome = classify(kind, root, title, self.counters)
        if outcome.category is not Category.NORMAL:
            self._write(image, outcome.path, exclusive=False)
            return outcome

        try:
            self._write(image, outcome.path, exclusive=True)
        except FileExistsError:
            # Another save claimed the natural name after classification
            outcome = reserve_fallback(root, kind, Category.DUPLICATE, self.counters)
            self._write(image, outcome.path, exclusive=False)
        return outcome

    def _write(self, image, path, exclusive):
        try:
            handle = open(path, "xb" if exclusive else "wb")
        except FileExistsError:
            raise
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Could not open {path}: {e}") from e

        try:
            with handle:
                image.save(handle, format=OUTPUT_FORMAT, quality=self.quality)
        except (OSError, ValueError) as e:
            self._discard(path)
            raise PersistenceError(f"Could not write {path}: {e}") from e

    @staticmethod
    def _discard(path):
        try:
            os.remove(path)
        except OSError:
            pass
