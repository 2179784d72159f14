import os

import pytest
from PIL import Image

from conftest import image_bytes
from image_store import (
    ImagePersister, PersistenceError, ensure_tree, load_preview, thumbnail_size,
    tree_paths,
)
from naming import ArtifactKind, Category


def list_dirs(root):
    found = [root]
    for dirpath, dirnames, _ in os.walk(root):
        found.extend(os.path.join(dirpath, d) for d in dirnames)
    return sorted(found)


@pytest.fixture
def root(tmp_path):
    path = str(tmp_path / "sunset")
    ensure_tree(path)
    return path


@pytest.fixture
def persister(counters):
    return ImagePersister(counters)


class TestEnsureTree:
    def test_creates_eight_directories(self, tmp_path):
        root = str(tmp_path / "sunset")
        assert ensure_tree(root) is True
        assert list_dirs(root) == sorted(tree_paths(root))
        assert len(tree_paths(root)) == 8
        for name in ("InvalidPathCharacters", "InvalidNames", "DuplicateNames"):
            assert os.path.isdir(os.path.join(root, name, "Thumbnails"))
        assert os.path.isdir(os.path.join(root, "Thumbnails"))

    def test_idempotent(self, tmp_path):
        root = str(tmp_path / "sunset")
        ensure_tree(root)
        assert ensure_tree(root) is False
        assert list_dirs(root) == sorted(tree_paths(root))

    def test_existing_root_is_trusted(self, tmp_path):
        root = tmp_path / "sunset"
        root.mkdir()
        assert ensure_tree(str(root)) is False
        assert not (root / "Thumbnails").exists()

    def test_tag_with_spaces_used_verbatim(self, tmp_path):
        root = str(tmp_path / "red sunset")
        ensure_tree(root)
        assert os.path.isdir(os.path.join(root, "DuplicateNames"))


@pytest.mark.parametrize("size,expected", [
    ((400, 300), (200, 150)),
    ((640, 427), (200, 133)),
    ((333, 100), (200, 60)),
    ((100, 400), (200, 800)),
    ((200, 200), (200, 200)),
    ((10000, 10), (200, 1)),
])
def test_thumbnail_size(size, expected):
    assert thumbnail_size(*size) == expected


@pytest.mark.parametrize("size,expected", [
    ((960, 720), (480, 360)),
    ((1000, 200), (480, 96)),
    ((300, 200), (300, 200)),
])
def test_load_preview_fits_box(size, expected):
    preview = load_preview(image_bytes(*size), (480, 360))
    assert preview.size == expected
    # Independent of the decoder, so it can outlive the source bytes
    assert getattr(preview, "fp", None) is None


class TestSave:
    def test_full_image_normal(self, root, persister, photo_bytes):
        outcome = persister.save(ArtifactKind.FULL, photo_bytes, "beach", root)
        assert outcome.category is Category.NORMAL
        assert outcome.path == os.path.join(root, "beach.jpg")
        with Image.open(outcome.path) as img:
            assert img.format == "JPEG"
            assert img.size == (400, 300)

    @pytest.mark.parametrize("size", [(400, 300), (640, 427), (123, 456)])
    def test_thumbnail_keeps_aspect_ratio(self, root, persister, size):
        data = image_bytes(*size)
        outcome = persister.save(ArtifactKind.THUMBNAIL, data, "beach", root)
        assert outcome.path == os.path.join(root, "Thumbnails", "T_beach.jpg")
        with Image.open(outcome.path) as img:
            width, height = img.size
        assert width == 200
        assert abs(height - 200 * size[1] / size[0]) <= 1

    def test_second_save_is_duplicate(self, root, persister, photo_bytes):
        persister.save(ArtifactKind.FULL, photo_bytes, "beach", root)
        outcome = persister.save(ArtifactKind.FULL, photo_bytes, "beach", root)
        assert outcome.category is Category.DUPLICATE
        assert outcome.path == os.path.join(root, "DuplicateNames", "untitled0.jpg")
        assert os.path.isfile(outcome.path)

    def test_invalid_name(self, root, persister, photo_bytes):
        outcome = persister.save(ArtifactKind.THUMBNAIL, photo_bytes, "", root)
        assert outcome.category is Category.INVALID_NAME
        assert outcome.path == os.path.join(
            root, "InvalidNames", "Thumbnails", "T_untitled0.jpg")
        assert os.path.isfile(outcome.path)

    def test_unencodable_title_goes_to_invalid_names(self, root, persister, photo_bytes):
        outcome = persister.save(ArtifactKind.FULL, photo_bytes, "bad\ud800name", root)
        assert outcome.category is Category.INVALID_NAME
        assert outcome.path == os.path.join(root, "InvalidNames", "untitled0.jpg")
        assert os.path.isfile(outcome.path)

    def test_unencodable_root_is_persistence_error(self, persister, photo_bytes):
        with pytest.raises(PersistenceError):
            persister.save(ArtifactKind.FULL, photo_bytes, "beach", "sunset\ud800")

    def test_transparent_png_is_converted(self, root, persister):
        data = image_bytes(50, 50, mode="RGBA")
        outcome = persister.save(ArtifactKind.FULL, data, "alpha", root)
        with Image.open(outcome.path) as img:
            assert img.mode == "RGB"

    def test_lost_race_for_natural_name_becomes_duplicate(
            self, root, persister, photo_bytes, monkeypatch):
        import image_store

        natural = os.path.join(root, "beach.jpg")
        real_classify = image_store.classify

        def classify_then_collide(kind, root_, title, counters):
            outcome = real_classify(kind, root_, title, counters)
            open(natural, "wb").close()
            return outcome

        monkeypatch.setattr(image_store, "classify", classify_then_collide)
        outcome = persister.save(ArtifactKind.FULL, photo_bytes, "beach", root)
        assert outcome.category is Category.DUPLICATE
        assert os.path.getsize(natural) == 0

    def test_undecodable_bytes(self, root, persister):
        with pytest.raises(PersistenceError):
            persister.save(ArtifactKind.FULL, b"not an image", "beach", root)
        assert not os.path.exists(os.path.join(root, "beach.jpg"))

    def test_missing_folder_is_persistence_error(self, tmp_path, persister, photo_bytes):
        root = str(tmp_path / "never-provisioned")
        with pytest.raises(PersistenceError):
            persister.save(ArtifactKind.FULL, photo_bytes, "beach", root)

    def test_encode_failure_removes_partial_file(self, root, persister, photo_bytes,
                                                 monkeypatch):
        def broken_save(self, fp, *args, **kwargs):
            fp.write(b"partial")
            raise OSError("disk full")

        monkeypatch.setattr(Image.Image, "save", broken_save)
        with pytest.raises(PersistenceError, match="disk full"):
            persister.save(ArtifactKind.FULL, photo_bytes, "beach", root)
        assert not os.path.exists(os.path.join(root, "beach.jpg"))
