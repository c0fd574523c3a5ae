import os

import pytest
from PIL import Image

from toss.core.caching.thumbnail_cache import ThumbnailCache, make_key
from toss.core.image_store import (
    FolderNotFoundError,
    ImageStore,
    ImageStoreError,
    image_id_for_path,
    is_supported_image,
)
from toss.core.models import Classification, OutputDirectoryMode
from toss.core.project_config import (
    add_folder,
    create_project,
    load_project,
    save_project,
)


def test_image_id_is_stable_and_short():
    first = image_id_for_path("/a/b.jpg")
    assert first == image_id_for_path("/a/b.jpg")
    assert first != image_id_for_path("/a/c.jpg")
    assert len(first) == 16


def test_is_supported_image():
    assert is_supported_image("x.JPG")
    assert is_supported_image("x.webp")
    assert not is_supported_image("x.txt")
    assert not is_supported_image("x.cr2")


def test_list_images_sorted_and_filtered(tmp_path, make_image_file):
    make_image_file("b.jpg")
    make_image_file("A.png", size=(10, 20))
    (tmp_path / "notes.txt").write_text("not an image")
    (tmp_path / "sub").mkdir()
    make_image_file("nested.jpg", folder=str(tmp_path / "sub"))

    images = ImageStore().list_images(str(tmp_path))
    assert [img.name for img in images] == ["A.png", "b.jpg"]
    assert images[0].width == 10 and images[0].height == 20
    assert images[0].size > 0


def test_list_images_missing_folder(tmp_path):
    with pytest.raises(FolderNotFoundError):
        ImageStore().list_images(str(tmp_path / "nope"))


def test_corrupt_image_listed_without_dimensions(tmp_path):
    (tmp_path / "broken.jpg").write_bytes(b"not really a jpeg")
    images = ImageStore().list_images(str(tmp_path))
    assert len(images) == 1
    assert images[0].width is None


def test_thumbnail_size_and_mode(make_image_file):
    path = make_image_file("big.jpg", size=(800, 400))
    thumb = ImageStore().get_thumbnail(path, 100)
    assert thumb.mode == "RGBA"
    assert max(thumb.size) == 100


def test_thumbnail_of_corrupt_file_raises(tmp_path):
    bad = tmp_path / "bad.png"
    bad.write_bytes(b"garbage")
    with pytest.raises(ImageStoreError):
        ImageStore().get_thumbnail(str(bad))


def test_oversized_image_maps_to_store_error(monkeypatch, make_image_file):
    path = make_image_file("huge.png", size=(100, 100))
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
    store = ImageStore()
    with pytest.raises(ImageStoreError):
        store.get_thumbnail(path)
    with pytest.raises(ImageStoreError):
        store.get_full_image(path)
    [listed] = store.list_images(os.path.dirname(path))
    assert listed.width is None and listed.height is None


def test_thumbnail_is_cached(tmp_path, make_image_file):
    path = make_image_file("c.jpg", size=(300, 300))
    cache = ThumbnailCache(cache_dir=str(tmp_path / "cache"))
    try:
        store = ImageStore(cache)
        store.get_thumbnail(path, 50)
        assert make_key(path, 50) in cache
        os.remove(path)
        # Served from the cache once the source is gone
        assert isinstance(store.get_thumbnail(path, 50), Image.Image)
    finally:
        cache.close()


def test_full_image(make_image_file):
    path = make_image_file("full.jpg", size=(30, 20))
    img = ImageStore().get_full_image(path)
    assert img.size == (30, 20)


def test_list_output_images_per_folder(tmp_path, make_image_file):
    project_path = create_project(str(tmp_path), "Proj")
    add_folder(project_path, "/photos/Beach")
    make_image_file("k1.jpg", folder=os.path.join(project_path, "Beach", "keep"))
    make_image_file("m1.jpg", folder=os.path.join(project_path, "Beach", "maybe"))

    store = ImageStore()
    assert [i.name for i in store.list_output_images(project_path, Classification.KEEP)] == ["k1.jpg"]
    assert [i.name for i in store.list_output_images(project_path, Classification.MAYBE)] == ["m1.jpg"]
    assert store.list_output_images(project_path, Classification.YEET) == []


def test_list_output_images_unified(tmp_path, make_image_file):
    project_path = create_project(str(tmp_path), "Proj")
    project = load_project(project_path)
    project.output_directory_mode = OutputDirectoryMode.UNIFIED
    save_project(project_path, project)
    make_image_file("k.jpg", folder=os.path.join(project_path, "keep"))

    images = ImageStore().list_output_images(project_path, Classification.KEEP)
    assert [i.name for i in images] == ["k.jpg"]


def test_list_output_images_bad_project(tmp_path):
    with pytest.raises(ImageStoreError):
        ImageStore().list_output_images(str(tmp_path), Classification.KEEP)
