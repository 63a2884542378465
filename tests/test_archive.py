"""Tests for archive naming and bundling."""
import io
import zipfile

import pytest

from cloudscale.exceptions import ArchiveError
from cloudscale.services.archive import ArchiveBuilder, archive_name, upscaled_name


@pytest.mark.parametrize(
    "filename, expected",
    [
        ("photo.jpg", "photo_upscaled.jpg"),
        ("a.b.jpg", "a.b_upscaled.jpg"),
        ("noext", "noext_upscaled.jpg"),
        ("Scan.PNG", "Scan_upscaled.png"),
    ],
)
def test_upscaled_name(filename, expected):
    assert upscaled_name(filename) == expected


def test_archive_name():
    assert archive_name("holiday") == "holiday_upscaled.zip"
    assert archive_name("") == "images_upscaled.zip"


class TestArchiveBuilder:
    def test_finalize_bundles_entries(self):
        builder = ArchiveBuilder()
        builder.add("a_upscaled.jpg", b"aaaa" * 100)
        builder.add("b_upscaled.png", b"bbbb")

        artifact = builder.finalize("holiday")

        assert artifact.name == "holiday_upscaled.zip"
        assert artifact.entry_count == 2
        with zipfile.ZipFile(io.BytesIO(artifact.data)) as bundle:
            assert sorted(bundle.namelist()) == ["a_upscaled.jpg", "b_upscaled.png"]
            assert bundle.read("b_upscaled.png") == b"bbbb"
            assert bundle.getinfo("a_upscaled.jpg").compress_type == zipfile.ZIP_DEFLATED

    def test_repeated_name_replaces_entry(self):
        builder = ArchiveBuilder()
        builder.add("x.jpg", b"old")
        builder.add("x.jpg", b"new")

        assert len(builder) == 1
        assert builder.entries[0].data == b"new"

    def test_empty_archive_raises(self):
        with pytest.raises(ArchiveError):
            ArchiveBuilder().finalize("holiday")

    def test_artifact_save(self, tmp_path):
        builder = ArchiveBuilder()
        builder.add("x.jpg", b"data")
        artifact = builder.finalize("set")

        saved = artifact.save(tmp_path / "out")

        assert saved == tmp_path / "out" / "set_upscaled.zip"
        assert saved.read_bytes() == artifact.data
