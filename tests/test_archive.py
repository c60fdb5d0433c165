"""Tests for the archive codec."""

import io
import zipfile

import pytest
from module_lifecycle import ArchiveNotFoundError
from module_lifecycle import ModuleError
from module_lifecycle import ModuleManifest
from module_lifecycle import find_archive
from module_lifecycle import pack_archive
from module_lifecycle import resolve_path_set
from module_lifecycle import unpack_archive
from module_lifecycle import write_archive
from module_lifecycle.archive import archive_filename
from module_lifecycle.archive import legacy_archive_filenames
from module_lifecycle.archive import remove_stale_archives


@pytest.fixture
def resolved(tmp_path, write_file):
    root = tmp_path / "repo"
    write_file(root, "modules/sample/module.manifest.json", '{"name": "sample"}')
    write_file(root, "modules/sample/.tasks.ps1", "task body")
    write_file(root, "modules/sample/lib/helpers.ps1", "helpers")
    manifest = ModuleManifest.model_validate(
        {
            "name": "sample",
            "version": "0.2.0",
            "include": ["modules/sample/module.manifest.json", "modules/sample/lib", "modules/sample/.tasks.ps1"],
        }
    )
    return resolve_path_set(manifest, root)


def test_archive_filenames():
    """Test current and legacy archive names."""
    assert archive_filename("sample", "0.2.0") == "sample.0.2.0.zip"
    assert legacy_archive_filenames("0.2.0") == ["Module.0.2.0.zip", "Module.zip"]
    assert legacy_archive_filenames(None) == ["Module.zip"]


def test_pack_entries_sorted_with_forward_slashes(resolved):
    """Test one entry per resolved file, in sorted order."""
    with zipfile.ZipFile(io.BytesIO(pack_archive(resolved))) as archive:
        names = archive.namelist()
        assert archive.read("modules/sample/.tasks.ps1") == b"task body"

    assert names == [
        "modules/sample/.tasks.ps1",
        "modules/sample/lib/helpers.ps1",
        "modules/sample/module.manifest.json",
    ]


def test_pack_is_deterministic(resolved):
    """Test packing an unchanged tree twice yields identical bytes."""
    first = pack_archive(resolved)
    # Touch mtimes; archive timestamps are fixed
    for relative in resolved.files:
        path = resolved.root / relative
        path.write_bytes(path.read_bytes())

    second = pack_archive(resolved)

    assert first == second


def test_pack_unpack_restores_content(resolved, tmp_path):
    """Test unpacking restores byte-identical content at every path."""
    archive_path = write_archive(resolved, tmp_path / "dist" / "sample.0.2.0.zip")
    staging = tmp_path / "staging"
    staging.mkdir()

    extracted = unpack_archive(archive_path, staging)

    assert extracted == resolved.files
    for relative in resolved.files:
        assert (staging / relative).read_bytes() == (resolved.root / relative).read_bytes()


def test_unpack_normalizes_backslash_entries(tmp_path):
    """Test archives written with Windows separators extract into directories."""
    archive_path = tmp_path / "Module.zip"
    with zipfile.ZipFile(archive_path, "w") as archive:
        archive.writestr("modules\\sample\\.tasks.ps1", "task")
        archive.writestr("modules/sample/", "")
    staging = tmp_path / "staging"
    staging.mkdir()

    extracted = unpack_archive(archive_path, staging)

    assert extracted == ["modules/sample/.tasks.ps1"]
    assert (staging / "modules" / "sample" / ".tasks.ps1").read_text() == "task"


def test_unpack_skips_root_entry(tmp_path):
    """Test an entry naming the archive root is skipped like a directory."""
    archive_path = tmp_path / "Module.zip"
    with zipfile.ZipFile(archive_path, "w") as archive:
        archive.writestr(".", "")
        archive.writestr("modules/sample/.tasks.ps1", "task")
    staging = tmp_path / "staging"
    staging.mkdir()

    extracted = unpack_archive(archive_path, staging)

    assert extracted == ["modules/sample/.tasks.ps1"]


def test_unpack_rejects_escaping_entries(tmp_path):
    """Test entries that would land outside the staging root are refused."""
    archive_path = tmp_path / "evil.zip"
    with zipfile.ZipFile(archive_path, "w") as archive:
        archive.writestr("../outside.txt", "nope")
    staging = tmp_path / "staging"
    staging.mkdir()

    with pytest.raises(ModuleError, match="escapes the extraction root"):
        unpack_archive(archive_path, staging)

    assert not (tmp_path / "outside.txt").exists()


def test_unpack_corrupt_archive(tmp_path):
    """Test a non-zip file is reported as a ModuleError."""
    archive_path = tmp_path / "sample.0.2.0.zip"
    archive_path.write_text("not a zip")

    with pytest.raises(ModuleError, match="not a valid zip"):
        unpack_archive(archive_path, tmp_path)


def test_find_archive_prefers_current_name(tmp_path):
    """Test lookup order: current name, then legacy names."""
    (tmp_path / "Module.zip").write_bytes(b"")
    assert find_archive(tmp_path, "sample", "0.2.0") == tmp_path / "Module.zip"

    (tmp_path / "Module.0.2.0.zip").write_bytes(b"")
    assert find_archive(tmp_path, "sample", "0.2.0") == tmp_path / "Module.0.2.0.zip"

    (tmp_path / "sample.0.2.0.zip").write_bytes(b"")
    assert find_archive(tmp_path, "sample", "0.2.0") == tmp_path / "sample.0.2.0.zip"


def test_find_archive_missing(tmp_path):
    """Test a missing archive names the requested coordinates."""
    with pytest.raises(ArchiveNotFoundError) as exc_info:
        find_archive(tmp_path, "sample", "0.2.0")

    assert exc_info.value.context == {"name": "sample", "version": "0.2.0", "dist_dir": str(tmp_path)}


def test_remove_stale_archives(tmp_path):
    """Test previous and legacy archives are deleted, others kept."""
    for filename in ["sample.0.2.0.zip", "Module.zip", "Module.0.2.0.zip", "sample.0.1.0.zip"]:
        (tmp_path / filename).write_bytes(b"")

    removed = remove_stale_archives(tmp_path, "sample", "0.2.0")

    assert sorted(p.name for p in removed) == ["Module.0.2.0.zip", "Module.zip", "sample.0.2.0.zip"]
    assert [p.name for p in tmp_path.iterdir()] == ["sample.0.1.0.zip"]
