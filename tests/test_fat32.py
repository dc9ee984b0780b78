"""Tests for the FAT32 formatter, writer and reader."""

import struct

import pytest

from xtask.services.fat32 import (
    ATTR_DIRECTORY,
    FatError,
    FatExistsError,
    FatFormatError,
    FatNotFoundError,
    FileSystem,
    FormatVolumeOptions,
    MIN_CLUSTERS,
    compute_fat_sectors,
    format_volume,
    lfn_checksum,
    short_name_for,
)

MiB = 1024 * 1024


@pytest.fixture
def image(tmp_path):
    path = tmp_path / "fat32.img"
    with open(path, "w+b") as f:
        f.truncate(64 * MiB)
        yield f


@pytest.fixture
def formatted(image):
    format_volume(image, FormatVolumeOptions(volume_label="TESTVOL", volume_id=0x1234ABCD))
    return image


def read_sector(f, lba, size=512):
    f.seek(lba * size)
    return f.read(size)


def test_format_64mib_geometry(image):
    geometry = format_volume(image)
    assert geometry.bytes_per_sector == 512
    assert geometry.sectors_per_cluster == 1
    assert geometry.total_sectors == 131072
    assert geometry.fat_count == 2
    assert geometry.cluster_count >= MIN_CLUSTERS
    # Each FAT must map every data cluster plus the two reserved entries
    assert geometry.fat_sectors * 512 // 4 >= geometry.cluster_count + 2


def test_boot_sector_fields(formatted):
    boot = read_sector(formatted, 0)
    assert boot[0:3] == b"\xEB\x58\x90"
    assert struct.unpack_from("<H", boot, 510)[0] == 0xAA55
    assert struct.unpack_from("<H", boot, 11)[0] == 512
    assert struct.unpack_from("<H", boot, 17)[0] == 0
    assert struct.unpack_from("<H", boot, 22)[0] == 0
    assert struct.unpack_from("<I", boot, 32)[0] == 131072
    assert struct.unpack_from("<I", boot, 44)[0] == 2
    assert struct.unpack_from("<I", boot, 67)[0] == 0x1234ABCD
    assert boot[71:82] == b"TESTVOL    "
    assert boot[82:90] == b"FAT32   "
    assert read_sector(formatted, 6) == boot


def test_fsinfo_and_fat_after_format(formatted):
    fsinfo = read_sector(formatted, 1)
    assert struct.unpack_from("<I", fsinfo, 0)[0] == 0x41615252
    assert struct.unpack_from("<I", fsinfo, 484)[0] == 0x61417272
    assert struct.unpack_from("<I", fsinfo, 508)[0] == 0xAA550000

    with FileSystem(formatted) as fs:
        assert struct.unpack_from("<I", fsinfo, 488)[0] == fs.geometry.cluster_count - 1
        assert fs.free_clusters == fs.geometry.cluster_count - 1
        assert fs.fat_entry(2) == 0x0FFFFFFF
        assert fs.list_dir("/") == []


def test_format_rejects_too_small_image(tmp_path):
    path = tmp_path / "small.img"
    with open(path, "w+b") as f:
        f.truncate(16 * MiB)
        with pytest.raises(FatFormatError, match="too small"):
            format_volume(f)


def test_format_rejects_tiny_image(tmp_path):
    path = tmp_path / "tiny.img"
    with open(path, "w+b") as f:
        f.truncate(4096)
        with pytest.raises(FatFormatError):
            format_volume(f)


def test_open_rejects_unformatted_image(image):
    with pytest.raises(FatFormatError):
        FileSystem(image)


def test_compute_fat_sectors_is_stable():
    fat_sectors = compute_fat_sectors(131072, 1)
    data_clusters = 131072 - 32 - 2 * fat_sectors
    assert (data_clusters + 2) * 4 <= fat_sectors * 512


def test_short_names():
    assert short_name_for("origin.bin") == b"ORIGIN  BIN"
    assert short_name_for("sbin") == b"SBIN       "
    assert short_name_for("longfilename.txt") is None
    assert short_name_for("a.tar.gz") is None


def test_lfn_checksum_depends_on_every_byte():
    assert lfn_checksum(b"ORIGIN  BIN") != lfn_checksum(b"ORIGIN  BIM")
    assert 0 <= lfn_checksum(b"SBIN       ") <= 0xFF


def test_create_dir_and_file_round_trip(formatted):
    payload = bytes(range(200))
    with FileSystem(formatted) as fs:
        fs.create_dir("sbin")
        with fs.create_file("sbin/origin.bin") as f:
            assert f.write(payload) == len(payload)

    with FileSystem(formatted) as fs:
        names = [entry.name for entry in fs.list_dir("/")]
        assert names == ["sbin"]
        sbin = fs.stat("/sbin")
        assert sbin.is_dir
        assert sbin.attributes & ATTR_DIRECTORY
        assert [entry.name for entry in fs.list_dir("/sbin")] == ["origin.bin"]
        assert fs.stat("/sbin/origin.bin").size == len(payload)
        assert fs.read_file("/sbin/origin.bin") == payload
        # FAT lookups are case-insensitive
        assert fs.read_file("/SBIN/ORIGIN.BIN") == payload


def test_lowercase_names_keep_case_through_lfn(formatted):
    with FileSystem(formatted) as fs:
        entry = fs.create_dir("sbin")
        assert entry.short_name == b"SBIN       "
        upper = fs.create_dir("BOOT")

    with FileSystem(formatted) as fs:
        assert sorted(e.name for e in fs.list_dir("/")) == ["BOOT", "sbin"]
        assert upper.short_name == b"BOOT       "


def test_dot_entries_in_subdirectory(formatted):
    with FileSystem(formatted) as fs:
        sbin = fs.create_dir("sbin")
        nested = fs.create_dir("sbin/lib")
        raw = formatted
        raw.seek(fs.cluster_offset(nested.first_cluster))
        dot, dotdot = raw.read(32), raw.read(32)
        assert dot[0:11] == b".          "
        assert struct.unpack_from("<H", dot, 26)[0] == nested.first_cluster
        assert dotdot[0:11] == b"..         "
        assert struct.unpack_from("<H", dotdot, 26)[0] == sbin.first_cluster

        raw.seek(fs.cluster_offset(sbin.first_cluster) + 32)
        root_ref = raw.read(32)
        # ".." of a root child points at cluster 0
        assert struct.unpack_from("<H", root_ref, 26)[0] == 0


def test_numeric_tail_short_names(formatted):
    with FileSystem(formatted) as fs:
        first = fs.create_file("longfilename.txt")
        second = fs.create_file("longfilename2.txt")
        assert first.size == 0
    with FileSystem(formatted) as fs:
        entries = {e.name: e.short_name for e in fs.list_dir("/")}
        assert entries["longfilename.txt"] == b"LONGFI~1TXT"
        assert entries["longfilename2.txt"] == b"LONGFI~2TXT"


def test_file_spanning_several_clusters(formatted):
    payload = bytes((i * 7) % 256 for i in range(5000))
    with FileSystem(formatted) as fs:
        with fs.create_file("big.bin") as f:
            f.write(payload[:1234])
            f.write(payload[1234:])
        chain = fs.cluster_chain(fs.stat("big.bin").first_cluster)
        assert len(chain) == 10

    with FileSystem(formatted) as fs:
        assert fs.read_file("big.bin") == payload


def test_directory_grows_past_one_cluster(formatted):
    names = [f"file-number-{i:03d}.dat" for i in range(40)]
    with FileSystem(formatted) as fs:
        fs.create_dir("many")
        for name in names:
            with fs.create_file(f"many/{name}") as f:
                f.write(name.encode())

    with FileSystem(formatted) as fs:
        listed = [entry.name for entry in fs.list_dir("/many")]
        assert listed == names
        assert len(fs.cluster_chain(fs.stat("many").first_cluster)) > 1
        assert fs.read_file("many/file-number-039.dat") == b"file-number-039.dat"


def test_duplicate_names_are_rejected(formatted):
    with FileSystem(formatted) as fs:
        fs.create_dir("sbin")
        with pytest.raises(FatExistsError):
            fs.create_dir("SBIN")
        with pytest.raises(FatExistsError):
            fs.create_file("sbin")


def test_missing_parent_is_rejected(formatted):
    with FileSystem(formatted) as fs:
        with pytest.raises(FatNotFoundError):
            fs.create_file("nowhere/origin.bin")
        with pytest.raises(FatNotFoundError):
            fs.read_file("origin.bin")


def test_close_updates_both_fats_and_fsinfo(formatted):
    with FileSystem(formatted) as fs:
        fs.create_dir("sbin")
        with fs.create_file("sbin/origin.bin") as f:
            f.write(b"\x10" * 64)
        free_after = fs.free_clusters
        geometry = fs.geometry

    fat_bytes = geometry.fat_sectors * 512
    formatted.seek(32 * 512)
    first = formatted.read(fat_bytes)
    second = formatted.read(fat_bytes)
    assert first == second

    fsinfo = read_sector(formatted, 1)
    assert struct.unpack_from("<I", fsinfo, 488)[0] == free_after == geometry.cluster_count - 3
    assert read_sector(formatted, 7) == fsinfo


def test_closed_filesystem_rejects_writes(formatted):
    fs = FileSystem(formatted)
    fs.close()
    with pytest.raises(FatError):
        fs.create_dir("late")
