"""
FAT32 volume formatter, writer and reader

Works on any seekable binary file object holding a "superfloppy" image (boot
sector at LBA 0, no partition table). Layout written by format_volume():

    LBA 0            boot sector (BPB + FAT32 extended BPB)
    LBA 1            FSInfo
    LBA 6, 7         backup boot sector, backup FSInfo
    LBA 32           FAT #1, followed by FAT #2
    data region      cluster 2 holds the root directory

FileSystem keeps the FAT in memory; close() writes it back to every FAT copy
and refreshes FSInfo. Use it as a context manager so that happens on every
exit path.
"""
import struct
from dataclasses import dataclass
from datetime import datetime
from typing import BinaryIO, Iterator, List, Optional, Tuple


SECTOR_SIZE = 512
RESERVED_SECTORS = 32
FAT_COUNT = 2
MEDIA_DESCRIPTOR = 0xF8
ROOT_CLUSTER = 2
FSINFO_SECTOR = 1
BACKUP_BOOT_SECTOR = 6
DIR_ENTRY_SIZE = 32

# FAT32 needs at least this many data clusters, otherwise readers detect FAT12/16
MIN_CLUSTERS = 65525
MAX_CLUSTERS = 0x0FFFFFF5

FAT_ENTRY_MASK = 0x0FFFFFFF
END_OF_CHAIN = 0x0FFFFFFF
BAD_CLUSTER = 0x0FFFFFF7

ATTR_READ_ONLY = 0x01
ATTR_HIDDEN = 0x02
ATTR_SYSTEM = 0x04
ATTR_VOLUME_ID = 0x08
ATTR_DIRECTORY = 0x10
ATTR_ARCHIVE = 0x20
ATTR_LONG_NAME = 0x0F

FSINFO_LEAD_SIG = 0x41615252
FSINFO_STRUCT_SIG = 0x61417272
FSINFO_TRAIL_SIG = 0xAA550000
FSINFO_UNKNOWN = 0xFFFFFFFF

LFN_CHARS_PER_ENTRY = 13
LFN_LAST_ENTRY = 0x40
DELETED_MARK = 0xE5

SHORT_NAME_CHARS = set("ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_$~!#%&-{}()@'^`")

# (max total sectors, sectors per cluster) for 512-byte sectors
CLUSTER_SIZE_TABLE = (
    (532480, 1),       # up to 260 MiB
    (16777216, 8),     # up to 8 GiB
    (33554432, 16),    # up to 16 GiB
    (67108864, 32),    # up to 32 GiB
    (0xFFFFFFFF, 64),
)


class FatError(Exception):
    """Base error for FAT volume operations"""


class FatFormatError(FatError):
    """The volume cannot be formatted (or is not a FAT32 volume)"""


class FatNotFoundError(FatError):
    pass


class FatExistsError(FatError):
    pass


class FatNoSpaceError(FatError):
    pass


@dataclass
class FormatVolumeOptions:
    """Options for format_volume(); None means derive from the image size"""
    volume_label: str = "NO NAME"
    volume_id: Optional[int] = None
    bytes_per_sector: int = SECTOR_SIZE
    sectors_per_cluster: Optional[int] = None
    total_sectors: Optional[int] = None
    oem_name: str = "MSWIN4.1"


@dataclass
class VolumeGeometry:
    bytes_per_sector: int
    sectors_per_cluster: int
    reserved_sectors: int
    fat_count: int
    fat_sectors: int
    total_sectors: int
    root_cluster: int = ROOT_CLUSTER

    @property
    def data_start_sector(self) -> int:
        return self.reserved_sectors + self.fat_count * self.fat_sectors

    @property
    def cluster_count(self) -> int:
        return (self.total_sectors - self.data_start_sector) // self.sectors_per_cluster

    @property
    def cluster_size(self) -> int:
        return self.bytes_per_sector * self.sectors_per_cluster


@dataclass
class DirEntry:
    name: str
    short_name: bytes
    attributes: int
    first_cluster: int
    size: int
    offset: int  # absolute byte offset of the 8.3 entry inside the image

    @property
    def is_dir(self) -> bool:
        return bool(self.attributes & ATTR_DIRECTORY)


def default_sectors_per_cluster(total_sectors: int, bytes_per_sector: int = SECTOR_SIZE) -> int:
    # The table is defined for 512-byte sectors; scale for larger ones
    scale = max(1, bytes_per_sector // SECTOR_SIZE)
    for limit, spc in CLUSTER_SIZE_TABLE:
        if total_sectors * scale <= limit:
            return max(1, spc // scale)
    return 1


def compute_fat_sectors(total_sectors: int, sectors_per_cluster: int,
                        bytes_per_sector: int = SECTOR_SIZE,
                        reserved_sectors: int = RESERVED_SECTORS,
                        fat_count: int = FAT_COUNT) -> int:
    """Smallest FAT size (in sectors) able to map every data cluster"""
    fat_sectors = 1
    while True:
        data_sectors = total_sectors - reserved_sectors - fat_count * fat_sectors
        if data_sectors <= 0:
            return fat_sectors
        cluster_count = data_sectors // sectors_per_cluster
        needed_bytes = (cluster_count + 2) * 4
        new_fat_sectors = (needed_bytes + bytes_per_sector - 1) // bytes_per_sector
        if new_fat_sectors <= fat_sectors:
            return fat_sectors
        fat_sectors = new_fat_sectors


def plan_geometry(image_size: int, options: FormatVolumeOptions) -> VolumeGeometry:
    """Choose a consistent FAT32 layout for an image of ``image_size`` bytes"""
    bps = options.bytes_per_sector
    if bps not in (512, 1024, 2048, 4096):
        raise FatFormatError(f"unsupported sector size: {bps}")

    total_sectors = options.total_sectors if options.total_sectors is not None else image_size // bps
    if total_sectors * bps > image_size:
        raise FatFormatError(
            f"volume of {total_sectors} sectors does not fit in a {image_size}-byte image")
    if total_sectors > 0xFFFFFFFF:
        raise FatFormatError("volume too large for FAT32")

    spc = options.sectors_per_cluster or default_sectors_per_cluster(total_sectors, bps)
    if spc not in (1, 2, 4, 8, 16, 32, 64, 128) or spc * bps > 32 * 1024:
        raise FatFormatError(f"invalid sectors per cluster: {spc}")

    fat_sectors = compute_fat_sectors(total_sectors, spc, bps)
    geometry = VolumeGeometry(
        bytes_per_sector=bps,
        sectors_per_cluster=spc,
        reserved_sectors=RESERVED_SECTORS,
        fat_count=FAT_COUNT,
        fat_sectors=fat_sectors,
        total_sectors=total_sectors,
    )
    if total_sectors <= geometry.data_start_sector or geometry.cluster_count < MIN_CLUSTERS:
        raise FatFormatError(
            f"{image_size} bytes is too small for FAT32: {max(geometry.cluster_count, 0)} clusters "
            f"of {geometry.cluster_size} bytes, at least {MIN_CLUSTERS} required")
    if geometry.cluster_count > MAX_CLUSTERS:
        raise FatFormatError("too many clusters for FAT32, use a larger cluster size")
    return geometry


def _pad_label(label: str) -> bytes:
    raw = label.upper().encode("ascii", errors="replace")[:11]
    return raw.ljust(11, b" ")


def _build_boot_sector(geometry: VolumeGeometry, options: FormatVolumeOptions, volume_id: int) -> bytes:
    boot = bytearray(geometry.bytes_per_sector)
    boot[0:3] = b"\xEB\x58\x90"
    boot[3:11] = options.oem_name.encode("ascii", errors="replace")[:8].ljust(8, b" ")
    struct.pack_into("<H", boot, 11, geometry.bytes_per_sector)
    boot[13] = geometry.sectors_per_cluster
    struct.pack_into("<H", boot, 14, geometry.reserved_sectors)
    boot[16] = geometry.fat_count
    struct.pack_into("<H", boot, 17, 0)  # root entries, always 0 on FAT32
    struct.pack_into("<H", boot, 19, 0)  # total sectors 16, use the 32-bit field
    boot[21] = MEDIA_DESCRIPTOR
    struct.pack_into("<H", boot, 22, 0)  # FAT size 16
    struct.pack_into("<H", boot, 24, 32)  # sectors per track
    struct.pack_into("<H", boot, 26, 64)  # heads
    struct.pack_into("<I", boot, 28, 0)  # hidden sectors
    struct.pack_into("<I", boot, 32, geometry.total_sectors)
    struct.pack_into("<I", boot, 36, geometry.fat_sectors)
    struct.pack_into("<H", boot, 40, 0)  # mirror FAT to all copies
    struct.pack_into("<H", boot, 42, 0)  # version 0.0
    struct.pack_into("<I", boot, 44, geometry.root_cluster)
    struct.pack_into("<H", boot, 48, FSINFO_SECTOR)
    struct.pack_into("<H", boot, 50, BACKUP_BOOT_SECTOR)
    boot[64] = 0x80  # drive number
    boot[66] = 0x29  # extended boot signature
    struct.pack_into("<I", boot, 67, volume_id)
    boot[71:82] = _pad_label(options.volume_label)
    boot[82:90] = b"FAT32   "
    struct.pack_into("<H", boot, 510, 0xAA55)
    return bytes(boot)


def _build_fsinfo(bytes_per_sector: int, free_count: int, next_free: int) -> bytes:
    fsinfo = bytearray(bytes_per_sector)
    struct.pack_into("<I", fsinfo, 0, FSINFO_LEAD_SIG)
    struct.pack_into("<I", fsinfo, 484, FSINFO_STRUCT_SIG)
    struct.pack_into("<I", fsinfo, 488, free_count & 0xFFFFFFFF)
    struct.pack_into("<I", fsinfo, 492, next_free & 0xFFFFFFFF)
    struct.pack_into("<I", fsinfo, 508, FSINFO_TRAIL_SIG)
    return bytes(fsinfo)


def _fat_timestamp(moment: datetime) -> Tuple[int, int]:
    year = min(max(moment.year, 1980), 2107)
    date = ((year - 1980) << 9) | (moment.month << 5) | moment.day
    time = (moment.hour << 11) | (moment.minute << 5) | (moment.second // 2)
    return date, time


def format_volume(fileobj: BinaryIO, options: Optional[FormatVolumeOptions] = None) -> VolumeGeometry:
    """
    Write an empty FAT32 filesystem into ``fileobj``.

    The file must already have its final size. Every metadata region the
    volume uses (reserved area, both FATs, the root directory cluster) is
    rewritten, so prior content does not matter.

    Raises:
        FatFormatError: the image is too small or the options are inconsistent
    """
    options = options or FormatVolumeOptions()
    fileobj.seek(0, 2)
    image_size = fileobj.tell()
    geometry = plan_geometry(image_size, options)

    if options.volume_id is not None:
        volume_id = options.volume_id & 0xFFFFFFFF
    else:
        date, time = _fat_timestamp(datetime.now())
        volume_id = (date << 16) | time

    bps = geometry.bytes_per_sector
    boot = _build_boot_sector(geometry, options, volume_id)
    # Root directory occupies cluster 2 from the start
    fsinfo = _build_fsinfo(bps, geometry.cluster_count - 1, geometry.root_cluster + 1)

    reserved = bytearray(geometry.reserved_sectors * bps)
    reserved[0:bps] = boot
    reserved[FSINFO_SECTOR * bps:(FSINFO_SECTOR + 1) * bps] = fsinfo
    reserved[BACKUP_BOOT_SECTOR * bps:(BACKUP_BOOT_SECTOR + 1) * bps] = boot
    reserved[(BACKUP_BOOT_SECTOR + 1) * bps:(BACKUP_BOOT_SECTOR + 2) * bps] = fsinfo
    fileobj.seek(0)
    fileobj.write(reserved)

    fat = bytearray(geometry.fat_sectors * bps)
    struct.pack_into("<I", fat, 0, 0x0FFFFF00 | MEDIA_DESCRIPTOR)
    struct.pack_into("<I", fat, 4, END_OF_CHAIN)
    struct.pack_into("<I", fat, geometry.root_cluster * 4, END_OF_CHAIN)
    for index in range(geometry.fat_count):
        fileobj.seek((geometry.reserved_sectors + index * geometry.fat_sectors) * bps)
        fileobj.write(fat)

    root = bytearray(geometry.cluster_size)
    label = _pad_label(options.volume_label)
    if label != b"NO NAME    ":
        root[0:11] = label
        root[11] = ATTR_VOLUME_ID
        date, time = _fat_timestamp(datetime.now())
        struct.pack_into("<HH", root, 22, time, date)
    fileobj.seek(geometry.data_start_sector * bps)
    fileobj.write(root)
    fileobj.flush()
    return geometry


def lfn_checksum(short_name: bytes) -> int:
    total = 0
    for byte in short_name:
        total = (((total & 1) << 7) + (total >> 1) + byte) & 0xFF
    return total


def _split_name(name: str) -> Tuple[str, str]:
    if name.startswith(".") or "." not in name:
        return name, ""
    base, ext = name.rsplit(".", 1)
    return base, ext


def short_name_for(name: str) -> Optional[bytes]:
    """Exact 8.3 encoding of ``name`` (case-insensitively), or None if it does not fit"""
    base, ext = _split_name(name.upper())
    if not (1 <= len(base) <= 8 and len(ext) <= 3):
        return None
    if any(c not in SHORT_NAME_CHARS for c in base + ext):
        return None
    return (base.ljust(8) + ext.ljust(3)).encode("ascii")


def display_short_name(raw: bytes, case_flags: int = 0) -> str:
    base = raw[0:8].decode("ascii", errors="replace").rstrip()
    ext = raw[8:11].decode("ascii", errors="replace").rstrip()
    if base.startswith("\x05"):
        base = "\xe5" + base[1:]
    # Windows NT lowercase flags
    if case_flags & 0x08:
        base = base.lower()
    if case_flags & 0x10:
        ext = ext.lower()
    return f"{base}.{ext}" if ext else base


def _basis_name(name: str) -> Tuple[str, str]:
    def clean(text: str) -> str:
        return "".join(c if c in SHORT_NAME_CHARS else "_" for c in text.replace(" ", "").replace(".", ""))

    base, ext = _split_name(name.upper().strip(". "))
    return clean(base) or "_", clean(ext)[:3]


def _build_lfn_entries(name: str, short_name: bytes) -> List[bytes]:
    """LFN slots in on-disk order (highest sequence number first)"""
    units = name.encode("utf-16-le")
    chars = [units[i:i + 2] for i in range(0, len(units), 2)]
    if len(chars) > 255:
        raise FatError(f"file name too long: {name}")
    count = (len(chars) + LFN_CHARS_PER_ENTRY - 1) // LFN_CHARS_PER_ENTRY
    padded = chars + [b"\x00\x00"]
    padded += [b"\xff\xff"] * (count * LFN_CHARS_PER_ENTRY - len(padded))
    padded = padded[:count * LFN_CHARS_PER_ENTRY]
    checksum = lfn_checksum(short_name)

    entries = []
    for seq in range(count, 0, -1):
        part = padded[(seq - 1) * LFN_CHARS_PER_ENTRY:seq * LFN_CHARS_PER_ENTRY]
        entry = bytearray(DIR_ENTRY_SIZE)
        entry[0] = seq | (LFN_LAST_ENTRY if seq == count else 0)
        entry[1:11] = b"".join(part[0:5])
        entry[11] = ATTR_LONG_NAME
        entry[12] = 0
        entry[13] = checksum
        entry[14:26] = b"".join(part[5:11])
        struct.pack_into("<H", entry, 26, 0)
        entry[28:32] = b"".join(part[11:13])
        entries.append(bytes(entry))
    return entries


def _decode_lfn_part(entry: bytes) -> str:
    raw = entry[1:11] + entry[14:26] + entry[28:32]
    text = raw.decode("utf-16-le", errors="replace")
    end = text.find("\x00")
    return text if end < 0 else text[:end]


class FatFile:
    """Handle on a regular file inside a FileSystem"""

    def __init__(self, fs: "FileSystem", entry: DirEntry):
        self._fs = fs
        self._entry = entry
        self._first_cluster = entry.first_cluster
        self._size = entry.size
        self._pos = 0
        self._chain: Optional[List[int]] = None
        self._dirty = False

    @property
    def size(self) -> int:
        return self._size

    def _clusters(self) -> List[int]:
        if self._chain is None:
            self._chain = self._fs.cluster_chain(self._first_cluster) if self._first_cluster else []
        return self._chain

    def _cluster_at(self, index: int) -> int:
        chain = self._clusters()
        while len(chain) <= index:
            cluster = self._fs.allocate_cluster(prev=chain[-1] if chain else None)
            if not chain:
                self._first_cluster = cluster
            chain.append(cluster)
        return chain[index]

    def write(self, data: bytes) -> int:
        data = bytes(data)
        cluster_size = self._fs.geometry.cluster_size
        written = 0
        while written < len(data):
            index, offset = divmod(self._pos, cluster_size)
            cluster = self._cluster_at(index)
            count = min(cluster_size - offset, len(data) - written)
            self._fs.write_at(self._fs.cluster_offset(cluster) + offset, data[written:written + count])
            written += count
            self._pos += count
        self._size = max(self._size, self._pos)
        self._dirty = True
        return written

    def read(self, size: int = -1) -> bytes:
        remaining = self._size - self._pos
        if size < 0 or size > remaining:
            size = max(remaining, 0)
        cluster_size = self._fs.geometry.cluster_size
        chunks = []
        while size > 0:
            index, offset = divmod(self._pos, cluster_size)
            chain = self._clusters()
            if index >= len(chain):
                raise FatError(f"file size {self._size} exceeds its cluster chain")
            cluster = chain[index]
            count = min(cluster_size - offset, size)
            chunks.append(self._fs.read_at(self._fs.cluster_offset(cluster) + offset, count))
            self._pos += count
            size -= count
        return b"".join(chunks)

    def flush(self) -> None:
        """Commit size and first cluster to the directory entry"""
        if not self._dirty:
            return
        self._fs.update_entry(self._entry, first_cluster=self._first_cluster, size=self._size)
        self._dirty = False

    def close(self) -> None:
        self.flush()

    def __enter__(self) -> "FatFile":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class FileSystem:
    """
    An open FAT32 volume.

    Args:
        fileobj: Seekable binary file opened for reading (and writing, to modify)
        timestamp: Time recorded on new entries, defaults to now
    """

    def __init__(self, fileobj: BinaryIO, timestamp: Optional[datetime] = None):
        self._file = fileobj
        self._timestamp = timestamp
        self._closed = False
        self.geometry = self._read_boot_sector()
        self._fat = bytearray(self.read_at(
            self.geometry.reserved_sectors * self.geometry.bytes_per_sector,
            self.geometry.fat_sectors * self.geometry.bytes_per_sector))
        self._fat_dirty = False
        self._free_count = sum(
            1 for (value,) in struct.iter_unpack("<I", self._fat[8:(self.geometry.cluster_count + 2) * 4])
            if value & FAT_ENTRY_MASK == 0)
        self._next_free = self._read_next_free_hint()

    def _read_boot_sector(self) -> VolumeGeometry:
        boot = self.read_at(0, SECTOR_SIZE)
        if len(boot) < SECTOR_SIZE or struct.unpack_from("<H", boot, 510)[0] != 0xAA55:
            raise FatFormatError("missing boot sector signature")
        bps, spc, reserved, fat_count, root_entries, total16, _, fat16 = struct.unpack_from("<HBHBHHBH", boot, 11)
        total32, fat32, _, _, root_cluster = struct.unpack_from("<IIHHI", boot, 32)
        if bps not in (512, 1024, 2048, 4096) or spc == 0 or spc & (spc - 1):
            raise FatFormatError("invalid BIOS parameter block")
        if root_entries != 0 or fat16 != 0 or fat32 == 0:
            raise FatFormatError("not a FAT32 volume")
        geometry = VolumeGeometry(
            bytes_per_sector=bps,
            sectors_per_cluster=spc,
            reserved_sectors=reserved,
            fat_count=fat_count,
            fat_sectors=fat32,
            total_sectors=total32 or total16,
            root_cluster=root_cluster,
        )
        if geometry.cluster_count < MIN_CLUSTERS:
            raise FatFormatError(f"not a FAT32 volume: only {geometry.cluster_count} clusters")
        return geometry

    def _read_next_free_hint(self) -> int:
        fsinfo = self.read_at(FSINFO_SECTOR * self.geometry.bytes_per_sector, SECTOR_SIZE)
        if (len(fsinfo) == SECTOR_SIZE
                and struct.unpack_from("<I", fsinfo, 0)[0] == FSINFO_LEAD_SIG
                and struct.unpack_from("<I", fsinfo, 484)[0] == FSINFO_STRUCT_SIG):
            hint = struct.unpack_from("<I", fsinfo, 492)[0]
            if 2 <= hint <= self.max_cluster:
                return hint
        return 2

    # ---- raw I/O ----

    def read_at(self, offset: int, size: int) -> bytes:
        self._file.seek(offset)
        return self._file.read(size)

    def write_at(self, offset: int, data: bytes) -> None:
        self._check_open()
        self._file.seek(offset)
        self._file.write(data)

    def _check_open(self) -> None:
        if self._closed:
            raise FatError("filesystem is closed")

    @property
    def max_cluster(self) -> int:
        return self.geometry.cluster_count + 1

    @property
    def free_clusters(self) -> int:
        return self._free_count

    def cluster_offset(self, cluster: int) -> int:
        if not 2 <= cluster <= self.max_cluster:
            raise FatError(f"cluster {cluster} out of range")
        sector = self.geometry.data_start_sector + (cluster - 2) * self.geometry.sectors_per_cluster
        return sector * self.geometry.bytes_per_sector

    # ---- FAT ----

    def fat_entry(self, cluster: int) -> int:
        return struct.unpack_from("<I", self._fat, cluster * 4)[0] & FAT_ENTRY_MASK

    def _set_fat_entry(self, cluster: int, value: int) -> None:
        old = struct.unpack_from("<I", self._fat, cluster * 4)[0]
        struct.pack_into("<I", self._fat, cluster * 4, (old & 0xF0000000) | (value & FAT_ENTRY_MASK))
        self._fat_dirty = True

    def cluster_chain(self, first_cluster: int) -> List[int]:
        chain = []
        cluster = first_cluster
        while 2 <= cluster <= self.max_cluster:
            chain.append(cluster)
            if len(chain) > self.geometry.cluster_count:
                raise FatError(f"cluster chain starting at {first_cluster} loops")
            cluster = self.fat_entry(cluster)
        if cluster == BAD_CLUSTER or (cluster < 0x0FFFFFF8 and chain):
            raise FatError(f"broken cluster chain starting at {first_cluster}")
        return chain

    def allocate_cluster(self, prev: Optional[int] = None) -> int:
        """Take a free cluster, zero it and link it after ``prev``"""
        self._check_open()
        if self._free_count <= 0:
            raise FatNoSpaceError("no free clusters left on volume")
        total = self.geometry.cluster_count
        start = self._next_free if 2 <= self._next_free <= self.max_cluster else 2
        for step in range(total):
            cluster = 2 + (start - 2 + step) % total
            if self.fat_entry(cluster) == 0:
                break
        else:
            raise FatNoSpaceError("no free clusters left on volume")

        self._set_fat_entry(cluster, END_OF_CHAIN)
        if prev is not None:
            self._set_fat_entry(prev, cluster)
        self._free_count -= 1
        self._next_free = cluster + 1 if cluster < self.max_cluster else 2
        self.write_at(self.cluster_offset(cluster), bytes(self.geometry.cluster_size))
        return cluster

    # ---- directories ----

    def _dir_slots(self, dir_cluster: int) -> Iterator[Tuple[int, bytes]]:
        entries_per_cluster = self.geometry.cluster_size // DIR_ENTRY_SIZE
        for cluster in self.cluster_chain(dir_cluster):
            base = self.cluster_offset(cluster)
            data = self.read_at(base, self.geometry.cluster_size)
            for i in range(entries_per_cluster):
                yield base + i * DIR_ENTRY_SIZE, data[i * DIR_ENTRY_SIZE:(i + 1) * DIR_ENTRY_SIZE]

    def _iter_entries(self, dir_cluster: int) -> Iterator[DirEntry]:
        lfn_parts: List[str] = []
        lfn_checksum_value = None
        for offset, raw in self._dir_slots(dir_cluster):
            first = raw[0]
            if first == 0x00:
                return
            if first == DELETED_MARK:
                lfn_parts, lfn_checksum_value = [], None
                continue
            attributes = raw[11]
            if attributes & ATTR_LONG_NAME == ATTR_LONG_NAME:
                if first & LFN_LAST_ENTRY:
                    lfn_parts = []
                lfn_checksum_value = raw[13]
                lfn_parts.insert(0, _decode_lfn_part(raw))
                continue
            if attributes & ATTR_VOLUME_ID:
                lfn_parts, lfn_checksum_value = [], None
                continue

            short_name = bytes(raw[0:11])
            if lfn_parts and lfn_checksum_value == lfn_checksum(short_name):
                name = "".join(lfn_parts)
            else:
                name = display_short_name(short_name, raw[12])
            lfn_parts, lfn_checksum_value = [], None

            hi, = struct.unpack_from("<H", raw, 20)
            lo, size = struct.unpack_from("<HI", raw, 26)
            yield DirEntry(
                name=name,
                short_name=short_name,
                attributes=attributes,
                first_cluster=(hi << 16) | lo,
                size=size,
                offset=offset,
            )

    def _find(self, dir_cluster: int, name: str) -> Optional[DirEntry]:
        wanted = name.upper()
        for entry in self._iter_entries(dir_cluster):
            if entry.name.upper() == wanted or display_short_name(entry.short_name) == wanted:
                return entry
        return None

    def _resolve_dir(self, parts: List[str]) -> int:
        cluster = self.geometry.root_cluster
        for part in parts:
            entry = self._find(cluster, part)
            if entry is None:
                raise FatNotFoundError(f"directory not found: {part}")
            if not entry.is_dir:
                raise FatError(f"not a directory: {part}")
            # ".." entries pointing at the root store cluster 0
            cluster = entry.first_cluster or self.geometry.root_cluster
        return cluster

    @staticmethod
    def _split_path(path: str) -> List[str]:
        parts = [p for p in path.replace("\\", "/").split("/") if p]
        if not parts:
            raise FatError(f"invalid path: {path!r}")
        return parts

    def _unique_short_name(self, dir_cluster: int, name: str) -> Tuple[bytes, bool]:
        """Returns the 8.3 name and whether LFN entries are needed to keep ``name``"""
        exact = short_name_for(name)
        if exact is not None and display_short_name(exact) == name:
            return exact, False

        taken = {entry.short_name for entry in self._iter_entries(dir_cluster)}
        if exact is not None and exact not in taken:
            return exact, True
        base, ext = _basis_name(name)
        for n in range(1, 1000000):
            tail = f"~{n}"
            candidate = (base[:8 - len(tail)] + tail).ljust(8) + ext.ljust(3)
            encoded = candidate.encode("ascii")
            if encoded not in taken:
                return encoded, True
        raise FatExistsError(f"cannot generate a short name for {name}")

    def _add_entry(self, dir_cluster: int, name: str, attributes: int, first_cluster: int) -> DirEntry:
        if name in (".", "..") or not name.strip(". "):
            raise FatError(f"invalid name: {name!r}")
        if any(c in name for c in '"*/:<>?\\|') or any(ord(c) < 0x20 for c in name):
            raise FatError(f"invalid character in name: {name!r}")
        if self._find(dir_cluster, name) is not None:
            raise FatExistsError(f"already exists: {name}")

        short_name, needs_lfn = self._unique_short_name(dir_cluster, name)
        slots = _build_lfn_entries(name, short_name) if needs_lfn else []

        entry = bytearray(DIR_ENTRY_SIZE)
        entry[0:11] = short_name
        entry[11] = attributes
        date, time = _fat_timestamp(self._timestamp or datetime.now())
        struct.pack_into("<HH", entry, 14, time, date)   # creation
        struct.pack_into("<H", entry, 18, date)          # last access
        struct.pack_into("<H", entry, 20, (first_cluster >> 16) & 0xFFFF)
        struct.pack_into("<HH", entry, 22, time, date)   # last write
        struct.pack_into("<H", entry, 26, first_cluster & 0xFFFF)
        struct.pack_into("<I", entry, 28, 0)
        slots.append(bytes(entry))

        offsets = self._free_run(dir_cluster, len(slots))
        for offset, data in zip(offsets, slots):
            self.write_at(offset, data)
        return DirEntry(
            name=name,
            short_name=short_name,
            attributes=attributes,
            first_cluster=first_cluster,
            size=0,
            offset=offsets[-1],
        )

    def _free_run(self, dir_cluster: int, count: int) -> List[int]:
        """Offsets of ``count`` consecutive free slots, growing the directory if needed"""
        run: List[int] = []
        at_end = False
        for offset, raw in self._dir_slots(dir_cluster):
            if at_end or raw[0] in (0x00, DELETED_MARK):
                at_end = at_end or raw[0] == 0x00
                run.append(offset)
                if len(run) == count:
                    return run
            else:
                run = []
        chain = self.cluster_chain(dir_cluster)
        while len(run) < count:
            cluster = self.allocate_cluster(prev=chain[-1])
            chain.append(cluster)
            base = self.cluster_offset(cluster)
            for i in range(self.geometry.cluster_size // DIR_ENTRY_SIZE):
                run.append(base + i * DIR_ENTRY_SIZE)
        return run[:count]

    def update_entry(self, entry: DirEntry, *, first_cluster: int, size: int) -> None:
        raw = bytearray(self.read_at(entry.offset, DIR_ENTRY_SIZE))
        date, time = _fat_timestamp(self._timestamp or datetime.now())
        struct.pack_into("<H", raw, 18, date)
        struct.pack_into("<H", raw, 20, (first_cluster >> 16) & 0xFFFF)
        struct.pack_into("<HH", raw, 22, time, date)
        struct.pack_into("<H", raw, 26, first_cluster & 0xFFFF)
        struct.pack_into("<I", raw, 28, size)
        self.write_at(entry.offset, bytes(raw))
        entry.first_cluster = first_cluster
        entry.size = size

    # ---- public API ----

    def create_dir(self, path: str) -> DirEntry:
        parts = self._split_path(path)
        parent = self._resolve_dir(parts[:-1])
        if self._find(parent, parts[-1]) is not None:
            raise FatExistsError(f"already exists: {path}")

        cluster = self.allocate_cluster()
        dot = bytearray(DIR_ENTRY_SIZE)
        dot[0:11] = b".          "
        dot[11] = ATTR_DIRECTORY
        struct.pack_into("<H", dot, 20, (cluster >> 16) & 0xFFFF)
        struct.pack_into("<H", dot, 26, cluster & 0xFFFF)
        parent_ref = 0 if parent == self.geometry.root_cluster else parent
        dotdot = bytearray(DIR_ENTRY_SIZE)
        dotdot[0:11] = b"..         "
        dotdot[11] = ATTR_DIRECTORY
        struct.pack_into("<H", dotdot, 20, (parent_ref >> 16) & 0xFFFF)
        struct.pack_into("<H", dotdot, 26, parent_ref & 0xFFFF)
        base = self.cluster_offset(cluster)
        self.write_at(base, bytes(dot))
        self.write_at(base + DIR_ENTRY_SIZE, bytes(dotdot))

        return self._add_entry(parent, parts[-1], ATTR_DIRECTORY, cluster)

    def create_file(self, path: str) -> FatFile:
        parts = self._split_path(path)
        parent = self._resolve_dir(parts[:-1])
        entry = self._add_entry(parent, parts[-1], ATTR_ARCHIVE, 0)
        return FatFile(self, entry)

    def stat(self, path: str) -> DirEntry:
        parts = self._split_path(path)
        parent = self._resolve_dir(parts[:-1])
        entry = self._find(parent, parts[-1])
        if entry is None:
            raise FatNotFoundError(f"not found: {path}")
        return entry

    def open_file(self, path: str) -> FatFile:
        entry = self.stat(path)
        if entry.is_dir:
            raise FatError(f"is a directory: {path}")
        return FatFile(self, entry)

    def read_file(self, path: str) -> bytes:
        return self.open_file(path).read()

    def list_dir(self, path: str = "/") -> List[DirEntry]:
        parts = [p for p in path.replace("\\", "/").split("/") if p]
        cluster = self._resolve_dir(parts)
        return [entry for entry in self._iter_entries(cluster) if entry.name not in (".", "..")]

    def flush(self) -> None:
        """Write the in-memory FAT to every copy and refresh FSInfo"""
        self._check_open()
        if self._fat_dirty:
            bps = self.geometry.bytes_per_sector
            for index in range(self.geometry.fat_count):
                self.write_at((self.geometry.reserved_sectors + index * self.geometry.fat_sectors) * bps,
                              bytes(self._fat))
            fsinfo = _build_fsinfo(bps, self._free_count, self._next_free)
            self.write_at(FSINFO_SECTOR * bps, fsinfo)
            self.write_at((BACKUP_BOOT_SECTOR + 1) * bps, fsinfo)
            self._fat_dirty = False
        self._file.flush()

    def close(self) -> None:
        if self._closed:
            return
        try:
            self.flush()
        finally:
            self._closed = True

    def __enter__(self) -> "FileSystem":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
