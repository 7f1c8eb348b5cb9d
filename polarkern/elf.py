"""ELF64 constants and parsers for headers, symbols and relocations."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field

# e_ident indexes
EI_MAG0 = 0
EI_MAG1 = 1
EI_MAG2 = 2
EI_MAG3 = 3
EI_CLASS = 4
EI_DATA = 5
EI_VERSION = 6
EI_OSABI = 7
EI_PAD = 8
EI_NIDENT = 16

ELFMAG0 = 0x7F
ELFMAG1 = ord("E")
ELFMAG2 = ord("L")
ELFMAG3 = ord("F")
ELFMAG = b"\x7fELF"
SELFMAG = 4

ELFCLASSNONE = 0
ELFCLASS32 = 1
ELFCLASS64 = 2
ELFCLASSNUM = 3

ELFDATANONE = 0
ELFDATA2LSB = 1
ELFDATA2MSB = 2

EV_NONE = 0
EV_CURRENT = 1
EV_NUM = 2

ELFOSABI_NONE = 0
ELFOSABI_LINUX = 3
ELF_OSABI = ELFOSABI_NONE

# Target machines
EM_NONE = 0
EM_M32 = 1
EM_SPARC = 2
EM_386 = 3
EM_68K = 4
EM_88K = 5
EM_486 = 6
EM_860 = 7
EM_MIPS = 8
EM_MIPS_RS3_LE = 10
EM_MIPS_RS4_BE = 10
EM_PARISC = 15
EM_SPARC32PLUS = 18
EM_PPC = 20
EM_PPC64 = 21
EM_S390 = 22
EM_SPU = 23
EM_ARM = 40
EM_SH = 42
EM_SPARCV9 = 43
EM_H8_300 = 46
EM_IA_64 = 50
EM_X86_64 = 62
EM_CRIS = 76
EM_M32R = 88
EM_MN10300 = 89
EM_OPENRISC = 92
EM_ARCOMPACT = 93
EM_XTENSA = 94
EM_BLACKFIN = 106
EM_UNICORE = 110
EM_ALTERA_NIOS2 = 113
EM_TI_C6000 = 140
EM_HEXAGON = 164
EM_NDS32 = 167
EM_AARCH64 = 183
EM_TILEPRO = 188
EM_MICROBLAZE = 189
EM_TILEGX = 191
EM_ARCV2 = 195
EM_RISCV = 243
EM_BPF = 247
EM_CSKY = 252
EM_LOONGARCH = 258
EM_FRV = 0x5441
EM_ALPHA = 0x9026
EM_CYGNUS_M32R = 0x9041
EM_S390_OLD = 0xA390
EM_CYGNUS_MN10300 = 0xBEEF

# Segment types
PT_NULL = 0
PT_LOAD = 1
PT_DYNAMIC = 2
PT_INTERP = 3
PT_NOTE = 4
PT_SHLIB = 5
PT_PHDR = 6
PT_TLS = 7
PT_LOOS = 0x60000000
PT_HIOS = 0x6FFFFFFF
PT_LOPROC = 0x70000000
PT_HIPROC = 0x7FFFFFFF
PT_GNU_EH_FRAME = 0x6474E550
PT_GNU_STACK = PT_LOOS + 0x474E551

# File types
ET_NONE = 0
ET_REL = 1
ET_EXEC = 2
ET_DYN = 3
ET_CORE = 4
ET_LOPROC = 0xFF00
ET_HIPROC = 0xFFFF

# Dynamic section tags
DT_NULL = 0
DT_NEEDED = 1
DT_PLTRELSZ = 2
DT_PLTGOT = 3
DT_HASH = 4
DT_STRTAB = 5
DT_SYMTAB = 6
DT_RELA = 7
DT_RELASZ = 8
DT_RELAENT = 9
DT_STRSZ = 10
DT_SYMENT = 11
DT_INIT = 12
DT_FINI = 13
DT_SONAME = 14
DT_RPATH = 15
DT_SYMBOLIC = 16
DT_REL = 17
DT_RELSZ = 18
DT_RELENT = 19
DT_PLTREL = 20
DT_DEBUG = 21
DT_TEXTREL = 22
DT_JMPREL = 23
DT_ENCODING = 32
OLD_DT_LOOS = 0x60000000
DT_LOOS = 0x6000000D
DT_HIOS = 0x6FFFF000
DT_VALRNGLO = 0x6FFFFD00
DT_VALRNGHI = 0x6FFFFDFF
DT_ADDRRNGLO = 0x6FFFFE00
DT_ADDRRNGHI = 0x6FFFFEFF
DT_VERSYM = 0x6FFFFFF0
DT_RELACOUNT = 0x6FFFFFF9
DT_RELCOUNT = 0x6FFFFFFA
DT_FLAGS_1 = 0x6FFFFFFB
DT_VERDEF = 0x6FFFFFFC
DT_VERDEFNUM = 0x6FFFFFFD
DT_VERNEED = 0x6FFFFFFE
DT_VERNEEDNUM = 0x6FFFFFFF
OLD_DT_HIOS = 0x6FFFFFFF
DT_LOPROC = 0x70000000
DT_HIPROC = 0x7FFFFFFF

# Symbol binding and type
STB_LOCAL = 0
STB_GLOBAL = 1
STB_WEAK = 2

STT_NOTYPE = 0
STT_OBJECT = 1
STT_FUNC = 2
STT_SECTION = 3
STT_FILE = 4
STT_COMMON = 5
STT_TLS = 6

# Segment permissions
PF_R = 0x4
PF_W = 0x2
PF_X = 0x1

# Section types
SHT_NULL = 0
SHT_PROGBITS = 1
SHT_SYMTAB = 2
SHT_STRTAB = 3
SHT_RELA = 4
SHT_HASH = 5
SHT_DYNAMIC = 6
SHT_NOTE = 7
SHT_NOBITS = 8
SHT_REL = 9
SHT_SHLIB = 10
SHT_DYNSYM = 11
SHT_NUM = 12
SHT_LOPROC = 0x70000000
SHT_HIPROC = 0x7FFFFFFF
SHT_LOUSER = 0x80000000
SHT_HIUSER = 0xFFFFFFFF

# Section flags
SHF_WRITE = 0x1
SHF_ALLOC = 0x2
SHF_EXECINSTR = 0x4
SHF_MASKPROC = 0xF0000000

# Special section indexes
SHN_UNDEF = 0
SHN_LORESERVE = 0xFF00
SHN_LOPROC = 0xFF00
SHN_HIPROC = 0xFF1F
SHN_ABS = 0xFFF1
SHN_COMMON = 0xFFF2
SHN_HIRESERVE = 0xFFFF

# Core file note types
NT_PRSTATUS = 1
NT_PRFPREG = 2
NT_PRPSINFO = 3
NT_TASKSTRUCT = 4
NT_AUXV = 6
NT_PRXFPREG = 0x46E62B7F
NT_PPC_VMX = 0x100
NT_PPC_SPE = 0x101
NT_PPC_VSX = 0x102
NT_386_TLS = 0x200
NT_386_IOPERM = 0x201
NT_PRXSTATUS = 0x300

_EHDR = struct.Struct("<16sHHIQQQIHHHHHH")
_PHDR = struct.Struct("<IIQQQQQQ")
_SHDR = struct.Struct("<IIQQQQIIQQ")
_SYM = struct.Struct("<IBBHQQ")
_RELA = struct.Struct("<QQq")

EHDR_SIZE = _EHDR.size
PHDR_SIZE = _PHDR.size
SHDR_SIZE = _SHDR.size
SYM_SIZE = _SYM.size
RELA_SIZE = _RELA.size


def st_bind(info: int) -> int:
    """Binding part of a symbol's ``st_info``."""
    return info >> 4


def st_type(info: int) -> int:
    """Type part of a symbol's ``st_info``."""
    return info & 0xF


def r_sym(info: int) -> int:
    """Symbol index of a 64-bit relocation's ``r_info``."""
    return info >> 32


def r_type(info: int) -> int:
    """Relocation type of a 64-bit relocation's ``r_info``."""
    return info & 0xFFFFFFFF


def _unpack(layout: struct.Struct, data: bytes, offset: int, what: str) -> tuple:
    if offset < 0:
        raise ValueError(f"{what} offset must not be negative")
    if offset + layout.size > len(data):
        raise ValueError(f"{what} runs past the end of the data")
    return layout.unpack_from(data, offset)


@dataclass
class ElfHeader:
    """The ELF64 file header of a little-endian image."""

    ident: bytes = field(
        default_factory=lambda: ELFMAG
        + bytes([ELFCLASS64, ELFDATA2LSB, EV_CURRENT, ELF_OSABI])
        + bytes(EI_NIDENT - 8)
    )
    type: int = ET_NONE
    machine: int = EM_NONE
    version: int = EV_CURRENT
    entry: int = 0
    phoff: int = 0
    shoff: int = 0
    flags: int = 0
    ehsize: int = EHDR_SIZE
    phentsize: int = PHDR_SIZE
    phnum: int = 0
    shentsize: int = SHDR_SIZE
    shnum: int = 0
    shstrndx: int = 0

    @classmethod
    def parse(cls, data: bytes) -> "ElfHeader":
        """Parse and check the header at the start of ``data``."""
        if len(data) < SELFMAG or bytes(data[:SELFMAG]) != ELFMAG:
            raise ValueError("not an ELF image")
        header = cls(*_unpack(_EHDR, data, 0, "ELF header"))
        if header.ident[EI_CLASS] != ELFCLASS64:
            raise ValueError("only 64-bit ELF images are supported")
        if header.ident[EI_DATA] != ELFDATA2LSB:
            raise ValueError("only little-endian ELF images are supported")
        return header

    def pack(self) -> bytes:
        ident = bytes(self.ident)
        if len(ident) != EI_NIDENT:
            raise ValueError("e_ident must be 16 bytes")
        return _EHDR.pack(
            ident, self.type, self.machine, self.version, self.entry,
            self.phoff, self.shoff, self.flags, self.ehsize, self.phentsize,
            self.phnum, self.shentsize, self.shnum, self.shstrndx,
        )

    def program_headers(self, data: bytes) -> list["ProgramHeader"]:
        """All program headers described by this header."""
        return [
            ProgramHeader.parse(data, self.phoff + index * self.phentsize)
            for index in range(self.phnum)
        ]

    def section_headers(self, data: bytes) -> list["SectionHeader"]:
        """All section headers described by this header."""
        return [
            SectionHeader.parse(data, self.shoff + index * self.shentsize)
            for index in range(self.shnum)
        ]


@dataclass
class ProgramHeader:
    """One ELF64 program (segment) header."""

    type: int = PT_NULL
    flags: int = 0
    offset: int = 0
    vaddr: int = 0
    paddr: int = 0
    filesz: int = 0
    memsz: int = 0
    align: int = 0

    @classmethod
    def parse(cls, data: bytes, offset: int = 0) -> "ProgramHeader":
        return cls(*_unpack(_PHDR, data, offset, "program header"))

    def pack(self) -> bytes:
        return _PHDR.pack(self.type, self.flags, self.offset, self.vaddr,
                          self.paddr, self.filesz, self.memsz, self.align)


@dataclass
class SectionHeader:
    """One ELF64 section header."""

    name: int = 0
    type: int = SHT_NULL
    flags: int = 0
    addr: int = 0
    offset: int = 0
    size: int = 0
    link: int = 0
    info: int = 0
    addralign: int = 0
    entsize: int = 0

    @classmethod
    def parse(cls, data: bytes, offset: int = 0) -> "SectionHeader":
        return cls(*_unpack(_SHDR, data, offset, "section header"))

    def pack(self) -> bytes:
        return _SHDR.pack(self.name, self.type, self.flags, self.addr,
                          self.offset, self.size, self.link, self.info,
                          self.addralign, self.entsize)


@dataclass
class Symbol:
    """One ELF64 symbol table entry."""

    name: int = 0
    info: int = 0
    other: int = 0
    shndx: int = SHN_UNDEF
    value: int = 0
    size: int = 0

    @classmethod
    def parse(cls, data: bytes, offset: int = 0) -> "Symbol":
        return cls(*_unpack(_SYM, data, offset, "symbol"))

    def pack(self) -> bytes:
        return _SYM.pack(self.name, self.info, self.other, self.shndx,
                         self.value, self.size)

    @property
    def bind(self) -> int:
        return st_bind(self.info)

    @property
    def type(self) -> int:
        return st_type(self.info)


@dataclass
class Rela:
    """One ELF64 relocation with an addend."""

    offset: int = 0
    info: int = 0
    addend: int = 0

    @classmethod
    def parse(cls, data: bytes, offset: int = 0) -> "Rela":
        return cls(*_unpack(_RELA, data, offset, "relocation"))

    def pack(self) -> bytes:
        return _RELA.pack(self.offset, self.info, self.addend)

    @property
    def sym(self) -> int:
        return r_sym(self.info)

    @property
    def type(self) -> int:
        return r_type(self.info)