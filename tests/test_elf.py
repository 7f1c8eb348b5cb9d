import struct

import pytest

from polarkern.elf import (
    EHDR_SIZE,
    ELFCLASS32,
    ELFCLASS64,
    ELFDATA2LSB,
    ELFDATA2MSB,
    ELFMAG,
    EM_X86_64,
    ET_EXEC,
    EV_CURRENT,
    PF_R,
    PF_X,
    PHDR_SIZE,
    PT_LOAD,
    SHDR_SIZE,
    SHF_ALLOC,
    SHT_PROGBITS,
    STB_GLOBAL,
    STB_WEAK,
    STT_FUNC,
    STT_OBJECT,
    ElfHeader,
    ProgramHeader,
    Rela,
    SectionHeader,
    Symbol,
    r_sym,
    r_type,
    st_bind,
    st_type,
)


def _ident(cls=ELFCLASS64, data=ELFDATA2LSB):
    return ELFMAG + bytes([cls, data, EV_CURRENT, 0]) + bytes(8)


def _image():
    phdr = ProgramHeader(PT_LOAD, PF_R | PF_X, 0, 0x400000, 0x400000,
                         0x100, 0x200, 0x1000)
    shdr = SectionHeader(1, SHT_PROGBITS, SHF_ALLOC, 0x401000, 0x1000,
                         0x80, 0, 0, 16, 0)
    header = ElfHeader(
        ident=_ident(), type=ET_EXEC, machine=EM_X86_64, entry=0x401000,
        phoff=EHDR_SIZE, shoff=EHDR_SIZE + PHDR_SIZE, phnum=1, shnum=1,
    )
    return header, phdr, shdr, header.pack() + phdr.pack() + shdr.pack()


def test_packed_sizes_match_format():
    assert len(ElfHeader().pack()) == 64
    assert len(ProgramHeader().pack()) == 56
    assert len(SectionHeader().pack()) == 64
    assert len(Symbol().pack()) == 24
    assert len(Rela().pack()) == 24
    assert (EHDR_SIZE, PHDR_SIZE, SHDR_SIZE) == (64, 56, 64)


def test_header_parses_hand_built_bytes():
    raw = struct.pack("<16sHHIQQQIHHHHHH", _ident(), ET_EXEC, EM_X86_64,
                      EV_CURRENT, 0x401000, 64, 0, 0, 64, 56, 2, 64, 0, 0)
    header = ElfHeader.parse(raw)
    assert header.type == ET_EXEC
    assert header.machine == EM_X86_64
    assert header.entry == 0x401000
    assert header.phnum == 2


def test_header_round_trip():
    header, _, _, _ = _image()
    assert ElfHeader.parse(header.pack()) == header


def test_header_walks_program_and_section_headers():
    header, phdr, shdr, data = _image()
    parsed = ElfHeader.parse(data)
    assert parsed.program_headers(data) == [phdr]
    assert parsed.section_headers(data) == [shdr]


def test_header_rejects_bad_magic():
    with pytest.raises(ValueError):
        ElfHeader.parse(b"\x7fELG" + bytes(60))


def test_header_rejects_32_bit():
    header = ElfHeader(ident=_ident(cls=ELFCLASS32))
    with pytest.raises(ValueError):
        ElfHeader.parse(header.pack())


def test_header_rejects_big_endian():
    header = ElfHeader(ident=_ident(data=ELFDATA2MSB))
    with pytest.raises(ValueError):
        ElfHeader.parse(header.pack())


def test_header_rejects_truncated():
    with pytest.raises(ValueError):
        ElfHeader.parse(ElfHeader().pack()[:40])


def test_program_header_at_offset():
    phdr = ProgramHeader(PT_LOAD, PF_R, 8, 16, 24, 32, 40, 4096)
    data = b"\xaa" * 10 + phdr.pack()
    assert ProgramHeader.parse(data, 10) == phdr


def test_program_header_past_end():
    with pytest.raises(ValueError):
        ProgramHeader.parse(ProgramHeader().pack(), 1)


def test_negative_offset_rejected():
    with pytest.raises(ValueError):
        SectionHeader.parse(SectionHeader().pack() * 2, -1)


def test_section_header_round_trip():
    shdr = SectionHeader(7, SHT_PROGBITS, SHF_ALLOC, 1, 2, 3, 4, 5, 6, 7)
    assert SectionHeader.parse(shdr.pack()) == shdr


def test_symbol_bind_and_type():
    sym = Symbol(name=3, info=(STB_GLOBAL << 4) | STT_FUNC, shndx=1,
                 value=0x1000, size=42)
    parsed = Symbol.parse(sym.pack())
    assert parsed == sym
    assert parsed.bind == STB_GLOBAL
    assert parsed.type == STT_FUNC


def test_st_bind_and_type_split_info():
    info = (STB_WEAK << 4) | STT_OBJECT
    assert st_bind(info) == STB_WEAK
    assert st_type(info) == STT_OBJECT


def test_r_sym_and_type_split_info():
    info = (5 << 32) | 7
    assert r_sym(info) == 5
    assert r_type(info) == 7


def test_rela_round_trip_with_negative_addend():
    rela = Rela(offset=0x2000, info=(3 << 32) | 8, addend=-4)
    parsed = Rela.parse(rela.pack())
    assert parsed == rela
    assert parsed.sym == 3
    assert parsed.type == 8
    assert parsed.addend == -4


def test_rela_too_short():
    with pytest.raises(ValueError):
        Rela.parse(b"\0" * 23)