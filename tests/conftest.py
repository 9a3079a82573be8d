import struct
from pathlib import Path

import pytest

from asmcomparer.image import Image, Section

TEXT_VA = 0x401000
TEXT_OFFSET = 0x400

# 0x20 bytes of 32-bit code starting at 0x401000
FOO_CODE = bytes([
    0x55,                                # push ebp
    0x8B, 0xEC,                          # mov ebp, esp
    0x83, 0xEC, 0x10,                    # sub esp, 0x10
    0x8B, 0x45, 0x08,                    # mov eax, dword ptr [ebp + 8]
    0xA1, 0x00, 0xA0, 0x40, 0x00,        # mov eax, dword ptr [0x40a000]
    0xE8, 0xED, 0x0F, 0x00, 0x00,        # call 0x402000
    0x74, 0x02,                          # je 0x401017
    0x33, 0xC0,                          # xor eax, eax
    0x8B, 0xE5,                          # mov esp, ebp
    0x5D,                                # pop ebp
    0xC3,                                # ret
    0xCC, 0xCC, 0xCC, 0xCC, 0xCC,        # int3 padding
])

METADATA = """\
*** SYMBOLS

** Module: "foo.obj"

(00000004) S_GPROC32: [0001:00000000], Cb: 00000020, Type:             0x1002, foo
(00000050) S_GPROC32: [0001:00000020], Cb: 00000010, Type:             0x1003, baz
(00000090) S_PUB32: [0001:00000100], Flags: 00000002, bar_public
"""


class StaticSource:
    def __init__(self, text):
        self.text = text
        self.calls = 0

    def get_metadata_text(self):
        self.calls += 1
        return self.text


def build_image(code: bytes, va: int = TEXT_VA, offset: int = TEXT_OFFSET,
                size: int = 0x1000, name: str = "test.exe") -> Image:
    data = bytearray(offset + size)
    data[offset:offset + len(code)] = code
    return Image(Path(name), bytes(data), [Section(".text", va, size, offset, size)], 0x400000)


def build_pe(code: bytes) -> bytes:
    """Minimal PE32 image: one .text section at RVA 0x1000, file offset 0x200."""
    dos = bytearray(0x40)
    dos[0:2] = b"MZ"
    struct.pack_into("<I", dos, 0x3C, 0x40)

    coff = struct.pack("<HHIIIHH", 0x14C, 1, 0, 0, 0, 0xE0, 0x0102)
    opt = struct.pack(
        "<HBBIIIIIII",
        0x10B, 6, 0, 0x200, 0, 0, 0x1000, 0x1000, 0x2000, 0x400000,
    )
    opt += struct.pack(
        "<IIHHHHHHIIIIHHIIIIII",
        0x1000, 0x200, 4, 0, 0, 0, 4, 0, 0, 0x2000, 0x200, 0, 2, 0,
        0x100000, 0x1000, 0x100000, 0x1000, 0, 16,
    )
    opt += bytes(16 * 8)
    section = struct.pack(
        "<8sIIIIIIHHI",
        b".text", 0x200, 0x1000, 0x200, 0x200, 0, 0, 0, 0, 0x60000020,
    )
    headers = bytes(dos) + b"PE\0\0" + coff + opt + section
    body = code + bytes(0x200 - len(code))
    return headers + bytes(0x200 - len(headers)) + body


@pytest.fixture
def foo_image():
    return build_image(FOO_CODE, name="compare.exe")


@pytest.fixture
def metadata_source():
    return StaticSource(METADATA)


@pytest.fixture
def write_pe(tmp_path):
    def _write(name: str, code: bytes) -> Path:
        path = tmp_path / name
        path.write_bytes(build_pe(code))
        return path
    return _write
