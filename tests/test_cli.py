"""Command line runs against real PE files parsed by LIEF."""
import json

from asmcomparer.cli import main

from conftest import FOO_CODE, METADATA


def setup_files(tmp_path, write_pe, orig_code=FOO_CODE):
    orig = write_pe("orig.exe", orig_code)
    compare = write_pe("compare.exe", FOO_CODE)
    metadata = tmp_path / "compare.txt"
    metadata.write_text(METADATA)
    config = tmp_path / "comparer-config.json"
    config.write_text(json.dumps({"func": {"foo": {"addr": "0x401000", "size": "0x20"}}}))
    return orig, compare, metadata, config


def test_compare_writes_both_listings(tmp_path, write_pe):
    orig, compare, metadata, config = setup_files(tmp_path, write_pe)
    code = main([
        "compare", str(orig), str(compare), "foo",
        "--metadata", str(metadata), "--config", str(config),
        "--output-dir", str(tmp_path), "--show-ip", "--no-imms",
    ])
    assert code == 0
    orig_lines = (tmp_path / "orig.asm").read_text().splitlines()
    assert orig_lines == (tmp_path / "compare.asm").read_text().splitlines()
    assert orig_lines[2] == "0x00401003: sub esp, IMM"


def test_compare_reports_differences_textually(tmp_path, write_pe):
    """A changed stack frame size shows up as a single differing line."""
    patched = bytearray(FOO_CODE)
    patched[5] = 0x14
    orig, compare, metadata, config = setup_files(tmp_path, write_pe, bytes(patched))
    assert main([
        "compare", str(orig), str(compare), "foo",
        "--metadata", str(metadata), "--config", str(config), "--output-dir", str(tmp_path),
    ]) == 0
    orig_lines = (tmp_path / "orig.asm").read_text().splitlines()
    compare_lines = (tmp_path / "compare.asm").read_text().splitlines()
    diff = [(a, b) for a, b in zip(orig_lines, compare_lines) if a != b]
    assert diff == [("sub esp, 0x14", "sub esp, 0x10")]


def test_compare_unknown_symbol(tmp_path, write_pe):
    orig, compare, metadata, config = setup_files(tmp_path, write_pe)
    code = main([
        "compare", str(orig), str(compare), "bar",
        "--metadata", str(metadata), "--config", str(config), "--output-dir", str(tmp_path),
    ])
    assert code == 1
    assert not (tmp_path / "orig.asm").exists()


def test_watch_setup_failure(tmp_path, write_pe):
    orig, compare, _, config = setup_files(tmp_path, write_pe)
    code = main([
        "compare", str(orig), str(compare), "foo", "--watch",
        "--metadata", str(tmp_path / "missing.txt"), "--config", str(config),
        "--output-dir", str(tmp_path),
    ])
    assert code == 2


def test_generate_full_orig(tmp_path, write_pe):
    orig, _, _, config = setup_files(tmp_path, write_pe)
    out = tmp_path / "full.asm"
    code = main([
        "generate-full", str(orig), "--orig-file", "--config", str(config),
        "--output", str(out),
    ])
    assert code == 0
    lines = out.read_text().splitlines()
    assert lines[0] == "; foo @ 0x00401000, 0x20 bytes"
    assert lines[1] == "push ebp"


def test_generate_full_debug_binary(tmp_path, write_pe):
    _, compare, metadata, config = setup_files(tmp_path, write_pe)
    out = tmp_path / "full.asm"
    code = main([
        "generate-full", str(compare), "--metadata", str(metadata), "--config", str(config),
        "--output", str(out), "--no-mem-disp",
    ])
    assert code == 0
    assert "call DISP" in out.read_text().splitlines()
