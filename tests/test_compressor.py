import io
import random

import pytest

import compressor
from bitio import BitOutputStream
from huffman import CodeTableError, HuffmanTree, TruncatedStreamError


def test_count_symbols():
    counts = compressor.count_symbols(b"abca")
    assert len(counts) == 256
    assert counts[ord("a")] == 2
    assert counts[ord("b")] == 1
    assert sum(counts) == 4


@pytest.mark.parametrize("data", [
    b"",
    b"A" * 1000,
    bytes(range(256)),
    b"This is a test" * 100,
    bytes(random.Random(3).getrandbits(8) for _ in range(4096)),
])
def test_compress_round_trip(data):
    table, payload = compressor.compress(data)
    assert compressor.decompress(table, payload) == data


def test_compress_empty_input():
    table, payload = compressor.compress(b"")
    assert table == "256\n\n"
    assert payload == b""


def test_skewed_input_compresses():
    data = b"a" * 900 + b"b" * 90 + b"c" * 10
    _, payload = compressor.compress(data)
    assert len(payload) < len(data) // 4


def test_encode_writes_sentinel_last():
    tree = HuffmanTree.from_counts(compressor.count_symbols(b"aab"))
    codes = tree.codes()
    buf = io.BytesIO()
    with BitOutputStream(buf) as bits:
        written = compressor.encode(b"ab", tree, bits)
    assert written == len(codes[97]) + len(codes[98]) + len(codes[256])


def test_encode_rejects_byte_without_code():
    tree = HuffmanTree.from_counts(compressor.count_symbols(b"a"))
    with pytest.raises(ValueError):
        compressor.encode(b"b", tree, BitOutputStream(io.BytesIO()))


def test_truncated_payload_raises():
    table, payload = compressor.compress(b"This is a test" * 100)
    with pytest.raises(TruncatedStreamError):
        compressor.decompress(table, payload[:-3])


def test_compress_file_and_back(tmp_path):
    src = tmp_path / "notes.txt"
    src.write_bytes(b"hello huffman\nhello again\n" * 20)

    stats = compressor.compress_file(src)
    assert stats.code_path == tmp_path / "notes.code"
    assert stats.short_path == tmp_path / "notes.short"
    assert stats.payload_bytes == stats.short_path.stat().st_size
    assert stats.ratio < 1.0

    out = tmp_path / "notes.new"
    written = compressor.decompress_file(stats.code_path, stats.short_path, out)
    assert written == src.stat().st_size
    assert out.read_bytes() == src.read_bytes()


def test_code_file_uses_unix_newlines(tmp_path):
    src = tmp_path / "ab.txt"
    src.write_bytes(b"aaaaab")
    stats = compressor.compress_file(src)
    assert b"\r" not in stats.code_path.read_bytes()


def test_decompress_file_rejects_conflicting_table(tmp_path):
    code = tmp_path / "bad.code"
    code.write_text("97\n0\n98\n0\n", encoding="ascii")
    short = tmp_path / "bad.short"
    short.write_bytes(b"\x00")
    with pytest.raises(CodeTableError):
        compressor.decompress_file(code, short, tmp_path / "bad.new")


def test_decompress_rejects_table_without_end_of_stream():
    with pytest.raises(CodeTableError):
        compressor.decompress("65\n\n", b"")


@pytest.mark.parametrize("name", ["data.short", "data.code"])
def test_compress_file_keeps_source_named_like_output(tmp_path, name):
    src = tmp_path / name
    original = b"precious data " * 50
    src.write_bytes(original)
    with pytest.raises(ValueError):
        compressor.compress_file(src)
    assert src.read_bytes() == original


def test_compress_file_rejects_same_code_and_short_path(tmp_path):
    src = tmp_path / "a.txt"
    src.write_bytes(b"abc")
    with pytest.raises(ValueError):
        compressor.compress_file(src, tmp_path / "out", tmp_path / "out")


def test_cli_round_trip(tmp_path, capsys):
    src = tmp_path / "poem.txt"
    src.write_bytes(b"so much depends\nupon\na red wheel\nbarrow\n")

    assert compressor.main(["compress", str(src)]) == 0
    assert "poem.txt" in capsys.readouterr().out

    out = tmp_path / "poem.out"
    rc = compressor.main(["decompress", str(tmp_path / "poem.code"), str(tmp_path / "poem.short"),
                          "--output", str(out)])
    assert rc == 0
    assert out.read_bytes() == src.read_bytes()


def test_cli_default_output_path(tmp_path):
    src = tmp_path / "x.txt"
    src.write_bytes(b"xyzzy")
    compressor.main(["compress", str(src), "--code", str(tmp_path / "t.code"),
                     "--short", str(tmp_path / "t.short")])
    assert compressor.main(["decompress", str(tmp_path / "t.code"), str(tmp_path / "t.short")]) == 0
    assert (tmp_path / "t.new").read_bytes() == b"xyzzy"


def test_cli_reports_truncated_stream(tmp_path):
    src = tmp_path / "t.txt"
    src.write_bytes(b"This is a test" * 100)
    compressor.main(["compress", str(src)])
    short = tmp_path / "t.short"
    short.write_bytes(short.read_bytes()[:-3])

    rc = compressor.main(["decompress", str(tmp_path / "t.code"), str(short)])
    assert rc == 1


def test_cli_missing_file(tmp_path):
    assert compressor.main(["compress", str(tmp_path / "nope.txt")]) == 1
