import io
from typing import BinaryIO, Union


class BitInputStream:
    """Reads single bits, MSB-first, from bytes or a binary file."""

    def __init__(self, source: Union[bytes, bytearray, memoryview, BinaryIO]):
        if isinstance(source, (bytes, bytearray, memoryview)):
            source = io.BytesIO(bytes(source))
        self._stream = source
        self._byte = 0
        self._remaining = 0  # unread bits in _byte
        self.bits_read = 0

    def read_bit(self) -> int:
        if self._remaining == 0:
            chunk = self._stream.read(1)
            if not chunk:
                raise EOFError("Unexpected end of bitstream")
            self._byte = chunk[0]
            self._remaining = 8
        self._remaining -= 1
        self.bits_read += 1
        return (self._byte >> self._remaining) & 1


class BitOutputStream:
    """
    Writes single bits, MSB-first, to a binary stream.
    close() pads the last byte with 0 bits; the stream itself is left open.
    """

    def __init__(self, stream: BinaryIO):
        self._stream = stream
        self._acc = 0
        self._nbits = 0  # bits currently in _acc (0..7)
        self.bits_written = 0

    def write_bit(self, bit: int) -> None:
        if bit not in (0, 1):
            raise ValueError(f"bit must be 0 or 1, got {bit!r}")
        self._acc = (self._acc << 1) | bit
        self._nbits += 1
        self.bits_written += 1
        if self._nbits == 8:
            self._stream.write(bytes((self._acc,)))
            self._acc = 0
            self._nbits = 0

    def write_code(self, code: str) -> None:
        """Write a code given as a string of '0'/'1' characters."""
        for ch in code:
            if ch == "0":
                self.write_bit(0)
            elif ch == "1":
                self.write_bit(1)
            else:
                raise ValueError(f"invalid bit character {ch!r} in code {code!r}")

    def close(self) -> int:
        """Flush the partial byte and return the number of pad bits added."""
        pad_bits = 0
        if self._nbits != 0:
            pad_bits = 8 - self._nbits
            self._stream.write(bytes(((self._acc << pad_bits) & 0xFF,)))
            self._acc = 0
            self._nbits = 0
        return pad_bits

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
