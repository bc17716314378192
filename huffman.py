import heapq
import itertools
import logging
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)


class HuffmanError(Exception):
    """Base class for codec failures."""


class CodeTableError(HuffmanError, ValueError):
    """A code table is malformed or its paths conflict."""


class DecodeError(HuffmanError, ValueError):
    """A bitstream cannot be decoded against the tree."""


class TruncatedStreamError(DecodeError, EOFError):
    """The bit source ran out before the end-of-stream symbol was read."""


class HuffmanNode: # Node for Huffman tree
    def __init__(self, symbol, weight, left=None, right=None):
        self.symbol = symbol    # int for leaves, None for forks
        self.weight = weight
        self.left = left    # subtree reached by bit 0
        self.right = right  # subtree reached by bit 1

    @property
    def is_leaf(self) -> bool:
        return self.left is None and self.right is None

    def __lt__(self, other):
        return self.weight < other.weight

    def __repr__(self):
        if self.is_leaf:
            return f"HuffmanNode({self.symbol!r}, {self.weight!r})"
        return f"HuffmanNode(None, {self.weight!r}, ...)"


class HuffmanTree:
    """
    Prefix-free code over symbols 0..alphabet_size, where alphabet_size itself
    is the end-of-stream symbol (eof).

    Built once, either from occurrence counts or from a code table written by
    write(), then used read-only to serialize or to decode bits.
    """

    def __init__(self, root: HuffmanNode, eof: Optional[int] = None):
        self.root = root
        self.eof = eof

    # Construction

    @classmethod
    def from_counts(cls, counts: Union[Sequence[int], Mapping[int, int]],
                    alphabet_size: Optional[int] = None) -> "HuffmanTree":
        """
        Build the tree from counts indexed by symbol. Symbols with count 0 are
        left out; the eof leaf (id alphabet_size, weight 1) is always added.
        Equal weights leave the queue in the order they entered it.
        """
        if isinstance(counts, Mapping):
            if alphabet_size is None:
                raise ValueError("alphabet_size is required when counts is a mapping")
            for symbol in counts:
                if not 0 <= symbol < alphabet_size:
                    raise ValueError(f"symbol {symbol} outside alphabet of size {alphabet_size}")
            items = [(s, counts.get(s, 0)) for s in range(alphabet_size)]
        else:
            if alphabet_size is None:
                alphabet_size = len(counts)
            elif len(counts) > alphabet_size:
                raise ValueError(f"{len(counts)} counts for alphabet of size {alphabet_size}")
            items = list(enumerate(counts))

        order = itertools.count()  # tie-break: first in, first out
        queue: List[Tuple[int, int, HuffmanNode]] = []
        for symbol, count in items:
            if count < 0:
                raise ValueError(f"negative count {count} for symbol {symbol}")
            if count > 0:
                queue.append((count, next(order), HuffmanNode(symbol, count)))
        queue.append((1, next(order), HuffmanNode(alphabet_size, 1)))
        heapq.heapify(queue)
        leaf_count = len(queue)

        while len(queue) > 1:
            _, _, left = heapq.heappop(queue)
            _, _, right = heapq.heappop(queue)
            merged = HuffmanNode(None, left.weight + right.weight, left, right)
            heapq.heappush(queue, (merged.weight, next(order), merged))

        root = queue[0][2]
        logger.debug("built tree over %d leaves, total weight %d", leaf_count, root.weight)
        return cls(root, eof=alphabet_size)

    @classmethod
    def from_code(cls, source: Union[str, Iterable[str]], eof: Optional[int] = None) -> "HuffmanTree":
        """
        Rebuild a tree from a code table: line pairs of symbol id and bit path,
        until input ends.
        """
        lines = source.splitlines() if isinstance(source, str) else source
        tree = cls(None, eof=eof)
        symbols = set()
        it = iter(lines)
        for symbol_line in it:
            symbol_line = symbol_line.rstrip("\r\n")
            try:
                symbol = int(symbol_line)
            except ValueError:
                raise CodeTableError(f"bad symbol line {symbol_line!r}") from None
            path = next(it, None)
            if path is None:
                raise CodeTableError(f"symbol {symbol} has no code line")
            tree._add(symbol, path.rstrip("\r\n"))
            symbols.add(symbol)

        if tree.root is None:
            raise CodeTableError("empty code table")
        tree._check_complete()
        if eof is not None and eof not in symbols:
            raise CodeTableError(f"no code for end-of-stream symbol {eof}")
        logger.debug("rebuilt tree from %d table entries", len(symbols))
        return tree

    def _add(self, symbol: int, path: str) -> None:
        if path.strip("01"):
            raise CodeTableError(f"code {path!r} for symbol {symbol} is not a bit string")
        if not path:
            if self.root is not None:
                raise CodeTableError(f"conflicting code path '' for symbol {symbol}")
            self.root = HuffmanNode(symbol, 0)
            return

        if self.root is None:
            self.root = HuffmanNode(None, 0)  # under construction
        node = self.root
        for i, bit in enumerate(path):
            if node.symbol is not None:
                raise CodeTableError(
                    f"conflicting code path {path!r} for symbol {symbol}: "
                    f"{path[:i]!r} already belongs to symbol {node.symbol}")
            child = node.left if bit == "0" else node.right
            if i == len(path) - 1:
                if child is not None:
                    raise CodeTableError(f"conflicting code path {path!r} for symbol {symbol}")
                child = HuffmanNode(symbol, 0)
            elif child is None:
                child = HuffmanNode(None, 0)
            if bit == "0":
                node.left = child
            else:
                node.right = child
            node = child

    def _check_complete(self) -> None:
        stack = [(self.root, "")]
        while stack:
            node, path = stack.pop()
            if node.symbol is not None:
                continue
            for child, bit in ((node.left, "0"), (node.right, "1")):
                if child is None:
                    raise CodeTableError(f"incomplete code table: no code starts with {path + bit!r}")
                stack.append((child, path + bit))

    # Queries

    def leaves(self) -> Iterator[Tuple[HuffmanNode, str]]:
        """Yield (leaf, path) pairs, bit-0 branch before bit-1 branch."""
        stack = [(self.root, "")]
        while stack:
            node, path = stack.pop()
            if node.is_leaf:
                yield node, path
            else:
                stack.append((node.right, path + "1"))
                stack.append((node.left, path + "0"))

    def codes(self) -> Dict[int, str]:
        return {node.symbol: path for node, path in self.leaves()}

    @property
    def symbols(self) -> List[int]:
        return [node.symbol for node, _ in self.leaves()]

    def depth(self) -> int:
        return max(len(path) for _, path in self.leaves())

    def weighted_path_length(self) -> int:
        return sum(node.weight * len(path) for node, path in self.leaves())

    # Serialization

    def write(self, output) -> None:
        """Write the code table to a text stream."""
        for node, path in self.leaves():
            output.write(f"{node.symbol}\n{path}\n")

    def to_code(self) -> str:
        return "".join(f"{node.symbol}\n{path}\n" for node, path in self.leaves())

    # Decoding

    def decode_symbol(self, bits) -> int:
        """
        Read bits from `bits.read_bit()` until a leaf is reached and return its
        symbol. A single-leaf tree reads nothing.
        """
        node = self.root
        while not node.is_leaf:
            try:
                bit = bits.read_bit()
            except EOFError as e:
                raise TruncatedStreamError("bitstream ended before end-of-stream symbol") from e
            if bit == 0:
                node = node.left
            elif bit == 1:
                node = node.right
            elif bit == -1:
                raise TruncatedStreamError("bitstream ended before end-of-stream symbol")
            else:
                raise DecodeError(f"bit source returned {bit!r}")
        return node.symbol

    def iter_decode(self, bits, eof: Optional[int] = None) -> Iterator[int]:
        eof = self._eof(eof)
        if self.root.is_leaf and self.root.symbol != eof:
            raise DecodeError(f"tree has no code for end-of-stream symbol {eof}")
        symbol = self.decode_symbol(bits)
        while symbol != eof:
            yield symbol
            symbol = self.decode_symbol(bits)

    def decode(self, bits, output, eof: Optional[int] = None) -> int:
        """Write decoded bytes to `output` until eof; return how many were written."""
        written = 0
        for symbol in self.iter_decode(bits, eof):
            if not 0 <= symbol <= 0xFF:
                raise DecodeError(f"symbol {symbol} does not fit in a byte")
            output.write(bytes((symbol,)))
            written += 1
        return written

    def _eof(self, eof: Optional[int]) -> int:
        if eof is None:
            eof = self.eof
        if eof is None:
            raise ValueError("end-of-stream symbol unknown; pass eof")
        return eof
