from typing import Iterable, List, Optional, Tuple, Union

from bitops import BitPacker, BitUnpacker, SYMBOL_BITS

ALPHABET_SIZE = 1 << SYMBOL_BITS  #: Number of ordinary symbols
ALPHABET_BASE = 0x4E00  #: First ordinary code point (CJK Unified Ideographs)
END_BASE = ALPHABET_BASE + ALPHABET_SIZE  #: First terminal code point
END_LIMIT = END_BASE + ALPHABET_SIZE  #: One past the last terminal code point

Chunk = Union[str, Iterable[int]]


class BaseHanError(Exception):
    """Base class for errors raised while transcoding a stream."""


class EndOfStream(BaseHanError):
    """Input arrived after the terminal symbol or after ``finalize``."""


class CorruptedStream(BaseHanError, ValueError):
    """The encoded stream was truncated or tampered with."""


class InvalidSymbol(CorruptedStream):
    """A code point that is neither an ordinary nor a terminal symbol.

    :ivar code_point: The offending scalar value.
    :type code_point: int
    :ivar position: Zero-based index of the scalar in the stream.
    :type position: int
    """

    def __init__(self, code_point: int, position: int):
        super().__init__(
            f"Invalid symbol {code_point:#x} at position {position}"
        )
        self.code_point = code_point
        self.position = position


def terminal_offset(value: int, nbits: int) -> int:
    """Frame leftover encoder bits as an offset from ``END_BASE``.

    The bit count is carried by a marker bit placed right above the value,
    so ``0b1`` means "no bits" and ``0b1_0000_0000`` means the single byte
    ``0x00``.

    :param value: Leftover bits.
    :type value: int
    :param nbits: Number of leftover bits (0-12).
    :type nbits: int
    :returns: Offset in ``0..8191``.
    :rtype: int
    :raises ValueError: If the leftover cannot be framed.
    """
    if not 0 <= nbits < SYMBOL_BITS or value < 0 or value >> nbits:
        raise ValueError(f"Cannot frame {nbits} leftover bits: {value}")
    return (1 << nbits) | value


def split_terminal_offset(offset: int) -> Tuple[int, int]:
    """Inverse of :func:`terminal_offset`.

    :param offset: Terminal code point minus ``END_BASE``.
    :type offset: int
    :returns: ``(value, nbits)``.
    :rtype: Tuple[int, int]
    :raises ValueError: If ``offset`` has no marker bit or is out of range.
    """
    if not 0 < offset < ALPHABET_SIZE:
        raise ValueError(f"Not a terminal offset: {offset}")
    nbits = offset.bit_length() - 1
    return offset ^ (1 << nbits), nbits


class StreamEncoder:
    """Streaming Base-Han encoder.

    Feed byte chunks to :meth:`update`, then call :meth:`finalize` once to
    get the terminal symbol. The encoder cannot be used after that.
    """

    def __init__(self):
        self._packer = BitPacker()
        self._finished = False

    def update_into(self, chunk: bytes, out: List[str]) -> int:
        """Encode ``chunk`` and append the produced characters to ``out``.

        :param chunk: Raw bytes.
        :type chunk: bytes
        :param out: Caller-owned list receiving one character per symbol.
        :type out: List[str]
        :returns: Number of characters appended.
        :rtype: int
        :raises EndOfStream: If the encoder was already finalized.
        """
        if self._finished:
            raise EndOfStream("Encoder already finalized")
        before = len(out)
        push = self._packer.push_byte
        for byte in chunk:
            symbol = push(byte)
            if symbol is not None:
                out.append(chr(symbol + ALPHABET_BASE))
        return len(out) - before

    def update(self, chunk: bytes) -> str:
        """Encode ``chunk`` and return the produced characters.

        :param chunk: Raw bytes.
        :type chunk: bytes
        :returns: Ordinary symbols completed by this chunk (may be empty).
        :rtype: str
        """
        out: List[str] = []
        self.update_into(chunk, out)
        return "".join(out)

    def finalize(self) -> str:
        """Return the terminal symbol and retire the encoder.

        :returns: A single character in the terminal range.
        :rtype: str
        :raises EndOfStream: If called twice.
        """
        if self._finished:
            raise EndOfStream("Encoder already finalized")
        self._finished = True
        value, nbits = self._packer.finalize()
        return chr(END_BASE + terminal_offset(value, nbits))


class StreamDecoder:
    """Streaming Base-Han decoder.

    :ivar position: Number of scalar values consumed so far.
    :type position: int
    """

    def __init__(self):
        self._unpacker = BitUnpacker()
        self._closed = False
        self._finished = False
        self.position = 0

    @property
    def closed(self) -> bool:
        """Whether the terminal symbol has been seen."""
        return self._closed

    def update_into(self, chunk: Chunk, out: bytearray) -> int:
        """Decode ``chunk`` and append the produced bytes to ``out``.

        A scalar value of 0 ends processing of the chunk, so zero-filled
        fixed-size buffers can be passed as they are. The terminal symbol
        closes the decoder and the rest of the chunk is not looked at.

        :param chunk: Text, or an iterable of code points.
        :type chunk: Union[str, Iterable[int]]
        :param out: Caller-owned buffer receiving decoded bytes.
        :type out: bytearray
        :returns: Number of bytes appended.
        :rtype: int
        :raises EndOfStream: On input after the terminal symbol or after
            ``finalize``.
        :raises InvalidSymbol: On a code point outside both ranges.
        :raises CorruptedStream: If the terminal does not line up with the
            bits already consumed.
        """
        if self._finished:
            raise EndOfStream("Decoder already finalized")
        before = len(out)
        for item in chunk:
            code = ord(item) if isinstance(item, str) else int(item)
            if code == 0:
                break
            if self._closed:
                raise EndOfStream(
                    f"Input after terminal symbol at position {self.position}"
                )
            if END_BASE <= code < END_LIMIT:
                out += self._close(code - END_BASE)
                self.position += 1
                break
            if not ALPHABET_BASE <= code < END_BASE:
                raise InvalidSymbol(code, self.position)
            out += self._unpacker.push_symbol(code - ALPHABET_BASE)
            self.position += 1
        return len(out) - before

    def update(self, chunk: Chunk) -> bytes:
        """Decode ``chunk`` and return the produced bytes.

        :param chunk: Text, or an iterable of code points.
        :type chunk: Union[str, Iterable[int]]
        :returns: Bytes completed by this chunk (may be empty).
        :rtype: bytes
        """
        out = bytearray()
        self.update_into(chunk, out)
        return bytes(out)

    def _close(self, offset: int) -> bytes:
        try:
            value, nbits = split_terminal_offset(offset)
        except ValueError:
            raise InvalidSymbol(END_BASE + offset, self.position) from None
        pending = self._unpacker.bit_count
        if (pending + nbits) % 8:
            raise CorruptedStream(
                f"Terminal symbol at position {self.position} carries "
                f"{nbits} bits but {pending} bits are pending"
            )
        self._closed = True
        return self._unpacker.push_bits(value, nbits)

    def finalize(self) -> Optional[int]:
        """Retire the decoder and return an unresolved partial byte, if any.

        A returned value must be treated as a corrupted or truncated stream
        by the caller.

        :returns: The zero-padded leftover byte or ``None``.
        :rtype: Optional[int]
        :raises EndOfStream: If called twice.
        """
        if self._finished:
            raise EndOfStream("Decoder already finalized")
        self._finished = True
        return self._unpacker.finalize()


def encode(data: bytes) -> str:
    """Encode a whole buffer, terminal symbol included.

    :param data: Raw bytes.
    :type data: bytes
    :returns: Ordinary symbols followed by exactly one terminal symbol.
    :rtype: str
    """
    encoder = StreamEncoder()
    return encoder.update(data) + encoder.finalize()


def decode(text: Chunk) -> bytes:
    """Decode a whole Base-Han stream.

    :param text: Complete encoded stream.
    :type text: Union[str, Iterable[int]]
    :returns: The original bytes.
    :rtype: bytes
    :raises CorruptedStream: If the terminal symbol is missing or bits are
        left over.
    """
    decoder = StreamDecoder()
    data = decoder.update(text)
    if not decoder.closed:
        raise CorruptedStream("Stream has no terminal symbol")
    if decoder.finalize() is not None:
        raise CorruptedStream("Stream ends with unresolved bits")
    return data
