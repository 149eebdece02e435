from typing import Optional, Tuple

SYMBOL_BITS = 13  #: Width of one Base-Han symbol
SYMBOL_MASK = (1 << SYMBOL_BITS) - 1


class BitPacker:
    """Bit-rate converter from 8-bit bytes to 13-bit symbols.

    Accumulates bytes MSB first and hands out every complete symbol as
    soon as it is available.

    :ivar bit_buffer: Pending bits, always below ``2 ** bit_count``.
    :type bit_buffer: int
    :ivar bit_count: Number of valid bits in ``bit_buffer`` (0-12).
    :type bit_count: int
    """

    def __init__(self):
        """Initialize an empty packer.

        :returns: None
        :rtype: None
        """
        self.bit_buffer = 0
        self.bit_count = 0

    def push_byte(self, byte: int) -> Optional[int]:
        """Append one byte and return the symbol it completes, if any.

        :param byte: Byte value (0-255).
        :type byte: int
        :returns: The completed 13-bit symbol or ``None``.
        :rtype: Optional[int]
        :raises ValueError: If ``byte`` is not in ``0..255``.
        """
        if not 0 <= byte <= 0xFF:
            raise ValueError(f"Not a byte value: {byte}")
        total = self.bit_count + 8
        if total > 20:
            raise AssertionError(f"Bit buffer overflow: {total} bits pending")
        self.bit_buffer = (self.bit_buffer << 8) | byte
        if total < SYMBOL_BITS:
            self.bit_count = total
            return None
        self.bit_count = total - SYMBOL_BITS
        symbol = self.bit_buffer >> self.bit_count
        self.bit_buffer &= (1 << self.bit_count) - 1
        return symbol

    def finalize(self) -> Tuple[int, int]:
        """Return the leftover bits as ``(value, nbits)``.

        :returns: Pending value and its bit count (0-12).
        :rtype: Tuple[int, int]
        """
        return self.bit_buffer, self.bit_count


class BitUnpacker:
    """Bit-rate converter from 13-bit symbols back to bytes.

    :ivar bit_buffer: Pending bits, always below ``2 ** bit_count``.
    :type bit_buffer: int
    :ivar bit_count: Number of valid bits in ``bit_buffer`` (0-7).
    :type bit_count: int
    """

    def __init__(self):
        self.bit_buffer = 0
        self.bit_count = 0

    def push_symbol(self, symbol: int) -> bytes:
        """Append a 13-bit symbol and return the one or two bytes it completes.

        :param symbol: Symbol value (0-8191).
        :type symbol: int
        :returns: One byte when at most 2 bits were pending, else two.
        :rtype: bytes
        :raises ValueError: If ``symbol`` does not fit in 13 bits.
        """
        if not 0 <= symbol <= SYMBOL_MASK:
            raise ValueError(f"Not a 13-bit symbol: {symbol}")
        total = self.bit_count + SYMBOL_BITS
        if total > 20:
            raise AssertionError(f"Bit buffer overflow: {total} bits pending")
        self.bit_buffer = (self.bit_buffer << SYMBOL_BITS) | symbol
        if total < 16:
            self.bit_count = total - 8
            out = bytes([self.bit_buffer >> self.bit_count])
        else:
            self.bit_count = total - 16
            word = self.bit_buffer >> self.bit_count
            out = bytes([word >> 8, word & 0xFF])
        self.bit_buffer &= (1 << self.bit_count) - 1
        return out

    def push_bits(self, value: int, nbits: int) -> bytes:
        """Append the lowest ``nbits`` of ``value`` and drain whole bytes.

        Unlike :meth:`push_symbol` the width is arbitrary, so a short tail
        of a stream can be appended without padding.

        :param value: Bits to append, MSB first.
        :type value: int
        :param nbits: Number of bits in ``value``.
        :type nbits: int
        :returns: Every byte completed by the new bits.
        :rtype: bytes
        :raises ValueError: If ``value`` does not fit in ``nbits`` bits.
        """
        if nbits < 0 or value < 0 or value >> nbits:
            raise ValueError(f"Value {value} does not fit in {nbits} bits")
        self.bit_buffer = (self.bit_buffer << nbits) | value
        self.bit_count += nbits
        out = bytearray()
        while self.bit_count >= 8:
            self.bit_count -= 8
            out.append((self.bit_buffer >> self.bit_count) & 0xFF)
        self.bit_buffer &= (1 << self.bit_count) - 1
        return bytes(out)

    def finalize(self) -> Optional[int]:
        """Return unresolved bits as a zero-padded byte, or ``None``.

        A well-formed stream drains to exactly zero pending bits, so a
        returned value means the input was truncated or damaged.

        :returns: The partial byte, left aligned, or ``None``.
        :rtype: Optional[int]
        """
        if self.bit_count == 0:
            return None
        return self.bit_buffer << (8 - self.bit_count)
