import argparse
import codecs
import sys

from typing import BinaryIO, List, Optional, TextIO
from basehan import (
    BaseHanError,
    CorruptedStream,
    EndOfStream,
    InvalidSymbol,
    StreamDecoder,
    StreamEncoder,
    decode,
    encode,
)

DEFAULT_CHUNK_SIZE = 3 * 1024 * 1024  #: Bytes read per loop iteration
ENCODE_PROMPT = "encode> "
DECODE_PROMPT = "decode> "
EXIT_COMMAND = "exit"

_WHITESPACE = str.maketrans("", "", " \t\r\n\f\v")


def _positive_int(value: str) -> int:
    """Argparse type for strictly positive integers.

    :param value: Raw command line value.
    :type value: str
    :returns: Parsed integer.
    :rtype: int
    :raises argparse.ArgumentTypeError: If ``value`` is not a positive integer.
    """
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {value!r}")
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {number}")
    return number


def get_parser():
    """Create and configure the CLI argument parser.

    :returns: Configured argument parser.
    :rtype: argparse.ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog="basehan",
        description="Encode/decode binary data to/from Base-Han text",
    )
    parser.add_argument(
        "input",
        nargs="?",
        default="-",
        help="Input file (default: stdin)",
    )
    parser.add_argument(
        "-o", "--output", default="-", help="Output file (default: stdout)"
    )
    parser.add_argument(
        "-d",
        "--decode",
        action="store_true",
        help="Decode Base-Han text instead of encoding",
    )
    parser.add_argument(
        "-i",
        "--interactive",
        action="store_true",
        help="Read lines from the terminal and convert them one by one",
    )
    parser.add_argument(
        "-c",
        "--chunk-size",
        type=_positive_int,
        default=DEFAULT_CHUNK_SIZE,
        help=f"Bytes read per iteration (default: {DEFAULT_CHUNK_SIZE})",
    )
    return parser


def _strip_whitespace(text: str) -> str:
    """Drop ASCII whitespace that terminals and editors add to text.

    :param text: Decoded input text.
    :type text: str
    :returns: ``text`` without spaces, tabs and line breaks.
    :rtype: str
    """
    return text.translate(_WHITESPACE)


def _report(message: str) -> None:
    print(f"[!] {message}", file=sys.stderr)


def encode_stream(src: BinaryIO, dst: BinaryIO, chunk_size: int) -> None:
    """Encode ``src`` into UTF-8 Base-Han text on ``dst``.

    Output is flushed after every chunk; the terminal symbol is written
    once ``src`` is exhausted.

    :param src: Binary input stream.
    :type src: BinaryIO
    :param dst: Binary output stream.
    :type dst: BinaryIO
    :param chunk_size: Bytes read per iteration.
    :type chunk_size: int
    :returns: None
    :rtype: None
    """
    encoder = StreamEncoder()
    out: List[str] = []
    while True:
        chunk = src.read(chunk_size)
        if not chunk:
            break
        encoder.update_into(chunk, out)
        dst.write("".join(out).encode("utf-8"))
        dst.flush()
        out.clear()
    dst.write(encoder.finalize().encode("utf-8"))
    dst.flush()


def decode_stream(src: BinaryIO, dst: BinaryIO, chunk_size: int) -> None:
    """Decode UTF-8 Base-Han text from ``src`` into raw bytes on ``dst``.

    :param src: Binary input stream holding UTF-8 text.
    :type src: BinaryIO
    :param dst: Binary output stream.
    :type dst: BinaryIO
    :param chunk_size: Bytes read per iteration.
    :type chunk_size: int
    :returns: None
    :rtype: None
    :raises CorruptedStream: If the input is not UTF-8, has no terminal
        symbol or ends with unresolved bits.
    :raises InvalidSymbol: If the text contains a NUL character.
    :raises EndOfStream: If data follows the terminal symbol.
    """
    text_decoder = codecs.getincrementaldecoder("utf-8")()
    decoder = StreamDecoder()
    out = bytearray()
    final = False
    while not final:
        chunk = src.read(chunk_size)
        final = not chunk
        try:
            text = text_decoder.decode(chunk, final=final)
        except UnicodeDecodeError as e:
            raise CorruptedStream(f"Input is not valid UTF-8: {e}") from e
        text = _strip_whitespace(text)
        zero = text.find("\x00")
        if zero >= 0:
            raise InvalidSymbol(0, decoder.position + zero)
        start = decoder.position
        decoder.update_into(text, out)
        if decoder.closed and decoder.position - start < len(text):
            raise EndOfStream(
                f"Input after terminal symbol at position {decoder.position}"
            )
        if out:
            dst.write(out)
            dst.flush()
            out.clear()
    if not decoder.closed:
        raise CorruptedStream("The input is truncated: no terminal symbol")
    if decoder.finalize() is not None:
        raise CorruptedStream("The input is corrupted: unresolved bits")


def _write_line_bytes(stdout: TextIO, data: bytes) -> None:
    """Write raw ``data`` and a newline to ``stdout``.

    Text-only streams without a ``buffer`` get the bytes decoded as UTF-8
    with backslash escapes.

    :param stdout: Destination stream.
    :type stdout: TextIO
    :param data: Decoded bytes.
    :type data: bytes
    :returns: None
    :rtype: None
    """
    buffer = getattr(stdout, "buffer", None)
    if buffer is None:
        print(data.decode("utf-8", errors="backslashreplace"), file=stdout)
        return
    stdout.flush()
    buffer.write(data + b"\n")
    buffer.flush()


def interactive_shell(
    decode_mode: bool, stdin: TextIO, stdout: TextIO, stderr: TextIO
) -> None:
    """Convert lines typed by the user until ``exit`` or end of input.

    Errors are reported and the loop goes on with the next line.

    :param decode_mode: Decode lines instead of encoding them.
    :type decode_mode: bool
    :param stdin: Line source.
    :type stdin: TextIO
    :param stdout: Destination for results.
    :type stdout: TextIO
    :param stderr: Destination for prompts.
    :type stderr: TextIO
    :returns: None
    :rtype: None
    """
    print("Interactive mode.", file=stdout)
    prompt = DECODE_PROMPT if decode_mode else ENCODE_PROMPT
    while True:
        stderr.write(prompt)
        stderr.flush()
        line = stdin.readline()
        if not line:
            break
        line = line.strip()
        if line == EXIT_COMMAND:
            break
        if decode_mode:
            try:
                data = decode(_strip_whitespace(line))
            except BaseHanError as e:
                print(f"Error: Please input a valid Base-Han text. {e}",
                      file=stdout)
                continue
            _write_line_bytes(stdout, data)
        else:
            print(encode(line.encode("utf-8")), file=stdout)
        stdout.flush()
    print("Exit", file=stdout)


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the CLI tool.

    :param argv: Arguments without the program name (default: ``sys.argv``).
    :type argv: Optional[List[str]]
    :returns: Process exit status.
    :rtype: int
    """
    parser = get_parser()
    args = parser.parse_args(argv)

    if args.interactive:
        interactive_shell(args.decode, sys.stdin, sys.stdout, sys.stderr)
        return 0

    run = decode_stream if args.decode else encode_stream
    src = dst = None
    try:
        src = (
            sys.stdin.buffer if args.input == "-" else open(args.input, "rb")
        )
        dst = (
            sys.stdout.buffer if args.output == "-" else open(args.output, "wb")
        )
        run(src, dst, args.chunk_size)
    except BaseHanError as e:
        _report(f"{type(e).__name__}: {e}")
        return 1
    except OSError as e:
        _report(f"I/O error: {e}")
        return 1
    finally:
        if src is not None and args.input != "-":
            src.close()
        if dst is not None and args.output != "-":
            dst.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
