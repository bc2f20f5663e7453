#!/usr/bin/env python3
"""
Name: cut
Description: select portions of each line of a file
Author: Rich Lafferty, rich@alcor.concordia.ca (Original Perl Author)
License: perl
"""

import sys
import os
import argparse
from collections import namedtuple

BYTES = 'bytes'
CHARS = 'chars'
FIELDS = 'fields'

QUOTE = '"'

# The addressing mode: one kind, its ranges, and (fields only) the delimiter.
Extract = namedtuple('Extract', ['kind', 'positions', 'delimiter'])
Config = namedtuple('Config', ['extract', 'files'])


class RecordError(ValueError):
    """A delimited record that cannot be tokenized."""


class UnterminatedQuoteError(RecordError):
    """A quoted field is still open at the end of the record."""


# --- Selection lists ---

def is_digits(token: str) -> bool:
    return token.isascii() and token.isdigit()

def parse_index(token: str) -> int:
    """
    Parses a 1-based list value into a 0-based index.
    Only plain ASCII digits are accepted; "01" is the same as "1".
    """
    digits = token.lstrip('0')
    if token.startswith('+') or not is_digits(token) or not digits:
        raise ValueError(f'illegal list value "{token}"')
    try:
        return int(digits) - 1
    except ValueError:
        # Past the interpreter's limit on int() digits
        raise ValueError(f'illegal list value "{token}"') from None

def parse_range(token: str) -> range:
    """Parses one comma-separated token: either 'N' or 'N-M'."""
    try:
        index = parse_index(token)
    except ValueError:
        bounds = token.split('-')
        if len(bounds) != 2 or not all(is_digits(b) for b in bounds):
            raise
        first, second = parse_index(bounds[0]), parse_index(bounds[1])
        if first >= second:
            raise ValueError(
                f"First number in range ({first + 1}) must be lower "
                f"than second number ({second + 1})"
            ) from None
        return range(first, second + 1)
    return range(index, index + 1)

def parse_list(list_str: str) -> list:
    """
    Parses a cut-style list string (e.g., "1,7,3-5") into a list of
    half-open 0-based ranges, in the order given.

    Nothing is sorted or merged: "1,1" selects the first position twice.
    The first bad token raises ValueError.
    """
    return [parse_range(part) for part in list_str.split(',')]

def parse_delimiter(delim: str) -> str:
    if len(delim.encode('utf-8')) != 1:
        raise ValueError(f'--delimiter "{delim}" must be a single byte')
    if delim in (QUOTE, '\n', '\r'):
        raise ValueError(f'--delimiter {delim!r} cannot be a quote or line break')
    return delim


# --- Delimited records ---

def split_record(line: str, delimiter: str) -> list:
    """
    Splits a record into fields. A field that starts with a double quote runs
    to the matching closing quote; inside it the delimiter and line breaks are
    literal and "" stands for one quote. The closing quote must be followed by
    the delimiter or the end of the record.
    """
    fields = []
    i, n = 0, len(line)
    while True:
        if line.startswith(QUOTE, i):
            parts = []
            i += 1
            while True:
                close = line.find(QUOTE, i)
                if close < 0:
                    raise UnterminatedQuoteError("unterminated quoted field")
                parts.append(line[i:close])
                i = close + 1
                if line.startswith(QUOTE, i):
                    parts.append(QUOTE)
                    i += 1
                else:
                    break
            if i < n and line[i] != delimiter:
                raise RecordError(f"expected delimiter after closing quote at column {i + 1}")
            fields.append(''.join(parts))
        else:
            end = line.find(delimiter, i)
            if end < 0:
                end = n
            fields.append(line[i:end])
            i = end

        if i >= n:
            return fields
        i += 1 # Step over the delimiter
        if i == n:
            # A trailing delimiter leaves one empty field behind it.
            fields.append('')
            return fields

def quote_field(field: str, delimiter: str) -> str:
    if delimiter in field or QUOTE in field or '\n' in field or '\r' in field:
        return QUOTE + field.replace(QUOTE, QUOTE * 2) + QUOTE
    return field

def join_record(fields: list, delimiter: str) -> str:
    """Joins fields with the delimiter, quoting only the fields that need it."""
    return delimiter.join(quote_field(f, delimiter) for f in fields)

def read_records(lines, delimiter: str):
    """
    Yields (line_number, fields) for each record in an iterable of decoded
    lines without terminators. A quoted field left open at the end of a line
    continues on the next one.
    """
    pending = None
    start = 0
    for lineno, line in enumerate(lines, 1):
        if pending is None:
            start, text = lineno, line
        else:
            text = pending + '\n' + line
        try:
            fields = split_record(text, delimiter)
        except UnterminatedQuoteError:
            pending = text
            continue
        except RecordError as e:
            raise RecordError(f"line {start}: {e}") from None
        pending = None
        yield start, fields

    if pending is not None:
        raise RecordError(f"line {start}: unterminated quoted field")


# --- Extraction ---

def clip(positions: list, length: int):
    """Yields the indices of each range that fall before `length`, in list order."""
    for span in positions:
        yield from range(span.start, min(span.stop, length))

def extract_chars(line: str, positions: list) -> str:
    """Selects characters, in list order. Positions past the end are skipped."""
    return ''.join(line[i] for i in clip(positions, len(line)))

def extract_bytes(data: bytes, positions: list) -> str:
    """
    Selects raw bytes in list order, then decodes the result as UTF-8.
    A byte run that is not valid UTF-8 (for instance a character cut in
    half by a range boundary) becomes U+FFFD, one per maximal invalid run
    as Python's 'replace' handler defines it.
    """
    selected = bytes(data[i] for i in clip(positions, len(data)))
    return selected.decode('utf-8', errors='replace')

def extract_fields(fields: list, positions: list) -> list:
    """Selects fields in list order, repeating any that are asked for twice."""
    return [fields[i] for i in clip(positions, len(fields))]

def extract(mode: Extract, line) -> str:
    """
    Applies one addressing mode to one input line.
    Bytes mode takes the raw line as bytes; chars and fields modes take
    decoded text.
    """
    if mode.kind == BYTES:
        if isinstance(line, str):
            line = line.encode('utf-8')
        return extract_bytes(line, mode.positions)
    if mode.kind == CHARS:
        return extract_chars(line, mode.positions)
    if mode.kind == FIELDS:
        fields = split_record(line, mode.delimiter)
        return join_record(extract_fields(fields, mode.positions), mode.delimiter)
    raise ValueError(f"unknown extraction mode '{mode.kind}'")

def strip_newline(raw: bytes) -> bytes:
    if raw.endswith(b'\r\n'):
        return raw[:-2]
    if raw.endswith(b'\n'):
        return raw[:-1]
    return raw

def decode_lines(stream):
    for raw in stream:
        yield strip_newline(raw).decode('utf-8', errors='replace')

def cut_stream(stream, mode: Extract, out):
    """
    Reads a binary line stream and writes one selected line per record to
    the text stream `out`. In fields mode a malformed record raises
    RecordError after the records before it have been written.
    """
    if mode.kind == FIELDS:
        for _, fields in read_records(decode_lines(stream), mode.delimiter):
            selected = extract_fields(fields, mode.positions)
            out.write(join_record(selected, mode.delimiter) + '\n')
    elif mode.kind == CHARS:
        for line in decode_lines(stream):
            out.write(extract(mode, line) + '\n')
    else:
        for raw in stream:
            out.write(extract(mode, strip_newline(raw)) + '\n')
    out.flush()


# --- Command line ---

def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Select portions of each line of a file.",
        usage="%(prog)s [-b list | -c list | -f list] [-d delim] [file ...]"
    )
    # The main modes are mutually exclusive.
    mode_group = parser.add_mutually_exclusive_group(required=True)
    mode_group.add_argument('-b', '--bytes', dest='byte_list', metavar='LIST',
                            help='The list specifies byte positions.')
    mode_group.add_argument('-c', '--chars', dest='char_list', metavar='LIST',
                            help='The list specifies character positions.')
    mode_group.add_argument('-f', '--fields', dest='field_list', metavar='LIST',
                            help='The list specifies fields.')

    parser.add_argument('-d', '--delimiter', default='\t',
                        help="Use DELIM instead of TAB for field delimiter.")

    parser.add_argument('files', nargs='*', default=['-'],
                        help='Files to process. Reads from stdin if none are given.')
    return parser.parse_args(argv)

def build_config(args) -> Config:
    """Turns parsed arguments into a Config. Raises ValueError on a bad list or delimiter."""
    if args.field_list is not None:
        extract_mode = Extract(FIELDS, parse_list(args.field_list), parse_delimiter(args.delimiter))
    elif args.byte_list is not None:
        extract_mode = Extract(BYTES, parse_list(args.byte_list), None)
    else:
        extract_mode = Extract(CHARS, parse_list(args.char_list), None)
    return Config(extract_mode, list(args.files))

def open_input(filename: str):
    """Opens a file for binary reading, or returns stdin for '-'."""
    if filename == '-':
        return sys.stdin.buffer
    return open(filename, 'rb')

def run(config: Config, out=None, program_name='cut') -> int:
    """
    Processes each file in order. A file that cannot be opened, or that holds
    a malformed record, is reported and skipped; the rest are still processed.
    Returns the exit status.
    """
    if out is None:
        out = sys.stdout
    exit_status = 0
    for filename in config.files:
        if filename != '-' and os.path.isdir(filename):
            print(f"{program_name}: {filename}: Is a directory", file=sys.stderr)
            exit_status = 1
            continue
        try:
            stream = open_input(filename)
        except OSError as e:
            print(f"{program_name}: {filename}: {e.strerror}", file=sys.stderr)
            exit_status = 1
            continue

        try:
            cut_stream(stream, config.extract, out)
        except RecordError as e:
            out.flush()
            print(f"{program_name}: {filename}: {e}", file=sys.stderr)
            exit_status = 1
        except BrokenPipeError:
            raise
        except OSError as e:
            print(f"{program_name}: {filename}: {e.strerror}", file=sys.stderr)
            exit_status = 1
        finally:
            if filename != '-':
                stream.close()
    return exit_status

def main():
    """Parses arguments and dispatches to the extraction engine."""
    args = parse_args()
    program_name = os.path.basename(sys.argv[0])

    try:
        config = build_config(args)
    except ValueError as e:
        print(f"{program_name}: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        sys.exit(run(config, program_name=program_name))
    except BrokenPipeError:
        # Output closed early (e.g. piped into head); stop quietly.
        sys.stderr.close()
        sys.exit(1)
    except KeyboardInterrupt:
        sys.exit(1)

if __name__ == "__main__":
    main()
