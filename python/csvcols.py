#!/usr/bin/env python3
"""
Name: csvcols
Description: select, reorder and reformat the columns of CSV data
License: perl

Reads CSV rows from standard input and writes the chosen columns of each
row to standard output. Columns are given as a comma separated list of
1-based selectors:

    3       the third column
    2-5     columns two through five
    4-      column four through the end of the row
    6-2     columns six down to two, in that order

Selectors that fall outside a row silently contribute nothing to it.
"""

import sys
import os
import argparse
import csv
import re
from dataclasses import dataclass

__version__ = "1.0"

# Tokens are split on '-' before this is applied, so no sign other than '+'
# can reach it.
INTEGER_RE = re.compile(r'\+?[0-9]+')


class SelectorError(ValueError):
    """Raised for a column selector that cannot be parsed."""

    def __init__(self, token: str):
        super().__init__(f"bad selector: '{token}'")
        self.token = token


class EmptyInputError(ValueError):
    """Raised when a header row was required but the input was empty."""


# --- Selectors ---
# All indices are stored zero-based.

class Selector:
    """Base class for the three selector shapes."""

    __slots__ = ()

    def choose(self, row: list) -> list:
        raise NotImplementedError


@dataclass(frozen=True)
class SingleColumn(Selector):
    index: int

    def choose(self, row: list) -> list:
        if 0 <= self.index < len(row):
            return [row[self.index]]
        return []


@dataclass(frozen=True)
class FromColumn(Selector):
    index: int

    def choose(self, row: list) -> list:
        if self.index < len(row):
            return row[max(self.index, 0):]
        return []


@dataclass(frozen=True)
class ColumnRange(Selector):
    start: int
    stop: int

    def choose(self, row: list) -> list:
        """
        Returns the inclusive span between start and stop.

        A descending range is swapped to ascending, clamped to the row and
        then reversed. Clamping happens before the reversal, so `6-2` on a
        four column row yields columns 4 and 3.
        """
        start, stop = self.start, self.stop
        flip = start > stop
        if flip:
            start, stop = stop, start

        if start < 0:
            start = 0
        if stop > len(row) - 1:
            stop = len(row) - 1

        if start > stop:
            return []

        result = row[start:stop + 1]
        if flip:
            result.reverse()
        return result


DEFAULT_SELECTORS = (FromColumn(0),)


def _parse_int(text: str, token: str) -> int:
    if not INTEGER_RE.fullmatch(text):
        raise SelectorError(token)
    return int(text)


def parse_selector(token: str) -> Selector:
    """
    Compiles one selector token ('3', '2-5', '4-', '6-2') into a Selector.
    Raises SelectorError rather than guessing at anything else.
    """
    pieces = token.split('-')

    if len(pieces) == 1:
        return SingleColumn(_parse_int(pieces[0], token) - 1)

    if len(pieces) == 2:
        start = _parse_int(pieces[0], token)
        if pieces[1] == '':
            return FromColumn(start - 1)
        stop = _parse_int(pieces[1], token)
        return ColumnRange(start - 1, stop - 1)

    raise SelectorError(token)


def parse_selector_list(list_str) -> tuple:
    """
    Parses a comma separated selector list. Each token is parsed on its own;
    the first bad token fails the whole list. No list means all columns.
    """
    if not list_str:
        return DEFAULT_SELECTORS
    return tuple(parse_selector(token) for token in list_str.split(','))


# --- Row processing ---

def project(row: list, selectors) -> list:
    """Concatenates what each selector picks from the row, in selector order."""
    out_row = []
    for selector in selectors:
        out_row.extend(selector.choose(row))
    return out_row


def dump_rows(reader, write, selectors, squash: bool) -> int:
    """
    Projects every row from the reader and hands it to `write`.

    With `squash` set, rows that picked up any empty field are dropped.
    Returns the number of rows written.
    """
    written = 0
    for row in reader:
        out_row = project(row, selectors)
        if squash and '' in out_row:
            continue
        write(out_row)
        written += 1
    return written


def print_header(reader, out) -> None:
    """Lists the fields of the first row next to their 1-based index."""
    header = next(reader, None)
    if header is None:
        raise EmptyInputError("no header row")

    for i, name in enumerate(header, start=1):
        out.write("%4d %s\n" % (i, name))


def make_writer(out, tsv: bool = False, raw: bool = False):
    """Returns a function that writes one output row to `out`."""
    if raw:
        def write_raw(row):
            out.write("".join(row))
            out.write("\n")
        return write_raw

    writer = csv.writer(out, delimiter='\t' if tsv else ',', lineterminator='\n')
    return writer.writerow


# --- Configuration ---

@dataclass(frozen=True)
class Options:
    selectors: tuple = DEFAULT_SELECTORS
    header: bool = False
    squash: bool = False
    tsv: bool = False
    raw: bool = False


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Select, reorder and reformat the columns of CSV data read from stdin.",
        usage="%(prog)s [-c list] [-header] [-trim] [-tsv | -raw]"
    )
    parser.add_argument('-V', '--version', action='version',
                        version=f'%(prog)s {__version__}')
    parser.add_argument('-c', '--columns', dest='columns', default='',
                        help='Comma separated list of columns to include in the result (e.g. 3,1,5-,9-7).')
    parser.add_argument('-header', '--header', dest='header', action='store_true',
                        help='Dump the header row with index values.')
    parser.add_argument('-trim', '--trim', dest='squash', action='store_true',
                        help='Omit rows where any selected column is empty.')
    # -raw wins if both are given.
    parser.add_argument('-tsv', '--tsv', dest='tsv', action='store_true',
                        help='Output in TSV format.')
    parser.add_argument('-raw', '--raw', dest='raw', action='store_true',
                        help='Output the selected fields concatenated, with no delimiter or quoting.')
    return parser


def parse_options(argv=None) -> Options:
    """
    Builds the Options snapshot from the command line. A bad selector
    raises SelectorError; argparse usage errors exit on their own.
    """
    args = build_parser().parse_args(argv)
    return Options(
        selectors=parse_selector_list(args.columns),
        header=args.header,
        squash=args.squash,
        tsv=args.tsv,
        raw=args.raw,
    )


def run(options: Options, instream, outstream) -> None:
    """Runs either the header listing or the row pipeline."""
    reader = csv.reader(instream)

    if options.header:
        print_header(reader, outstream)
    else:
        write = make_writer(outstream, tsv=options.tsv, raw=options.raw)
        dump_rows(reader, write, options.selectors, options.squash)

    outstream.flush()


def reopen_stream(stream):
    """
    Switches a standard stream to untranslated newlines, as the csv module
    expects, and lets bytes that are not valid in its encoding pass through.
    """
    if hasattr(stream, 'reconfigure'):
        stream.reconfigure(errors='surrogateescape', newline='')
    return stream


def main(argv=None):
    """Parses arguments, runs the filter and turns errors into exit codes."""
    program_name = os.path.basename(sys.argv[0])

    try:
        options = parse_options(argv)
    except SelectorError as e:
        print(f"{program_name}: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        run(options, reopen_stream(sys.stdin), reopen_stream(sys.stdout))
    except (csv.Error, EmptyInputError, UnicodeError) as e:
        print(f"{program_name}: {e}", file=sys.stderr)
        sys.exit(1)
    except BrokenPipeError:
        # The reader went away (e.g. `| head`); keep the final flush quiet.
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
        sys.exit(1)
    except IOError as e:
        print(f"{program_name}: I/O error: {e.strerror or e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        sys.exit(130)

    sys.exit(0)


if __name__ == "__main__":
    main()
