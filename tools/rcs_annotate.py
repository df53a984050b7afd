#!/usr/bin/env python3
# ruff: noqa: T201, ANN201
import argparse
import logging
import os
import sys


# Add project root to sys.path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from rcs_reader.rcs_errors import FormatError, UnknownRevision
from rcs_reader.rcs_reader import RcsReader


def format_annotation_line(origin: str, author: str, date: str, text: str, width: int) -> str:
    # RCS dates look like 2014.03.09.12.00.00; keep the day only
    day = "-".join((date or "").split(".")[:3])
    text = text.rstrip("\n")
    return f"{origin:<{width}} ({author or 'unknown':<8} {day}): {text}"

def main():
    parser = argparse.ArgumentParser(description="Show the revision that introduced each line of an RCS file.")
    parser.add_argument("file_path", help="Path to the ,v file")
    parser.add_argument("-r", "--revision", help="Revision to annotate (default: head)")
    parser.add_argument("-e", "--encoding", help="Encoding of the archive (default: RCS_READER_ENCODING or utf-8)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug output")

    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING, format='%(levelname)s: %(message)s')

    if not os.path.exists(args.file_path):
        print(f"Error: File '{args.file_path}' not found.", file=sys.stderr)
        sys.exit(1)

    try:
        rcs = RcsReader(args.file_path, encoding=args.encoding)
        annotation = rcs.notate(args.revision)
    except (FormatError, UnknownRevision) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    width = max((len(line.origin) for line in annotation), default=0)
    for line in annotation:
        print(format_annotation_line(line.origin, rcs.author(line.origin), rcs.date(line.origin), line.text, width))

    if annotation.gaps:
        print(f"{annotation.gaps} line(s) could not be traced to their origin.", file=sys.stderr)

if __name__ == "__main__":
    main()
