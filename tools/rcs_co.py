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


def main():
    parser = argparse.ArgumentParser(description="Print a revision stored in an RCS (,v) file.")
    parser.add_argument("file_path", help="Path to the ,v file")
    parser.add_argument("-r", "--revision", help="Revision to check out (default: head)")
    parser.add_argument("-e", "--encoding", help="Encoding of the archive (default: RCS_READER_ENCODING or utf-8)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug output")

    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING, format='%(levelname)s: %(message)s')

    if not os.path.exists(args.file_path):
        print(f"Error: File '{args.file_path}' not found.", file=sys.stderr)
        sys.exit(1)

    try:
        rcs = RcsReader(args.file_path, encoding=args.encoding)
        text = rcs.get(args.revision)
    except (FormatError, UnknownRevision) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    sys.stdout.write(text)

if __name__ == "__main__":
    main()
