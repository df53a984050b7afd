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
    parser = argparse.ArgumentParser(description="Compare two revisions stored in an RCS (,v) file.")
    parser.add_argument("file_path", help="Path to the ,v file")
    parser.add_argument("-r", "--revision", action="append", default=[],
        help="Revision to compare. Give it twice; with one, it is compared to head.")
    parser.add_argument("-e", "--encoding", help="Encoding of the archive (default: RCS_READER_ENCODING or utf-8)")

    args = parser.parse_args()
    logging.basicConfig(level=logging.WARNING, format='%(levelname)s: %(message)s')

    if not os.path.exists(args.file_path):
        print(f"Error: File '{args.file_path}' not found.", file=sys.stderr)
        sys.exit(1)
    if len(args.revision) > 2:
        print("Error: At most two revisions can be compared.", file=sys.stderr)
        sys.exit(1)

    try:
        rcs = RcsReader(args.file_path, encoding=args.encoding)
        revisions = args.revision + [rcs.recent_version()] * (2 - len(args.revision))
        if len(args.revision) == 0:
            # Nothing given: compare head with its predecessor
            revisions[0] = rcs.previous_version() or revisions[1]
        result = rcs.diff(revisions[0], revisions[1])
    except (FormatError, UnknownRevision) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    sys.stdout.write(result)
    # diff(1) convention: exit status 1 when the revisions differ
    sys.exit(1 if result else 0)

if __name__ == "__main__":
    main()
