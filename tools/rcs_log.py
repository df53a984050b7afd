#!/usr/bin/env python3
# ruff: noqa: T201, ANN201
import argparse
import logging
import os
import sys


# Add project root to sys.path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from rcs_reader.rcs_errors import FormatError
from rcs_reader.rcs_reader import RcsReader


def print_log_entry(entry: dict) -> None:
    print(f"revision {entry.get('ver')}")
    print(f"Author: {entry.get('author')}")
    print(f"Date:   {entry.get('date')}")
    if entry.get('state'):
        print(f"State:  {entry['state']}")

    print("") # Empty line before message

    log_msg = entry.get('log', '')
    # Indent log message
    for line in log_msg.splitlines():
        print(f"    {line}")

    print("") # Separator

def main():
    parser = argparse.ArgumentParser(description="Show revision history of an RCS (,v) file.")
    parser.add_argument("file_path", help="Path to the ,v file")
    parser.add_argument("-n", "--limit", type=int, help="Limit number of revisions to show")
    parser.add_argument("-r", "--reverse", action="store_true", help="Show oldest revisions first")
    parser.add_argument("-e", "--encoding", help="Encoding of the archive (default: RCS_READER_ENCODING or utf-8)")

    args = parser.parse_args()
    logging.basicConfig(level=logging.WARNING, format='%(levelname)s: %(message)s')

    if not os.path.exists(args.file_path):
        print(f"Error: File '{args.file_path}' not found.")
        sys.exit(1)

    try:
        rcs = RcsReader(args.file_path, encoding=args.encoding)
    except FormatError as e:
        print(f"Error: {e}")
        sys.exit(1)

    logs = rcs.log(limit=args.limit, reverse=args.reverse)

    if not logs:
        print("No history found.")
        return

    if rcs.description:
        print(f"description: {rcs.description.rstrip()}")
        print("")

    for entry in logs:
        print_log_entry(entry)

if __name__ == "__main__":
    main()
