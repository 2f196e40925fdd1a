"""Command line front end for csv_splitter.Splitter.

Example:
    python split_csv.py --lines 5000 --dest extracted --has-header orders.csv

Defaults come from config.json next to this script and can be overridden
on the command line. When no source file is given, the path is prompted for.
"""

import argparse
import json
import os
import sys

from csv_splitter import DEFAULT_LINES_PER_FILE, InvalidConfiguration, Splitter, SplitterError

DEFAULT_CONFIG = {
    "LINES_PER_FILE": DEFAULT_LINES_PER_FILE,
    "HAS_HEADER": False,
    "OUTPUT_FOLDER": None,
    "SHOW_PROGRESS": True,
}

script_dir = os.path.dirname(os.path.abspath(__file__))
config_path = os.path.join(script_dir, "config.json")

# Config

def load_config(path=None):
    """Load config.json, falling back to defaults when the default file is absent."""
    config = dict(DEFAULT_CONFIG)
    explicit = path is not None
    path = path if explicit else config_path

    if not os.path.exists(path):
        if explicit:
            raise InvalidConfiguration(f"Config file '{path}' not found.")
        return config

    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise InvalidConfiguration(f"Config file '{path}' is not valid JSON: {e}")

    if not isinstance(data, dict):
        raise InvalidConfiguration(f"Config file '{path}' must contain a JSON object.")

    config.update(data)
    return config

# Input helpers

def prompt_source():
    try:
        csv_file = input("Drop the path to a .csv file: ").strip().strip('"').strip("'")
    except (EOFError, KeyboardInterrupt):
        print()
        return None
    return csv_file or None


def build_parser():
    parser = argparse.ArgumentParser(
        description="Split a large CSV file into smaller CSV files with a maximum number of lines each.")
    parser.add_argument("source", nargs="?", help="The CSV file to split into child files.")
    parser.add_argument("--lines", type=int,
                        help="The maximum number of lines to write to each child CSV file.")
    parser.add_argument("--dest",
                        help="The path to write the created, child CSV files to.")
    parser.add_argument("--has-header", action="store_true", default=None,
                        help="Treat the first line of the CSV file as a header row, added to each child file.")
    parser.add_argument("--config", help="Path to a JSON config file (default: config.json next to this script).")
    parser.add_argument("--quiet", action="store_true", help="Do not show a progress bar.")
    return parser

# ---- Main ----

def main(argv=None):
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except InvalidConfiguration as e:
        print(f"{e}\n")
        return 1

    source = args.source or prompt_source()
    if not source:
        print("No file path provided. Exiting.\n")
        return 1

    lines = args.lines if args.lines is not None else config["LINES_PER_FILE"]
    dest = args.dest or config["OUTPUT_FOLDER"] or os.getcwd()
    has_header = args.has_header if args.has_header is not None else config["HAS_HEADER"]
    show_progress = not args.quiet and bool(config["SHOW_PROGRESS"])

    try:
        created_files = (Splitter()
                         .set_lines_per_file(lines)
                         .set_output_directory(dest)
                         .set_file_has_header(has_header)
                         .set_show_progress(show_progress)
                         .parse(source))
    except SplitterError as e:
        print(f"{e}\n")
        return 1
    except OSError as e:
        print(f"Failed while writing child files: {e}\n")
        return 1

    print(f"Wrote {len(created_files)} CSV files:")
    for a_file in created_files:
        print(f" - {a_file}")
    return 0

if __name__ == "__main__":
    sys.exit(main())
