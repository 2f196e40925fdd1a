"""Split a large CSV file into smaller numbered CSV files.

Child files are named after the source file with an incrementing number,
so "example.csv" with 1000 data rows and 100 lines per file becomes
"example-1.csv" through "example-10.csv" in the output directory. When the
source has a header row it can be copied to the top of every child file.
"""

import codecs
import csv
import os
import sys
from collections import Counter, namedtuple

import chardet
from tqdm import tqdm

DEFAULT_LINES_PER_FILE = 100
SAMPLE_SIZE = 64 * 1024
CANDIDATE_DELIMITERS = ",;\t|:"

CsvFormat = namedtuple("CsvFormat", ["encoding", "dialect", "lineterminator"])

# ---- Errors ----

class SplitterError(Exception):
    """Base class for every failure raised while splitting."""


class InvalidSource(SplitterError):
    pass


class InvalidOutputDirectory(SplitterError):
    pass


class UnwritableOutputDirectory(SplitterError):
    pass


class UnparsableSource(SplitterError):
    pass


class InvalidConfiguration(SplitterError):
    pass


class InvalidFileName(SplitterError):
    pass

# ---- Format discovery ----

# fields are allowed to be as large as the platform permits
try:
    csv.field_size_limit(sys.maxsize)
except OverflowError:
    csv.field_size_limit(2**31 - 1)


def detect_encoding(raw):
    if not raw:
        return "utf-8"
    encoding = chardet.detect(raw)["encoding"]
    # ascii is a guess from the sample only, later rows may not be
    if not encoding or encoding.lower() == "ascii":
        return "utf-8"
    return encoding


def detect_lineterminator(text):
    if "\r\n" in text:
        return "\r\n"
    if "\r" in text:
        return "\r"
    return "\n"


def trim_partial_record(text, lineterminator):
    """Drop whatever follows the last line terminator of a truncated sample."""
    if lineterminator not in text:
        return text
    return text[:text.rindex(lineterminator) + len(lineterminator)]


def guess_delimiter(text):
    """
    Pick the candidate delimiter whose most common non-zero per-line count
    occurs on the most lines. Returns None when no candidate occurs at all.

    Used when the sniffer gives up, e.g. on ragged rows, report preambles
    or single-column values such as "10:00".
    """
    lines = [line for line in text.splitlines() if line.strip()]
    best_delimiter, best_lines = None, 0
    for delimiter in CANDIDATE_DELIMITERS:
        counts = Counter(line.count(delimiter) for line in lines)
        counts.pop(0, None)
        if not counts:
            continue
        _, lines_with_count = counts.most_common(1)[0]
        if lines_with_count > best_lines:
            best_delimiter, best_lines = delimiter, lines_with_count
    return best_delimiter


def guessed_dialect(delimiter):
    class GuessedDialect(csv.excel):
        pass

    GuessedDialect.delimiter = delimiter
    return GuessedDialect


def discover_format(path) -> CsvFormat:
    """
    Work out the encoding, dialect and line endings of a CSV file.

    Only the first SAMPLE_SIZE bytes are inspected. Raises UnparsableSource
    when the sample is binary or uses an unknown encoding.
    """
    with open(path, "rb") as f:
        raw = f.read(SAMPLE_SIZE)

    if not raw:
        return CsvFormat("utf-8", csv.excel, "\n")

    encoding = detect_encoding(raw)
    try:
        codecs.lookup(encoding)
    except LookupError:
        raise UnparsableSource(f'"{path}" uses an unsupported encoding ({encoding}).')

    text = raw.decode(encoding, errors="replace")
    if "\x00" in text:
        raise UnparsableSource(f'"{path}" looks like a binary file, not CSV.')

    lineterminator = detect_lineterminator(text)

    # the sample may end mid-record
    if len(raw) == SAMPLE_SIZE:
        text = trim_partial_record(text, lineterminator)

    if not any(delimiter in text for delimiter in CANDIDATE_DELIMITERS):
        return CsvFormat(encoding, csv.excel, lineterminator)

    try:
        dialect = csv.Sniffer().sniff(text, delimiters=CANDIDATE_DELIMITERS)
    except csv.Error:
        return CsvFormat(encoding, guessed_dialect(guess_delimiter(text)), lineterminator)

    # the sniffer only reports doubled quotes it saw in the sample
    dialect.doublequote = True
    # spaces after delimiters are data and must be written back
    dialect.skipinitialspace = False

    return CsvFormat(encoding, dialect, lineterminator)

# ---- File naming ----

def parse_file_name(file_name):
    """
    Split a file name into (base, extension) on its last period.

    "example.txt" gives ("example", "txt"), "another-example" gives
    ("another-example", "").
    """
    if not isinstance(file_name, str) or not file_name:
        raise InvalidFileName(f"Cannot build child file names from {file_name!r}.")

    base, dot, extension = file_name.rpartition(".")
    if not dot:
        return file_name, ""
    return base, extension


def child_file_path(output_directory, name_parts, index: int) -> str:
    base, extension = name_parts
    file_name = f"{base}-{index}"
    if extension:
        file_name += f".{extension}"
    return os.path.join(output_directory, file_name)

# ---- Splitter ----

class LineRecorder:
    """Iterates over source lines, keeping a copy of each until stop() is called."""

    def __init__(self, lines, recording=True):
        self._lines = iter(lines)
        self._recorded = []
        self._recording = recording

    def __iter__(self):
        return self

    def __next__(self):
        line = next(self._lines)
        if self._recording:
            self._recorded.append(line)
        return line

    def stop(self):
        """Stop recording and return the recorded text without leading blank lines."""
        self._recording = False
        text = "".join(self._recorded).lstrip("\r\n")
        self._recorded = []
        return text


class Splitter:
    """
    Splits one source CSV file into child files of at most `lines_per_file`
    data rows each. Setters return the splitter so calls can be chained:

        Splitter().set_lines_per_file(500).set_file_has_header(True).parse(path)
    """

    def __init__(self, lines_per_file=DEFAULT_LINES_PER_FILE, output_directory=None,
                 file_has_header=False, show_progress=False):
        self.set_lines_per_file(lines_per_file)
        self.set_output_directory(os.getcwd() if output_directory is None else output_directory)
        self.set_file_has_header(file_has_header)
        self.set_show_progress(show_progress)

    @property
    def lines_per_file(self):
        return self._lines_per_file

    @property
    def output_directory(self):
        return self._output_directory

    @property
    def file_has_header(self):
        return self._file_has_header

    @property
    def show_progress(self):
        return self._show_progress

    def set_lines_per_file(self, lines_per_file):
        if isinstance(lines_per_file, bool) or not isinstance(lines_per_file, int):
            raise InvalidConfiguration(f"Lines per file must be an integer, got {lines_per_file!r}.")
        if lines_per_file <= 0:
            raise InvalidConfiguration(f"Lines per file must be positive, got {lines_per_file}.")
        self._lines_per_file = lines_per_file
        return self

    def set_output_directory(self, path):
        path = os.fspath(path)
        separators = tuple(sep for sep in (os.sep, os.altsep) if sep)
        if len(path) > 1 and path.endswith(separators):
            path = path[:-1]
        self._output_directory = path
        return self

    def set_file_has_header(self, file_has_header):
        self._file_has_header = bool(file_has_header)
        return self

    def set_show_progress(self, show_progress):
        self._show_progress = bool(show_progress)
        return self

    def parse(self, source_path):
        """
        Split the given CSV file into child files in the output directory.

        Returns the paths of the written child files in the order they were
        created. An empty source produces no files. Existing files with the
        same names are overwritten, and files written before a failed write
        are left in place.
        """
        source_path = os.fspath(source_path)
        self._validate(source_path)

        csv_format = discover_format(source_path)
        name_parts = parse_file_name(os.path.basename(source_path))
        child_files = []

        with open(source_path, "r", encoding=csv_format.encoding, newline="") as source, \
                tqdm(desc="Splitting", unit="row", disable=not self._show_progress) as progress:
            lines = LineRecorder(source, recording=self._file_has_header)
            reader = csv.reader(lines, csv_format.dialect)
            rows = self._read_rows(reader, source_path, progress)

            # the header is copied as it appears in the source, not re-quoted
            header_line = None
            if self._file_has_header and next(rows, None) is not None:
                header_line = lines.stop()
                if not header_line.endswith(("\n", "\r")):
                    header_line += csv_format.lineterminator

            for index, chunk in enumerate(self._chunks(rows), start=1):
                child_path = child_file_path(self._output_directory, name_parts, index)
                child_files.append(child_path)

                with open(child_path, "w", encoding=csv_format.encoding, newline="") as f_out:
                    writer = csv.writer(f_out, csv_format.dialect,
                                        lineterminator=csv_format.lineterminator)
                    if header_line:
                        f_out.write(header_line)
                    writer.writerows(chunk)

        return child_files

    def _validate(self, source_path):
        if not os.path.isfile(source_path) or not os.access(source_path, os.R_OK):
            raise InvalidSource(f'"{source_path}" is not a readable file.')
        if not os.path.isdir(self._output_directory):
            raise InvalidOutputDirectory(f'"{self._output_directory}" is not a valid directory.')
        if not os.access(self._output_directory, os.W_OK):
            raise UnwritableOutputDirectory(
                f'"{self._output_directory}" is not writeable by the current process.')

    def _read_rows(self, reader, source_path, progress):
        try:
            for row in reader:
                # blank lines carry no fields
                if not row:
                    continue
                progress.update(1)
                yield row
        except (UnicodeDecodeError, csv.Error) as e:
            raise UnparsableSource(f'"{source_path}" could not be parsed: {e}') from e

    def _chunks(self, rows):
        # each chunk must be consumed before the next one is requested
        for first_row in rows:
            yield self._chunk(first_row, rows)

    def _chunk(self, first_row, rows):
        yield first_row
        for _ in range(self._lines_per_file - 1):
            row = next(rows, None)
            if row is None:
                return
            yield row
