# File: catalogsync/services/csv_parser_service.py

"""
Schema-driven CSV parser.

A schema is an ordered list of column descriptors. Static descriptors map
one header to one dot-notation path of the parsed row (``product.title``);
dynamic descriptors match a family of headers by regex (``Option 2 Value``)
and fold their values into an array-valued field through a reducer.

Parsing is lazy on both levels: ``parse`` yields raw lines as they are read
from the stream, ``build_data`` yields parsed rows as raw lines are consumed.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Pattern,
    Sequence,
    TextIO,
    Tuple,
    Union,
)
import csv
import logging
import re

from catalogsync.core.config import settings
from catalogsync.core.exceptions import SchemaValidationException

logger = logging.getLogger(__name__)

# Line number of the first data line; the header is line 1
FIRST_DATA_LINE = 2


@dataclass(frozen=True)
class ParserContext:
    """What a reducer may look at besides its own cell."""

    line: Mapping[str, Optional[str]]
    line_number: int


Reducer = Callable[[Dict[str, Any], str, Optional[str], ParserContext], Dict[str, Any]]


@dataclass(frozen=True)
class ColumnDescriptor:
    """
    Describes one column (static) or one family of columns (dynamic).

    Exactly one of ``map_to`` or ``match`` + ``reducer`` must be set.
    """

    name: str
    map_to: Optional[str] = None
    required: bool = False
    transform: Optional[Callable[[str], Any]] = None
    match: Optional[Union[str, Pattern]] = None
    reducer: Optional[Reducer] = None

    def __post_init__(self):
        if isinstance(self.match, str):
            object.__setattr__(self, "match", re.compile(self.match))

        is_static = self.map_to is not None
        is_dynamic = self.match is not None or self.reducer is not None

        if is_static == is_dynamic:
            raise ValueError(
                f"Column '{self.name}' must define either map_to or match and reducer"
            )
        if is_dynamic and (self.match is None or self.reducer is None):
            raise ValueError(f"Column '{self.name}' needs both match and reducer")

    @property
    def is_dynamic(self) -> bool:
        return self.match is not None

    def matches(self, header: str) -> bool:
        return self.is_dynamic and self.match.search(header) is not None


@dataclass(frozen=True)
class CsvSchema:
    """Ordered column descriptors; names are unique."""

    columns: Tuple[ColumnDescriptor, ...]
    _by_name: Dict[str, ColumnDescriptor] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "columns", tuple(self.columns))
        by_name = {}
        for column in self.columns:
            if column.name in by_name:
                raise ValueError(f"Duplicate column descriptor '{column.name}'")
            by_name[column.name] = column
        object.__setattr__(self, "_by_name", by_name)

    def resolve(self, header: str) -> Optional[ColumnDescriptor]:
        """
        Find the descriptor of a header: exact name of a static column
        first, else the first dynamic descriptor whose pattern is found in
        the header.
        """
        descriptor = self._by_name.get(header)
        if descriptor is not None and not descriptor.is_dynamic:
            return descriptor

        for column in self.columns:
            if column.matches(header):
                return column
        return None

    @property
    def required_columns(self) -> List[ColumnDescriptor]:
        return [column for column in self.columns if column.required]

    @property
    def static_columns(self) -> List[ColumnDescriptor]:
        return [column for column in self.columns if not column.is_dynamic]


class RawLine(dict):
    """One data line keyed by original header name, with its line number."""

    def __init__(self, values: Mapping[str, Optional[str]], line_number: int):
        super().__init__(values)
        self.line_number = line_number


class CsvParser:
    """
    Parses delimited text into semantically keyed rows.

    Args:
        schema: Column schema
        delimiter: Column separator (defaults to settings.IMPORT_DELIMITER)
    """

    def __init__(self, schema: CsvSchema, delimiter: Optional[str] = None):
        self.schema = schema
        self.delimiter = delimiter or settings.IMPORT_DELIMITER

    def parse(self, stream: Union[TextIO, Iterable[str]]) -> Iterator[RawLine]:
        """
        Lazily read the header and data lines of a stream.

        Args:
            stream: Text stream or iterable of text lines

        Yields:
            Raw lines; empty cells are None, other cells are stripped

        Raises:
            SchemaValidationException: If the header does not fit the schema
                or a line has more values than the header
        """
        reader = csv.reader(stream, delimiter=self.delimiter)

        header = None
        for values in reader:
            if not any(value.strip() for value in values):
                continue

            if header is None:
                header = [value.strip() for value in values]
                self.validate_header(header)
                logger.debug(f"CSV header has {len(header)} columns")
                continue

            line_number = reader.line_num
            if len(values) > len(header):
                raise SchemaValidationException(
                    f"Line {line_number} has {len(values)} values but the header "
                    f"has {len(header)} columns",
                    line=line_number,
                )

            cells = [self._clean(value) for value in values]
            cells.extend([None] * (len(header) - len(cells)))
            yield RawLine(zip(header, cells), line_number)

        if header is None:
            raise SchemaValidationException("CSV file is empty, a header line is required")

    def validate_header(self, header: Sequence[str]) -> None:
        """
        Check that every header resolves to a descriptor and that every
        required column is present.

        Raises:
            SchemaValidationException: On the first problem found
        """
        seen = set()
        for name in header:
            if name in seen:
                raise SchemaValidationException(f"Duplicate column '{name}'", column=name)
            seen.add(name)

            if self.schema.resolve(name) is None:
                raise SchemaValidationException(f"Unrecognized column '{name}'", column=name)

        for column in self.schema.required_columns:
            if column.name not in seen:
                raise SchemaValidationException(
                    f"Missing required column '{column.name}'", column=column.name
                )

    def build_data(self, lines: Iterable[Mapping[str, Optional[str]]]) -> Iterator[Dict[str, Any]]:
        """
        Lazily turn raw lines into parsed rows, in input order.

        Args:
            lines: Raw lines as produced by ``parse``

        Yields:
            Parsed rows keyed by dot-notation path

        Raises:
            SchemaValidationException: If a required value is empty, a header
                is not part of the schema or a transform rejects a value
        """
        for index, line in enumerate(lines):
            line_number = getattr(line, "line_number", FIRST_DATA_LINE + index)
            yield self._build_row(line, line_number)

    def _build_row(self, line: Mapping[str, Optional[str]], line_number: int) -> Dict[str, Any]:
        for column in self.schema.required_columns:
            if line.get(column.name) is None:
                raise SchemaValidationException(
                    f"Missing value for required column '{column.name}' on line {line_number}",
                    column=column.name,
                    line=line_number,
                )

        context = ParserContext(line=MappingProxyType(dict(line)), line_number=line_number)
        built: Dict[str, Any] = {}

        for header, raw_value in line.items():
            descriptor = self.schema.resolve(header)
            if descriptor is None:
                raise SchemaValidationException(
                    f"Unrecognized column '{header}'", column=header, line=line_number
                )

            if descriptor.is_dynamic:
                built = descriptor.reducer(built, header, raw_value, context)
                continue

            if raw_value is None:
                continue

            value = raw_value
            if descriptor.transform is not None:
                try:
                    transformed = descriptor.transform(raw_value)
                except ValueError as e:
                    raise SchemaValidationException(
                        f"Invalid value '{raw_value}' for column '{header}' on line "
                        f"{line_number}: {str(e)}",
                        column=header,
                        line=line_number,
                    )
                if transformed is not None:
                    value = transformed

            built[descriptor.map_to] = value

        return built

    @staticmethod
    def _clean(value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None
