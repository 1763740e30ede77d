"""
Reader for JSON batch files.

A batch file holds a single JSON array of record objects. The three steps
(exists, read, decode) are separate methods because each one is a distinct,
separately logged failure for the batch loader.
"""

import json
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from record_sync.core.errors import SourceDecodeFailure, SourceNotFound, SourceReadFailure
from record_sync.core.models import Record

_RECORDS = TypeAdapter(list[Record])


class JsonBatchReader:
    """
    Reads a JSON array of records from a file.
    """

    def __init__(self, encoding: str = "utf-8"):
        """
        Initialize JSON reader.

        Args:
            encoding: Text encoding of batch files
        """
        self.encoding = encoding

    def check_exists(self, file_path: str | Path) -> Path:
        """
        Resolve the source path.

        Raises:
            SourceNotFound: If nothing exists at ``file_path``
        """
        path = Path(file_path)
        if not path.exists():
            raise SourceNotFound(str(path))
        return path

    def read_raw(self, file_path: str | Path) -> bytes:
        """
        Read the file content as bytes; text decoding belongs to ``decode``.

        Raises:
            SourceReadFailure: On any I/O error
        """
        path = Path(file_path)
        try:
            return path.read_bytes()
        except OSError as e:
            raise SourceReadFailure(str(path), str(e)) from e

    def decode(self, raw: bytes | str, file_path: str | Path = "<memory>") -> list[Record]:
        """
        Decode raw content into records, in source order.

        The whole batch is rejected if the bytes are not valid text in the
        reader's encoding, the text is not valid JSON (including nesting too
        deep to parse), the value is not an array, or any element is not a
        valid record.

        Raises:
            SourceDecodeFailure: On any of the above
        """
        if isinstance(raw, bytes):
            try:
                raw = raw.decode(self.encoding)
            except UnicodeDecodeError as e:
                raise SourceDecodeFailure(str(file_path), f"invalid {self.encoding} text: {e}") from e

        try:
            data = json.loads(raw)
        except (ValueError, RecursionError) as e:
            # JSONDecodeError is a ValueError; RecursionError comes from pathological nesting
            raise SourceDecodeFailure(str(file_path), f"invalid JSON: {type(e).__name__}: {e}") from e

        if not isinstance(data, list):
            raise SourceDecodeFailure(
                str(file_path), f"expected a JSON array, got {type(data).__name__}"
            )

        try:
            return _RECORDS.validate_python(data)
        except ValidationError as e:
            raise SourceDecodeFailure(str(file_path), f"invalid record: {e}") from e

    def read(self, file_path: str | Path) -> list[Record]:
        """
        Run all three steps.

        Raises:
            SourceNotFound, SourceReadFailure, SourceDecodeFailure
        """
        path = self.check_exists(file_path)
        return self.decode(self.read_raw(path), path)
