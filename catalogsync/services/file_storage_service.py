# File: catalogsync/services/file_storage_service.py

from typing import Optional, TextIO, Union
from pathlib import Path
from datetime import datetime
import logging
import os
import uuid

from catalogsync.core.exceptions import FileStorageException

logger = logging.getLogger(__name__)

# Suffix of export files that are still being written
PARTIAL_SUFFIX = ".part"


class UploadStreamDescriptor:
    """
    An open upload: a text stream to write into and the key the file will
    be stored under once the upload is completed.
    """

    def __init__(self, write_stream: TextIO, file_key: str, partial_path: Path, final_path: Path):
        self.write_stream = write_stream
        self.file_key = file_key
        self.partial_path = partial_path
        self.final_path = final_path

    def close(self) -> None:
        if not self.write_stream.closed:
            self.write_stream.close()

    def complete(self) -> str:
        """
        Close the stream and publish the file under its key.

        Returns:
            The file key
        """
        self.close()
        os.replace(self.partial_path, self.final_path)
        logger.info(f"Upload completed: {self.file_key}")
        return self.file_key


class FileStorageService:
    """
    Local-disk storage for import sources and export outputs.

    Handles:
    - Storing uploaded CSV files under generated keys
    - Opening download streams for import pre-processing
    - Upload stream descriptors for the export writer
    - Deleting files, including partially written ones
    """

    def __init__(self, base_path: str):
        """
        Initialize file storage service.

        Args:
            base_path: Base directory for file storage
        """
        self.base_path = Path(base_path).resolve()
        os.makedirs(self.base_path, exist_ok=True)

    def store_file(self, file_data: Union[bytes, str], filename: str) -> str:
        """
        Store a file under a generated key.

        Args:
            file_data: File content
            filename: Original filename, used for the key's stem and extension

        Returns:
            File key

        Raises:
            FileStorageException: If the file cannot be written
        """
        stem = Path(filename).stem or "file"
        extension = Path(filename).suffix or ".csv"
        file_key = f"{stem}-{uuid.uuid4().hex}{extension}"

        try:
            if isinstance(file_data, str):
                file_data = file_data.encode("utf-8")

            path = self._resolve_path(file_key)
            with open(path, "wb") as f:
                f.write(file_data)
        except OSError as e:
            logger.error(f"Failed to store file: {str(e)}", exc_info=True)
            raise FileStorageException(
                f"Failed to store file: {str(e)}", file_key=file_key, operation="store"
            )

        logger.info(f"Stored file {file_key} ({len(file_data)} bytes)")
        return file_key

    def get_download_stream(self, file_key: str) -> TextIO:
        """
        Open a stored file for reading as text.

        Args:
            file_key: Key of the stored file

        Returns:
            Text stream; the caller closes it

        Raises:
            FileStorageException: If the file does not exist
        """
        path = self._resolve_path(file_key)
        if not path.is_file():
            raise FileStorageException(
                f"File not found: {file_key}", file_key=file_key, operation="download"
            )

        # utf-8-sig drops the BOM spreadsheet tools put in front of the header
        return open(path, "r", encoding="utf-8-sig", newline="")

    def get_upload_stream_descriptor(self, name: str, ext: str = "csv") -> UploadStreamDescriptor:
        """
        Open a new file for writing.

        The file only becomes visible under its key once the descriptor is
        completed; until then it is written next to it with a partial suffix.

        Args:
            name: Name prefix of the file, e.g. "product-export"
            ext: File extension without the dot

        Returns:
            Upload stream descriptor
        """
        timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
        file_key = f"{name}-{timestamp}-{uuid.uuid4().hex[:8]}.{ext}"
        final_path = self._resolve_path(file_key)
        partial_path = final_path.with_name(final_path.name + PARTIAL_SUFFIX)

        try:
            write_stream = open(partial_path, "w", encoding="utf-8", newline="")
        except OSError as e:
            raise FileStorageException(
                f"Failed to open upload stream: {str(e)}", file_key=file_key, operation="upload"
            )

        logger.debug(f"Opened upload stream for {file_key}")
        return UploadStreamDescriptor(write_stream, file_key, partial_path, final_path)

    def delete(self, file_key: str) -> bool:
        """
        Delete a file and any partially written copy of it.

        Args:
            file_key: Key of the file

        Returns:
            True if anything was deleted
        """
        path = self._resolve_path(file_key)
        deleted = False

        for candidate in (path, path.with_name(path.name + PARTIAL_SUFFIX)):
            if candidate.exists():
                candidate.unlink()
                deleted = True

        if deleted:
            logger.info(f"Deleted file {file_key}")
        return deleted

    def exists(self, file_key: str) -> bool:
        return self._resolve_path(file_key).is_file()

    def read_text(self, file_key: str) -> str:
        with self.get_download_stream(file_key) as stream:
            return stream.read()

    def _resolve_path(self, file_key: str) -> Path:
        """
        Map a file key to a path inside the storage directory.

        Raises:
            FileStorageException: If the key escapes the storage directory
        """
        path = (self.base_path / file_key).resolve()
        if self.base_path not in path.parents:
            raise FileStorageException(
                f"Invalid file key: {file_key}", file_key=file_key, operation="resolve"
            )
        return path
