"""
Local disk storage for uploaded lecture audio and transient chunk files.
"""
import logging
import shutil
from pathlib import Path

from fastapi import UploadFile

from notetaker.domain.errors import EmptyUploadError, UploadTooLargeError

logger = logging.getLogger(__name__)

READ_SIZE = 1024 * 1024  # 1 MB per read, keeps memory use low for large files


class LocalAudioStore:
    def __init__(self, upload_dir: Path, chunks_dir: Path) -> None:
        self.upload_dir = Path(upload_dir)
        self.chunks_dir = Path(chunks_dir)

    def upload_path(self, job_id: str, suffix: str) -> Path:
        return self.upload_dir / f"{job_id}{suffix}"

    async def save_upload(self, job_id: str, upload: UploadFile, max_bytes: int = 0) -> Path:
        """
        Stream an upload to disk. max_bytes=0 means no limit.
        The partial file is removed on any error.
        """
        suffix = Path(upload.filename or "").suffix or ".webm"
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        path = self.upload_path(job_id, suffix)

        total = 0
        try:
            with path.open("wb") as f:
                while True:
                    block = await upload.read(READ_SIZE)
                    if not block:
                        break
                    total += len(block)
                    if max_bytes and total > max_bytes:
                        raise UploadTooLargeError(f"Upload exceeds {max_bytes} bytes")
                    f.write(block)
            if total == 0:
                raise EmptyUploadError("Uploaded file is empty")
        except BaseException:
            path.unlink(missing_ok=True)
            raise

        logger.info("Stored upload for %s (%d bytes)", job_id, total)
        return path

    def chunk_dir(self, job_id: str) -> Path:
        """Per-job directory so concurrent jobs never share chunk files."""
        path = self.chunks_dir / job_id
        path.mkdir(parents=True, exist_ok=True)
        return path

    @staticmethod
    def preprocessed_path(source: Path) -> Path:
        return source.with_name(f"{source.stem}_processed.webm")

    def delete(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Failed to delete %s: %s", path, e)

    def remove_chunk_dir(self, job_id: str) -> None:
        path = self.chunks_dir / job_id
        if not path.exists():
            return
        try:
            shutil.rmtree(path)
            logger.debug("Removed chunk directory %s", path)
        except OSError as e:
            logger.warning("Failed to remove chunk directory %s: %s", path, e)
