from notetaker.domain.models import JobStatus


class PipelineError(Exception):
    """A stage failure that ends the job."""

    def __init__(self, stage: str, message: str) -> None:
        self.stage = stage
        self.message = message
        super().__init__(f"[{stage}] {message}")


class GenerationError(PipelineError):
    pass


class InvalidTransitionError(Exception):
    def __init__(self, job_id: str, current: JobStatus, target: JobStatus) -> None:
        self.job_id = job_id
        self.current = current
        self.target = target
        super().__init__(
            f"Job {job_id} cannot move from {current.value} to {target.value}"
        )


class AudioToolError(RuntimeError):
    """ffmpeg or ffprobe failed."""


class UploadTooLargeError(Exception):
    pass


class EmptyUploadError(Exception):
    pass
