from __future__ import annotations

import pytest

from notetaker.domain.models import Job, JobStatus, StatusView, progress_for


@pytest.mark.parametrize(
    "current, target, allowed",
    [
        (JobStatus.UPLOADED, JobStatus.PROCESSING, True),
        (JobStatus.UPLOADED, JobStatus.COMPLETED, False),
        (JobStatus.UPLOADED, JobStatus.FAILED, False),
        (JobStatus.PROCESSING, JobStatus.PROCESSING, True),
        (JobStatus.PROCESSING, JobStatus.COMPLETED, True),
        (JobStatus.PROCESSING, JobStatus.FAILED, True),
        (JobStatus.PROCESSING, JobStatus.UPLOADED, False),
        (JobStatus.COMPLETED, JobStatus.PROCESSING, False),
        (JobStatus.FAILED, JobStatus.PROCESSING, False),
        (JobStatus.FAILED, JobStatus.COMPLETED, False),
    ],
)
def test_status_only_moves_forward(current, target, allowed) -> None:
    assert current.can_transition_to(target) is allowed


def test_terminal_statuses() -> None:
    assert JobStatus.COMPLETED.is_terminal
    assert JobStatus.FAILED.is_terminal
    assert not JobStatus.PROCESSING.is_terminal


def test_progress_mapping() -> None:
    assert progress_for(JobStatus.UPLOADED)[0] == 10
    assert progress_for(JobStatus.PROCESSING)[0] == 50
    assert progress_for(JobStatus.COMPLETED)[0] == 100
    assert progress_for(JobStatus.FAILED)[0] == 0


def test_status_view_from_job() -> None:
    job = Job(id="x", owner_id="o", title="Cells", duration_seconds=2759, status=JobStatus.PROCESSING)

    view = StatusView.from_job(job)

    assert view.progress_percentage == 50
    assert view.progress_message.startswith("Processing")
    assert view.duration_minutes == 45
