"""Shared plumbing for the board-sync jobs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from leadbridge.infrastructure.http import BackendClient, BoardClient
from leadbridge.infrastructure.observability import (
    Timer,
    get_logger,
    log_context,
    log_exception,
    record_board_update,
)
from leadbridge.infrastructure.observability.metrics import BOARD_JOB_DURATION


@dataclass
class JobResult:
    """Counters for one job run."""

    job: str
    boards: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0


class BoardJob:
    """Base class for jobs that walk a list of configured boards.

    Subclasses implement :meth:`process_board`. A failure on one board is logged
    and counted, and the run moves on to the next board.
    """

    name = "board-job"

    def __init__(
        self,
        board: BoardClient,
        backend: BackendClient,
        boards: Sequence[Mapping[str, Any]],
    ) -> None:
        self.board = board
        self.backend = backend
        self.boards = list(boards)
        self._logger = get_logger(self.__class__.__module__)

    def run(self) -> JobResult:
        result = JobResult(job=self.name)
        for config in self.boards:
            board_name = config.get("name") or str(config.get("boardId"))
            with log_context(job=self.name, board=board_name):
                self._logger.info("Processing board %s", board_name)
                try:
                    with Timer(BOARD_JOB_DURATION, labels={"job": self.name}):
                        self.process_board(config, result)
                    result.boards += 1
                except Exception as exc:
                    result.failed += 1
                    log_exception(
                        self._logger, f"Error processing board {board_name}", exc
                    )
        self._logger.info(
            "%s finished: %d boards, %d created, %d updated, %d failed",
            self.name,
            result.boards,
            result.created,
            result.updated,
            result.failed,
        )
        return result

    def process_board(self, config: Mapping[str, Any], result: JobResult) -> None:
        raise NotImplementedError

    def _updated(self, result: JobResult) -> None:
        result.updated += 1
        record_board_update(self.name, "updated")

    def _created(self, result: JobResult) -> None:
        result.created += 1
        record_board_update(self.name, "created")

    def _failed(self, result: JobResult) -> None:
        result.failed += 1
        record_board_update(self.name, "failed")


def numeric_ids(keys: Sequence[str] | Any) -> list[int]:
    """CRM logins that are plain integers, as ints."""
    return [int(key) for key in keys if str(key).strip().isdigit()]


__all__ = ["BoardJob", "JobResult", "numeric_ids"]
