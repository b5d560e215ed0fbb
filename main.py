"""Simple curriculum runner for local validation."""

from __future__ import annotations

import logging
from pathlib import Path

from configs.loader import ConfigLoader, TrainingConfig
from core.deterministic_rng import RandomStreams
from core.event_bus import EventBus
from core.event_log import EventLog
from core.level_scheduler import BASE_GENRES, Genre, LevelStatus
from core.orchestrator import CurriculumOrchestrator
from core.proposals import GeminiProposalClient, ProposalClient
from data.logger import TrainingLogger

LOGGER = logging.getLogger(__name__)


def build_components(
    config: TrainingConfig,
    proposer: ProposalClient | None = None,
    logger: TrainingLogger | None = None,
    event_bus: EventBus | None = None,
) -> CurriculumOrchestrator:
    """Build an orchestrator from training configuration."""
    if proposer is None:
        proposer = GeminiProposalClient(model=config.proposal_model)
    return CurriculumOrchestrator(
        config=config,
        proposer=proposer,
        streams=RandomStreams(config.seed),
        event_log=EventLog(),
        logger=logger,
        event_bus=event_bus,
    )


def run_headless(orchestrator: CurriculumOrchestrator, ticks: int, auto_accept: bool = False) -> int:
    """Tick ``orchestrator`` up to ``ticks`` times; return the ticks executed.

    With ``auto_accept`` every proposal is accepted as soon as it arrives,
    otherwise genres stay parked in ``WAITING_FOR_APPROVAL``.
    """
    executed = 0
    for _ in range(ticks):
        orchestrator.tick()
        executed += 1
        if auto_accept:
            for genre in (*BASE_GENRES, Genre.MASTER):
                progress = orchestrator.levels()[genre]
                if progress.status is LevelStatus.PROPOSING:
                    orchestrator.wait_for_proposals(timeout=orchestrator.config.proposal_timeout)
                    progress = orchestrator.levels()[genre]
                if progress.status is LevelStatus.WAITING_FOR_APPROVAL and not progress.pending:
                    orchestrator.accept_proposal(genre)
        if all(orchestrator.levels()[genre].status is LevelStatus.FINISHED for genre in BASE_GENRES) and (
            orchestrator.levels()[Genre.MASTER].status is LevelStatus.FINISHED
        ):
            break
    return executed


def main(config_path: str = "configs/default_training.yaml") -> None:
    """Load config, build components, and run a short headless session."""
    config = ConfigLoader.load(config_path)
    logger = TrainingLogger(Path("training_runs.db"))
    orchestrator = build_components(config=config, logger=logger)
    try:
        run_headless(orchestrator, ticks=10_000)
    finally:
        orchestrator.close()
        logger.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    main()
