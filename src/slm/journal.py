from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable
from uuid import uuid4

from jdb.models import Checkpoint, Condition, Hypothesis
from jdb.repository import JournalRepository

from .errors import SlmInitialCheckpointError, SlmNotFoundError, SlmValidationError
from .models import CheckpointOverview
from .validators import (
    filter_valid_conditions,
    parse_checkpoint_hypotheses,
    parse_condition,
    parse_date,
    parse_hypothesis,
    require_text,
    validate_checkpoint_type,
)


class JournalService:
    """Checkpoint, condition and hypothesis bookkeeping for existing simulations."""

    def __init__(
        self,
        repository: JournalRepository,
        *,
        now_fn: Callable[[], datetime] | None = None,
    ) -> None:
        self.repository = repository
        self._now_fn = now_fn or (lambda: datetime.now(timezone.utc))
        self._logger = logging.getLogger("invsim.slm.journal")

    def _require_simulation(self, simulation_id: Any) -> str:
        simulation_id = require_text("simulationId", simulation_id)
        if self.repository.get_simulation(simulation_id) is None:
            raise SlmNotFoundError("simulationId", simulation_id, "Simulation not found")
        return simulation_id

    def require_checkpoint(self, checkpoint_id: Any) -> Checkpoint:
        checkpoint_id = require_text("checkpointId", checkpoint_id)
        checkpoint = self.repository.get_checkpoint(checkpoint_id)
        if checkpoint is None:
            raise SlmNotFoundError("checkpointId", checkpoint_id, "Checkpoint not found")
        return checkpoint

    # checkpoints

    def create_checkpoint(
        self,
        *,
        simulation_id: Any,
        checkpoint_type: Any,
        checkpoint_date: Any,
        note: Any = "",
        hypotheses: Iterable[Any] = (),
        conditions: Iterable[dict[str, Any]] = (),
    ) -> Checkpoint:
        checkpoint_type = validate_checkpoint_type(checkpoint_type)
        day = parse_date("checkpointDate", checkpoint_date)
        hypothesis_drafts = parse_checkpoint_hypotheses(hypotheses)
        condition_drafts = filter_valid_conditions(conditions)
        simulation_id = self._require_simulation(simulation_id)

        now = self._now_fn()
        checkpoint = Checkpoint(
            checkpoint_id=str(uuid4()),
            simulation_id=simulation_id,
            checkpoint_date=day,
            checkpoint_type=checkpoint_type,  # type: ignore[arg-type]
            note=note.strip() if isinstance(note, str) else "",
            created_at=now,
        )
        hypothesis_rows = [
            Hypothesis(
                hypothesis_id=str(uuid4()),
                checkpoint_id=checkpoint.checkpoint_id,
                description=draft.description,
                factor_type=draft.factor_type,
                price_impact=draft.price_impact,
                confidence_level=draft.confidence_level,
                is_active=True,
                updated_at=now,
            )
            for draft in hypothesis_drafts
        ]
        condition_rows = [
            Condition(
                condition_id=str(uuid4()),
                checkpoint_id=checkpoint.checkpoint_id,
                type=draft.type,
                metric=draft.metric,
                value=draft.value,
                is_active=True,
                updated_at=now,
            )
            for draft in condition_drafts
        ]
        self.repository.create_checkpoint(checkpoint, hypothesis_rows, condition_rows)
        self._logger.info(
            "Created checkpoint: checkpoint_id=%s simulation_id=%s type=%s",
            checkpoint.checkpoint_id,
            simulation_id,
            checkpoint_type,
        )
        return checkpoint

    def update_checkpoint(
        self,
        checkpoint_id: Any,
        *,
        checkpoint_type: Any,
        checkpoint_date: Any,
        note: Any = "",
    ) -> Checkpoint:
        day = parse_date("checkpointDate", checkpoint_date)
        checkpoint = self.require_checkpoint(checkpoint_id)
        if checkpoint.checkpoint_type == "initial":
            if require_text("checkpointType", checkpoint_type) != "initial":
                raise SlmInitialCheckpointError(checkpoint.checkpoint_id, "The initial checkpoint type cannot be changed")
            next_type = "initial"
        else:
            next_type = validate_checkpoint_type(checkpoint_type)

        self.repository.update_checkpoint(
            checkpoint.checkpoint_id,
            next_type,
            day,
            note.strip() if isinstance(note, str) else "",
        )
        return self.require_checkpoint(checkpoint.checkpoint_id)

    def delete_checkpoint(self, checkpoint_id: Any) -> None:
        checkpoint = self.require_checkpoint(checkpoint_id)
        if checkpoint.checkpoint_type == "initial":
            raise SlmInitialCheckpointError(
                checkpoint.checkpoint_id,
                "The initial checkpoint can only be removed with its simulation",
            )
        self.repository.delete_checkpoint_cascade(checkpoint.checkpoint_id)
        self._logger.info("Deleted checkpoint: checkpoint_id=%s", checkpoint.checkpoint_id)

    def list_checkpoints(self, simulation_id: Any) -> CheckpointOverview:
        simulation_id = self._require_simulation(simulation_id)
        return CheckpointOverview(
            summaries=self.repository.list_checkpoint_summaries(simulation_id),
            hypotheses=self.repository.list_simulation_hypotheses(simulation_id),
            conditions=self.repository.list_conditions(simulation_id),
        )

    # conditions

    def list_conditions(self, simulation_id: Any, checkpoint_id: str | None = None) -> list[Condition]:
        simulation_id = require_text("simulationId", simulation_id)
        return self.repository.list_conditions(simulation_id, checkpoint_id=checkpoint_id or None)

    def replace_conditions(
        self,
        *,
        simulation_id: Any,
        conditions: Iterable[dict[str, Any]],
        checkpoint_id: str | None = None,
    ) -> tuple[str, list[Condition]]:
        """Replace the condition set of a checkpoint, the latest one when none is named."""
        simulation_id = self._require_simulation(simulation_id)
        drafts = [parse_condition(raw) for raw in conditions]

        if checkpoint_id:
            checkpoint = self.require_checkpoint(checkpoint_id)
            if checkpoint.simulation_id != simulation_id:
                raise SlmValidationError("checkpointId", checkpoint_id, "Checkpoint belongs to another simulation")
        else:
            latest = self.repository.find_latest_checkpoint(simulation_id)
            if latest is None:
                raise SlmNotFoundError("checkpointId", None, "No checkpoint found for simulation")
            checkpoint = latest

        now = self._now_fn()
        rows = [
            Condition(
                condition_id=str(uuid4()),
                checkpoint_id=checkpoint.checkpoint_id,
                type=draft.type,
                metric=draft.metric,
                value=draft.value,
                is_active=True,
                updated_at=now,
            )
            for draft in drafts
        ]
        self.repository.replace_conditions(checkpoint.checkpoint_id, rows)
        return checkpoint.checkpoint_id, rows

    def update_condition(self, condition_id: Any, raw: dict[str, Any]) -> Condition:
        condition_id = require_text("conditionId", condition_id)
        draft = parse_condition(raw)
        existing = self.repository.get_condition(condition_id)
        if existing is None:
            raise SlmNotFoundError("conditionId", condition_id, "Condition not found")

        is_active = raw.get("isActive", existing.is_active)
        if isinstance(is_active, str):
            is_active = is_active.strip().lower() == "true"
        updated = Condition(
            condition_id=condition_id,
            checkpoint_id=existing.checkpoint_id,
            type=draft.type,
            metric=draft.metric,
            value=draft.value,
            is_active=bool(is_active),
            updated_at=self._now_fn(),
        )
        self.repository.update_condition(updated)
        return updated

    def delete_condition(self, condition_id: Any) -> None:
        condition_id = require_text("conditionId", condition_id)
        if not self.repository.delete_condition(condition_id):
            raise SlmNotFoundError("conditionId", condition_id, "Condition not found")

    # hypotheses

    def create_hypothesis(self, checkpoint_id: Any, raw: dict[str, Any]) -> Hypothesis:
        draft = parse_hypothesis(raw)
        checkpoint = self.require_checkpoint(checkpoint_id)
        hypothesis = Hypothesis(
            hypothesis_id=str(uuid4()),
            checkpoint_id=checkpoint.checkpoint_id,
            description=draft.description,
            factor_type=draft.factor_type,
            price_impact=draft.price_impact,
            confidence_level=draft.confidence_level,
            is_active=True,
            updated_at=self._now_fn(),
        )
        self.repository.insert_hypothesis(hypothesis)
        return hypothesis

    def update_hypothesis(self, hypothesis_id: Any, raw: dict[str, Any]) -> Hypothesis:
        hypothesis_id = require_text("hypothesisId", hypothesis_id)
        draft = parse_hypothesis(raw)
        existing = self.repository.get_hypothesis(hypothesis_id)
        if existing is None:
            raise SlmNotFoundError("hypothesisId", hypothesis_id, "Hypothesis not found")
        hypothesis = Hypothesis(
            hypothesis_id=hypothesis_id,
            checkpoint_id=existing.checkpoint_id,
            description=draft.description,
            factor_type=draft.factor_type,
            price_impact=draft.price_impact,
            confidence_level=draft.confidence_level,
            is_active=existing.is_active,
            updated_at=self._now_fn(),
        )
        self.repository.update_hypothesis(hypothesis)
        return hypothesis

    def delete_hypothesis(self, hypothesis_id: Any) -> None:
        hypothesis_id = require_text("hypothesisId", hypothesis_id)
        if not self.repository.delete_hypothesis(hypothesis_id):
            raise SlmNotFoundError("hypothesisId", hypothesis_id, "Hypothesis not found")

    def list_hypotheses(self, checkpoint_id: Any) -> tuple[list[Hypothesis], int]:
        checkpoint_id = require_text("checkpointId", checkpoint_id)
        hypotheses = self.repository.list_hypotheses(checkpoint_id)
        return hypotheses, sum(hypothesis.risk_score for hypothesis in hypotheses)
