"""Image-tag retention: keep the newest N tags per repository, delete the rest."""

from __future__ import annotations

from functools import partial

from fleetkeeper.engine.evaluator import evaluate
from fleetkeeper.engine.executor import ActionExecutor
from fleetkeeper.engine.runner import ResourcePlan, ResourceProcessor
from fleetkeeper.models.events import ObservationKind, OutcomeStatus
from fleetkeeper.models.policy import RetentionPolicy
from fleetkeeper.models.resources import Resource
from fleetkeeper.observability.logging import get_logger
from fleetkeeper.registry.client import RegistryClient

_log = get_logger("registry.pruner")


class ImagePruner(ResourceProcessor):
    """Applies a RetentionPolicy to each repository.

    Retained tags are recorded as skipped.  Surplus tags are deleted in
    recency order, newest first, one ActionOutcome each.  A repository
    with no surplus is a successful no-op.

    Registries delete whole manifests, so a surplus tag whose digest is
    also carried by a retained tag is skipped rather than deleted.  Once a
    manifest has been deleted, later surplus tags on the same digest are
    recorded as skipped.
    """

    pipeline = "prune-images"

    def __init__(self, client: RegistryClient, policy: RetentionPolicy) -> None:
        self._client = client
        self.policy = policy

    def evaluate(self, resource: Resource) -> ResourcePlan:
        decision = evaluate(resource.of_kind(ObservationKind.IMAGE_TAG), self.policy)
        return ResourcePlan(resource=resource, decision=decision)

    async def act(self, plan: ResourcePlan, executor: ActionExecutor) -> None:
        repo = plan.resource.name
        _log.info(
            "repository_evaluated",
            repository=repo,
            tags=len(plan.decision.retain) + len(plan.decision.prune),
            retained=len(plan.decision.retain),
            pruned=len(plan.decision.prune),
            keep_count=self.policy.keep_count,
        )
        retained = {obs.digest for obs in plan.decision.retain if obs.digest}
        removed: dict[str, str] = {}
        for obs in plan.decision.retain:
            executor.skip(
                f"{repo}:{obs.key}", "retain", resource=repo, detail=f"within newest {self.policy.keep_count}"
            )
        for obs in plan.decision.prune:
            target = f"{repo}:{obs.key}"
            if obs.digest in retained:
                _log.info("tag_shares_retained_manifest", repository=repo, tag=obs.key, digest=obs.digest)
                executor.skip(target, "delete-tag", resource=repo, detail="manifest shared with a retained tag")
                continue
            if obs.digest in removed:
                executor.skip(
                    target, "delete-tag", resource=repo, detail=f"manifest removed with {removed[obs.digest]}"
                )
                continue
            outcome = await executor.execute(
                target,
                "delete-tag",
                partial(self._client.delete_tag, repo, obs.key),
                resource=repo,
            )
            if obs.digest and outcome.status in (OutcomeStatus.ACTED, OutcomeStatus.SIMULATED):
                removed[obs.digest] = target
