"""Enumerates registry repositories and their tags."""

from __future__ import annotations

from collections.abc import AsyncGenerator

import httpx

from fleetkeeper.engine.runner import ResourceEnumerator
from fleetkeeper.errors import EnumerationError
from fleetkeeper.models.events import ObservationKind
from fleetkeeper.models.resources import Observation, Resource, Scope, newest_first
from fleetkeeper.observability.logging import get_logger
from fleetkeeper.registry.client import RegistryClient, RegistryError, TagInfo
from fleetkeeper.shell import CommandError

_log = get_logger("registry.enumerator")

_UPSTREAM_ERRORS = (RegistryError, CommandError, httpx.HTTPError)


def tag_observation(tag: TagInfo) -> Observation:
    return Observation(
        kind=ObservationKind.IMAGE_TAG,
        key=tag.name,
        value=tag.pushed_at.timestamp(),
        recorded_at=tag.pushed_at,
        digest=tag.digest,
    )


class RegistryEnumerator(ResourceEnumerator):
    """Yields one Resource per repository, tags sorted newest-first."""

    def __init__(self, client: RegistryClient) -> None:
        self._client = client

    async def enumerate(self, scope: Scope) -> AsyncGenerator[Resource, None]:
        try:
            names = await self._client.list_repositories()
        except _UPSTREAM_ERRORS as exc:
            raise EnumerationError(f"listing repositories failed: {exc}") from exc

        if not scope.is_all:
            if scope.name not in names:
                raise EnumerationError(f"repository {scope.name!r} not found", resource=scope.name)
            names = [scope.name]

        _log.info("repositories_listed", count=len(names), scope=str(scope))
        for name in sorted(names):
            try:
                tags = await self._client.list_tags(name)
            except _UPSTREAM_ERRORS as exc:
                raise EnumerationError(f"listing tags of {name} failed: {exc}", resource=name) from exc
            yield Resource(name=name, observations=newest_first(tag_observation(t) for t in tags))
