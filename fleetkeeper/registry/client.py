"""Container registry clients.

Thin wrappers over an existing registry API; fleetkeeper adds no API of
its own.

    AzureCliRegistryClient     -- Azure Container Registry through the ``az`` CLI,
                                  reusing the caller's ``az login`` session.
    DistributionRegistryClient -- Any OCI distribution (Docker Registry v2)
                                  HTTP endpoint via httpx.
"""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import httpx

from fleetkeeper.errors import FleetkeeperError
from fleetkeeper.observability.logging import get_logger
from fleetkeeper.shell import run_command

_log = get_logger("registry.client")

_FRACTION = re.compile(r"\.(\d+)")

_MANIFEST_ACCEPT = ", ".join(
    [
        "application/vnd.oci.image.manifest.v1+json",
        "application/vnd.docker.distribution.manifest.v2+json",
        "application/vnd.oci.image.index.v1+json",
        "application/vnd.docker.distribution.manifest.list.v2+json",
    ]
)


class RegistryError(FleetkeeperError):
    """Raised when a registry read call fails."""


@dataclass(frozen=True)
class TagInfo:
    """One image tag and the time it was pushed."""

    name: str
    pushed_at: datetime
    digest: str = ""


def parse_timestamp(value: str) -> datetime:
    """Parse registry ISO-8601 timestamps into aware UTC datetimes.

    Registries emit up to nanosecond precision and a trailing ``Z``;
    the fraction is cut to microseconds before parsing.
    """
    text = value.strip().replace("Z", "+00:00")
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise RegistryError(f"unparseable timestamp: {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


class RegistryClient(ABC):
    """Read and delete operations every registry backend provides."""

    @abstractmethod
    async def list_repositories(self) -> list[str]:
        """Return every repository name in the registry."""

    @abstractmethod
    async def list_tags(self, repository: str) -> list[TagInfo]:
        """Return the tags of *repository* in any order."""

    @abstractmethod
    async def delete_tag(self, repository: str, tag: str) -> bool:
        """Delete the manifest behind one tag; False when the registry refused.

        Every other tag pointing at the same manifest goes with it.
        """

    async def aclose(self) -> None:
        """Release connections, if any."""


class AzureCliRegistryClient(RegistryClient):
    """Azure Container Registry via ``az acr repository``.

    ``delete --image`` removes the tagged manifest, not only the tag.

    Args:
        registry:     ACR name (without ``.azurecr.io``).
        subscription: Optional subscription name or id passed to ``az``.
        az_path:      ``az`` executable.
        timeout:      Per-command timeout in seconds.
    """

    def __init__(
        self,
        registry: str,
        subscription: str | None = None,
        az_path: str = "az",
        timeout: float = 120.0,
    ) -> None:
        if not registry:
            raise ValueError("registry name must not be empty")
        self.registry = registry
        self.subscription = subscription or None
        self._az = az_path
        self._timeout = timeout

    def _argv(self, *args: str) -> list[str]:
        argv = [self._az, "acr", "repository", *args, "--name", self.registry, "--output", "json"]
        if self.subscription:
            argv += ["--subscription", self.subscription]
        return argv

    async def _read_json(self, *args: str) -> Any:
        result = await run_command(self._argv(*args), timeout=self._timeout)
        if not result.ok:
            stderr = result.stderr.strip()[:300]
            raise RegistryError(f"az acr repository {args[0]} failed ({result.returncode}): {stderr}")
        try:
            return json.loads(result.stdout or "null")
        except json.JSONDecodeError as exc:
            raise RegistryError(f"az acr repository {args[0]} returned invalid JSON") from exc

    async def list_repositories(self) -> list[str]:
        data = await self._read_json("list")
        return [str(name) for name in data or []]

    async def list_tags(self, repository: str) -> list[TagInfo]:
        data = await self._read_json("show-tags", "--repository", repository, "--detail", "--orderby", "time_desc")
        tags: list[TagInfo] = []
        for item in data or []:
            stamp = item.get("lastUpdateTime") or item.get("createdTime")
            if not stamp:
                raise RegistryError(f"tag {repository}:{item.get('name')} has no timestamp")
            tags.append(
                TagInfo(name=str(item["name"]), pushed_at=parse_timestamp(stamp), digest=item.get("digest", ""))
            )
        return tags

    async def delete_tag(self, repository: str, tag: str) -> bool:
        result = await run_command(
            self._argv("delete", "--image", f"{repository}:{tag}", "--yes"),
            timeout=self._timeout,
        )
        if not result.ok:
            _log.warning(
                "az_delete_failed",
                repository=repository,
                tag=tag,
                returncode=result.returncode,
                stderr=result.stderr.strip()[:300],
            )
        return result.ok


class DistributionRegistryClient(RegistryClient):
    """OCI distribution HTTP API client.

    Push time is read from the image config blob's ``created`` field.
    Deletion is by manifest digest, which removes every tag that shares
    the digest; the registry must run with deletes enabled.
    """

    def __init__(
        self,
        base_url: str,
        username: str = "",
        password: str = "",
        timeout: float = 30.0,
        page_size: int = 1000,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("registry url must not be empty")
        self._page_size = page_size
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            auth=(username, password) if username else None,
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.get(url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise RegistryError(f"GET {url} failed: {exc}") from exc
        return response

    async def list_repositories(self) -> list[str]:
        names: list[str] = []
        url: str | None = f"/v2/_catalog?n={self._page_size}"
        while url:
            response = await self._get(url)
            names.extend(response.json().get("repositories") or [])
            url = response.links.get("next", {}).get("url")
        return names

    async def list_tags(self, repository: str) -> list[TagInfo]:
        names: list[str] = []
        url: str | None = f"/v2/{repository}/tags/list?n={self._page_size}"
        while url:
            response = await self._get(url)
            names.extend(response.json().get("tags") or [])
            url = response.links.get("next", {}).get("url")
        tags: list[TagInfo] = []
        for tag in names:
            digest, created = await self._describe(repository, tag)
            tags.append(TagInfo(name=tag, pushed_at=created, digest=digest))
        return tags

    async def _describe(self, repository: str, reference: str) -> tuple[str, datetime]:
        response = await self._get(f"/v2/{repository}/manifests/{reference}", headers={"Accept": _MANIFEST_ACCEPT})
        digest = response.headers.get("Docker-Content-Digest", "")
        manifest = response.json()
        if "config" not in manifest:
            # Image index: take the push time of its first platform manifest.
            children = manifest.get("manifests") or []
            if not children:
                raise RegistryError(f"{repository}:{reference} is an empty image index")
            _, created = await self._describe(repository, children[0]["digest"])
            return digest, created
        config = await self._get(f"/v2/{repository}/blobs/{manifest['config']['digest']}")
        created = config.json().get("created")
        if not created:
            raise RegistryError(f"{repository}:{reference} config has no created time")
        return digest, parse_timestamp(created)

    async def delete_tag(self, repository: str, tag: str) -> bool:
        head = await self._client.head(f"/v2/{repository}/manifests/{tag}", headers={"Accept": _MANIFEST_ACCEPT})
        digest = head.headers.get("Docker-Content-Digest")
        if not head.is_success or not digest:
            _log.warning("manifest_digest_unavailable", repository=repository, tag=tag, status_code=head.status_code)
            return False
        response = await self._client.delete(f"/v2/{repository}/manifests/{digest}")
        if not response.is_success:
            _log.warning("manifest_delete_rejected", repository=repository, tag=tag, status_code=response.status_code)
        return response.is_success
