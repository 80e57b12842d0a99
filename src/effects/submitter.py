"""
Action Submitter - posts a resolved effect to the game's action API.

    POST {base_url}/play/{gameId}/actions/<slug>
    {"event": <kind>, "playerId": <actor>, ...kind-specific fields}

Policy:
- One attempt per flow. No retry, no backoff.
- Unconfigured endpoint: warning, no network call.
- Non-2xx or transport failure: error log, failed SubmissionResult.
- submit() never raises for any of the above; the caller resets the flow
  whatever the outcome.
"""

import asyncio
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import aiohttp

from effects.errors import SubmissionFailedError, UnconfiguredEndpointError
from effects.transitions import EFFECTS
from models.enums import EffectKind

logger = logging.getLogger(__name__)

GAME_ID_PLACEHOLDERS = (":gameId", "{id}")


@dataclass
class SubmissionResult:
    """Outcome of one submit() call."""

    kind: EffectKind
    success: bool
    url: str | None = None
    body: dict[str, Any] | None = None
    status: int | None = None
    error: str | None = None
    attempted: bool = True  # False when no endpoint was configured
    submitted_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        """Serialize for event bus consumers."""
        return {
            "kind": self.kind.value,
            "success": self.success,
            "url": self.url,
            "status": self.status,
            "error": self.error,
            "attempted": self.attempted,
        }


def build_endpoint_table(
    overrides: Mapping[str, str | None] | None = None,
) -> dict[EffectKind, str]:
    """
    Endpoint templates per kind.

    Args:
        overrides: event name -> template; a None template removes the endpoint

    Returns:
        Templates keyed by EffectKind (kinds without an endpoint are absent)
    """
    table = {
        kind: definition.endpoint_template()
        for kind, definition in EFFECTS.items()
        if definition.endpoint is not None
    }
    for event, template in (overrides or {}).items():
        kind = EffectKind.from_event(event)
        if kind is None:
            logger.warning(f"Ignoring endpoint override for unknown effect {event!r}")
            continue
        if template:
            table[kind] = template
        else:
            table.pop(kind, None)
    return table


class ActionSubmitter:
    """
    Outbound half of the effect flow.

    Usage:
        submitter = ActionSubmitter("http://localhost:8000", game_id=42)
        result = await submitter.submit(EffectKind.STEAL_SET, {"playerId": 1, ...})
        await submitter.close()
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        game_id: int | str | None = None,
        endpoint_overrides: Mapping[str, str | None] | None = None,
        timeout: float | None = None,
        session: aiohttp.ClientSession | None = None,
    ):
        """
        Args:
            base_url: Scheme/host prefix for relative templates
            game_id: Substituted for :gameId in templates ("0" when unknown)
            endpoint_overrides: event name -> template (None disables a kind)
            timeout: Total request timeout in seconds (None = aiohttp default)
            session: Shared aiohttp session; one is created lazily otherwise
        """
        self.base_url = base_url.rstrip("/")
        self.game_id = game_id
        self.timeout = timeout
        self._templates = build_endpoint_table(endpoint_overrides)
        self._session = session
        self._owns_session = session is None

        self._stats = {
            "submitted": 0,
            "succeeded": 0,
            "failed": 0,
            "unconfigured": 0,
        }

    @property
    def endpoints(self) -> dict[EffectKind, str]:
        return dict(self._templates)

    def has_endpoint(self, kind: EffectKind) -> bool:
        return kind in self._templates

    def resolve_endpoint(self, kind: EffectKind) -> str:
        """
        Absolute URL for `kind` with the game id substituted.

        Raises:
            UnconfiguredEndpointError: No template for this kind
        """
        template = self._templates.get(kind)
        if not template:
            raise UnconfiguredEndpointError(kind.value)

        game_id = str(self.game_id if self.game_id is not None else "0")
        path = template
        for placeholder in GAME_ID_PLACEHOLDERS:
            path = path.replace(placeholder, game_id)

        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def submit(self, kind: EffectKind, fields: Mapping[str, Any]) -> SubmissionResult:
        """
        POST the effect response once.

        Args:
            kind: Effect being answered
            fields: playerId plus the kind-specific response fields

        Returns:
            SubmissionResult (never raises for HTTP/transport/config failures)
        """
        try:
            url = self.resolve_endpoint(kind)
        except UnconfiguredEndpointError as e:
            self._stats["unconfigured"] += 1
            logger.warning(f"{e}. Skipping POST.")
            return SubmissionResult(kind=kind, success=False, error=str(e), attempted=False)

        body = {"event": kind.value, **fields}
        self._stats["submitted"] += 1
        logger.info(f"POST {url} {body}")

        request_kwargs: dict[str, Any] = {"json": body}
        if self.timeout:
            request_kwargs["timeout"] = aiohttp.ClientTimeout(total=self.timeout)
        try:
            session = await self._get_session()
            async with session.post(url, **request_kwargs) as resp:
                if not 200 <= resp.status < 300:
                    raise SubmissionFailedError(kind.value, f"HTTP {resp.status}", resp.status)
                self._stats["succeeded"] += 1
                logger.info(f"POST ok: {kind.value} ({resp.status})")
                return SubmissionResult(
                    kind=kind, success=True, url=url, body=body, status=resp.status
                )
        except SubmissionFailedError as e:
            self._stats["failed"] += 1
            logger.error(f"POST error: {e}")
            return SubmissionResult(
                kind=kind, success=False, url=url, body=body, status=e.status, error=str(e)
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self._stats["failed"] += 1
            logger.error(f"POST error: {kind.value} -> {url}: {e!r}")
            return SubmissionResult(kind=kind, success=False, url=url, body=body, error=repr(e))

    def get_stats(self) -> dict[str, int]:
        return dict(self._stats)

    async def close(self) -> None:
        """Close the aiohttp session if this submitter created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None
