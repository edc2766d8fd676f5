"""
Oracle client - query a remote WoT aggregator over HTTP.

The oracle answers the same questions as LocalWoT from its own copy of
the graph. This client is the thin boundary to it:

- GET /api/distance/<from>/<to>?maxHops=N   -> {"distance": int|null}
- GET /api/details/<me>/<target>?maxHops=N  -> {"hops", "paths", "bridges", "mutual"}
- GET /api/batch/<me>?targets=a,b&maxHops=N -> {"results": [{"pubkey", "distance", "paths", "mutual"}]}

A 404 means "not connected" and is returned as None.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import aiohttp

from .core.defaults import DEFAULT_MAX_HOPS, DEFAULT_ORACLE, DEFAULT_ORACLE_TIMEOUT, ORACLE_BATCH_SIZE
from .core.exceptions import OracleError, OracleTimeoutError, ValidationException
from .core.identity import chunk, validate_pubkey, validate_pubkeys
from .core.scoring import ScoringConfig, calculate_trust_score, merge_scoring_config
from .local import BatchResult, DistanceResult

logger = logging.getLogger(__name__)


class _NotFound(Exception):
    pass


@dataclass
class OracleClient:
    """
    Client for a remote WoT oracle.

    Example:
        oracle = OracleClient(my_pubkey="82341f88...")
        result = await oracle.get_details(target)
    """

    my_pubkey: str
    oracle: str = DEFAULT_ORACLE
    max_hops: int = DEFAULT_MAX_HOPS
    timeout: float = DEFAULT_ORACLE_TIMEOUT
    scoring: ScoringConfig = field(default_factory=merge_scoring_config)

    def __post_init__(self) -> None:
        self.my_pubkey = validate_pubkey(self.my_pubkey, "my_pubkey")
        self.oracle = self.oracle.rstrip("/")

    # -------------------------------------------------------------------------
    # PUBLIC API
    # -------------------------------------------------------------------------

    async def get_distance(self, target: str, max_hops: Optional[int] = None) -> Optional[int]:
        """Hop count from ``my_pubkey`` to *target*, or None."""
        return await self.get_distance_between(self.my_pubkey, target, max_hops)

    async def get_distance_between(
        self,
        source: str,
        target: str,
        max_hops: Optional[int] = None,
    ) -> Optional[int]:
        """Hop count between two pubkeys, or None."""
        source = validate_pubkey(source, "from")
        target = validate_pubkey(target, "to")
        try:
            data = await self._request(
                f"/distance/{source}/{target}",
                {"maxHops": str(self.max_hops if max_hops is None else max_hops)},
            )
        except _NotFound:
            return None
        distance = data.get("distance")
        return int(distance) if distance is not None else None

    async def get_details(self, target: str, max_hops: Optional[int] = None) -> Optional[DistanceResult]:
        """Full distance details from ``my_pubkey`` to *target*, or None."""
        target = validate_pubkey(target, "target")
        try:
            data = await self._request(
                f"/details/{self.my_pubkey}/{target}",
                {"maxHops": str(self.max_hops if max_hops is None else max_hops)},
            )
        except _NotFound:
            return None
        if data.get("hops") is None:
            return None
        return DistanceResult(
            hops=int(data["hops"]),
            paths=int(data.get("paths", 1)),
            bridges=list(data.get("bridges") or []),
            mutual=data.get("mutual"),
        )

    async def get_trust_score(self, target: str, max_hops: Optional[int] = None) -> float:
        """Trust score of *target* computed from oracle details."""
        details = await self.get_details(target, max_hops)
        if details is None:
            return 0.0
        return calculate_trust_score(details.hops, details.paths, details.mutual, self.scoring)

    async def batch_check(
        self,
        targets: List[str],
        max_hops: Optional[int] = None,
    ) -> Dict[str, BatchResult]:
        """
        Check many targets, ORACLE_BATCH_SIZE per request.

        A batch that fails with a connection-level OracleError is filled
        with "not connected" entries; other errors propagate.
        """
        if not targets:
            raise ValidationException("targets must be a non-empty list", "targets")
        normalized = validate_pubkeys(targets, "targets")
        hops = self.max_hops if max_hops is None else max_hops
        results: Dict[str, BatchResult] = {}

        for batch in chunk(normalized, ORACLE_BATCH_SIZE):
            try:
                data = await self._request(
                    f"/batch/{self.my_pubkey}",
                    {"targets": ",".join(batch), "maxHops": str(hops)},
                )
            except _NotFound:
                data = {"results": []}
            except OracleError as e:
                if e.status is not None:
                    raise
                logger.warning(f"Oracle batch of {len(batch)} failed: {e}")
                data = {"results": []}

            for item in data.get("results", []):
                pubkey = str(item.get("pubkey", "")).lower()
                distance = item.get("distance")
                score = 0.0
                if distance is not None:
                    score = calculate_trust_score(
                        int(distance), int(item.get("paths") or 1), item.get("mutual"), self.scoring
                    )
                results[pubkey] = BatchResult(
                    pubkey=pubkey,
                    distance=distance,
                    score=score,
                    in_wot=distance is not None and distance <= hops,
                )

            for pubkey in batch:
                results.setdefault(pubkey, BatchResult(pubkey=pubkey, distance=None, score=0.0, in_wot=False))

        return results

    # -------------------------------------------------------------------------
    # HTTP
    # -------------------------------------------------------------------------

    async def _request(self, endpoint: str, params: Dict[str, str]) -> Dict[str, Any]:
        url = f"{self.oracle}/api{endpoint}"
        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(
                    url,
                    params=params,
                    headers={"Content-Type": "application/json"},
                ) as resp:
                    if resp.status == 404:
                        raise _NotFound(endpoint)
                    if resp.status != 200:
                        raise OracleError(
                            f"HTTP {resp.status}: {await resp.text()}",
                            status=resp.status,
                            url=url,
                        )
                    return await resp.json()
        except aiohttp.ClientError as e:
            raise OracleError(f"Connection error: {e}", url=url) from e
        except asyncio.TimeoutError as e:
            raise OracleTimeoutError(self.timeout, url=url) from e
