"""Async client for Circle's Iris attestation API."""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx
from eth_utils import is_hex

from ..core.recovery import NetworkError, RateLimitError, TimeoutError, ValidationError
from .base import AttestationAuthority, AttestationStatus

_FAILED_STATES = {"failed", "error"}


def _is_signature(value: Any) -> bool:
    if not isinstance(value, str) or not is_hex(value):
        return False
    digits = value.removeprefix("0x")
    return len(digits) > 0 and len(digits) % 2 == 0


class IrisAttestationClient(AttestationAuthority):
    """Thin wrapper around ``GET /attestations/{messageHash}``.

    A 404 means the burn has not propagated to Iris yet and is reported
    as ``pending``.
    """

    name = "iris"

    def __init__(
        self,
        base_url: str,
        *,
        api_key: Optional[str] = None,
        timeout_s: float = 20,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout_s,
            headers=self._headers(),
            transport=transport,
        )

    @classmethod
    def from_settings(cls, config: Any, **kwargs: Any) -> "IrisAttestationClient":
        return cls(
            config.resolve_attestation_base_url(),
            api_key=config.circle_api_key or None,
            timeout_s=config.rpc_timeout_seconds,
            **kwargs,
        )

    def _headers(self) -> Dict[str, str]:
        headers = {"accept": "application/json"}
        if self.api_key:
            headers["authorization"] = f"Bearer {self.api_key}"
        return headers

    async def get_attestation(self, message_hash: str) -> AttestationStatus:
        try:
            response = await self._client.get(f"/attestations/{message_hash}")
        except httpx.TimeoutException as exc:
            raise TimeoutError(f"Attestation request timed out: {exc}", operation="get_attestation") from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Attestation service unreachable: {exc}", provider=self.name) from exc

        if response.status_code == 404:
            return AttestationStatus(state="pending", detail="not_found")
        if response.status_code == 429:
            retry_after = response.headers.get("retry-after")
            raise RateLimitError(
                "Attestation service rate limited",
                retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
                provider=self.name,
            )
        if response.status_code >= 500:
            raise NetworkError(f"Attestation service returned {response.status_code}", provider=self.name)
        if response.status_code >= 400:
            raise ValidationError(
                f"Attestation service rejected {message_hash}: HTTP {response.status_code}",
                field_name="message_hash",
            )

        body = response.json()
        status = str(body.get("status", "")).lower()
        if status == "complete":
            attestation = body.get("attestation")
            if not attestation or attestation == "PENDING":
                return AttestationStatus(state="pending", detail="signature_not_ready")
            if not _is_signature(attestation):
                return AttestationStatus(state="failed", detail="malformed_attestation")
            return AttestationStatus(state="complete", attestation=attestation)
        if status in _FAILED_STATES:
            return AttestationStatus(state="failed", detail=body.get("error") or status)
        return AttestationStatus(state="pending", detail=status or "unknown")

    async def close(self) -> None:
        await self._client.aclose()
