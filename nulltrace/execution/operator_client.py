"""
Remote operator client.

Handles:
- Swap quotes (POST /quote-swap)
- Swap submission with signed transfer payloads (POST /process-swap)
- Request authentication via a rolling one-time code header

HARD RULES:
- Every request carries the x-null-client-secret header
- Non-success responses raise SubmissionRejected with the operator's message
- No retries
"""

import asyncio
import base64
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

import aiohttp

from nulltrace.config.schema import DEFAULT_OPERATOR_URL, DEFAULT_SHARED_SECRET
from nulltrace.errors import SubmissionRejected
from nulltrace.execution.auth import AUTH_HEADER, AUTH_STEP_SECONDS, get_auth_token
from nulltrace.execution.models import SignedBundle

logger = logging.getLogger(__name__)

# Operator-side statuses
STATUS_INITIALIZED = "initialized"
STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_REJECTED = "rejected"


@dataclass
class OperatorClient:
    """
    Client for the remote swap operator.

    Attributes:
        base_url: Operator endpoint prefix.
        shared_secret: Secret the auth code is derived from.
        timeout_seconds: Total timeout per request.
        session: Optional aiohttp session for HTTP requests
    """
    base_url: str = DEFAULT_OPERATOR_URL
    shared_secret: str = DEFAULT_SHARED_SECRET
    timeout_seconds: float = 30.0
    auth_step_seconds: int = AUTH_STEP_SECONDS
    session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        if self.session:
            await self.session.close()
            self.session = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            self.session = aiohttp.ClientSession(timeout=timeout)
        return self.session

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            AUTH_HEADER: get_auth_token(self.shared_secret, step=self.auth_step_seconds),
        }

    async def _post(self, path: str, payload: Dict[str, Any], failure: str) -> Dict[str, Any]:
        session = await self._ensure_session()
        url = f"{self.base_url.rstrip('/')}{path}"

        try:
            async with session.post(url, json=payload, headers=self._headers()) as response:
                if not 200 <= response.status < 300:
                    try:
                        error_data = await response.json(content_type=None)
                    except (aiohttp.ContentTypeError, ValueError):
                        error_data = {}
                    message = None
                    if isinstance(error_data, dict):
                        message = error_data.get("error")
                    message = message or f"{failure}: {response.status}"
                    logger.error(f"[operator] {path} failed: HTTP {response.status}: {message}")
                    raise SubmissionRejected(message, status=response.status)

                try:
                    data = await response.json(content_type=None)
                except ValueError as e:
                    logger.error(f"[operator] {path} returned a non-JSON body: HTTP {response.status}")
                    raise SubmissionRejected(f"{failure}: invalid response body", status=response.status) from e

        except asyncio.TimeoutError as e:
            logger.error(f"[operator] {path} timed out")
            raise SubmissionRejected(f"{failure}: timeout") from e
        except aiohttp.ClientError as e:
            logger.error(f"[operator] {path} network error: {e}")
            raise SubmissionRejected(f"{failure}: {e}") from e

        if not isinstance(data, dict):
            logger.error(f"[operator] {path} returned {type(data).__name__}, expected an object")
            raise SubmissionRejected(f"{failure}: unexpected response shape", status=response.status)
        return data

    async def quote_swap(self, input_mint: str, output_mint: str, amount: int) -> Dict[str, Any]:
        """Request a quote for swapping `amount` raw units of `input_mint`."""
        payload = {"inputMint": input_mint, "outputMint": output_mint, "amount": amount}
        return await self._post("/quote-swap", payload, "Quote failed")

    async def process_swap(
        self,
        swap_data: Dict[str, Any],
        transfers: Sequence[SignedBundle],
    ) -> Dict[str, Any]:
        """
        Hand a swap session and its signed transfer bundles to the operator.

        Args:
            swap_data: Session descriptor (SwapSession.to_dict()).
            transfers: Signed bundles moving funds to the operator. Top-up
                bundles are broadcast by the caller and never included here.

        Returns:
            Operator response; `status` is one of initialized, processing,
            completed.

        Raises:
            SubmissionRejected: On non-success HTTP or a rejected status.
        """
        payload = {
            "swapData": swap_data,
            "signedTransferData": [base64.b64encode(t.payload).decode("ascii") for t in transfers],
        }
        data = await self._post("/process-swap", payload, "Swap submission failed")

        if data.get("status") == STATUS_REJECTED:
            message = data.get("error") or data.get("message") or "Swap rejected by operator"
            logger.error(f"[operator] Swap {swap_data.get('id')} rejected: {message}")
            raise SubmissionRejected(message)

        logger.info(f"[operator] Swap {swap_data.get('id')} accepted: status={data.get('status')}")
        return data

