from __future__ import annotations

import asyncio
import base64

import aiohttp
import pytest

from conftest import FakeResponse, compiled_bundle
from nulltrace.errors import SubmissionRejected
from nulltrace.execution.auth import AUTH_HEADER
from nulltrace.execution.models import SignedBundle


def signed(payload: bytes) -> SignedBundle:
    return SignedBundle(bundle=compiled_bundle(), payload=payload, signature="s")


@pytest.mark.asyncio
async def test_quote_posts_raw_amount_with_auth_header(operator, operator_session):
    operator_session.queue(FakeResponse(200, {"inAmount": "1000", "outAmount": "42"}))
    quote = await operator.quote_swap("in", "out", 1000)

    assert quote["outAmount"] == "42"
    request = operator_session.requests[0]
    assert request["url"] == "http://operator.test/operator/quote-swap"
    assert request["json"] == {"inputMint": "in", "outputMint": "out", "amount": 1000}
    code = request["headers"][AUTH_HEADER]
    assert len(code) == 6 and code.isdigit()


@pytest.mark.asyncio
async def test_process_swap_sends_base64_payloads(operator, operator_session):
    operator_session.queue(FakeResponse(200, {"status": "processing"}))
    data = await operator.process_swap({"id": "abc"}, [signed(b"one"), signed(b"two")])

    assert data["status"] == "processing"
    body = operator_session.requests[0]["json"]
    assert body["swapData"] == {"id": "abc"}
    assert [base64.b64decode(p) for p in body["signedTransferData"]] == [b"one", b"two"]


@pytest.mark.asyncio
async def test_error_message_from_service_is_surfaced(operator, operator_session):
    operator_session.queue(FakeResponse(400, {"error": "Insufficient liquidity"}))
    with pytest.raises(SubmissionRejected) as exc:
        await operator.process_swap({"id": "abc"}, [])
    assert str(exc.value) == "Insufficient liquidity"
    assert exc.value.status == 400


@pytest.mark.asyncio
async def test_error_without_body_uses_status(operator, operator_session):
    operator_session.queue(FakeResponse(502, None, text="bad gateway"))
    with pytest.raises(SubmissionRejected, match="Swap submission failed: 502"):
        await operator.process_swap({"id": "abc"}, [])


@pytest.mark.asyncio
async def test_rejected_status_raises(operator, operator_session):
    operator_session.queue(FakeResponse(200, {"status": "rejected", "error": "slippage exceeded"}))
    with pytest.raises(SubmissionRejected, match="slippage exceeded"):
        await operator.process_swap({"id": "abc"}, [])


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [asyncio.TimeoutError(), aiohttp.ClientConnectionError("refused")])
async def test_transport_errors_become_submission_rejected(operator, operator_session, error):
    operator_session.queue(FakeResponse(error=error))
    with pytest.raises(SubmissionRejected, match="Quote failed"):
        await operator.quote_swap("in", "out", 1)


@pytest.mark.asyncio
async def test_close_releases_session(operator, operator_session):
    await operator.close()
    assert operator_session.closed
    assert operator.session is None


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [201, 202])
async def test_any_2xx_is_success(operator, operator_session, status):
    operator_session.queue(FakeResponse(status, {"status": "processing"}))
    data = await operator.process_swap({"id": "abc"}, [signed(b"one")])
    assert data == {"status": "processing"}


@pytest.mark.asyncio
async def test_non_json_success_body_is_rejected(operator, operator_session):
    operator_session.queue(FakeResponse(200, None, text="<html>oops</html>"))
    with pytest.raises(SubmissionRejected, match="Swap submission failed: invalid response body") as exc:
        await operator.process_swap({"id": "abc"}, [])
    assert exc.value.status == 200


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [["completed"], "completed", 7])
async def test_non_object_success_body_is_rejected(operator, operator_session, body):
    operator_session.queue(FakeResponse(200, body))
    with pytest.raises(SubmissionRejected, match="Quote failed: unexpected response shape"):
        await operator.quote_swap("in", "out", 1)
