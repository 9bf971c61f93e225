"""Turn raw transport responses into reply bytes or structured rejections.

Query path: ``Replied`` -> reply bytes, ``Rejected`` -> uncertified RejectError.

Update path::

    Submitted -> CertifiedReplied | CertifiedRejected      (certificate in body)
    Submitted -> UncertifiedRejected                        (reject body)
    Submitted -> Accepted -> Polling -> PolledReplied | PolledRejected
    anything else -> UnknownResponse (fatal)

A certificate embedded in the response always wins over polling. This module
knows nothing about codecs.
"""

from __future__ import annotations

import inspect
from enum import Enum
from typing import Sequence

from loguru import logger

from icreactor.agent.polling import DEFAULT_POLLING_POLICY, PollingPolicy, TieredPollingPolicy
from icreactor.agent.types import (
    Certificate,
    CertificateVerifier,
    CertifiedBody,
    QueryResponse,
    QueryResponseStatus,
    RejectBody,
    RequestStatus,
    SubmitResponse,
    Transport,
)
from icreactor.candid.principal import Principal
from icreactor.utils.exceptions import (
    CallContext,
    CallError,
    CertificateVerificationError,
    MissingRootKeyError,
    RejectError,
    RejectionInfo,
    UnexpectedResponseError,
)
from icreactor.utils.helpers import decode_leb128

REQUEST_STATUS = b"request_status"


class CallState(str, Enum):
    SUBMITTED = "submitted"
    CERTIFIED_REPLIED = "certified_replied"
    CERTIFIED_REJECTED = "certified_rejected"
    UNCERTIFIED_REJECTED = "uncertified_rejected"
    ACCEPTED = "accepted"
    POLLING = "polling"
    POLLED_REPLIED = "polled_replied"
    POLLED_REJECTED = "polled_rejected"
    UNKNOWN_RESPONSE = "unknown_response"


def _transition(canister_id: Principal, method_name: str, state: CallState) -> None:
    logger.debug("update {}.{} -> {}", canister_id.to_text(), method_name, state.value)


def request_status_path(request_id: bytes, *leaf: bytes) -> list[bytes]:
    return [REQUEST_STATUS, request_id, *leaf]


# ---------------------------------------------------------------------------
# Query
# ---------------------------------------------------------------------------


def process_query_response(response: QueryResponse, canister_id: Principal, method_name: str) -> bytes:
    """Reply bytes of a query, or raise the uncertified rejection."""
    if response.status == QueryResponseStatus.REJECTED:
        raise RejectError(
            RejectionInfo(
                request_id=response.request_id,
                reject_code=response.reject_code,
                reject_message=response.reject_message,
                error_code=response.error_code,
                call_context=CallContext(canister_id.to_text(), method_name, response.http_details),
                signatures=list(response.signatures),
            ),
            certified=False,
        )
    if response.status == QueryResponseStatus.REPLIED and response.reply is not None:
        return response.reply
    raise UnexpectedResponseError(
        f"Query {method_name} returned status {response.status!r} without a reply",
        CallContext(canister_id.to_text(), method_name, response.http_details),
    )


# ---------------------------------------------------------------------------
# Certificates
# ---------------------------------------------------------------------------


async def verify_certificate(
    verifier: CertificateVerifier,
    certificate: bytes,
    root_key: bytes | None,
    canister_id: Principal,
) -> Certificate:
    """Verify ``certificate``; a missing root key or failed check is fatal."""
    if root_key is None:
        raise MissingRootKeyError()
    try:
        result = verifier.verify(certificate, root_key, canister_id)
        if inspect.isawaitable(result):
            result = await result
    except CallError:
        raise
    except Exception as exc:
        raise CertificateVerificationError(canister_id.to_text(), exc) from exc
    return result


def _lookup_status(cert: Certificate, request_id: bytes) -> RequestStatus:
    return RequestStatus.parse(cert.lookup(request_status_path(request_id, b"status")))


def _certified_rejection(
    cert: Certificate,
    request_id: bytes,
    context: CallContext,
) -> CallError:
    code_buf = cert.lookup(request_status_path(request_id, b"reject_code"))
    message_buf = cert.lookup(request_status_path(request_id, b"reject_message"))
    error_code_buf = cert.lookup(request_status_path(request_id, b"error_code"))
    if code_buf is None or message_buf is None:
        return UnexpectedResponseError(
            "Certificate reports a rejection without reject_code/reject_message",
            context,
        )
    return RejectError(
        RejectionInfo(
            request_id=request_id,
            reject_code=decode_leb128(code_buf),
            reject_message=message_buf.decode("utf-8", errors="replace"),
            error_code=error_code_buf.decode("utf-8", errors="replace") if error_code_buf else None,
            call_context=context,
        ),
        certified=True,
    )


def _certified_reply(cert: Certificate, request_id: bytes, context: CallContext) -> bytes:
    reply = cert.lookup(request_status_path(request_id, b"reply"))
    if reply is None:
        raise UnexpectedResponseError("Certificate reports a reply but holds no reply bytes", context)
    return reply


# ---------------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------------


async def poll_for_response(
    transport: Transport,
    verifier: CertificateVerifier,
    root_key: bytes | None,
    canister_id: Principal,
    request_id: bytes,
    method_name: str,
    policy: PollingPolicy | TieredPollingPolicy = DEFAULT_POLLING_POLICY,
) -> bytes:
    """Read the request status until it is terminal; reply bytes or raise."""
    context = CallContext(canister_id.to_text(), method_name)
    strategy = policy.start(f"{canister_id.to_text()}.{method_name}")
    paths: Sequence[Sequence[bytes]] = [request_status_path(request_id)]
    while True:
        raw_cert = await transport.read_state(canister_id, paths)
        cert = await verify_certificate(verifier, raw_cert, root_key, canister_id)
        status = _lookup_status(cert, request_id)
        if status == RequestStatus.REPLIED:
            _transition(canister_id, method_name, CallState.POLLED_REPLIED)
            return _certified_reply(cert, request_id, context)
        if status == RequestStatus.REJECTED:
            _transition(canister_id, method_name, CallState.POLLED_REJECTED)
            raise _certified_rejection(cert, request_id, context)
        if status == RequestStatus.DONE:
            raise CallError(
                f"Call to {context.canister_id}.{method_name} is done but its reply was already pruned",
                code="REQUEST_DONE",
            )
        await strategy(status)


async def process_update_response(
    result: SubmitResponse,
    canister_id: Principal,
    method_name: str,
    *,
    transport: Transport,
    verifier: CertificateVerifier,
    root_key: bytes | None,
    polling_policy: PollingPolicy | TieredPollingPolicy = DEFAULT_POLLING_POLICY,
) -> bytes:
    """Resolve an update submission to reply bytes, raising on any rejection."""
    _transition(canister_id, method_name, CallState.SUBMITTED)
    http = result.response
    body = http.body
    context = CallContext(canister_id.to_text(), method_name, http)
    reply: bytes | None = None

    if isinstance(body, CertifiedBody):
        cert = await verify_certificate(verifier, body.certificate, root_key, canister_id)
        status = _lookup_status(cert, result.request_id)
        if status == RequestStatus.REPLIED:
            _transition(canister_id, method_name, CallState.CERTIFIED_REPLIED)
            reply = _certified_reply(cert, result.request_id, context)
        elif status == RequestStatus.REJECTED:
            _transition(canister_id, method_name, CallState.CERTIFIED_REJECTED)
            raise _certified_rejection(cert, result.request_id, context)
    elif isinstance(body, RejectBody):
        _transition(canister_id, method_name, CallState.UNCERTIFIED_REJECTED)
        raise RejectError(
            RejectionInfo(
                request_id=result.request_id,
                reject_code=body.reject_code,
                reject_message=body.reject_message,
                error_code=body.error_code,
                call_context=context,
            ),
            certified=False,
        )

    if reply is None and http.accepted:
        _transition(canister_id, method_name, CallState.ACCEPTED)
        _transition(canister_id, method_name, CallState.POLLING)
        reply = await poll_for_response(
            transport, verifier, root_key, canister_id, result.request_id, method_name, polling_policy
        )

    if reply is not None:
        return reply

    _transition(canister_id, method_name, CallState.UNKNOWN_RESPONSE)
    context.http_details = {"response": http, "request_details": result.request_details}
    raise UnexpectedResponseError(
        f"Unexpected response for {context.canister_id}.{method_name}: no reply, no rejection, not accepted",
        context,
    )
