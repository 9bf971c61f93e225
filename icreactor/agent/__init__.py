"""Transport data model, response processing and polling."""

from icreactor.agent.polling import DEFAULT_POLLING_POLICY, PollingPolicy, TieredPollingPolicy
from icreactor.agent.response import CallState, process_query_response, process_update_response
from icreactor.agent.types import (
    CallRequest,
    CertifiedBody,
    HttpDetails,
    QueryRequest,
    QueryResponse,
    QueryResponseStatus,
    RejectBody,
    RejectCode,
    RequestStatus,
    SubmitResponse,
)

__all__ = [
    "DEFAULT_POLLING_POLICY",
    "CallRequest",
    "CallState",
    "CertifiedBody",
    "HttpDetails",
    "PollingPolicy",
    "QueryRequest",
    "QueryResponse",
    "QueryResponseStatus",
    "RejectBody",
    "RejectCode",
    "RequestStatus",
    "SubmitResponse",
    "TieredPollingPolicy",
    "process_query_response",
    "process_update_response",
]
