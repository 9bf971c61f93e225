import pytest
from pydantic import BaseModel, field_validator

from conftest import LEDGER_ID, encode_reply

from icreactor.agent.types import CertifiedBody, HttpDetails, SubmitResponse
from icreactor.candid.principal import Principal
from icreactor.candid.types import IDL
from icreactor.display_reactor import DisplayReactor, ValidationResult, from_pydantic_model
from icreactor.utils.exceptions import CallError, CanisterError, ValidationError, ValidationIssue

REQUEST_ID = b"\x09" * 32

ACCOUNT = IDL.Record({"owner": IDL.Principal, "subaccount": IDL.Opt(IDL.Vec(IDL.Nat8))})
TRANSFER_ARGS = IDL.Record({"to": ACCOUNT, "amount": IDL.Nat, "memo": IDL.Opt(IDL.Vec(IDL.Nat8))})
TRANSFER_ERROR = IDL.Variant({"InsufficientFunds": IDL.Record({"balance": IDL.Nat}), "TooOld": IDL.Null})

LOOKUP_RESULT = IDL.Rec()
LOOKUP_RESULT.fill(IDL.Variant({"Ok": IDL.Nat, "Err": TRANSFER_ERROR}))

SERVICE = IDL.Service(
    {
        "account_balance": IDL.Func([ACCOUNT], [IDL.Nat], ["query"]),
        "transfer": IDL.Func([TRANSFER_ARGS], [IDL.Variant({"Ok": IDL.Nat, "Err": TRANSFER_ERROR})]),
        "status": IDL.Func([], [IDL.Variant({"Pending": IDL.Null, "Cancelled": IDL.Text})], ["query"]),
        "fees": IDL.Func([IDL.Nat, IDL.Nat64], [IDL.Vec(IDL.Tuple(IDL.Text, IDL.Nat))], ["query"]),
        "lookup": IDL.Func([], [LOOKUP_RESULT], ["query"]),
    }
)

OWNER_TEXT = "ryjl3-tyaaa-aaaaa-aaaba-cai"


@pytest.fixture
def reactor(client_manager):
    return DisplayReactor(client_manager, SERVICE, canister_id=LEDGER_ID)


def _certified(transport, verifier, *values):
    cert = verifier.issue(REQUEST_ID, "replied", reply=encode_reply(*values))
    transport.call_responses.append(SubmitResponse(REQUEST_ID, HttpDetails(200, body=CertifiedBody(cert))))


@pytest.mark.asyncio
async def test_display_args_are_encoded_as_wire_values(reactor, transport, wire):
    transport.reply_query(123_456_789_000)
    balance = await reactor.call_method("account_balance", [{"owner": OWNER_TEXT, "subaccount": None}])
    assert balance == "123456789000"
    assert wire.encoded == [[{"owner": LEDGER_ID, "subaccount": []}]]


@pytest.mark.asyncio
async def test_several_args_go_through_the_tuple_codec(reactor, transport, wire):
    transport.reply_query([("icp", 10_000)])
    fees = await reactor.call_method("fees", ["1", "2"])
    assert fees == {"icp": "10000"}
    assert wire.encoded == [[1, 2]]


@pytest.mark.asyncio
async def test_update_ok_arm_is_transformed(reactor, transport, verifier, wire):
    _certified(transport, verifier, {"Ok": 2**64})
    args = [{"to": {"owner": OWNER_TEXT, "subaccount": None}, "amount": "500", "memo": "cafe"}]
    assert await reactor.call_method("transfer", args) == str(2**64)
    assert wire.encoded[0][0] == {
        "to": {"owner": LEDGER_ID, "subaccount": []},
        "amount": 500,
        "memo": [b"\xca\xfe"],
    }


@pytest.mark.asyncio
async def test_err_arm_is_transformed_before_classification(reactor, transport, verifier):
    _certified(transport, verifier, {"Err": {"InsufficientFunds": {"balance": 7}}})
    args = [{"to": {"owner": OWNER_TEXT, "subaccount": None}, "amount": "500", "memo": None}]
    with pytest.raises(CanisterError) as exc_info:
        await reactor.call_method("transfer", args)
    err = exc_info.value
    assert err.code == "InsufficientFunds"
    assert err.err == {"_type": "InsufficientFunds", "InsufficientFunds": {"balance": "7"}}


@pytest.mark.asyncio
async def test_plain_variant_result_is_tagged(reactor, transport):
    transport.reply_query({"Pending": None})
    transport.reply_query({"Cancelled": "reason"})
    assert await reactor.call_method("status") == {"_type": "Pending"}
    assert await reactor.call_method("status") == {"_type": "Cancelled", "Cancelled": "reason"}


@pytest.mark.asyncio
async def test_untransformable_args_pass_through(reactor, transport, wire):
    transport.reply_query(1)
    await reactor.call_method("account_balance", ["not-a-record"])
    assert wire.encoded == [["not-a-record"]]


@pytest.mark.asyncio
async def test_strict_arg_transform(client_manager, transport):
    reactor = DisplayReactor(client_manager, SERVICE, canister_id=LEDGER_ID, lenient_arg_transform=False)
    with pytest.raises(CallError):
        await reactor.call_method("account_balance", ["not-a-record"])
    assert transport.queries == []


def test_lenient_default_comes_from_config(client_manager):
    client_manager.config.lenient_arg_transform = False
    assert DisplayReactor(client_manager, SERVICE, canister_id=LEDGER_ID).lenient_arg_transform is False


@pytest.mark.asyncio
async def test_result_transform_failure_returns_raw_value(reactor, transport):
    transport.reply_query([1])
    assert await reactor.call_method("account_balance", [{"owner": OWNER_TEXT, "subaccount": None}]) == [1]


def test_get_codec(reactor):
    codecs = reactor.get_codec("account_balance")
    assert codecs.result.as_display(5) == "5"
    assert codecs.args.as_candid({"owner": "aaaaa-aa", "subaccount": None}) == {
        "owner": Principal.management_canister(),
        "subaccount": [],
    }
    assert reactor.get_codec("missing") is None


@pytest.mark.asyncio
async def test_validator_blocks_call_before_transport(reactor, transport):
    def _positive(args):
        if int(args[0]["amount"]) <= 0:
            return ValidationResult(False, [ValidationIssue(["amount"], "Must be positive")])
        return ValidationResult(True)

    reactor.register_validator("transfer", _positive)
    assert reactor.has_validator("transfer")
    args = [{"to": {"owner": OWNER_TEXT, "subaccount": None}, "amount": "0", "memo": None}]
    with pytest.raises(ValidationError) as exc_info:
        await reactor.call_method("transfer", args)
    assert exc_info.value.has_error_for_path("amount")
    assert transport.calls == []

    reactor.unregister_validator("transfer")
    assert not reactor.has_validator("transfer")


@pytest.mark.asyncio
async def test_async_validator(reactor, transport):
    async def _blocked(args):
        return args[0]["owner"] != OWNER_TEXT

    reactor.register_validator("account_balance", _blocked)
    result = await reactor.validate("account_balance", [{"owner": OWNER_TEXT, "subaccount": None}])
    assert not result.success
    assert (await reactor.validate("account_balance", [{"owner": "aaaaa-aa"}])).success


@pytest.mark.asyncio
async def test_validate_without_validator_succeeds(reactor):
    assert (await reactor.validate("status", [])).success


class TransferForm(BaseModel):
    amount: str

    @field_validator("amount")
    @classmethod
    def check_digits(cls, value: str) -> str:
        if not value.isdigit():
            raise ValueError("must be a decimal number")
        return value


@pytest.mark.asyncio
async def test_from_pydantic_model(reactor):
    reactor.register_validator("transfer", from_pydantic_model(TransferForm))
    result = await reactor.validate("transfer", [{"amount": "12x"}])
    assert not result.success
    assert result.issues[0].path == ["amount"]
    assert "decimal number" in result.issues[0].message
    assert (await reactor.validate("transfer", [{"amount": "12"}])).success
    missing = await reactor.validate("transfer", [])
    assert missing.issues[0].path == [0]


@pytest.mark.asyncio
async def test_recursive_result_binding_uses_arm_codecs(reactor, transport):
    transport.reply_query({"Ok": 2**70})
    transport.reply_query({"Err": {"InsufficientFunds": {"balance": 3}}})
    assert await reactor.call_method("lookup") == str(2**70)
    with pytest.raises(CanisterError) as exc_info:
        await reactor.call_method("lookup")
    assert exc_info.value.code == "InsufficientFunds"
    assert exc_info.value.err == {"_type": "InsufficientFunds", "InsufficientFunds": {"balance": "3"}}


@pytest.mark.asyncio
async def test_crashing_validator_becomes_validation_error(reactor, transport):
    def _crash(args):
        raise RuntimeError("validator crashed")

    reactor.register_validator("status", _crash)
    with pytest.raises(ValidationError) as exc_info:
        await reactor.call_method("status")
    issue = exc_info.value.issues[0]
    assert issue.code == "VALIDATOR_ERROR"
    assert "validator crashed" in issue.message
    assert transport.queries == []


@pytest.mark.asyncio
async def test_crashing_async_validator_becomes_validation_error(reactor, transport):
    async def _crash(args):
        raise RuntimeError("validator crashed")

    reactor.register_validator("status", _crash)
    with pytest.raises(ValidationError) as exc_info:
        await reactor.call_method("status")
    assert exc_info.value.issues[0].code == "VALIDATOR_ERROR"
    assert transport.queries == []
