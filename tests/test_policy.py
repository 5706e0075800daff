import pytest

from zk.zk_verifier import (
    CircuitType,
    InsufficientSignalsError,
    PolicyMetadata,
    SignalPolicyExtractor,
)

from conftest import ACCESS_SIGNALS, COMPUTATION_SIGNALS


@pytest.fixture
def extractor():
    return SignalPolicyExtractor()


def test_required_signals(extractor):
    assert extractor.required_signals(CircuitType.ACCESS) == 4
    assert extractor.required_signals("computation") == 5
    assert extractor.required_signals("ownership") == 0


def test_extract_access_layout(extractor):
    signals = extractor.extract("access", ACCESS_SIGNALS + ["extra"])
    assert signals == {
        'dataVaultId': "42",
        'accessHash': "9001",
        'timestamp': "1000",
        'merkleRoot': "777",
    }


def test_extract_computation_layout(extractor):
    signals = extractor.extract(CircuitType.COMPUTATION, COMPUTATION_SIGNALS)
    assert signals['computationType'] == "3"
    assert signals['validatorsMerkleRoot'] == "5555"


def test_extract_insufficient_signals(extractor):
    with pytest.raises(InsufficientSignalsError):
        extractor.extract("access", ["1", "2", "3"])
    assert extractor.extract("ownership", []) == {}


def test_expired_access_is_rejected(extractor):
    signals = extractor.extract("access", ACCESS_SIGNALS)
    decision = extractor.validate("access", signals, PolicyMetadata(), now=1500)
    assert not decision.accepted
    assert "expired" in decision.reason


def test_unexpired_access_is_accepted(extractor):
    signals = extractor.extract("access", ACCESS_SIGNALS)
    assert extractor.validate("access", signals, PolicyMetadata(), now=500).accepted
    assert extractor.validate("access", signals, PolicyMetadata(), now=1000).accepted


def test_expiry_skipped_when_disabled_or_no_clock(extractor):
    signals = extractor.extract("access", ACCESS_SIGNALS)
    assert extractor.validate("access", signals, PolicyMetadata(check_expiration=False), now=1500).accepted
    assert extractor.validate("access", signals, PolicyMetadata(), now=None).accepted


def test_malformed_timestamp_is_rejected(extractor):
    signals = extractor.extract("access", ["42", "9001", "soon", "777"])
    decision = extractor.validate("access", signals, PolicyMetadata(), now=1500)
    assert not decision.accepted
    assert "Malformed" in decision.reason


def test_merkle_root(extractor):
    signals = extractor.extract("access", ACCESS_SIGNALS)
    assert extractor.validate("access", signals, PolicyMetadata(expected_merkle_root="777")).accepted

    decision = extractor.validate("access", signals, PolicyMetadata(expected_merkle_root="778"))
    assert not decision.accepted
    assert "Merkle root mismatch" in decision.reason


def test_computation_type_allow_list(extractor):
    signals = extractor.extract("computation", COMPUTATION_SIGNALS)

    decision = extractor.validate("computation", signals, PolicyMetadata(allowed_computation_types=[1, 2]))
    assert not decision.accepted
    assert "computation type" in decision.reason

    assert extractor.validate("computation", signals, PolicyMetadata(allowed_computation_types=[2, 3])).accepted
    assert extractor.validate("computation", signals, PolicyMetadata(allowed_computation_types=None)).accepted


def test_empty_allow_list_rejects_every_type(extractor):
    signals = extractor.extract("computation", COMPUTATION_SIGNALS)
    decision = extractor.validate("computation", signals, PolicyMetadata(allowed_computation_types=[]))
    assert not decision.accepted
    assert "computation type" in decision.reason


@pytest.mark.parametrize("field,label", [
    ("expected_privacy_budget_hash", "Privacy budget"),
    ("expected_validators_merkle_root", "Validators root"),
    ("expected_result_hash", "Result hash"),
])
def test_computation_hash_mismatch(extractor, field, label):
    signals = extractor.extract("computation", COMPUTATION_SIGNALS)
    decision = extractor.validate("computation", signals, PolicyMetadata(**{field: "0"}))
    assert not decision.accepted
    assert decision.reason.startswith(label)


def test_computation_checks_run_in_order(extractor):
    signals = extractor.extract("computation", COMPUTATION_SIGNALS)
    policy = PolicyMetadata(
        allowed_computation_types=[1],
        expected_privacy_budget_hash="0",
        expected_result_hash="0",
    )
    decision = extractor.validate("computation", signals, policy)
    assert "computation type" in decision.reason

    policy.allowed_computation_types = None
    decision = extractor.validate("computation", signals, policy)
    assert decision.reason.startswith("Privacy budget")


def test_computation_matching_policy(extractor):
    signals = extractor.extract("computation", COMPUTATION_SIGNALS)
    policy = PolicyMetadata(
        allowed_computation_types=[3],
        expected_privacy_budget_hash="4444",
        expected_validators_merkle_root="5555",
        expected_result_hash="2222",
    )
    assert extractor.validate("computation", signals, policy).accepted


def test_ownership_always_passes(extractor):
    policy = PolicyMetadata(expected_merkle_root="nope", allowed_computation_types=[99])
    assert extractor.validate("ownership", {}, policy, now=10 ** 12).accepted


def test_policy_from_camel_case():
    policy = PolicyMetadata.from_dict({
        'checkExpiration': False,
        'currentTime': 1500,
        'expectedMerkleRoot': "777",
        'allowedComputationTypes': [1, 2],
        'accessId': "req-1",
        'somethingElse': True,
    })
    assert policy.check_expiration is False
    assert policy.current_time == 1500
    assert policy.expected_merkle_root == "777"
    assert policy.allowed_computation_types == [1, 2]
    assert policy.access_id == "req-1"


def test_policy_from_dict_defaults():
    assert PolicyMetadata.from_dict(None) == PolicyMetadata()
    assert PolicyMetadata.from_dict({'check_expiration': None}).check_expiration is True
    with pytest.raises(TypeError):
        PolicyMetadata.from_dict(["not", "a", "mapping"])
