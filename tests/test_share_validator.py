import pytest

from protocol.types.tx import Transaction
from protocol.types.common import ShareClass, InvalidShare
from pool.consensus.share_validator import ShareValidator
from pool.core.chain import InMemoryChain

OPERATOR = "pool-operator"
POW_BITS = 8


@pytest.fixture
def template(chain):
    txs = [
        Transaction(from_address="alice", to_address="bob", amount=10, nonce=0),
        Transaction(from_address="alice", to_address="carol", amount=20, nonce=1),
    ]
    return chain.build_template(chain.current_head(), txs, round_id=1, reward_address=OPERATOR)


def test_share_target_must_be_looser_than_network_target(chain):
    with pytest.raises(ValueError):
        ShareValidator(chain, POW_BITS)
    with pytest.raises(ValueError):
        ShareValidator(chain, POW_BITS + 4)


def test_classify_share_and_full_proof(validator, template, find_proofs):
    share = find_proofs(template, ShareClass.SHARE)[0]
    full = find_proofs(template, ShareClass.FULL_PROOF)[0]

    assert validator.classify(template.with_proof(share), template) == ShareClass.SHARE
    assert validator.classify(template.with_proof(full), template) == ShareClass.FULL_PROOF


def test_full_proof_also_meets_share_target(validator, chain, template, find_proofs):
    full = find_proofs(template, ShareClass.FULL_PROOF)[0]
    value = chain.proof_value(template.with_proof(full))

    assert value < validator.full_target < validator.share_target


def test_weak_proof_is_rejected(validator, template, find_proofs):
    weak = find_proofs(template, ShareClass.REJECTED)[0]
    candidate = template.with_proof(weak)

    assert validator.classify(candidate, template) == ShareClass.REJECTED
    with pytest.raises(InvalidShare, match="share target"):
        validator.validate(candidate, template)


def test_missing_proof_is_rejected(validator, template):
    with pytest.raises(InvalidShare, match="missing proof"):
        validator.validate(template, template)


@pytest.mark.parametrize("field,value,reason", [
    ("round_id", 2, "round mismatch"),
    ("previous_block_id", "f" * 64, "previous_block_id"),
    ("chain_length", 5, "chain_length"),
    ("reward_address", "thief", "reward_address"),
])
def test_candidate_must_match_template(validator, template, find_proofs, field, value, reason):
    share = find_proofs(template, ShareClass.SHARE)[0]
    candidate = template.with_proof(share).model_copy(update={field: value})

    with pytest.raises(InvalidShare, match=reason):
        validator.validate(candidate, template)


def test_candidate_with_different_transactions_is_rejected(validator, template, find_proofs):
    share = find_proofs(template, ShareClass.SHARE)[0]
    candidate = template.with_proof(share)
    candidate.transactions = candidate.transactions[:1]

    assert validator.classify(candidate, template) == ShareClass.REJECTED


def test_structurally_invalid_block_is_rejected(chain, validator):
    bad_tx = Transaction.model_construct(from_address="x", to_address="", amount=1, fee=0, nonce=0, payload={})
    template = chain.build_template(chain.current_head(), [bad_tx], round_id=1, reward_address=OPERATOR)

    # Any proof will do: structure is checked before the proof
    with pytest.raises(InvalidShare, match="structural"):
        validator.validate(template.with_proof(0), template)


def test_classify_is_deterministic(chain, template, find_proofs):
    proofs = find_proofs(template, ShareClass.SHARE, count=3) + find_proofs(template, ShareClass.REJECTED, count=3)
    other = ShareValidator(chain, 2)
    same_chain = InMemoryChain(POW_BITS)
    third = ShareValidator(same_chain, 2)

    for proof in proofs:
        candidate = template.with_proof(proof)
        first = other.classify(candidate, template)
        assert other.classify(candidate, template) == first
        assert third.classify(candidate, template) == first


def test_validator_depends_on_template_not_chain_head(chain, validator, template, find_proofs):
    share = find_proofs(template, ShareClass.SHARE)[0]
    # Moving the chain head does not change the classification of a given pair
    chain.announce_block(template.with_proof(find_proofs(template, ShareClass.FULL_PROOF)[0]))
    assert chain.height == 1

    assert validator.classify(template.with_proof(share), template) == ShareClass.SHARE
