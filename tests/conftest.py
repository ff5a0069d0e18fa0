import pytest
from typing import List

from protocol.types.block import BlockTemplate
from protocol.types.common import ShareClass
from protocol.config.economic_model import RewardConfig, DECIMALS
from pool.core.chain import InMemoryChain
from pool.core.round_controller import RoundController
from pool.consensus.share_validator import ShareValidator
from pool.p2p.transport import InProcTransport

# Easy targets so tests can search nonces: 1 in 4 tries is a share, 1 in 256 a block
SHARE_BITS = 2
POW_BITS = 8
OPERATOR = "pool-operator"


@pytest.fixture
def chain():
    return InMemoryChain(POW_BITS, coinbase_reward=25 * DECIMALS)


@pytest.fixture
def transport():
    return InProcTransport()


@pytest.fixture
def validator(chain):
    return ShareValidator(chain, SHARE_BITS)


@pytest.fixture
def controller(chain, transport):
    return RoundController(
        chain=chain,
        transport=transport,
        operator_address=OPERATOR,
        share_leading_zero_bits=SHARE_BITS,
        reward_config=RewardConfig(total_reward=25, operator_cut=5),
    )


@pytest.fixture
def find_proofs(validator):
    """
    Returns a function (template, share_class, count) -> list of proofs of
    exactly that class, searching nonces upward from 0.
    """
    def _find(template: BlockTemplate, share_class: ShareClass, count: int = 1) -> List[int]:
        found = []
        nonce = 0
        while len(found) < count:
            if validator.classify(template.with_proof(nonce), template) == share_class:
                found.append(nonce)
            nonce += 1
        return found
    return _find
