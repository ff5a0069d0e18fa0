import pytest
from pydantic import ValidationError

from protocol.types.common import ShareClass, ShareOutcome
from miner.worker import PoolWorker


def test_worker_without_template_submits_nothing(validator):
    worker = PoolWorker("A", validator)

    assert worker.make_submission(0) is None


def test_worker_follows_broadcast_template(controller, transport, validator, find_proofs):
    worker = PoolWorker("A", validator)
    controller.start_new_round()

    template = worker.on_new_template(transport.broadcasts[-1].payload)

    assert template == controller.template


def test_worker_only_submits_acceptable_shares(controller, transport, validator, find_proofs):
    worker = PoolWorker("A", validator)
    controller.start_new_round()
    worker.on_new_template(transport.broadcasts[-1].payload)

    weak = find_proofs(controller.template, ShareClass.REJECTED)[0]
    share = find_proofs(controller.template, ShareClass.SHARE)[0]

    assert worker.make_submission(weak) is None
    submission = worker.make_submission(share)
    assert submission.worker_address == "A"
    assert controller.handle_share(submission) == ShareOutcome.ACCEPTED


def test_worker_switches_rounds(controller, transport, validator, find_proofs):
    worker = PoolWorker("A", validator)
    controller.start_new_round()
    worker.on_new_template(transport.broadcasts[-1].payload)

    full = find_proofs(controller.template, ShareClass.FULL_PROOF)[0]
    assert controller.handle_share(worker.make_submission(full)) == ShareOutcome.BLOCK_FOUND

    worker.on_new_template(transport.broadcasts[-1].payload)
    assert worker.template.round_id == 2
    share = find_proofs(controller.template, ShareClass.SHARE)[0]
    assert controller.handle_share(worker.make_submission(share)) == ShareOutcome.ACCEPTED


def test_worker_refuses_malformed_template_message(validator):
    worker = PoolWorker("A", validator)

    with pytest.raises(ValidationError):
        worker.on_new_template({"round_id": 1})
    assert worker.template is None
