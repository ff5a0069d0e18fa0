import argparse
import asyncio
import copy
import logging
from uvicorn import Config, Server
from protocol.config.params import POOL_PROFILES, CURRENT_POOL, get_pool_config
from protocol.config.economic_model import RewardConfig, DustPolicy, DECIMALS
from ..core.chain import InMemoryChain
from ..core.round_controller import RoundController
from ..p2p.node import PoolNode
from ..rpc import api  # import module to set globals

logger = logging.getLogger(__name__)

async def run_pool_async(args):
    pool_config = copy.copy(get_pool_config(args.profile))
    if args.operator:
        pool_config.operator_address = args.operator
    pool_config.validate()

    reward_config = RewardConfig(
        total_reward=args.total_reward,
        operator_cut=args.operator_cut,
        dust_policy=DustPolicy(args.dust_policy),
    )
    reward_config.validate()

    logger.info(f"Starting PropPool operator ({pool_config.profile_id})")
    logger.info(f"Operator: {pool_config.operator_address}")
    logger.info(f"Workers: {args.pool_host}:{args.pool_port}  RPC: {args.host}:{args.port}")
    logger.info(
        f"Difficulty: share {pool_config.share_leading_zero_bits} bits, "
        f"block {pool_config.pow_leading_zero_bits} bits"
    )

    # 1. Collaborators
    chain = InMemoryChain(
        pool_config.pow_leading_zero_bits,
        coinbase_reward=reward_config.total_reward * DECIMALS,
    )
    node = PoolNode(host=args.pool_host, port=args.pool_port)

    # 2. Operator
    controller = RoundController(
        chain=chain,
        transport=node,
        operator_address=pool_config.operator_address,
        share_leading_zero_bits=pool_config.share_leading_zero_bits,
        reward_config=reward_config,
        max_pending_tx=pool_config.max_pending_tx,
        inbox_max_size=pool_config.inbox_max_size,
    )

    # Inject into RPC module (global var)
    api.controller = controller

    # 3. Start Services
    controller_task = asyncio.create_task(controller.run())

    config = Config(app=api.app, host=args.host, port=args.port, log_level=args.log_level.lower())
    server = Server(config)
    rpc_task = asyncio.create_task(server.serve())

    try:
        await node.start()
    except asyncio.CancelledError:
        pass
    finally:
        controller.stop()
        await node.stop()
        rpc_task.cancel()
        controller_task.cancel()
        logger.info(f"Pool stopped after {len(controller.history)} round(s)")

def cmd_run(args):
    """Wrapper to run async main."""
    try:
        asyncio.run(run_pool_async(args))
    except KeyboardInterrupt:
        pass

def main():
    parser = argparse.ArgumentParser(description="PropPool Operator CLI")
    parser.add_argument("--log-level", default="INFO", help="Logging level")

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run the pool operator")
    run_parser.add_argument("--profile", default=CURRENT_POOL.profile_id, choices=sorted(POOL_PROFILES),
                            help="Pool profile (difficulty, limits)")
    run_parser.add_argument("--operator", default="", help="Operator address (overrides profile)")
    run_parser.add_argument("--host", default=CURRENT_POOL.rpc_host, help="RPC Host")
    run_parser.add_argument("--port", type=int, default=CURRENT_POOL.rpc_port, help="RPC Port")

    # Worker-facing args
    run_parser.add_argument("--pool-host", default=CURRENT_POOL.pool_host, help="Worker listen host")
    run_parser.add_argument("--pool-port", type=int, default=CURRENT_POOL.pool_port, help="Worker listen port")

    # Reward args
    run_parser.add_argument("--total-reward", type=int, default=25, help="Block reward (gold)")
    run_parser.add_argument("--operator-cut", type=int, default=5, help="Operator cut (gold)")
    run_parser.add_argument("--dust-policy", default=DustPolicy.LAST_PAYEE.value,
                            choices=[p.value for p in DustPolicy], help="Who receives rounding dust")

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format='%(asctime)s %(levelname)s: %(message)s',
        datefmt='%H:%M:%S'
    )

    if args.command == "run":
        cmd_run(args)

if __name__ == "__main__":
    main()
