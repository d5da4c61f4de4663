#!/usr/bin/env python3
"""
Simple example of driving autostake from Python instead of the CLI.
"""
import logging
import os
import signal

from autostake import (
    CancellationToken, ChainGateway, LifecycleSettings, Range, RunParameters, StakeOrchestrator,
    load_accounts
)


def main():
    """
    Stake a small random amount from every key in KEYS_FILE.

    This example shows how to:
    1. Connect a gateway
    2. Build the orchestrator with custom lifecycle settings
    3. Cancel cleanly on Ctrl-C
    """
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    rpc_url = os.environ.get("RPC_URL", "https://testnet-rpc.monad.xyz")
    keys_file = os.environ.get("KEYS_FILE")
    if not keys_file:
        print("ERROR: KEYS_FILE environment variable is required")
        return

    accounts = load_accounts(keys_file)
    params = RunParameters(
        stake=Range(min=0.01, max=0.02),
        delay=Range(min=5, max=15),
        validators=(1,),
        contract_address="0x0000000000000000000000000000000000001000",
        rpc_url=rpc_url,
        explorer_tx_url="https://testnet.monadexplorer.com/tx",
    )
    settings = LifecycleSettings(receipt_timeout=120)

    token = CancellationToken()
    signal.signal(signal.SIGINT, lambda *_: token.cancel("interrupted"))

    with ChainGateway(rpc_url) as gateway:
        orchestrator = StakeOrchestrator.create(gateway, params, settings)
        orchestrator.start(accounts, token)
        orchestrator.wait()
        print(orchestrator.summary().describe())


if __name__ == "__main__":
    main()
