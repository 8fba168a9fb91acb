#!/usr/bin/env python3
"""
Sponsored call through a deployed EntryPoint.

Reads contract addresses from .env (see ``EnvStore``), builds a user
operation that makes the smart account call ``increment()`` on the mock
target, attaches the sponsor paymaster, signs it and submits it with
handleOps.
"""
import os
import sys
import logging

from web3 import Web3

from userop_sdk import EnvStore, SponsorAuthorization, UserOpClient
from userop_sdk.signer import LocalSigner
from userop_sdk.exceptions import ConfigError, NonceConflictError, UserOpError

PAYMASTER_VERIFICATION_GAS_LIMIT = 100000
PAYMASTER_POST_OP_GAS_LIMIT = 50000


def main():
    logging.basicConfig(level=logging.INFO)

    store = EnvStore()
    rpc_url = os.environ.get("RPC_URL", "http://localhost:8545")

    try:
        owner_key = store.get_required("ACCOUNT_OWNER_PRIVATE_KEY")
        entry_point, paymaster, target, account = store.get_addresses().require(
            "entry_point", "sponsor_paymaster", "mock_target", "smart_account"
        )
    except ConfigError as e:
        print(f"ERROR: {e}")
        return 1

    # Owner signs the user op; the bundler key (if set) pays for handleOps
    client = UserOpClient(
        rpc_url=rpc_url,
        entry_point_address=entry_point,
        priv_key=store.get("BUNDLER_PRIVATE_KEY", owner_key),
        gas_config=store.get_gas_config(),
    )
    owner = LocalSigner(owner_key)

    print("Configuration:")
    print(f"  EntryPoint:        {entry_point}")
    print(f"  Smart account:     {account}")
    print(f"  Sponsor paymaster: {paymaster}")
    print(f"  Mock target:       {target}")
    print(f"  Account owner:     {owner.address}")

    sponsor = SponsorAuthorization(
        paymaster=paymaster,
        verification_gas_limit=PAYMASTER_VERIFICATION_GAS_LIMIT,
        post_op_gas_limit=PAYMASTER_POST_OP_GAS_LIMIT,
    )
    increment = Web3.keccak(text="increment()")[:4]

    try:
        op = client.build_user_op(account, target, increment, sponsor=sponsor, signer=owner)
        print(f"Nonce: {op.nonce}")
        print(f"userOpHash: {Web3.to_hex(client.check_domain(op))}")

        receipt = client.send_ops([op])
    except NonceConflictError as e:
        print(f"Nonce already used, fetch a fresh one and retry: {e.revert_reason}")
        return 1
    except UserOpError as e:
        print(f"Transaction failed: {e}")
        return 1

    print(f"Transaction hash: {receipt.tx_hash}")
    print(f"Gas used: {receipt.gas_used}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
