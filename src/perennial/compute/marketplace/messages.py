"""Marketplace transaction message builders.

Messages are plain ``{"type_url", "value"}`` dictionaries. Encoding and
signing them is the job of the injected TransactionSigner.
"""

from __future__ import annotations

from typing import Any

CREATE_DEPLOYMENT = "/akash.deployment.v1beta3.MsgCreateDeployment"
CLOSE_DEPLOYMENT = "/akash.deployment.v1beta3.MsgCloseDeployment"
CREATE_LEASE = "/akash.market.v1beta4.MsgCreateLease"
CLOSE_LEASE = "/akash.market.v1beta4.MsgCloseLease"

DEFAULT_FEE_AMOUNT = "5000"
DEFAULT_GAS = "300000"

Message = dict[str, Any]


def create_deployment_msg(
    owner: str, dseq: str, version: str, deposit: int, denom: str
) -> Message:
    """Build the deployment-creation message.

    Args:
        owner: Owner address
        dseq: Unique deployment sequence number
        version: Manifest content hash (hex)
        deposit: Escrow deposit in smallest units
        denom: Deposit denomination
    """
    return {
        "type_url": CREATE_DEPLOYMENT,
        "value": {
            "id": {"owner": owner, "dseq": dseq},
            "groups": [],
            "version": version,
            "depositor": owner,
            "deposit": {"denom": denom, "amount": str(deposit)},
        },
    }


def _order_id(owner: str, dseq: str, gseq: str, oseq: str, provider: str) -> dict:
    return {
        "owner": owner,
        "dseq": dseq,
        "gseq": gseq,
        "oseq": oseq,
        "provider": provider,
    }


def create_lease_msg(
    owner: str, dseq: str, provider: str, gseq: str, oseq: str
) -> Message:
    """Build the lease-creation message accepting a bid."""
    return {
        "type_url": CREATE_LEASE,
        "value": {"bid_id": _order_id(owner, dseq, gseq, oseq, provider)},
    }


def close_lease_msg(
    owner: str, dseq: str, provider: str, gseq: str, oseq: str
) -> Message:
    """Build the lease-close message."""
    return {
        "type_url": CLOSE_LEASE,
        "value": {"lease_id": _order_id(owner, dseq, gseq, oseq, provider)},
    }


def close_deployment_msg(owner: str, dseq: str) -> Message:
    """Build the deployment-close message."""
    return {"type_url": CLOSE_DEPLOYMENT, "value": {"id": {"owner": owner, "dseq": dseq}}}


def default_fee(denom: str = "uakt") -> dict[str, Any]:
    """Return the flat fee attached to every transaction."""
    return {"amount": [{"denom": denom, "amount": DEFAULT_FEE_AMOUNT}], "gas": DEFAULT_GAS}
