"""
Account and call helpers shared by the pallet clients
"""

from typing import Any

from ggx_testkit.chain.types import Call


def account_id(account: Any) -> str:
    """SS58 address of a keypair, or the value itself if it already is one"""
    return getattr(account, "ss58_address", account)


def sudo(call: Call) -> Call:
    """Wrap `call` in Sudo.sudo"""
    return Call("Sudo", "sudo", {"call": call})
