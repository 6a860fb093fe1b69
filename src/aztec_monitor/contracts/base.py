import logging

from web3 import Web3

from ..utils.abi_codec import encode_call
from ..utils.rpc_client import EthRpcClient

logger = logging.getLogger(__name__)


class ContractAccessor:
    """
    Base for the per-contract accessors.

    Holds the shared RPC client and a fixed contract address; subclasses add
    one read method per selector together with its decode offsets.
    """

    def __init__(self, client: EthRpcClient, address: str) -> None:
        if not Web3.is_address(address.lower()):
            raise ValueError(f"Invalid contract address: {address}")
        self.client = client
        self.address = Web3.to_checksum_address(address.lower())

    async def _call(self, selector: str, *arg_slots: str) -> str:
        data = encode_call(selector, *arg_slots)
        logger.debug(f"{self.__class__.__name__}.{selector} -> {self.address}")
        return await self.client.call(self.address, data)
