import logging
from typing import Any, List, Optional, Sequence, Tuple

import aiohttp
from starknet_py.common import create_casm_class, create_sierra_compiled_contract
from starknet_py.contract import Contract
from starknet_py.hash.casm_class_hash import compute_casm_class_hash
from starknet_py.hash.selector import get_selector_from_name
from starknet_py.hash.sierra_class_hash import compute_sierra_class_hash
from starknet_py.net.account.account import Account
from starknet_py.net.client_errors import ClientError
from starknet_py.net.client_models import Call
from starknet_py.net.full_node_client import FullNodeClient
from starknet_py.net.signer.stark_curve_signer import KeyPair
from starknet_py.net.udc_deployer.deployer import Deployer
from starknet_py.transaction_errors import TransactionFailedError

from civbridge.errors import (
    ChainFault,
    ClassAlreadyDeclared,
    InvalidSigner,
    NodeUnreachable,
    SignerResolutionError,
    TransactionRejected,
)
from civbridge.schemas import Signer
from civbridge.services.policy import DEV_NO_FEE_POLICY, TransactionPolicy
from civbridge.services.rpc_shim import open_node_session

logger = logging.getLogger(__name__)

# JSON-RPC error code for CLASS_ALREADY_DECLARED
CLASS_ALREADY_DECLARED = "51"
SIGNER_SLOTS = (0, 1)


def _fault_payload(e: ClientError) -> dict:
    return {"code": e.code, "message": e.message, "data": getattr(e, "data", None)}


class ChainClient:
    """Read/write surface over one Katana node.

    Reads go through a Contract bound to the deployed address, writes through
    one of two V3 accounts. All traffic uses the shimmed aiohttp session.
    """
    def __init__(self,
                 client: FullNodeClient,
                 node_url: str,
                 session: Optional[aiohttp.ClientSession] = None,
                 policy: TransactionPolicy = DEV_NO_FEE_POLICY,
                 poll_interval: float = 1.0,
               ):
        if policy.transaction_version != 3:
            raise ValueError(f"unsupported transaction version {policy.transaction_version}")
        self.client = client
        self.node_url = node_url
        self.policy = policy
        self.poll_interval = poll_interval
        self.chain_id: Optional[int] = None
        self.contract_address: Optional[int] = None
        self._session = session
        self._accounts: List[Account] = []
        self._contract: Optional[Contract] = None

    @classmethod
    def open(cls, node_url: str, policy: TransactionPolicy = DEV_NO_FEE_POLICY, poll_interval: float = 1.0) -> "ChainClient":
        session = open_node_session()
        client = FullNodeClient(node_url=node_url, session=session)
        return cls(client, node_url, session=session, policy=policy, poll_interval=poll_interval)

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()

    # --- node / signers ---

    async def ping(self) -> int:
        try:
            chain_id = await self.client.get_chain_id()
        except (aiohttp.ClientError, ClientError, OSError) as e:
            raise NodeUnreachable(self.node_url, e) from e
        self.chain_id = int(chain_id, 16) if isinstance(chain_id, str) else int(chain_id)
        logger.info("node reachable at %s (chain id %#x)", self.node_url, self.chain_id)
        return self.chain_id

    async def rpc_call(self, method: str, params: Optional[Sequence[Any]] = None) -> Any:
        """Raw JSON-RPC request, for methods starknet-py does not wrap."""
        if self._session is None:
            raise RuntimeError("raw RPC needs an aiohttp session")
        payload = {"jsonrpc": "2.0", "method": method, "params": list(params or []), "id": 1}
        async with self._session.post(self.node_url, json=payload) as resp:
            body = await resp.json(content_type=None)
        if body.get("error"):
            raise ChainFault(body["error"])
        return body.get("result")

    async def use_signers(self, signers: Sequence[Signer]) -> None:
        if self.chain_id is None:
            await self.ping()
        accounts = []
        for signer in signers:
            if signer.tx_version != self.policy.transaction_version:
                raise SignerResolutionError(
                    f"signer {signer.address} declares tx version {signer.tx_version}, "
                    f"node requires {self.policy.transaction_version}"
                )
            accounts.append(Account(
                address=signer.address,
                client=self.client,
                key_pair=KeyPair.from_private_key(signer.private_key),
                chain=self.chain_id,
            ))
        self._accounts = accounts

    @property
    def addresses(self) -> List[str]:
        return [hex(account.address) for account in self._accounts]

    def _account(self, signer_index: int) -> Account:
        if isinstance(signer_index, bool) or signer_index not in SIGNER_SLOTS or signer_index >= len(self._accounts):
            raise InvalidSigner(signer_index)
        return self._accounts[signer_index]

    # --- contract binding ---

    def bind_contract(self, address: int, abi: List[dict]) -> None:
        self.contract_address = int(address)
        self._contract = Contract(address=self.contract_address, abi=abi, provider=self.client, cairo_version=1)

    def _bound(self) -> Contract:
        if self._contract is None:
            raise RuntimeError("no contract bound; run setup first")
        return self._contract

    # --- reads ---

    async def view(self, entrypoint: str, args: Sequence[Any] = ()) -> Any:
        try:
            result = await self._bound().functions[entrypoint].call(*args)
        except ClientError as e:
            raise ChainFault(_fault_payload(e)) from e
        values = result.as_tuple()
        return values[0] if len(values) == 1 else values

    # --- writes ---

    async def _submit(self, account: Account, call: Call) -> int:
        try:
            resp = await account.execute_v3(calls=call, resource_bounds=self.policy.resource_bounds)
        except ClientError as e:
            raise ChainFault(_fault_payload(e)) from e
        return resp.transaction_hash

    async def execute(self, signer_index: int, entrypoint: str, calldata: Sequence[int]) -> int:
        account = self._account(signer_index)
        if self.contract_address is None:
            raise RuntimeError("no contract bound; run setup first")
        call = Call(
            to_addr=self.contract_address,
            selector=get_selector_from_name(entrypoint),
            calldata=[int(v) for v in calldata],
        )
        return await self._submit(account, call)

    async def await_finality(self, tx_hash: int) -> None:
        try:
            await self.client.wait_for_tx(tx_hash, check_interval=self.poll_interval)
        except TransactionFailedError as e:
            # reverted, or never accepted by the node
            raise TransactionRejected(e.message) from e
        except ClientError as e:
            raise ChainFault(_fault_payload(e)) from e

    # --- declare / deploy ---

    @staticmethod
    def compute_class_hash(sierra: str) -> int:
        """Sierra class hash computed locally, same value the node assigns on declare."""
        return compute_sierra_class_hash(create_sierra_compiled_contract(compiled_contract=sierra))

    async def declare(self, signer_index: int, sierra: str, casm: str) -> Tuple[int, int]:
        account = self._account(signer_index)
        compiled_class_hash = compute_casm_class_hash(create_casm_class(casm))
        try:
            tx = await account.sign_declare_v3(
                compiled_contract=sierra,
                compiled_class_hash=compiled_class_hash,
                resource_bounds=self.policy.resource_bounds,
            )
            resp = await self.client.declare(tx)
        except ClientError as e:
            if str(e.code) == CLASS_ALREADY_DECLARED:
                raise ClassAlreadyDeclared(_fault_payload(e)) from e
            raise ChainFault(_fault_payload(e)) from e
        return resp.transaction_hash, resp.class_hash

    async def deploy(self, signer_index: int, class_hash: int, constructor_calldata: Sequence[int] = ()) -> Tuple[int, int]:
        account = self._account(signer_index)
        deployment = Deployer().create_contract_deployment(
            class_hash=class_hash,
            cairo_version=1,
            calldata=[int(v) for v in constructor_calldata],
        )
        tx_hash = await self._submit(account, deployment.udc)
        return tx_hash, deployment.address
