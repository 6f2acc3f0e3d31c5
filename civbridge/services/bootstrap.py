"""Signer discovery and contract deployment for a fresh game session."""
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Mapping, Optional, Protocol, Sequence

import aiohttp

from civbridge.config import BridgeSettings
from civbridge.errors import (
    ArtifactsMissing,
    ChainFault,
    ClassAlreadyDeclared,
    SignerResolutionError,
)
from civbridge.schemas import Signer
from civbridge.services.chain import ChainClient

logger = logging.getLogger(__name__)

INTROSPECTION_METHODS = ("dev_predeployedAccounts", "katana_predeployedAccounts")
ENV_ACCOUNT_KEYS = (
    ("ACCOUNT0_ADDRESS", "ACCOUNT0_PRIVKEY"),
    ("ACCOUNT1_ADDRESS", "ACCOUNT1_PRIVKEY"),
)
# Katana 1.7.x default predeployed accounts (seed 0). Publicly known keys.
KATANA_DEV_ACCOUNTS = (
    {
        "address": "0x127fd5f1fe78a71f8bcd1fec63e3fe2f0486b6ecd5c86a0466c3a21fa5cfcec",
        "private_key": "0xc5b2fcab997346f3ea1c00b002ecf6f382c5f9c9659a3894eb783c5320f912",
    },
    {
        "address": "0x13d9ee239f33fea4f8785b9e3870ade909e20a9599ae7cd62c1c292b73af1b7",
        "private_key": "0x1c9053c053edf324aec366a34c6901b1095b07af69495bffec7d7fe21effb1b",
    },
)
KATANA_HINT = "katana --dev --dev.no-fee --dev.no-account-validation"

PLAYER_CAPACITY = 2
# fresh deployment, so the first created game gets id 1
FIRST_GAME_ID = 1


class RpcIntrospection(Protocol):
    async def rpc_call(self, method: str, params: Optional[Sequence[Any]] = None) -> Any: ...


# === Signers ===

def normalize_signer(raw: Mapping[str, Any]) -> Signer:
    """Map any known account shape onto the canonical Signer.

    Katana versions disagree on `private_key` vs `privateKey`; a missing
    address or key is a resolution failure.
    """
    address = raw.get("address")
    key = raw.get("private_key", raw.get("privateKey"))
    if not address or key in (None, ""):
        raise SignerResolutionError(f"account entry lacks address or private key: {sorted(raw)}")
    try:
        private_key = int(key, 16) if isinstance(key, str) else int(key)
        address_text = hex(int(address, 16)) if isinstance(address, str) else hex(int(address))
    except ValueError as e:
        raise SignerResolutionError(f"malformed account entry for {address}") from e
    return Signer(address=address_text, private_key=private_key)


async def _from_introspection(rpc: RpcIntrospection) -> Optional[List[Signer]]:
    for method in INTROSPECTION_METHODS:
        logger.info("trying RPC method %s", method)
        try:
            result = await rpc.rpc_call(method)
        except ChainFault as e:
            logger.info("  %s -> error: %s", method, e)
            continue
        except (aiohttp.ClientError, OSError, ValueError) as e:
            logger.info("  %s -> exception: %r", method, e)
            continue
        if isinstance(result, list) and len(result) >= 2:
            logger.info("  %s -> found %d accounts", method, len(result))
            return [normalize_signer(entry) for entry in result[:2]]
    return None


def _from_environment(environ: Mapping[str, str]) -> Optional[List[Signer]]:
    if not all(environ.get(a) and environ.get(k) for a, k in ENV_ACCOUNT_KEYS):
        return None
    logger.info("using accounts from environment variables")
    return [normalize_signer({"address": environ[a], "private_key": environ[k]}) for a, k in ENV_ACCOUNT_KEYS]


def _dev_fallback() -> List[Signer]:
    logger.warning("*" * 72)
    logger.warning("Could not detect accounts via RPC or environment.")
    logger.warning("Falling back to the PUBLIC Katana seed-0 dev accounts.")
    logger.warning("Never use this against a shared or real network.")
    logger.warning("Restart Katana with: %s", KATANA_HINT)
    logger.warning("*" * 72)
    return [normalize_signer(entry) for entry in KATANA_DEV_ACCOUNTS]


async def resolve_signers(
    rpc: RpcIntrospection,
    allow_dev_accounts: bool = False,
    environ: Optional[Mapping[str, str]] = None,
) -> List[Signer]:
    """Two player signers: node introspection, then environment, then dev fallback."""
    signers = await _from_introspection(rpc)
    if signers:
        return signers
    signers = _from_environment(os.environ if environ is None else environ)
    if signers:
        return signers
    if allow_dev_accounts:
        return _dev_fallback()
    raise SignerResolutionError(
        "Cannot detect Katana predeployed accounts. "
        f"Start Katana with: {KATANA_HINT}, set ACCOUNT0_/ACCOUNT1_ADDRESS and _PRIVKEY, "
        "or set CIVBRIDGE_ALLOW_DEV_ACCOUNTS=1 for a local dev node"
    )


async def connect_node(settings: BridgeSettings) -> ChainClient:
    """Open a shimmed client, check the node and attach two signers."""
    chain = ChainClient.open(settings.node_url, poll_interval=settings.tx_poll_interval)
    try:
        await chain.ping()
        signers = await resolve_signers(chain, allow_dev_accounts=settings.allow_dev_accounts)
        await chain.use_signers(signers)
    except BaseException:
        await chain.close()
        raise
    return chain


# === Artifacts ===

@dataclass(frozen=True)
class ContractArtifacts:
    sierra: str
    casm: str
    abi: List[dict]


def load_artifacts(settings: BridgeSettings) -> ContractArtifacts:
    texts = []
    for path in (settings.sierra_path, settings.casm_path):
        try:
            texts.append(Path(path).read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise ArtifactsMissing(str(path)) from e
    sierra, casm = texts
    abi = json.loads(sierra)["abi"]
    # some scarb versions emit the ABI as an embedded JSON string
    if isinstance(abi, str):
        abi = json.loads(abi)
    return ContractArtifacts(sierra=sierra, casm=casm, abi=abi)


# === Deployment ===

@dataclass(frozen=True)
class BootstrapResult:
    contract_address: int
    class_hash: int
    game_id: int


async def bootstrap(chain: ChainClient, artifacts: ContractArtifacts) -> BootstrapResult:
    """Declare, deploy, create and join. Each step waits for its transaction."""
    logger.info("declaring contract...")
    try:
        tx_hash, class_hash = await chain.declare(0, artifacts.sierra, artifacts.casm)
        await chain.await_finality(tx_hash)
    except ClassAlreadyDeclared:
        logger.info("  class already declared, reusing")
        class_hash = chain.compute_class_hash(artifacts.sierra)
    logger.info("class hash: %#x", class_hash)

    logger.info("deploying contract...")
    tx_hash, address = await chain.deploy(0, class_hash)
    await chain.await_finality(tx_hash)
    chain.bind_contract(address, artifacts.abi)
    logger.info("contract deployed at %#x", address)

    logger.info("creating game...")
    tx_hash = await chain.execute(0, "create_game", [PLAYER_CAPACITY])
    await chain.await_finality(tx_hash)
    game_id = FIRST_GAME_ID

    logger.info("joining game...")
    tx_hash = await chain.execute(1, "join_game", [game_id])
    await chain.await_finality(tx_hash)
    logger.info("game started, id %d", game_id)

    return BootstrapResult(contract_address=address, class_hash=class_hash, game_id=game_id)
