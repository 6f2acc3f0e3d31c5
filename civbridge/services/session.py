import logging
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from civbridge.config import BridgeSettings
from civbridge.errors import BridgeError, EmptyActionBatch, InvalidSigner, NoSession
from civbridge.schemas import GameSnapshot, SetupResponse, TxAck
from civbridge.services.bootstrap import ContractArtifacts, bootstrap, connect_node, load_artifacts
from civbridge.services.chain import SIGNER_SLOTS, ChainClient
from civbridge.services.codec import encode_batch, parse_actions
from civbridge.services.snapshot import SnapshotAggregator
from civbridge.utils.audit import audit_write, session_file_base

logger = logging.getLogger(__name__)


@dataclass
class GameSession:
    session_id: str
    chain: ChainClient
    contract_address: int
    class_hash: int
    game_id: int
    players: List[str]
    audit_base: str


class SessionStore:
    """Owns the active GameSession and implements the UI-facing operations.

    One instance lives on the FastAPI app. `setup()` replaces the session
    (fresh deployment, new game); every other operation reads it.
    """
    def __init__(self,
                 settings: BridgeSettings,
                 connect: Callable[[BridgeSettings], Awaitable[ChainClient]] = connect_node,
                 artifacts_loader: Callable[[BridgeSettings], ContractArtifacts] = load_artifacts,
               ) -> None:
        self.settings = settings
        self._connect = connect
        self._load_artifacts = artifacts_loader
        self._current: Optional[GameSession] = None

    @property
    def current(self) -> GameSession:
        if self._current is None:
            raise NoSession()
        return self._current

    def _audit(self, sess: GameSession, record: Dict[str, Any]) -> None:
        audit_write(self.settings.audit_dir, sess.audit_base, sess.session_id, record)

    async def setup(self) -> SetupResponse:
        chain = await self._connect(self.settings)
        try:
            artifacts = self._load_artifacts(self.settings)
            result = await bootstrap(chain, artifacts)
        except BaseException:
            await chain.close()
            raise

        previous = self._current
        session_id = str(uuid.uuid4())
        sess = GameSession(
            session_id=session_id,
            audit_base=session_file_base(session_id),
            chain=chain,
            contract_address=result.contract_address,
            class_hash=result.class_hash,
            game_id=result.game_id,
            players=chain.addresses,
        )
        self._current = sess
        if previous is not None and previous.chain is not chain:
            await previous.chain.close()

        self._audit(sess, {
            "type": "session_start",
            "node_url": self.settings.node_url,
            "contract_address": hex(sess.contract_address),
            "class_hash": hex(sess.class_hash),
            "game_id": sess.game_id,
            "players": sess.players,
        })
        return SetupResponse(
            contract_address=hex(sess.contract_address),
            game_id=sess.game_id,
            players=sess.players,
        )

    async def state(self) -> GameSnapshot:
        sess = self.current
        aggregator = SnapshotAggregator(
            sess.chain,
            width=self.settings.map_width,
            height=self.settings.map_height,
            batch_size=self.settings.tile_batch_size,
        )
        return await aggregator.assemble(sess.game_id)

    async def submit_turn(self, player: int, actions: Sequence[Dict[str, Any]]) -> TxAck:
        return await self._submit_batch(player, actions, "submit_turn")

    async def submit_actions(self, player: int, actions: Sequence[Dict[str, Any]]) -> TxAck:
        """Like submit_turn, without ending the turn."""
        return await self._submit_batch(player, actions, "submit_actions")

    async def forfeit(self, player: int) -> TxAck:
        sess = self.current
        _check_player(player)
        await self._write(sess, player, "forfeit", [sess.game_id])
        return TxAck(ok=True)

    async def close(self) -> None:
        if self._current is not None:
            await self._current.chain.close()

    async def _submit_batch(self, player: int, raws: Sequence[Dict[str, Any]], entrypoint: str) -> TxAck:
        sess = self.current
        _check_player(player)
        if not raws:
            raise EmptyActionBatch()
        calldata = encode_batch(sess.game_id, parse_actions(raws))
        tx_hash = await self._write(sess, player, entrypoint, calldata)
        return TxAck(ok=True, tx_hash=hex(tx_hash))

    async def _write(self, sess: GameSession, player: int, entrypoint: str, calldata: List[int]) -> int:
        record = {"type": "tx", "entrypoint": entrypoint, "player": player, "calldata": calldata}
        try:
            tx_hash = await sess.chain.execute(player, entrypoint, calldata)
            await sess.chain.await_finality(tx_hash)
        except BridgeError as e:
            self._audit(sess, {**record, "type": "tx_failed", "error": str(e)})
            raise
        self._audit(sess, {**record, "tx_hash": hex(tx_hash)})
        return tx_hash


def _check_player(player: Any) -> None:
    if isinstance(player, bool) or player not in SIGNER_SLOTS:
        raise InvalidSigner(player)
