import asyncio
from typing import Any, Dict, List, Sequence, Tuple

import pytest
from fastapi.testclient import TestClient
from starknet_py.cairo.felt import encode_shortstring

from civbridge.config import BridgeSettings
from civbridge.errors import ChainFault, ClassAlreadyDeclared, InvalidSigner, TransactionRejected
from civbridge.main import create_app
from civbridge.schemas import EndTurn, FoundCity
from civbridge.services.bootstrap import ContractArtifacts
from civbridge.services.codec import decode_batch
from civbridge.services.session import SessionStore

ARTIFACTS = ContractArtifacts(sierra='{"abi": []}', casm="{}", abi=[])
CONTRACT_ADDRESS = 0xC0DE
CLASS_HASH = 0xC1A55
LOCAL_CLASS_HASH = 0xBEEF


def _unit(q: int, r: int, unit_type: int = 0) -> Dict[str, Any]:
    return {
        "unit_type": unit_type, "q": q, "r": r, "hp": 100,
        "movement_remaining": 2, "charges": 0, "fortify_turns": 0,
    }


class FakeChain:
    """In-memory stand-in for ChainClient plus a tiny model of the game contract.

    Writes are decoded with the real codec, so a wrong encoding shows up as a
    wrong game state in end-to-end tests.
    """
    def __init__(self, already_declared: bool = False):
        self.calls: List[Tuple] = []
        self.already_declared = already_declared
        self.failing_views: set = set()
        self.failing_tiles: set = set()
        self.rejected_entrypoints: set = set()
        self.in_flight = 0
        self.max_in_flight = 0
        # most reads seen in flight while a given entrypoint was outstanding
        self.overlap: Dict[str, int] = {}
        self.closed = False
        self.contract_address = None
        self._tx = 0x1000
        self._pending: Dict[int, str] = {}
        # game state
        self.status = 0
        self.turn = 0
        self.current_player = 0
        self.tiles: Dict[Tuple[int, int], Dict[str, int]] = {}
        self.units = {0: [_unit(3, 4, unit_type=1)], 1: [_unit(20, 10, unit_type=1)]}
        self.cities: Dict[int, List[Dict[str, Any]]] = {0: [], 1: []}
        self.treasury = {0: 10, 1: 10}
        self.techs = {0: 0, 1: 2**200}

    @property
    def addresses(self) -> List[str]:
        return ["0xa11ce", "0xb0b"]

    def writes(self) -> List[Tuple]:
        return [c for c in self.calls if c[0] == "execute"]

    # --- reads ---

    async def view(self, entrypoint: str, args: Sequence[Any] = ()) -> Any:
        self.calls.append(("view", entrypoint, tuple(args)))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            self.overlap[entrypoint] = max(self.overlap.get(entrypoint, 0), self.in_flight)
            if entrypoint in self.failing_views:
                raise ChainFault({"code": 40, "message": f"{entrypoint} failed"})
            return self._read(entrypoint, list(args))
        finally:
            self.in_flight -= 1

    def _read(self, entrypoint: str, args: List[Any]) -> Any:
        if entrypoint == "get_game_status":
            return self.status
        if entrypoint == "get_current_turn":
            return self.turn
        if entrypoint == "get_current_player":
            return self.current_player
        if entrypoint == "get_tile":
            q, r = args[1], args[2]
            if (q, r) in self.failing_tiles:
                raise ChainFault({"code": 40, "message": "tile read failed"})
            return self.tiles.get((q, r), {"terrain": 0, "feature": 0, "resource": 0, "river_edges": 0})
        player = args[1]
        if entrypoint == "get_unit_count":
            return len(self.units[player])
        if entrypoint == "get_city_count":
            return len(self.cities[player])
        if entrypoint == "get_treasury":
            return self.treasury[player]
        if entrypoint == "get_completed_techs":
            return self.techs[player]
        if entrypoint == "get_current_research":
            return 0
        if entrypoint == "get_diplomacy_status":
            return 0
        if entrypoint == "get_unit":
            return self.units[player][args[2]]
        if entrypoint == "get_city":
            return self.cities[player][args[2]]
        raise ChainFault({"code": 21, "message": f"entrypoint {entrypoint} not found"})

    # --- writes ---

    async def execute(self, signer_index: int, entrypoint: str, calldata: Sequence[int]) -> int:
        if signer_index not in (0, 1):
            raise InvalidSigner(signer_index)
        self.calls.append(("execute", entrypoint, signer_index, list(calldata)))
        self._apply(signer_index, entrypoint, list(calldata))
        return self._next_tx(entrypoint)

    def _next_tx(self, entrypoint: str) -> int:
        self._tx += 1
        self._pending[self._tx] = entrypoint
        return self._tx

    async def await_finality(self, tx_hash: int) -> None:
        self.calls.append(("await", tx_hash))
        if self._pending.get(tx_hash) in self.rejected_entrypoints:
            raise TransactionRejected({"execution_error": "Turn not yours"})

    def _apply(self, player: int, entrypoint: str, calldata: List[int]) -> None:
        if entrypoint in self.rejected_entrypoints:
            return
        if entrypoint == "create_game":
            self.status = 0
        elif entrypoint == "join_game":
            self.status = 1
        elif entrypoint == "forfeit":
            self.status = 2
        elif entrypoint in ("submit_turn", "submit_actions"):
            _, actions = decode_batch(calldata)
            for action in actions:
                if isinstance(action, FoundCity):
                    units = self.units[player]
                    settler = units[action.settler_id] if action.settler_id < len(units) else _unit(0, 0)
                    self.cities[player].append({
                        "name": encode_shortstring(action.name),
                        "q": settler["q"], "r": settler["r"],
                        "population": 1, "hp": 200, "current_production": 0,
                        "buildings": 0, "is_capital": not self.cities[player],
                        "food_stockpile": 0, "production_stockpile": 0,
                        "founded_turn": self.turn,
                    })
                elif isinstance(action, EndTurn):
                    self.current_player = 1 - self.current_player
                    if self.current_player == 0:
                        self.turn += 1

    # --- bootstrap surface ---

    async def declare(self, signer_index: int, sierra: str, casm: str) -> Tuple[int, int]:
        self.calls.append(("declare", signer_index))
        if self.already_declared:
            raise ClassAlreadyDeclared({"code": 51, "message": "Class already declared"})
        return self._next_tx("declare"), CLASS_HASH

    def compute_class_hash(self, sierra: str) -> int:
        self.calls.append(("compute_class_hash",))
        return LOCAL_CLASS_HASH

    async def deploy(self, signer_index: int, class_hash: int) -> Tuple[int, int]:
        self.calls.append(("deploy", signer_index, class_hash))
        return self._next_tx("deploy"), CONTRACT_ADDRESS

    def bind_contract(self, address: int, abi: List[dict]) -> None:
        self.calls.append(("bind", address))
        self.contract_address = address

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def store(chain: FakeChain) -> SessionStore:
    async def connect(_settings):
        return chain
    return SessionStore(BridgeSettings(), connect=connect, artifacts_loader=lambda _s: ARTIFACTS)


@pytest.fixture
def client(store: SessionStore) -> TestClient:
    return TestClient(create_app(settings=store.settings, store=store))
