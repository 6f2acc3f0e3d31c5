import asyncio
import logging
from typing import Any, List, Mapping, Protocol, Sequence

from starknet_py.cairo.felt import decode_shortstring

from civbridge.config import MAP_HEIGHT, MAP_WIDTH, PLAYER_COUNT, TILE_BATCH_SIZE
from civbridge.schemas import CityView, GameSnapshot, PlayerView, TileView, UnitView
from civbridge.utils.numeric import to_bitset_text, to_int

logger = logging.getLogger(__name__)


class ViewClient(Protocol):
    async def view(self, entrypoint: str, args: Sequence[Any] = ()) -> Any: ...


class SnapshotAggregator:
    """Builds one GameSnapshot out of several hundred independent view calls.

    Metadata and per-player reads are all-or-nothing. Tile reads are
    best-effort: a failed tile becomes the zero TileView so the grid always
    has width*height entries.
    """
    def __init__(self, chain: ViewClient, width: int = MAP_WIDTH, height: int = MAP_HEIGHT, batch_size: int = TILE_BATCH_SIZE):
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.chain = chain
        self.width = width
        self.height = height
        self.batch_size = batch_size

    async def assemble(self, game_id: int) -> GameSnapshot:
        status, turn, current_player = await asyncio.gather(
            self.chain.view("get_game_status", [game_id]),
            self.chain.view("get_current_turn", [game_id]),
            self.chain.view("get_current_player", [game_id]),
        )
        tiles = await self.fetch_tiles(game_id)
        players = []
        for player in range(PLAYER_COUNT):
            players.append(await self.fetch_player(game_id, player))
        return GameSnapshot(
            status=to_int(status),
            turn=to_int(turn),
            current_player=to_int(current_player),
            game_id=game_id,
            tiles=tiles,
            players=players,
        )

    # --- tiles ---

    async def fetch_tiles(self, game_id: int) -> List[TileView]:
        total = self.width * self.height
        tiles: List[TileView] = []
        # one batch in flight at a time to cap outstanding requests on the node
        for start in range(0, total, self.batch_size):
            stop = min(start + self.batch_size, total)
            batch = await asyncio.gather(*(self._tile(game_id, idx) for idx in range(start, stop)))
            tiles.extend(batch)
        return tiles

    async def _tile(self, game_id: int, idx: int) -> TileView:
        q, r = idx % self.width, idx // self.width
        try:
            t = await self.chain.view("get_tile", [game_id, q, r])
            return TileView(
                q=q, r=r,
                terrain=to_int(t["terrain"]),
                feature=to_int(t["feature"]),
                resource=to_int(t["resource"]),
                river_edges=to_int(t["river_edges"]),
            )
        except Exception as e:
            logger.debug("tile (%d,%d) unreadable, using default: %r", q, r, e)
            return TileView(q=q, r=r)

    # --- players ---

    async def fetch_player(self, game_id: int, player: int) -> PlayerView:
        unit_count, city_count, treasury, techs, research, diplomacy = await asyncio.gather(
            self.chain.view("get_unit_count", [game_id, player]),
            self.chain.view("get_city_count", [game_id, player]),
            self.chain.view("get_treasury", [game_id, player]),
            self.chain.view("get_completed_techs", [game_id, player]),
            self.chain.view("get_current_research", [game_id, player]),
            # two-player game: a single diplomacy relation
            self.chain.view("get_diplomacy_status", [game_id, 0, 1]),
        )
        # sequential, index order == on-chain id
        units = []
        for idx in range(to_int(unit_count)):
            units.append(_unit_view(idx, await self.chain.view("get_unit", [game_id, player, idx])))
        cities = []
        for idx in range(to_int(city_count)):
            cities.append(_city_view(idx, await self.chain.view("get_city", [game_id, player, idx])))
        return PlayerView(
            units=units,
            cities=cities,
            treasury=to_int(treasury),
            completed_techs=to_bitset_text(techs),
            current_research=to_int(research),
            diplomacy=to_int(diplomacy),
        )


def _unit_view(idx: int, u: Mapping[str, Any]) -> UnitView:
    return UnitView(
        id=idx,
        unit_type=to_int(u["unit_type"]),
        q=to_int(u["q"]),
        r=to_int(u["r"]),
        hp=to_int(u["hp"]),
        mp=to_int(u["movement_remaining"]),
        charges=to_int(u["charges"]),
        fortify=to_int(u["fortify_turns"]),
    )


def _city_view(idx: int, c: Mapping[str, Any]) -> CityView:
    return CityView(
        id=idx,
        name=decode_shortstring(to_int(c["name"], limit=None)),
        q=to_int(c["q"]),
        r=to_int(c["r"]),
        population=to_int(c["population"]),
        hp=to_int(c["hp"]),
        production=to_int(c["current_production"]),
        buildings=to_int(c["buildings"]),
        is_capital=bool(c["is_capital"]),
        food_stockpile=to_int(c["food_stockpile"]),
        prod_stockpile=to_int(c["production_stockpile"]),
        founded_turn=to_int(c["founded_turn"]),
    )
