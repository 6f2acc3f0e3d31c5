from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, StrictInt, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake-case fields in Python, camelCase on the wire (what the browser UI speaks)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# === Actions ===
# One model per variant of the contract's Action enum. Field declaration order
# is the calldata order.

class MoveUnit(CamelModel):
    type: Literal["MoveUnit"] = "MoveUnit"
    unit_id: NonNegativeInt
    dest_q: NonNegativeInt
    dest_r: NonNegativeInt


class AttackUnit(CamelModel):
    type: Literal["AttackUnit"] = "AttackUnit"
    unit_id: NonNegativeInt
    target_q: NonNegativeInt
    target_r: NonNegativeInt


class RangedAttack(CamelModel):
    type: Literal["RangedAttack"] = "RangedAttack"
    unit_id: NonNegativeInt
    target_q: NonNegativeInt
    target_r: NonNegativeInt


class FoundCity(CamelModel):
    type: Literal["FoundCity"] = "FoundCity"
    settler_id: NonNegativeInt
    name: str = Field(default="City", max_length=31)

    @field_validator("name")
    @classmethod
    def _short_ascii(cls, v: str) -> str:
        if not v:
            return "City"
        if not v.isascii():
            raise ValueError("city name must be ASCII")
        return v


class SetProduction(CamelModel):
    type: Literal["SetProduction"] = "SetProduction"
    city_id: NonNegativeInt
    item_id: NonNegativeInt


class SetResearch(CamelModel):
    type: Literal["SetResearch"] = "SetResearch"
    tech_id: NonNegativeInt


class BuildImprovement(CamelModel):
    type: Literal["BuildImprovement"] = "BuildImprovement"
    builder_id: NonNegativeInt
    q: NonNegativeInt
    r: NonNegativeInt
    improvement: NonNegativeInt


class RemoveImprovement(CamelModel):
    type: Literal["RemoveImprovement"] = "RemoveImprovement"
    builder_id: NonNegativeInt
    q: NonNegativeInt
    r: NonNegativeInt


class FortifyUnit(CamelModel):
    type: Literal["FortifyUnit"] = "FortifyUnit"
    unit_id: NonNegativeInt


class SkipUnit(CamelModel):
    type: Literal["SkipUnit"] = "SkipUnit"
    unit_id: NonNegativeInt


class PurchaseWithGold(CamelModel):
    # reserved by the contract, carries no payload yet
    type: Literal["PurchaseWithGold"] = "PurchaseWithGold"


class UpgradeUnit(CamelModel):
    type: Literal["UpgradeUnit"] = "UpgradeUnit"
    unit_id: NonNegativeInt


class DeclareWar(CamelModel):
    type: Literal["DeclareWar"] = "DeclareWar"
    target: NonNegativeInt


class EndTurn(CamelModel):
    type: Literal["EndTurn"] = "EndTurn"


Action = Annotated[
    Union[
        MoveUnit, AttackUnit, RangedAttack, FoundCity, SetProduction, SetResearch,
        BuildImprovement, RemoveImprovement, FortifyUnit, SkipUnit, PurchaseWithGold,
        UpgradeUnit, DeclareWar, EndTurn,
    ],
    Field(discriminator="type"),
]


# === Signers ===

class Signer(BaseModel, frozen=True):
    address: str
    private_key: int
    tx_version: int = 3


# === Snapshot ===

class TileView(CamelModel):
    q: int
    r: int
    terrain: int = 0
    feature: int = 0
    resource: int = 0
    river_edges: int = 0


class UnitView(CamelModel):
    id: int
    unit_type: int
    q: int
    r: int
    hp: int
    mp: int
    charges: int
    fortify: int


class CityView(CamelModel):
    id: int
    name: str
    q: int
    r: int
    population: int
    hp: int
    production: int
    buildings: int
    is_capital: bool
    food_stockpile: int
    prod_stockpile: int
    founded_turn: int


class PlayerView(CamelModel):
    units: List[UnitView] = []
    cities: List[CityView] = []
    treasury: int = 0
    # bitset, kept as decimal text so it survives JSON number precision
    completed_techs: str = "0"
    current_research: int = 0
    diplomacy: int = 0


class GameSnapshot(CamelModel):
    status: int
    turn: int
    current_player: int
    game_id: int
    tiles: List[TileView]
    players: List[PlayerView]


# === Boundary requests / responses ===

class SetupResponse(CamelModel):
    contract_address: str
    game_id: int
    players: List[str]


class TurnRequest(BaseModel):
    player: StrictInt
    # validated per item by the codec so unknown kinds surface as UnknownActionKind
    actions: List[Dict[str, Any]] = []


class ForfeitRequest(BaseModel):
    player: StrictInt


class TxAck(CamelModel):
    ok: bool = True
    tx_hash: Optional[str] = None


class ErrorResponse(BaseModel):
    error: str
