"""Action <-> calldata codec for the submit_turn / submit_actions entrypoints.

The contract takes `(game_id, Array<Action>)`. Serialized, that is the game
id, the array length, then every action as its enum index followed by the
variant fields in declaration order. Nothing here touches the chain.
"""
from typing import Any, Dict, List, Mapping, Sequence, Tuple, Type

from pydantic import BaseModel
from starknet_py.cairo.felt import decode_shortstring, encode_shortstring

from civbridge.errors import EmptyActionBatch, UnknownActionKind
from civbridge.schemas import (
    Action,
    AttackUnit,
    BuildImprovement,
    DeclareWar,
    EndTurn,
    FortifyUnit,
    FoundCity,
    MoveUnit,
    PurchaseWithGold,
    RangedAttack,
    RemoveImprovement,
    SetProduction,
    SetResearch,
    SkipUnit,
    UpgradeUnit,
)

# Must match the Cairo `Action` enum order. Reordering breaks the wire format.
ACTION_MODELS: Tuple[Type[BaseModel], ...] = (
    MoveUnit,           # 0
    AttackUnit,         # 1
    RangedAttack,       # 2
    FoundCity,          # 3
    SetProduction,      # 4
    SetResearch,        # 5
    BuildImprovement,   # 6
    RemoveImprovement,  # 7
    FortifyUnit,        # 8
    SkipUnit,           # 9
    PurchaseWithGold,   # 10
    UpgradeUnit,        # 11
    DeclareWar,         # 12
    EndTurn,            # 13
)

ACTION_KINDS: Dict[str, int] = {
    model.model_fields["type"].default: index for index, model in enumerate(ACTION_MODELS)
}

# fields carried as a packed short string instead of a plain integer
_SHORT_STRING_FIELDS = frozenset({"name"})


def payload_fields(model: Type[BaseModel]) -> List[str]:
    return [name for name in model.model_fields if name != "type"]


def parse_action(raw: Mapping[str, Any]) -> Action:
    """Validate one UI action object into its model."""
    kind = raw.get("type") if isinstance(raw, Mapping) else None
    if kind not in ACTION_KINDS:
        raise UnknownActionKind(kind)
    return ACTION_MODELS[ACTION_KINDS[kind]].model_validate(raw)


def parse_actions(raws: Sequence[Mapping[str, Any]]) -> List[Action]:
    return [parse_action(raw) for raw in raws]


def encode_action(action: Action) -> List[int]:
    kind = getattr(action, "type", None)
    if kind not in ACTION_KINDS:
        raise UnknownActionKind(kind)
    felts = [ACTION_KINDS[kind]]
    for name in payload_fields(type(action)):
        value = getattr(action, name)
        if name in _SHORT_STRING_FIELDS:
            felts.append(encode_shortstring(value))
        else:
            felts.append(int(value))
    return felts


def encode_batch(game_id: int, actions: Sequence[Action]) -> List[int]:
    if not actions:
        raise EmptyActionBatch()
    calldata = [int(game_id), len(actions)]
    for action in actions:
        calldata.extend(encode_action(action))
    return calldata


def decode_batch(calldata: Sequence[int]) -> Tuple[int, List[Action]]:
    """Inverse of encode_batch. Raises ValueError on truncated input."""
    felts = [int(v) for v in calldata]
    if len(felts) < 2:
        raise ValueError("calldata too short for (game_id, len)")
    game_id, count = felts[0], felts[1]
    pos = 2
    actions: List[Action] = []
    for _ in range(count):
        if pos >= len(felts):
            raise ValueError(f"calldata truncated after {len(actions)} actions")
        index = felts[pos]
        pos += 1
        if not 0 <= index < len(ACTION_MODELS):
            raise UnknownActionKind(index)
        model = ACTION_MODELS[index]
        names = payload_fields(model)
        values = felts[pos:pos + len(names)]
        if len(values) != len(names):
            raise ValueError(f"calldata truncated inside {model.__name__}")
        pos += len(names)
        data: Dict[str, Any] = {}
        for name, value in zip(names, values):
            data[name] = decode_shortstring(value) if name in _SHORT_STRING_FIELDS else value
        actions.append(model(**data))
    if pos != len(felts):
        raise ValueError(f"{len(felts) - pos} trailing felts after {count} actions")
    return game_id, actions
