import asyncio
import json

from civbridge.services.rpc_shim import open_node_session, rewrite_block_tags, shimmed_json_dumps


def test_pending_tag_becomes_latest():
    body = json.dumps({"jsonrpc": "2.0", "method": "starknet_getNonce",
                       "params": {"block_id": "pending", "contract_address": "0x1"}, "id": 1})
    out = json.loads(rewrite_block_tags(body))
    assert out["params"]["block_id"] == "latest"
    assert out["params"]["contract_address"] == "0x1"
    assert out["method"] == "starknet_getNonce"


def test_every_occurrence_is_rewritten():
    body = '["pending", {"a": "pending"}, "pending"]'
    assert rewrite_block_tags(body) == '["latest", {"a": "latest"}, "latest"]'


def test_other_content_untouched():
    body = '{"name": "pending_tx", "note": "is pending", "block_id": "latest"}'
    assert rewrite_block_tags(body) == body


def test_shimmed_json_dumps():
    payload = {"method": "starknet_call", "params": {"request": {}, "block_id": "pending"}}
    assert json.loads(shimmed_json_dumps(payload))["params"]["block_id"] == "latest"


def test_session_uses_shimmed_serializer():
    async def go():
        session = open_node_session()
        try:
            return session.json_serialize
        finally:
            await session.close()

    assert asyncio.run(go()) is shimmed_json_dumps
