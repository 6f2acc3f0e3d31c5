"""Outbound request rewriting for nodes that only resolve the "latest" block tag.

Katana 1.7.x implements RPC spec 0.9, which dropped the "pending" block.
starknet-py still defaults to "pending" in several calls (nonce lookup,
contract calls, receipt polling), so every request body goes through
`shimmed_json_dumps` before it leaves the process. Responses are untouched.
"""
import json
from typing import Any

import aiohttp

PENDING_TAG = '"pending"'
LATEST_TAG = '"latest"'


def rewrite_block_tags(body: str) -> str:
    return body.replace(PENDING_TAG, LATEST_TAG)


def shimmed_json_dumps(obj: Any) -> str:
    return rewrite_block_tags(json.dumps(obj))


def open_node_session() -> aiohttp.ClientSession:
    """aiohttp session whose JSON request bodies are shimmed.

    Must be created inside a running event loop. Both FullNodeClient and the
    raw introspection calls post with `json=`, which goes through
    `json_serialize`.
    """
    return aiohttp.ClientSession(json_serialize=shimmed_json_dumps)
