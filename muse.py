# ============================================================
# muse.py — The Artifact Muse
# ============================================================
# Turns a visitor's story into three 3D-printable gift ideas.
#
# Flow:
# 1. Build the muse prompt around the story
# 2. Call the chat completions API asking for a JSON schema'd reply
# 3. Parse and validate [{title, description, sentiment}, ...]
#
# Missing key, network trouble, bad JSON: the answer is [].
# Nothing here raises to the caller.
# ============================================================

import json
import logging
from typing import Any, Dict, List

import requests

import config

logger = logging.getLogger(__name__)

SUGGESTION_FIELDS = ("title", "description", "sentiment")

SUGGESTION_SCHEMA = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {name: {"type": "string"} for name in SUGGESTION_FIELDS},
        "required": list(SUGGESTION_FIELDS),
    },
}


class MuseError(Exception):
    pass


def call_muse_api(prompt: str) -> Dict[str, Any]:
    """
    Call the chat completions endpoint with structured output.
    Returns the full response JSON.
    """
    model = config.get_muse_config()
    headers = {
        "Authorization": f"Bearer {model['api_key']}",
        "Accept": "application/json"
    }

    payload = {
        "model": model["model_id"],
        "messages": [{"role": "user", "content": prompt}],
        "temperature": model["temperature"],
        "max_tokens": model["max_tokens"],
        "top_p": model["top_p"],
        "stream": False,
        "response_format": {
            "type": "json_schema",
            "json_schema": {
                "name": "gift_suggestions",
                # Top-level object: most providers reject a bare array schema
                "schema": {
                    "type": "object",
                    "properties": {"suggestions": SUGGESTION_SCHEMA},
                    "required": ["suggestions"],
                },
            },
        },
    }
    if model["extra_body"]:
        payload.update(model["extra_body"])

    response = requests.post(model["invoke_url"], headers=headers, json=payload, timeout=model["timeout"])

    if response.status_code != 200:
        raise MuseError(f"Muse API error: {response.status_code} - {response.text}")

    return response.json()


def parse_suggestions(content: str) -> List[Dict[str, str]]:
    """Accept either a bare JSON array or {"suggestions": [...]}."""
    data = json.loads(content or "[]")
    if isinstance(data, dict):
        data = data.get("suggestions", [])
    if not isinstance(data, list):
        raise MuseError("Muse reply is not a list")

    suggestions = []
    for entry in data:
        if not isinstance(entry, dict) or not all(isinstance(entry.get(k), str) for k in SUGGESTION_FIELDS):
            raise MuseError(f"Malformed suggestion: {entry!r}")
        suggestions.append({k: entry[k] for k in SUGGESTION_FIELDS})
    return suggestions


def get_gift_muse_suggestions(story: str) -> List[Dict[str, str]]:
    if not config.is_muse_configured():
        logger.warning("Artifact Muse: MUSE_API_KEY is missing. Suggestions disabled.")
        return []
    if not (story or "").strip():
        return []

    prompt = config.MUSE_PROMPT_TEMPLATE.format(story=story.strip())
    try:
        response = call_muse_api(prompt)
        content = response["choices"][0]["message"].get("content") or "[]"
        return parse_suggestions(content)
    except Exception as e:
        logger.error("❌ Muse API Error: %s", e)
        return []
