import json
from typing import Any, Dict, List, Optional, Union

from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence (```json ... ```), if any."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        first_newline = cleaned.find("\n")
        # Drop the opening fence together with its language tag
        cleaned = cleaned[first_newline + 1:] if first_newline != -1 else cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def parse_json_safely(text: Optional[str]) -> Union[Dict[str, Any], List[Any], None]:
    """Parse JSON from model output, tolerating common formatting issues.

    Handles:
    - Markdown code blocks (```json ... ```)
    - Prose before or after the JSON document
    - Concatenated JSON objects (e.g., {...}\\n{...}), merged into one

    Args:
        text: Raw model output

    Returns:
        Parsed JSON value or None if nothing parseable was found
    """
    if not text or not isinstance(text, str):
        return None

    cleaned_text = strip_code_fences(text)

    try:
        return json.loads(cleaned_text)
    except json.JSONDecodeError as e:
        LOGGER.warning(f"Initial JSON parse failed: {e}, attempting repairs...")
        first_error = e

    documents = _decode_all(cleaned_text)
    if documents:
        merged = _merge_json_objects(documents)
        LOGGER.info(f"Recovered {len(documents)} JSON document(s) from model output")
        return merged

    LOGGER.error(f"Failed to parse JSON: {first_error}")
    return None


def _decode_all(text: str) -> List[Any]:
    """Decode consecutive top-level JSON objects found in text, in order.

    Decoding stops at the first object that does not parse; fragments nested
    inside a truncated document are never returned on their own.
    """
    decoder = json.JSONDecoder()
    results: List[Any] = []
    idx = text.find("{")

    while idx != -1 and idx < len(text):
        try:
            obj, end_idx = decoder.raw_decode(text, idx)
        except json.JSONDecodeError as e:
            LOGGER.debug(f"Stopped decoding at position {idx}: {e}")
            break

        results.append(obj)
        idx = text.find("{", end_idx)

    return results


def _merge_json_objects(objects: List[Any]) -> Union[Dict[str, Any], List[Any], None]:
    """Merge a list of parsed JSON documents into a single result.

    Dicts are merged key by key (lists concatenated, dicts shallow-merged,
    later scalars win). Lists are flattened. Mixed input is returned as a list.
    """
    if not objects:
        return None

    if len(objects) == 1:
        return objects[0]

    if all(isinstance(obj, dict) for obj in objects):
        merged: Dict[str, Any] = {}
        for obj in objects:
            for key, value in obj.items():
                existing = merged.get(key)
                if isinstance(existing, list) and isinstance(value, list):
                    merged[key] = existing + value
                elif isinstance(existing, dict) and isinstance(value, dict):
                    merged[key] = {**existing, **value}
                else:
                    if key in merged:
                        LOGGER.debug(f"Key conflict during merge: {key}, using later value")
                    merged[key] = value
        return merged

    if all(isinstance(obj, list) for obj in objects):
        flattened: List[Any] = []
        for obj in objects:
            flattened.extend(obj)
        return flattened

    return objects
