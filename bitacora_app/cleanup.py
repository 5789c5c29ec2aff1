# Clean-up applied to raw language-model output before JSON decoding.
import re

LEGACY_YEARS = "202[0-3]"
LEGACY_TIMESTAMP = re.compile(LEGACY_YEARS + r"-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}")
FENCE = re.compile(r"```json|```")

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"


def format_timestamp(moment):
    return moment.replace(microsecond=0).strftime(TIMESTAMP_FORMAT)


def unwrap_response(text):
    """Strip surrounding whitespace and markdown code fences."""
    text = (text or "").strip()
    if text.startswith("```"):
        text = FENCE.sub("", text).strip()
    return text


def normalize_dates(text, now):
    """Replace stale training-era timestamps with ``now`` (seconds precision)."""
    return LEGACY_TIMESTAMP.sub(format_timestamp(now), text)
