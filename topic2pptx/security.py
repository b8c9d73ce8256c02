MASK = "••••••••"

# Upstream error bodies are cut to this many characters in messages and logs
MAX_BODY_CHARS = 500


def mask_api_key(s: str) -> str:
    if not s:
        return s
    if len(s) <= 8:
        return MASK
    return s[:4] + MASK + s[-2:]


def truncate(text: str, limit: int = MAX_BODY_CHARS) -> str:
    text = text or ""
    if len(text) <= limit:
        return text
    return text[:limit] + "…"
