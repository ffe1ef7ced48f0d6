# pagelingo/services/text_chunker.py
"""
Splits page text into chunks for backends with a request size limit.
"""

SENTENCE_TERMINATORS = ".!?"


def _split_oversized(paragraph: str, max_chars: int) -> list[str]:
    """
    Hard-split a paragraph longer than max_chars.

    Cut points, in order of preference: after the last sentence terminator
    within the limit, at the last space within the limit, at the limit itself.
    """
    chunks = []
    remaining = paragraph
    while len(remaining) > max_chars:
        window = remaining[:max_chars]
        cut = max(window.rfind(t) for t in SENTENCE_TERMINATORS)
        if cut > 0:
            cut += 1  # keep the terminator with the left chunk
        else:
            cut = window.rfind(" ")
            if cut <= 0:
                cut = max_chars
        head = remaining[:cut].strip()
        if head:
            chunks.append(head)
        remaining = remaining[cut:].strip()
    if remaining:
        chunks.append(remaining)
    return chunks


def split_text(text: str, max_chars: int) -> list[str]:
    """
    Split text into chunks of at most max_chars characters.

    Paragraphs (lines) are packed greedily and rejoined with newlines; a
    paragraph that alone exceeds the limit is hard-split.

    Args:
        text: Page text
        max_chars: Maximum chunk length, must be positive

    Returns:
        Non-empty chunks in order. Text within the limit is returned as one chunk.
    """
    if max_chars <= 0:
        raise ValueError(f"max_chars must be positive, got {max_chars}")
    if len(text) <= max_chars:
        return [text] if text else []

    chunks: list[str] = []
    current = ""
    for paragraph in text.split("\n"):
        candidate = f"{current}\n{paragraph}" if current else paragraph
        if len(candidate) <= max_chars:
            current = candidate
            continue

        if current:
            chunks.append(current)
            current = ""
        if len(paragraph) <= max_chars:
            current = paragraph
        else:
            pieces = _split_oversized(paragraph, max_chars)
            chunks.extend(pieces[:-1])
            current = pieces[-1] if pieces else ""

    if current:
        chunks.append(current)
    return chunks


def join_chunks(chunks: list[str]) -> str:
    """Rejoin translated chunks in order with a single space."""
    return " ".join(chunks)
