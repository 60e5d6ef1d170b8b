"""ICY metadata frame parsing.

A metadata frame is a short block of text such as
``StreamTitle='Artist - Song';StreamUrl='';`` padded with NUL bytes to a
multiple of 16. Only the title is of interest here.
"""

ICY_METADATA_BLOCK_SIZE = 16  # Length byte is expressed in 16-byte blocks.
ICY_MAX_METADATA_LENGTH = 255 * ICY_METADATA_BLOCK_SIZE

STREAM_TITLE_MARKER = "StreamTitle='"


def decode_frame(frame: bytes) -> str:
    """Decode raw frame bytes to text, dropping NUL padding."""
    return frame[:ICY_MAX_METADATA_LENGTH].decode("utf-8", errors="replace").rstrip("\x00")


def parse_stream_title(frame: bytes) -> str:
    """Extract the StreamTitle value from a metadata frame.

    The scan is a single left-to-right pass over at most
    ``ICY_MAX_METADATA_LENGTH`` bytes, so malformed or hostile frames cannot
    stall the stream.

    Args:
        frame: Metadata bytes, already trimmed to the declared frame length.

    Returns:
        str: The first ``StreamTitle`` value, or an empty string when the frame
        has no complete assignment. Backslash-escaped quotes are kept verbatim.
    """
    text = decode_frame(frame)

    start = text.find(STREAM_TITLE_MARKER)
    if start < 0:
        return ""
    start += len(STREAM_TITLE_MARKER)

    position = start
    while True:
        end = text.find("'", position)
        if end < 0:
            return ""
        # An odd run of backslashes escapes the quote, an even run escapes itself.
        backslashes = 0
        while end - backslashes > start and text[end - backslashes - 1] == "\\":
            backslashes += 1
        if backslashes % 2:
            position = end + 1
            continue
        return text[start:end]
