import re

MIN_TRANSCRIPT_LENGTH = 300
MAX_COMMAND_LINES = 10
MEETING_KEYWORDS = ("meeting", "reunión", "participante", "agenda")

TIME_OF_DAY = re.compile(r"\d{1,2}:\d{2}\s*(?:AM|PM|am|pm)?")
SPEAKER_MARKER = re.compile(r"\[.*\]|\w+\s*:", re.DOTALL)


def _line_count(text):
    lines = text.split("\n")
    # Trailing empty lines do not count.
    while lines and lines[-1] == "":
        lines.pop()
    return len(lines)


def is_meeting_transcript(text):
    """
    Decide whether ``text`` looks like a meeting transcript rather than a
    single command. Long text qualifies if it has timestamps, speaker
    markers, many lines, or meeting vocabulary.
    """
    if not text or len(text) <= MIN_TRANSCRIPT_LENGTH:
        return False
    lowered = text.lower()
    return bool(
        TIME_OF_DAY.search(text)
        or SPEAKER_MARKER.search(text)
        or _line_count(text) > MAX_COMMAND_LINES
        or any(keyword in lowered for keyword in MEETING_KEYWORDS)
    )
