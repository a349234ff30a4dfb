"""Find @handle mentions and pick the text the author wants analyzed."""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from acn_python_backend.config import MENTION_HANDLE

CONTEXT_RADIUS = 500


@dataclass
class MentionContext:
    mention_index: int
    content_before: str
    content_after: str
    target_content: str
    is_direct_mention: bool


@dataclass
class MentionDetection:
    contexts: List[MentionContext] = field(default_factory=list)

    @property
    def has_mention(self) -> bool:
        return bool(self.contexts)


class MentionDetector:
    def __init__(self, handles: Optional[Sequence[str]] = None):
        handles = handles or [MENTION_HANDLE]
        alternatives = "|".join(re.escape(handle.lstrip("@")) for handle in handles)
        self.pattern = re.compile(rf"@(?:{alternatives})\b", re.IGNORECASE)

    def detect(self, content: str) -> MentionDetection:
        contexts = []
        for match in self.pattern.finditer(content):
            start, end = match.start(), match.end()
            before = content[max(0, start - CONTEXT_RADIUS):start].strip()
            after = content[end:end + CONTEXT_RADIUS].strip()

            at_start = start == 0 or content[start - 1] in "\r\n"
            at_end = end >= len(content) or content[end] in "\r\n"

            # Prefer whichever side carries more text
            if len(after) > len(before):
                target, direct = after, at_start
            elif before:
                target, direct = before, at_end
            else:
                target, direct = content, False

            contexts.append(MentionContext(
                mention_index=start,
                content_before=before,
                content_after=after,
                target_content=target,
                is_direct_mention=direct,
            ))
        return MentionDetection(contexts=contexts)

    def target_content(self, content: str) -> str:
        """Text to analyze: the first mention's context, or everything."""
        detection = self.detect(content)
        if detection.has_mention:
            return detection.contexts[0].target_content
        return content
