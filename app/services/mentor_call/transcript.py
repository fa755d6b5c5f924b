"""Transcript buffer for recognized user speech."""
from typing import List, Tuple

from app.services.mentor_call.models import TranscriptFragment


class TranscriptBuffer:
    """Ordered collection of finalized transcript fragments."""

    def __init__(self):
        self._fragments: List[TranscriptFragment] = []

    def append(self, fragment: TranscriptFragment) -> bool:
        """Add a fragment. Interim and blank fragments are ignored.

        Returns:
            True if the fragment was kept
        """
        if not fragment.is_final or not fragment.text.strip():
            return False
        self._fragments.append(fragment)
        return True

    @property
    def fragments(self) -> Tuple[TranscriptFragment, ...]:
        return tuple(self._fragments)

    def get_text(self) -> str:
        """Get the transcript as a single string."""
        return " ".join(fragment.text.strip() for fragment in self._fragments)

    def clear(self) -> None:
        self._fragments = []

    def __len__(self) -> int:
        return len(self._fragments)
