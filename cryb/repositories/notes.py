"""Note Repository: pinned notes first, then newest first."""

from typing import Optional

from cryb.models.records import Note, NoteUpdate
from cryb.repositories.base import HouseRepository
from cryb.services.storage.interface import NOTES_TABLE


class NoteRepository(HouseRepository[Note]):
    table = NOTES_TABLE
    model = Note
    entity_name = "note"

    def _sort(self, items: list[Note]) -> list[Note]:
        by_newest = sorted(items, key=lambda n: n.created_at, reverse=True)
        return sorted(by_newest, key=lambda n: not n.is_pinned)

    async def toggle_pin(self, note: Note) -> Optional[Note]:
        return await self.update(note.id, NoteUpdate(is_pinned=not note.is_pinned))

    @property
    def pinned(self) -> list[Note]:
        return [n for n in self.items if n.is_pinned]

    def search(self, query: str) -> list[Note]:
        """Case-insensitive match on title, content or any tag."""
        needle = query.strip().casefold()
        if not needle:
            return list(self.items)
        return [
            n for n in self.items
            if needle in n.title.casefold()
            or needle in n.content.casefold()
            or any(needle in tag.casefold() for tag in n.tags)
        ]

    def by_tag(self, tag: str) -> list[Note]:
        return [n for n in self.items if tag in n.tags]

    def all_tags(self) -> list[str]:
        return sorted({tag for n in self.items for tag in n.tags})
