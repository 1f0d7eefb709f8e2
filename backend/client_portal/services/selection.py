from __future__ import annotations

from typing import Iterable, List


class SelectionTracker:
    """Invoice selection of one portal session.

    ``on_listing_state_changed`` must be fed the ids of a freshly computed
    page; the selection then never refers to an invoice the contact cannot
    see under the current filters, sort order and page.
    """

    def __init__(self, selected_ids: Iterable[str] = (), all_selected: bool = False) -> None:
        self._selected: List[str] = list(dict.fromkeys(selected_ids))
        self.all_selected = all_selected

    @property
    def selected_ids(self) -> List[str]:
        return list(self._selected)

    def __len__(self) -> int:
        return len(self._selected)

    def __contains__(self, hashed_id: object) -> bool:
        return hashed_id in self._selected

    def toggle_select_all(self, enabled: bool, current_page_ids: Iterable[str]) -> None:
        self.all_selected = enabled
        self._selected = list(dict.fromkeys(current_page_ids)) if enabled else []

    def set_selection(self, hashed_ids: Iterable[str]) -> None:
        self._selected = list(dict.fromkeys(hashed_ids))
        self.all_selected = False

    def on_listing_state_changed(self, new_page_ids: Iterable[str]) -> None:
        visible = set(new_page_ids)
        self._selected = [hashed_id for hashed_id in self._selected if hashed_id in visible]
        self.all_selected = False

    def restrict_to(self, page_ids: Iterable[str]) -> None:
        """Drop ids that are not on the rendered page, keeping select-all only while it still holds."""
        visible = set(page_ids)
        self._selected = [hashed_id for hashed_id in self._selected if hashed_id in visible]
        self.all_selected = self.all_selected and bool(visible) and set(self._selected) == visible
