"""Interactive pagination for table output.

Two states: ``paging`` (stop after every page and ask) and ``unbounded``
(stream the rest without asking). The transition table is keyed by the
action parsed from the user's answer at a page boundary.
"""
from __future__ import annotations
from enum import Enum
from typing import Callable, Dict, Optional, TextIO, Tuple
import sys

from tdsql.utils.constants import DEFAULT_PAGE_SIZE

PAGE_PROMPT = "Press Enter to continue, 'q' to quit, 'a' to show all: "


class PagerState(Enum):
    PAGING = 'paging'
    UNBOUNDED = 'unbounded'


class PageAction(Enum):
    CONTINUE = 'continue'
    ALL = 'all'
    QUIT = 'quit'


TRANSITIONS: Dict[Tuple[PagerState, PageAction], PagerState] = {
    (PagerState.PAGING, PageAction.CONTINUE): PagerState.PAGING,
    (PagerState.PAGING, PageAction.ALL): PagerState.UNBOUNDED,
    (PagerState.PAGING, PageAction.QUIT): PagerState.PAGING,
    (PagerState.UNBOUNDED, PageAction.CONTINUE): PagerState.UNBOUNDED,
    (PagerState.UNBOUNDED, PageAction.ALL): PagerState.UNBOUNDED,
    (PagerState.UNBOUNDED, PageAction.QUIT): PagerState.UNBOUNDED,
}


def parse_page_action(answer: Optional[str]) -> PageAction:
    """Map an answer at the page prompt to an action (None means end of input)."""
    if answer is None:
        return PageAction.ALL
    text = answer.strip().lower()
    if text in ('q', 'quit'):
        return PageAction.QUIT
    if text in ('a', 'all'):
        return PageAction.ALL
    return PageAction.CONTINUE


class Pager:
    """Per-query pagination state: rows emitted in total and on this page."""

    def __init__(self, page_size: int = DEFAULT_PAGE_SIZE,
                 reader: Optional[Callable[[str], str]] = None,
                 out: Optional[TextIO] = None):
        self.page_size = page_size
        self.reader = reader or input
        self.out = out or sys.stdout
        self.state = PagerState.PAGING if page_size > 0 else PagerState.UNBOUNDED
        self.total_rows = 0
        self.page_rows = 0
        self.prompts = 0

    @property
    def unbounded(self) -> bool:
        return self.state is PagerState.UNBOUNDED

    def row_emitted(self) -> bool:
        """Count one emitted row; True when a page boundary has been reached."""
        self.total_rows += 1
        if self.unbounded:
            return False
        self.page_rows += 1
        return self.page_rows >= self.page_size

    def prompt(self) -> PageAction:
        """Ask what to do at a page boundary and apply the transition."""
        self.prompts += 1
        self.out.write(f"\n--- Page end ({self.page_rows} rows shown, {self.total_rows} total so far) ---\n")
        self.out.flush()
        try:
            answer = self.reader(PAGE_PROMPT)
        except EOFError:
            answer = None
        action = parse_page_action(answer)
        self.state = TRANSITIONS[(self.state, action)]
        self.page_rows = 0
        if action is PageAction.QUIT:
            self.out.write(f"Query stopped. Showed {self.total_rows} of potentially more rows.\n")
            self.out.flush()
        return action
