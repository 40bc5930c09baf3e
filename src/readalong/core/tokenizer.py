"""Document tokenization into addressable word spans.

This module handles:
- Wrapping every whitespace-delimited run of a rendered HTML document in a
  ``<span class="word" data-index="N">`` element
- Normalizing each run into the form used for matching
- Resolving token indices back to live elements, and rehydrating those
  references after the document has been re-rendered externally
"""

import logging
import weakref
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from bs4 import BeautifulSoup, NavigableString, Tag

from ..config import HIGHLIGHT_CLASS, SKIPPED_TAGS, WORD_CLASS
from ..exceptions import DocumentError
from .models import TextToken
from .text_utils import normalize_word, split_preserving_whitespace

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderRef:
    """Revalidatable handle to the element rendering one token.

    Holds no element itself: every resolve looks the index up in the
    document's current element table.
    """

    document: "weakref.ReferenceType[RenderedDocument]"
    index: int

    def resolve(self) -> Optional[Tag]:
        document = self.document()
        if document is None:
            return None
        return document.element_for(self.index)

    @property
    def is_live(self) -> bool:
        return self.resolve() is not None


def _is_text_leaf(node) -> bool:
    """Check if a string node carries visible document text."""
    # Comments, CDATA, doctypes etc. are NavigableString subclasses
    if type(node) is not NavigableString:
        return False
    parent = node.parent
    if parent is None or parent.name in SKIPPED_TAGS:
        return False
    return bool(node.strip())


class RenderedDocument:
    """A rendered HTML document whose text is split into word tokens."""

    def __init__(
        self,
        markup: Union[str, BeautifulSoup, None],
        container_selector: Optional[str] = None,
        parser: str = "html.parser",
    ):
        if isinstance(markup, BeautifulSoup):
            self.soup = markup
        else:
            self.soup = BeautifulSoup(markup or "", parser)
        self.container_selector = container_selector
        self.tokens: List[TextToken] = []
        self._elements: List[Optional[Tag]] = []
        self._self_ref = weakref.ref(self)

    # ----------------------
    # Container
    # ----------------------
    @property
    def container(self) -> Tag:
        """Root element whose text is tokenized (re-resolved on every access)."""
        if not self.container_selector:
            return self.soup
        element = self.soup.select_one(self.container_selector)
        if element is None:
            raise DocumentError(
                f"No element matches container selector {self.container_selector!r}"
            )
        return element

    def replace_markup(self, markup: Union[str, BeautifulSoup]) -> None:
        """Swap in a freshly rendered tree; existing element refs go stale."""
        self.soup = markup if isinstance(markup, BeautifulSoup) else BeautifulSoup(
            markup, "html.parser"
        )

    # ----------------------
    # Tokenization
    # ----------------------
    def tokenize(self) -> List[TextToken]:
        """Split the container text into tokens.

        Re-running on an already tokenized container collects the existing
        word spans instead of wrapping them again.
        """
        container = self.container
        existing = container.find_all("span", class_=WORD_CLASS)
        if existing:
            self._elements = self._index_existing_spans(existing)
            logger.debug("Collected %d existing word spans", len(self._elements))
        else:
            self._elements = self._wrap_text_nodes(container)

        self.tokens = [
            TextToken(
                index=i,
                normalized_word=normalize_word(el.get_text()) or None,
                raw_text=el.get_text(),
                render_ref=RenderRef(self._self_ref, i),
            )
            for i, el in enumerate(self._elements)
        ]
        skipped = sum(1 for t in self.tokens if t.is_skip)
        logger.info(
            "Tokenized document: %d tokens (%d punctuation-only)",
            len(self.tokens),
            skipped,
        )
        return self.tokens

    def _wrap_text_nodes(self, container: Tag) -> List[Tag]:
        text_nodes = [n for n in container.find_all(string=True) if _is_text_leaf(n)]
        elements: List[Tag] = []
        for node in text_nodes:
            replacement = []
            for part in split_preserving_whitespace(str(node)):
                if part.isspace():
                    replacement.append(NavigableString(part))
                    continue
                span = self.soup.new_tag("span")
                span["class"] = [WORD_CLASS]
                span["data-index"] = str(len(elements))
                normalized = normalize_word(part)
                if normalized:
                    span["data-word"] = normalized
                else:
                    span["data-skip"] = "true"
                span.string = part
                elements.append(span)
                replacement.append(span)
            node.replace_with(*replacement)
        return elements

    @staticmethod
    def _index_existing_spans(spans: List[Tag]) -> List[Tag]:
        by_index: Dict[int, Tag] = {}
        for span in spans:
            try:
                by_index[int(span.get("data-index", ""))] = span
            except ValueError:
                continue
        if sorted(by_index) == list(range(len(spans))):
            return [by_index[i] for i in range(len(spans))]

        # Indices missing or not contiguous: fall back to document order
        for i, span in enumerate(spans):
            span["data-index"] = str(i)
        return list(spans)

    # ----------------------
    # Element lookup and liveness
    # ----------------------
    def _is_attached(self, element: Optional[Tag]) -> bool:
        if element is None:
            return False
        return any(parent is self.soup for parent in element.parents)

    def element_for(self, index: int) -> Optional[Tag]:
        """Return the live element for a token index, or None if stale."""
        if index < 0 or index >= len(self._elements):
            return None
        element = self._elements[index]
        return element if self._is_attached(element) else None

    def is_live(self, index: int) -> bool:
        return self.element_for(index) is not None

    def has_stale_refs(self, probe_indices=()) -> bool:
        """Cheap staleness probe over the first, last and given indices."""
        if not self._elements:
            return False
        probes = {0, len(self._elements) - 1}
        probes.update(i for i in probe_indices if 0 <= i < len(self._elements))
        return any(not self.is_live(i) for i in probes)

    def rehydrate_if_stale(self, probe_indices=()) -> int:
        """Remap token indices onto the currently rendered word spans.

        Returns the number of references that were stale before remapping.
        """
        if not self._elements or not self.has_stale_refs(probe_indices):
            return 0
        stale = sum(1 for i in range(len(self._elements)) if not self.is_live(i))
        try:
            container = self.container
        except DocumentError:
            logger.debug("Container missing; keeping stale references")
            return stale

        fresh = container.find_all("span", class_=WORD_CLASS)
        if not fresh:
            return stale

        by_index: Dict[int, Tag] = {}
        for span in fresh:
            try:
                by_index[int(span.get("data-index", ""))] = span
            except ValueError:
                continue
        if not by_index:
            by_index = dict(enumerate(fresh))

        self._elements = [by_index.get(i) for i in range(len(self.tokens))]
        logger.info("Rehydrated %d stale word span reference(s)", stale)
        return stale

    # ----------------------
    # Highlight writes
    # ----------------------
    def set_highlighted(self, index: int, highlighted: bool = True) -> bool:
        """Toggle the highlight class on a token; no-op if its element is stale."""
        element = self.element_for(index)
        if element is None and self._elements:
            self.rehydrate_if_stale(probe_indices=(index,))
            element = self.element_for(index)
        if element is None:
            return False

        classes = list(element.get("class", []))
        if highlighted and HIGHLIGHT_CLASS not in classes:
            classes.append(HIGHLIGHT_CLASS)
        elif not highlighted and HIGHLIGHT_CLASS in classes:
            classes.remove(HIGHLIGHT_CLASS)
        element["class"] = classes
        return True

    def is_highlighted(self, index: int) -> bool:
        element = self.element_for(index)
        return element is not None and HIGHLIGHT_CLASS in element.get("class", [])

    def clear_highlights(self) -> None:
        for i in range(len(self._elements)):
            element = self.element_for(i)
            if element is not None and HIGHLIGHT_CLASS in element.get("class", []):
                self.set_highlighted(i, False)

    def highlight_all(self) -> int:
        """Paint every token without touching any highlight cursor."""
        return sum(1 for i in range(len(self._elements)) if self.set_highlighted(i))

    def reapply(self, indices) -> int:
        """Repaint the highlight class on ``indices``; idempotent.

        A re-render that drops the class leaves highlight state and markup
        out of sync until this is called.
        """
        return sum(1 for i in sorted(indices) if self.set_highlighted(i))

    def render(self) -> str:
        return str(self.soup)


def tokenize_html(markup: str, container_selector: Optional[str] = None) -> RenderedDocument:
    """Parse and tokenize markup in one step."""
    document = RenderedDocument(markup, container_selector=container_selector)
    document.tokenize()
    return document
