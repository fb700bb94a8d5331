from __future__ import annotations

import re
from html.parser import HTMLParser


# Subtrees that never contain policy text
DROP_TAGS = frozenset({"head", "title", "script", "style", "noscript", "template", "svg", "iframe", "nav", "header", "footer"})
# First of these (or any element with class="content") wins over the whole body when present
CONTENT_TAGS = frozenset({"main", "article"})
CONTENT_CLASS = "content"
VOID_TAGS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input", "link", "meta", "param", "source", "track", "wbr",
})

_WS = re.compile(r"\s+")


def _is_content(tag: str, attrs: list[tuple[str, str | None]]) -> bool:
    if tag in CONTENT_TAGS:
        return True
    classes = next((value for name, value in attrs if name == "class"), None) or ""
    return CONTENT_CLASS in classes.split()


class _PolicyTextParser(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self._stack: list[str] = []
        self.body: list[str] = []
        self.content: list[str] = []
        self._content_depth: int | None = None
        self._content_done = False

    def _dropping(self) -> bool:
        return any(tag in DROP_TAGS for tag in self._stack)

    def _emit(self, text: str) -> None:
        self.body.append(text)
        if self._content_depth is not None:
            self.content.append(text)

    def handle_starttag(self, tag, attrs):
        if tag in VOID_TAGS:
            self._emit(" ")
            return
        if tag == "body" and "head" in self._stack:
            # </head> is optional in HTML5
            del self._stack[self._stack.index("head"):]
        self._stack.append(tag)
        if (
            _is_content(tag, attrs)
            and self._content_depth is None
            and not self._content_done
            and not self._dropping()
        ):
            self._content_depth = len(self._stack)

    def handle_startendtag(self, tag, attrs):
        self._emit(" ")

    def handle_endtag(self, tag):
        if tag not in self._stack:
            return
        # Pops implicitly-closed children too (<p> without </p> etc.)
        while self._stack:
            open_tag = self._stack.pop()
            if self._content_depth is not None and len(self._stack) < self._content_depth:
                self._content_depth = None
                self._content_done = True
            if open_tag == tag:
                break
        self._emit(" ")

    def handle_data(self, data):
        if self._dropping():
            return
        self._emit(data)


def html_to_text(html: str) -> str:
    """
    Plain text of an HTML page with scripts, styles and site chrome removed,
    entities decoded and whitespace collapsed to single spaces.
    """
    parser = _PolicyTextParser()
    parser.feed(html)
    parser.close()

    content = _WS.sub(" ", "".join(parser.content)).strip()
    if content:
        return content
    return _WS.sub(" ", "".join(parser.body)).strip()
