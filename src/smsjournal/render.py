"""TwiML rendering for interpreter replies."""

from __future__ import annotations

from xml.sax.saxutils import escape

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'
CONTENT_TYPE = "text/xml"


def render_reply(text: str) -> str:
    return f"{XML_DECLARATION}<Response><Message>{escape(text)}</Message></Response>"


def format_processed(count: int) -> str:
    plural = "" if count == 1 else "s"
    return f"Processed {count} object{plural}."


class ReplySlot:
    """Holds the single reply of one inbound message."""

    __slots__ = ("_text",)

    def __init__(self) -> None:
        self._text: str | None = None

    @property
    def filled(self) -> bool:
        return self._text is not None

    def fill(self, text: str) -> None:
        if self._text is not None:
            raise RuntimeError("reply already set for this message")
        self._text = text

    def render(self) -> str:
        if self._text is None:
            raise RuntimeError("no reply set for this message")
        return render_reply(self._text)
