"""Posting formatted messages into Matrix rooms."""

from __future__ import annotations

import html
import json
import logging
from http.client import HTTPException
from urllib import error, parse, request

logger = logging.getLogger("phab-relay")

ROOM_SEND_PATH = "{host}/_matrix/client/r0/rooms/{room}/send/m.room.message?access_token={token}"
BODY_START = "<body>"
BODY_END = "</body>"
MSG_TYPE = "m.text"
HTML_FORMAT = "org.matrix.custom.html"


def room_url(host: str, room: str, token: str) -> str:
    return ROOM_SEND_PATH.format(host=host, room=parse.quote(room, safe="!:"), token=token)


def render_formatted_body(text: str, references: list[str]) -> str:
    value = html.escape(text)
    if references:
        value += "<br /> (references: " + ", ".join(references) + ")"
    return BODY_START + value + BODY_END


def build_message(text: str, references: list[str]) -> dict[str, str]:
    return {
        "msgtype": MSG_TYPE,
        "body": text,
        "format": HTML_FORMAT,
        "formatted_body": render_formatted_body(text, references),
    }


class MatrixClient:
    def __init__(self, *, timeout: float = 30.0) -> None:
        self.timeout = timeout

    def emit(self, text: str, url: str, references: list[str]) -> bool:
        data = json.dumps(build_message(text, references)).encode("utf-8")
        try:
            req = request.Request(url, data=data, method="POST")
            req.add_header("Content-Type", "application/json")
            with request.urlopen(req, timeout=self.timeout):
                return True
        except error.HTTPError as exc:
            logger.error("failed to post message status=%s", exc.code)
        except (error.URLError, OSError, HTTPException, ValueError) as exc:
            logger.error("failed to post message err=%s", exc)
        return False
