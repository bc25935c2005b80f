#!/usr/bin/env python3
"""Phabricator feed webhook -> Matrix room relay.

Endpoints:
- /alive: static version string
- /shutdown: terminate the process immediately
- anything else: a feed story callback (form-encoded), relayed to Matrix
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib import parse

from phab_relay.activity import ActivityErrorHandler, ActivityLog
from phab_relay.aliases import load_aliases
from phab_relay.cache import LookupCache
from phab_relay.conduit import ConduitClient
from phab_relay.config import VERSION, ConfigError, Settings, load_settings
from phab_relay.matrix import MatrixClient, room_url
from phab_relay.resolver import PhidResolver
from phab_relay.stories import route_story

ALIVE_PATH = "/alive"
SHUTDOWN_PATH = "/shutdown"

logger = logging.getLogger("phab-relay")


class Relay:
    def __init__(
        self,
        settings: Settings,
        *,
        conduit: ConduitClient,
        matrix: MatrixClient,
        activity: ActivityLog,
        cache: LookupCache | None = None,
        aliases: Mapping[str, str] | None = None,
    ) -> None:
        self.settings = settings
        self.matrix = matrix
        self.activity = activity
        self.resolver = PhidResolver(
            conduit,
            settings.phid_query_url,
            cache if cache is not None else LookupCache(),
            activity,
            aliases,
        )

    def room_url(self, room: str) -> str:
        return room_url(self.settings.matrix_host, room, self.settings.matrix_token)

    def handle_story(self, form: Mapping[str, list[str]]) -> tuple[bool, str]:
        """Return (message sent, routing reason)."""
        message, reason = route_story(
            form,
            default_room_url=self.room_url(self.settings.room),
            allowed_types=self.settings.resolve_types,
            resolve=self.resolver.resolve,
            room_url_for=self.room_url,
        )
        if message is None:
            logger.debug("story discarded: %s", reason)
            return False, reason
        logger.debug("routing story (%s) with %d references", reason, len(message.references))
        return self.matrix.emit(message.text, message.room_url, message.references), reason


def build_relay(settings: Settings, activity: ActivityLog) -> Relay:
    conduit = ConduitClient(settings.phab_token, timeout=settings.http_timeout_sec)
    aliases = load_aliases(conduit, settings.paste_search_url, settings.lookup_phid)
    return Relay(
        settings,
        conduit=conduit,
        matrix=MatrixClient(timeout=settings.http_timeout_sec),
        activity=activity,
        aliases=aliases,
    )


class RelayServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: tuple[str, int], handler: type[BaseHTTPRequestHandler], relay: Relay) -> None:
        self.relay = relay
        super().__init__(address, handler)


class Handler(BaseHTTPRequestHandler):
    server: RelayServer

    def log_message(self, fmt: str, *args: Any) -> None:
        logger.info("http %s - %s", self.address_string(), fmt % args)

    def _respond(self, code: HTTPStatus, payload: dict[str, Any]) -> None:
        self._send(code, json.dumps(payload).encode("utf-8"), "application/json")

    def _send(self, code: HTTPStatus, data: bytes, content_type: str) -> None:
        self.send_response(code)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def _read_form(self, query: str) -> dict[str, list[str]]:
        form: dict[str, list[str]] = {}
        length = int(self.headers.get("Content-Length", "0") or 0)
        if length > 0:
            body = self.rfile.read(length).decode("utf-8", errors="replace")
            content_type = self.headers.get("Content-Type", "application/x-www-form-urlencoded")
            if content_type.startswith("application/x-www-form-urlencoded"):
                form = parse.parse_qs(body, keep_blank_values=True)
        for key, values in parse.parse_qs(query, keep_blank_values=True).items():
            form.setdefault(key, []).extend(values)
        return form

    def _handle(self) -> None:
        url = parse.urlsplit(self.path)
        if url.path == ALIVE_PATH:
            self._send(HTTPStatus.OK, f"version: {VERSION}".encode("utf-8"), "text/plain; charset=utf-8")
            return
        if url.path == SHUTDOWN_PATH:
            logger.info("shutdown requested by %s", self.address_string())
            os._exit(0)

        form = self._read_form(url.query)
        sent, reason = self.server.relay.handle_story(form)
        self._respond(HTTPStatus.OK, {"ok": True, "sent": sent, "reason": reason})

    def do_GET(self) -> None:  # noqa: N802
        self._handle()

    def do_POST(self) -> None:  # noqa: N802
        self._handle()


def _setup_logging(settings: Settings, activity: ActivityLog) -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        handlers=[
            logging.StreamHandler(),
            ActivityErrorHandler(activity),
        ],
    )


def main() -> None:
    try:
        settings = load_settings()
    except ConfigError as exc:
        raise SystemExit(f"phab-relay: {exc}") from exc

    activity = ActivityLog(settings.log_dir)
    _setup_logging(settings, activity)
    logger.info("Starting phab-relay receiving hook (version: %s)", VERSION)
    if settings.debug:
        logger.debug("phid query: %s", settings.phid_query_url)
        logger.debug("paste search: %s", settings.paste_search_url)
        logger.debug("resolving: %s", ", ".join(settings.resolve_types))
        logger.debug("matrix host: %s room: %s", settings.matrix_host, settings.room)
        logger.debug("lookup paste: %s", settings.lookup_phid)
        logger.debug("logging to: %s", settings.log_dir or ".")

    relay = build_relay(settings, activity)
    activity.append("startup", "started")

    try:
        server = RelayServer((settings.listen_host, settings.listen_port), Handler, relay)
    except OSError as exc:
        logger.error("listen failure on %s:%s: %s", settings.listen_host, settings.listen_port, exc)
        raise SystemExit(1) from exc
    logger.info("listening on http://%s:%s/", settings.listen_host, settings.listen_port)
    logger.info("Health endpoint: http://%s:%s%s", settings.listen_host, settings.listen_port, ALIVE_PATH)
    try:
        server.serve_forever()
    finally:
        activity.close(drain=True)


if __name__ == "__main__":
    main()
