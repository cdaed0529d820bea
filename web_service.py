#!/usr/bin/env python3
import http.server
import logging
import socket
import socketserver
import threading
from email import policy
from email.parser import BytesParser
from urllib.parse import urlparse, parse_qs

import settings
from dispatcher import ACTION_RENDER, Dispatcher, Response, TEXT_PLAIN, error_response
from errors import AsciiArtError, InvalidParameter, PayloadTooLarge, ProtocolError, ServiceBusy
from image_loader import get_decoder

logger = logging.getLogger(__name__)

ACTION_HEADER = getattr(settings, 'ACTION_HEADER', 'aa-action')
ACTION_PARAM = getattr(settings, 'ACTION_PARAM', 'action')
CORS_ORIGIN = getattr(settings, 'CORS_ORIGIN', '*')


def get_real_ip(handler):
    """
    Extracts the real IP from proxy headers (X-Real-IP / X-Forwarded-For)
    or falls back to the socket address if accessed directly.
    """
    headers = getattr(handler, "headers", None)
    real_ip = headers.get('X-Real-IP') if headers else None
    if not real_ip and headers:
        forwarded = headers.get('X-Forwarded-For')
        if forwarded:
            real_ip = forwarded.split(',')[0].strip()
    if not real_ip:
        real_ip = handler.client_address[0]
    return real_ip


def parse_multipart(content_type, body):
    """
    Split a multipart/form-data body into {field name: bytes}.

    Parts without a name are ignored; a repeated name keeps the last part.
    """
    if not content_type or not content_type.lower().startswith("multipart/form-data"):
        raise InvalidParameter("Request is not multipart/form-data.")

    head = f"Content-Type: {content_type}\r\nMIME-Version: 1.0\r\n\r\n".encode("latin-1")
    msg = BytesParser(policy=policy.HTTP).parsebytes(head + body)
    if not msg.is_multipart() or msg.defects:
        raise InvalidParameter("Malformed multipart/form-data body.")

    fields = {}
    for part in msg.iter_parts():
        name = part.get_param("name", header="content-disposition")
        if not name:
            continue
        fields[name] = part.get_payload(decode=True) or b""
    return fields


class ThreadedTCPServer(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True


class CatalogHTTPServer(ThreadedTCPServer):
    """
    One thread per connection. Render work is admitted through a bounded
    semaphore; requests beyond the limit are turned away with 503.
    """

    def __init__(self, address, dispatcher, max_upload_bytes, max_concurrent_renders,
                 request_timeout=30):
        self.dispatcher = dispatcher
        self.max_upload_bytes = max_upload_bytes
        self.request_timeout = request_timeout
        self.render_slots = threading.BoundedSemaphore(max_concurrent_renders)
        super().__init__(address, CatalogRequestHandler)


class RobustHandlerMixin:
    """
    Routes access logging through the logging module, drops 4xx probe
    noise, and treats client disconnects as normal.
    """

    def address_string(self):
        # Disable reverse DNS lookups for speed
        return str(self.client_address[0])

    def log_request(self, code='-', size='-'):
        try:
            c = int(code)
        except (TypeError, ValueError):
            c = None

        if c in (403, 404, 408):
            return

        self.log_message('"%s" %s %s', self.requestline, str(code), str(size))

    def log_error(self, format, *args):
        if args and isinstance(args[0], int) and args[0] in (403, 404, 408):
            return
        logger.warning("%s - %s", get_real_ip(self), format % args)

    def log_message(self, format, *args):
        path = getattr(self, "path", "")
        if path == "/health":
            return
        logger.info("%s - %s", get_real_ip(self), format % args)

    def handle(self):
        """
        Wraps the standard handle() to catch network disconnects silently.
        """
        try:
            super().handle()
        except (ConnectionResetError, BrokenPipeError, ConnectionAbortedError, socket.timeout):
            # Normal network weather (client disconnected, timeout, etc.)
            pass


class CatalogRequestHandler(RobustHandlerMixin, http.server.BaseHTTPRequestHandler):
    server_version = "AsciiArtCatalog/1.0"

    def setup(self):
        self.timeout = self.server.request_timeout
        super().setup()

    # --------------------------------------------------------------
    # Helpers
    # --------------------------------------------------------------
    def _action(self):
        action = self.headers.get(ACTION_HEADER)
        if not action:
            query = parse_qs(urlparse(self.path).query)
            action = query.get(ACTION_PARAM, [None])[0]
        return action

    def _cors_headers(self):
        self.send_header('Access-Control-Allow-Origin', CORS_ORIGIN)
        self.send_header('Access-Control-Allow-Methods', 'GET, POST, OPTIONS')
        self.send_header('Access-Control-Allow-Headers', ACTION_HEADER)

    def _send(self, response: Response):
        self.send_response(response.status)
        self.send_header('Content-Type', response.content_type)
        self.send_header('Content-Length', str(len(response.body)))
        self._cors_headers()
        self.end_headers()
        self.wfile.write(response.body)

    def _read_form(self):
        length = self.headers.get('Content-Length')
        if length is None:
            raise InvalidParameter("Missing Content-Length.")
        try:
            length = int(length)
        except ValueError:
            raise InvalidParameter("Bad Content-Length.") from None
        if length < 0:
            raise InvalidParameter("Bad Content-Length.")
        if length > self.server.max_upload_bytes:
            raise PayloadTooLarge(
                f"Request body of {length} bytes exceeds the {self.server.max_upload_bytes} byte limit."
            )
        body = self.rfile.read(length)
        if len(body) < length:
            raise InvalidParameter("Request body ended early.")
        return parse_multipart(self.headers.get('Content-Type'), body)

    # --------------------------------------------------------------
    # Verbs
    # --------------------------------------------------------------
    def do_OPTIONS(self):
        self.send_response(204)
        self._cors_headers()
        self.send_header('Content-Length', '0')
        self.end_headers()

    def do_GET(self):
        if urlparse(self.path).path == "/health":
            self._send(Response(200, TEXT_PLAIN, b"ok\n"))
            return

        action = self._action()
        if action and action.strip().lower() == ACTION_RENDER:
            self._send(error_response(ProtocolError("\"render\" requires a POST request.")))
            return
        self._send(self.server.dispatcher.dispatch(action))

    def do_POST(self):
        action = self._action()
        is_render = bool(action) and action.strip().lower() == ACTION_RENDER
        if not is_render:
            self._send(self.server.dispatcher.dispatch(action))
            return

        try:
            fields = self._read_form()
        except AsciiArtError as e:
            self.close_connection = True
            self._send(error_response(e))
            return

        if not self.server.render_slots.acquire(blocking=False):
            logger.warning(f"Rejected render from {get_real_ip(self)}: server busy")
            self._send(error_response(ServiceBusy("Server busy. Try again later.")))
            return
        try:
            response = self.server.dispatcher.dispatch(action, fields)
        finally:
            self.server.render_slots.release()
        self._send(response)


def make_server(catalog, config):
    """
    Bind the service. The catalog must already be fully loaded; it is
    shared read-only by every request thread.
    """
    dispatcher = Dispatcher(catalog, decoder=get_decoder(config.decoder), max_cols=config.max_cols)
    return CatalogHTTPServer(
        (config.host, config.port),
        dispatcher,
        max_upload_bytes=config.max_upload_bytes,
        max_concurrent_renders=config.max_concurrent_renders,
        request_timeout=config.request_timeout,
    )

