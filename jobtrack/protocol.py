"""
Minimal HTTP/1.1 request parsing and response framing.

Each connection carries exactly one request and one response, then
closes. There is no keep-alive, pipelining or chunked transfer coding.
A connection moves through the states of `ConnectionState` in order;
a parse failure jumps straight to writing an error response.
"""

import enum
import socket
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Dict, List, Optional, Tuple, Union
from urllib.parse import parse_qs, urlsplit

from .errors import NotFoundError, ParseError, PersistenceError, ProtocolError
from .logger import get_logger

logger = get_logger()

MAX_LINE = 65536
MAX_HEADERS = 100


class ConnectionState(enum.Enum):
    AWAITING_REQUEST_LINE = "awaiting_request_line"
    READING_HEADERS = "reading_headers"
    READING_BODY = "reading_body"
    DISPATCHING = "dispatching"
    WRITING_RESPONSE = "writing_response"
    CLOSED = "closed"


@dataclass
class HttpRequest:
    method: str
    target: str
    version: str = "HTTP/1.1"
    headers: Dict[str, str] = field(default_factory=dict)  # keys lower-cased
    body: str = ""

    @property
    def path(self) -> str:
        return urlsplit(self.target).path or "/"

    @property
    def query(self) -> Dict[str, List[str]]:
        return parse_qs(urlsplit(self.target).query)

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.lower(), default)


@dataclass
class HttpResponse:
    status: int
    body: Union[str, bytes] = b""
    content_type: str = "text/plain; charset=utf-8"
    headers: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def reason(self) -> str:
        try:
            return HTTPStatus(self.status).phrase
        except ValueError:
            return "Unknown"

    @property
    def body_bytes(self) -> bytes:
        if isinstance(self.body, bytes):
            return self.body
        return self.body.encode("utf-8")

    def to_bytes(self) -> bytes:
        """Serialise with CRLF framing and a byte-accurate Content-Length."""
        body = self.body_bytes
        lines = [
            f"HTTP/1.1 {self.status} {self.reason}",
            f"Content-Type: {self.content_type}",
            f"Content-Length: {len(body)}",
        ]
        lines.extend(f"{name}: {value}" for name, value in self.headers)
        lines.append("Connection: close")
        head = "\r\n".join(lines) + "\r\n\r\n"
        return head.encode("latin-1") + body

    @classmethod
    def text(cls, status: int, body: str) -> "HttpResponse":
        return cls(status=status, body=body)

    @classmethod
    def html(cls, body: str, status: int = 200) -> "HttpResponse":
        return cls(status=status, body=body, content_type="text/html; charset=utf-8")

    @classmethod
    def redirect(cls, location: str) -> "HttpResponse":
        return cls(status=303, headers=[("Location", location)])


class Connection:
    """Reads one request from a binary stream, tracking the parse state."""

    def __init__(self, rfile):
        self.rfile = rfile
        self.state = ConnectionState.AWAITING_REQUEST_LINE

    def _readline(self) -> bytes:
        line = self.rfile.readline(MAX_LINE + 1)
        if len(line) > MAX_LINE:
            raise ProtocolError("Request line or header too long", status=431)
        return line

    def read_request(self) -> Optional[HttpRequest]:
        """
        Parse the request line, headers and optional body.

        Returns:
            The request, or None if the peer closed before sending anything

        Raises:
            ProtocolError: On a malformed request line, bad Content-Length,
                truncated body or a body that is not UTF-8
        """
        raw = self._readline()
        # Browsers sometimes send a stray CRLF before the request line
        while raw in (b"\r\n", b"\n"):
            raw = self._readline()
        if not raw:
            self.state = ConnectionState.CLOSED
            return None

        request_line = raw.decode("latin-1").rstrip("\r\n")
        parts = request_line.split()
        if len(parts) != 3 or not parts[2].startswith("HTTP/"):
            raise ProtocolError(f"Malformed request line: {request_line!r}")
        method, target, version = parts

        self.state = ConnectionState.READING_HEADERS
        headers = self._read_headers()

        self.state = ConnectionState.READING_BODY
        body = self._read_body(headers.get("content-length"))

        return HttpRequest(method=method.upper(), target=target, version=version,
                           headers=headers, body=body)

    def _read_headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        count = 0
        while True:
            raw = self._readline()
            if not raw:
                # Peer stopped sending; treat what we have as the full header block
                break
            line = raw.decode("latin-1").rstrip("\r\n")
            if line == "":
                break
            count += 1
            if count > MAX_HEADERS:
                raise ProtocolError("Too many headers", status=431)
            if ":" not in line:
                logger.warning("Skipping malformed header line", line=line)
                continue
            name, value = line.split(":", 1)
            headers[name.strip().lower()] = value.strip()
        return headers

    def _read_body(self, content_length: Optional[str]) -> str:
        if content_length is None:
            return ""
        try:
            length = int(content_length)
        except ValueError:
            raise ProtocolError(f"Invalid Content-Length: {content_length!r}")
        if length < 0:
            raise ProtocolError(f"Invalid Content-Length: {content_length!r}")
        if length == 0:
            return ""

        data = self.rfile.read(length)
        if len(data) < length:
            raise ProtocolError(f"Incomplete body: expected {length} bytes, got {len(data)}")
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError:
            raise ProtocolError("Request body is not valid UTF-8")


def read_request(rfile) -> Optional[HttpRequest]:
    return Connection(rfile).read_request()


class ConnectionHandler:
    """
    Runs one connection cycle: parse, dispatch, respond, close.

    Holds no per-connection state between calls, so one handler can serve
    many worker threads at once.
    """

    def __init__(self, router, timeout: Optional[float] = 10.0):
        self.router = router
        self.timeout = timeout

    def handle(self, sock: socket.socket, peer: Optional[Tuple] = None) -> None:
        sock.settimeout(self.timeout)
        rfile = sock.makefile("rb")
        wfile = sock.makefile("wb")
        try:
            self.process(rfile, wfile, peer)
        finally:
            rfile.close()
            wfile.close()
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass  # peer already gone
            sock.close()

    def process(self, rfile, wfile, peer: Optional[Tuple] = None) -> Optional[HttpResponse]:
        """
        Read one request from rfile and write one response to wfile.

        Returns:
            The response written, or None when nothing was readable
        """
        conn = Connection(rfile)
        request = None
        try:
            request = conn.read_request()
        except socket.timeout:
            logger.record_protocol_error()
            logger.warning("Timed out reading request", peer=str(peer), state=conn.state.value)
            response = HttpResponse.text(408, "Request Timeout")
        except ProtocolError as e:
            logger.record_protocol_error()
            logger.warning("Bad request", peer=str(peer), error=str(e), state=conn.state.value)
            response = HttpResponse.text(e.status, str(e))
        except OSError as e:
            logger.warning("Connection dropped while reading", peer=str(peer), error=str(e))
            conn.state = ConnectionState.CLOSED
            return None
        else:
            if request is None:
                logger.debug("Connection closed before a request arrived", peer=str(peer))
                return None
            logger.record_request()
            conn.state = ConnectionState.DISPATCHING
            response = self.dispatch(request)

        conn.state = ConnectionState.WRITING_RESPONSE
        try:
            wfile.write(response.to_bytes())
            wfile.flush()
        except OSError as e:
            logger.warning("Failed to write response", peer=str(peer), error=str(e))
        logger.record_response(response.status)
        if request is not None:
            logger.info(f"{request.method} {request.target} -> {response.status}", peer=str(peer))
        conn.state = ConnectionState.CLOSED
        return response

    def dispatch(self, request: HttpRequest) -> HttpResponse:
        try:
            return self.router.dispatch(request)
        except ParseError as e:
            return HttpResponse.text(400, str(e))
        except NotFoundError:
            return HttpResponse.text(404, "404 Not Found")
        except PersistenceError as e:
            logger.error("Store failure while handling request", path=request.path, error=str(e))
            return HttpResponse.text(500, "Internal Server Error")
        except Exception as e:
            logger.critical("Unhandled error while handling request", path=request.path,
                            error=repr(e))
            return HttpResponse.text(500, "Internal Server Error")
