"""
HTTP(S) server hosting admission webhooks.
"""

import logging
import ssl
from collections.abc import Mapping

from aiohttp.web import Application, AppRunner, Request, Response, TCPSite

from kubewebhook.errors import ConfigurationError

from .handler import RequestHandler

logger = logging.getLogger(__name__)


def create_ssl_context(cert_file: str, key_file: str) -> ssl.SSLContext:
    """
    Build the server TLS context from certificate and key files.

    The files are read once; certificate rotation requires a restart.
    """
    context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
    try:
        context.load_cert_chain(certfile=cert_file, keyfile=key_file)
    except (OSError, ssl.SSLError) as e:
        raise ConfigurationError(
            f"could not load TLS certificate {cert_file}: {e}"
        ) from e
    return context


class WebhookServer:
    """Serves one admission webhook handler per path, plus /healthz."""

    def __init__(
        self,
        handlers: Mapping[str, RequestHandler],
        port: int = 8443,
        host: str = "0.0.0.0",
        ssl_context: ssl.SSLContext | None = None,
    ):
        """
        Initialize webhook server.

        Args:
            handlers: HTTP path -> admission handler (see handler_for)
            port: Port to listen on
            host: Host interface to bind to
            ssl_context: TLS context, plain HTTP when missing
        """
        if not handlers:
            raise ConfigurationError("webhook server needs at least one handler")
        self.port = port
        self.host = host
        self.ssl_context = ssl_context
        self.app = Application()
        self.runner: AppRunner | None = None
        self.site: TCPSite | None = None
        self._setup_routes(handlers)

    def _setup_routes(self, handlers: Mapping[str, RequestHandler]) -> None:
        for path, handler in handlers.items():
            if not path.startswith("/"):
                raise ConfigurationError(f"webhook path {path!r} must start with '/'")
            self.app.router.add_post(path, handler)
        self.app.router.add_get("/healthz", self._healthz_handler)

    async def _healthz_handler(self, request: Request) -> Response:
        return Response(text="ok")

    async def start(self) -> None:
        """Start the webhook server."""
        try:
            self.runner = AppRunner(self.app)
            await self.runner.setup()

            self.site = TCPSite(
                self.runner, self.host, self.port, ssl_context=self.ssl_context
            )
            await self.site.start()

            scheme = "https" if self.ssl_context else "http"
            logger.info(f"Webhook server started on {scheme}://{self.host}:{self.port}")
        except Exception as e:
            logger.error(f"Failed to start webhook server: {e}")
            raise

    async def stop(self) -> None:
        """Stop the webhook server."""
        try:
            if self.site:
                await self.site.stop()
                self.site = None

            if self.runner:
                await self.runner.cleanup()
                self.runner = None

            logger.info("Webhook server stopped")
        except Exception as e:
            logger.error(f"Error stopping webhook server: {e}")

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()
