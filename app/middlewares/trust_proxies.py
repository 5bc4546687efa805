from starlette.types import ASGIApp, Receive, Scope, Send


class TrustedProxiesMiddleware:
    """Rewrite the client address from X-Forwarded-For behind a known number of proxies.

    The rate limiter keys on the client address, so only the hop directly in
    front of the trusted proxies is believed. With ``proxies_count=0`` the
    header is ignored entirely.
    """

    def __init__(self, app: ASGIApp, proxies_count: int = 0) -> None:
        self.app = app
        self.proxies_count = proxies_count

    def _client_from_header(self, value: str) -> str | None:
        hops = [hop.strip() for hop in value.split(",") if hop.strip()]
        if len(hops) <= self.proxies_count:
            return None
        return hops[-(self.proxies_count + 1)]

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and self.proxies_count > 0:
            headers = dict(scope.get("headers", []))
            forwarded = headers.get(b"x-forwarded-for", b"").decode("latin-1")
            client_ip = self._client_from_header(forwarded) if forwarded else None
            if client_ip:
                port = scope["client"][1] if scope.get("client") else 0
                scope["client"] = (client_ip, port)

        await self.app(scope, receive, send)
