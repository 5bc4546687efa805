from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.core.settings import settings

# Signed asset URLs are embedded by the frontend from another origin.
_CROSS_ORIGIN_PATHS = ("/api/v1/assets/content",)


class SecurityHeadersMiddleware:
    """Apply default security headers without overriding ones a route already set."""

    def __init__(self, app: ASGIApp, enable_hsts: bool = True) -> None:
        self.app = app
        self.enable_hsts = enable_hsts

    def _defaults(self, path: str) -> list[tuple[bytes, bytes]]:
        resource_policy = b"cross-origin" if path.startswith(_CROSS_ORIGIN_PATHS) else b"same-origin"
        defaults = [
            (b"x-content-type-options", b"nosniff"),
            (b"x-frame-options", b"DENY"),
            (b"referrer-policy", b"no-referrer"),
            (b"cross-origin-opener-policy", b"same-origin"),
            (b"cross-origin-resource-policy", resource_policy),
        ]
        if self.enable_hsts:
            defaults.append((b"strict-transport-security", b"max-age=63072000; includeSubDomains"))
        if settings.content_security_policy:
            header_name = (
                b"content-security-policy-report-only"
                if settings.content_security_policy_report_only
                else b"content-security-policy"
            )
            defaults.append((header_name, settings.content_security_policy.encode()))
        return defaults

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        defaults = self._defaults(scope.get("path", ""))

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                current = list(message.get("headers", []))
                existing = {key.lower() for key, _ in current}
                current.extend((key, value) for key, value in defaults if key not in existing)
                message["headers"] = current
            await send(message)

        await self.app(scope, receive, send_with_headers)
