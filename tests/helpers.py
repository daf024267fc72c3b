# tests/helpers.py
"""Test doubles shared by the suites"""
import asyncio
from datetime import datetime, timedelta, timezone


class FakeClock:
    """Settable clock; starts at the current second so JWT expiry checks pass"""

    def __init__(self):
        self.now = datetime.now(timezone.utc).replace(microsecond=0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeMailer:
    """Records templated mails instead of sending them"""

    def __init__(self):
        self.sent: list[dict] = []
        self.fail = False

    async def send_templated_mail(self, to, subject, template_id, context):
        if self.fail:
            raise ConnectionError("smtp down")
        self.sent.append(
            {"to": to, "subject": subject, "template_id": template_id, "context": context}
        )

    def last(self, template_id: str) -> dict:
        return [m for m in self.sent if m["template_id"] == template_id][-1]


class FakeWebSocket:
    """Collects what the hub forwards"""

    def __init__(self, broken: bool = False):
        self.received: list[dict] = []
        self.closed = False
        self.broken = broken

    async def send_json(self, data):
        if self.broken:
            raise RuntimeError("socket gone")
        self.received.append(data)

    async def close(self, code: int = 1000, reason: str | None = None):
        self.closed = True


async def drain(rounds: int = 5) -> None:
    """Let forwarding tasks run"""
    for _ in range(rounds):
        await asyncio.sleep(0.01)
