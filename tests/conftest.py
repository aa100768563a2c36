import pytest


class FakeSocket:
    """Stand-in for a websocket connection that records what it was sent."""

    def __init__(self, name=""):
        self.name = name
        self.sent = []
        self.closed_with = None

    async def send_json(self, payload):
        self.sent.append(payload)

    async def close(self, code=1000):
        self.closed_with = code

    def of_type(self, msg_type):
        return [m for m in self.sent if m.get("type") == msg_type]

    def last(self, msg_type):
        matches = self.of_type(msg_type)
        return matches[-1] if matches else None

    def clear(self):
        self.sent.clear()


@pytest.fixture
def make_socket():
    return FakeSocket
