"""Test doubles for the content generator and the persistence gateway."""

import asyncio


class FakeGenerator:
    """Returns a canned result (or raises) and records every context it was given."""

    def __init__(self, result=None, error=None, gate: asyncio.Event = None):
        self.result = result
        self.error = error
        self.gate = gate
        self.calls = []

    async def generate(self, context):
        self.calls.append(context)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.result


class ScriptedGateway:
    """Serves queued load responses; a response with a gate waits until the gate is set."""

    def __init__(self, responses=()):
        self.responses = list(responses)
        self.saved = []

    async def load(self, module_key):
        gate, raw = self.responses.pop(0)
        if gate is not None:
            await gate.wait()
        return raw

    async def save(self, module_key, payload):
        self.saved.append(payload)
        return {"id": "saved-1", **payload}
