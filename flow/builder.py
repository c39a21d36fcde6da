"""Session assembly — picks the module definition and wires the shared services into a session."""

from typing import Optional

from flow.llm import ContentGenerator, LLMContentGenerator
from flow.session import ModuleSession
from modules.model import MODEL_MODULE
from modules.offer import OFFER_MODULE
from workers.auth import AuthSession
from workers.persistence import PersistenceGateway

# ── Registered module instances ────────────────────────────────────────
MODULE_REGISTRY = {
    OFFER_MODULE.key: OFFER_MODULE,
    MODEL_MODULE.key: MODEL_MODULE,
}


def build_session(module_key: str, *, gateway: PersistenceGateway, auth: AuthSession,
                  generator: Optional[ContentGenerator] = None, read_only: bool = False) -> ModuleSession:
    """
    Construct a fresh session for one module.
    Raises KeyError for an unregistered module key.
    """
    try:
        definition = MODULE_REGISTRY[module_key]
    except KeyError:
        raise KeyError(f"Unknown module: {module_key}") from None
    if generator is None:
        generator = LLMContentGenerator()
    return ModuleSession(definition, gateway, auth, generator, read_only=read_only)
