from agent_core.engine.base import EngineAdapter
from agent_core.engine.cdp import CDPEngine

__all__ = ['CDPEngine', 'EngineAdapter']
