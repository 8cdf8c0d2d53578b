from agent_core.tools.service import INVALID_PARAMS, UNKNOWN_ACTION, Tools

__all__ = ['INVALID_PARAMS', 'UNKNOWN_ACTION', 'Tools']
