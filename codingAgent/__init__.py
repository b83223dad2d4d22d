"""codingAgent: orchestration core of a coding assistant.

Entry points live in ``codingAgent.runtime.app`` (``build_application``) and
``codingAgent.runtime.session`` (``ConversationSession``).
"""

__version__ = "0.1.0"
