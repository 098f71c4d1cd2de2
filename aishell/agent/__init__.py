from .chatbot import AgentError, ChatBot

__all__ = ["AgentError", "ChatBot"]
