"""pipechat - a Unix pipeline front end for chat-completion models."""

__app_name__ = "pipechat"
__version__ = "0.1.0"
