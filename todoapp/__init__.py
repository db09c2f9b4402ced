"""Personal to-do list: REST task API, optimistic client state and chat front-end."""

__version__ = "1.0.0"
