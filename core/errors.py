"""Errors with tracking ids."""

import uuid

from internal.logging import format_timestamp


class LensingError(Exception):
    """Base error with a short unique id and timestamp for correlating logs."""

    def __init__(self, message, context=None, cause=None):
        super().__init__(message)
        self.error_id = uuid.uuid4().hex[:12]
        self.timestamp = format_timestamp()
        self.context = context or {}
        self.cause = cause

    def __str__(self):
        return f"[{self.error_id}] {super().__str__()}"


class ProtocolError(LensingError):
    """Inbound frame that is not valid JSON or has the wrong shape."""

    def __init__(self, message, player_id=None, msg_type=None, **kwargs):
        context = kwargs.pop("context", {})
        if player_id is not None:
            context["player_id"] = player_id
        if msg_type is not None:
            context["msg_type"] = msg_type
        super().__init__(message, context=context, **kwargs)


class ChannelError(LensingError):
    """Outbound delivery to one connection failed."""

    def __init__(self, message, player_id=None, **kwargs):
        context = kwargs.pop("context", {})
        if player_id is not None:
            context["player_id"] = player_id
        super().__init__(message, context=context, **kwargs)
