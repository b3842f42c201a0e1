from __future__ import annotations

from botocore.exceptions import BotoCoreError, ClientError

from .errors import ConditionFailedError, TransportError


def map_client_error(err: ClientError) -> TransportError:
    code = str(err.response.get("Error", {}).get("Code", ""))
    message = str(err.response.get("Error", {}).get("Message", ""))

    if code == "ConditionalCheckFailedException":
        return ConditionFailedError(code=code, message=message or "conditional check failed")

    return TransportError(code=code or "UnknownError", message=message or str(err))


def map_transport_error(err: Exception) -> TransportError:
    if isinstance(err, ClientError):
        return map_client_error(err)
    if isinstance(err, BotoCoreError):
        return TransportError(code=type(err).__name__, message=str(err))
    return TransportError(code="UnknownError", message=str(err))
