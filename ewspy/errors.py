class EwsError(Exception):
    """Base exception for the ewspy library."""
    pass

# --- Transport Errors ---

class TransportError(EwsError):
    """A generic error occurred in the transport layer."""
    pass

class SessionInitError(TransportError): pass
class UnsupportedOptionError(TransportError): pass
class OptionError(TransportError): pass
class TransferError(TransportError): pass
class RequestReusedError(TransportError): pass

# --- Response Errors ---

class ParseError(EwsError):
    """The response payload could not be parsed as XML."""
    pass


def make_error(error_class: type[EwsError], msg: str, reason: object) -> EwsError:
    """Builds an exception whose message is `msg` followed by the engine's own diagnostic."""
    return error_class(f"{msg}: '{reason}'")
