"""
MINERVA CLASSIFIER - From a transport outcome to channel firings

Two entry points, one per transport outcome:

    on_fail(response, engine)
        no usable response  -> normalize to "deep manager error"
                            -> manager_error            (no postrun)

    on_nominal_success(response, engine)
        message_type error   -> error,   postrun
        message_type warning -> warning, postrun
        success + merge      -> merge,   postrun
        success + rebuild    -> rebuild, postrun
        success + meta       -> meta,    postrun
        success + other      -> ALERT,   postrun
        other message_type   -> ALERT,   postrun

ALERT is a ProtocolMismatch handed to the operator alert callable. It
means the client and service have drifted out of version compatibility.

Neither entry point raises: every path ends in a channel firing (or the
alert), and both return the response they classified.
"""
import logging
from typing import Any, Callable, Optional, Type

from core.ontology import Channel, MessageType, DEEP_MANAGER_ERROR, channel_for_signal
from core.response import BaristaResponse
from core.schemas import ProtocolMismatch
from infrastructure.event_bus import ChannelRegistry
from manager.errors import detect_mismatch


logger = logging.getLogger("minerva.classifier")
alert_logger = logging.getLogger("minerva.alert")


AlertHandler = Callable[[ProtocolMismatch], None]


def log_protocol_mismatch(mismatch: ProtocolMismatch) -> None:
    """Default operator alert: CRITICAL on the minerva.alert logger."""
    alert_logger.critical(f"PROTOCOL MISMATCH: {mismatch.describe()}")


class ResponseClassifier:
    """
    Routes classified responses onto a channel registry.

    Channel arguments are (response, owner), where owner is the manager
    on whose behalf the call was made.
    """

    def __init__(
        self,
        channels: ChannelRegistry,
        owner: Any = None,
        response_class: Type[BaristaResponse] = BaristaResponse,
        alert: Optional[AlertHandler] = None,
    ):
        self._channels = channels
        self._owner = owner
        self._response_class = response_class
        self._alert = alert or log_protocol_mismatch

    def on_fail(self, response: Optional[BaristaResponse], engine: Any = None) -> BaristaResponse:
        """Transport-level failure: fire manager_error only."""
        if response is None or not response.message_type() or not response.message():
            logger.debug(f"Normalizing unusable response: {response!r}")
            response = self._response_class(dict(DEEP_MANAGER_ERROR))

        logger.warning(f"Manager error: {response.message()}")
        self._channels.publish(Channel.MANAGER_ERROR, response, self._owner)
        return response

    def on_nominal_success(self, response: BaristaResponse, engine: Any = None) -> BaristaResponse:
        """Transport-level completion: dispatch on message type, then signal."""
        message_type = response.message_type()

        if message_type == MessageType.ERROR.value:
            # Errors trump everything.
            self._channels.publish(Channel.ERROR, response, self._owner)
        elif message_type == MessageType.WARNING.value:
            logger.warning(f"Service warning: {response.message()}")
            self._channels.publish(Channel.WARNING, response, self._owner)
        elif message_type == MessageType.SUCCESS.value and channel_for_signal(response.signal()):
            self._channels.publish(channel_for_signal(response.signal()), response, self._owner)
        else:
            self._raise_alert(detect_mismatch(response))

        # Postrun goes no matter what.
        self._channels.publish(Channel.POSTRUN, response, self._owner)
        return response

    def _raise_alert(self, mismatch: ProtocolMismatch) -> None:
        logger.error(mismatch.describe())
        try:
            self._alert(mismatch)
        except Exception as e:
            logger.error(f"Error in protocol mismatch alert handler: {e}", exc_info=True)
