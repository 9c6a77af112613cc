"""Business logic services"""

from .mime import MessageDecoder, MessageEncoder
from .compose import Composer
from .indexing import MailIndex, NotmuchIndex
from .sending import SendPipeline
from .launching import ExternalProgram

__all__ = [
    "MessageDecoder",
    "MessageEncoder",
    "Composer",
    "MailIndex",
    "NotmuchIndex",
    "SendPipeline",
    "ExternalProgram",
]
