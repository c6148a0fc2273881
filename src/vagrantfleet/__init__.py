from vagrantfleet import metadata
from vagrantfleet.loggers.logger import logger as log

__version__ = metadata.version
