"""
promptvc - prompt versioning and model configuration reconciliation engine
"""
import logging

__version__ = "0.1.0"

# Silent until the host application calls LoggingConfig.configure()
logging.getLogger(__name__).addHandler(logging.NullHandler())
