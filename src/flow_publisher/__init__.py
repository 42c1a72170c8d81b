"""Flow Publisher.

Validates, repairs and publishes generated Kestra flows:
- configuration loaded from `.env`
- structured logging
- conflict-safe flow publication, update and execution
"""

__version__ = "0.1.0"

from flow_publisher.publisher.config import PublisherSettings

__all__ = ["__version__", "PublisherSettings"]
