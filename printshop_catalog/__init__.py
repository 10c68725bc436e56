"""Print shop catalog client.

Keeps the listing's search text, two-level tag selection, sort and page
consistent with each other and with the paginated ``/print-shop`` endpoint.

This package provides:
- The tag taxonomy and the immutable filter state with its transitions
- The canonical listing query and result page
- A generation-tagged query coordinator that drops stale responses
- A listing screen lifecycle with optional filter persistence
"""

__version__ = "0.1.0"
