"""
Accounts core REST API package

Use ``create_app`` to build a new application instance or the ``api``
wrapper object to lazily access one with the default settings.
"""

from .api import api, create_app
