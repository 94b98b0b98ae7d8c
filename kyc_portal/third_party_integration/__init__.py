# third_party_integration module

# Clients for the identity-data provider (Dojah credit bureau) and the log of
# outgoing calls made to it. A deterministic mock provider stands in for Dojah
# in development and tests.

from . import models # Outgoing call log
from . import mock_data # Deterministic Dojah-shaped reports
from . import services # Provider clients and the provider factory

# __all__ = ['models', 'mock_data', 'services']
