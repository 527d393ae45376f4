"""Domain layer for leadbridge.

Pure business rules shared by the reporting pipeline and the board-sync jobs:
registration validation, pseudonymization, net-deposit arithmetic and the
lead/KYC mapping used when writing board items.
"""

from . import models

__all__ = ["models"]
