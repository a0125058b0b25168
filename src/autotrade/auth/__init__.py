"""Identity: signed bearer tokens mapped to user ids."""

from autotrade.auth.identity import TokenIdentity

__all__ = ["TokenIdentity"]
