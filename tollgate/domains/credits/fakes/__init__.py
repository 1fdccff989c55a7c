"""Fakes for the credits domain."""

from tollgate.domains.credits.fakes.repository import FakeCreditRepository

__all__ = ["FakeCreditRepository"]
